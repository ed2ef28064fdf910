"""Prompt templates for thread summarization and task detection."""

from typing import Optional

from discubot.models.parsed import DiscussionThread

PRIORITY_VALUES = ["low", "medium", "high", "urgent"]
TYPE_VALUES = ["bug", "feature", "question", "improvement"]
SENTIMENT_VALUES = ["positive", "neutral", "negative"]

SUMMARY_SYSTEM_PROMPT = (
    "You are an assistant that reads team discussions and summarizes them "
    "for a task tracker. Return only valid JSON."
)

TASK_SYSTEM_PROMPT = (
    "You are an assistant that turns team discussions into actionable tasks "
    "for a task tracker. Return only valid JSON."
)

SUMMARY_RESPONSE_FORMAT = """{
  "summary": "...",
  "keyPoints": ["..."] or [],
  "sentiment": "positive|neutral|negative",
  "confidence": 0.0-1.0,
  "domain": "domain-name"|null
}"""

SUMMARY_PROMPT = """Analyze this discussion thread{source_context} and provide:

1. A concise summary (2-3 sentences)
2. Key points or decisions (only meaningful ones; an empty array if there are none)
3. Overall sentiment (positive, neutral, or negative)
{domain_instructions}
{page_context}
Discussion:
{messages}

Respond in JSON format:
{response_format}

Do not invent key points. A short discussion without decisions gets an empty keyPoints array."""

CUSTOM_SUMMARY_PROMPT = """{custom_prompt}

{source_line}{page_context}
Discussion:
{messages}

Important: {domain_instructions}

Respond in JSON format:
{response_format}"""

TASK_PROMPT = """<task>
Analyze this discussion and identify actionable tasks. Extract the action items that belong to each task.
</task>

{page_context}<discussion>
{messages}
</discussion>

{custom_instructions}
<instructions>

## Task Detection
1. Identify distinct, actionable work items that are mentioned or clearly implied
2. Extract at most {max_tasks} tasks
3. Return an empty tasks array when nothing actionable exists
4. Set isMultiTask=true when there are two or more distinct tasks
{domain_instructions}
## Action Items
Only list steps that participants explicitly mentioned.
- Never derive implementation steps from the task title
- Use null when no concrete steps were discussed

Example: "We need to update the colors and test on mobile"
  -> actionItems: ["Update the colors", "Test on mobile"]
Example: "Convert codebase to JavaScript"
  -> actionItems: null

## Fields
Fill a field only when confident; otherwise use null.
- priority: {priority_options} or null
  (urgent: blocking, high: soon, medium: normal, low: can wait)
- type: {type_options} or null
  (bug: broken, feature: new capability, question: needs investigation, improvement: enhancement)
- assignee: people appear as "@Name (notion-user-id)". Return only the id of the most relevant person, or null
- dueDate: only when a date is explicitly mentioned, formatted YYYY-MM-DD, otherwise null
- tags: short topical tags such as ["navigation", "mobile"], or null

</instructions>

<response_format>
Respond with ONLY valid JSON in this exact format:
{{
  "isMultiTask": true|false,
  "tasks": [
    {{
      "title": "Concise task title (5-10 words)",
      "description": "What needs to be done (1-2 sentences)",
      "actionItems": ["Step 1", "Step 2"] or null,
      "priority": "low"|"medium"|"high"|"urgent"|null,
      "type": "bug"|"feature"|"question"|"improvement"|null,
      "assignee": "notion-user-id"|null,
      "dueDate": "YYYY-MM-DD"|null,
      "tags": ["tag1"]|null,
      "domain": "domain-name"|null
    }}
  ],
  "confidence": 0.0-1.0
}}
</response_format>"""


def _display_name(author_name: Optional[str], author_handle: Optional[str]) -> str:
    return author_name or author_handle or "Unknown"


def format_thread_messages(thread: DiscussionThread) -> str:
    """Render a thread as "Root message by X:" / "Reply by Y:" blocks."""
    root = thread.root_message
    lines = [
        f"Root message by {_display_name(root.author_name, root.author_handle)}:",
        root.content,
        "",
    ]
    for reply in thread.replies:
        lines.append(
            f"Reply by {_display_name(reply.author_name, reply.author_handle)}:\n{reply.content}"
        )
    return "\n".join(lines)


def _summary_domain_instructions(available_domains: Optional[list[str]]) -> str:
    if available_domains:
        return (
            "4. Detect the primary domain this discussion relates to. "
            f"Available domains: {', '.join(available_domains)}. "
            "Return null if uncertain or if it does not clearly fit one domain."
        )
    return (
        "4. Detect the primary domain if the discussion clearly relates to one "
        "(e.g., design, frontend, backend, product). Return null if uncertain."
    )


def _task_domain_instructions(available_domains: Optional[list[str]]) -> str:
    if available_domains:
        return (
            "\n## Domain Detection\n"
            "For EACH task, pick the domain the work belongs to.\n"
            f"Available domains: {', '.join(available_domains)}\n"
            "Return null when the task spans several domains or you are unsure.\n"
        )
    return (
        "\n## Domain Detection\n"
        "For EACH task, name its domain if clearly identifiable "
        "(e.g., design, frontend, backend, product), otherwise null.\n"
    )


def build_summary_prompt(
    thread: DiscussionThread,
    source_type: Optional[str] = None,
    custom_prompt: Optional[str] = None,
    available_domains: Optional[list[str]] = None,
) -> str:
    """Build the summarization prompt.

    A custom prompt replaces the default instructions but keeps the
    discussion, domain guidance and JSON response format.
    """
    messages = format_thread_messages(thread)
    page_content = thread.metadata.get("pageContent")
    page_context = (
        f"\nPage Context (the content being discussed):\n{page_content}\n"
        if page_content
        else ""
    )
    domain_instructions = _summary_domain_instructions(available_domains)

    if custom_prompt:
        source_line = (
            f"Context: This discussion is from {source_type}.\n" if source_type else ""
        )
        return CUSTOM_SUMMARY_PROMPT.format(
            custom_prompt=custom_prompt,
            source_line=source_line,
            page_context=page_context,
            messages=messages,
            domain_instructions=domain_instructions,
            response_format=SUMMARY_RESPONSE_FORMAT,
        )

    return SUMMARY_PROMPT.format(
        source_context=f" from {source_type}" if source_type else "",
        domain_instructions=domain_instructions,
        page_context=page_context,
        messages=messages,
        response_format=SUMMARY_RESPONSE_FORMAT,
    )


def build_task_prompt(
    thread: DiscussionThread,
    custom_prompt: Optional[str] = None,
    available_domains: Optional[list[str]] = None,
    max_tasks: int = 5,
) -> str:
    """Build the task detection prompt."""
    page_content = thread.metadata.get("pageContent")
    page_context = (
        f"<page_context>\n{page_content}\n</page_context>\n\n" if page_content else ""
    )
    custom_instructions = (
        f"<custom_instructions>\n{custom_prompt}\n</custom_instructions>\n"
        if custom_prompt
        else ""
    )

    return TASK_PROMPT.format(
        page_context=page_context,
        messages=format_thread_messages(thread),
        custom_instructions=custom_instructions,
        max_tasks=max_tasks,
        domain_instructions=_task_domain_instructions(available_domains),
        priority_options=" | ".join(f'"{p}"' for p in PRIORITY_VALUES),
        type_options=" | ".join(f'"{t}"' for t in TYPE_VALUES),
    )
