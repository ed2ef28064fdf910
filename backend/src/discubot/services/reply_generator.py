"""
Reply message generation.

Replies posted back to the source thread come in a handful of preset
personalities. A personality of the form "custom:<prompt>" is written by
the language model instead, falling back to the professional preset when
no API key is available or the call fails.
"""

import logging
from dataclasses import dataclass
from typing import Callable, Optional, Sequence

from discubot.ai.providers import create_provider
from discubot.models.parsed import NotionTaskResult
from discubot.utils.retry import RetryConfig, with_retry

logger = logging.getLogger(__name__)

DEFAULT_PERSONALITY = "professional"
CUSTOM_PREFIX = "custom:"
CUSTOM_REPLY_MODEL = "claude-3-5-haiku-latest"


def _plural(count: int, word: str, plural: Optional[str] = None) -> str:
    return word if count == 1 else (plural or f"{word}s")


def _numbered(tasks: Sequence[NotionTaskResult], fmt: str = "{n}. {url}") -> str:
    return "\n".join(fmt.format(n=i, url=t.url) for i, t in enumerate(tasks, start=1))


@dataclass(frozen=True)
class Personality:
    label: str
    description: str
    no_tasks: str
    single_task: Callable[[str], str]
    multiple_tasks: Callable[[Sequence[NotionTaskResult]], str]
    bootstrap: Callable[[int], str]


PERSONALITY_PRESETS: dict[str, Personality] = {
    "professional": Personality(
        label="Professional",
        description="Formal, clear, minimal",
        no_tasks="✅ Discussion processed (no tasks created)",
        single_task=lambda url: f"✅ Task created in Notion\n🔗 {url}",
        multiple_tasks=lambda tasks: (
            f"✅ Created {len(tasks)} tasks in Notion:\n{_numbered(tasks)}"
        ),
        bootstrap=lambda n: (
            f"Found {n} {_plural(n, 'user')}. Map them in your dashboard."
            if n > 0
            else "Bootstrap comment processed. No @mentions detected - "
            "add users manually in the dashboard."
        ),
    ),
    "friendly": Personality(
        label="Friendly",
        description="Warm, encouraging",
        no_tasks="Got it! 👍 I've noted this discussion, but no specific tasks were needed.",
        single_task=lambda url: f"Nice catch! 🎯 I've logged this as a task for you:\n{url}",
        multiple_tasks=lambda tasks: (
            f"Great discussion! 🙌 I've created {len(tasks)} tasks:\n{_numbered(tasks)}"
        ),
        bootstrap=lambda n: (
            f"Welcome aboard! 👋 Found {n} team {_plural(n, 'member')}. "
            "Head to your dashboard to map them to Notion users."
            if n > 0
            else "Hi there! 👋 Bootstrap received, but I didn't spot any @mentions. "
            "You can add users manually in the dashboard."
        ),
    ),
    "concise": Personality(
        label="Concise",
        description="Ultra-brief",
        no_tasks="✓ Noted",
        single_task=lambda url: f"Done → {url}",
        multiple_tasks=lambda tasks: (
            f"{len(tasks)} tasks → {' '.join(t.url for t in tasks)}"
        ),
        bootstrap=lambda n: f"{n} users found" if n > 0 else "No users found",
    ),
    "pirate": Personality(
        label="Pirate",
        description="Arrr!",
        no_tasks="Ahoy! ⚓ I've scanned the horizon but found no treasure (tasks) to log!",
        single_task=lambda url: f"Arrr! ⚓ Task be logged in ye Notion seas!\n🗺️ {url}",
        multiple_tasks=lambda tasks: (
            f"Shiver me timbers! ☠️ {len(tasks)} treasures have been charted:\n"
            f"{_numbered(tasks)}"
        ),
        bootstrap=lambda n: (
            f"Ahoy! 🏴‍☠️ {n} crew {_plural(n, 'member')} spotted! "
            "Chart 'em in yer dashboard, captain!"
            if n > 0
            else "Arrr! No crew spotted in these waters. Add yer mateys manually!"
        ),
    ),
    "robot": Personality(
        label="Robot",
        description="Beep boop",
        no_tasks="SCAN_COMPLETE. TASKS_DETECTED: 0. STATUS: ACKNOWLEDGED.",
        single_task=lambda url: (
            f"TASK_CREATED: SUCCESS.\nDATA_LINK: {url}\nSTATUS: OPERATIONAL."
        ),
        multiple_tasks=lambda tasks: (
            f"BATCH_PROCESS: COMPLETE.\nTASKS_GENERATED: {len(tasks)}\n"
            f"{_numbered(tasks, '[{n}] {url}')}\nEND_TRANSMISSION."
        ),
        bootstrap=lambda n: (
            f"USER_SCAN: COMPLETE. ENTITIES_FOUND: {n}. AWAITING_MAPPING_INPUT."
            if n > 0
            else "USER_SCAN: COMPLETE. ENTITIES_FOUND: 0. MANUAL_INPUT_REQUIRED."
        ),
    ),
    "zen": Personality(
        label="Zen",
        description="Calm, mindful",
        no_tasks="🧘 The discussion flows like water. No tasks arise from this moment.",
        single_task=lambda url: f"🧘 A task has found its home. Peace follows action.\n{url}",
        multiple_tasks=lambda tasks: (
            f"🧘 {len(tasks)} intentions have been set. Each step brings clarity.\n"
            f"{_numbered(tasks)}"
        ),
        bootstrap=lambda n: (
            f"🧘 {n} {_plural(n, 'soul')} have been recognized. "
            "Connect them in your dashboard to complete the circle."
            if n > 0
            else "🧘 The search finds stillness. Add your companions when the time is right."
        ),
    ),
}


def is_preset(personality: Optional[str]) -> bool:
    return personality is not None and personality in PERSONALITY_PRESETS


def is_custom_prompt(personality: Optional[str]) -> bool:
    return personality is not None and personality.startswith(CUSTOM_PREFIX)


def extract_custom_prompt(personality: str) -> str:
    return personality[len(CUSTOM_PREFIX):].strip()


def _prefix_icon(message: str, icon: Optional[str]) -> str:
    if icon and not message.startswith(icon):
        return f"{icon} {message}"
    return message


def _preset_reply(tasks: Sequence[NotionTaskResult], preset: Personality) -> str:
    if not tasks:
        return preset.no_tasks
    if len(tasks) == 1:
        return preset.single_task(tasks[0].url)
    return preset.multiple_tasks(tasks)


@with_retry(RetryConfig(max_attempts=2, base_delay=0.5, max_delay=2.0))
def _custom_completion(prompt: str, api_key: str, max_tokens: int) -> str:
    provider = create_provider("anthropic", api_key, CUSTOM_REPLY_MODEL)
    response = provider.complete(
        system_prompt="You write short status replies for a task-tracking bot.",
        user_prompt=prompt,
        max_tokens=max_tokens,
        temperature=0.7,
    )
    text = response.content.strip()
    if not text:
        raise ValueError("No response text from model")
    return text


def generate_reply_message(
    tasks: Sequence[NotionTaskResult],
    personality: Optional[str] = None,
    api_key: Optional[str] = None,
    icon: Optional[str] = None,
) -> str:
    """Confirmation message for the tasks created from a discussion.

    Args:
        tasks: Created tasks, possibly empty
        personality: Preset key or "custom:<prompt>"
        api_key: Anthropic key, required for custom prompts
        icon: Optional emoji prefixed to the message

    Returns:
        Reply text
    """
    selected = personality or DEFAULT_PERSONALITY

    if is_preset(selected):
        return _prefix_icon(_preset_reply(tasks, PERSONALITY_PRESETS[selected]), icon)

    if is_custom_prompt(selected):
        if not api_key:
            logger.warning("Custom personality requires an API key, falling back to professional")
            return generate_reply_message(tasks, DEFAULT_PERSONALITY, icon=icon)

        if not tasks:
            task_context = "No tasks were created from this discussion."
        elif len(tasks) == 1:
            task_context = f"One task was created: {tasks[0].url}"
        else:
            task_context = f"{len(tasks)} tasks were created:\n{_numbered(tasks)}"

        prompt = (
            f"You are a bot confirming task creation. {extract_custom_prompt(selected)}\n\n"
            f"Context: {task_context}\n\n"
            "Generate a SHORT reply message (1-3 sentences max) confirming the task(s). "
            "Include the URLs if tasks were created. Keep it brief and match the personality style."
        )
        try:
            return _prefix_icon(_custom_completion(prompt, api_key, 150), icon)
        except Exception as e:
            logger.error(f"Custom reply generation failed, falling back to professional: {e}")
            return generate_reply_message(tasks, DEFAULT_PERSONALITY, icon=icon)

    logger.warning(f"Unknown personality '{selected}', falling back to professional")
    return generate_reply_message(tasks, DEFAULT_PERSONALITY, icon=icon)


def generate_bootstrap_message(
    user_count: int,
    personality: Optional[str] = None,
    api_key: Optional[str] = None,
    icon: Optional[str] = None,
) -> str:
    """Acknowledgment for a bootstrap (user sync) comment."""
    selected = personality or DEFAULT_PERSONALITY

    if is_preset(selected):
        return _prefix_icon(PERSONALITY_PRESETS[selected].bootstrap(user_count), icon)

    if is_custom_prompt(selected) and api_key:
        if user_count > 0:
            context = (
                f"{user_count} {_plural(user_count, 'user was', 'users were')} discovered "
                "from @mentions. Users need to be mapped in the dashboard."
            )
        else:
            context = (
                "No users were found in the @mentions. "
                "Users can be added manually in the dashboard."
            )
        prompt = (
            f"You are a bot confirming user discovery for mapping. "
            f"{extract_custom_prompt(selected)}\n\nContext: {context}\n\n"
            "Generate a SHORT reply message (1-2 sentences max) about the user discovery. "
            "Keep it brief and match the personality style."
        )
        try:
            return _prefix_icon(_custom_completion(prompt, api_key, 100), icon)
        except Exception as e:
            logger.error(f"Custom bootstrap reply failed, falling back to professional: {e}")

    return generate_bootstrap_message(user_count, DEFAULT_PERSONALITY, icon=icon)
