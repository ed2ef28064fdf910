"""Thread analysis: summary and task detection through an LLM provider."""

import json
import logging
import re
import time
from typing import Any, Optional

from discubot.ai.cache import AnalysisCache
from discubot.ai.llm_logger import llm_logger
from discubot.ai.prompts import (
    PRIORITY_VALUES,
    SENTIMENT_VALUES,
    SUMMARY_SYSTEM_PROMPT,
    TASK_SYSTEM_PROMPT,
    TYPE_VALUES,
    build_summary_prompt,
    build_task_prompt,
)
from discubot.ai.providers import LLMProvider, create_provider
from discubot.config import settings
from discubot.exceptions import AIAnalysisError
from discubot.models.parsed import (
    AISummary,
    AnalysisResult,
    DetectedTask,
    DiscussionThread,
    TaskDetection,
)
from discubot.utils.retry import RetryConfig, retry_with_backoff

logger = logging.getLogger(__name__)

JSON_OBJECT_PATTERN = re.compile(r"\{[\s\S]*\}")
DUE_DATE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")

# Applied to every model call
LLM_RETRY = RetryConfig(max_attempts=3, base_delay=1.0, max_delay=10.0, timeout=30.0)


def extract_json(text: str) -> dict[str, Any]:
    """Pull the outermost JSON object out of a model reply."""
    match = JSON_OBJECT_PATTERN.search(text or "")
    if not match:
        raise AIAnalysisError("Failed to parse JSON from model response")
    try:
        data = json.loads(match.group(0))
    except json.JSONDecodeError as e:
        raise AIAnalysisError(f"Invalid JSON in model response: {e}") from e
    if not isinstance(data, dict):
        raise AIAnalysisError("Model response is not a JSON object")
    return data


def _choice(value: Any, allowed: list[str]) -> Optional[str]:
    if isinstance(value, str) and value.strip().lower() in allowed:
        return value.strip().lower()
    return None


def _confidence(value: Any) -> Optional[float]:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return max(0.0, min(1.0, float(value)))


def _string_list(value: Any) -> list[str]:
    if not isinstance(value, list):
        return []
    return [str(item).strip() for item in value if str(item).strip()]


def normalize_domain(value: Any, available_domains: Optional[list[str]]) -> Optional[str]:
    """Match a detected domain against the configured ones.

    With configured domains the canonical spelling is returned, and an
    unknown domain becomes None. Without them any non-empty value is kept.
    """
    if not isinstance(value, str) or not value.strip():
        return None
    domain = value.strip()
    if not available_domains:
        return domain
    for candidate in available_domains:
        if candidate.lower() == domain.lower():
            return candidate
    logger.debug(f"Ignoring unknown domain '{domain}' (available: {available_domains})")
    return None


def parse_summary(data: dict[str, Any], available_domains: Optional[list[str]] = None) -> AISummary:
    summary = data.get("summary")
    if not isinstance(summary, str) or not summary.strip():
        raise AIAnalysisError("Model response has no summary")
    return AISummary(
        summary=summary.strip(),
        key_points=_string_list(data.get("keyPoints")),
        sentiment=_choice(data.get("sentiment"), SENTIMENT_VALUES),
        confidence=_confidence(data.get("confidence")),
        domain=normalize_domain(data.get("domain"), available_domains),
    )


def parse_task_detection(
    data: dict[str, Any],
    available_domains: Optional[list[str]] = None,
    max_tasks: int = 5,
) -> TaskDetection:
    """Validate the task detection reply.

    Entries without a title are dropped and the list is capped at
    max_tasks. is_multi_task holds when the model says so or when more
    than one task survives.
    """
    raw_tasks = data.get("tasks") or []
    if not isinstance(raw_tasks, list):
        raise AIAnalysisError("Model response 'tasks' is not a list")

    tasks: list[DetectedTask] = []
    for raw in raw_tasks:
        if not isinstance(raw, dict):
            continue
        title = raw.get("title")
        if not isinstance(title, str) or not title.strip():
            logger.warning("Skipping detected task without a title")
            continue

        due_date = raw.get("dueDate")
        assignee = raw.get("assignee")
        tasks.append(
            DetectedTask(
                title=title.strip(),
                description=str(raw.get("description") or "").strip(),
                action_items=_string_list(raw.get("actionItems")),
                priority=_choice(raw.get("priority"), PRIORITY_VALUES),
                type=_choice(raw.get("type"), TYPE_VALUES),
                assignee=assignee.strip() if isinstance(assignee, str) and assignee.strip() else None,
                due_date=due_date if isinstance(due_date, str) and DUE_DATE_PATTERN.match(due_date) else None,
                tags=_string_list(raw.get("tags")),
                domain=normalize_domain(raw.get("domain"), available_domains),
            )
        )

    if len(tasks) > max_tasks:
        logger.info(f"Truncating {len(tasks)} detected tasks to {max_tasks}")
        tasks = tasks[:max_tasks]

    return TaskDetection(
        is_multi_task=bool(data.get("isMultiTask")) or len(tasks) > 1,
        tasks=tasks,
        confidence=_confidence(data.get("confidence")),
    )


class AIAnalyzer:
    """Summarizes a thread and detects tasks in it.

    Either takes a ready provider or builds one from settings on first use.
    A per-call api_key (a flow's own Anthropic key) gets its own provider.
    """

    def __init__(
        self,
        provider: Optional[LLMProvider] = None,
        cache: Optional[AnalysisCache] = None,
        max_tasks: Optional[int] = None,
        retry_config: Optional[RetryConfig] = None,
    ):
        self._provider = provider
        self._keyed_providers: dict[str, LLMProvider] = {}
        self.cache = cache
        self.max_tasks = max_tasks or settings.ai_max_tasks
        self.retry_config = retry_config or LLM_RETRY

    def _get_provider(self, api_key: Optional[str] = None) -> LLMProvider:
        if api_key:
            if api_key not in self._keyed_providers:
                self._keyed_providers[api_key] = create_provider(
                    "anthropic", api_key, settings.anthropic_model
                )
            return self._keyed_providers[api_key]

        if self._provider is None:
            if settings.ai_provider == "openai":
                key, model = settings.openai_api_key, settings.openai_model
            else:
                key, model = settings.anthropic_api_key, settings.anthropic_model
            if not key:
                raise AIAnalysisError(f"No API key configured for {settings.ai_provider}")
            self._provider = create_provider(settings.ai_provider, key, model)
        return self._provider

    def _complete_json(
        self,
        kind: str,
        provider: LLMProvider,
        thread: DiscussionThread,
        system_prompt: str,
        prompt: str,
        max_tokens: int,
    ) -> dict[str, Any]:
        request_id = llm_logger.log_request(
            kind=kind,
            thread=thread,
            model=provider.model_name,
            prompt=prompt,
            max_tokens=max_tokens,
        )
        try:
            response = retry_with_backoff(
                lambda: provider.complete(
                    system_prompt=system_prompt,
                    user_prompt=prompt,
                    max_tokens=max_tokens,
                    json_output=True,
                ),
                self.retry_config,
            )
        except Exception as e:
            llm_logger.log_error(request_id, e, thread)
            raise AIAnalysisError(f"{kind} request failed: {e}") from e

        llm_logger.log_response(request_id, response)
        return extract_json(response.content)

    def summarize(
        self,
        thread: DiscussionThread,
        source_type: Optional[str] = None,
        custom_prompt: Optional[str] = None,
        available_domains: Optional[list[str]] = None,
        api_key: Optional[str] = None,
    ) -> AISummary:
        prompt = build_summary_prompt(thread, source_type, custom_prompt, available_domains)
        data = self._complete_json(
            "summary",
            self._get_provider(api_key),
            thread,
            SUMMARY_SYSTEM_PROMPT,
            prompt,
            settings.ai_summary_max_tokens,
        )
        return parse_summary(data, available_domains)

    def detect_tasks(
        self,
        thread: DiscussionThread,
        custom_prompt: Optional[str] = None,
        available_domains: Optional[list[str]] = None,
        api_key: Optional[str] = None,
        max_tasks: Optional[int] = None,
    ) -> TaskDetection:
        max_tasks = max_tasks or self.max_tasks
        prompt = build_task_prompt(thread, custom_prompt, available_domains, max_tasks)
        data = self._complete_json(
            "tasks",
            self._get_provider(api_key),
            thread,
            TASK_SYSTEM_PROMPT,
            prompt,
            settings.ai_task_max_tokens,
        )
        detection = parse_task_detection(data, available_domains, max_tasks)

        for index, task in enumerate(detection.tasks, start=1):
            logger.debug(
                f"Task {index}: '{task.title}' assignee={task.assignee} "
                f"priority={task.priority} domain={task.domain} "
                f"action_items={len(task.action_items)}"
            )
        return detection

    def analyze(
        self,
        thread: DiscussionThread,
        source_type: Optional[str] = None,
        custom_summary_prompt: Optional[str] = None,
        custom_task_prompt: Optional[str] = None,
        available_domains: Optional[list[str]] = None,
        api_key: Optional[str] = None,
        max_tasks: Optional[int] = None,
        skip_cache: bool = False,
    ) -> AnalysisResult:
        """Run summary and task detection for a thread.

        Args:
            thread: Thread with mentions already rewritten
            source_type: Platform the thread came from
            custom_summary_prompt: Replaces the default summary instructions
            custom_task_prompt: Extra task detection instructions
            available_domains: Domains tasks may be routed to
            api_key: Anthropic key overriding the configured provider
            max_tasks: Cap on detected tasks
            skip_cache: Bypass the cache for both lookup and store

        Returns:
            AnalysisResult, with cached=True when served from the cache

        Raises:
            AIAnalysisError: If the provider fails or replies with unusable JSON
        """
        use_cache = self.cache is not None and not skip_cache
        cache_options = {
            "source_type": source_type,
            "summary_prompt": custom_summary_prompt,
            "task_prompt": custom_task_prompt,
            "domains": available_domains,
            "max_tasks": max_tasks or self.max_tasks,
        }
        if use_cache:
            cached = self.cache.get(thread, cache_options)
            if cached is not None:
                llm_logger.log_cache_hit(thread)
                logger.debug(f"Cache hit for thread {thread.id}")
                return cached

        start_time = time.time()
        logger.debug(f"Analyzing thread {thread.id}")

        summary = self.summarize(
            thread, source_type, custom_summary_prompt, available_domains, api_key
        )
        task_detection = self.detect_tasks(
            thread, custom_task_prompt, available_domains, api_key, max_tasks
        )

        result = AnalysisResult(
            summary=summary,
            task_detection=task_detection,
            processing_time_ms=int((time.time() - start_time) * 1000),
            cached=False,
        )

        if use_cache:
            self.cache.set(thread, result, cache_options)

        logger.info(
            f"Analyzed thread {thread.id}: {len(task_detection.tasks)} task(s) "
            f"in {result.processing_time_ms}ms"
        )
        return result


def create_analyzer() -> AIAnalyzer:
    """Analyzer configured from settings, with caching when enabled."""
    cache = AnalysisCache(settings.ai_cache_ttl_seconds) if settings.ai_cache_enabled else None
    return AIAnalyzer(cache=cache)
