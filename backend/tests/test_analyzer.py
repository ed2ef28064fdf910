"""
Tests for thread analysis.
"""

import json
from unittest.mock import patch

import pytest

from discubot.ai.analyzer import (
    AIAnalyzer,
    extract_json,
    normalize_domain,
    parse_summary,
    parse_task_detection,
)
from discubot.ai.cache import AnalysisCache
from discubot.ai.prompts import build_summary_prompt, build_task_prompt, format_thread_messages
from discubot.ai.providers import LLMProvider, LLMResponse
from discubot.exceptions import AIAnalysisError
from discubot.utils.retry import RetryConfig

SUMMARY_REPLY = {
    "summary": "The login button is broken on mobile.",
    "keyPoints": ["Reproducible on iOS", "  "],
    "sentiment": "Negative",
    "confidence": 1.4,
    "domain": "Frontend",
}

TASK_REPLY = {
    "isMultiTask": False,
    "tasks": [
        {
            "title": "Fix mobile login button",
            "description": "Click handler never fires on iOS",
            "actionItems": ["Reproduce", "Fix"],
            "priority": "HIGH",
            "type": "bug",
            "assignee": "Alice Smith",
            "dueDate": "next week",
            "tags": ["mobile"],
            "domain": "frontend",
        }
    ],
    "confidence": 0.8,
}


class FakeProvider(LLMProvider):
    """Provider returning queued replies and recording prompts."""

    def __init__(self, replies):
        self.replies = list(replies)
        self.prompts = []

    @property
    def provider_name(self) -> str:
        return "fake"

    @property
    def model_name(self) -> str:
        return "fake-model"

    def complete(
        self,
        system_prompt,
        user_prompt,
        max_tokens=1024,
        temperature=0.3,
        json_output=False,
    ):
        self.prompts.append(user_prompt)
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        content = reply if isinstance(reply, str) else json.dumps(reply)
        return LLMResponse(
            content=content,
            prompt_tokens=10,
            completion_tokens=20,
            finish_reason="stop",
            model="fake-model",
            duration_ms=1.0,
        )


def make_analyzer(replies, cache=None):
    return AIAnalyzer(
        provider=FakeProvider(replies),
        cache=cache,
        retry_config=RetryConfig(max_attempts=1),
    )


class TestExtractJson:
    def test_bare_object(self):
        assert extract_json('{"a": 1}') == {"a": 1}

    def test_object_inside_prose(self):
        assert extract_json('Here you go:\n```json\n{"a": {"b": 2}}\n```') == {"a": {"b": 2}}

    def test_no_object(self):
        with pytest.raises(AIAnalysisError):
            extract_json("no json here")

    def test_invalid_json(self):
        with pytest.raises(AIAnalysisError, match="Invalid JSON"):
            extract_json("{not: valid}")


class TestParsing:
    """Tests for validating model replies."""

    def test_parse_summary_normalizes_fields(self):
        summary = parse_summary(SUMMARY_REPLY, ["frontend", "backend"])

        assert summary.summary == "The login button is broken on mobile."
        assert summary.key_points == ["Reproducible on iOS"]
        assert summary.sentiment == "negative"
        assert summary.confidence == 1.0
        assert summary.domain == "frontend"

    def test_parse_summary_requires_summary(self):
        with pytest.raises(AIAnalysisError):
            parse_summary({"keyPoints": []})

    def test_parse_task_detection(self):
        detection = parse_task_detection(TASK_REPLY, ["frontend"])

        task = detection.tasks[0]
        assert not detection.is_multi_task
        assert task.priority == "high"
        assert task.assignee == "Alice Smith"
        assert task.due_date is None
        assert task.domain == "frontend"
        assert detection.confidence == 0.8

    def test_tasks_without_title_dropped(self):
        detection = parse_task_detection({"tasks": [{"description": "no title"}, "junk"]})

        assert detection.tasks == []

    def test_task_cap(self):
        data = {"tasks": [{"title": f"Task {i}"} for i in range(8)]}

        detection = parse_task_detection(data, max_tasks=3)

        assert [t.title for t in detection.tasks] == ["Task 0", "Task 1", "Task 2"]
        assert detection.is_multi_task

    def test_tasks_not_a_list(self):
        with pytest.raises(AIAnalysisError):
            parse_task_detection({"tasks": "Fix it"})

    def test_normalize_domain(self):
        assert normalize_domain("DESIGN", ["design", "backend"]) == "design"
        assert normalize_domain("marketing", ["design", "backend"]) is None
        assert normalize_domain("marketing", None) == "marketing"
        assert normalize_domain("", None) is None
        assert normalize_domain(None, ["design"]) is None


class TestPrompts:
    def test_thread_formatting_uses_author_names(self, sample_thread):
        sample_thread.root_message.author_name = "Alice Smith"

        text = format_thread_messages(sample_thread)

        assert text.startswith("Root message by Alice Smith:")
        assert "Reply by U2:\n<@U1> I can reproduce on iOS" in text

    def test_summary_prompt_lists_domains(self, sample_thread):
        prompt = build_summary_prompt(sample_thread, "slack", None, ["frontend", "backend"])

        assert "from slack" in prompt
        assert "Available domains: frontend, backend" in prompt

    def test_custom_summary_prompt_keeps_format(self, sample_thread):
        prompt = build_summary_prompt(sample_thread, "figma", "Focus on design debt")

        assert prompt.startswith("Focus on design debt")
        assert '"summary"' in prompt

    def test_task_prompt(self, sample_thread):
        prompt = build_task_prompt(sample_thread, "Prefer small tasks", None, max_tasks=3)

        assert "<custom_instructions>\nPrefer small tasks" in prompt
        assert "Extract at most 3 tasks" in prompt


class TestAIAnalyzer:
    """Tests for AIAnalyzer.analyze."""

    def test_analyze(self, sample_thread):
        analyzer = make_analyzer([SUMMARY_REPLY, TASK_REPLY])

        result = analyzer.analyze(
            sample_thread, source_type="slack", available_domains=["frontend"]
        )

        assert result.summary.domain == "frontend"
        assert [t.title for t in result.task_detection.tasks] == ["Fix mobile login button"]
        assert not result.cached
        assert len(analyzer._provider.prompts) == 2

    def test_provider_failure_raises_analysis_error(self, sample_thread):
        analyzer = make_analyzer([RuntimeError("overloaded")])

        with pytest.raises(AIAnalysisError, match="overloaded"):
            analyzer.analyze(sample_thread)

    def test_unparseable_reply(self, sample_thread):
        analyzer = make_analyzer(["I cannot help with that"])

        with pytest.raises(AIAnalysisError):
            analyzer.analyze(sample_thread)

    def test_cache_hit_skips_provider(self, sample_thread):
        analyzer = make_analyzer([SUMMARY_REPLY, TASK_REPLY], cache=AnalysisCache())

        first = analyzer.analyze(sample_thread)
        second = analyzer.analyze(sample_thread)

        assert not first.cached
        assert second.cached
        assert second.summary == first.summary
        assert len(analyzer._provider.prompts) == 2

    def test_skip_cache(self, sample_thread):
        replies = [SUMMARY_REPLY, TASK_REPLY, SUMMARY_REPLY, TASK_REPLY]
        analyzer = make_analyzer(replies, cache=AnalysisCache())

        analyzer.analyze(sample_thread)
        result = analyzer.analyze(sample_thread, skip_cache=True)

        assert not result.cached
        assert len(analyzer._provider.prompts) == 4

    def test_changed_domains_miss_cache(self, sample_thread):
        replies = [SUMMARY_REPLY, TASK_REPLY, SUMMARY_REPLY, TASK_REPLY]
        analyzer = make_analyzer(replies, cache=AnalysisCache())

        analyzer.analyze(sample_thread, available_domains=["backend"])
        result = analyzer.analyze(sample_thread, available_domains=["backend", "design"])

        assert not result.cached
        assert len(analyzer._provider.prompts) == 4

    def test_per_call_api_key_gets_own_provider(self, sample_thread):
        keyed = FakeProvider([SUMMARY_REPLY, TASK_REPLY])
        analyzer = make_analyzer([])

        with patch("discubot.ai.analyzer.create_provider", return_value=keyed) as factory:
            analyzer.analyze(sample_thread, api_key="sk-ant-flow")

        assert factory.call_args.args[:2] == ("anthropic", "sk-ant-flow")
        assert len(keyed.prompts) == 2

    def test_missing_configured_key(self, sample_thread, monkeypatch):
        from discubot.config import settings

        monkeypatch.setattr(settings, "ai_provider", "anthropic")
        monkeypatch.setattr(settings, "anthropic_api_key", "")
        analyzer = AIAnalyzer(retry_config=RetryConfig(max_attempts=1))

        with pytest.raises(AIAnalysisError, match="No API key"):
            analyzer.analyze(sample_thread)
