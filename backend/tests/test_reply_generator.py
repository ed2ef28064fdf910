"""
Tests for reply message generation.
"""

from datetime import datetime
from unittest.mock import Mock, patch

import pytest

from discubot.models.parsed import NotionTaskResult
from discubot.services.reply_generator import (
    PERSONALITY_PRESETS,
    extract_custom_prompt,
    generate_bootstrap_message,
    generate_reply_message,
    is_custom_prompt,
)


def tasks(*urls):
    return [NotionTaskResult(id=f"p{i}", url=url, created_at=datetime(2024, 1, 1))
            for i, url in enumerate(urls)]


class TestPresetReplies:
    """Tests for the built-in personalities."""

    def test_professional_defaults(self):
        assert generate_reply_message([]) == "✅ Discussion processed (no tasks created)"
        assert generate_reply_message(tasks("https://n/1")) == (
            "✅ Task created in Notion\n🔗 https://n/1"
        )

    def test_multiple_tasks_are_numbered(self):
        message = generate_reply_message(tasks("https://n/1", "https://n/2"), "professional")

        assert message == "✅ Created 2 tasks in Notion:\n1. https://n/1\n2. https://n/2"

    @pytest.mark.parametrize("personality", sorted(PERSONALITY_PRESETS))
    def test_every_preset_includes_url(self, personality):
        assert "https://n/1" in generate_reply_message(tasks("https://n/1"), personality)

    def test_icon_prefix(self):
        assert generate_reply_message([], "concise", icon="🤖") == "🤖 ✓ Noted"

    def test_icon_not_doubled(self):
        message = generate_reply_message([], "professional", icon="✅")

        assert message == "✅ Discussion processed (no tasks created)"

    def test_unknown_personality_falls_back(self):
        assert generate_reply_message([], "sarcastic") == (
            "✅ Discussion processed (no tasks created)"
        )


class TestCustomReplies:
    def test_prompt_parsing(self):
        assert is_custom_prompt("custom: talk like a chef")
        assert not is_custom_prompt("pirate")
        assert extract_custom_prompt("custom:  talk like a chef ") == "talk like a chef"

    def test_custom_without_key_falls_back(self):
        message = generate_reply_message(tasks("https://n/1"), "custom:be a chef")

        assert message == "✅ Task created in Notion\n🔗 https://n/1"

    def test_custom_uses_model(self):
        provider = Mock()
        provider.complete.return_value = Mock(content="  Order up! https://n/1  ")

        with patch(
            "discubot.services.reply_generator.create_provider", return_value=provider
        ) as factory:
            message = generate_reply_message(
                tasks("https://n/1"), "custom:be a chef", api_key="sk-ant-test"
            )

        assert message == "Order up! https://n/1"
        assert factory.call_args.args[:2] == ("anthropic", "sk-ant-test")
        prompt = provider.complete.call_args.kwargs["user_prompt"]
        assert "be a chef" in prompt
        assert "One task was created: https://n/1" in prompt

    def test_custom_failure_falls_back(self):
        provider = Mock()
        provider.complete.side_effect = RuntimeError("overloaded")

        with patch(
            "discubot.services.reply_generator.create_provider", return_value=provider
        ), patch("discubot.utils.retry.time.sleep"):
            message = generate_reply_message([], "custom:be a chef", api_key="sk-ant-test")

        assert message == "✅ Discussion processed (no tasks created)"
        assert provider.complete.call_count == 2


class TestBootstrapMessages:
    def test_professional(self):
        assert generate_bootstrap_message(2) == "Found 2 users. Map them in your dashboard."
        assert generate_bootstrap_message(1) == "Found 1 user. Map them in your dashboard."
        assert generate_bootstrap_message(0).startswith("Bootstrap comment processed.")

    def test_presets_and_icon(self):
        assert generate_bootstrap_message(3, "concise") == "3 users found"
        assert generate_bootstrap_message(0, "robot", icon="🤖").startswith(
            "🤖 USER_SCAN: COMPLETE. ENTITIES_FOUND: 0."
        )

    def test_custom_without_key_falls_back(self):
        message = generate_bootstrap_message(2, "custom:be a chef")

        assert message == "Found 2 users. Map them in your dashboard."
