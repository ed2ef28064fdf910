"""
Slack adapter.

Thread ids have the form "channel:thread_ts". Status is shown as an emoji
reaction on the root message.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Optional

import httpx

from discubot.adapters.base import AdapterConfig, DiscussionSourceAdapter, ValidationResult
from discubot.config import settings
from discubot.exceptions import AdapterError
from discubot.models.parsed import DiscussionThread, ThreadMessage

logger = logging.getLogger(__name__)

STATUS_EMOJI = {
    "pending": "eyes",
    "processing": "hourglass_flowing_sand",
    "analyzed": "robot_face",
    "completed": "white_check_mark",
    "failed": "x",
    "retrying": "arrows_counterclockwise",
}

# Slack error codes that mean the desired state already holds
IDEMPOTENT_ERRORS = {"already_reacted", "no_reaction"}
RETRYABLE_ERRORS = {"ratelimited", "internal_error", "service_unavailable"}


def split_thread_id(thread_id: str) -> tuple[str, str]:
    """Split "channel:thread_ts" into its parts."""
    channel, _, thread_ts = thread_id.partition(":")
    return channel, thread_ts


class SlackAdapter(DiscussionSourceAdapter):
    """Adapter for Slack channel threads."""

    source_type = "slack"

    def _call(
        self,
        method: str,
        config: AdapterConfig,
        thread_id: Optional[str] = None,
        params: Optional[dict[str, Any]] = None,
        json: Optional[dict[str, Any]] = None,
    ) -> dict[str, Any]:
        """Call a Slack Web API method and return the decoded body.

        Raises:
            AdapterError: On HTTP failure or an ok=false body
        """
        url = f"{settings.slack_api_base}/{method}"
        headers = {"Authorization": f"Bearer {config.api_token}"}
        if json is not None:
            response = self._client.post(url, headers=headers, json=json)
        else:
            response = self._client.get(url, headers=headers, params=params)

        if not response.is_success:
            raise self._api_error(response, f"Slack {method} failed", thread_id)

        data = response.json()
        if not data.get("ok"):
            error = data.get("error", "unknown_error")
            raise AdapterError(
                f"Slack {method} failed: {error}",
                source_type=self.source_type,
                thread_id=thread_id,
                status_code=response.status_code,
                retryable=error in RETRYABLE_ERRORS,
            )
        return data

    def fetch_thread(self, thread_id: str, config: AdapterConfig) -> DiscussionThread:
        channel, thread_ts = split_thread_id(thread_id)
        if not channel or not thread_ts:
            raise AdapterError(
                'Invalid thread ID format, expected "channel:thread_ts"',
                source_type=self.source_type,
                thread_id=thread_id,
            )

        try:
            data = self._call(
                "conversations.replies",
                config,
                thread_id=thread_id,
                params={"channel": channel, "ts": thread_ts, "limit": 100},
            )
        except httpx.RequestError as e:
            raise AdapterError(
                f"Failed to fetch Slack thread: {e}",
                source_type=self.source_type,
                thread_id=thread_id,
                retryable=True,
            ) from e

        messages = data.get("messages") or []
        if not messages:
            raise AdapterError(
                "No messages found in thread",
                source_type=self.source_type,
                thread_id=thread_id,
                status_code=404,
            )

        converted = [self._convert_message(m) for m in messages]

        participants: list[str] = []
        for message in converted:
            if message.author_handle and message.author_handle not in participants:
                participants.append(message.author_handle)

        return DiscussionThread(
            id=thread_ts,
            root_message=converted[0],
            replies=converted[1:],
            participants=participants,
            metadata={"channelId": channel, "threadTs": thread_ts},
        )

    def post_reply(self, thread_id: str, message: str, config: AdapterConfig) -> bool:
        channel, thread_ts = split_thread_id(thread_id)
        try:
            self._call(
                "chat.postMessage",
                config,
                thread_id=thread_id,
                json={"channel": channel, "thread_ts": thread_ts, "text": message},
            )
            return True
        except Exception as e:
            logger.error(f"Failed to post Slack reply to {thread_id}: {e}")
            return False

    def update_status(self, thread_id: str, status: str, config: AdapterConfig) -> bool:
        emoji = STATUS_EMOJI.get(status)
        if emoji is None:
            logger.warning(f"No Slack reaction for status {status!r}")
            return False
        return self._react("reactions.add", thread_id, emoji, config)

    def remove_reaction(self, thread_id: str, emoji: str, config: AdapterConfig) -> bool:
        return self._react("reactions.remove", thread_id, emoji, config)

    def _react(self, method: str, thread_id: str, emoji: str, config: AdapterConfig) -> bool:
        channel, thread_ts = split_thread_id(thread_id)
        try:
            self._call(
                method,
                config,
                thread_id=thread_id,
                json={"channel": channel, "timestamp": thread_ts, "name": emoji},
            )
            return True
        except AdapterError as e:
            if any(code in str(e) for code in IDEMPOTENT_ERRORS):
                return True
            logger.error(f"Slack {method} failed for {thread_id}: {e}")
            return False
        except Exception as e:
            logger.error(f"Slack {method} failed for {thread_id}: {e}")
            return False

    def validate_config(self, config: AdapterConfig) -> ValidationResult:
        errors: list[str] = []
        warnings: list[str] = []

        if not config.api_token:
            errors.append("Slack bot token is required")
        elif not config.api_token.startswith("xoxb-"):
            warnings.append("Slack token does not look like a bot token (xoxb-)")

        if not config.source_metadata.get("slackTeamId"):
            warnings.append("slackTeamId is not set; webhook routing may fail")

        return ValidationResult(valid=not errors, errors=errors, warnings=warnings)

    def test_connection(self, config: AdapterConfig) -> bool:
        try:
            self._call("auth.test", config, json={})
            return True
        except Exception as e:
            logger.warning(f"Slack connection test failed: {e}")
            return False

    def _convert_message(self, message: dict[str, Any]) -> ThreadMessage:
        ts = message.get("ts", "")
        try:
            timestamp = datetime.fromtimestamp(float(ts), tz=timezone.utc)
        except ValueError:
            timestamp = None
        return ThreadMessage(
            id=ts,
            author_handle=message.get("user") or message.get("bot_id") or "",
            content=message.get("text", ""),
            timestamp=timestamp,
            attachments=message.get("files") or [],
        )
