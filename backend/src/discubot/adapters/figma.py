"""
Figma adapter.

Supported thread id formats:
- "fileKey": most recent root comment in the file
- "fileKey:commentId": a specific comment
- "fileKey:fuzzy:searchText": root comment whose text best matches searchText
"""

import logging
from datetime import datetime
from difflib import SequenceMatcher
from typing import Any, Optional

import httpx

from discubot.adapters.base import AdapterConfig, DiscussionSourceAdapter, ValidationResult
from discubot.config import settings
from discubot.exceptions import AdapterError
from discubot.models.parsed import DiscussionThread, ThreadMessage

logger = logging.getLogger(__name__)

STATUS_EMOJI = {
    "pending": ":eyes:",
    "processing": ":hourglass:",
    "analyzed": ":robot:",
    "completed": ":white_check_mark:",
    "failed": ":x:",
    "retrying": ":arrows_counterclockwise:",
}

FUZZY_MATCH_THRESHOLD = 0.8


def _parse_time(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


def find_comment_by_text(
    search_text: str,
    comments: list[dict[str, Any]],
    threshold: float = FUZZY_MATCH_THRESHOLD,
) -> Optional[dict[str, Any]]:
    """Return the root comment most similar to search_text, if above threshold."""
    needle = " ".join(search_text.lower().split())
    best: Optional[dict[str, Any]] = None
    best_score = 0.0
    for comment in comments:
        if comment.get("parent_id"):
            continue
        haystack = " ".join(comment.get("message", "").lower().split())
        score = SequenceMatcher(None, needle, haystack).ratio()
        if score > best_score:
            best, best_score = comment, score
    if best is not None and best_score >= threshold:
        return best
    return None


class FigmaAdapter(DiscussionSourceAdapter):
    """Adapter for Figma file comments."""

    source_type = "figma"

    def _headers(self, config: AdapterConfig) -> dict[str, str]:
        return {"X-Figma-Token": config.api_token}

    def fetch_thread(self, thread_id: str, config: AdapterConfig) -> DiscussionThread:
        parts = thread_id.split(":")
        file_key = parts[0]
        target_comment_id: Optional[str] = None
        fuzzy_text: Optional[str] = None

        if len(parts) >= 3 and parts[1] == "fuzzy":
            fuzzy_text = ":".join(parts[2:])
        elif len(parts) == 2:
            target_comment_id = parts[1]

        try:
            response = self._client.get(
                f"{settings.figma_api_base}/files/{file_key}/comments",
                headers=self._headers(config),
            )
        except httpx.RequestError as e:
            raise AdapterError(
                f"Failed to fetch Figma thread: {e}",
                source_type=self.source_type,
                thread_id=thread_id,
                retryable=True,
            ) from e

        if not response.is_success:
            raise self._api_error(response, "Figma comments request failed", thread_id)

        comments: list[dict[str, Any]] = response.json().get("comments", [])

        root: Optional[dict[str, Any]]
        if fuzzy_text:
            root = find_comment_by_text(fuzzy_text, comments)
            if root is None:
                logger.warning("Fuzzy match failed, falling back to most recent comment")
                root = self._most_recent_root(comments)
        elif target_comment_id:
            root = next((c for c in comments if c.get("id") == target_comment_id), None)
        else:
            root = self._most_recent_root(comments)

        if root is None:
            raise AdapterError(
                "Comment not found in file",
                source_type=self.source_type,
                thread_id=thread_id,
                status_code=404,
            )

        replies = sorted(
            (c for c in comments if c.get("parent_id") == root["id"]),
            key=lambda c: c.get("created_at", ""),
        )
        root_message = self._convert_comment(root)
        reply_messages = [self._convert_comment(c) for c in replies]

        participants = [root_message.author_handle]
        for reply in reply_messages:
            if reply.author_handle not in participants:
                participants.append(reply.author_handle)

        return DiscussionThread(
            id=root["id"],
            root_message=root_message,
            replies=reply_messages,
            participants=participants,
            metadata={
                "fileKey": file_key,
                "fileName": "",
                "resolved": root.get("resolved_at") is not None,
                "createdAt": root.get("created_at"),
            },
        )

    def post_reply(self, thread_id: str, message: str, config: AdapterConfig) -> bool:
        file_key, _, comment_id = thread_id.partition(":")
        if not comment_id:
            logger.warning("No commentId provided, cannot post reply")
            return False
        try:
            response = self._client.post(
                f"{settings.figma_api_base}/files/{file_key}/comments",
                headers=self._headers(config),
                json={"message": message, "comment_id": comment_id},
            )
            if not response.is_success:
                logger.error(f"Failed to post Figma reply: {response.status_code}")
                return False
            return True
        except Exception as e:
            logger.error(f"Failed to post Figma reply: {e}")
            return False

    def update_status(self, thread_id: str, status: str, config: AdapterConfig) -> bool:
        file_key, _, comment_id = thread_id.partition(":")
        if not comment_id:
            logger.warning("No commentId provided, cannot update status")
            return False
        emoji = STATUS_EMOJI.get(status)
        if emoji is None:
            return False
        try:
            response = self._client.post(
                f"{settings.figma_api_base}/files/{file_key}/comments/{comment_id}/reactions",
                headers=self._headers(config),
                json={"emoji": emoji},
            )
            if not response.is_success:
                logger.error(f"Failed to update Figma status: {response.status_code}")
                return False
            return True
        except Exception as e:
            logger.error(f"Failed to update Figma status: {e}")
            return False

    def remove_reaction(self, thread_id: str, emoji: str, config: AdapterConfig) -> bool:
        file_key, _, comment_id = thread_id.partition(":")
        if not comment_id:
            logger.warning("No commentId provided, cannot remove reaction")
            return False
        figma_emoji = emoji if emoji.startswith(":") else f":{emoji}:"
        try:
            response = self._client.delete(
                f"{settings.figma_api_base}/files/{file_key}/comments/{comment_id}/reactions",
                headers=self._headers(config),
                params={"emoji": figma_emoji},
            )
            # Missing reaction means there is nothing to remove
            if response.status_code == 404:
                return True
            if not response.is_success:
                logger.error(f"Failed to remove Figma reaction: {response.status_code}")
                return False
            return True
        except Exception as e:
            logger.error(f"Failed to remove Figma reaction: {e}")
            return False

    def validate_config(self, config: AdapterConfig) -> ValidationResult:
        errors: list[str] = []
        warnings: list[str] = []
        if not config.api_token or not config.api_token.strip():
            errors.append("Figma API token is required")
        elif len(config.api_token) < 20:
            warnings.append("Figma API token appears to be too short")
        return ValidationResult(valid=not errors, errors=errors, warnings=warnings)

    def test_connection(self, config: AdapterConfig) -> bool:
        try:
            response = self._client.get(
                f"{settings.figma_api_base}/me", headers=self._headers(config)
            )
            return response.is_success
        except Exception as e:
            logger.warning(f"Figma connection test failed: {e}")
            return False

    def _most_recent_root(self, comments: list[dict[str, Any]]) -> Optional[dict[str, Any]]:
        roots = [c for c in comments if not c.get("parent_id")]
        if not roots:
            return None
        return max(roots, key=lambda c: c.get("created_at", ""))

    def _convert_comment(self, comment: dict[str, Any]) -> ThreadMessage:
        # Stable user id for mapping lookups; handle is only the display name
        user = comment.get("user") or {}
        return ThreadMessage(
            id=comment["id"],
            author_handle=user.get("id", ""),
            author_name=user.get("handle"),
            content=comment.get("message", ""),
            timestamp=_parse_time(comment.get("created_at")),
        )
