"""
Notion page-comment adapter.

Thread ids have the form "page_id:discussion_id". Notion has no comment
reactions, so status updates are no-ops.
"""

import logging
import re
from datetime import datetime
from typing import Any, Optional

import httpx

from discubot.adapters.base import AdapterConfig, DiscussionSourceAdapter, ValidationResult
from discubot.config import settings
from discubot.exceptions import AdapterError
from discubot.models.parsed import DiscussionThread, ThreadMessage

logger = logging.getLogger(__name__)

DEFAULT_TRIGGER_KEYWORD = "discubot"
PAGE_CONTENT_MAX_LENGTH = 5000
PAGE_CONTENT_MAX_PAGES = 2

BLOCK_PREFIXES = {
    "heading_1": "# ",
    "heading_2": "## ",
    "heading_3": "### ",
    "bulleted_list_item": "- ",
    "numbered_list_item": "1. ",
    "to_do": "[ ] ",
    "quote": "> ",
}


def extract_plain_text(rich_text: list[dict[str, Any]]) -> str:
    return "".join(part.get("plain_text", "") for part in rich_text or [])


def strip_trigger_keyword(text: str, trigger_keyword: str) -> str:
    """Remove "@keyword", "keyword:" and similar trigger mentions."""
    if not text or not trigger_keyword:
        return text
    pattern = re.compile(rf"@?{re.escape(trigger_keyword)}:?(?:\s+|$)", re.IGNORECASE)
    return pattern.sub("", text).strip()


class NotionAdapter(DiscussionSourceAdapter):
    """Adapter for Notion page comment threads."""

    source_type = "notion"

    def _headers(self, config: AdapterConfig) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {config.api_token}",
            "Notion-Version": settings.notion_api_version,
        }

    def fetch_comment_thread(
        self, block_id: str, discussion_id: str, config: AdapterConfig
    ) -> list[dict[str, Any]]:
        """Fetch every comment of one discussion on a block, oldest first."""
        comments: list[dict[str, Any]] = []
        cursor: Optional[str] = None

        while True:
            params = {"block_id": block_id}
            if cursor:
                params["start_cursor"] = cursor
            response = self._client.get(
                f"{settings.notion_api_base}/comments",
                headers=self._headers(config),
                params=params,
            )
            if not response.is_success:
                raise self._api_error(
                    response, "Notion comments request failed", f"{block_id}:{discussion_id}"
                )
            data = response.json()
            comments.extend(
                c for c in data.get("results", []) if c.get("discussion_id") == discussion_id
            )
            if not data.get("has_more"):
                break
            cursor = data.get("next_cursor")

        comments.sort(key=lambda c: c.get("created_time", ""))
        return comments

    def fetch_page_content(self, block_id: str, config: AdapterConfig) -> str:
        """Plain-text page content used as extra AI context. Empty on any failure."""
        content = ""
        cursor: Optional[str] = None
        try:
            for _ in range(PAGE_CONTENT_MAX_PAGES):
                params = {"start_cursor": cursor} if cursor else None
                response = self._client.get(
                    f"{settings.notion_api_base}/blocks/{block_id}/children",
                    headers=self._headers(config),
                    params=params,
                )
                response.raise_for_status()
                data = response.json()
                for block in data.get("results", []):
                    block_data = block.get(block.get("type", ""), {}) or {}
                    text = extract_plain_text(block_data.get("rich_text", []))
                    if text:
                        content += BLOCK_PREFIXES.get(block["type"], "") + text + "\n"
                    if len(content) >= PAGE_CONTENT_MAX_LENGTH:
                        break
                if len(content) >= PAGE_CONTENT_MAX_LENGTH or not data.get("has_more"):
                    break
                cursor = data.get("next_cursor")
        except Exception as e:
            logger.warning(f"Failed to fetch page content for {block_id}: {e}")
            return ""

        if len(content) > PAGE_CONTENT_MAX_LENGTH:
            truncated = content[:PAGE_CONTENT_MAX_LENGTH]
            last_space = truncated.rfind(" ")
            content = truncated[:last_space] + "..." if last_space > 0 else truncated
        return content.strip()

    def fetch_thread(self, thread_id: str, config: AdapterConfig) -> DiscussionThread:
        page_id, _, discussion_id = thread_id.partition(":")
        if not page_id or not discussion_id:
            raise AdapterError(
                'Invalid thread ID format, expected "page_id:discussion_id"',
                source_type=self.source_type,
                thread_id=thread_id,
            )

        try:
            comments = self.fetch_comment_thread(page_id, discussion_id, config)
        except httpx.RequestError as e:
            raise AdapterError(
                f"Failed to fetch Notion thread: {e}",
                source_type=self.source_type,
                thread_id=thread_id,
                retryable=True,
            ) from e

        if not comments:
            raise AdapterError(
                "No comments found in thread",
                source_type=self.source_type,
                thread_id=thread_id,
                status_code=404,
            )

        keyword = config.source_metadata.get("triggerKeyword") or DEFAULT_TRIGGER_KEYWORD
        messages = [self._convert_comment(c, keyword) for c in comments]

        participants: list[str] = []
        for message in messages:
            if message.author_handle not in participants:
                participants.append(message.author_handle)

        page_content = self.fetch_page_content(page_id, config) if config.api_token else ""

        return DiscussionThread(
            id=discussion_id,
            root_message=messages[0],
            replies=messages[1:],
            participants=participants,
            metadata={
                "pageId": page_id,
                "discussionId": discussion_id,
                "commentCount": len(comments),
                "pageContent": page_content,
            },
        )

    def post_reply(self, thread_id: str, message: str, config: AdapterConfig) -> bool:
        _, _, discussion_id = thread_id.partition(":")
        if not discussion_id:
            logger.warning("No discussionId provided, cannot post reply")
            return False
        try:
            response = self._client.post(
                f"{settings.notion_api_base}/comments",
                headers=self._headers(config),
                json={
                    "discussion_id": discussion_id,
                    "rich_text": [{"type": "text", "text": {"content": message}}],
                },
            )
            if not response.is_success:
                logger.error(f"Failed to post Notion comment: {response.status_code}")
                return False
            return True
        except Exception as e:
            logger.error(f"Failed to post Notion comment: {e}")
            return False

    def update_status(self, thread_id: str, status: str, config: AdapterConfig) -> bool:
        logger.debug("Notion update_status is a no-op (reactions not supported)")
        return True

    def validate_config(self, config: AdapterConfig) -> ValidationResult:
        errors: list[str] = []
        warnings: list[str] = []
        if not config.api_token:
            errors.append("Notion integration token is required")
        elif not config.api_token.startswith(("secret_", "ntn_")):
            warnings.append('Notion token usually starts with "secret_" or "ntn_"')
        return ValidationResult(valid=not errors, errors=errors, warnings=warnings)

    def test_connection(self, config: AdapterConfig) -> bool:
        try:
            response = self._client.get(
                f"{settings.notion_api_base}/users/me", headers=self._headers(config)
            )
            return response.is_success
        except Exception as e:
            logger.warning(f"Notion connection test failed: {e}")
            return False

    def list_users(self, config: AdapterConfig) -> list[dict[str, str]]:
        """Workspace members as {"id", "name"}. Empty on any failure."""
        users: list[dict[str, str]] = []
        cursor: Optional[str] = None
        try:
            while True:
                params = {"start_cursor": cursor} if cursor else None
                response = self._client.get(
                    f"{settings.notion_api_base}/users",
                    headers=self._headers(config),
                    params=params,
                )
                response.raise_for_status()
                data = response.json()
                users.extend(
                    {"id": u["id"], "name": u.get("name") or u["id"]}
                    for u in data.get("results", [])
                    if u.get("id")
                )
                if not data.get("has_more"):
                    break
                cursor = data.get("next_cursor")
        except Exception as e:
            logger.warning(f"Failed to list Notion users: {e}")
            return []
        return users

    def _convert_comment(self, comment: dict[str, Any], keyword: str) -> ThreadMessage:
        created = comment.get("created_time")
        return ThreadMessage(
            id=comment["id"],
            author_handle=(comment.get("created_by") or {}).get("id", ""),
            content=strip_trigger_keyword(
                extract_plain_text(comment.get("rich_text", [])), keyword
            ),
            timestamp=datetime.fromisoformat(created.replace("Z", "+00:00")) if created else None,
        )
