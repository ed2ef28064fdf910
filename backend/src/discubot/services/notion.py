"""
Notion task creation.

Creates one page per detected task in a Notion database. The page title
always goes into the "Name" property; other task fields are written only
when a field mapping names the target property. Everything else (summary,
action items, transcript, metadata) goes into the page body.
"""

import difflib
import logging
import re
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Optional

import httpx

from discubot.config import settings
from discubot.exceptions import NotionAPIError
from discubot.models.parsed import (
    AISummary,
    DetectedTask,
    DiscussionThread,
    NotionTaskResult,
    ThreadMessage,
)
from discubot.utils.retry import RetryConfig, retry_with_backoff

logger = logging.getLogger(__name__)

TEXT_LIMIT = 2000
BATCH_DELAY_SECONDS = 0.2  # Notion allows roughly 3 requests per second

CREATE_RETRY = RetryConfig(max_attempts=3, base_delay=1.0, max_delay=5.0, timeout=15.0)
CONNECTION_RETRY = RetryConfig(max_attempts=2, base_delay=0.5, timeout=10.0)

NOTION_UUID_PATTERN = re.compile(
    r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$", re.IGNORECASE
)
URL_PATTERN = re.compile(r"https?://[^\s<>()]+")

# Task fields that a field mapping may route to database properties
MAPPABLE_FIELDS = ("priority", "type", "assignee", "dueDate", "tags", "domain")
SELECT_TYPES = ("select", "multi_select", "status")


@dataclass
class NotionTaskConfig:
    """Where and how to create tasks for one destination."""

    database_id: str
    api_key: str
    source_type: str
    source_url: str = ""
    field_mapping: dict[str, Any] = field(default_factory=dict)


@dataclass
class SourceMetadata:
    """Identifiers needed to link back to individual source messages."""

    source_type: str
    file_key: Optional[str] = None  # Figma
    channel_id: Optional[str] = None  # Slack
    slack_team_id: Optional[str] = None  # Slack
    page_id: Optional[str] = None  # Notion


def create_notion_config_from_output(
    output: Any,
    source_type: str,
    source_url: str,
) -> NotionTaskConfig:
    """Build a NotionTaskConfig from a FlowOutput.

    Raises:
        ValueError: If the output is not a Notion output or lacks a token
            or database id
    """
    if output.output_type != "notion":
        raise ValueError(
            f"Output {output.id} is not a Notion output (type: {output.output_type})"
        )

    output_config = output.output_config or {}
    if not output_config.get("notionToken"):
        raise ValueError(f"Output {output.id} missing notionToken in output_config")
    if not output_config.get("databaseId"):
        raise ValueError(f"Output {output.id} missing databaseId in output_config")

    return NotionTaskConfig(
        database_id=output_config["databaseId"],
        api_key=output_config["notionToken"],
        source_type=source_type,
        source_url=source_url,
        field_mapping=output_config.get("fieldMapping") or {},
    )


def build_message_url(message_id: str, metadata: Optional[SourceMetadata]) -> Optional[str]:
    """Deep link to a single message, when the platform supports one."""
    if metadata is None:
        return None
    if metadata.source_type == "figma" and metadata.file_key:
        return f"https://www.figma.com/file/{metadata.file_key}#comment-{message_id}"
    if metadata.source_type == "slack" and metadata.channel_id and metadata.slack_team_id:
        return (
            f"https://slack.com/app_redirect?team={metadata.slack_team_id}"
            f"&channel={metadata.channel_id}&message_ts={message_id}"
        )
    # Notion has no comment permalinks; link the page instead
    if metadata.source_type == "notion" and metadata.page_id:
        return f"https://notion.so/{metadata.page_id.replace('-', '')}"
    return None


def transform_value(
    value: Optional[str],
    value_map: Optional[dict[str, str]] = None,
    options: Optional[list[str]] = None,
) -> Optional[str]:
    """Translate an AI field value into a database option name.

    An explicit value map wins (keys are lowercase AI values). Otherwise,
    with known options, the closest option name is picked.
    """
    if not value:
        return None
    if value_map:
        mapped = value_map.get(value.lower())
        if mapped:
            return mapped
    if not options:
        return value

    by_lower = {option.lower(): option for option in options}
    matches = difflib.get_close_matches(value.lower(), list(by_lower), n=1, cutoff=0.3)
    return by_lower[matches[0]] if matches else value


def format_notion_property(value: Any, property_type: str) -> Optional[dict[str, Any]]:
    """Format a value for a Notion database property of the given type."""
    if property_type == "title":
        return {"title": [{"text": {"content": str(value)[:TEXT_LIMIT]}}]}
    if property_type == "number":
        try:
            return {"number": float(value)}
        except (TypeError, ValueError):
            return {"number": 0}
    if property_type == "select":
        return {"select": {"name": str(value)}}
    if property_type == "status":
        return {"status": {"name": str(value)}}
    if property_type == "multi_select":
        values = value if isinstance(value, list) else [value]
        return {"multi_select": [{"name": str(v)} for v in values]}
    if property_type == "date":
        start = value.isoformat() if isinstance(value, datetime) else str(value)
        return {"date": {"start": start}}
    if property_type == "checkbox":
        return {"checkbox": bool(value)}
    if property_type in ("url", "email", "phone_number"):
        return {property_type: str(value)}
    if property_type == "people":
        ids = [v for v in (value if isinstance(value, list) else [value]) if v]
        if not ids:
            return None
        return {"people": [{"object": "user", "id": str(v)} for v in ids]}

    return {"rich_text": [{"text": {"content": str(value)[:TEXT_LIMIT]}}]}


def _resolve_mapping(field_mapping: dict[str, Any], ai_field: str) -> Optional[dict[str, Any]]:
    """Mapping entry for an AI field.

    Accepts {"priority": {"notionProperty", "propertyType", "valueMap"}} and
    the older {"priorityProperty": "Priority"} form, which implies select.
    """
    mapping = field_mapping.get(ai_field)
    if not mapping:
        legacy = field_mapping.get(f"{ai_field}Property")
        if isinstance(legacy, str) and legacy:
            logger.warning(f"Using legacy field mapping format for {ai_field}")
            return {"notionProperty": legacy, "propertyType": "select", "valueMap": {}}
        return None
    if not isinstance(mapping, dict):
        return None

    notion_property = mapping.get("notionProperty")
    # Select menus may store {"value": ..., "name": ...} instead of a string
    if isinstance(notion_property, dict):
        notion_property = notion_property.get("value") or notion_property.get("name")
    if not notion_property:
        return None
    return {
        "notionProperty": notion_property,
        "propertyType": mapping.get("propertyType") or "rich_text",
        "valueMap": mapping.get("valueMap") or {},
    }


def build_task_properties(
    task: DetectedTask,
    field_mapping: Optional[dict[str, Any]] = None,
    user_mappings: Optional[dict[str, str]] = None,
) -> dict[str, Any]:
    """Database properties for a task page.

    Args:
        task: Detected task
        field_mapping: Output field mapping configuration
        user_mappings: Source user id -> Notion user id, for people fields

    Returns:
        Notion properties payload
    """
    properties: dict[str, Any] = {
        "Name": {"title": [{"text": {"content": task.title[:TEXT_LIMIT]}}]}
    }
    if not field_mapping:
        return properties

    values = {
        "priority": task.priority,
        "type": task.type,
        "assignee": task.assignee,
        "dueDate": task.due_date,
        "tags": task.tags or None,
        "domain": task.domain,
    }

    for ai_field in MAPPABLE_FIELDS:
        value = values[ai_field]
        if value is None:
            continue
        mapping = _resolve_mapping(field_mapping, ai_field)
        if mapping is None:
            continue

        notion_property = mapping["notionProperty"]
        property_type = mapping["propertyType"]

        if property_type == "people":
            if isinstance(value, str) and NOTION_UUID_PATTERN.match(value):
                notion_user_id = value
            else:
                notion_user_id = (user_mappings or {}).get(str(value))
            if not notion_user_id:
                logger.warning(f"No user mapping found for assignee '{value}'")
                continue
            formatted = format_notion_property(notion_user_id, "people")
        else:
            if property_type in SELECT_TYPES and isinstance(value, str):
                value = transform_value(value, mapping["valueMap"]) or value
            formatted = format_notion_property(value, property_type)

        if formatted:
            properties[notion_property] = formatted
            logger.debug(f"Mapped {ai_field} to '{notion_property}' ({property_type})")

    return properties


def _text(content: str, link: Optional[str] = None, **annotations: Any) -> dict[str, Any]:
    item: dict[str, Any] = {"type": "text", "text": {"content": content}}
    if link:
        item["text"]["link"] = {"url": link}
    if annotations:
        item["annotations"] = annotations
    return item


def _user_mention(notion_user_id: str) -> dict[str, Any]:
    return {
        "type": "mention",
        "mention": {"type": "user", "user": {"object": "user", "id": notion_user_id}},
    }


def _block(block_type: str, rich_text: list[dict[str, Any]], **extra: Any) -> dict[str, Any]:
    return {
        "object": "block",
        "type": block_type,
        block_type: {"rich_text": rich_text, **extra},
    }


def _divider() -> dict[str, Any]:
    return {"object": "block", "type": "divider", "divider": {}}


def content_to_rich_text(content: str) -> list[dict[str, Any]]:
    """Rich text for message content, with bare URLs turned into links."""
    content = content[:TEXT_LIMIT]
    parts: list[dict[str, Any]] = []
    position = 0
    for match in URL_PATTERN.finditer(content):
        if match.start() > position:
            parts.append(_text(content[position:match.start()]))
        parts.append(_text(match.group(0), link=match.group(0)))
        position = match.end()
    if position < len(content) or not parts:
        parts.append(_text(content[position:]))
    return parts


def _message_blocks(message: ThreadMessage, metadata: Optional[SourceMetadata]) -> list[dict[str, Any]]:
    author = f"@{message.author_name}" if message.author_name else message.author_handle
    url = build_message_url(message.id, metadata)
    header = _text(f"{author}:", link=url, bold=True, color="blue" if url else "default")
    return [
        _block("paragraph", [header]),
        _block("paragraph", content_to_rich_text(message.content or "")),
    ]


def build_task_content(
    task: DetectedTask,
    thread: DiscussionThread,
    summary: AISummary,
    config: NotionTaskConfig,
    user_mentions: Optional[dict[str, str]] = None,
    source_metadata: Optional[SourceMetadata] = None,
) -> list[dict[str, Any]]:
    """Page body blocks for a task."""
    user_mentions = user_mentions or {}
    blocks: list[dict[str, Any]] = []

    if summary.summary:
        blocks.append(
            _block("callout", [_text(f"AI Summary: {summary.summary}")], icon={"emoji": "🤖"})
        )

    if task.action_items:
        blocks.append(_block("heading_3", [_text("📋 This Task Requires")]))
        for item in task.action_items:
            blocks.append(_block("to_do", [_text(item)], checked=False))

    if summary.key_points:
        blocks.append(
            _block(
                "toggle",
                [_text("🔍 Discussion Context", bold=True)],
                children=[_block("bulleted_list_item", [_text(p)]) for p in summary.key_points],
            )
        )

    participants = [p for p in thread.participants if p]
    if participants:
        rich_text = [_text("👥 Participants: ")]
        for index, participant in enumerate(participants):
            notion_id = user_mentions.get(participant)
            rich_text.append(_user_mention(notion_id) if notion_id else _text(f"@{participant}"))
            if index < len(participants) - 1:
                rich_text.append(_text(", "))
        blocks.append(_block("paragraph", rich_text))

    blocks.append(_divider())
    blocks.append(_block("heading_2", [_text("Thread Content")]))
    blocks.append(_block("paragraph", [_text(task.description[:TEXT_LIMIT])]))

    transcript = _message_blocks(thread.root_message, source_metadata)
    for reply in thread.replies:
        transcript.append(_block("paragraph", [_text("—")]))
        transcript.extend(_message_blocks(reply, source_metadata))
    blocks.append(
        _block("toggle", [_text("💬 Full Discussion Thread", bold=True)], children=transcript)
    )

    blocks.append(_divider())
    blocks.append(_block("heading_2", [_text("Metadata")]))

    def metadata_item(label: str, value: str, notion_user_id: Optional[str] = None) -> dict[str, Any]:
        target = _user_mention(notion_user_id) if notion_user_id else _text(value)
        return _block("bulleted_list_item", [_text(f"{label}: "), target])

    author = thread.root_message.author_handle
    blocks.extend(
        [
            metadata_item("Source", config.source_type),
            metadata_item("Thread ID", thread.id),
            metadata_item("Thread Size", f"{len(thread.messages)} messages"),
            metadata_item("Created By", author, user_mentions.get(author)),
            metadata_item("Priority", task.priority or "medium"),
            metadata_item("Sentiment", summary.sentiment or "neutral"),
            metadata_item("Confidence", f"{round((summary.confidence or 0) * 100)}%"),
            metadata_item("Timestamp", datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M UTC")),
        ]
    )
    if task.assignee:
        assignee_id = (
            task.assignee
            if NOTION_UUID_PATTERN.match(task.assignee)
            else user_mentions.get(task.assignee)
        )
        blocks.append(metadata_item("Assignee", task.assignee, assignee_id))
    if task.tags:
        blocks.append(metadata_item("Tags", ", ".join(task.tags)))

    if config.source_url:
        blocks.append(_divider())
        blocks.append(
            _block(
                "paragraph",
                [
                    _text("🔗 "),
                    _text(
                        f"View Discussion in {config.source_type}",
                        link=config.source_url,
                        bold=True,
                        color="blue",
                    ),
                ],
            )
        )

    return blocks


class NotionTaskCreator:
    """Client for creating task pages in Notion databases."""

    def __init__(
        self,
        client: Optional[httpx.Client] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self._client = client or httpx.Client(timeout=settings.http_timeout_seconds)
        self._sleep = sleep

    def close(self) -> None:
        self._client.close()

    def _request(
        self,
        method: str,
        endpoint: str,
        api_key: str,
        body: Optional[dict[str, Any]] = None,
    ) -> dict[str, Any]:
        if not api_key:
            raise NotionAPIError("Notion API key is not configured", status_code=401)

        response = self._client.request(
            method,
            f"{settings.notion_api_base}/{endpoint}",
            headers={
                "Authorization": f"Bearer {api_key}",
                "Notion-Version": settings.notion_api_version,
                "Content-Type": "application/json",
            },
            json=body,
        )
        if not response.is_success:
            try:
                details = response.json()
            except ValueError:
                details = {}
            message = details.get("message") or response.text[:200]
            logger.error(
                f"Notion API {method} {endpoint} failed: {response.status_code} {message}"
            )
            raise NotionAPIError(
                f"Notion API error {response.status_code}: {message}",
                status_code=response.status_code,
                code=details.get("code"),
            )
        return response.json()

    def create_task(
        self,
        task: DetectedTask,
        thread: DiscussionThread,
        summary: AISummary,
        config: NotionTaskConfig,
        user_mentions: Optional[dict[str, str]] = None,
        user_mappings: Optional[dict[str, str]] = None,
        source_metadata: Optional[SourceMetadata] = None,
    ) -> NotionTaskResult:
        """Create one task page.

        Raises:
            NotionAPIError: If Notion rejects the request after retries
        """
        logger.info(f"Creating Notion task '{task.title}' in database {config.database_id}")
        api_key = config.api_key or settings.notion_api_key
        body = {
            "parent": {"database_id": config.database_id},
            "properties": build_task_properties(
                task, config.field_mapping, user_mappings or user_mentions
            ),
            "children": build_task_content(
                task, thread, summary, config, user_mentions, source_metadata
            ),
        }

        start_time = time.time()
        page = retry_with_backoff(
            lambda: self._request("POST", "pages", api_key, body),
            CREATE_RETRY,
            sleep=self._sleep,
        )
        logger.info(
            f"Created Notion task {page['id']} in {(time.time() - start_time) * 1000:.0f}ms"
        )
        return NotionTaskResult(
            id=page["id"],
            url=page.get("url", ""),
            created_at=datetime.now(timezone.utc),
        )

    def create_tasks(
        self,
        tasks: list[DetectedTask],
        thread: DiscussionThread,
        summary: AISummary,
        config: NotionTaskConfig,
        user_mentions: Optional[dict[str, str]] = None,
        user_mappings: Optional[dict[str, str]] = None,
        source_metadata: Optional[SourceMetadata] = None,
    ) -> list[NotionTaskResult]:
        """Create tasks one by one, stopping at the first failure."""
        results: list[NotionTaskResult] = []
        for index, task in enumerate(tasks):
            results.append(
                self.create_task(
                    task, thread, summary, config, user_mentions, user_mappings, source_metadata
                )
            )
            if index < len(tasks) - 1:
                self._sleep(BATCH_DELAY_SECONDS)
        logger.info(f"Created {len(results)} Notion task(s)")
        return results

    def test_connection(self, api_key: str, database_id: str) -> dict[str, Any]:
        """Check that the key can read the database.

        Returns:
            {"connected": True, "details": {...}} or {"connected": False, "error": ...}
        """
        try:
            database = retry_with_backoff(
                lambda: self._request("GET", f"databases/{database_id}", api_key),
                CONNECTION_RETRY,
                sleep=self._sleep,
            )
        except (NotionAPIError, httpx.HTTPError) as e:
            logger.error(f"Notion connection test failed: {e}")
            return {"connected": False, "error": str(e)}

        title_parts = database.get("title") or []
        title = (title_parts[0].get("plain_text") if title_parts else None) or "Untitled Database"
        return {
            "connected": True,
            "details": {
                "database_id": database_id,
                "title": title,
                "url": database.get("url") or f"https://notion.so/{database_id.replace('-', '')}",
            },
        }
