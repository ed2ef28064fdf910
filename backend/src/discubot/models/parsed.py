"""
In-flight discussion data models.

Plain dataclasses describing a discussion while it moves through the
pipeline, before results are persisted to the database.
"""

from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Any, Optional

SOURCE_TYPES = ("slack", "figma", "notion")

DISCUSSION_STATUSES = (
    "pending",
    "processing",
    "analyzed",
    "completed",
    "failed",
    "retrying",
)


@dataclass(frozen=True)
class ParsedDiscussion:
    """A discussion as produced by a webhook parser. Never mutated."""

    source_type: str
    source_thread_id: str
    source_url: str
    team_id: str  # Source-side workspace identifier, not the internal team
    author_handle: str
    title: str
    content: str
    participants: tuple[str, ...] = ()
    timestamp: Optional[datetime] = None
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSONB storage."""
        data = asdict(self)
        data["participants"] = list(self.participants)
        data["timestamp"] = self.timestamp.isoformat() if self.timestamp else None
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ParsedDiscussion":
        timestamp = data.get("timestamp")
        return cls(
            source_type=data.get("source_type", ""),
            source_thread_id=data.get("source_thread_id", ""),
            source_url=data.get("source_url", ""),
            team_id=data.get("team_id", ""),
            author_handle=data.get("author_handle", ""),
            title=data.get("title", ""),
            content=data.get("content", ""),
            participants=tuple(data.get("participants") or ()),
            timestamp=datetime.fromisoformat(timestamp) if timestamp else None,
            metadata=dict(data.get("metadata") or {}),
        )


@dataclass
class ThreadMessage:
    """A single message (root or reply) in a discussion thread."""

    id: str
    author_handle: str
    content: str
    timestamp: Optional[datetime] = None
    author_name: Optional[str] = None
    attachments: list[dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "authorHandle": self.author_handle,
            "authorName": self.author_name,
            "content": self.content,
            "timestamp": self.timestamp.isoformat() if self.timestamp else None,
            "attachments": self.attachments,
        }


@dataclass
class DiscussionThread:
    """Root message plus replies and participants for one discussion."""

    id: str
    root_message: ThreadMessage
    replies: list[ThreadMessage] = field(default_factory=list)
    participants: list[str] = field(default_factory=list)
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def messages(self) -> list[ThreadMessage]:
        return [self.root_message, *self.replies]

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "rootMessage": self.root_message.to_dict(),
            "replies": [reply.to_dict() for reply in self.replies],
            "participants": list(self.participants),
            "metadata": self.metadata,
        }


@dataclass
class AISummary:
    """Summary of a discussion produced by the analyzer."""

    summary: str
    key_points: list[str] = field(default_factory=list)
    sentiment: Optional[str] = None  # 'positive', 'neutral', 'negative'
    confidence: Optional[float] = None
    domain: Optional[str] = None


@dataclass
class DetectedTask:
    """An actionable task extracted from a discussion."""

    title: str
    description: str
    action_items: list[str] = field(default_factory=list)
    priority: Optional[str] = None  # 'low', 'medium', 'high', 'urgent'
    type: Optional[str] = None  # 'bug', 'feature', 'question', 'improvement'
    assignee: Optional[str] = None
    due_date: Optional[str] = None
    tags: list[str] = field(default_factory=list)
    domain: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "title": self.title,
            "description": self.description,
            "actionItems": self.action_items,
            "priority": self.priority,
            "type": self.type,
            "assignee": self.assignee,
            "dueDate": self.due_date,
            "tags": self.tags,
            "domain": self.domain,
        }


@dataclass
class TaskDetection:
    """All tasks detected in a discussion."""

    is_multi_task: bool
    tasks: list[DetectedTask] = field(default_factory=list)
    confidence: Optional[float] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "isMultiTask": self.is_multi_task,
            "tasks": [task.to_dict() for task in self.tasks],
            "confidence": self.confidence,
        }


@dataclass
class AnalysisResult:
    """Combined analyzer output for one thread."""

    summary: AISummary
    task_detection: TaskDetection
    processing_time_ms: int = 0
    cached: bool = False


@dataclass
class NotionTaskResult:
    """A page created in a Notion task database."""

    id: str
    url: str
    created_at: datetime


@dataclass
class ProcessingOptions:
    """Per-call switches for the discussion processor."""

    skip_ai: bool = False
    skip_notion: bool = False
    thread: Optional[DiscussionThread] = None  # Pre-built thread (tests)


@dataclass
class ProcessingResult:
    """Outcome of processing one discussion."""

    discussion_id: Optional[str]
    thread: Optional[DiscussionThread]
    ai_analysis: Optional[AnalysisResult]
    notion_tasks: list[NotionTaskResult] = field(default_factory=list)
    processing_time_ms: int = 0
    job_id: Optional[str] = None
    cached: bool = False
    is_bootstrap: bool = False

    @property
    def success(self) -> bool:
        return self.discussion_id is not None
