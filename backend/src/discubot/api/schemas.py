"""
API schemas for Discubot.

Pydantic models for request/response validation.
"""

from datetime import datetime
from typing import Any, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from discubot.models.parsed import ParsedDiscussion, ProcessingOptions, ProcessingResult

# ===== Requests =====


class ProcessingOptionsRequest(BaseModel):
    """Per-call processing switches."""

    skip_ai: bool = False
    skip_notion: bool = False


class ProcessDiscussionRequest(BaseModel):
    """A parsed discussion as produced by a webhook parser."""

    source_type: str
    source_thread_id: str
    source_url: str
    team_id: str  # Source-side identifier (Slack team id, email slug, ...)
    author_handle: str
    title: str
    content: str
    participants: list[str] = Field(default_factory=list)
    timestamp: Optional[datetime] = None
    metadata: dict[str, Any] = Field(default_factory=dict)
    options: ProcessingOptionsRequest = Field(default_factory=ProcessingOptionsRequest)

    def to_parsed(self) -> ParsedDiscussion:
        return ParsedDiscussion(
            source_type=self.source_type,
            source_thread_id=self.source_thread_id,
            source_url=self.source_url,
            team_id=self.team_id,
            author_handle=self.author_handle,
            title=self.title,
            content=self.content,
            participants=tuple(self.participants),
            timestamp=self.timestamp,
            metadata=dict(self.metadata),
        )

    def to_options(self) -> ProcessingOptions:
        return ProcessingOptions(
            skip_ai=self.options.skip_ai, skip_notion=self.options.skip_notion
        )


# ===== Responses =====


class NotionTaskResponse(BaseModel):
    id: str
    url: str
    created_at: datetime


class ProcessingResultResponse(BaseModel):
    """Outcome of processing one discussion."""

    discussion_id: Optional[str] = None
    job_id: Optional[str] = None
    summary: Optional[str] = None
    key_points: list[str] = Field(default_factory=list)
    tasks: list[dict[str, Any]] = Field(default_factory=list)
    notion_tasks: list[NotionTaskResponse] = Field(default_factory=list)
    processing_time_ms: int = 0
    cached: bool = False
    is_bootstrap: bool = False

    @classmethod
    def from_result(cls, result: ProcessingResult) -> "ProcessingResultResponse":
        analysis = result.ai_analysis
        return cls(
            discussion_id=result.discussion_id,
            job_id=result.job_id,
            summary=analysis.summary.summary if analysis else None,
            key_points=list(analysis.summary.key_points) if analysis else [],
            tasks=(
                [task.to_dict() for task in analysis.task_detection.tasks]
                if analysis
                else []
            ),
            notion_tasks=[
                NotionTaskResponse(id=t.id, url=t.url, created_at=t.created_at)
                for t in result.notion_tasks
            ],
            processing_time_ms=result.processing_time_ms,
            cached=result.cached,
            is_bootstrap=result.is_bootstrap,
        )


class TaskResponse(BaseModel):
    """A Notion task created for a discussion."""

    id: UUID
    notion_page_id: str
    notion_page_url: str
    title: str
    description: Optional[str] = None
    status: str
    priority: Optional[str] = None
    assignee: Optional[str] = None
    is_multi_task_child: bool = False
    task_index: Optional[int] = None

    class Config:
        from_attributes = True


class SyncJobResponse(BaseModel):
    """One processing attempt."""

    id: UUID
    status: str
    stage: str
    attempts: int
    error: Optional[str] = None
    started_at: datetime
    completed_at: Optional[datetime] = None
    processing_time_ms: Optional[int] = None
    task_ids: list[str] = Field(default_factory=list)

    class Config:
        from_attributes = True


class DiscussionResponse(BaseModel):
    """A stored discussion with its tasks and jobs."""

    id: UUID
    team_id: str
    source_type: str
    source_thread_id: str
    source_url: str
    title: str
    author_handle: str
    participants: list[str] = Field(default_factory=list)
    status: str
    total_messages: int = 0
    ai_summary: Optional[str] = None
    ai_key_points: list[str] = Field(default_factory=list)
    is_multi_task: bool = False
    notion_task_ids: list[str] = Field(default_factory=list)
    extra_metadata: dict[str, Any] = Field(default_factory=dict)
    processed_at: Optional[datetime] = None
    created_at: datetime
    tasks: list[TaskResponse] = Field(default_factory=list)
    jobs: list[SyncJobResponse] = Field(default_factory=list)

    class Config:
        from_attributes = True
