"""
SQLAlchemy database models for Discubot.

These models represent flows (routing configuration), the discussions
being processed, their sync jobs, the Notion tasks created for them and
the learned user mappings between platforms.
"""

import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import (
    Boolean,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship
from sqlalchemy.sql import func


class Base(DeclarativeBase):
    """Base class for all database models."""

    pass


class TeamScopedMixin:
    """Tenant scope plus owner/creator/updater audit columns."""

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    team_id: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    owner: Mapped[str] = mapped_column(String(255), nullable=False, default="system")
    created_by: Mapped[str] = mapped_column(
        String(255), nullable=False, default="system"
    )
    updated_by: Mapped[str] = mapped_column(
        String(255), nullable=False, default="system"
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )


class Flow(TeamScopedMixin, Base):
    """A team's routing configuration binding inputs to outputs."""

    __tablename__ = "flows"

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    available_domains: Mapped[list] = mapped_column(
        JSONB, nullable=False, default=list
    )  # e.g. ["frontend", "backend", "design"]
    ai_enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    anthropic_api_key: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    ai_summary_prompt: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    ai_task_prompt: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    reply_personality: Mapped[Optional[str]] = mapped_column(
        String(1000), nullable=True
    )  # Preset key or 'custom:<prompt>'
    personality_icon: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    inputs: Mapped[list["FlowInput"]] = relationship(back_populates="flow")
    outputs: Mapped[list["FlowOutput"]] = relationship(back_populates="flow")

    @property
    def api_key_hint(self) -> Optional[str]:
        """Redacted form of the API key, safe to display."""
        if not self.anthropic_api_key:
            return None
        return f"...{self.anthropic_api_key[-4:]}"

    def __repr__(self) -> str:
        return f"<Flow(id={self.id}, name={self.name!r}, active={self.active})>"


class FlowInput(TeamScopedMixin, Base):
    """One connected source (Slack workspace, Figma inbox, Notion page) of a flow."""

    __tablename__ = "flow_inputs"

    flow_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("flows.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    source_type: Mapped[str] = mapped_column(
        String(50), nullable=False, index=True
    )  # 'slack', 'figma', 'notion'
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    api_token: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    webhook_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    webhook_secret: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    email_address: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    email_slug: Mapped[Optional[str]] = mapped_column(
        String(255), nullable=True, index=True
    )
    source_metadata: Mapped[dict] = mapped_column(
        JSONB, nullable=False, default=dict
    )  # {slackTeamId, notionWorkspaceId, figmaOrgId, botHandle, notionToken, ...}
    active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    flow: Mapped["Flow"] = relationship(back_populates="inputs")

    def __repr__(self) -> str:
        return (
            f"<FlowInput(id={self.id}, source_type={self.source_type!r}, "
            f"name={self.name!r})>"
        )


class FlowOutput(TeamScopedMixin, Base):
    """One destination task database of a flow."""

    __tablename__ = "flow_outputs"

    flow_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("flows.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    output_type: Mapped[str] = mapped_column(
        String(50), nullable=False, default="notion"
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    domain_filter: Mapped[Optional[list]] = mapped_column(
        JSONB, nullable=True
    )  # None or [] accepts every domain
    is_default: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    output_config: Mapped[dict] = mapped_column(
        JSONB, nullable=False, default=dict
    )  # {notionToken, databaseId, fieldMapping}
    active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    flow: Mapped["Flow"] = relationship(back_populates="outputs")

    def __repr__(self) -> str:
        return (
            f"<FlowOutput(id={self.id}, output_type={self.output_type!r}, "
            f"name={self.name!r})>"
        )


class SourceConfig(TeamScopedMixin, Base):
    """Legacy single-source, single-database configuration."""

    __tablename__ = "source_configs"

    source_type: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    api_token: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    notion_token: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    notion_database_id: Mapped[Optional[str]] = mapped_column(
        String(255), nullable=True
    )
    anthropic_api_key: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    ai_enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    auto_sync: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    email_slug: Mapped[Optional[str]] = mapped_column(
        String(255), nullable=True, index=True
    )
    source_metadata: Mapped[dict] = mapped_column(JSONB, nullable=False, default=dict)
    ai_summary_prompt: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    ai_task_prompt: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    notion_field_mapping: Mapped[Optional[dict]] = mapped_column(JSONB, nullable=True)
    active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    def __repr__(self) -> str:
        return (
            f"<SourceConfig(id={self.id}, source_type={self.source_type!r}, "
            f"name={self.name!r})>"
        )


class Discussion(TeamScopedMixin, Base):
    """A source thread accepted for processing."""

    __tablename__ = "discussions"

    source_type: Mapped[str] = mapped_column(String(50), nullable=False)
    source_thread_id: Mapped[str] = mapped_column(
        String(500), nullable=False, index=True
    )
    source_url: Mapped[str] = mapped_column(Text, nullable=False)
    source_config_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), nullable=True
    )  # Flow input id or legacy config id
    title: Mapped[str] = mapped_column(String(500), nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    author_handle: Mapped[str] = mapped_column(String(255), nullable=False)
    participants: Mapped[list] = mapped_column(JSONB, nullable=False, default=list)

    status: Mapped[str] = mapped_column(
        String(50), nullable=False, default="pending", index=True
    )  # pending, processing, analyzed, completed, failed, retrying
    thread_data: Mapped[Optional[dict]] = mapped_column(JSONB, nullable=True)
    total_messages: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    ai_summary: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    ai_key_points: Mapped[list] = mapped_column(JSONB, nullable=False, default=list)
    ai_tasks: Mapped[Optional[dict]] = mapped_column(JSONB, nullable=True)
    is_multi_task: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False
    )
    notion_task_ids: Mapped[list] = mapped_column(JSONB, nullable=False, default=list)
    sync_job_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), nullable=True
    )  # Latest attempt; not a FK to avoid a cycle with sync_jobs
    raw_payload: Mapped[dict] = mapped_column(JSONB, nullable=False, default=dict)
    extra_metadata: Mapped[dict] = mapped_column(JSONB, nullable=False, default=dict)
    processed_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    __table_args__ = (
        Index("ix_discussions_team_thread", "team_id", "source_thread_id"),
    )

    def __repr__(self) -> str:
        return (
            f"<Discussion(id={self.id}, source_thread_id={self.source_thread_id!r}, "
            f"status={self.status!r})>"
        )


class SyncJob(TeamScopedMixin, Base):
    """One processing attempt for a discussion."""

    __tablename__ = "sync_jobs"

    discussion_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("discussions.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    source_config_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), nullable=True
    )
    status: Mapped[str] = mapped_column(
        String(50), nullable=False, default="pending", index=True
    )  # pending, processing, completed, failed
    stage: Mapped[str] = mapped_column(
        String(50), nullable=False, default="ingestion"
    )  # ingestion, thread_building, ai_analysis, task_creation, notification
    attempts: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    max_attempts: Mapped[int] = mapped_column(Integer, nullable=False, default=3)
    error: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    error_stack: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    started_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    completed_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    processing_time_ms: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    task_ids: Mapped[list] = mapped_column(JSONB, nullable=False, default=list)
    extra_metadata: Mapped[dict] = mapped_column(JSONB, nullable=False, default=dict)

    def __repr__(self) -> str:
        return (
            f"<SyncJob(id={self.id}, stage={self.stage!r}, status={self.status!r})>"
        )


class Task(TeamScopedMixin, Base):
    """A Notion page created for a discussion."""

    __tablename__ = "tasks"

    discussion_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("discussions.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    sync_job_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("sync_jobs.id", ondelete="SET NULL"),
        nullable=True,
    )
    notion_page_id: Mapped[str] = mapped_column(String(255), nullable=False)
    notion_page_url: Mapped[str] = mapped_column(Text, nullable=False)
    title: Mapped[str] = mapped_column(String(500), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(String(50), nullable=False, default="todo")
    priority: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    assignee: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    summary: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    is_multi_task_child: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False
    )
    task_index: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    extra_metadata: Mapped[dict] = mapped_column(JSONB, nullable=False, default=dict)

    def __repr__(self) -> str:
        return f"<Task(id={self.id}, notion_page_id={self.notion_page_id!r})>"


class UserMapping(TeamScopedMixin, Base):
    """Correspondence between a source platform user and a Notion user."""

    __tablename__ = "user_mappings"

    source_type: Mapped[str] = mapped_column(String(50), nullable=False)
    source_workspace_id: Mapped[Optional[str]] = mapped_column(
        String(255), nullable=True
    )  # None means the mapping applies to every workspace
    source_user_id: Mapped[str] = mapped_column(String(255), nullable=False)
    source_user_email: Mapped[Optional[str]] = mapped_column(
        String(255), nullable=True
    )
    source_user_name: Mapped[Optional[str]] = mapped_column(
        String(255), nullable=True
    )
    notion_user_id: Mapped[Optional[str]] = mapped_column(
        String(255), nullable=True
    )  # None means discovered but not yet mapped
    notion_user_name: Mapped[Optional[str]] = mapped_column(
        String(255), nullable=True
    )
    notion_user_email: Mapped[Optional[str]] = mapped_column(
        String(255), nullable=True
    )
    mapping_type: Mapped[str] = mapped_column(
        String(50), nullable=False, default="manual"
    )  # 'discovered', 'manual', 'auto-email'
    confidence: Mapped[float] = mapped_column(Float, nullable=False, default=1.0)
    active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    last_synced_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    extra_metadata: Mapped[dict] = mapped_column(JSONB, nullable=False, default=dict)

    __table_args__ = (
        Index(
            "ix_user_mappings_lookup",
            "team_id",
            "source_type",
            "source_workspace_id",
            "source_user_id",
        ),
    )

    def __repr__(self) -> str:
        return (
            f"<UserMapping(source_type={self.source_type!r}, "
            f"source_user_id={self.source_user_id!r}, "
            f"notion_user_id={self.notion_user_id!r})>"
        )
