"""
Sync job repository.

A sync job records one processing attempt for a discussion: the stage it
reached, attempts, timing and the error that ended it, if any.
"""

import uuid
from datetime import datetime, timezone
from typing import Any, List, Optional

from sqlalchemy import desc
from sqlalchemy.orm import Session

from discubot.db.repositories.base import BaseRepository
from discubot.models.db import SyncJob

JOB_STAGES = (
    "ingestion",
    "thread_building",
    "ai_analysis",
    "task_creation",
    "notification",
)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class SyncJobRepository(BaseRepository[SyncJob]):
    """Repository for SyncJob model."""

    def __init__(self, session: Session):
        super().__init__(SyncJob, session)

    def _get_scoped(self, job_id: uuid.UUID, team_id: str) -> Optional[SyncJob]:
        return (
            self.session.query(SyncJob)
            .filter(SyncJob.id == job_id, SyncJob.team_id == team_id)
            .first()
        )

    def start(
        self,
        team_id: str,
        discussion_id: uuid.UUID,
        source_config_id: Optional[uuid.UUID],
        metadata: Optional[dict[str, Any]] = None,
        max_attempts: int = 3,
    ) -> SyncJob:
        """Create a job in 'processing' status at the thread_building stage."""
        return self.create(
            team_id=team_id,
            discussion_id=discussion_id,
            source_config_id=source_config_id,
            status="processing",
            stage="thread_building",
            attempts=0,
            max_attempts=max_attempts,
            started_at=_utc_now(),
            extra_metadata=metadata or {},
        )

    def update_stage(
        self, job_id: uuid.UUID, team_id: str, stage: str
    ) -> Optional[SyncJob]:
        """Move a job to a new pipeline stage."""
        if stage not in JOB_STAGES:
            raise ValueError(f"Unknown job stage: {stage}")
        job = self._get_scoped(job_id, team_id)
        if job is None:
            return None
        job.stage = stage
        self.session.flush()
        return job

    def complete(
        self,
        job_id: uuid.UUID,
        team_id: str,
        processing_time_ms: int,
        task_ids: Optional[list[str]] = None,
        metadata: Optional[dict[str, Any]] = None,
    ) -> Optional[SyncJob]:
        """Finalize a job as completed."""
        job = self._get_scoped(job_id, team_id)
        if job is None:
            return None
        job.status = "completed"
        job.completed_at = _utc_now()
        job.processing_time_ms = processing_time_ms
        job.task_ids = list(task_ids or [])
        if metadata:
            job.extra_metadata = {**(job.extra_metadata or {}), **metadata}
        self.session.flush()
        return job

    def fail(
        self,
        job_id: uuid.UUID,
        team_id: str,
        error: str,
        error_stack: Optional[str],
        processing_time_ms: Optional[int] = None,
    ) -> Optional[SyncJob]:
        """Finalize a job as failed with the error and its traceback."""
        job = self._get_scoped(job_id, team_id)
        if job is None:
            return None
        job.status = "failed"
        job.error = error
        job.error_stack = error_stack
        job.attempts = (job.attempts or 0) + 1
        job.completed_at = _utc_now()
        job.processing_time_ms = processing_time_ms
        self.session.flush()
        return job

    def get_by_discussion(self, discussion_id: uuid.UUID) -> List[SyncJob]:
        """Get every attempt for a discussion, newest first."""
        return (
            self.session.query(SyncJob)
            .filter(SyncJob.discussion_id == discussion_id)
            .order_by(desc(SyncJob.started_at))
            .all()
        )
