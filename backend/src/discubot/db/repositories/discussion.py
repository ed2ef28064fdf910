"""
Discussion repository.
"""

import uuid
from datetime import datetime, timezone
from typing import Any, Optional

from sqlalchemy import desc
from sqlalchemy.orm import Session

from discubot.db.repositories.base import BaseRepository
from discubot.models.db import Discussion


class DiscussionRepository(BaseRepository[Discussion]):
    """Repository for Discussion model."""

    def __init__(self, session: Session):
        super().__init__(Discussion, session)

    def get_scoped(self, discussion_id: uuid.UUID, team_id: str) -> Optional[Discussion]:
        """Get a discussion only if it belongs to the given team."""
        return (
            self.session.query(Discussion)
            .filter(Discussion.id == discussion_id, Discussion.team_id == team_id)
            .first()
        )

    def get_by_source_thread_id(self, source_thread_id: str) -> Optional[Discussion]:
        """
        Find the most recent discussion for a source thread.

        The lookup is not team scoped: it runs before the internal team
        is known, and source thread ids are globally unique per platform.

        Args:
            source_thread_id: Platform thread identifier

        Returns:
            Most recent matching discussion, or None
        """
        return (
            self.session.query(Discussion)
            .filter(Discussion.source_thread_id == source_thread_id)
            .order_by(desc(Discussion.created_at))
            .first()
        )

    def update_status(
        self,
        discussion_id: uuid.UUID,
        team_id: str,
        status: str,
        **fields: Any,
    ) -> Optional[Discussion]:
        """Set status (and optional extra columns) on a team's discussion."""
        discussion = self.get_scoped(discussion_id, team_id)
        if discussion is None:
            return None
        discussion.status = status
        for key, value in fields.items():
            setattr(discussion, key, value)
        self.session.flush()
        return discussion

    def merge_metadata(
        self, discussion_id: uuid.UUID, team_id: str, values: dict[str, Any]
    ) -> Optional[Discussion]:
        """Merge keys into the discussion's extra_metadata."""
        discussion = self.get_scoped(discussion_id, team_id)
        if discussion is None:
            return None
        # Reassign so the JSON column is flagged dirty
        discussion.extra_metadata = {**(discussion.extra_metadata or {}), **values}
        self.session.flush()
        return discussion

    def mark_failed(
        self, discussion_id: uuid.UUID, team_id: str, error: str
    ) -> Optional[Discussion]:
        """Mark a discussion failed and record the error message."""
        discussion = self.merge_metadata(
            discussion_id,
            team_id,
            {"error": error, "failedAt": datetime.now(timezone.utc).isoformat()},
        )
        if discussion is None:
            return None
        discussion.status = "failed"
        self.session.flush()
        return discussion
