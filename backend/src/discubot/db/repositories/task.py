"""
Task repository.
"""

import uuid
from typing import List

from sqlalchemy.orm import Session

from discubot.db.repositories.base import BaseRepository
from discubot.models.db import Task


class TaskRepository(BaseRepository[Task]):
    """Repository for Task model."""

    def __init__(self, session: Session):
        super().__init__(Task, session)

    def get_by_discussion(self, discussion_id: uuid.UUID, team_id: str) -> List[Task]:
        """Get the tasks created for a discussion, in creation order."""
        return (
            self.session.query(Task)
            .filter(Task.discussion_id == discussion_id, Task.team_id == team_id)
            .order_by(Task.task_index)
            .all()
        )
