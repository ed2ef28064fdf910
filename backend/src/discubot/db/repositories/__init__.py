"""
Repository layer for database operations.

Provides a clean API for CRUD operations on database models.
"""

from discubot.db.repositories.base import BaseRepository
from discubot.db.repositories.discussion import DiscussionRepository
from discubot.db.repositories.flow import (
    FlowInputRepository,
    FlowOutputRepository,
    FlowRepository,
)
from discubot.db.repositories.source_config import SourceConfigRepository
from discubot.db.repositories.sync_job import SyncJobRepository
from discubot.db.repositories.task import TaskRepository
from discubot.db.repositories.user_mapping import UserMappingRepository

__all__ = [
    "BaseRepository",
    "DiscussionRepository",
    "FlowInputRepository",
    "FlowOutputRepository",
    "FlowRepository",
    "SourceConfigRepository",
    "SyncJobRepository",
    "TaskRepository",
    "UserMappingRepository",
]
