"""
Legacy source configuration repository.
"""

from typing import List

from sqlalchemy.orm import Session

from discubot.db.repositories.base import BaseRepository
from discubot.models.db import SourceConfig


class SourceConfigRepository(BaseRepository[SourceConfig]):
    """Repository for SourceConfig model."""

    def __init__(self, session: Session):
        super().__init__(SourceConfig, session)

    def get_active_by_source_type(self, source_type: str) -> List[SourceConfig]:
        return (
            self.session.query(SourceConfig)
            .filter(
                SourceConfig.source_type == source_type,
                SourceConfig.active.is_(True),
            )
            .order_by(SourceConfig.created_at)
            .all()
        )
