"""
Flow, flow input and flow output repositories.
"""

import uuid
from typing import List

from sqlalchemy.orm import Session

from discubot.db.repositories.base import BaseRepository
from discubot.models.db import Flow, FlowInput, FlowOutput


class FlowRepository(BaseRepository[Flow]):
    """Repository for Flow model."""

    def __init__(self, session: Session):
        super().__init__(Flow, session)


class FlowInputRepository(BaseRepository[FlowInput]):
    """Repository for FlowInput model."""

    def __init__(self, session: Session):
        super().__init__(FlowInput, session)

    def get_active_by_source_type(self, source_type: str) -> List[FlowInput]:
        """
        Get active inputs of one source type across all teams.

        Inbound webhooks only carry a source-side identifier, so the
        search cannot be narrowed to a team yet.

        Args:
            source_type: 'slack', 'figma' or 'notion'

        Returns:
            Active inputs, oldest first
        """
        return (
            self.session.query(FlowInput)
            .filter(FlowInput.source_type == source_type, FlowInput.active.is_(True))
            .order_by(FlowInput.created_at)
            .all()
        )

    def has_active_inputs(self, source_type: str) -> bool:
        return (
            self.session.query(FlowInput.id)
            .filter(FlowInput.source_type == source_type, FlowInput.active.is_(True))
            .first()
            is not None
        )


class FlowOutputRepository(BaseRepository[FlowOutput]):
    """Repository for FlowOutput model."""

    def __init__(self, session: Session):
        super().__init__(FlowOutput, session)

    def get_active_by_flow(
        self, flow_id: uuid.UUID, team_id: str
    ) -> List[FlowOutput]:
        return (
            self.session.query(FlowOutput)
            .filter(
                FlowOutput.flow_id == flow_id,
                FlowOutput.team_id == team_id,
                FlowOutput.active.is_(True),
            )
            .order_by(FlowOutput.created_at)
            .all()
        )
