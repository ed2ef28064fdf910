"""
User mapping repository.
"""

from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy import or_
from sqlalchemy.orm import Session

from discubot.db.repositories.base import BaseRepository
from discubot.models.db import UserMapping


class UserMappingRepository(BaseRepository[UserMapping]):
    """Repository for UserMapping model."""

    def __init__(self, session: Session):
        super().__init__(UserMapping, session)

    def get_active_for_workspace(
        self,
        team_id: str,
        source_type: str,
        workspace_id: Optional[str] = None,
    ) -> List[UserMapping]:
        """
        Get active mappings usable for a source workspace.

        Mappings stored without a workspace id are global and match any
        workspace. With no workspace_id given, every active mapping of the
        source type is returned.

        Args:
            team_id: Internal team id
            source_type: 'slack', 'figma' or 'notion'
            workspace_id: Source workspace id (Slack team, Figma org, ...)

        Returns:
            List of active user mappings
        """
        query = self.session.query(UserMapping).filter(
            UserMapping.team_id == team_id,
            UserMapping.source_type == source_type,
            UserMapping.active.is_(True),
        )
        if workspace_id:
            query = query.filter(
                or_(
                    UserMapping.source_workspace_id.is_(None),
                    UserMapping.source_workspace_id == "",
                    UserMapping.source_workspace_id == workspace_id,
                )
            )
        return query.all()

    def get_known_user_ids(
        self, team_id: str, source_type: str, workspace_id: Optional[str]
    ) -> set[str]:
        """Source user ids with any mapping (active or not) usable in a workspace.

        Global mappings (no workspace id) count as known everywhere.
        """
        rows = (
            self.session.query(UserMapping.source_user_id)
            .filter(
                UserMapping.team_id == team_id,
                UserMapping.source_type == source_type,
                or_(
                    UserMapping.source_workspace_id.is_(None),
                    UserMapping.source_workspace_id == "",
                    UserMapping.source_workspace_id == workspace_id,
                ),
            )
            .all()
        )
        return {row[0] for row in rows}

    def create_discovered(
        self,
        team_id: str,
        source_type: str,
        workspace_id: Optional[str],
        source_user_id: str,
        source_user_name: Optional[str],
        discovery_source: str = "bootstrap_comment",
    ) -> UserMapping:
        """Record an identity seen on a platform but not yet mapped to Notion."""
        return self.create(
            team_id=team_id,
            source_type=source_type,
            source_workspace_id=workspace_id,
            source_user_id=source_user_id,
            source_user_name=source_user_name,
            notion_user_id=None,
            mapping_type="discovered",
            confidence=0.0,
            active=False,
            extra_metadata={
                "discoveredAt": datetime.now(timezone.utc).isoformat(),
                "discoverySource": discovery_source,
            },
        )
