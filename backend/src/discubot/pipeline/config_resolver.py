"""
Configuration resolution for inbound discussions.

A webhook only carries a source-side identifier (Slack team id, Figma
email slug, Notion workspace id). A ConfigResolver turns it into the
internal team, the adapter credentials and the task destinations.

Two strategies exist: flows (one input, many routed outputs) and the
legacy single-database SourceConfig. select_config_resolver picks one
with a single lookup.
"""

import logging
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Optional

from discubot.adapters.base import AdapterConfig
from discubot.db.repositories import (
    FlowInputRepository,
    FlowOutputRepository,
    FlowRepository,
    SourceConfigRepository,
)
from discubot.exceptions import ProcessingError
from discubot.models.db import Flow, FlowInput, FlowOutput, SourceConfig

logger = logging.getLogger(__name__)

# Keys tried, in order, for the workspace id that scopes user mappings
WORKSPACE_ID_KEYS = ("slackTeamId", "figmaOrgId", "notionWorkspaceId")


@dataclass
class ResolvedConfig:
    """Everything the processor needs to know about where a discussion goes."""

    team_id: str
    source_type: str
    adapter_config: AdapterConfig
    source_config_id: Optional[uuid.UUID]
    workspace_id: Optional[str]
    ai_enabled: bool = True
    anthropic_api_key: Optional[str] = None
    summary_prompt: Optional[str] = None
    task_prompt: Optional[str] = None
    available_domains: list[str] = field(default_factory=list)
    outputs: list[FlowOutput] = field(default_factory=list)
    reply_personality: Optional[str] = None
    personality_icon: Optional[str] = None
    flow: Optional[Flow] = None
    matched_input: Optional[FlowInput] = None
    legacy_config: Optional[SourceConfig] = None

    @property
    def is_flow(self) -> bool:
        return self.flow is not None

    @property
    def source_metadata(self) -> dict[str, Any]:
        return self.adapter_config.source_metadata


def resolve_workspace_id(
    source_metadata: dict[str, Any],
    discussion_metadata: dict[str, Any],
    fallback: Optional[str],
) -> Optional[str]:
    """Workspace id used both to load and to store user mappings."""
    for key in WORKSPACE_ID_KEYS:
        if source_metadata.get(key):
            return source_metadata[key]
    return discussion_metadata.get("notionWorkspaceId") or fallback


class ConfigResolver(ABC):
    """Strategy for resolving a source identifier to a configuration."""

    @abstractmethod
    def resolve(
        self,
        identifier: str,
        source_type: str,
        metadata: Optional[dict[str, Any]] = None,
    ) -> ResolvedConfig:
        """
        Find the configuration for an inbound discussion.

        Args:
            identifier: Source-side workspace identifier from the webhook
            source_type: 'slack', 'figma' or 'notion'
            metadata: Parser metadata (emailSlug, notionWorkspaceId, ...)

        Returns:
            ResolvedConfig

        Raises:
            ProcessingError: If nothing matches (stage flow_loading, not retryable)
        """
        ...


class FlowConfigResolver(ConfigResolver):
    """Resolves a discussion to the flow owning the matching input."""

    def __init__(
        self,
        inputs: FlowInputRepository,
        flows: FlowRepository,
        outputs: FlowOutputRepository,
    ):
        self.inputs = inputs
        self.flows = flows
        self.outputs = outputs

    @staticmethod
    def input_matches(
        flow_input: FlowInput,
        identifier: str,
        source_type: str,
        metadata: dict[str, Any],
    ) -> bool:
        source_metadata = flow_input.source_metadata or {}
        if source_type == "slack":
            return source_metadata.get("slackTeamId") == identifier
        if source_type == "figma":
            return flow_input.email_slug == (metadata.get("emailSlug") or identifier)
        if source_type == "notion":
            stored = source_metadata.get("notionWorkspaceId")
            if stored:
                return stored == (metadata.get("notionWorkspaceId") or identifier)
            # No workspace recorded: any active Notion input qualifies
            return True
        return False

    def resolve(
        self,
        identifier: str,
        source_type: str,
        metadata: Optional[dict[str, Any]] = None,
    ) -> ResolvedConfig:
        metadata = metadata or {}
        inputs = self.inputs.get_active_by_source_type(source_type)
        candidates = [
            i for i in inputs if self.input_matches(i, identifier, source_type, metadata)
        ]

        matched_input: Optional[FlowInput] = None
        flow: Optional[Flow] = None
        for candidate in candidates:
            existing = self.flows.get(candidate.flow_id)
            if existing is not None and existing.active:
                matched_input, flow = candidate, existing
                break
            logger.warning(
                f"Skipping orphaned input {candidate.id} "
                f"(flow {candidate.flow_id} missing or inactive)"
            )

        if matched_input is None or flow is None:
            raise ProcessingError(
                f"No active flow input found for {source_type} identifier: {identifier}",
                "flow_loading",
                {
                    "identifier": identifier,
                    "sourceType": source_type,
                    "emailSlug": metadata.get("emailSlug"),
                    "availableInputs": len(inputs),
                    "candidateInputs": len(candidates),
                },
                retryable=False,
            )

        outputs = self.outputs.get_active_by_flow(flow.id, flow.team_id)
        logger.info(
            f"Resolved flow '{flow.name}' ({flow.id}) via input {matched_input.id} "
            f"with {len(outputs)} output(s)"
        )

        source_metadata = dict(matched_input.source_metadata or {})
        return ResolvedConfig(
            team_id=flow.team_id,
            source_type=source_type,
            adapter_config=AdapterConfig(
                source_type=source_type,
                name=matched_input.name,
                api_token=matched_input.api_token or source_metadata.get("notionToken") or "",
                source_metadata=source_metadata,
                bot_handle=source_metadata.get("botHandle") or matched_input.name,
            ),
            source_config_id=matched_input.id,
            workspace_id=resolve_workspace_id(
                matched_input.source_metadata or {}, metadata, identifier
            ),
            ai_enabled=flow.ai_enabled,
            anthropic_api_key=flow.anthropic_api_key,
            summary_prompt=flow.ai_summary_prompt,
            task_prompt=flow.ai_task_prompt,
            available_domains=list(flow.available_domains or []),
            outputs=outputs,
            reply_personality=flow.reply_personality,
            personality_icon=flow.personality_icon,
            flow=flow,
            matched_input=matched_input,
        )


class LegacyConfigResolver(ConfigResolver):
    """Resolves a discussion to a single-database SourceConfig."""

    def __init__(self, configs: SourceConfigRepository):
        self.configs = configs

    @staticmethod
    def config_matches(
        config: SourceConfig,
        identifier: str,
        source_type: str,
        metadata: dict[str, Any],
    ) -> bool:
        source_metadata = config.source_metadata or {}
        if source_type == "slack":
            return source_metadata.get("slackTeamId") == identifier
        if source_type == "figma":
            email_slug = metadata.get("emailSlug")
            return bool(email_slug) and config.email_slug == email_slug
        if source_type == "notion":
            stored = source_metadata.get("notionWorkspaceId")
            return bool(stored) and stored == (metadata.get("notionWorkspaceId") or identifier)
        return False

    def resolve(
        self,
        identifier: str,
        source_type: str,
        metadata: Optional[dict[str, Any]] = None,
    ) -> ResolvedConfig:
        metadata = metadata or {}
        configs = self.configs.get_active_by_source_type(source_type)
        config = next(
            (c for c in configs if self.config_matches(c, identifier, source_type, metadata)),
            None,
        )
        if config is None:
            raise ProcessingError(
                f"No active config found for {source_type} identifier: {identifier}",
                "flow_loading",
                {
                    "identifier": identifier,
                    "sourceType": source_type,
                    "emailSlug": metadata.get("emailSlug"),
                    "availableConfigs": len(configs),
                },
                retryable=False,
            )

        logger.info(f"Resolved legacy config '{config.name}' ({config.id})")
        source_metadata = dict(config.source_metadata or {})
        return ResolvedConfig(
            team_id=config.team_id,
            source_type=source_type,
            adapter_config=AdapterConfig(
                source_type=source_type,
                name=config.name,
                api_token=config.api_token or source_metadata.get("notionToken") or "",
                source_metadata=source_metadata,
                bot_handle=source_metadata.get("botHandle") or config.name,
            ),
            source_config_id=config.id,
            workspace_id=resolve_workspace_id(source_metadata, metadata, identifier),
            ai_enabled=config.ai_enabled,
            anthropic_api_key=config.anthropic_api_key,
            summary_prompt=config.ai_summary_prompt,
            task_prompt=config.ai_task_prompt,
            legacy_config=config,
        )


def select_config_resolver(
    source_type: str,
    inputs: FlowInputRepository,
    flows: FlowRepository,
    outputs: FlowOutputRepository,
    configs: SourceConfigRepository,
) -> ConfigResolver:
    """Flows when any active input exists for the source type, else legacy."""
    if inputs.has_active_inputs(source_type):
        return FlowConfigResolver(inputs, flows, outputs)
    logger.info(f"No active flow inputs for {source_type}, using legacy config")
    return LegacyConfigResolver(configs)
