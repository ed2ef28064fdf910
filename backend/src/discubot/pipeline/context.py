"""
Per-request processing state.

One ProcessingContext is created for every call to
DiscussionProcessor.process and handed to each stage. Nothing about a
request is kept at module level.
"""

import time
import uuid
from dataclasses import dataclass, field
from typing import Optional

from discubot.adapters.base import DiscussionSourceAdapter
from discubot.models.parsed import (
    AnalysisResult,
    DiscussionThread,
    ParsedDiscussion,
    ProcessingOptions,
)
from discubot.pipeline.config_resolver import ResolvedConfig
from discubot.pipeline.mentions import IdentityMap


@dataclass
class ProcessingContext:
    """State accumulated while one discussion moves through the pipeline."""

    parsed: ParsedDiscussion
    options: ProcessingOptions = field(default_factory=ProcessingOptions)
    started_at: float = field(default_factory=time.time)

    config: Optional[ResolvedConfig] = None
    discussion_id: Optional[uuid.UUID] = None
    job_id: Optional[uuid.UUID] = None
    adapter: Optional[DiscussionSourceAdapter] = None
    identities: IdentityMap = field(default_factory=dict)
    thread: Optional[DiscussionThread] = None
    analysis: Optional[AnalysisResult] = None

    # Figma rewrites both once the comment id is known
    source_thread_id: str = ""
    source_url: str = ""

    def __post_init__(self) -> None:
        self.source_thread_id = self.source_thread_id or self.parsed.source_thread_id
        self.source_url = self.source_url or self.parsed.source_url

    @property
    def team_id(self) -> Optional[str]:
        """Internal team id, known once configuration is resolved."""
        return self.config.team_id if self.config else None

    @property
    def source_type(self) -> str:
        return self.parsed.source_type

    @property
    def elapsed_ms(self) -> int:
        return int((time.time() - self.started_at) * 1000)
