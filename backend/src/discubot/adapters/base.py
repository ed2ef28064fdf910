"""
Base interface for discussion source adapters.

An adapter knows how to talk to one collaboration platform: fetch a full
thread, post a reply into it, and reflect processing status back (usually
as an emoji reaction).
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Optional

import httpx

from discubot.config import settings
from discubot.exceptions import AdapterError
from discubot.models.parsed import DiscussionThread

logger = logging.getLogger(__name__)


@dataclass
class AdapterConfig:
    """Credentials and platform metadata an adapter needs for one input."""

    source_type: str
    name: str = ""
    api_token: str = ""
    source_metadata: dict[str, Any] = field(default_factory=dict)
    bot_handle: Optional[str] = None


@dataclass
class ValidationResult:
    """Outcome of validating an adapter configuration."""

    valid: bool
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)


class DiscussionSourceAdapter(ABC):
    """Abstract base class for source platform adapters.

    Implementations must raise AdapterError from fetch_thread and return
    False (never raise) from the notification methods.
    """

    source_type: str = ""

    def __init__(self, client: Optional[httpx.Client] = None):
        self._client = client or httpx.Client(timeout=settings.http_timeout_seconds)

    def close(self) -> None:
        """Close the HTTP client."""
        self._client.close()

    @abstractmethod
    def fetch_thread(self, thread_id: str, config: AdapterConfig) -> DiscussionThread:
        """Fetch the root message, replies and participants of a thread."""
        ...

    @abstractmethod
    def post_reply(self, thread_id: str, message: str, config: AdapterConfig) -> bool:
        """Post a reply into the thread. Returns False on failure."""
        ...

    @abstractmethod
    def update_status(self, thread_id: str, status: str, config: AdapterConfig) -> bool:
        """Reflect a discussion status on the thread. Returns False on failure."""
        ...

    def remove_reaction(self, thread_id: str, emoji: str, config: AdapterConfig) -> bool:
        """Remove a status reaction. Platforms without reactions succeed trivially."""
        return True

    @abstractmethod
    def validate_config(self, config: AdapterConfig) -> ValidationResult:
        """Check a configuration for missing or malformed settings."""
        ...

    @abstractmethod
    def test_connection(self, config: AdapterConfig) -> bool:
        """Make a cheap authenticated call to verify credentials."""
        ...

    def _api_error(
        self,
        response: httpx.Response,
        message: str,
        thread_id: Optional[str] = None,
    ) -> AdapterError:
        """Build an AdapterError from a failed HTTP response."""
        retryable = response.status_code >= 500 or response.status_code == 429
        return AdapterError(
            f"{message}: {response.status_code} {response.text[:200]}",
            source_type=self.source_type,
            thread_id=thread_id,
            status_code=response.status_code,
            retryable=retryable,
        )
