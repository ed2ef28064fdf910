"""Custom exceptions for Discubot."""

from typing import Any, Optional

# Stages a ProcessingError can be raised from
PROCESSING_STAGES = (
    "validation",
    "flow_loading",
    "save_discussion",
    "update_status",
    "update_metadata",
    "update_results",
    "unknown",
)


class DiscubotError(Exception):
    """Base class for all Discubot errors."""


class ProcessingError(DiscubotError):
    """Raised when the discussion pipeline cannot complete."""

    def __init__(
        self,
        message: str,
        stage: str = "unknown",
        context: Optional[dict[str, Any]] = None,
        retryable: bool = True,
    ):
        self.message = message
        self.stage = stage
        self.context = context or {}
        self.retryable = retryable
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        return {
            "message": self.message,
            "stage": self.stage,
            "context": self.context,
            "retryable": self.retryable,
        }


class AdapterError(DiscubotError):
    """Raised when a source platform API call fails."""

    def __init__(
        self,
        message: str,
        source_type: str,
        thread_id: Optional[str] = None,
        status_code: Optional[int] = None,
        retryable: bool = False,
    ):
        self.source_type = source_type
        self.thread_id = thread_id
        self.status_code = status_code
        self.retryable = retryable
        super().__init__(message)


class NotionAPIError(DiscubotError):
    """Raised when the Notion API rejects a request."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        code: Optional[str] = None,
    ):
        self.status_code = status_code
        self.code = code
        # Rate limits and server errors are transient
        self.retryable = status_code is None or status_code == 429 or status_code >= 500
        super().__init__(message)


class AIAnalysisError(DiscubotError):
    """Raised when the language model call or its response is unusable."""
