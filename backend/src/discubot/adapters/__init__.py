"""Source platform adapters.

Usage:
    from discubot.adapters import get_adapter

    adapter = get_adapter("slack")
    thread = adapter.fetch_thread("C123:1700000000.000100", config)
"""

from discubot.adapters.base import AdapterConfig, DiscussionSourceAdapter, ValidationResult
from discubot.adapters.figma import FigmaAdapter
from discubot.adapters.notion import NotionAdapter
from discubot.adapters.slack import SlackAdapter

ADAPTER_CLASSES: dict[str, type[DiscussionSourceAdapter]] = {
    "slack": SlackAdapter,
    "figma": FigmaAdapter,
    "notion": NotionAdapter,
}


def get_adapter(source_type: str) -> DiscussionSourceAdapter:
    """Create the adapter for a source type.

    Raises:
        ValueError: If no adapter exists for the source type
    """
    try:
        return ADAPTER_CLASSES[source_type]()
    except KeyError:
        raise ValueError(
            f"Unknown source type: {source_type}. "
            f"Supported sources: {', '.join(sorted(ADAPTER_CLASSES))}"
        ) from None


__all__ = [
    "ADAPTER_CLASSES",
    "AdapterConfig",
    "DiscussionSourceAdapter",
    "FigmaAdapter",
    "NotionAdapter",
    "SlackAdapter",
    "ValidationResult",
    "get_adapter",
]
