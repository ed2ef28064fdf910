"""Discussion processing pipeline.

Usage:
    from discubot.pipeline import DiscussionProcessor, ProcessorRepositories

    processor = DiscussionProcessor(ProcessorRepositories.from_session(session))
    result = processor.process(parsed)
"""

from discubot.pipeline.processor import (
    DiscussionProcessor,
    ProcessorRepositories,
    validate_parsed_discussion,
)

__all__ = [
    "DiscussionProcessor",
    "ProcessorRepositories",
    "validate_parsed_discussion",
]
