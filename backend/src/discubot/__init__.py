"""Discubot: discussion ingestion and task creation."""

__version__ = "0.1.0"
