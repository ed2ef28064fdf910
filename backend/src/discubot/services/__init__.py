"""Outbound services: Notion task creation and reply text."""
