"""
API routes for Discubot.
"""

from discubot.api.routes import discussions

__all__ = ["discussions"]
