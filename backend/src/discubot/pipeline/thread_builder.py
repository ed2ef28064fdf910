"""
Thread building.

Fetches the full conversation for a discussion and makes it readable:
platform mention markup is rewritten into names and message authors get
display names from the known user identities.
"""

import logging
from typing import Optional, Sequence

from discubot.adapters.base import AdapterConfig, DiscussionSourceAdapter
from discubot.adapters.notion import NotionAdapter
from discubot.models.db import UserMapping
from discubot.models.parsed import DiscussionThread
from discubot.pipeline.mentions import (
    BotIdentity,
    IdentityMap,
    UserIdentity,
    resolve_mentions,
)

logger = logging.getLogger(__name__)


def build_identity_map(mappings: Sequence[UserMapping]) -> IdentityMap:
    """Identities keyed by source user id, named after the best known name."""
    identities: IdentityMap = {}
    for mapping in mappings:
        identities[mapping.source_user_id] = UserIdentity(
            name=mapping.notion_user_name or mapping.source_user_name or mapping.source_user_id,
            notion_id=mapping.notion_user_id,
            handle=mapping.source_user_name,
        )
    return identities


def bot_identity(config: AdapterConfig) -> BotIdentity:
    return BotIdentity(
        user_id=config.source_metadata.get("botUserId"),
        handle=config.bot_handle,
    )


class ThreadBuilder:
    """Builds a DiscussionThread through a source adapter."""

    def __init__(self, adapter: DiscussionSourceAdapter):
        self.adapter = adapter

    def build(
        self,
        source_type: str,
        thread_id: str,
        config: AdapterConfig,
        identities: IdentityMap,
        thread: Optional[DiscussionThread] = None,
    ) -> tuple[DiscussionThread, IdentityMap]:
        """
        Fetch (or take) a thread and resolve its mentions and authors.

        Args:
            source_type: 'slack', 'figma' or 'notion'
            thread_id: Platform thread id
            config: Adapter credentials and metadata
            identities: Known identities from user mappings
            thread: Pre-built thread, used instead of fetching

        Returns:
            The thread, mutated in place, and the identity map actually used

        Raises:
            AdapterError: If the thread cannot be fetched
        """
        if thread is None:
            logger.debug(f"Fetching {source_type} thread {thread_id}")
            thread = self.adapter.fetch_thread(thread_id, config)

        if not identities and isinstance(self.adapter, NotionAdapter):
            identities = {
                user["id"]: UserIdentity(name=user["name"], notion_id=user["id"])
                for user in self.adapter.list_users(config)
            }
            logger.debug(f"Loaded {len(identities)} Notion workspace user(s)")

        bot = bot_identity(config)
        for message in thread.messages:
            message.content = resolve_mentions(message.content, source_type, identities, bot)
            identity = identities.get(message.author_handle)
            if identity is not None and not message.author_name:
                message.author_name = identity.name

        logger.info(
            f"Built {source_type} thread {thread.id}: {len(thread.messages)} message(s), "
            f"{len(thread.participants)} participant(s)"
        )
        return thread, identities
