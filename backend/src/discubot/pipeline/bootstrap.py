"""
Bootstrap (user sync) comment handling.

A comment like "@bot User Sync: @alice @bob" asks the bot to learn who
is in a workspace instead of creating tasks. The users it names are
stored as inactive "discovered" user mappings for an admin to map to
Notion users later.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Optional

from discubot.db.repositories import UserMappingRepository
from discubot.models.parsed import DiscussionThread
from discubot.pipeline.mentions import (
    BotIdentity,
    Mention,
    extract_plain_mentions,
    get_mention_parser,
)

logger = logging.getLogger(__name__)

BOOTSTRAP_KEYWORDS = ("user sync", "bootstrap")


def is_likely_bootstrap(content: Optional[str]) -> bool:
    """Cheap keyword check on raw content, used before a thread is built."""
    lowered = (content or "").lower()
    return any(keyword in lowered for keyword in BOOTSTRAP_KEYWORDS)


@dataclass
class BootstrapResult:
    """Outcome of bootstrap detection for one thread."""

    is_bootstrap: bool
    mentioned_users: list[Mention] = field(default_factory=list)
    reason: Optional[str] = None

    def users_as_dicts(self) -> list[dict[str, str]]:
        return [
            {"userId": m.user_id, "displayName": m.display_name}
            for m in self.mentioned_users
        ]


def _after_keyword(text: str, keyword: str) -> Optional[str]:
    match = re.search(re.escape(keyword), text, re.IGNORECASE)
    if match is None:
        return None
    return text[match.end():].lstrip(":").strip()


def _unique(mentions: list[Mention]) -> list[Mention]:
    seen: dict[str, Mention] = {}
    for mention in mentions:
        seen.setdefault(mention.user_id, mention)
    return list(seen.values())


class BootstrapDetector:
    """Recognizes bootstrap comments and collects the users they name."""

    def detect(
        self,
        thread: DiscussionThread,
        source_type: str,
        raw_content: Optional[str] = None,
        bot: Optional[BotIdentity] = None,
    ) -> BootstrapResult:
        """
        Check a thread for a bootstrap trigger.

        Args:
            thread: Built thread (mentions may already be rewritten)
            source_type: 'slack', 'figma' or 'notion'
            raw_content: Unmodified content from the webhook
            bot: The bot's own identity, never reported as a user

        Returns:
            BootstrapResult; mentioned_users is empty when not a bootstrap
        """
        thread_text = thread.root_message.content or ""
        raw_text = raw_content or ""

        keyword = next(
            (
                k
                for k in BOOTSTRAP_KEYWORDS
                if k in thread_text.lower() or k in raw_text.lower()
            ),
            None,
        )
        if keyword is None:
            return BootstrapResult(is_bootstrap=False)

        reason = f'Contains "{keyword}" keyword'

        if source_type == "figma":
            # Figma mention text carries no user ids; only authors have them
            users = self._participants(thread)
        else:
            users = self._mentions_after_keyword(
                [raw_text, thread_text], keyword, source_type
            )

        if bot is not None:
            users = [u for u in users if not bot.matches(u.user_id, u.display_name)]

        logger.info(
            f"Bootstrap comment detected in thread {thread.id} ({reason}): "
            f"{len(users)} user(s) found"
        )
        return BootstrapResult(is_bootstrap=True, mentioned_users=users, reason=reason)

    @staticmethod
    def _participants(thread: DiscussionThread) -> list[Mention]:
        return _unique(
            [
                Mention(user_id=m.author_handle, display_name=m.author_name)
                for m in thread.messages
                if m.author_handle and m.author_name
            ]
        )

    @staticmethod
    def _mentions_after_keyword(
        texts: list[str], keyword: str, source_type: str
    ) -> list[Mention]:
        parser = get_mention_parser(source_type)
        for text in texts:
            tail = _after_keyword(text, keyword)
            if tail is None:
                continue
            mentions = parser.extract(tail) or extract_plain_mentions(tail)
            if mentions:
                return _unique(mentions)
        return []


def store_discovered_users(
    user_mappings: UserMappingRepository,
    users: list[Mention],
    team_id: str,
    source_type: str,
    workspace_id: Optional[str],
) -> int:
    """
    Store bootstrap users as pending mappings.

    Users that already have a mapping in the workspace, active or not,
    are skipped. A failure on one user is logged and does not stop the
    others.

    Returns:
        Number of mappings created
    """
    if not users:
        return 0

    known = user_mappings.get_known_user_ids(team_id, source_type, workspace_id)
    created = 0
    for user in users:
        if user.user_id in known:
            logger.debug(f"Skipping discovered user {user.user_id}: mapping exists")
            continue
        try:
            user_mappings.create_discovered(
                team_id=team_id,
                source_type=source_type,
                workspace_id=workspace_id,
                source_user_id=user.user_id,
                source_user_name=user.display_name,
            )
        except Exception as e:
            logger.warning(f"Failed to store discovered user {user.user_id}: {e}")
            continue
        known.add(user.user_id)
        created += 1

    logger.info(
        f"Stored {created} discovered user(s) for {source_type} workspace "
        f"{workspace_id} ({len(users) - created} already known)"
    )
    return created
