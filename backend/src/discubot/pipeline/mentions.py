"""
Mention parsing and rewriting.

Each platform writes user references differently:
- Slack: <@U123ABC> (id only)
- Figma: "@Name (uuid)", "@[id:Name]", or a bare "@handle"
- Notion: bare "@handle" text

A MentionParser extracts those references and rewrites them into readable
names using known user identities. The automation's own mention is always
removed. Rewriting is idempotent.
"""

import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

# Handles that address a group rather than a person
BROADCAST_HANDLES = {"everyone", "here", "channel"}

_MULTI_SPACE = re.compile(r"[ \t]{2,}")
_PLAIN_MENTION = re.compile(r"(?<![\w@])@([A-Za-z0-9_.-]+)")


@dataclass(frozen=True)
class Mention:
    """A user reference found in message text."""

    user_id: str
    display_name: str


@dataclass(frozen=True)
class UserIdentity:
    """What is known about a source user from the user mappings."""

    name: str
    notion_id: Optional[str] = None
    handle: Optional[str] = None


@dataclass(frozen=True)
class BotIdentity:
    """The automation's own identity on the source platform."""

    user_id: Optional[str] = None
    handle: Optional[str] = None

    def matches(self, user_id: str, display_name: str = "") -> bool:
        if self.user_id and user_id == self.user_id:
            return True
        if self.handle:
            handle = self.handle.lstrip("@").lower()
            return handle in (user_id.lower(), display_name.strip().lower())
        return False


IdentityMap = dict[str, UserIdentity]


def _tidy(text: str) -> str:
    """Collapse runs of spaces left behind by removed mentions."""
    lines = [_MULTI_SPACE.sub(" ", line).strip() for line in text.split("\n")]
    return "\n".join(lines).strip()


def rewrite_handles(text: str, identities: IdentityMap, bot: Optional[BotIdentity]) -> str:
    """
    Rewrite bare @handle mentions using known identities.

    The bot handle is removed. Known handles (source user id or source user
    name) are matched case-insensitively on word boundaries and replaced
    with @Name. A mention already followed by its resolved name is left
    alone, which keeps repeated runs stable.
    """
    if bot and bot.handle:
        bot_pattern = re.compile(
            rf"(?<![\w@])@{re.escape(bot.handle.lstrip('@'))}(?![\w.-])", re.IGNORECASE
        )
        text = bot_pattern.sub("", text)

    lookup: dict[str, UserIdentity] = {}
    for user_id, identity in identities.items():
        for handle in (user_id, identity.handle):
            if handle:
                lookup.setdefault(handle.lower(), identity)

    if lookup:
        alternatives = "|".join(
            re.escape(h) for h in sorted(lookup, key=len, reverse=True)
        )
        pattern = re.compile(
            rf"(?<![\w@])@({alternatives})(?![\w.-])", re.IGNORECASE
        )

        def replace(match: re.Match) -> str:
            replacement = f"@{lookup[match.group(1).lower()].name}"
            if match.string.startswith(replacement, match.start()):
                return match.group(0)
            return replacement

        text = pattern.sub(replace, text)

    return _tidy(text)


def extract_plain_mentions(text: str) -> list[Mention]:
    """Bare @handle mentions, skipping broadcast handles like @here."""
    mentions: list[Mention] = []
    for match in _PLAIN_MENTION.finditer(text or ""):
        handle = match.group(1).rstrip(".")
        if handle and handle.lower() not in BROADCAST_HANDLES:
            mentions.append(Mention(user_id=handle, display_name=handle))
    return mentions


class MentionParser(ABC):
    """Platform-specific mention extraction and rewriting."""

    source_type: str = ""

    @abstractmethod
    def extract(self, text: str) -> list[Mention]:
        """Find user mentions in text, in order of appearance."""
        ...

    @abstractmethod
    def rewrite(
        self,
        text: str,
        identities: IdentityMap,
        bot: Optional[BotIdentity] = None,
    ) -> str:
        """Rewrite mentions in text into readable names."""
        ...


class SlackMentionParser(MentionParser):
    """Slack user mentions: <@U123> or <@U123|label>."""

    source_type = "slack"
    pattern = re.compile(r"<@([A-Z0-9]+)(?:\|([^>]*))?>")

    def extract(self, text: str) -> list[Mention]:
        return [
            Mention(user_id=m.group(1), display_name=m.group(2) or m.group(1))
            for m in self.pattern.finditer(text or "")
        ]

    def rewrite(
        self,
        text: str,
        identities: IdentityMap,
        bot: Optional[BotIdentity] = None,
    ) -> str:
        def replace(match: re.Match) -> str:
            user_id = match.group(1)
            if bot and bot.matches(user_id, match.group(2) or ""):
                return ""
            identity = identities.get(user_id)
            if identity is None:
                label = match.group(2)
                return f"@{label}" if label else match.group(0)
            # The Notion id lets the analyzer hand back an assignable user
            if identity.notion_id:
                return f"@{identity.name} ({identity.notion_id})"
            return f"@{identity.name}"

        return _tidy(self.pattern.sub(replace, text or ""))


class FigmaMentionParser(MentionParser):
    """Figma mentions: "@Name (uuid)", "@[id:Name]", then bare handles."""

    source_type = "figma"
    paren_pattern = re.compile(r"@([^(@]+?)\s*\(([a-f0-9-]+)\)", re.IGNORECASE)
    bracket_pattern = re.compile(r"@\[([^\]:]+):([^\]]+)\]")

    def extract(self, text: str) -> list[Mention]:
        if not text or not text.strip():
            return []

        mentions = [
            Mention(user_id=m.group(2).strip(), display_name=m.group(1).strip())
            for m in self.paren_pattern.finditer(text)
        ]
        if not mentions:
            mentions = [
                Mention(user_id=m.group(1).strip(), display_name=m.group(2).strip())
                for m in self.bracket_pattern.finditer(text)
            ]
        if not mentions:
            mentions = extract_plain_mentions(text)
        return mentions

    def rewrite(
        self,
        text: str,
        identities: IdentityMap,
        bot: Optional[BotIdentity] = None,
    ) -> str:
        def resolve(user_id: str, display_name: str) -> str:
            if bot and bot.matches(user_id, display_name):
                return ""
            identity = identities.get(user_id)
            return f"@{identity.name if identity else display_name}"

        text = self.paren_pattern.sub(
            lambda m: resolve(m.group(2).strip(), m.group(1).strip()), text or ""
        )
        text = self.bracket_pattern.sub(
            lambda m: resolve(m.group(1).strip(), m.group(2).strip()), text
        )
        return rewrite_handles(text, identities, bot)


class HandleMentionParser(MentionParser):
    """Platforms whose mention text carries only a handle (Notion)."""

    source_type = "notion"

    def extract(self, text: str) -> list[Mention]:
        return extract_plain_mentions(text)

    def rewrite(
        self,
        text: str,
        identities: IdentityMap,
        bot: Optional[BotIdentity] = None,
    ) -> str:
        return rewrite_handles(text or "", identities, bot)


MENTION_PARSERS: dict[str, MentionParser] = {
    "slack": SlackMentionParser(),
    "figma": FigmaMentionParser(),
    "notion": HandleMentionParser(),
}


def get_mention_parser(source_type: str) -> MentionParser:
    """Parser for a source type; unknown sources fall back to bare handles."""
    return MENTION_PARSERS.get(source_type, MENTION_PARSERS["notion"])


def resolve_mentions(
    text: str,
    source_type: str,
    identities: IdentityMap,
    bot: Optional[BotIdentity] = None,
) -> str:
    """Rewrite every mention in text for the given platform."""
    return get_mention_parser(source_type).rewrite(text, identities, bot)
