"""
Tests for mention extraction and rewriting.
"""

from discubot.pipeline.mentions import (
    BotIdentity,
    FigmaMentionParser,
    HandleMentionParser,
    Mention,
    SlackMentionParser,
    UserIdentity,
    extract_plain_mentions,
    get_mention_parser,
    resolve_mentions,
    rewrite_handles,
)


class TestSlackMentionParser:
    """Tests for Slack <@U123> mentions."""

    parser = SlackMentionParser()

    def test_extract(self):
        mentions = self.parser.extract("<@U1> and <@U2|bob> should look")

        assert mentions == [
            Mention(user_id="U1", display_name="U1"),
            Mention(user_id="U2", display_name="bob"),
        ]

    def test_rewrite_known_user_includes_notion_id(self):
        identities = {"U1": UserIdentity(name="Alice Smith", notion_id="notion-alice")}

        text = self.parser.rewrite("<@U1> can you check?", identities)

        assert text == "@Alice Smith (notion-alice) can you check?"

    def test_rewrite_known_user_without_notion_id(self):
        identities = {"U1": UserIdentity(name="alice")}

        assert self.parser.rewrite("ping <@U1>", identities) == "ping @alice"

    def test_unknown_user_left_untouched(self):
        assert self.parser.rewrite("ping <@U9>", {}) == "ping <@U9>"

    def test_unknown_user_falls_back_to_label(self):
        assert self.parser.rewrite("ping <@U9|carol>", {}) == "ping @carol"

    def test_bot_mention_removed(self):
        bot = BotIdentity(user_id="UBOT")

        text = self.parser.rewrite("<@UBOT> please file this", {}, bot)

        assert text == "please file this"

    def test_bot_matched_by_handle(self):
        bot = BotIdentity(handle="@discubot")

        assert self.parser.rewrite("<@U5|discubot> hi", {}, bot) == "hi"


class TestFigmaMentionParser:
    """Tests for Figma mention formats."""

    parser = FigmaMentionParser()

    def test_paren_format_known_user(self):
        identities = {"abc-123": UserIdentity(name="Jane D.")}

        text = self.parser.rewrite("@Jane Doe (abc-123) please review", identities)

        assert text == "@Jane D. please review"

    def test_paren_format_unknown_user_keeps_display_name(self):
        text = self.parser.rewrite("@Jane Doe (abc-123) please review", {})

        assert text == "@Jane Doe please review"

    def test_rewrite_is_idempotent(self):
        identities = {"abc-123": UserIdentity(name="Jane D.")}
        once = self.parser.rewrite("@Jane Doe (abc-123) please review", identities)

        assert self.parser.rewrite(once, identities) == once

    def test_bracket_format(self):
        identities = {"42": UserIdentity(name="Sam")}

        assert self.parser.rewrite("@[42:sam] thoughts?", identities) == "@Sam thoughts?"

    def test_extract_prefers_paren_format(self):
        mentions = self.parser.extract("@Jane Doe (abc-123) and @bob")

        assert mentions == [Mention(user_id="abc-123", display_name="Jane Doe")]

    def test_extract_falls_back_to_plain_handles(self):
        mentions = self.parser.extract("User Sync: @alice @bob")

        assert [m.user_id for m in mentions] == ["alice", "bob"]

    def test_extract_empty(self):
        assert self.parser.extract("   ") == []

    def test_bot_handle_removed(self):
        bot = BotIdentity(handle="discubot")

        assert self.parser.rewrite("@discubot turn this into a task", {}, bot) == (
            "turn this into a task"
        )


class TestHandleRewriting:
    """Tests for bare @handle rewriting (Notion and fallback)."""

    def test_known_handle_rewritten(self):
        identities = {"U1": UserIdentity(name="Alice Smith", handle="alice")}

        assert rewrite_handles("@alice please look", identities, None) == (
            "@Alice Smith please look"
        )

    def test_handle_match_is_case_insensitive(self):
        identities = {"U1": UserIdentity(name="Alice Smith", handle="alice")}

        assert rewrite_handles("@ALICE ok", identities, None) == "@Alice Smith ok"

    def test_partial_handle_not_rewritten(self):
        identities = {"U1": UserIdentity(name="Al", handle="al")}

        assert rewrite_handles("@alice ok", identities, None) == "@alice ok"

    def test_email_address_not_rewritten(self):
        identities = {"U1": UserIdentity(name="Alice Smith", handle="example")}

        text = "mail bob@example.com"
        assert rewrite_handles(text, identities, None) == text

    def test_collapses_spaces_left_by_bot_removal(self):
        bot = BotIdentity(handle="discubot")

        assert rewrite_handles("hey @discubot  do it", {}, bot) == "hey do it"

    def test_notion_parser_uses_handles(self):
        parser = HandleMentionParser()
        identities = {"notion-1": UserIdentity(name="Jane", notion_id="notion-1")}

        assert parser.rewrite("@notion-1 look", identities) == "@Jane look"


class TestExtractPlainMentions:
    """Tests for bare @handle extraction."""

    def test_skips_broadcast_handles(self):
        mentions = extract_plain_mentions("@here @alice @channel @bob.")

        assert [m.user_id for m in mentions] == ["alice", "bob"]

    def test_ignores_email_addresses(self):
        assert extract_plain_mentions("write to bob@example.com") == []


class TestParserLookup:
    def test_known_platforms(self):
        assert isinstance(get_mention_parser("slack"), SlackMentionParser)
        assert isinstance(get_mention_parser("figma"), FigmaMentionParser)
        assert isinstance(get_mention_parser("notion"), HandleMentionParser)

    def test_unknown_platform_falls_back_to_handles(self):
        assert isinstance(get_mention_parser("teams"), HandleMentionParser)

    def test_resolve_mentions_dispatches_by_source(self):
        identities = {"U1": UserIdentity(name="Alice")}

        assert resolve_mentions("<@U1> hi", "slack", identities) == "@Alice hi"
