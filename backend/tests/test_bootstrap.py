"""
Tests for bootstrap (user sync) comment handling.
"""

from conftest import TEAM_ID
from discubot.db.repositories import UserMappingRepository
from discubot.models.db import UserMapping
from discubot.models.parsed import DiscussionThread, ThreadMessage
from discubot.pipeline.bootstrap import (
    BootstrapDetector,
    is_likely_bootstrap,
    store_discovered_users,
)
from discubot.pipeline.mentions import BotIdentity, Mention


def thread_with(content, replies=None):
    return DiscussionThread(
        id="thread-1",
        root_message=ThreadMessage(
            id="m1", author_handle="author-1", content=content, author_name="Author"
        ),
        replies=replies or [],
    )


class TestIsLikelyBootstrap:
    def test_keywords(self):
        assert is_likely_bootstrap("@bot User Sync: @alice")
        assert is_likely_bootstrap("BOOTSTRAP please")

    def test_regular_content(self):
        assert not is_likely_bootstrap("The login button is broken")
        assert not is_likely_bootstrap(None)


class TestBootstrapDetector:
    """Tests for BootstrapDetector.detect."""

    detector = BootstrapDetector()

    def test_regular_thread_is_not_bootstrap(self):
        result = self.detector.detect(thread_with("Fix the header"), "notion")

        assert not result.is_bootstrap
        assert result.mentioned_users == []
        assert result.reason is None

    def test_notion_mentions_after_keyword(self):
        result = self.detector.detect(thread_with("User Sync: @alice @bob"), "notion")

        assert result.is_bootstrap
        assert result.reason == 'Contains "user sync" keyword'
        assert [u.user_id for u in result.mentioned_users] == ["alice", "bob"]

    def test_mentions_before_keyword_are_ignored(self):
        result = self.detector.detect(thread_with("@discubot User Sync: @alice"), "notion")

        assert [u.user_id for u in result.mentioned_users] == ["alice"]

    def test_slack_uses_raw_content(self):
        thread = thread_with("User Sync: @Alice Smith (notion-alice) <@U8>")

        result = self.detector.detect(
            thread, "slack", raw_content="<@UBOT> user sync <@U1> <@U8>"
        )

        assert [u.user_id for u in result.mentioned_users] == ["U1", "U8"]

    def test_bot_is_excluded(self):
        result = self.detector.detect(
            thread_with("bootstrap @discubot @alice"),
            "notion",
            bot=BotIdentity(handle="discubot"),
        )

        assert [u.user_id for u in result.mentioned_users] == ["alice"]

    def test_duplicate_mentions_collapsed(self):
        result = self.detector.detect(thread_with("user sync @alice @alice"), "notion")

        assert len(result.mentioned_users) == 1

    def test_figma_uses_participants(self):
        thread = thread_with(
            "@Discubot bootstrap",
            replies=[
                ThreadMessage(id="m2", author_handle="fig-1", content="me", author_name="Jane"),
                ThreadMessage(id="m3", author_handle="fig-2", content="me too", author_name="Sam"),
                ThreadMessage(id="m4", author_handle="fig-1", content="again", author_name="Jane"),
            ],
        )

        result = self.detector.detect(thread, "figma")

        assert result.is_bootstrap
        assert [(u.user_id, u.display_name) for u in result.mentioned_users] == [
            ("author-1", "Author"),
            ("fig-1", "Jane"),
            ("fig-2", "Sam"),
        ]

    def test_keyword_without_mentions(self):
        result = self.detector.detect(thread_with("user sync"), "notion")

        assert result.is_bootstrap
        assert result.mentioned_users == []

    def test_users_as_dicts(self):
        result = self.detector.detect(thread_with("user sync @alice"), "notion")

        assert result.users_as_dicts() == [{"userId": "alice", "displayName": "alice"}]


class TestStoreDiscoveredUsers:
    """Tests for storing bootstrap users as pending mappings."""

    def test_creates_inactive_discovered_mappings(self, db_session):
        repo = UserMappingRepository(db_session)
        users = [Mention("U7", "seven"), Mention("U8", "eight")]

        created = store_discovered_users(repo, users, TEAM_ID, "slack", "T123")

        assert created == 2
        mappings = db_session.query(UserMapping).filter(UserMapping.team_id == TEAM_ID).all()
        assert {m.source_user_id for m in mappings} == {"U7", "U8"}
        assert all(m.mapping_type == "discovered" for m in mappings)
        assert all(m.active is False for m in mappings)
        assert all(m.notion_user_id is None for m in mappings)
        assert all(m.extra_metadata["discoverySource"] == "bootstrap_comment" for m in mappings)

    def test_skips_existing_mappings(self, db_session, alice_mapping):
        repo = UserMappingRepository(db_session)
        users = [Mention("U1", "alice"), Mention("U8", "eight")]

        created = store_discovered_users(repo, users, TEAM_ID, "slack", "T123")

        assert created == 1
        assert repo.get_known_user_ids(TEAM_ID, "slack", "T123") == {"U1", "U8"}

    def test_global_mapping_counts_as_known(self, db_session):
        repo = UserMappingRepository(db_session)
        repo.create(
            team_id=TEAM_ID,
            source_type="slack",
            source_workspace_id=None,
            source_user_id="U1",
            notion_user_id="notion-alice",
            active=True,
        )

        created = store_discovered_users(repo, [Mention("U1", "alice")], TEAM_ID, "slack", "T123")

        assert created == 0
        assert db_session.query(UserMapping).filter(UserMapping.source_user_id == "U1").count() == 1

    def test_same_user_twice_in_one_batch(self, db_session):
        repo = UserMappingRepository(db_session)
        users = [Mention("U7", "seven"), Mention("U7", "seven")]

        assert store_discovered_users(repo, users, TEAM_ID, "slack", "T123") == 1

    def test_no_users(self, db_session):
        repo = UserMappingRepository(db_session)

        assert store_discovered_users(repo, [], TEAM_ID, "slack", "T123") == 0
