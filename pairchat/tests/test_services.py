"""
Unit tests for the conversation directory, participation authorizer and
message store.
"""
import pytest
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timedelta, timezone
from typing import List

from pairchat.core.errors import AuthorizationError, SelfConversationError, ValidationError
from pairchat.db.database import Database
from pairchat.db.models import Conversation, Participant, User
from pairchat.db.repository import Repository
from pairchat.services.authorization import NOT_A_PARTICIPANT, ParticipationAuthorizer
from pairchat.services.conversations import ConversationDirectory
from pairchat.services.messages import MessageStore


@pytest.fixture
def directory(test_database: Database) -> ConversationDirectory:
    return ConversationDirectory(test_database)


@pytest.fixture
def authorizer(test_database: Database) -> ParticipationAuthorizer:
    return ParticipationAuthorizer(test_database)


@pytest.fixture
def store(test_database: Database, authorizer: ParticipationAuthorizer) -> MessageStore:
    return MessageStore(test_database, authorizer, max_length=20)


def count_conversations(database: Database) -> int:
    with database.session() as db:
        return db.query(Conversation).count()


class TestConversationDirectory:
    """Tests for pair deduplication."""

    def test_create_is_idempotent(self, directory, test_database, seed_test_users: List[User]):
        alice, bob, _ = seed_test_users

        first_id, first_created = directory.get_or_create(alice.id, bob.id)
        second_id, second_created = directory.get_or_create(alice.id, bob.id)

        assert first_created is True
        assert second_created is False
        assert first_id == second_id
        assert count_conversations(test_database) == 1

    def test_pair_is_unordered(self, directory, seed_test_users: List[User]):
        alice, bob, _ = seed_test_users

        forward, _ = directory.get_or_create(alice.id, bob.id)
        backward, created = directory.get_or_create(bob.id, alice.id)

        assert forward == backward
        assert created is False

    def test_distinct_pairs_get_distinct_conversations(self, directory, seed_test_users: List[User]):
        alice, bob, carol = seed_test_users

        ab, _ = directory.get_or_create(alice.id, bob.id)
        ac, _ = directory.get_or_create(alice.id, carol.id)

        assert ab != ac

    def test_self_conversation_rejected(self, directory, test_database, seed_test_users: List[User]):
        alice = seed_test_users[0]

        with pytest.raises(SelfConversationError):
            directory.get_or_create(alice.id, alice.id)
        assert count_conversations(test_database) == 0

    def test_unknown_user_rejected(self, directory, test_database, seed_test_users: List[User]):
        with pytest.raises(ValidationError):
            directory.get_or_create(seed_test_users[0].id, 9999)
        assert count_conversations(test_database) == 0

    def test_participants_are_both_users(self, directory, seed_test_users: List[User]):
        alice, bob, _ = seed_test_users

        conversation_id, _ = directory.get_or_create(bob.id, alice.id)

        assert directory.participants(conversation_id) == tuple(sorted((alice.id, bob.id)))

    def test_lost_race_returns_existing(self, directory, test_database, seed_test_users, monkeypatch):
        """A caller that misses the lookup falls back on the unique constraint."""
        alice, bob, _ = seed_test_users
        existing_id, _ = directory.get_or_create(alice.id, bob.id)

        original = Repository.find_conversation_by_pair
        calls = {"count": 0}

        def stale_lookup(self, user_low_id, user_high_id):
            calls["count"] += 1
            if calls["count"] == 1:
                return None
            return original(self, user_low_id, user_high_id)

        monkeypatch.setattr(Repository, "find_conversation_by_pair", stale_lookup)

        conversation_id, created = directory.get_or_create(bob.id, alice.id)

        assert calls["count"] == 2
        assert (conversation_id, created) == (existing_id, False)
        assert count_conversations(test_database) == 1

    def test_concurrent_creation_yields_one_conversation(self, directory, test_database, seed_test_users):
        alice, bob, _ = seed_test_users
        pairs = [(alice.id, bob.id) if i % 2 else (bob.id, alice.id) for i in range(8)]

        with ThreadPoolExecutor(max_workers=8) as executor:
            results = list(executor.map(lambda pair: directory.get_or_create(*pair), pairs))

        assert len({conversation_id for conversation_id, _ in results}) == 1
        assert sum(1 for _, created in results if created) == 1
        assert count_conversations(test_database) == 1
        with test_database.session() as db:
            assert db.query(Participant).count() == 2

    def test_list_for_user(self, directory, seed_test_users: List[User]):
        alice, bob, carol = seed_test_users
        directory.get_or_create(alice.id, bob.id)
        directory.get_or_create(bob.id, carol.id)

        alice_conversations = directory.list_for_user(alice.id)

        assert len(alice_conversations) == 1
        assert set(alice_conversations[0].participant_ids) == {alice.id, bob.id}
        assert len(directory.list_for_user(bob.id)) == 2


class TestParticipationAuthorizer:
    """Tests for the membership gate."""

    def test_members_allowed_outsiders_denied(self, directory, authorizer, seed_test_users: List[User]):
        alice, bob, carol = seed_test_users
        conversation_id, _ = directory.get_or_create(alice.id, bob.id)

        assert authorizer.is_participant(alice.id, conversation_id)
        assert authorizer.is_participant(bob.id, conversation_id)
        assert not authorizer.is_participant(carol.id, conversation_id)

        authorizer.authorize(alice.id, conversation_id)
        with pytest.raises(AuthorizationError) as exc_info:
            authorizer.authorize(carol.id, conversation_id)
        assert exc_info.value.message == NOT_A_PARTICIPANT

    def test_unknown_conversation_denied_the_same_way(self, authorizer, seed_test_users: List[User]):
        with pytest.raises(AuthorizationError) as exc_info:
            authorizer.authorize(seed_test_users[0].id, 12345)
        assert exc_info.value.message == NOT_A_PARTICIPANT


class TestMessageStore:
    """Tests for append and ordered listing."""

    def test_append_then_list(self, directory, store, seed_test_users: List[User]):
        alice, bob, _ = seed_test_users
        conversation_id, _ = directory.get_or_create(alice.id, bob.id)

        record = store.append(conversation_id, alice.id, "hi")
        messages = store.list(conversation_id, bob.id)

        assert [m.id for m in messages] == [record.id]
        assert messages[0].text == "hi"
        assert messages[0].sender_id == alice.id
        assert messages[0].sender_username == "alice"
        assert record.to_payload()["conversationId"] == conversation_id
        assert record.sent_at.tzinfo is not None
        assert messages[0].sent_at.utcoffset() == timedelta(0)
        assert record.to_payload()["sentAt"].endswith("+00:00")

    def test_append_preserves_order(self, directory, store, seed_test_users: List[User]):
        alice, bob, _ = seed_test_users
        conversation_id, _ = directory.get_or_create(alice.id, bob.id)

        for i in range(5):
            sender = alice if i % 2 == 0 else bob
            store.append(conversation_id, sender.id, f"m{i}")

        assert [m.text for m in store.list(conversation_id, alice.id)] == ["m0", "m1", "m2", "m3", "m4"]

    def test_order_is_sent_at_then_id(self, directory, store, test_database, seed_test_users: List[User]):
        alice, bob, _ = seed_test_users
        conversation_id, _ = directory.get_or_create(alice.id, bob.id)
        tied = datetime(2026, 1, 1, 12, 0, 0, tzinfo=timezone.utc)

        with test_database.session() as db:
            repository = Repository(db)
            first = repository.create_message(conversation_id, alice.id, "first tie", sent_at=tied)
            second = repository.create_message(conversation_id, bob.id, "second tie", sent_at=tied)
            earlier = repository.create_message(
                conversation_id, bob.id, "earlier", sent_at=tied - timedelta(seconds=1)
            )
            db.commit()
            expected_ids = [earlier.id, first.id, second.id]

        assert [m.id for m in store.list(conversation_id, alice.id)] == expected_ids

    def test_outsider_cannot_append_or_list(self, directory, store, seed_test_users: List[User]):
        alice, bob, carol = seed_test_users
        conversation_id, _ = directory.get_or_create(alice.id, bob.id)

        with pytest.raises(AuthorizationError):
            store.append(conversation_id, carol.id, "intrusion")
        with pytest.raises(AuthorizationError):
            store.list(conversation_id, carol.id)

        assert store.list(conversation_id, alice.id) == []

    @pytest.mark.parametrize("text", [None, "", "   "])
    def test_empty_text_rejected(self, directory, store, seed_test_users: List[User], text):
        alice, bob, _ = seed_test_users
        conversation_id, _ = directory.get_or_create(alice.id, bob.id)

        with pytest.raises(ValidationError):
            store.append(conversation_id, alice.id, text)

    def test_oversized_text_rejected(self, directory, store, seed_test_users: List[User]):
        alice, bob, _ = seed_test_users
        conversation_id, _ = directory.get_or_create(alice.id, bob.id)

        with pytest.raises(ValidationError):
            store.append(conversation_id, alice.id, "x" * 21)
        assert store.list(conversation_id, alice.id) == []
