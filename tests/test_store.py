"""Tests for draw persistence."""

from datetime import UTC, datetime
from uuid import uuid4

import pytest

from secret_santa.draw.errors import PersistenceFailure
from secret_santa.draw.store import DrawStore
from secret_santa.models import Event


class TestInsertAssignments:
    """Tests for the atomic bulk insert."""

    def test_insert_returns_rows(self, store: DrawStore, event: Event):
        alice, bob, carol = store.list_participants(event.id)
        rows = store.insert_assignments(
            event.id, [(alice.id, bob.id), (bob.id, carol.id), (carol.id, alice.id)]
        )
        assert len(rows) == 3
        assert all(row.id is not None and row.event_id == event.id for row in rows)
        assert store.count_assignments(event.id) == 3

    def test_insert_is_all_or_nothing(self, store: DrawStore, event: Event):
        """A constraint violation on one row stores none of them."""
        alice, bob, carol = store.list_participants(event.id)
        with pytest.raises(PersistenceFailure):
            store.insert_assignments(
                event.id, [(alice.id, bob.id), (bob.id, carol.id), (alice.id, carol.id)]
            )
        assert store.list_assignments(event.id) == []


class TestNotificationStatus:
    """Tests for updating the email bookkeeping."""

    def test_partial_update_keeps_other_fields(self, store: DrawStore, event: Event):
        alice, bob, _ = store.list_participants(event.id)
        (row,) = store.insert_assignments(event.id, [(alice.id, bob.id)])
        sent_at = datetime.now(UTC)

        store.update_assignment_notification_status(
            row.id, email_sent_at=sent_at, email_message_id="<abc@example.com>"
        )
        store.update_assignment_notification_status(row.id, email_error="later failure")

        (stored,) = store.list_assignments(event.id)
        assert stored.email_sent_at is not None
        assert stored.email_message_id == "<abc@example.com>"
        assert stored.email_error == "later failure"

    def test_rejects_unknown_field(self, store: DrawStore):
        with pytest.raises(ValueError):
            store.update_assignment_notification_status(uuid4(), receiver_id=uuid4())

    def test_missing_assignment_ignored(self, store: DrawStore):
        store.update_assignment_notification_status(uuid4(), email_error="nobody home")

    def test_events_with_failed_notifications(
        self, store: DrawStore, event: Event, pair_event: Event
    ):
        """Only rows whose last attempt failed count; sent and untried rows do not."""
        alice, bob, carol = store.list_participants(event.id)
        ann, ben = store.list_participants(pair_event.id)
        sent, _untried = store.insert_assignments(
            event.id, [(alice.id, bob.id), (bob.id, carol.id)]
        )
        (failed,) = store.insert_assignments(pair_event.id, [(ann.id, ben.id)])
        store.update_assignment_notification_status(sent.id, email_sent_at=datetime.now(UTC))
        store.update_assignment_notification_status(failed.id, email_error="Mailbox full")

        assert store.events_with_failed_notifications() == [pair_event.id]


class TestLookups:
    """Tests for reads."""

    def test_find_assignment_for_giver(self, store: DrawStore, event: Event):
        alice, bob, carol = store.list_participants(event.id)
        store.insert_assignments(event.id, [(alice.id, bob.id)])
        assert store.find_assignment_for_giver(event.id, alice.id).receiver_id == bob.id
        assert store.find_assignment_for_giver(event.id, carol.id) is None

    def test_delete_assignments(self, store: DrawStore, event: Event):
        alice, bob, _ = store.list_participants(event.id)
        store.insert_assignments(event.id, [(alice.id, bob.id), (bob.id, alice.id)])
        assert store.delete_assignments(event.id) == 2
        assert store.delete_assignments(event.id) == 0

    def test_get_event_and_participant(self, store: DrawStore, event: Event):
        participant = store.list_participants(event.id)[0]
        assert store.get_event(event.id).name == "Office Party"
        assert store.get_participant(participant.id).name == "Alice"
        assert store.get_event(uuid4()) is None
