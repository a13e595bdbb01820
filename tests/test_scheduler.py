"""Tests for the notification retry job."""

from secret_santa.core import scheduler as scheduler_module
from secret_santa.core.scheduler import retry_notifications, shutdown_scheduler, start_scheduler
from secret_santa.draw.orchestrator import DrawOrchestrator, EventLocks
from secret_santa.draw.store import DrawStore
from secret_santa.models import Event


def _orchestrator(store: DrawStore, notifier) -> DrawOrchestrator:
    return DrawOrchestrator(
        store,
        notifier,
        timeout=5.0,
        max_workers=2,
        locks=EventLocks(),
        notify_locks=EventLocks(),
    )


class TestRetryNotifications:
    """Tests for resending emails that did not go out."""

    def test_retries_failed_emails(self, make_notifier, store: DrawStore, event: Event):
        failing = _orchestrator(store, make_notifier(fail_for={"bob@example.com"}))
        failing.perform_draw(event.id)
        failing.notify_assignments(event.id)

        notifier = make_notifier()
        stats = retry_notifications(_orchestrator(store, notifier))

        assert stats == {"events": 1, "succeeded": 1, "failed": 0}
        assert notifier.recipients() == {"bob@example.com"}
        assert store.events_with_failed_notifications() == []

    def test_draw_without_notify_is_left_alone(
        self, make_notifier, store: DrawStore, event: Event
    ):
        """Pairs nobody tried to email are not sent by the retry job."""
        notifier = make_notifier()
        orchestrator = _orchestrator(store, notifier)
        orchestrator.perform_draw(event.id)

        stats = retry_notifications(orchestrator)

        assert stats == {"events": 0, "succeeded": 0, "failed": 0}
        assert notifier.sent == []
        assert all(a.notification_status == "pending" for a in store.list_assignments(event.id))

    def test_only_failed_pairs_are_retried(
        self, make_notifier, store: DrawStore, event: Event
    ):
        """A failed pair is retried without touching an untried pair of the same event."""
        orchestrator = _orchestrator(store, make_notifier())
        orchestrator.perform_draw(event.id)
        failed, untried, _ = store.list_assignments(event.id)
        store.update_assignment_notification_status(failed.id, email_error="Mailbox full")

        notifier = make_notifier()
        stats = retry_notifications(_orchestrator(store, notifier))

        assert stats == {"events": 1, "succeeded": 1, "failed": 0}
        assert len(notifier.sent) == 1
        rows = {a.id: a for a in store.list_assignments(event.id)}
        assert rows[failed.id].notification_status == "sent"
        assert rows[untried.id].notification_status == "pending"

    def test_still_failing(self, make_notifier, store: DrawStore, event: Event):
        notifier = make_notifier(fail_for={"carol@example.com"})
        orchestrator = _orchestrator(store, notifier)
        orchestrator.perform_draw(event.id)
        orchestrator.notify_assignments(event.id)

        stats = retry_notifications(orchestrator)

        assert stats == {"events": 1, "succeeded": 0, "failed": 1}
        assert store.events_with_failed_notifications() == [event.id]

    def test_skips_event_with_batch_in_progress(
        self, make_notifier, store: DrawStore, event: Event
    ):
        failing = _orchestrator(store, make_notifier(fail_for={"alice@example.com"}))
        failing.perform_draw(event.id)
        failing.notify_assignments(event.id)

        notifier = make_notifier()
        orchestrator = _orchestrator(store, notifier)
        with orchestrator.notify_locks.for_event(event.id, purpose="notify"):
            stats = retry_notifications(orchestrator)

        assert stats == {"events": 0, "succeeded": 0, "failed": 0}
        assert notifier.sent == []

    def test_nothing_to_do(self, make_notifier, store: DrawStore, event: Event):
        notifier = make_notifier()
        stats = retry_notifications(_orchestrator(store, notifier))
        assert stats == {"events": 0, "succeeded": 0, "failed": 0}
        assert notifier.sent == []


class TestSchedulerLifecycle:
    """Tests for starting and stopping the scheduler."""

    def test_disabled(self, monkeypatch):
        monkeypatch.setattr(scheduler_module.settings, "notification_retry_enabled", False)
        start_scheduler()
        assert scheduler_module.scheduler.get_job("notification_retry") is None
        assert not scheduler_module.scheduler.running

    def test_shutdown_when_not_running(self):
        shutdown_scheduler()
        assert not scheduler_module.scheduler.running
