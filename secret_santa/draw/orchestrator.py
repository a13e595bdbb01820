"""Draw workflow: drawing, notifying, resetting and looking up assignments.

An event moves through NOT_DRAWN -> DRAWING -> DRAWN, and back to
NOT_DRAWN through an explicit reset. The draw itself is all-or-nothing.
Notification is best effort: each pair is sent and recorded on its own,
and one failed email never undoes the others or the draw.
"""
import logging
import math
import random
import threading
from collections.abc import Iterator
from concurrent.futures import Future, ThreadPoolExecutor, as_completed
from contextlib import contextmanager
from datetime import UTC, datetime
from enum import Enum
from uuid import UUID

from pydantic import BaseModel
from sqlalchemy.exc import SQLAlchemyError

from secret_santa.draw.engine import assign
from secret_santa.draw.errors import (
    AlreadyDrawn,
    EventNotFound,
    InsufficientParticipants,
    MissingParticipantReference,
    NotificationFailure,
    PersistenceFailure,
)
from secret_santa.draw.store import DrawStore
from secret_santa.draw.validator import ValidationReport, validate_draw
from secret_santa.models import Assignment, Event, Participant
from secret_santa.notify.messages import assignment_email
from secret_santa.notify.sender import Notifier, SendResult

logger = logging.getLogger(__name__)


class DrawState(str, Enum):
    NOT_DRAWN = "not_drawn"
    DRAWING = "drawing"
    DRAWN = "drawn"


class DrawResult(BaseModel):
    success: bool = True
    participant_count: int


class ResetResult(BaseModel):
    success: bool = True
    deleted: int


class NotificationReport(BaseModel):
    """Aggregate outcome of one notification batch.

    total counts the pairs attempted in this batch; skipped counts the
    pairs left alone because they were already notified.
    """
    total: int = 0
    succeeded: int = 0
    failed: int = 0
    skipped: int = 0


class ReceiverProfile(BaseModel):
    """What a giver is allowed to see about the person they drew."""
    id: UUID
    name: str
    gift_idea: str | None = None
    gift_image: str | None = None

    @classmethod
    def from_participant(cls, participant: Participant) -> "ReceiverProfile":
        return cls(
            id=participant.id,
            name=participant.name,
            gift_idea=participant.gift_idea,
            gift_image=participant.gift_image,
        )


class AssignmentView(BaseModel):
    """One pair as shown to the organizer."""
    id: UUID
    giver_id: UUID
    giver_name: str | None
    giver_email: str | None
    receiver: ReceiverProfile | None
    notification_status: str
    email_sent_at: datetime | None = None
    email_error: str | None = None


class _EventLock:
    def __init__(self):
        self.lock = threading.Lock()
        self.users = 0
        self.purpose: str | None = None


class EventLocks:
    """
    One mutex per event, so two operations on the same event never overlap.

    An event's entry only lives while somebody holds or waits for its lock.
    The holder states what it is doing (e.g. "draw" or "reset") so callers
    can tell a draw in progress from other work.
    """

    def __init__(self):
        self._guard = threading.Lock()
        self._locks: dict[UUID, _EventLock] = {}

    @contextmanager
    def for_event(self, event_id: UUID, purpose: str = "draw") -> Iterator[None]:
        with self._guard:
            entry = self._locks.get(event_id)
            if entry is None:
                entry = self._locks[event_id] = _EventLock()
            entry.users += 1
        try:
            with entry.lock:
                entry.purpose = purpose
                try:
                    yield
                finally:
                    entry.purpose = None
        finally:
            with self._guard:
                entry.users -= 1
                if not entry.users:
                    del self._locks[event_id]

    def held_for(self, event_id: UUID) -> str | None:
        """What the current holder of the event's lock is doing, or None."""
        with self._guard:
            entry = self._locks.get(event_id)
            return entry.purpose if entry else None

    def is_locked(self, event_id: UUID) -> bool:
        return self.held_for(event_id) is not None

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)


# Shared by every orchestrator of this process. Across processes the
# unique constraints on Assignment reject the second insert.
draw_locks = EventLocks()
# Notification batches get their own locks, so a slow batch never blocks
# a draw or reset of the same event.
notification_locks = EventLocks()


class DrawOrchestrator:
    """Runs the draw workflow on top of a store and a notifier."""

    def __init__(
        self,
        store: DrawStore,
        notifier: Notifier,
        *,
        timeout: float = 30.0,
        max_workers: int = 8,
        base_url: str = "",
        locks: EventLocks | None = None,
        notify_locks: EventLocks | None = None,
        rng: random.Random | None = None,
    ):
        self.store = store
        self.notifier = notifier
        self.timeout = timeout
        self.max_workers = max(1, max_workers)
        self.base_url = base_url
        self.locks = locks if locks is not None else draw_locks
        self.notify_locks = notify_locks if notify_locks is not None else notification_locks
        self.rng = rng

    def draw_state(self, event_id: UUID) -> DrawState:
        """DRAWING only while a draw holds the event's lock; a reset in progress is not a draw."""
        if self.locks.held_for(event_id) == "draw":
            return DrawState.DRAWING
        if self.store.count_assignments(event_id):
            return DrawState.DRAWN
        return DrawState.NOT_DRAWN

    def perform_draw(self, event_id: UUID) -> DrawResult:
        """
        Draw and store the assignments of an event.

        The participant check, the "already drawn" check and the insert
        run under the event's lock, so concurrent calls for one event
        are serialized and every caller but the first gets AlreadyDrawn.

        Raises:
            InsufficientParticipants: Fewer than two participants.
            AlreadyDrawn: The event already has assignments.
            PersistenceFailure: The assignments could not be stored;
                nothing was written.
        """
        with self.locks.for_event(event_id):
            participants = self.store.list_participants(event_id)
            if len(participants) < 2:
                raise InsufficientParticipants(len(participants))

            existing = self.store.count_assignments(event_id)
            if existing:
                raise AlreadyDrawn(existing)

            pairs = assign([p.id for p in participants], rng=self.rng)
            try:
                self.store.insert_assignments(event_id, pairs)
            except PersistenceFailure:
                # Another process may have won the race; its rows are what
                # broke our unique constraints.
                existing = self._count_assignments_or_zero(event_id)
                if existing:
                    raise AlreadyDrawn(existing) from None
                raise

        logger.info(f"Draw completed for event {event_id} with {len(participants)} participants")
        return DrawResult(participant_count=len(participants))

    def _count_assignments_or_zero(self, event_id: UUID) -> int:
        try:
            return self.store.count_assignments(event_id)
        except SQLAlchemyError:
            return 0

    def reset_draw(self, event_id: UUID) -> ResetResult:
        """Delete the event's assignments. Resetting an undrawn event is a no-op."""
        with self.locks.for_event(event_id, purpose="reset"):
            deleted = self.store.delete_assignments(event_id)
        logger.info(f"Draw reset for event {event_id}, {deleted} assignments deleted")
        return ResetResult(deleted=deleted)

    def notify_assignments(
        self, event_id: UUID, resend: bool = False, failed_only: bool = False
    ) -> NotificationReport:
        """
        Email every giver the name of their receiver.

        Sends run in parallel, one per pair, and each outcome is written to
        that pair's row: the sent timestamp and message id on success, the
        error text on failure. Pairs already notified are skipped unless
        resend is set, so the call can be repeated after partial failures.
        With failed_only, only pairs whose last attempt failed are sent;
        pairs nobody tried to notify yet are left alone.

        Batches for the same event run one after the other, so a pair is
        never emailed twice by overlapping calls. Sends still running when
        the batch deadline expires are recorded as failed and abandoned.

        Raises:
            EventNotFound: No such event.
        """
        event = self.store.get_event(event_id)
        if event is None:
            raise EventNotFound(f"Event {event_id} not found")

        with self.notify_locks.for_event(event_id, purpose="notify"):
            return self._notify(event, resend, failed_only)

    def _notify(self, event: Event, resend: bool, failed_only: bool) -> NotificationReport:
        assignments = self.store.list_assignments(event.id)
        participants = {p.id: p for p in self.store.list_participants(event.id)}
        if resend:
            pending = assignments
        elif failed_only:
            pending = [a for a in assignments if a.email_sent_at is None and a.email_error]
        else:
            pending = [a for a in assignments if a.email_sent_at is None]
        report = NotificationReport(total=len(pending), skipped=len(assignments) - len(pending))
        if not pending:
            return report

        logger.info(f"Sending {len(pending)} assignment emails for event {event.name}")

        workers = min(self.max_workers, len(pending))
        executor = ThreadPoolExecutor(max_workers=workers, thread_name_prefix="notify")
        jobs: dict[Future, Assignment] = {}
        try:
            for assignment in pending:
                giver = participants.get(assignment.giver_id)
                receiver = participants.get(assignment.receiver_id)
                if giver is None or receiver is None:
                    missing = "giver" if giver is None else "receiver"
                    error = MissingParticipantReference(
                        assignment.giver_id, assignment.receiver_id, missing
                    )
                    logger.error(str(error))
                    self._record(assignment, SendResult(success=False, error=str(error)), report)
                    continue

                subject, body = assignment_email(
                    giver.name,
                    event.name,
                    receiver.name,
                    receiver.gift_idea,
                    receiver.gift_image,
                    base_url=self.base_url,
                )
                jobs[executor.submit(self._send, giver.email, subject, body)] = assignment

            self._collect(jobs, report, deadline=self.timeout * math.ceil(len(jobs) / workers))
        finally:
            executor.shutdown(wait=False, cancel_futures=True)

        logger.info(
            f"Assignment emails for event {event.name}: {report.succeeded}/{report.total} sent"
        )
        return report

    def _send(self, to: str, subject: str, body: str) -> SendResult:
        try:
            return self.notifier.send(to, subject, body)
        except Exception as e:
            logger.exception(f"Notifier crashed while sending to {to}")
            return SendResult(success=False, error=str(e) or e.__class__.__name__)

    def _collect(
        self, jobs: dict[Future, Assignment], report: NotificationReport, deadline: float
    ) -> None:
        """Record results as sends finish; time out whatever is left at the deadline."""
        if not jobs:
            return
        recorded: set[Future] = set()
        try:
            for future in as_completed(jobs, timeout=deadline):
                self._record(jobs[future], future.result(), report)
                recorded.add(future)
        except TimeoutError:
            for future, assignment in jobs.items():
                if future in recorded:
                    continue
                if future.done():
                    self._record(assignment, future.result(), report)
                    continue
                future.cancel()
                error = NotificationFailure(
                    f"Timed out after {deadline:g}s waiting for the mail server"
                )
                logger.error(f"Assignment {assignment.id}: {error}")
                self._record(assignment, SendResult(success=False, error=str(error)), report)

    def _record(
        self, assignment: Assignment, result: SendResult, report: NotificationReport
    ) -> None:
        # The report follows what happened to the email, even when storing
        # the outcome fails; the other pairs still get recorded.
        if result.success:
            report.succeeded += 1
            changes = {
                "email_sent_at": datetime.now(UTC),
                "email_error": None,
                "email_message_id": result.external_id,
            }
        else:
            report.failed += 1
            changes = {"email_error": result.error or "Unknown error"}
        try:
            self.store.update_assignment_notification_status(assignment.id, **changes)
        except SQLAlchemyError:
            logger.exception(f"Could not store notification status of assignment {assignment.id}")

    def get_assignment_for(self, participant_id: UUID, event_id: UUID) -> ReceiverProfile | None:
        """The receiver drawn by participant_id, or None before the draw."""
        assignment = self.store.find_assignment_for_giver(event_id, participant_id)
        if assignment is None:
            return None
        receiver = self.store.get_participant(assignment.receiver_id)
        if receiver is None:
            logger.error(
                f"Assignment {assignment.id} points at missing receiver {assignment.receiver_id}"
            )
            return None
        return ReceiverProfile.from_participant(receiver)

    def list_assignments(self, event_id: UUID) -> list[AssignmentView]:
        """All pairs of the event with giver and receiver details, for the organizer."""
        participants = {p.id: p for p in self.store.list_participants(event_id)}
        views = []
        for assignment in self.store.list_assignments(event_id):
            giver = participants.get(assignment.giver_id)
            receiver = participants.get(assignment.receiver_id)
            views.append(
                AssignmentView(
                    id=assignment.id,
                    giver_id=assignment.giver_id,
                    giver_name=giver.name if giver else None,
                    giver_email=giver.email if giver else None,
                    receiver=ReceiverProfile.from_participant(receiver) if receiver else None,
                    notification_status=assignment.notification_status,
                    email_sent_at=assignment.email_sent_at,
                    email_error=assignment.email_error,
                )
            )
        return views

    def validate_draw(self, event_id: UUID) -> ValidationReport:
        return validate_draw(self.store, event_id)
