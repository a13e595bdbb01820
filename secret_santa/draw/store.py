"""Persistence for the draw workflow.

DrawStore is the only place the draw code touches the database. Every
method opens its own short-lived session on the shared engine, the same
way the background jobs do, so callers can use one store from several
threads.
"""
import logging
from collections.abc import Iterable
from uuid import UUID

from sqlalchemy import func
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, select

from secret_santa.draw.errors import PersistenceFailure
from secret_santa.models import Assignment, Event, Participant

logger = logging.getLogger(__name__)

NOTIFICATION_FIELDS = frozenset({"email_sent_at", "email_error", "email_message_id"})


class DrawStore:
    """Reads and writes events, participants and assignments."""

    def __init__(self, engine: Engine):
        self.engine = engine

    def get_event(self, event_id: UUID) -> Event | None:
        with Session(self.engine) as session:
            return session.get(Event, event_id)

    def get_participant(self, participant_id: UUID) -> Participant | None:
        with Session(self.engine) as session:
            return session.get(Participant, participant_id)

    def list_participants(self, event_id: UUID) -> list[Participant]:
        with Session(self.engine) as session:
            statement = (
                select(Participant)
                .where(Participant.event_id == event_id)
                .order_by(Participant.created_at)
            )
            return list(session.exec(statement).all())

    def list_assignments(self, event_id: UUID) -> list[Assignment]:
        with Session(self.engine) as session:
            statement = (
                select(Assignment)
                .where(Assignment.event_id == event_id)
                .order_by(Assignment.created_at)
            )
            return list(session.exec(statement).all())

    def count_assignments(self, event_id: UUID) -> int:
        with Session(self.engine) as session:
            statement = select(func.count()).select_from(Assignment).where(
                Assignment.event_id == event_id
            )
            return session.exec(statement).one()

    def find_assignment_for_giver(self, event_id: UUID, giver_id: UUID) -> Assignment | None:
        with Session(self.engine) as session:
            statement = (
                select(Assignment)
                .where(Assignment.event_id == event_id)
                .where(Assignment.giver_id == giver_id)
            )
            return session.exec(statement).first()

    def insert_assignments(
        self, event_id: UUID, pairs: Iterable[tuple[UUID, UUID]]
    ) -> list[Assignment]:
        """
        Store all pairs of a draw in one transaction.

        Either every pair is committed or none is. Any database error
        (constraint violation, lost connection) rolls the transaction
        back and is raised as PersistenceFailure.
        """
        with Session(self.engine) as session:
            rows = [
                Assignment(event_id=event_id, giver_id=giver_id, receiver_id=receiver_id)
                for giver_id, receiver_id in pairs
            ]
            try:
                session.add_all(rows)
                session.commit()
            except SQLAlchemyError as e:
                session.rollback()
                logger.error(f"Failed to store assignments for event {event_id}: {e}")
                raise PersistenceFailure(f"Could not store assignments: {e}") from e

            for row in rows:
                session.refresh(row)
            return rows

    def delete_assignments(self, event_id: UUID) -> int:
        """Delete every assignment of the event. Returns the number removed."""
        with Session(self.engine) as session:
            statement = select(Assignment).where(Assignment.event_id == event_id)
            assignments = session.exec(statement).all()
            try:
                for assignment in assignments:
                    session.delete(assignment)
                session.commit()
            except SQLAlchemyError as e:
                session.rollback()
                logger.error(f"Failed to delete assignments for event {event_id}: {e}")
                raise PersistenceFailure(f"Could not delete assignments: {e}") from e
            return len(assignments)

    def update_assignment_notification_status(self, assignment_id: UUID, **changes) -> None:
        """
        Update the notification bookkeeping of one assignment.

        Only the fields passed are written; the others keep their value.
        Accepted fields: email_sent_at, email_error, email_message_id.
        """
        unknown = set(changes) - NOTIFICATION_FIELDS
        if unknown:
            raise ValueError(f"Not a notification field: {', '.join(sorted(unknown))}")

        with Session(self.engine) as session:
            assignment = session.get(Assignment, assignment_id)
            if assignment is None:
                logger.warning(f"Assignment {assignment_id} vanished before its status was stored")
                return
            for field, value in changes.items():
                setattr(assignment, field, value)
            session.add(assignment)
            session.commit()

    def events_with_failed_notifications(self) -> list[UUID]:
        """Ids of events with assignments whose last email attempt failed."""
        with Session(self.engine) as session:
            statement = (
                select(Assignment.event_id)
                .where(Assignment.email_sent_at == None)  # noqa: E711
                .where(Assignment.email_error != None)  # noqa: E711
                .distinct()
            )
            return list(session.exec(statement).all())
