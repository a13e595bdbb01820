"""Assignment model for the result of a draw.

This module defines the Assignment model which records who gives a gift
to whom within an event, together with the bookkeeping of the email
that tells the giver about it. Assignments are written in bulk by a
draw, updated only by the notification step, and deleted in bulk by a
reset.
"""

from datetime import UTC, datetime
from typing import TYPE_CHECKING, Optional
from uuid import UUID, uuid4

from sqlalchemy import UniqueConstraint
from sqlmodel import Field, Relationship, SQLModel

if TYPE_CHECKING:
    from secret_santa.models.event import Event


class Assignment(SQLModel, table=True):
    """One giver -> receiver pair of an event's draw.

    The unique constraints make the database reject a second set of
    pairs for the same event, whichever process inserts it.

    Attributes:
        id: Unique identifier (UUID).
        event_id: Foreign key to the Event that was drawn.
        giver_id: Participant who buys the gift.
        receiver_id: Participant who gets the gift.
        created_at: When the draw produced this pair.
        email_sent_at: When the giver was successfully notified.
            None until a send succeeds.
        email_error: Description of the last failed notification
            attempt. None unless the most recent attempt failed.
        email_message_id: Identifier returned by the mail transport,
            kept for auditing.
        event: Reference to the parent Event object.
    """
    __table_args__ = (
        UniqueConstraint("event_id", "giver_id", name="uq_assignment_event_giver"),
        UniqueConstraint("event_id", "receiver_id", name="uq_assignment_event_receiver"),
    )

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    event_id: UUID = Field(foreign_key="event.id", ondelete="CASCADE", index=True)
    giver_id: UUID = Field(foreign_key="participant.id", ondelete="CASCADE")
    receiver_id: UUID = Field(foreign_key="participant.id", ondelete="CASCADE")
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    # Notification bookkeeping
    email_sent_at: datetime | None = None
    email_error: str | None = None
    email_message_id: str | None = None

    # Relationship
    event: Optional["Event"] = Relationship(back_populates="assignments")

    @property
    def notification_status(self) -> str:
        """One of "sent", "failed" or "pending"."""
        if self.email_sent_at is not None:
            return "sent"
        if self.email_error is not None:
            return "failed"
        return "pending"
