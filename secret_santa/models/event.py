"""Event model for Secret Santa gift exchanges.

This module defines the Event model which represents one gift exchange
with its registered participants and the assignments produced by the
draw. Events are created once by an organizer and are read-mostly
afterward.
"""

from datetime import UTC, datetime
from typing import TYPE_CHECKING
from uuid import UUID, uuid4

from sqlmodel import Field, Relationship, SQLModel

if TYPE_CHECKING:
    from secret_santa.models.assignment import Assignment
    from secret_santa.models.participant import Participant


class Event(SQLModel, table=True):
    """A Secret Santa gift exchange.

    Participants register for an event, and the organizer triggers the
    draw once registration is complete. Deleting an event removes its
    participants and assignments with it.

    Attributes:
        id: Unique identifier (UUID).
        name: Event name shown in emails and pages.
        description: Optional free text from the organizer.
        date: When the gifts are exchanged.
        created_at: Creation timestamp.
        updated_at: Last modification timestamp.
        participants: People registered for this event.
        assignments: Giver/receiver pairs from the draw (empty until drawn).
    """
    id: UUID = Field(default_factory=uuid4, primary_key=True)
    name: str = Field(max_length=255)
    description: str | None = None
    date: datetime
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    # Relationships
    participants: list["Participant"] = Relationship(
        back_populates="event",
        sa_relationship_kwargs={
            "cascade": "all, delete-orphan",
            "order_by": "Participant.created_at",
        },
    )
    assignments: list["Assignment"] = Relationship(
        back_populates="event",
        sa_relationship_kwargs={"cascade": "all, delete-orphan"},
    )
