"""Participant model for people registered to an event."""

from datetime import UTC, datetime
from typing import TYPE_CHECKING, Optional
from uuid import UUID, uuid4

from sqlmodel import Field, Relationship, SQLModel

if TYPE_CHECKING:
    from secret_santa.models.event import Event


class Participant(SQLModel, table=True):
    """A person taking part in an event.

    Participants are created when someone registers for an event and are
    updated when they fill in or edit their gift idea. The draw never
    modifies them directly.

    Attributes:
        id: Unique identifier (UUID), unique within the event.
        event_id: Foreign key to the owning Event.
        name: Display name.
        email: Address the assignment email is sent to.
        gift_idea: Optional free text describing what they would like.
        gift_image: Optional URL or path of an image illustrating the idea.
        event: Reference to the owning Event object.
    """
    id: UUID = Field(default_factory=uuid4, primary_key=True)
    event_id: UUID = Field(foreign_key="event.id", ondelete="CASCADE", index=True)
    name: str = Field(max_length=255)
    email: str = Field(max_length=255)
    gift_idea: str | None = None
    gift_image: str | None = Field(default=None, max_length=500)
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    # Relationship
    event: Optional["Event"] = Relationship(back_populates="participants")
