"""Errors raised by the draw workflow.

Structural errors abort the whole operation and reach the caller.
Per-pair notification problems are not raised at all; they are stored
on the assignment row and counted in the notification report.
"""


class DrawError(Exception):
    """Base class for draw workflow errors."""


class InsufficientParticipants(DrawError):
    """Fewer than two participants, nobody to draw against."""

    def __init__(self, count: int):
        self.count = count
        super().__init__(f"At least 2 participants are needed for a draw, got {count}")


class AlreadyDrawn(DrawError):
    """The event already has assignments; it must be reset first."""

    def __init__(self, existing: int):
        self.existing = existing
        super().__init__(
            f"The draw has already been performed for this event ({existing} assignments)"
        )


class PersistenceFailure(DrawError):
    """Writing the assignments failed. Nothing was stored; safe to retry."""


class EventNotFound(DrawError, LookupError):
    """No event with the requested id."""


class NotificationFailure(DrawError):
    """A single assignment email could not be delivered.

    Never raised out of the notification batch; its message is stored
    on the assignment row.
    """


class MissingParticipantReference(NotificationFailure):
    """An assignment points at a participant that no longer exists."""

    def __init__(self, giver_id, receiver_id, missing: str):
        self.giver_id = giver_id
        self.receiver_id = receiver_id
        super().__init__(
            f"Missing participant ({missing}) for assignment "
            f"giver={giver_id}, receiver={receiver_id}"
        )
