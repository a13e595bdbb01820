from secret_santa.models.assignment import Assignment
from secret_santa.models.event import Event
from secret_santa.models.participant import Participant

__all__ = ["Event", "Participant", "Assignment"]
