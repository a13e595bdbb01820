"""Participant routes for looking up who someone has to gift."""
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException

from secret_santa.core.dependencies import get_orchestrator
from secret_santa.draw.orchestrator import DrawOrchestrator

router = APIRouter(prefix="/participants", tags=["participants"])


@router.get("/{participant_id}/assignment")
def participant_assignment(
    participant_id: UUID,
    event_id: UUID,
    orchestrator: DrawOrchestrator = Depends(get_orchestrator),
):
    """
    Get the person this participant gives a gift to.

    Returns the receiver's name, gift idea and gift image. Returns 404
    before the draw or if the participant is not part of it.
    """
    receiver = orchestrator.get_assignment_for(participant_id, event_id)
    if receiver is None:
        raise HTTPException(status_code=404, detail="No assignment found for this participant")
    return {"receiver": receiver.model_dump(mode="json")}
