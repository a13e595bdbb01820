"""Draw routes for running, resetting and auditing an event's draw."""
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import JSONResponse
from sqlmodel import Session

from secret_santa.core.database import get_session
from secret_santa.core.dependencies import get_orchestrator
from secret_santa.draw.errors import AlreadyDrawn, InsufficientParticipants, PersistenceFailure
from secret_santa.draw.orchestrator import DrawOrchestrator
from secret_santa.models import Event

router = APIRouter(prefix="/events/{event_id}/draw", tags=["draw"])


def get_event_or_404(event_id: UUID, session: Session) -> Event:
    event = session.get(Event, event_id)
    if not event:
        raise HTTPException(status_code=404, detail="Event not found")
    return event


@router.post("")
def perform_draw(
    event_id: UUID,
    notify: bool = True,
    session: Session = Depends(get_session),
    orchestrator: DrawOrchestrator = Depends(get_orchestrator),
):
    """
    Run the draw for an event.

    Stores one assignment per participant, then emails every giver unless
    notify=false. Returns 400 with fewer than two participants, 409 if the
    draw was already done, and 503 if the assignments could not be stored.
    Email failures do not fail the request; they are reported in
    the "notifications" counts.
    """
    get_event_or_404(event_id, session)

    try:
        result = orchestrator.perform_draw(event_id)
    except InsufficientParticipants as e:
        raise HTTPException(status_code=400, detail=str(e))
    except AlreadyDrawn as e:
        raise HTTPException(status_code=409, detail=str(e))
    except PersistenceFailure as e:
        raise HTTPException(status_code=503, detail=str(e))

    response = result.model_dump()
    if notify:
        response["notifications"] = orchestrator.notify_assignments(event_id).model_dump()
    return response


@router.delete("")
def reset_draw(
    event_id: UUID,
    session: Session = Depends(get_session),
    orchestrator: DrawOrchestrator = Depends(get_orchestrator),
):
    """
    Reset the draw.

    Deletes every assignment of the event so the draw can be run again.
    Succeeds even if the event was never drawn.
    """
    get_event_or_404(event_id, session)
    try:
        result = orchestrator.reset_draw(event_id)
    except PersistenceFailure as e:
        raise HTTPException(status_code=503, detail=str(e))
    return result.model_dump()


@router.get("")
def draw_overview(
    event_id: UUID,
    session: Session = Depends(get_session),
    orchestrator: DrawOrchestrator = Depends(get_orchestrator),
):
    """
    Show the draw state and every pair, for the organizer.

    Each pair includes the giver, the receiver's public profile and the
    status of the assignment email.
    """
    get_event_or_404(event_id, session)
    assignments = orchestrator.list_assignments(event_id)
    return {
        "state": orchestrator.draw_state(event_id).value,
        "assignments": [a.model_dump(mode="json") for a in assignments],
    }


@router.post("/notify")
def notify_assignments(
    event_id: UUID,
    resend: bool = False,
    session: Session = Depends(get_session),
    orchestrator: DrawOrchestrator = Depends(get_orchestrator),
):
    """
    Send (or retry) the assignment emails.

    Only pairs that were not notified yet are sent, unless resend=true.
    Returns the total/succeeded/failed/skipped counts.
    """
    get_event_or_404(event_id, session)
    return orchestrator.notify_assignments(event_id, resend=resend).model_dump()


@router.get("/validate")
def validate_draw(
    event_id: UUID,
    session: Session = Depends(get_session),
    orchestrator: DrawOrchestrator = Depends(get_orchestrator),
):
    """
    Audit the stored draw.

    Returns ok/issues/warnings and a summary with email delivery status.
    Responds 404 when the event has no assignments.
    """
    get_event_or_404(event_id, session)
    report = orchestrator.validate_draw(event_id)
    content = report.model_dump(mode="json")
    if report.summary.assignments == 0:
        return JSONResponse(content, status_code=404)
    return content
