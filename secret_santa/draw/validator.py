"""Read-only audit of a drawn event.

Checks that the stored assignments still form a valid draw and
summarizes where the notification emails stand. Hard problems go into
``issues`` and make ``ok`` false. Reciprocal pairs and unsent emails
are only reported as ``warnings``: a two-person event always has a
reciprocal pair, and emails can be retried.
"""
import logging
from collections import Counter
from uuid import UUID

from pydantic import BaseModel, Field

from secret_santa.models import Participant

logger = logging.getLogger(__name__)


class PersonRef(BaseModel):
    id: UUID
    name: str
    email: str
    count: int | None = None


class ReciprocalPair(BaseModel):
    giver_id: UUID
    receiver_id: UUID
    giver_name: str
    receiver_name: str


class FailedEmail(BaseModel):
    assignment_id: UUID
    giver_name: str
    giver_email: str
    error: str
    message_id: str | None = None


class EmailSummary(BaseModel):
    sent: int = 0
    failed: int = 0
    pending: int = 0
    failed_details: list[FailedEmail] = Field(default_factory=list)


class ValidationSummary(BaseModel):
    participants: int = 0
    assignments: int = 0
    self_assignments: int = 0
    orphaned_assignments: list[UUID] = Field(default_factory=list)
    unassigned_givers: list[PersonRef] = Field(default_factory=list)
    givers_multi: list[PersonRef] = Field(default_factory=list)
    receivers_missing: list[PersonRef] = Field(default_factory=list)
    receivers_multi: list[PersonRef] = Field(default_factory=list)
    reciprocal_pairs: list[ReciprocalPair] = Field(default_factory=list)
    emails: EmailSummary = Field(default_factory=EmailSummary)


class ValidationReport(BaseModel):
    ok: bool
    issues: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
    summary: ValidationSummary = Field(default_factory=ValidationSummary)


def _ref(participant: Participant, count: int | None = None) -> PersonRef:
    return PersonRef(id=participant.id, name=participant.name, email=participant.email, count=count)


def validate_draw(store, event_id: UUID) -> ValidationReport:
    """
    Audit the persisted draw of an event.

    Args:
        store: A DrawStore (anything with list_participants/list_assignments).
        event_id: Event to audit.

    Returns:
        ValidationReport. ok is False when there are no assignments or
        any structural invariant is broken.
    """
    participants = store.list_participants(event_id)
    assignments = store.list_assignments(event_id)

    summary = ValidationSummary(participants=len(participants), assignments=len(assignments))
    if not assignments:
        return ValidationReport(
            ok=False, issues=["No assignments found for this event."], summary=summary
        )

    people = {p.id: p for p in participants}
    issues: list[str] = []
    warnings: list[str] = []

    if len(assignments) != len(participants):
        issues.append(
            f"{len(assignments)} assignments for {len(participants)} participants."
        )

    giver_counts = Counter(a.giver_id for a in assignments)
    receiver_counts = Counter(a.receiver_id for a in assignments)
    giver_to_receiver = {a.giver_id: a.receiver_id for a in assignments}

    summary.self_assignments = sum(1 for a in assignments if a.giver_id == a.receiver_id)
    if summary.self_assignments:
        issues.append(f"{summary.self_assignments} participant(s) drew themselves.")

    summary.orphaned_assignments = [
        a.id for a in assignments if a.giver_id not in people or a.receiver_id not in people
    ]
    if summary.orphaned_assignments:
        issues.append(
            f"{len(summary.orphaned_assignments)} assignment(s) reference a participant "
            "that is not in this event."
        )

    summary.unassigned_givers = [_ref(p) for p in participants if p.id not in giver_counts]
    if summary.unassigned_givers:
        issues.append("Some participants have no one to give a gift to.")

    summary.givers_multi = [
        _ref(p, giver_counts[p.id]) for p in participants if giver_counts[p.id] > 1
    ]
    if summary.givers_multi:
        issues.append("Some participants give more than one gift.")

    summary.receivers_missing = [_ref(p) for p in participants if p.id not in receiver_counts]
    if summary.receivers_missing:
        issues.append("Some participants receive no gift.")

    summary.receivers_multi = [
        _ref(p, receiver_counts[p.id]) for p in participants if receiver_counts[p.id] > 1
    ]
    if summary.receivers_multi:
        issues.append("Some participants receive more than one gift.")

    for giver, receiver in giver_to_receiver.items():
        reciprocal = giver != receiver and giver_to_receiver.get(receiver) == giver
        if reciprocal and str(giver) < str(receiver):
            summary.reciprocal_pairs.append(
                ReciprocalPair(
                    giver_id=giver,
                    receiver_id=receiver,
                    giver_name=people[giver].name if giver in people else str(giver),
                    receiver_name=people[receiver].name if receiver in people else str(receiver),
                )
            )
    if summary.reciprocal_pairs:
        if len(participants) == 2:
            warnings.append("Two participants always draw each other (reciprocal pair).")
        else:
            warnings.append("Reciprocal pairs detected (A gives to B and B gives to A).")

    emails = summary.emails
    for a in assignments:
        status = a.notification_status
        if status == "sent":
            emails.sent += 1
        elif status == "failed":
            emails.failed += 1
            giver = people.get(a.giver_id)
            emails.failed_details.append(
                FailedEmail(
                    assignment_id=a.id,
                    giver_name=giver.name if giver else str(a.giver_id),
                    giver_email=giver.email if giver else "unknown",
                    error=a.email_error,
                    message_id=a.email_message_id,
                )
            )
        else:
            emails.pending += 1
    if emails.failed:
        warnings.append(f"{emails.failed} email(s) could not be sent.")
    if emails.pending:
        warnings.append(f"{emails.pending} email(s) are waiting to be sent.")

    if issues:
        logger.warning(f"Draw validation for event {event_id} found issues: {issues}")

    return ValidationReport(ok=not issues, issues=issues, warnings=warnings, summary=summary)
