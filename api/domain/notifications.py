# SPDX-License-Identifier: Apache-2.0

"""
Notification domain logic for workflow side effects.

This module contains pure functions that turn domain events into mailbox
drafts: who is notified, with which type tag, and which status-specific
message template.
"""

from typing import List, Dict, Optional
from dataclasses import dataclass, field
from models.enums import (
    AdoptionStatus,
    MedicalRecordStatus,
    NotificationType,
    RelatedEntityType,
    UserRole,
    VisitType,
)
from domain.events import (
    DomainEvent,
    ReportAssigned,
    ReportStatusChanged,
    AdoptionSubmitted,
    AdoptionStatusChanged,
    MedicalRecordCreated,
    MedicalRecordStatusChanged,
)


TITLE_MAX_LENGTH = 100
BODY_MAX_LENGTH = 500

ADOPTION_STATUS_BODIES: Dict[str, str] = {
    AdoptionStatus.UNDER_REVIEW: "Your adoption application for {animal} is being reviewed",
    AdoptionStatus.APPROVED: "Your adoption application for {animal} has been approved!",
    AdoptionStatus.REJECTED: "Your adoption application for {animal} has been rejected",
    AdoptionStatus.COMPLETED: "Congratulations! The adoption of {animal} is complete",
}


@dataclass
class NotificationDraft:
    """Mailbox entry to be created by the dispatcher."""
    user_id: str
    type: NotificationType
    title: str
    body: str
    related_id: Optional[str] = None
    related_type: Optional[RelatedEntityType] = None
    metadata: Dict[str, str] = field(default_factory=dict)

    def __post_init__(self):
        self.title = truncate(self.title, TITLE_MAX_LENGTH)
        self.body = truncate(self.body, BODY_MAX_LENGTH)


def truncate(text: str, limit: int) -> str:
    """Clip text to a stored field limit, marking the cut with an ellipsis."""
    if len(text) <= limit:
        return text
    return text[:limit - 3].rstrip() + "..."


def _report_assigned(event: ReportAssigned) -> List[NotificationDraft]:
    if event.assignee_role == UserRole.VETERINARY:
        title = "New veterinary case"
        body = "A new medical case has been assigned to you"
    else:
        title = "New case assigned"
        body = f"A new {event.report.animal_type} case has been assigned to you"

    return [NotificationDraft(
        user_id=event.assignee_id,
        type=NotificationType.NEW_CASE,
        title=title,
        body=body,
        related_id=event.report.id,
        related_type=RelatedEntityType.REPORT,
        metadata={"urgencyLevel": str(event.report.urgency_level)}
    )]


def _report_status_changed(event: ReportStatusChanged) -> List[NotificationDraft]:
    return [NotificationDraft(
        user_id=event.report.reporter_id,
        type=NotificationType.REPORT_UPDATE,
        title="Report update",
        body=f"Your report status changed to: {event.new_status}",
        related_id=event.report.id,
        related_type=RelatedEntityType.REPORT,
        metadata={"previousStatus": event.previous_status, "status": event.new_status}
    )]


def _adoption_submitted(event: AdoptionSubmitted) -> List[NotificationDraft]:
    return [NotificationDraft(
        user_id=event.adoption.organization_id,
        type=NotificationType.ADOPTION_UPDATE,
        title="New adoption application",
        body=f"{event.adopter_name} has applied to adopt {event.animal_name}",
        related_id=event.adoption.id,
        related_type=RelatedEntityType.ADOPTION,
        metadata={"animalId": event.adoption.animal_id}
    )]


def _adoption_status_changed(event: AdoptionStatusChanged) -> List[NotificationDraft]:
    adoption = event.adoption
    animal = event.animal_name or "the animal"
    metadata = {"previousStatus": event.previous_status, "status": event.new_status}

    if event.new_status == AdoptionStatus.CANCELLED and event.cancelled_by_adopter:
        return [NotificationDraft(
            user_id=adoption.organization_id,
            type=NotificationType.ADOPTION_UPDATE,
            title="Adoption cancelled",
            body=f"{event.actor_name} has cancelled their application for {animal}",
            related_id=adoption.id,
            related_type=RelatedEntityType.ADOPTION,
            metadata=metadata
        )]

    if event.new_status == AdoptionStatus.CANCELLED:
        title = "Adoption cancelled"
        body = f"Your adoption application for {animal} has been cancelled"
    else:
        title = "Adoption update"
        template = ADOPTION_STATUS_BODIES.get(
            event.new_status, "Your adoption application for {animal} has been updated"
        )
        body = template.format(animal=animal)
        if event.new_status == AdoptionStatus.REJECTED and adoption.rejection_reason:
            body = f"{body}. Reason: {adoption.rejection_reason}"

    return [NotificationDraft(
        user_id=adoption.adopter_id,
        type=NotificationType.ADOPTION_UPDATE,
        title=title,
        body=body,
        related_id=adoption.id,
        related_type=RelatedEntityType.ADOPTION,
        metadata=metadata
    )]


def _medical_record_created(event: MedicalRecordCreated) -> List[NotificationDraft]:
    return [NotificationDraft(
        user_id=event.organization_id,
        type=NotificationType.MEDICAL_UPDATE,
        title="New medical record",
        body=f"A new medical record was created for {event.animal_name}",
        related_id=event.record.id,
        related_type=RelatedEntityType.MEDICAL_RECORD,
        metadata={"animalId": event.record.animal_id, "visitType": str(event.record.visit_type)}
    )]


def _medical_record_status_changed(event: MedicalRecordStatusChanged) -> List[NotificationDraft]:
    if event.new_status != MedicalRecordStatus.COMPLETED or not event.organization_id:
        return []

    animal = event.animal_name or "the animal"
    if event.record.visit_type == VisitType.DISCHARGE:
        title = "Animal discharged"
        body = f"{animal} has been discharged from the clinic"
    else:
        title = "Medical record completed"
        body = f"The medical record for {animal} has been completed"

    return [NotificationDraft(
        user_id=event.organization_id,
        type=NotificationType.MEDICAL_UPDATE,
        title=title,
        body=body,
        related_id=event.record.id,
        related_type=RelatedEntityType.MEDICAL_RECORD,
        metadata={"animalId": event.record.animal_id, "status": event.new_status}
    )]


_BUILDERS = {
    ReportAssigned: _report_assigned,
    ReportStatusChanged: _report_status_changed,
    AdoptionSubmitted: _adoption_submitted,
    AdoptionStatusChanged: _adoption_status_changed,
    MedicalRecordCreated: _medical_record_created,
    MedicalRecordStatusChanged: _medical_record_status_changed,
}


def build_notifications(event: DomainEvent) -> List[NotificationDraft]:
    """
    Build the mailbox drafts implied by a domain event.

    Args:
        event: Event published by the workflow engine

    Returns:
        Drafts to create; empty for events with no recipient
    """
    builder = _BUILDERS.get(type(event))
    if builder is None:
        return []
    return builder(event)
