# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Workflow state machines for reports, animals, adoptions and medical records.

Each entity status is a closed enum with an explicit transition table. The
functions here are pure: they validate a requested move and compute the field
changes it implies, leaving persistence and side effects to the workflow
service.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, FrozenSet, List, Mapping, Optional

from models.entities import Report, Animal, Adoption, MedicalRecord
from models.enums import (
    ReportStatus,
    AnimalStatus,
    AdoptionStatus,
    MedicalRecordStatus,
    VisitType,
)


REPORT_TRANSITIONS: Mapping[str, FrozenSet[str]] = {
    ReportStatus.PENDING: frozenset({
        ReportStatus.ASSIGNED, ReportStatus.RESCUED, ReportStatus.IN_VETERINARY,
        ReportStatus.RECOVERED, ReportStatus.ADOPTED, ReportStatus.CLOSED,
    }),
    ReportStatus.ASSIGNED: frozenset({
        ReportStatus.RESCUED, ReportStatus.IN_VETERINARY, ReportStatus.RECOVERED,
        ReportStatus.ADOPTED, ReportStatus.CLOSED,
    }),
    ReportStatus.RESCUED: frozenset({
        ReportStatus.IN_VETERINARY, ReportStatus.RECOVERED, ReportStatus.ADOPTED,
        ReportStatus.CLOSED,
    }),
    ReportStatus.IN_VETERINARY: frozenset({
        ReportStatus.RECOVERED, ReportStatus.ADOPTED, ReportStatus.CLOSED,
    }),
    # Relapse sends a recovered animal back to the clinic
    ReportStatus.RECOVERED: frozenset({
        ReportStatus.IN_VETERINARY, ReportStatus.ADOPTED, ReportStatus.CLOSED,
    }),
    ReportStatus.ADOPTED: frozenset({ReportStatus.CLOSED}),
    ReportStatus.CLOSED: frozenset(),
}

ANIMAL_TRANSITIONS: Mapping[str, FrozenSet[str]] = {
    AnimalStatus.AVAILABLE: frozenset({
        AnimalStatus.PENDING_ADOPTION, AnimalStatus.ADOPTED, AnimalStatus.DECEASED,
    }),
    AnimalStatus.PENDING_ADOPTION: frozenset({
        AnimalStatus.AVAILABLE, AnimalStatus.ADOPTED, AnimalStatus.DECEASED,
    }),
    # A returned animal goes back up for adoption
    AnimalStatus.ADOPTED: frozenset({AnimalStatus.AVAILABLE}),
    AnimalStatus.DECEASED: frozenset(),
}

ADOPTION_TRANSITIONS: Mapping[str, FrozenSet[str]] = {
    AdoptionStatus.PENDING: frozenset({
        AdoptionStatus.UNDER_REVIEW, AdoptionStatus.APPROVED,
        AdoptionStatus.REJECTED, AdoptionStatus.CANCELLED,
    }),
    AdoptionStatus.UNDER_REVIEW: frozenset({
        AdoptionStatus.APPROVED, AdoptionStatus.REJECTED, AdoptionStatus.CANCELLED,
    }),
    AdoptionStatus.APPROVED: frozenset({
        AdoptionStatus.COMPLETED, AdoptionStatus.REJECTED, AdoptionStatus.CANCELLED,
    }),
    AdoptionStatus.REJECTED: frozenset(),
    AdoptionStatus.COMPLETED: frozenset(),
    AdoptionStatus.CANCELLED: frozenset(),
}

MEDICAL_RECORD_TRANSITIONS: Mapping[str, FrozenSet[str]] = {
    MedicalRecordStatus.SCHEDULED: frozenset({
        MedicalRecordStatus.IN_PROGRESS, MedicalRecordStatus.COMPLETED,
        MedicalRecordStatus.CANCELLED,
    }),
    MedicalRecordStatus.IN_PROGRESS: frozenset({
        MedicalRecordStatus.COMPLETED, MedicalRecordStatus.CANCELLED,
    }),
    MedicalRecordStatus.COMPLETED: frozenset(),
    MedicalRecordStatus.CANCELLED: frozenset(),
}

REVIEW_STAMP_STATUSES = frozenset({
    AdoptionStatus.UNDER_REVIEW, AdoptionStatus.APPROVED, AdoptionStatus.REJECTED,
})

ANIMAL_REVERT_FROM = frozenset({AdoptionStatus.APPROVED, AdoptionStatus.UNDER_REVIEW})


@dataclass
class ValidationResult:
    """Result of a transition validation."""
    is_valid: bool
    errors: List[str]


@dataclass
class TransitionPlan:
    """Field changes implied by a validated status move."""
    previous_status: str
    new_status: str
    updates: Dict[str, Any] = field(default_factory=dict)
    set_once: Dict[str, Any] = field(default_factory=dict)

    @property
    def status_changed(self) -> bool:
        return self.previous_status != self.new_status

    def stamp(self, field_name: str, when: datetime) -> None:
        """Record a timestamp the store writes only if the field is still unset."""
        self.set_once[field_name] = when


@dataclass(frozen=True)
class AnimalMove:
    """Conditional move of the animal linked to an adoption."""
    expected: FrozenSet[str]
    target: str


def _value(status: Any) -> str:
    return status.value if hasattr(status, "value") else str(status)


def validate_status_transition(
    transitions: Mapping[str, FrozenSet[str]],
    current_status: str,
    new_status: str,
    entity: str = "entity"
) -> ValidationResult:
    """
    Validate a status transition against a transition table.

    Requesting the current status is valid and is treated as a no-op.

    Args:
        transitions: Transition table for the entity
        current_status: Current status
        new_status: Desired new status

    Returns:
        ValidationResult with validation status and errors
    """
    errors = []

    if new_status not in transitions:
        errors.append(f"Unknown {entity} status: {_value(new_status)}")
    elif current_status != new_status and new_status not in transitions.get(current_status, frozenset()):
        errors.append(
            f"Invalid {entity} status transition from {_value(current_status)} to {_value(new_status)}"
        )

    return ValidationResult(
        is_valid=len(errors) == 0,
        errors=errors
    )


def validate_report_transition(
    report: Report,
    new_status: Optional[str],
    organization_id: Optional[str] = None
) -> ValidationResult:
    """Validate a report move, including the organization required by ``assigned``."""
    if new_status is None:
        return ValidationResult(is_valid=True, errors=[])

    result = validate_status_transition(REPORT_TRANSITIONS, report.status, new_status, "report")

    if (new_status == ReportStatus.ASSIGNED and report.status != ReportStatus.ASSIGNED
            and not (organization_id or report.organization_id)):
        result.errors.append("An organization must be assigned before moving a report to assigned")
        result.is_valid = False

    return result


def plan_report_transition(report: Report, new_status: str, now: datetime) -> TransitionPlan:
    """Compute the status and set-once timestamps for a validated report move."""
    plan = TransitionPlan(previous_status=report.status, new_status=new_status)
    if not plan.status_changed:
        return plan

    plan.updates["status"] = _value(new_status)
    if new_status == ReportStatus.RESCUED and report.rescued_at is None:
        plan.stamp("rescuedAt", now)
    if new_status == ReportStatus.CLOSED and report.closed_at is None:
        plan.stamp("closedAt", now)
    return plan


def plan_animal_transition(animal: Animal, new_status: str, now: datetime) -> TransitionPlan:
    """Compute the status change and ``adoptedAt`` stamp for a validated animal move."""
    plan = TransitionPlan(previous_status=animal.status, new_status=new_status)
    if not plan.status_changed:
        return plan

    plan.updates["status"] = _value(new_status)
    if new_status == AnimalStatus.ADOPTED and animal.adopted_at is None:
        plan.stamp("adoptedAt", now)
    # adoptedAt is only set while the animal is adopted
    if animal.status == AnimalStatus.ADOPTED:
        plan.updates["adoptedAt"] = None
    return plan


def plan_adoption_transition(adoption: Adoption, new_status: str, now: datetime) -> TransitionPlan:
    """Compute the status change and review/completion stamps for an adoption move."""
    plan = TransitionPlan(previous_status=adoption.status, new_status=new_status)
    if not plan.status_changed:
        return plan

    plan.updates["status"] = _value(new_status)
    if new_status in REVIEW_STAMP_STATUSES and adoption.reviewed_at is None:
        plan.stamp("reviewedAt", now)
    if new_status == AdoptionStatus.COMPLETED and adoption.completed_at is None:
        plan.stamp("completedAt", now)
    return plan


def plan_medical_record_transition(
    record: MedicalRecord,
    new_status: str,
    now: datetime,
    visit_type: Optional[str] = None
) -> TransitionPlan:
    """Compute the status change and discharge stamp for a medical record move."""
    plan = TransitionPlan(previous_status=record.status, new_status=new_status)
    if not plan.status_changed:
        return plan

    plan.updates["status"] = _value(new_status)
    effective_visit_type = visit_type or record.visit_type
    if (new_status == MedicalRecordStatus.COMPLETED
            and effective_visit_type == VisitType.DISCHARGE
            and record.discharge_date is None):
        plan.stamp("dischargeDate", now)
    return plan


def animal_move_for_adoption(previous_status: str, new_status: str) -> Optional[AnimalMove]:
    """
    Determine how an adoption move drives its animal.

    Every move is conditional on the animal's current status so that a state
    set by another path is never clobbered and repeating a move is a no-op.
    """
    if previous_status == new_status:
        return None

    if new_status == AdoptionStatus.APPROVED:
        return AnimalMove(
            expected=frozenset({AnimalStatus.AVAILABLE}),
            target=AnimalStatus.PENDING_ADOPTION.value
        )

    if new_status == AdoptionStatus.COMPLETED:
        return AnimalMove(
            expected=frozenset({AnimalStatus.AVAILABLE, AnimalStatus.PENDING_ADOPTION}),
            target=AnimalStatus.ADOPTED.value
        )

    if new_status in (AdoptionStatus.REJECTED, AdoptionStatus.CANCELLED) and previous_status in ANIMAL_REVERT_FROM:
        return AnimalMove(
            expected=frozenset({AnimalStatus.PENDING_ADOPTION}),
            target=AnimalStatus.AVAILABLE.value
        )

    return None


def current_animals_delta(previous_status: str, new_status: str) -> int:
    """Change to the owner's ``currentAnimals`` implied by an animal status move."""
    if previous_status == new_status:
        return 0
    if new_status == AnimalStatus.ADOPTED:
        return -1
    if previous_status == AnimalStatus.ADOPTED:
        return 1
    return 0


def counts_toward_capacity(animal_status: str) -> bool:
    """Whether an animal in this status occupies a place at its organization."""
    return animal_status not in (AnimalStatus.ADOPTED, AnimalStatus.DECEASED)
