# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Domain events published by the workflow engine after a primary write commits.

Events are immutable snapshots. Subscribers (capacity ledger, notification
dispatcher, AMQP publisher) react to them independently, so a failing
subscriber never affects the transition that produced the event.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, ClassVar, Dict, Optional

from models.base import utcnow
from models.entities import Report, Animal, Adoption, MedicalRecord


@dataclass(frozen=True)
class DomainEvent:
    """Base class for workflow events."""
    name: ClassVar[str] = "event"

    @property
    def entity_id(self) -> str:
        raise NotImplementedError


@dataclass(frozen=True)
class ReportCreated(DomainEvent):
    name: ClassVar[str] = "report.created"
    report: Report
    occurred_at: datetime = field(default_factory=utcnow)

    @property
    def entity_id(self) -> str:
        return self.report.id


@dataclass(frozen=True)
class ReportAssigned(DomainEvent):
    """An organization or clinic was (re)assigned to a report."""
    name: ClassVar[str] = "report.assigned"
    report: Report
    assignee_id: str
    assignee_role: str
    occurred_at: datetime = field(default_factory=utcnow)

    @property
    def entity_id(self) -> str:
        return self.report.id


@dataclass(frozen=True)
class ReportStatusChanged(DomainEvent):
    name: ClassVar[str] = "report.status_changed"
    report: Report
    previous_status: str
    new_status: str
    first_rescue: bool = False
    occurred_at: datetime = field(default_factory=utcnow)

    @property
    def entity_id(self) -> str:
        return self.report.id


@dataclass(frozen=True)
class AnimalCreated(DomainEvent):
    name: ClassVar[str] = "animal.created"
    animal: Animal
    occurred_at: datetime = field(default_factory=utcnow)

    @property
    def entity_id(self) -> str:
        return self.animal.id


@dataclass(frozen=True)
class AnimalStatusChanged(DomainEvent):
    """
    Animal status moved, either directly or as part of an adoption cascade.

    Only published when the conditional write matched, which keeps ledger
    adjustments from being applied twice.
    """
    name: ClassVar[str] = "animal.status_changed"
    animal: Animal
    previous_status: str
    new_status: str
    adoption_id: Optional[str] = None
    occurred_at: datetime = field(default_factory=utcnow)

    @property
    def entity_id(self) -> str:
        return self.animal.id


@dataclass(frozen=True)
class AnimalDeleted(DomainEvent):
    name: ClassVar[str] = "animal.deleted"
    animal: Animal
    occurred_at: datetime = field(default_factory=utcnow)

    @property
    def entity_id(self) -> str:
        return self.animal.id


@dataclass(frozen=True)
class AdoptionSubmitted(DomainEvent):
    name: ClassVar[str] = "adoption.submitted"
    adoption: Adoption
    animal_name: str
    adopter_name: str
    occurred_at: datetime = field(default_factory=utcnow)

    @property
    def entity_id(self) -> str:
        return self.adoption.id


@dataclass(frozen=True)
class AdoptionStatusChanged(DomainEvent):
    name: ClassVar[str] = "adoption.status_changed"
    adoption: Adoption
    previous_status: str
    new_status: str
    actor_id: str
    actor_name: str
    animal_name: Optional[str] = None
    occurred_at: datetime = field(default_factory=utcnow)

    @property
    def entity_id(self) -> str:
        return self.adoption.id

    @property
    def cancelled_by_adopter(self) -> bool:
        return self.actor_id == self.adoption.adopter_id


@dataclass(frozen=True)
class MedicalRecordCreated(DomainEvent):
    name: ClassVar[str] = "medical_record.created"
    record: MedicalRecord
    organization_id: str
    animal_name: str
    occurred_at: datetime = field(default_factory=utcnow)

    @property
    def entity_id(self) -> str:
        return self.record.id


@dataclass(frozen=True)
class MedicalRecordStatusChanged(DomainEvent):
    name: ClassVar[str] = "medical_record.status_changed"
    record: MedicalRecord
    previous_status: str
    new_status: str
    organization_id: Optional[str] = None
    animal_name: Optional[str] = None
    occurred_at: datetime = field(default_factory=utcnow)

    @property
    def entity_id(self) -> str:
        return self.record.id


def event_payload(event: DomainEvent) -> Dict[str, Any]:
    """
    Serialize an event into a JSON-compatible message body.

    Entity snapshots are dumped with their camelCase aliases.
    """
    payload: Dict[str, Any] = {
        "event": event.name,
        "entityId": event.entity_id,
        "occurredAt": event.occurred_at.isoformat(),
    }

    for key, value in vars(event).items():
        if key == "occurred_at":
            continue
        if hasattr(value, "model_dump"):
            payload[key] = value.model_dump(mode="json", by_alias=True)
        else:
            payload[_camel(key)] = value

    return payload


def _camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part.title() for part in rest)
