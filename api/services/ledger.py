# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Capacity ledger kept on organization and clinic profiles.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

from opentelemetry import trace

from models.entities import UserProfile
from models.enums import LedgerField
from domain.events import (
    DomainEvent,
    AnimalCreated,
    AnimalStatusChanged,
    AnimalDeleted,
    ReportStatusChanged,
    MedicalRecordCreated,
)
from domain.transitions import current_animals_delta, counts_toward_capacity
from services.store import RescueStore, USERS, CAPACITY_LEDGER_PATH

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)


@dataclass(frozen=True)
class CapacitySnapshot:
    """Read-only view of a profile's ledger against its declared capacity."""

    owner_id: str
    capacity: int
    current_animals: int
    total_rescues: int
    total_cases_handled: int

    @property
    def available(self) -> int:
        return max(0, self.capacity - self.current_animals)

    @classmethod
    def from_profile(cls, profile: UserProfile) -> "CapacitySnapshot":
        details = profile.organization_details
        ledger = profile.capacity_ledger
        return cls(
            owner_id=profile.id,
            capacity=details.capacity if details else 0,
            current_animals=ledger.current_animals,
            total_rescues=ledger.total_rescues,
            total_cases_handled=ledger.total_cases_handled
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "organizationId": self.owner_id,
            "capacity": {
                "max": self.capacity,
                "current": self.current_animals,
                "available": self.available
            },
            "totalRescues": self.total_rescues,
            "totalCasesHandled": self.total_cases_handled
        }


class CapacityLedgerService:
    """
    Atomic counters on a profile's ``capacityLedger``.

    Adjustments are applied by the store in a single atomic step and clamp at
    zero, so concurrent decrements never lose updates or go negative.
    """

    def __init__(self, store: RescueStore):
        self.store = store

    def adjust(self, owner_id: str, field: LedgerField, delta: int) -> Optional[int]:
        """
        Apply a signed delta to one counter.

        Args:
            owner_id: Organization or clinic profile ID
            field: Counter to adjust
            delta: Signed amount

        Returns:
            The stored value after clamping, or None if the owner is unknown
        """
        field = LedgerField(field)
        if delta == 0:
            return None

        with tracer.start_as_current_span("ledger.adjust") as span:
            span.set_attributes({
                "ledger.owner_id": owner_id,
                "ledger.field": field.value,
                "ledger.delta": delta
            })

            value = self.store.adjust_counter(USERS, owner_id, f"{CAPACITY_LEDGER_PATH}.{field.value}", delta)

            logger.info(
                "Capacity ledger adjusted",
                extra={"owner_id": owner_id, "field": field.value, "delta": delta, "value": value}
            )
            return value

    def handle_event(self, event: DomainEvent) -> None:
        """Event bus subscriber translating workflow events into counter moves."""
        if isinstance(event, AnimalCreated):
            self.adjust(event.animal.organization_id, LedgerField.CURRENT_ANIMALS, 1)

        elif isinstance(event, AnimalStatusChanged):
            delta = current_animals_delta(event.previous_status, event.new_status)
            if delta:
                self.adjust(event.animal.organization_id, LedgerField.CURRENT_ANIMALS, delta)

        elif isinstance(event, AnimalDeleted):
            if counts_toward_capacity(event.animal.status):
                self.adjust(event.animal.organization_id, LedgerField.CURRENT_ANIMALS, -1)

        elif isinstance(event, ReportStatusChanged):
            if event.first_rescue and event.report.organization_id:
                self.adjust(event.report.organization_id, LedgerField.TOTAL_RESCUES, 1)

        elif isinstance(event, MedicalRecordCreated):
            self.adjust(event.record.veterinary_id, LedgerField.TOTAL_CASES_HANDLED, 1)
