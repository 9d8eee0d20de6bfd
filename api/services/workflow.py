# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Workflow engine for reports, animals, adoptions and medical records.

Every operation follows the same sequence: load, authorize, validate the
move against the transition table, persist with a conditional write, then
publish domain events. Side effects (capacity ledger, notifications, AMQP)
are event bus subscribers and never roll back the primary write.
"""

import logging
from typing import Any, Dict, List, Optional, Tuple, Type

from opentelemetry import trace
from opentelemetry.trace import Status, StatusCode

from models.base import BaseEntity, utcnow
from models.entities import (
    Report,
    Animal,
    Adoption,
    MedicalRecord,
    UserProfile,
    UserContext,
    GeoPoint,
)
from models.enums import UserRole, AnimalStatus, AdoptionStatus, ReportStatus, ACTIVE_ADOPTION_STATUSES
from models.requests import (
    CreateReportRequest,
    TransitionReportRequest,
    CreateAnimalRequest,
    TransitionAnimalRequest,
    SubmitAdoptionRequest,
    TransitionAdoptionRequest,
    CreateMedicalRecordRequest,
    UpdateMedicalRecordRequest,
)
from domain import authorization
from domain.authorization import AuthorizationResult
from domain.events import (
    DomainEvent,
    ReportCreated,
    ReportAssigned,
    ReportStatusChanged,
    AnimalCreated,
    AnimalStatusChanged,
    AnimalDeleted,
    AdoptionSubmitted,
    AdoptionStatusChanged,
    MedicalRecordCreated,
    MedicalRecordStatusChanged,
)
from domain.transitions import (
    ANIMAL_TRANSITIONS,
    ADOPTION_TRANSITIONS,
    MEDICAL_RECORD_TRANSITIONS,
    AnimalMove,
    TransitionPlan,
    ValidationResult,
    validate_status_transition,
    validate_report_transition,
    plan_report_transition,
    plan_animal_transition,
    plan_adoption_transition,
    plan_medical_record_transition,
    animal_move_for_adoption,
)
from middleware.error_handler import (
    AuthorizationException,
    ConflictException,
    InvalidTransitionException,
    NotFoundException,
    ValidationException,
)
from services.store import (
    RescueStore,
    WriteOutcome,
    USERS,
    REPORTS,
    ANIMALS,
    ADOPTIONS,
    MEDICAL_RECORDS,
)
from services.event_bus import EventBus
from services.dedup import DedupGuard
from services.geospatial import GeospatialMatcher, NearbyReport, NearbyClinic
from services.ledger import CapacityLedgerService, CapacitySnapshot
from services.notifier import NotificationDispatcher

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)


def _require(result: AuthorizationResult) -> None:
    if not result.allowed:
        raise AuthorizationException(result.reason or "Insufficient permissions")


def _require_valid(result: ValidationResult) -> None:
    if not result.is_valid:
        raise InvalidTransitionException("; ".join(result.errors), result.errors)


class WorkflowEngine:
    """State machines for the four workflow entities."""

    def __init__(
        self,
        store: RescueStore,
        event_bus: Optional[EventBus] = None,
        dedup_guard: Optional[DedupGuard] = None,
        geo_matcher: Optional[GeospatialMatcher] = None
    ):
        self.store = store
        self.event_bus = event_bus or EventBus()
        self.dedup_guard = dedup_guard or DedupGuard(store)
        self.geo_matcher = geo_matcher or GeospatialMatcher(store)

    # Loading and persistence helpers

    def _load(self, collection: str, model: Type[BaseEntity], entity_id: str, label: str):
        document = self.store.get(collection, entity_id)
        if document is None or document.get("isDeleted"):
            raise NotFoundException(f"{label} {entity_id} not found")
        return model.from_document(document)

    def get_report(self, report_id: str) -> Report:
        return self._load(REPORTS, Report, report_id, "Report")

    def get_animal(self, animal_id: str) -> Animal:
        return self._load(ANIMALS, Animal, animal_id, "Animal")

    def get_adoption(self, adoption_id: str) -> Adoption:
        return self._load(ADOPTIONS, Adoption, adoption_id, "Adoption")

    def get_medical_record(self, record_id: str) -> MedicalRecord:
        return self._load(MEDICAL_RECORDS, MedicalRecord, record_id, "Medical record")

    def _resolve_profile(self, user_id: str, role: UserRole) -> UserProfile:
        """Resolve an assignee; it must be an active profile with the expected role."""
        document = self.store.get(USERS, user_id)
        if document is None:
            raise NotFoundException(f"{role.value.title()} {user_id} not found")
        profile = UserProfile.from_document(document)
        if profile.role != role or not profile.is_active:
            raise NotFoundException(f"{role.value.title()} {user_id} not found")
        return profile

    def _insert(self, collection: str, entity: BaseEntity) -> None:
        self.store.insert(collection, entity.to_document())

    def _write(
        self,
        collection: str,
        entity: BaseEntity,
        updates: Dict[str, Any],
        set_once: Optional[Dict[str, Any]] = None,
        expected: Optional[Dict[str, Any]] = None
    ) -> Tuple[Any, WriteOutcome]:
        """Persist changes conditional on the version read at the start of the operation."""
        conditions = {"version": entity.version}
        conditions.update(expected or {})

        outcome = self.store.conditional_update(collection, entity.id, conditions, updates, set_once)
        if outcome is None:
            logger.warning(
                "Conditional write lost a race",
                extra={"collection": collection, "entity_id": entity.id, "version": entity.version}
            )
            raise ConflictException(f"{type(entity).__name__} {entity.id} was modified concurrently")

        return type(entity).from_document(outcome.after), outcome

    def _publish(self, *events: DomainEvent) -> None:
        for event in events:
            self.event_bus.publish(event)

    # Reports

    def create_report(self, principal: UserContext, request: CreateReportRequest) -> Report:
        """Record a citizen sighting in ``pending`` status."""
        with tracer.start_as_current_span("workflow.create_report") as span:
            report = Report(
                reporter_id=principal.user_id,
                description=request.description,
                urgency_level=request.urgency_level,
                animal_type=request.animal_type,
                location=GeoPoint.from_lat_lng(request.latitude, request.longitude),
                location_address=request.location_address,
                photo_urls=request.photo_urls
            )
            self._insert(REPORTS, report)
            span.set_attributes({"report.id": report.id, "report.urgency": str(report.urgency_level)})

            logger.info(
                "Report created",
                extra={"report_id": report.id, "reporter_id": principal.user_id, "urgency": report.urgency_level}
            )
            self._publish(ReportCreated(report=report))
            return report

    def transition_report(
        self,
        principal: UserContext,
        report_id: str,
        request: TransitionReportRequest
    ) -> Report:
        """
        Move a report and/or (re)assign its organization or clinic.

        Assigning an organization alone never changes the status.
        """
        with tracer.start_as_current_span("workflow.transition_report") as span:
            span.set_attributes({"report.id": report_id, "principal.role": str(principal.role)})

            report = self.get_report(report_id)
            _require(authorization.can_transition_report(principal, report))

            updates: Dict[str, Any] = {}
            assignments: List[Tuple[str, str]] = []

            if (request.organization_id or request.veterinary_id) and report.status == ReportStatus.CLOSED:
                raise InvalidTransitionException("Closed reports cannot be reassigned")

            if request.organization_id and request.organization_id != report.organization_id:
                self._resolve_profile(request.organization_id, UserRole.ORGANIZATION)
                updates["organizationId"] = request.organization_id
                assignments.append((request.organization_id, UserRole.ORGANIZATION.value))

            if request.veterinary_id and request.veterinary_id != report.veterinary_id:
                self._resolve_profile(request.veterinary_id, UserRole.VETERINARY)
                updates["veterinaryId"] = request.veterinary_id
                assignments.append((request.veterinary_id, UserRole.VETERINARY.value))

            _require_valid(validate_report_transition(report, request.status, request.organization_id))

            plan: Optional[TransitionPlan] = None
            if request.status is not None:
                plan = plan_report_transition(report, request.status, utcnow())
                updates.update(plan.updates)

            if request.notes is not None:
                updates["notes"] = request.notes

            if not updates and not (plan and plan.set_once):
                logger.debug("Report transition is a no-op", extra={"report_id": report.id})
                return report

            updated, outcome = self._write(
                REPORTS, report, updates,
                set_once=plan.set_once if plan else None,
                expected={"status": report.status}
            )

            events: List[DomainEvent] = [
                ReportAssigned(report=updated, assignee_id=assignee_id, assignee_role=role)
                for assignee_id, role in assignments
            ]
            if plan and plan.status_changed:
                first_rescue = "rescuedAt" in plan.set_once and outcome.before.get("rescuedAt") is None
                events.append(ReportStatusChanged(
                    report=updated,
                    previous_status=plan.previous_status,
                    new_status=updated.status,
                    first_rescue=first_rescue
                ))
                span.set_attributes({"report.previous_status": plan.previous_status, "report.status": updated.status})

            logger.info(
                "Report updated",
                extra={
                    "report_id": updated.id,
                    "status": updated.status,
                    "organization_id": updated.organization_id,
                    "veterinary_id": updated.veterinary_id,
                    "principal_id": principal.user_id
                }
            )
            self._publish(*events)
            return updated

    def nearby_reports(self, latitude: float, longitude: float, max_distance: Optional[float] = None) -> List[NearbyReport]:
        return self.geo_matcher.nearby_reports(latitude, longitude, max_distance)

    def nearby_clinics(self, latitude: float, longitude: float, max_distance: Optional[float] = None) -> List[NearbyClinic]:
        return self.geo_matcher.nearby_clinics(latitude, longitude, max_distance)

    # Animals

    def create_animal(self, principal: UserContext, request: CreateAnimalRequest) -> Animal:
        """Create an animal owned by the calling organization (or, for admins, the given one)."""
        with tracer.start_as_current_span("workflow.create_animal") as span:
            _require(authorization.can_create_animal(principal))

            if principal.is_admin():
                if not request.organization_id:
                    raise ValidationException(
                        "organizationId is required when an administrator creates an animal",
                        [{"field": "organizationId", "message": "Field required"}]
                    )
                organization_id = request.organization_id
            else:
                if request.organization_id and request.organization_id != principal.user_id:
                    raise AuthorizationException("Organizations can only create their own animals")
                organization_id = principal.user_id

            self._resolve_profile(organization_id, UserRole.ORGANIZATION)
            if request.report_id:
                self.get_report(request.report_id)

            animal = Animal(
                organization_id=organization_id,
                **request.model_dump(exclude={"organization_id"})
            )
            self._insert(ANIMALS, animal)
            span.set_attributes({"animal.id": animal.id, "organization.id": organization_id})

            logger.info(
                "Animal created",
                extra={"animal_id": animal.id, "organization_id": organization_id, "report_id": animal.report_id}
            )
            self._publish(AnimalCreated(animal=animal))
            return animal

    def transition_animal(
        self,
        principal: UserContext,
        animal_id: str,
        request: TransitionAnimalRequest
    ) -> Animal:
        """Move an animal's status and/or update its attributes; health info is merged key by key."""
        with tracer.start_as_current_span("workflow.transition_animal") as span:
            span.set_attribute("animal.id", animal_id)

            animal = self.get_animal(animal_id)
            _require(authorization.can_modify_animal(principal, animal))

            updates = request.model_dump(
                exclude={"status", "health_info"}, exclude_unset=True, exclude_none=True, by_alias=True
            )
            if request.health_info is not None:
                for key, value in request.health_info.model_dump(exclude_none=True, by_alias=True).items():
                    updates[f"healthInfo.{key}"] = value

            plan: Optional[TransitionPlan] = None
            if request.status is not None:
                _require_valid(validate_status_transition(ANIMAL_TRANSITIONS, animal.status, request.status, "animal"))
                plan = plan_animal_transition(animal, request.status, utcnow())
                updates.update(plan.updates)

            if not updates:
                return animal

            updated, _ = self._write(
                ANIMALS, animal, updates,
                set_once=plan.set_once if plan else None,
                expected={"status": animal.status, "isDeleted": False}
            )

            logger.info(
                "Animal updated",
                extra={"animal_id": updated.id, "status": updated.status, "principal_id": principal.user_id}
            )
            if plan and plan.status_changed:
                span.set_attributes({"animal.previous_status": plan.previous_status, "animal.status": updated.status})
                self._publish(AnimalStatusChanged(
                    animal=updated, previous_status=plan.previous_status, new_status=updated.status
                ))
            return updated

    def delete_animal(self, principal: UserContext, animal_id: str) -> Animal:
        """Soft-delete an animal; it stays stored with ``isDeleted`` set."""
        with tracer.start_as_current_span("workflow.delete_animal") as span:
            span.set_attribute("animal.id", animal_id)

            animal = self.get_animal(animal_id)
            _require(authorization.can_modify_animal(principal, animal))

            updated, _ = self._write(ANIMALS, animal, {"isDeleted": True}, expected={"isDeleted": False})

            logger.info("Animal deleted", extra={"animal_id": animal.id, "status": animal.status})
            self._publish(AnimalDeleted(animal=updated))
            return updated

    def _drive_animal(self, animal_id: str, move: AnimalMove, adoption_id: str) -> Optional[Animal]:
        """
        Move the animal linked to an adoption, conditional on its current status.

        A non-matching status means another path already moved the animal, so
        nothing is written and no event is published.
        """
        set_once = {"adoptedAt": utcnow()} if move.target == AnimalStatus.ADOPTED else None
        outcome = self.store.conditional_update(
            ANIMALS,
            animal_id,
            {"status": move.expected, "isDeleted": False},
            {"status": move.target},
            set_once
        )
        if outcome is None:
            logger.info(
                "Animal not in expected status, cascade skipped",
                extra={"animal_id": animal_id, "adoption_id": adoption_id, "target": move.target}
            )
            return None

        animal = Animal.from_document(outcome.after)
        self._publish(AnimalStatusChanged(
            animal=animal,
            previous_status=outcome.before.get("status"),
            new_status=move.target,
            adoption_id=adoption_id
        ))
        return animal

    # Adoptions

    def submit_adoption(self, principal: UserContext, request: SubmitAdoptionRequest) -> Adoption:
        """Apply to adopt an available animal; duplicates raise ConflictException."""
        with tracer.start_as_current_span("workflow.submit_adoption") as span:
            span.set_attributes({"animal.id": request.animal_id, "adopter.id": principal.user_id})
            _require(authorization.can_submit_adoption(principal))

            animal = self.get_animal(request.animal_id)
            if animal.status != AnimalStatus.AVAILABLE:
                raise ConflictException("This animal is not available for adoption")

            self.dedup_guard.check(animal.id, principal.user_id)

            adoption = Adoption(
                animal_id=animal.id,
                adopter_id=principal.user_id,
                organization_id=animal.organization_id,
                application_message=request.application_message,
                adopter_info=request.adopter_info
            )
            self._insert(ADOPTIONS, adoption)
            span.set_attribute("adoption.id", adoption.id)

            logger.info(
                "Adoption submitted",
                extra={"adoption_id": adoption.id, "animal_id": animal.id, "adopter_id": principal.user_id}
            )
            self._publish(AdoptionSubmitted(
                adoption=adoption,
                animal_name=animal.name,
                adopter_name=principal.name or "An adopter"
            ))
            return adoption

    def transition_adoption(
        self,
        principal: UserContext,
        adoption_id: str,
        request: TransitionAdoptionRequest
    ) -> Adoption:
        """Review an application; approval and completion drive the animal's status."""
        with tracer.start_as_current_span("workflow.transition_adoption") as span:
            span.set_attributes({"adoption.id": adoption_id, "adoption.requested_status": str(request.status)})

            adoption = self.get_adoption(adoption_id)
            _require(authorization.can_review_adoption(principal, adoption))

            return self._move_adoption(
                principal, adoption, request.status,
                review_notes=request.review_notes,
                rejection_reason=request.rejection_reason
            )

    def cancel_adoption(self, principal: UserContext, adoption_id: str) -> Adoption:
        """Withdraw an active application; only its adopter may do this."""
        with tracer.start_as_current_span("workflow.cancel_adoption") as span:
            span.set_attribute("adoption.id", adoption_id)

            adoption = self.get_adoption(adoption_id)
            _require(authorization.can_cancel_adoption(principal, adoption))
            if adoption.status not in ACTIVE_ADOPTION_STATUSES:
                raise InvalidTransitionException(
                    f"Only active applications can be cancelled (current status: {adoption.status})"
                )

            return self._move_adoption(principal, adoption, AdoptionStatus.CANCELLED)

    def _move_adoption(
        self,
        principal: UserContext,
        adoption: Adoption,
        new_status: str,
        review_notes: Optional[str] = None,
        rejection_reason: Optional[str] = None
    ) -> Adoption:
        _require_valid(validate_status_transition(ADOPTION_TRANSITIONS, adoption.status, new_status, "adoption"))

        plan = plan_adoption_transition(adoption, new_status, utcnow())
        updates = dict(plan.updates)
        if review_notes is not None:
            updates["reviewNotes"] = review_notes
        if rejection_reason is not None:
            updates["rejectionReason"] = rejection_reason

        if not updates:
            return adoption

        updated, _ = self._write(
            ADOPTIONS, adoption, updates,
            set_once=plan.set_once,
            expected={"status": adoption.status}
        )

        logger.info(
            "Adoption updated",
            extra={
                "adoption_id": updated.id,
                "previous_status": plan.previous_status,
                "status": updated.status,
                "principal_id": principal.user_id
            }
        )
        if not plan.status_changed:
            return updated

        animal: Optional[Animal] = None
        move = animal_move_for_adoption(plan.previous_status, updated.status)
        if move is not None:
            animal = self._drive_animal(updated.animal_id, move, updated.id)
        if animal is None:
            document = self.store.get(ANIMALS, updated.animal_id)
            animal = Animal.from_document(document) if document else None

        self._publish(AdoptionStatusChanged(
            adoption=updated,
            previous_status=plan.previous_status,
            new_status=updated.status,
            actor_id=principal.user_id,
            actor_name=principal.name or "The adopter",
            animal_name=animal.name if animal else None
        ))
        return updated

    # Medical records

    def create_medical_record(self, principal: UserContext, request: CreateMedicalRecordRequest) -> MedicalRecord:
        """Record a clinical visit; the clinic's caseload counter always goes up."""
        with tracer.start_as_current_span("workflow.create_medical_record") as span:
            _require(authorization.can_create_medical_record(principal))

            animal = self.get_animal(request.animal_id)
            if request.report_id:
                self.get_report(request.report_id)

            fields = request.model_dump(exclude_none=True)
            record = MedicalRecord(veterinary_id=principal.user_id, **fields)
            self._insert(MEDICAL_RECORDS, record)
            span.set_attributes({"medical_record.id": record.id, "animal.id": animal.id})

            logger.info(
                "Medical record created",
                extra={"record_id": record.id, "animal_id": animal.id, "veterinary_id": principal.user_id}
            )
            self._publish(MedicalRecordCreated(
                record=record, organization_id=animal.organization_id, animal_name=animal.name
            ))
            return record

    def transition_medical_record(
        self,
        principal: UserContext,
        record_id: str,
        request: UpdateMedicalRecordRequest
    ) -> MedicalRecord:
        """Update a visit and/or move its status; completing a discharge stamps ``dischargeDate``."""
        with tracer.start_as_current_span("workflow.transition_medical_record") as span:
            span.set_attribute("medical_record.id", record_id)

            record = self.get_medical_record(record_id)
            _require(authorization.can_update_medical_record(principal, record))

            updates = request.model_dump(exclude={"status"}, exclude_unset=True, exclude_none=True, by_alias=True)

            plan: Optional[TransitionPlan] = None
            if request.status is not None:
                _require_valid(validate_status_transition(
                    MEDICAL_RECORD_TRANSITIONS, record.status, request.status, "medical record"
                ))
                plan = plan_medical_record_transition(record, request.status, utcnow(), request.visit_type)
                updates.update(plan.updates)
                # An explicit value in the request wins over the automatic stamp
                for path in list(plan.set_once):
                    if path in updates:
                        del plan.set_once[path]

            if not updates:
                return record

            updated, _ = self._write(
                MEDICAL_RECORDS, record, updates,
                set_once=plan.set_once if plan else None,
                expected={"status": record.status}
            )

            logger.info(
                "Medical record updated",
                extra={"record_id": updated.id, "status": updated.status, "principal_id": principal.user_id}
            )
            if plan and plan.status_changed:
                document = self.store.get(ANIMALS, updated.animal_id)
                animal = Animal.from_document(document) if document else None
                self._publish(MedicalRecordStatusChanged(
                    record=updated,
                    previous_status=plan.previous_status,
                    new_status=updated.status,
                    organization_id=animal.organization_id if animal else None,
                    animal_name=animal.name if animal else None
                ))
                span.set_status(Status(StatusCode.OK))
            return updated

    # Display data for responses

    def animal_summary(self, animal_id: Optional[str]) -> Optional[Dict[str, Any]]:
        document = self.store.get(ANIMALS, animal_id) if animal_id else None
        if document is None:
            return None
        return {
            "id": document["_id"],
            "name": document.get("name"),
            "species": document.get("species"),
            "status": document.get("status"),
            "photoUrls": document.get("photoUrls", []),
        }

    # Capacity

    def organization_capacity(self, principal: UserContext, organization_id: str) -> CapacitySnapshot:
        """Ledger counters of an organization against its declared capacity."""
        with tracer.start_as_current_span("workflow.organization_capacity") as span:
            span.set_attribute("organization.id", organization_id)

            _require(authorization.can_view_capacity(principal, organization_id))
            profile = self._resolve_profile(organization_id, UserRole.ORGANIZATION)

            snapshot = CapacitySnapshot.from_profile(profile)
            span.set_attribute("capacity.available", snapshot.available)
            return snapshot

    def profile_summary(self, user_id: Optional[str]) -> Optional[Dict[str, Any]]:
        document = self.store.get(USERS, user_id) if user_id else None
        if document is None:
            return None
        profile = UserProfile.from_document(document)
        return {"id": profile.id, "name": profile.display_name, "role": profile.role}


def create_workflow_engine(
    store: RescueStore,
    amqp_service=None
) -> WorkflowEngine:
    """
    Wire the engine with its event subscribers.

    Subscribers run in order: capacity ledger, notification dispatcher, then
    the AMQP publisher when a broker is configured.
    """
    ledger = CapacityLedgerService(store)
    notifier = NotificationDispatcher(store)

    event_bus = EventBus([ledger.handle_event, notifier.handle_event])
    if amqp_service is not None:
        event_bus.subscribe(amqp_service.handle_event)

    engine = WorkflowEngine(store, event_bus=event_bus)
    engine.ledger = ledger
    engine.notifier = notifier
    logger.info(
        "Workflow engine ready",
        extra={"store_backend": store.backend, "subscribers": event_bus.subscriber_count}
    )
    return engine
