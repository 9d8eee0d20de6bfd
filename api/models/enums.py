# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Enumeration types for the rescue workflow platform.
"""

from enum import Enum


class UserRole(str, Enum):
    """Principal role as resolved by the identity provider."""
    USER = "user"
    ORGANIZATION = "organization"
    VETERINARY = "veterinary"
    ADMIN = "admin"


class UrgencyLevel(str, Enum):
    """Urgency of a citizen report."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class Species(str, Enum):
    """Animal species (also used as report animal type)."""
    DOG = "dog"
    CAT = "cat"
    BIRD = "bird"
    RABBIT = "rabbit"
    OTHER = "other"


class AnimalSize(str, Enum):
    SMALL = "small"
    MEDIUM = "medium"
    LARGE = "large"


class Gender(str, Enum):
    MALE = "male"
    FEMALE = "female"
    UNKNOWN = "unknown"


class HomeType(str, Enum):
    HOUSE = "house"
    APARTMENT = "apartment"
    FARM = "farm"
    OTHER = "other"


class ReportStatus(str, Enum):
    """Report workflow status enumeration."""
    PENDING = "pending"
    ASSIGNED = "assigned"
    RESCUED = "rescued"
    IN_VETERINARY = "in_veterinary"
    RECOVERED = "recovered"
    ADOPTED = "adopted"
    CLOSED = "closed"


class AnimalStatus(str, Enum):
    """Animal availability status enumeration."""
    AVAILABLE = "available"
    PENDING_ADOPTION = "pending_adoption"
    ADOPTED = "adopted"
    DECEASED = "deceased"


class AdoptionStatus(str, Enum):
    """Adoption application workflow status enumeration."""
    PENDING = "pending"
    UNDER_REVIEW = "under_review"
    APPROVED = "approved"
    REJECTED = "rejected"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class MedicalRecordStatus(str, Enum):
    """Medical visit status enumeration."""
    SCHEDULED = "scheduled"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class VisitType(str, Enum):
    INITIAL_EXAM = "initial_exam"
    TREATMENT = "treatment"
    SURGERY = "surgery"
    FOLLOW_UP = "follow_up"
    VACCINATION = "vaccination"
    DISCHARGE = "discharge"


class NotificationType(str, Enum):
    """Mailbox entry type tag."""
    REPORT_UPDATE = "report_update"
    NEW_CASE = "new_case"
    MEDICAL_UPDATE = "medical_update"
    ADOPTION_UPDATE = "adoption_update"
    MESSAGE = "message"
    SYSTEM = "system"


class RelatedEntityType(str, Enum):
    """Kind tag for the weak reference carried by a notification."""
    REPORT = "Report"
    ANIMAL = "Animal"
    ADOPTION = "Adoption"
    MEDICAL_RECORD = "MedicalRecord"


class LedgerField(str, Enum):
    """Counters kept on an organization or clinic profile."""
    CURRENT_ANIMALS = "currentAnimals"
    TOTAL_RESCUES = "totalRescues"
    TOTAL_CASES_HANDLED = "totalCasesHandled"


ACTIVE_ADOPTION_STATUSES = frozenset({
    AdoptionStatus.PENDING,
    AdoptionStatus.UNDER_REVIEW,
    AdoptionStatus.APPROVED,
})

ACTIVE_REPORT_STATUSES = frozenset({
    ReportStatus.PENDING,
    ReportStatus.ASSIGNED,
})
