# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Models package - Pydantic schemas for the animal rescue workflow.
"""

# Base models
from .base import BaseEntity, CamelModel

# Enumerations
from .enums import (
    UserRole,
    ReportStatus,
    AnimalStatus,
    AdoptionStatus,
    MedicalRecordStatus,
    NotificationType,
    LedgerField
)

# Core entities
from .entities import (
    GeoPoint,
    CapacityLedger,
    UserProfile,
    Report,
    Animal,
    Adoption,
    MedicalRecord,
    Notification,
    UserContext
)

__all__ = [
    "BaseEntity",
    "CamelModel",
    "UserRole",
    "ReportStatus",
    "AnimalStatus",
    "AdoptionStatus",
    "MedicalRecordStatus",
    "NotificationType",
    "LedgerField",
    "GeoPoint",
    "CapacityLedger",
    "UserProfile",
    "Report",
    "Animal",
    "Adoption",
    "MedicalRecord",
    "Notification",
    "UserContext"
]
