# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Request models for workflow operations and API endpoints.
"""

from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, Field, field_validator, model_validator
from .base import CamelModel
from .entities import AdopterInfo, HealthInfo, Medication, MedicalDocument, validate_wgs84
from .enums import (
    UrgencyLevel,
    Species,
    AnimalSize,
    Gender,
    ReportStatus,
    AnimalStatus,
    AdoptionStatus,
    MedicalRecordStatus,
    VisitType,
    NotificationType,
)


class CreateReportRequest(CamelModel):
    """Request model for submitting a citizen report."""

    description: str = Field(..., min_length=10, max_length=2000, description="What was seen")
    urgency_level: UrgencyLevel = Field(default=UrgencyLevel.MEDIUM, description="Urgency")
    animal_type: Species = Field(..., description="Kind of animal")
    latitude: float = Field(..., description="Sighting latitude")
    longitude: float = Field(..., description="Sighting longitude")
    location_address: Optional[str] = Field(None, max_length=300, description="Address text")
    photo_urls: List[str] = Field(default_factory=list, description="Uploaded photo URLs")

    @model_validator(mode='after')
    def validate_location(self):
        """Validate WGS84 bounds."""
        validate_wgs84(self.longitude, self.latitude)
        return self


class TransitionReportRequest(CamelModel):
    """Request model for moving a report and/or (re)assigning it."""

    status: Optional[ReportStatus] = Field(None, description="Requested status")
    organization_id: Optional[str] = Field(None, description="Organization to assign")
    veterinary_id: Optional[str] = Field(None, description="Clinic to assign")
    notes: Optional[str] = Field(None, max_length=1000, description="Free-text notes")


class AnimalAttributes(CamelModel):
    """Descriptive attributes that may be updated alongside a status change."""

    name: Optional[str] = Field(None, min_length=1, max_length=50)
    breed: Optional[str] = Field(None, max_length=100)
    gender: Optional[Gender] = None
    age_estimate: Optional[str] = Field(None, max_length=50)
    size: Optional[AnimalSize] = None
    color: Optional[str] = Field(None, max_length=100)
    story: Optional[str] = Field(None, max_length=2000)
    personality_traits: Optional[List[str]] = None
    special_needs: Optional[str] = Field(None, max_length=500)
    photo_urls: Optional[List[str]] = Field(None, min_length=1)
    video_url: Optional[str] = None


class HealthInfoUpdate(CamelModel):
    is_vaccinated: Optional[bool] = None
    is_sterilized: Optional[bool] = None
    is_dewormed: Optional[bool] = None
    medical_notes: Optional[str] = Field(None, max_length=1000)


class CreateAnimalRequest(CamelModel):
    """Request model for creating an animal profile."""

    organization_id: Optional[str] = Field(None, description="Owner; administrators only")
    report_id: Optional[str] = Field(None, description="Originating report")
    name: str = Field(..., min_length=1, max_length=50)
    species: Species
    breed: str = Field(default="Mestizo", max_length=100)
    gender: Gender = Field(default=Gender.UNKNOWN)
    age_estimate: Optional[str] = Field(None, max_length=50)
    size: AnimalSize
    color: Optional[str] = Field(None, max_length=100)
    story: Optional[str] = Field(None, max_length=2000)
    personality_traits: List[str] = Field(default_factory=list)
    special_needs: Optional[str] = Field(None, max_length=500)
    photo_urls: List[str] = Field(..., min_length=1, description="At least one photo")
    video_url: Optional[str] = None
    health_info: HealthInfo = Field(default_factory=HealthInfo)


class TransitionAnimalRequest(AnimalAttributes):
    """Request model for an animal status change with optional attribute updates."""

    status: Optional[AnimalStatus] = Field(None, description="Requested status")
    health_info: Optional[HealthInfoUpdate] = Field(None, description="Merged key by key")


class SubmitAdoptionRequest(CamelModel):
    """Request model for an adoption application."""

    animal_id: str = Field(..., description="Animal applied for")
    application_message: str = Field(..., min_length=50, max_length=2000)
    adopter_info: AdopterInfo

    @field_validator('application_message')
    @classmethod
    def validate_message(cls, v):
        """Validate message after trimming."""
        v = v.strip()
        if len(v) < 50:
            raise ValueError('Application message must be at least 50 characters')
        return v


class TransitionAdoptionRequest(CamelModel):
    """Request model for reviewing an adoption application."""

    status: AdoptionStatus = Field(..., description="Requested status")
    review_notes: Optional[str] = Field(None, max_length=1000)
    rejection_reason: Optional[str] = Field(None, max_length=1000)


class CreateMedicalRecordRequest(CamelModel):
    """Request model for recording a clinical visit."""

    animal_id: str
    report_id: Optional[str] = None
    visit_type: VisitType
    diagnosis: Optional[str] = Field(None, max_length=1000)
    treatment: Optional[str] = Field(None, max_length=2000)
    medications: List[Medication] = Field(default_factory=list)
    notes: Optional[str] = Field(None, max_length=2000)
    estimated_cost: float = Field(default=0, ge=0)
    actual_cost: float = Field(default=0, ge=0)
    photo_urls: List[str] = Field(default_factory=list)
    documents: List[MedicalDocument] = Field(default_factory=list)
    visit_date: Optional[datetime] = None
    next_appointment: Optional[datetime] = None


class UpdateMedicalRecordRequest(CamelModel):
    """Request model for a medical record status change with field updates."""

    status: Optional[MedicalRecordStatus] = Field(None, description="Requested status")
    visit_type: Optional[VisitType] = None
    diagnosis: Optional[str] = Field(None, max_length=1000)
    treatment: Optional[str] = Field(None, max_length=2000)
    medications: Optional[List[Medication]] = None
    notes: Optional[str] = Field(None, max_length=2000)
    estimated_cost: Optional[float] = Field(None, ge=0)
    actual_cost: Optional[float] = Field(None, ge=0)
    photo_urls: Optional[List[str]] = None
    documents: Optional[List[MedicalDocument]] = None
    visit_date: Optional[datetime] = None
    discharge_date: Optional[datetime] = None
    next_appointment: Optional[datetime] = None


class NearbyQuery(CamelModel):
    """Query parameters for proximity searches."""

    latitude: float = Field(..., description="Center latitude")
    longitude: float = Field(..., description="Center longitude")
    max_distance: Optional[float] = Field(None, description="Radius in meters")


class NotificationQuery(CamelModel):
    """Query parameters for listing the caller's mailbox."""

    page: int = Field(default=1, ge=1)
    limit: int = Field(default=20, ge=1, le=100)
    is_read: Optional[bool] = None
    type: Optional[NotificationType] = None


class ReportPath(BaseModel):
    report_id: str = Field(..., description="Report ID")


class AnimalPath(BaseModel):
    animal_id: str = Field(..., description="Animal ID")


class AdoptionPath(BaseModel):
    adoption_id: str = Field(..., description="Adoption ID")


class MedicalRecordPath(BaseModel):
    record_id: str = Field(..., description="Medical record ID")


class NotificationPath(BaseModel):
    notification_id: str = Field(..., description="Notification ID")


class OrganizationPath(BaseModel):
    organization_id: str = Field(..., description="Organization ID")
