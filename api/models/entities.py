# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Core entity models for the rescue workflow platform.
"""

from datetime import datetime
from typing import List, Optional, Dict, Literal
from pydantic import Field, field_validator
from .base import BaseEntity, CamelModel
from .enums import (
    UserRole,
    UrgencyLevel,
    Species,
    AnimalSize,
    Gender,
    HomeType,
    ReportStatus,
    AnimalStatus,
    AdoptionStatus,
    MedicalRecordStatus,
    VisitType,
    NotificationType,
    RelatedEntityType,
    ACTIVE_ADOPTION_STATUSES,
)


def validate_wgs84(longitude: float, latitude: float) -> None:
    """Raise ValueError unless the pair is a valid WGS84 coordinate."""
    if not -180 <= longitude <= 180:
        raise ValueError(f'Longitude must be between -180 and 180, got {longitude}')
    if not -90 <= latitude <= 90:
        raise ValueError(f'Latitude must be between -90 and 90, got {latitude}')


class GeoPoint(CamelModel):
    """GeoJSON point, coordinates ordered [longitude, latitude]."""

    type: Literal["Point"] = Field(default="Point", description="GeoJSON geometry type")
    coordinates: List[float] = Field(..., description="[longitude, latitude]")

    @field_validator('coordinates')
    @classmethod
    def validate_coordinates(cls, v):
        """Validate coordinate pair bounds."""
        if len(v) != 2:
            raise ValueError('Coordinates must be [longitude, latitude]')
        validate_wgs84(v[0], v[1])
        return v

    @classmethod
    def from_lat_lng(cls, latitude: float, longitude: float) -> "GeoPoint":
        return cls(coordinates=[float(longitude), float(latitude)])

    @property
    def longitude(self) -> float:
        return self.coordinates[0]

    @property
    def latitude(self) -> float:
        return self.coordinates[1]


class CapacityLedger(CamelModel):
    """Counters kept on an organization or clinic profile."""

    current_animals: int = Field(default=0, ge=0)
    total_rescues: int = Field(default=0, ge=0)
    total_cases_handled: int = Field(default=0, ge=0)


class OrganizationDetails(CamelModel):
    organization_name: Optional[str] = Field(None, max_length=150)
    description: Optional[str] = Field(None, max_length=1000)
    website: Optional[str] = None
    logo_url: Optional[str] = None
    capacity: int = Field(default=0, ge=0, description="Declared shelter capacity")


class VeterinaryDetails(CamelModel):
    clinic_name: Optional[str] = Field(None, max_length=150)
    license_number: Optional[str] = None
    specialties: List[str] = Field(default_factory=list)
    location: Optional[GeoPoint] = Field(None, description="Clinic location")
    location_address: Optional[str] = None
    business_hours: Optional[str] = None
    rating: float = Field(default=0, ge=0, le=5)


class UserProfile(BaseEntity):
    """
    Profile of a citizen, organization, clinic or administrator.

    Profiles are owned by the identity provider; the workflow engine only reads
    them and adjusts the embedded capacity ledger.
    """

    email: str = Field(..., description="User email address")
    name: str = Field(..., min_length=1, max_length=100, description="Display name")
    role: UserRole = Field(default=UserRole.USER, description="Principal role")
    verified: bool = Field(default=False)
    is_active: bool = Field(default=True)
    phone: Optional[str] = None
    address: Optional[str] = Field(None, max_length=200)
    organization_details: Optional[OrganizationDetails] = None
    veterinary_details: Optional[VeterinaryDetails] = None
    capacity_ledger: CapacityLedger = Field(default_factory=CapacityLedger)

    @field_validator('email')
    @classmethod
    def validate_email(cls, v):
        """Normalize email to lowercase."""
        return v.strip().lower()

    @property
    def display_name(self) -> str:
        if self.role == UserRole.ORGANIZATION and self.organization_details and self.organization_details.organization_name:
            return self.organization_details.organization_name
        if self.role == UserRole.VETERINARY and self.veterinary_details and self.veterinary_details.clinic_name:
            return self.veterinary_details.clinic_name
        return self.name


class Report(BaseEntity):
    """Citizen-submitted sighting of an animal needing help."""

    reporter_id: str = Field(..., description="Reporting citizen")
    organization_id: Optional[str] = Field(None, description="Assigned rescue organization")
    veterinary_id: Optional[str] = Field(None, description="Assigned clinic")
    description: str = Field(..., min_length=10, max_length=2000)
    urgency_level: UrgencyLevel = Field(default=UrgencyLevel.MEDIUM)
    animal_type: Species = Field(...)
    status: ReportStatus = Field(default=ReportStatus.PENDING)
    location: GeoPoint = Field(..., description="Sighting location")
    location_address: Optional[str] = Field(None, max_length=300)
    photo_urls: List[str] = Field(default_factory=list)
    notes: Optional[str] = Field(None, max_length=1000)
    rescued_at: Optional[datetime] = None
    closed_at: Optional[datetime] = None

    @field_validator('description')
    @classmethod
    def validate_description(cls, v):
        """Strip surrounding whitespace."""
        return v.strip()


class HealthInfo(CamelModel):
    is_vaccinated: bool = False
    is_sterilized: bool = False
    is_dewormed: bool = False
    medical_notes: Optional[str] = Field(None, max_length=1000)


class Animal(BaseEntity):
    """Rescued individual owned by one organization."""

    report_id: Optional[str] = Field(None, description="Originating report")
    organization_id: str = Field(..., description="Owning organization")
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
    status: AnimalStatus = Field(default=AnimalStatus.AVAILABLE)
    health_info: HealthInfo = Field(default_factory=HealthInfo)
    adopted_at: Optional[datetime] = None
    is_deleted: bool = Field(default=False)


class AdopterInfo(CamelModel):
    """Structured adopter suitability answers."""

    has_experience: bool
    experience_details: Optional[str] = Field(None, max_length=500)
    has_other_pets: bool
    other_pets_details: Optional[str] = Field(None, max_length=500)
    home_type: HomeType
    has_yard: bool
    household_members: int = Field(..., ge=1)
    household_details: Optional[str] = Field(None, max_length=500)
    work_schedule: Optional[str] = Field(None, max_length=300)
    reason_for_adoption: Optional[str] = Field(None, max_length=1000)


class Adoption(BaseEntity):
    """Application linking one adopter to one animal."""

    animal_id: str
    adopter_id: str
    organization_id: str = Field(..., description="Copied from the animal at creation")
    application_message: str = Field(..., min_length=50, max_length=2000)
    adopter_info: AdopterInfo
    status: AdoptionStatus = Field(default=AdoptionStatus.PENDING)
    review_notes: Optional[str] = Field(None, max_length=1000)
    rejection_reason: Optional[str] = Field(None, max_length=1000)
    applied_at: datetime = Field(default_factory=datetime.utcnow)
    reviewed_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    def is_active(self) -> bool:
        """Check if the application still blocks a duplicate submission."""
        return self.status in ACTIVE_ADOPTION_STATUSES


class Medication(CamelModel):
    name: str = Field(..., min_length=1)
    dosage: Optional[str] = None
    frequency: Optional[str] = None
    duration: Optional[str] = None


class MedicalDocument(CamelModel):
    name: Optional[str] = None
    url: str
    uploaded_at: datetime = Field(default_factory=datetime.utcnow)


class MedicalRecord(BaseEntity):
    """Single clinical visit for an animal."""

    animal_id: str
    report_id: Optional[str] = None
    veterinary_id: str = Field(..., description="Clinic that handled the visit")
    visit_type: VisitType
    diagnosis: Optional[str] = Field(None, max_length=1000)
    treatment: Optional[str] = Field(None, max_length=2000)
    medications: List[Medication] = Field(default_factory=list)
    notes: Optional[str] = Field(None, max_length=2000)
    estimated_cost: float = Field(default=0, ge=0)
    actual_cost: float = Field(default=0, ge=0)
    status: MedicalRecordStatus = Field(default=MedicalRecordStatus.SCHEDULED)
    photo_urls: List[str] = Field(default_factory=list)
    documents: List[MedicalDocument] = Field(default_factory=list)
    visit_date: datetime = Field(default_factory=datetime.utcnow)
    discharge_date: Optional[datetime] = None
    next_appointment: Optional[datetime] = None

    @property
    def total_cost(self) -> float:
        return self.actual_cost or self.estimated_cost


class Notification(BaseEntity):
    """Mailbox entry created as a side effect of a workflow transition."""

    user_id: str = Field(..., description="Mailbox owner")
    type: NotificationType
    title: str = Field(..., min_length=1, max_length=100)
    body: str = Field(..., min_length=1, max_length=500)
    related_id: Optional[str] = Field(None, description="Weak reference to the triggering entity")
    related_type: Optional[RelatedEntityType] = None
    is_read: bool = Field(default=False)
    metadata: Dict[str, str] = Field(default_factory=dict)


class UserContext(CamelModel):
    """Principal context for request processing, resolved upstream by the identity provider."""

    user_id: str = Field(..., description="Authenticated user ID")
    role: UserRole = Field(..., description="Principal role")
    name: Optional[str] = Field(None, description="User display name")
    email: Optional[str] = Field(None, description="User email")
    ip_address: Optional[str] = Field(None, description="Client IP address")
    user_agent: Optional[str] = Field(None, description="Client user agent")

    def has_role(self, *roles: UserRole) -> bool:
        """Check if the principal holds one of the given roles."""
        return self.role in roles

    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN
