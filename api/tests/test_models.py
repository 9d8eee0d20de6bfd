# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Unit tests for Pydantic models.
"""

import pytest
from pydantic import ValidationError
from bson import ObjectId

from models.entities import (
    GeoPoint, UserProfile, UserContext, Report, Adoption, AdopterInfo,
    MedicalRecord, Notification, OrganizationDetails, VeterinaryDetails
)
from models.enums import UserRole, ACTIVE_ADOPTION_STATUSES
from models.requests import (
    CreateReportRequest, SubmitAdoptionRequest, TransitionAnimalRequest, NearbyQuery, NotificationQuery
)

from conftest import APPLICATION_MESSAGE


class TestGeoPoint:
    """GeoJSON points."""

    def test_from_lat_lng_orders_coordinates(self):
        point = GeoPoint.from_lat_lng(-33.45, -70.6)

        assert point.coordinates == [-70.6, -33.45]
        assert point.latitude == -33.45
        assert point.longitude == -70.6
        assert point.type == "Point"

    @pytest.mark.parametrize("coordinates", [[181, 0], [0, -91], [1.0], [1.0, 2.0, 3.0]])
    def test_rejects_invalid_coordinates(self, coordinates):
        with pytest.raises(ValidationError):
            GeoPoint(coordinates=coordinates)


class TestBaseEntity:
    """Document round trip conventions."""

    def test_to_document_uses_camel_case_and_underscore_id(self):
        report = Report(
            reporter_id="u1",
            description="Dog sleeping under a bus stop",
            animal_type="dog",
            location=GeoPoint.from_lat_lng(0, 0)
        )

        document = report.to_document()

        assert ObjectId.is_valid(document["_id"])
        assert "id" not in document
        assert document["reporterId"] == "u1"
        assert document["urgencyLevel"] == "medium"
        assert document["version"] == 0
        assert Report.from_document(document).id == report.id

    def test_from_document_accepts_object_id(self):
        oid = ObjectId()
        notification = Notification.from_document({
            "_id": oid, "userId": "u1", "type": "system", "title": "Hi", "body": "There"
        })

        assert notification.id == str(oid)
        assert notification.is_read is False


class TestUserProfile:
    """Profiles and display names."""

    def test_email_normalized(self):
        profile = UserProfile(email="  Ana@Example.COM ", name="Ana")

        assert profile.email == "ana@example.com"
        assert profile.role == "user"
        assert profile.capacity_ledger.current_animals == 0

    def test_display_names(self):
        organization = UserProfile(
            email="o@x.org", name="Login name", role="organization",
            organization_details=OrganizationDetails(organization_name="Patitas")
        )
        clinic = UserProfile(
            email="v@x.org", name="Login name", role="veterinary",
            veterinary_details=VeterinaryDetails(clinic_name="Clinica Sur")
        )
        bare = UserProfile(email="b@x.org", name="Bare", role="organization")

        assert organization.display_name == "Patitas"
        assert clinic.display_name == "Clinica Sur"
        assert bare.display_name == "Bare"


class TestUserContext:
    """Principal helpers."""

    def test_roles(self):
        admin = UserContext(user_id="u1", role="admin")
        organization = UserContext(user_id="u2", role=UserRole.ORGANIZATION)

        assert admin.is_admin()
        assert organization.has_role(UserRole.ORGANIZATION, UserRole.ADMIN)
        assert not organization.has_role(UserRole.VETERINARY)

    def test_unknown_role(self):
        with pytest.raises(ValidationError):
            UserContext(user_id="u1", role="superuser")


class TestRequests:
    """Request validation."""

    def test_report_accepts_camel_case(self):
        request = CreateReportRequest.model_validate({
            "description": "Injured pigeon on the sidewalk",
            "animalType": "bird",
            "latitude": 10,
            "longitude": 20,
            "photoUrls": ["https://x/p.jpg"]
        })

        assert request.urgency_level == "medium"
        assert request.photo_urls == ["https://x/p.jpg"]

    def test_report_rejects_out_of_range_location(self):
        with pytest.raises(ValidationError):
            CreateReportRequest(description="Injured pigeon on the sidewalk", animal_type="bird", latitude=0, longitude=200)

    def test_report_requires_description_length(self):
        with pytest.raises(ValidationError):
            CreateReportRequest(description="dog", animal_type="dog", latitude=0, longitude=0)

    def test_adoption_message_is_trimmed_before_length_check(self):
        with pytest.raises(ValidationError):
            SubmitAdoptionRequest(
                animal_id="a1",
                application_message="short message" + " " * 60,
                adopter_info=AdopterInfo(
                    has_experience=True, has_other_pets=False, home_type="house", has_yard=True, household_members=1
                )
            )

    def test_adopter_info_household(self):
        with pytest.raises(ValidationError):
            AdopterInfo(has_experience=True, has_other_pets=False, home_type="house", has_yard=True, household_members=0)

    def test_animal_update_tracks_unset_fields(self):
        request = TransitionAnimalRequest.model_validate({"story": "New story"})

        assert request.model_dump(exclude_unset=True, by_alias=True) == {"story": "New story"}

    def test_nearby_query_parses_strings(self):
        query = NearbyQuery.model_validate({"latitude": "-33.45", "longitude": "-70.6", "maxDistance": "2500"})

        assert query.latitude == -33.45
        assert query.max_distance == 2500

    def test_nearby_query_accepts_fractional_radius(self):
        query = NearbyQuery.model_validate({"latitude": "0", "longitude": "0", "maxDistance": "0.5"})

        assert query.max_distance == 0.5

    def test_notification_query_bounds(self):
        assert NotificationQuery().limit == 20
        with pytest.raises(ValidationError):
            NotificationQuery(limit=500)


class TestAdoption:
    """Adoption helpers."""

    def test_active_statuses(self):
        info = AdopterInfo(has_experience=True, has_other_pets=False, home_type="farm", has_yard=True, household_members=4)
        adoption = Adoption(
            animal_id="a1", adopter_id="u1", organization_id="o1",
            application_message=APPLICATION_MESSAGE, adopter_info=info
        )

        assert adoption.is_active()
        adoption.status = "completed"
        assert not adoption.is_active()
        assert {"pending", "under_review", "approved"} == ACTIVE_ADOPTION_STATUSES


class TestMedicalRecord:
    """Cost helpers."""

    def test_total_cost_prefers_actual(self):
        record = MedicalRecord(animal_id="a1", veterinary_id="v1", visit_type="surgery", estimated_cost=100)

        assert record.total_cost == 100
        record.actual_cost = 140
        assert record.total_cost == 140
