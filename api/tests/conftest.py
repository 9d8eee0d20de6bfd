# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Pytest configuration and fixtures.
"""

import os
import pytest
from typing import Dict, Any

# Set test environment
os.environ['ENVIRONMENT'] = 'test'
os.environ['OTEL_ENABLED'] = 'false'
os.environ['STORE_BACKEND'] = 'memory'
os.environ.pop('AMQP_URL', None)

from models.entities import (
    UserProfile,
    UserContext,
    OrganizationDetails,
    VeterinaryDetails,
    GeoPoint,
    CapacityLedger,
)
from models.requests import CreateReportRequest, CreateAnimalRequest, SubmitAdoptionRequest
from services.memory_store import InMemoryRescueStore
from services.store import USERS
from services.workflow import create_workflow_engine

APPLICATION_MESSAGE = (
    "We have a fenced garden and plenty of time at home to care for a rescued dog."
)

# Santiago, used as the reference point for geo fixtures
SANTIAGO_LAT = -33.45
SANTIAGO_LON = -70.6


def principal_for(profile: UserProfile) -> UserContext:
    """Gateway principal for a seeded profile."""
    return UserContext(user_id=profile.id, role=profile.role, name=profile.display_name)


def headers_for(profile: UserProfile) -> Dict[str, str]:
    """Gateway headers asserting a seeded profile."""
    return {
        'X-User-Id': profile.id,
        'X-User-Role': profile.role,
        'X-User-Name': profile.display_name
    }


def seed_profile(store: InMemoryRescueStore, **fields) -> UserProfile:
    profile = UserProfile(**fields)
    store.insert(USERS, profile.to_document())
    return profile


def ledger_of(store: InMemoryRescueStore, user_id: str) -> CapacityLedger:
    return UserProfile.from_document(store.get(USERS, user_id)).capacity_ledger


@pytest.fixture
def store():
    """Fresh in-memory store per test."""
    return InMemoryRescueStore()


@pytest.fixture
def engine(store):
    """Workflow engine wired with ledger and notification subscribers."""
    return create_workflow_engine(store)


@pytest.fixture
def organization(store):
    return seed_profile(
        store,
        email="contact@happypaws.org",
        name="Happy Paws",
        role="organization",
        verified=True,
        organization_details=OrganizationDetails(organization_name="Happy Paws Shelter", capacity=30)
    )


@pytest.fixture
def other_organization(store):
    return seed_profile(
        store,
        email="hello@strayhelp.org",
        name="Stray Help",
        role="organization",
        verified=True
    )


@pytest.fixture
def veterinary(store):
    return seed_profile(
        store,
        email="clinic@vetcentral.cl",
        name="Vet Central",
        role="veterinary",
        verified=True,
        veterinary_details=VeterinaryDetails(
            clinic_name="Clinica Vet Central",
            location=GeoPoint.from_lat_lng(SANTIAGO_LAT, SANTIAGO_LON),
            location_address="Av. Providencia 1234"
        )
    )


@pytest.fixture
def adopter(store):
    return seed_profile(store, email="ana@example.com", name="Ana Torres", role="user")


@pytest.fixture
def citizen(store):
    return seed_profile(store, email="luis@example.com", name="Luis Vera", role="user")


@pytest.fixture
def admin(store):
    return seed_profile(store, email="admin@rescue.org", name="Admin", role="admin")


@pytest.fixture
def org_principal(organization):
    return principal_for(organization)


@pytest.fixture
def vet_principal(veterinary):
    return principal_for(veterinary)


@pytest.fixture
def adopter_principal(adopter):
    return principal_for(adopter)


@pytest.fixture
def citizen_principal(citizen):
    return principal_for(citizen)


@pytest.fixture
def admin_principal(admin):
    return principal_for(admin)


@pytest.fixture
def report_payload() -> Dict[str, Any]:
    return {
        "description": "Injured dog limping near the park entrance",
        "urgencyLevel": "high",
        "animalType": "dog",
        "latitude": SANTIAGO_LAT,
        "longitude": SANTIAGO_LON,
        "locationAddress": "Parque Forestal"
    }


@pytest.fixture
def animal_payload() -> Dict[str, Any]:
    return {
        "name": "Firulais",
        "species": "dog",
        "size": "medium",
        "gender": "male",
        "photoUrls": ["https://cdn.example.org/firulais.jpg"],
        "healthInfo": {"isVaccinated": True}
    }


@pytest.fixture
def adopter_info() -> Dict[str, Any]:
    return {
        "hasExperience": True,
        "hasOtherPets": False,
        "homeType": "house",
        "hasYard": True,
        "householdMembers": 3
    }


@pytest.fixture
def report(engine, citizen_principal, report_payload):
    return engine.create_report(citizen_principal, CreateReportRequest.model_validate(report_payload))


@pytest.fixture
def animal(engine, org_principal, animal_payload):
    return engine.create_animal(org_principal, CreateAnimalRequest.model_validate(animal_payload))


@pytest.fixture
def adoption(engine, adopter_principal, animal, adopter_info):
    return engine.submit_adoption(adopter_principal, SubmitAdoptionRequest(
        animal_id=animal.id,
        application_message=APPLICATION_MESSAGE,
        adopter_info=adopter_info
    ))


@pytest.fixture
def app(store):
    """Flask application backed by the test store."""
    from app import create_app

    application = create_app(store=store)
    application.config['TESTING'] = True
    return application


@pytest.fixture
def client(app):
    return app.test_client()
