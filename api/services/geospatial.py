# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Proximity searches over open reports and verified clinics.
"""

import logging
import math
from dataclasses import dataclass
from typing import List, Optional

from opentelemetry import trace

from models.entities import Report, UserProfile
from models.enums import UserRole, ACTIVE_REPORT_STATUSES
from domain.geo import coordinates_valid
from middleware.error_handler import ValidationException
from services.store import RescueStore, REPORTS, USERS

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

REPORT_SEARCH_LIMIT = 50
CLINIC_SEARCH_LIMIT = 20
DEFAULT_REPORT_RADIUS_METERS = 10000
DEFAULT_CLINIC_RADIUS_METERS = 20000

CLINIC_LOCATION_PATH = "veterinaryDetails.location"


@dataclass
class NearbyReport:
    report: Report
    distance_meters: float


@dataclass
class NearbyClinic:
    clinic: UserProfile
    distance_meters: float


def _validate_query(latitude: float, longitude: float, max_distance: float) -> None:
    errors = []
    if not coordinates_valid(latitude, longitude):
        errors.append({"field": "coordinates", "message": "Latitude must be in [-90, 90] and longitude in [-180, 180]"})
    try:
        radius = float(max_distance)
    except (TypeError, ValueError):
        radius = float("nan")
    if not math.isfinite(radius) or radius < 0:
        errors.append({"field": "maxDistance", "message": "Radius must be a non-negative number of meters"})
    if errors:
        raise ValidationException("Invalid proximity query", errors)


class GeospatialMatcher:
    """Nearest-first searches backed by the store's spherical geo query."""

    def __init__(self, store: RescueStore):
        self.store = store

    def nearby_reports(
        self,
        latitude: float,
        longitude: float,
        max_distance: Optional[float] = None
    ) -> List[NearbyReport]:
        """Open (pending or assigned) reports within the radius, at most 50."""
        max_distance = DEFAULT_REPORT_RADIUS_METERS if max_distance is None else max_distance
        _validate_query(latitude, longitude, max_distance)

        with tracer.start_as_current_span("geo.nearby_reports") as span:
            documents = self.store.geo_near(
                REPORTS,
                "location",
                longitude,
                latitude,
                max_distance,
                filters={"status": {"$in": sorted(ACTIVE_REPORT_STATUSES)}},
                limit=REPORT_SEARCH_LIMIT
            )
            span.set_attributes({"geo.radius_meters": float(max_distance), "geo.results": len(documents)})

        return [
            NearbyReport(report=Report.from_document(document), distance_meters=document["distanceMeters"])
            for document in documents
        ]

    def nearby_clinics(
        self,
        latitude: float,
        longitude: float,
        max_distance: Optional[float] = None
    ) -> List[NearbyClinic]:
        """Verified, active clinics with a location within the radius, at most 20."""
        max_distance = DEFAULT_CLINIC_RADIUS_METERS if max_distance is None else max_distance
        _validate_query(latitude, longitude, max_distance)

        with tracer.start_as_current_span("geo.nearby_clinics") as span:
            documents = self.store.geo_near(
                USERS,
                CLINIC_LOCATION_PATH,
                longitude,
                latitude,
                max_distance,
                filters={"role": UserRole.VETERINARY.value, "verified": True, "isActive": True},
                limit=CLINIC_SEARCH_LIMIT
            )
            span.set_attributes({"geo.radius_meters": float(max_distance), "geo.results": len(documents)})

        return [
            NearbyClinic(clinic=UserProfile.from_document(document), distance_meters=document["distanceMeters"])
            for document in documents
        ]
