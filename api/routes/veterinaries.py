# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Veterinary clinic directory endpoints.
"""

from flask import jsonify, current_app
from flask_openapi3 import APIBlueprint, Tag
from opentelemetry import trace
import logging

from models.requests import NearbyQuery
from middleware.auth import require_principal
from utils.request import RequestParser

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

veterinaries_tag = Tag(name="Veterinaries", description="Verified veterinary clinics")
veterinaries_bp = APIBlueprint(
    'veterinaries',
    __name__,
    url_prefix='/api/veterinaries',
    abp_tags=[veterinaries_tag]
)


@veterinaries_bp.get('/nearby')
@require_principal
def nearby_clinics():
    """Verified, active clinics near a point, nearest first."""
    with tracer.start_as_current_span("veterinaries.nearby") as span:
        query = RequestParser.parse_query(NearbyQuery)
        matches = current_app.workflow_engine.nearby_clinics(query.latitude, query.longitude, query.max_distance)
        span.set_attribute("geo.results", len(matches))

        items = []
        for match in matches:
            clinic = match.clinic
            items.append({
                "id": clinic.id,
                "name": clinic.display_name,
                "phone": clinic.phone,
                "veterinaryDetails": clinic.veterinary_details.model_dump(mode="json", by_alias=True),
                "distanceMeters": round(match.distance_meters, 1)
            })

        return jsonify({"total": len(items), "items": items})
