# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Adoption application endpoints.

Approval and completion cascade to the animal's status; the response
embeds the animal as it stands after the cascade.
"""

from flask import jsonify, current_app, g
from flask_openapi3 import APIBlueprint, Tag
from opentelemetry import trace
import logging

from models.requests import SubmitAdoptionRequest, TransitionAdoptionRequest, AdoptionPath
from models.entities import Adoption
from middleware.auth import require_principal
from utils.request import RequestParser, to_json

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

adoptions_tag = Tag(name="Adoptions", description="Adoption applications")
adoptions_bp = APIBlueprint(
    'adoptions',
    __name__,
    url_prefix='/api/adoptions',
    abp_tags=[adoptions_tag]
)


def _adoption_response(adoption: Adoption):
    engine = current_app.workflow_engine
    embedded = {}
    animal = engine.animal_summary(adoption.animal_id)
    if animal:
        embedded["animal"] = animal
    organization = engine.profile_summary(adoption.organization_id)
    if organization:
        embedded["organization"] = organization
    return current_app.hal_formatter.format_resource("adoption", to_json(adoption), embedded or None)


@adoptions_bp.post('')
@require_principal
def submit_adoption():
    """
    Apply to adopt an animal.

    Returns 409 when the animal is not available or the caller already has
    an active application for it.
    """
    with tracer.start_as_current_span("adoptions.submit", attributes={"user.id": g.user_context.user_id}):
        adoption_request = RequestParser.parse_body(SubmitAdoptionRequest)
        adoption = current_app.workflow_engine.submit_adoption(g.user_context, adoption_request)
        return jsonify(_adoption_response(adoption)), 201


@adoptions_bp.put('/<adoption_id>/status')
@require_principal
def transition_adoption(path: AdoptionPath):
    """Review an application (owning organization or administrator)."""
    with tracer.start_as_current_span(
        "adoptions.transition",
        attributes={"adoption.id": path.adoption_id, "user.id": g.user_context.user_id}
    ):
        transition_request = RequestParser.parse_body(TransitionAdoptionRequest)
        adoption = current_app.workflow_engine.transition_adoption(
            g.user_context, path.adoption_id, transition_request
        )
        return jsonify(_adoption_response(adoption))


@adoptions_bp.put('/<adoption_id>/cancel')
@require_principal
def cancel_adoption(path: AdoptionPath):
    """Withdraw an active application (adopter only)."""
    with tracer.start_as_current_span(
        "adoptions.cancel",
        attributes={"adoption.id": path.adoption_id, "user.id": g.user_context.user_id}
    ):
        adoption = current_app.workflow_engine.cancel_adoption(g.user_context, path.adoption_id)
        return jsonify(_adoption_response(adoption))
