# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Animal profile endpoints owned by rescue organizations.
"""

from flask import jsonify, current_app, g
from flask_openapi3 import APIBlueprint, Tag
from opentelemetry import trace
import logging

from models.requests import CreateAnimalRequest, TransitionAnimalRequest, AnimalPath
from models.entities import Animal
from middleware.auth import require_principal
from utils.request import RequestParser, to_json

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

animals_tag = Tag(name="Animals", description="Animals in the care of rescue organizations")
animals_bp = APIBlueprint(
    'animals',
    __name__,
    url_prefix='/api/animals',
    abp_tags=[animals_tag]
)


def _animal_response(animal: Animal):
    organization = current_app.workflow_engine.profile_summary(animal.organization_id)
    embedded = {"organization": organization} if organization else None
    return current_app.hal_formatter.format_resource("animal", to_json(animal), embedded)


@animals_bp.post('')
@require_principal
def create_animal():
    """Create an animal profile for the calling organization."""
    with tracer.start_as_current_span("animals.create", attributes={"user.id": g.user_context.user_id}):
        animal_request = RequestParser.parse_body(CreateAnimalRequest)
        animal = current_app.workflow_engine.create_animal(g.user_context, animal_request)
        return jsonify(_animal_response(animal)), 201


@animals_bp.patch('/<animal_id>')
@require_principal
def transition_animal(path: AnimalPath):
    """Change an animal's status and/or attributes."""
    with tracer.start_as_current_span(
        "animals.transition",
        attributes={"animal.id": path.animal_id, "user.id": g.user_context.user_id}
    ):
        transition_request = RequestParser.parse_body(TransitionAnimalRequest)
        animal = current_app.workflow_engine.transition_animal(g.user_context, path.animal_id, transition_request)
        return jsonify(_animal_response(animal))


@animals_bp.delete('/<animal_id>')
@require_principal
def delete_animal(path: AnimalPath):
    """Soft-delete an animal profile."""
    with tracer.start_as_current_span(
        "animals.delete",
        attributes={"animal.id": path.animal_id, "user.id": g.user_context.user_id}
    ):
        current_app.workflow_engine.delete_animal(g.user_context, path.animal_id)
        return jsonify({"message": "Animal deleted", "id": path.animal_id})
