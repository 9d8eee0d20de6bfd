# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Clinical visit endpoints for veterinary clinics.
"""

from flask import jsonify, current_app, g
from flask_openapi3 import APIBlueprint, Tag
from opentelemetry import trace
import logging

from models.requests import CreateMedicalRecordRequest, UpdateMedicalRecordRequest, MedicalRecordPath
from models.entities import MedicalRecord
from middleware.auth import require_principal
from utils.request import RequestParser, to_json

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

medical_records_tag = Tag(name="Medical Records", description="Veterinary visits")
medical_records_bp = APIBlueprint(
    'medical_records',
    __name__,
    url_prefix='/api/medical-records',
    abp_tags=[medical_records_tag]
)


def _record_response(record: MedicalRecord):
    engine = current_app.workflow_engine
    embedded = {}
    animal = engine.animal_summary(record.animal_id)
    if animal:
        embedded["animal"] = animal
    veterinary = engine.profile_summary(record.veterinary_id)
    if veterinary:
        embedded["veterinary"] = veterinary

    data = to_json(record)
    data["totalCost"] = record.total_cost
    return current_app.hal_formatter.format_resource("medical_record", data, embedded or None)


@medical_records_bp.post('')
@require_principal
def create_medical_record():
    """Record a visit for an animal (veterinary clinics only)."""
    with tracer.start_as_current_span("medical_records.create", attributes={"user.id": g.user_context.user_id}):
        record_request = RequestParser.parse_body(CreateMedicalRecordRequest)
        record = current_app.workflow_engine.create_medical_record(g.user_context, record_request)
        return jsonify(_record_response(record)), 201


@medical_records_bp.patch('/<record_id>')
@require_principal
def transition_medical_record(path: MedicalRecordPath):
    """Update a visit and/or move its status."""
    with tracer.start_as_current_span(
        "medical_records.transition",
        attributes={"medical_record.id": path.record_id, "user.id": g.user_context.user_id}
    ):
        update_request = RequestParser.parse_body(UpdateMedicalRecordRequest)
        record = current_app.workflow_engine.transition_medical_record(
            g.user_context, path.record_id, update_request
        )
        return jsonify(_record_response(record))
