# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Organization endpoints.
"""

from flask import jsonify, current_app, g
from flask_openapi3 import APIBlueprint, Tag
from opentelemetry import trace
import logging

from models.requests import OrganizationPath
from middleware.auth import require_principal

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

organizations_tag = Tag(name="Organizations", description="Shelter capacity and rescue counters")
organizations_bp = APIBlueprint(
    'organizations',
    __name__,
    url_prefix='/api/organizations',
    abp_tags=[organizations_tag]
)


@organizations_bp.get('/<organization_id>/capacity')
@require_principal
def get_capacity(path: OrganizationPath):
    """Current load of an organization against its declared capacity."""
    with tracer.start_as_current_span(
        "organizations.capacity",
        attributes={"organization.id": path.organization_id, "user.id": g.user_context.user_id}
    ):
        snapshot = current_app.workflow_engine.organization_capacity(g.user_context, path.organization_id)

        response = snapshot.to_dict()
        response['_links'] = {
            'self': current_app.hal_formatter.builder.link_builder.build_self_link(
                f"/api/organizations/{path.organization_id}/capacity"
            ).model_dump(exclude_none=True)
        }
        return jsonify(response)
