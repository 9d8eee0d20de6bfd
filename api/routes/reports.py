# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Citizen report endpoints: intake, triage transitions and proximity search.
"""

from flask import jsonify, current_app, g
from flask_openapi3 import APIBlueprint, Tag
from opentelemetry import trace
import logging

from models.requests import CreateReportRequest, TransitionReportRequest, NearbyQuery, ReportPath
from models.entities import Report
from middleware.auth import require_principal
from utils.request import RequestParser, to_json

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

reports_tag = Tag(name="Reports", description="Citizen sighting reports")
reports_bp = APIBlueprint(
    'reports',
    __name__,
    url_prefix='/api/reports',
    abp_tags=[reports_tag]
)


def _report_response(report: Report):
    engine = current_app.workflow_engine
    embedded = {}
    for key, user_id in (("organization", report.organization_id), ("veterinary", report.veterinary_id)):
        summary = engine.profile_summary(user_id)
        if summary:
            embedded[key] = summary
    return current_app.hal_formatter.format_resource("report", to_json(report), embedded or None)


@reports_bp.post('')
@require_principal
def create_report():
    """
    Submit a report.

    Any authenticated principal may report a sighting; the report starts
    in ``pending``.
    """
    with tracer.start_as_current_span("reports.create", attributes={"user.id": g.user_context.user_id}):
        report_request = RequestParser.parse_body(CreateReportRequest)
        report = current_app.workflow_engine.create_report(g.user_context, report_request)
        return jsonify(_report_response(report)), 201


@reports_bp.get('/nearby')
@require_principal
def nearby_reports():
    """Open reports near a point, nearest first."""
    with tracer.start_as_current_span("reports.nearby") as span:
        query = RequestParser.parse_query(NearbyQuery)
        matches = current_app.workflow_engine.nearby_reports(query.latitude, query.longitude, query.max_distance)
        span.set_attribute("geo.results", len(matches))

        items = []
        for match in matches:
            item = current_app.hal_formatter.format_resource("report", to_json(match.report))
            item["distanceMeters"] = round(match.distance_meters, 1)
            items.append(item)

        return jsonify({"total": len(items), "items": items})


@reports_bp.patch('/<report_id>')
@require_principal
def transition_report(path: ReportPath):
    """Move a report through triage and/or assign an organization or clinic."""
    with tracer.start_as_current_span(
        "reports.transition",
        attributes={"report.id": path.report_id, "user.id": g.user_context.user_id}
    ):
        transition_request = RequestParser.parse_body(TransitionReportRequest)
        report = current_app.workflow_engine.transition_report(g.user_context, path.report_id, transition_request)
        return jsonify(_report_response(report))
