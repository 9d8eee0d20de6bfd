# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
HAL (Hypertext Application Language) response formatting utilities.
Builds workflow resources with state-dependent affordance links and
RFC 7807 problem documents.
"""

from typing import Dict, List, Any, Optional
from urllib.parse import urljoin, urlencode
import math

from models.responses import HalLink, ErrorResponse
from models.enums import (
    ReportStatus,
    AnimalStatus,
    MedicalRecordStatus,
    ACTIVE_ADOPTION_STATUSES,
)
from domain.transitions import (
    REPORT_TRANSITIONS,
    ANIMAL_TRANSITIONS,
    ADOPTION_TRANSITIONS,
    MEDICAL_RECORD_TRANSITIONS,
)

PROBLEM_BASE_URI = "https://api.rescue-workflow.org/problems/"

RESOURCE_PATHS = {
    "report": "/api/reports",
    "animal": "/api/animals",
    "adoption": "/api/adoptions",
    "medical_record": "/api/medical-records",
    "notification": "/api/notifications",
}


class HalLinkBuilder:
    """Builder for HAL links with proper URL construction."""

    def __init__(self, base_url: str):
        self.base_url = base_url.rstrip('/') + '/'

    def build_link(
        self,
        path: str,
        method: str = "GET",
        content_type: Optional[str] = None,
        title: Optional[str] = None,
        templated: bool = False
    ) -> HalLink:
        """Build a HAL link with proper URL construction."""
        href = urljoin(self.base_url, path.lstrip('/'))

        return HalLink(
            href=href,
            method=method,
            type=content_type,
            title=title,
            templated=templated or None
        )

    def build_self_link(self, resource_path: str) -> HalLink:
        """Build self link for a resource."""
        return self.build_link(resource_path, title="Self")


class AffordanceLinkBuilder:
    """Builder for affordance links offered by the current workflow state."""

    def __init__(self, base_url: str):
        self.link_builder = HalLinkBuilder(base_url)

    def _transition_link(self, path: str, method: str, title: str) -> HalLink:
        return self.link_builder.build_link(
            path, method=method, content_type="application/json", title=title
        )

    def build_report_affordances(self, report_id: str, status: str) -> Dict[str, HalLink]:
        base_path = f"{RESOURCE_PATHS['report']}/{report_id}"
        links = {'self': self.link_builder.build_self_link(base_path)}
        if REPORT_TRANSITIONS.get(status):
            links['transition'] = self._transition_link(base_path, "PATCH", "Update report")
        if status == ReportStatus.PENDING:
            links['assign'] = self._transition_link(base_path, "PATCH", "Assign organization")
        return links

    def build_animal_affordances(self, animal_id: str, status: str, is_deleted: bool) -> Dict[str, HalLink]:
        base_path = f"{RESOURCE_PATHS['animal']}/{animal_id}"
        links = {'self': self.link_builder.build_self_link(base_path)}
        if is_deleted:
            return links
        if ANIMAL_TRANSITIONS.get(status):
            links['transition'] = self._transition_link(base_path, "PATCH", "Update animal")
        links['delete'] = self.link_builder.build_link(base_path, method="DELETE", title="Delete animal")
        if status == AnimalStatus.AVAILABLE:
            links['adopt'] = self._transition_link(RESOURCE_PATHS['adoption'], "POST", "Apply to adopt")
        return links

    def build_adoption_affordances(self, adoption_id: str, status: str) -> Dict[str, HalLink]:
        base_path = f"{RESOURCE_PATHS['adoption']}/{adoption_id}"
        links = {'self': self.link_builder.build_self_link(base_path)}
        if ADOPTION_TRANSITIONS.get(status):
            links['review'] = self._transition_link(f"{base_path}/status", "PUT", "Review application")
        if status in ACTIVE_ADOPTION_STATUSES:
            links['cancel'] = self._transition_link(f"{base_path}/cancel", "PUT", "Cancel application")
        return links

    def build_medical_record_affordances(self, record_id: str, status: str) -> Dict[str, HalLink]:
        base_path = f"{RESOURCE_PATHS['medical_record']}/{record_id}"
        links = {'self': self.link_builder.build_self_link(base_path)}
        if MEDICAL_RECORD_TRANSITIONS.get(status):
            links['update'] = self._transition_link(base_path, "PATCH", "Update medical record")
        if status != MedicalRecordStatus.COMPLETED and status != MedicalRecordStatus.CANCELLED:
            links['complete'] = self._transition_link(base_path, "PATCH", "Complete visit")
        return links

    def build_notification_affordances(self, notification_id: str, is_read: bool) -> Dict[str, HalLink]:
        base_path = f"{RESOURCE_PATHS['notification']}/{notification_id}"
        links = {}
        if not is_read:
            links['mark_read'] = self.link_builder.build_link(
                f"{base_path}/read", method="PUT", title="Mark as read"
            )
        links['delete'] = self.link_builder.build_link(base_path, method="DELETE", title="Delete notification")
        return links


class HalResponseBuilder:
    """Main HAL response builder."""

    def __init__(self, base_url: str):
        self.base_url = base_url.rstrip('/')
        self.link_builder = HalLinkBuilder(base_url)
        self.affordance_builder = AffordanceLinkBuilder(base_url)

    def build_resource_response(
        self,
        data: Dict[str, Any],
        resource_type: str,
        embedded: Optional[Dict[str, Any]] = None
    ) -> Dict[str, Any]:
        """Build a HAL resource response with state-dependent affordance links."""
        response = dict(data)
        resource_id = data.get('id', '')
        status = data.get('status', '')

        if resource_type == "report":
            links = self.affordance_builder.build_report_affordances(resource_id, status)
        elif resource_type == "animal":
            links = self.affordance_builder.build_animal_affordances(
                resource_id, status, bool(data.get('isDeleted'))
            )
        elif resource_type == "adoption":
            links = self.affordance_builder.build_adoption_affordances(resource_id, status)
        elif resource_type == "medical_record":
            links = self.affordance_builder.build_medical_record_affordances(resource_id, status)
        elif resource_type == "notification":
            links = self.affordance_builder.build_notification_affordances(
                resource_id, bool(data.get('isRead'))
            )
        else:
            links = {}

        response['_links'] = {rel: link.model_dump(exclude_none=True) for rel, link in links.items()}
        if embedded:
            response['_embedded'] = embedded
        return response

    def build_collection_response(
        self,
        items: List[Dict[str, Any]],
        total: int,
        page: int,
        page_size: int,
        collection_path: str,
        query_params: Optional[Dict[str, Any]] = None,
        extra: Optional[Dict[str, Any]] = None
    ) -> Dict[str, Any]:
        """Build a HAL collection response with pagination links."""
        total_pages = math.ceil(total / page_size) if page_size > 0 else 1
        params = {key: value for key, value in (query_params or {}).items() if value is not None}

        def page_link(number: int, title: str) -> Dict[str, Any]:
            query = urlencode({**params, 'page': number, 'limit': page_size})
            return self.link_builder.build_link(f"{collection_path}?{query}", title=title).model_dump(exclude_none=True)

        links = {'self': page_link(page, "Current page")}
        if page > 1:
            links['prev'] = page_link(page - 1, "Previous page")
        if page < total_pages:
            links['next'] = page_link(page + 1, "Next page")

        response = {
            'total': total,
            'page': page,
            'pageSize': page_size,
            'totalPages': total_pages,
            '_links': links,
            '_embedded': {
                'items': items
            }
        }
        if extra:
            response.update(extra)
        return response

    def build_error_response(
        self,
        error_type: str,
        title: str,
        status: int,
        detail: str,
        instance: str,
        validation_errors: Optional[List[Any]] = None
    ) -> Dict[str, Any]:
        """Build RFC 7807 compliant error response."""
        error_response = ErrorResponse(
            type=f"{PROBLEM_BASE_URI}{error_type}",
            title=title,
            status=status,
            detail=detail,
            instance=instance,
            errors=validation_errors or None
        ).model_dump(exclude_none=True)

        if error_type == "validation-error":
            error_response['_links'] = {
                'schema': self.link_builder.build_link("/openapi/openapi.json", title="API schema").model_dump(exclude_none=True)
            }

        return error_response


class HalFormatter:
    """High-level HAL formatter with convenience methods."""

    def __init__(self, base_url: str):
        self.builder = HalResponseBuilder(base_url)

    def format_resource(
        self,
        resource_type: str,
        data: Dict[str, Any],
        embedded: Optional[Dict[str, Any]] = None
    ) -> Dict[str, Any]:
        return self.builder.build_resource_response(data, resource_type, embedded)

    def format_collection(
        self,
        resource_type: str,
        items: List[Dict[str, Any]],
        total: int,
        page: int,
        page_size: int,
        query_params: Optional[Dict[str, Any]] = None,
        extra: Optional[Dict[str, Any]] = None
    ) -> Dict[str, Any]:
        """Format a collection with HAL links on each item."""
        formatted = [self.format_resource(resource_type, item) for item in items]
        return self.builder.build_collection_response(
            formatted,
            total,
            page,
            page_size,
            RESOURCE_PATHS[resource_type],
            query_params,
            extra
        )

    def format_validation_error(self, detail: str, instance: str, validation_errors: List[Any]) -> Dict[str, Any]:
        return self.builder.build_error_response(
            "validation-error", "Validation Error", 400, detail, instance, validation_errors
        )

    def format_authentication_error(self, detail: str, instance: str) -> Dict[str, Any]:
        return self.builder.build_error_response(
            "authentication-required", "Authentication Required", 401, detail, instance
        )

    def format_authorization_error(self, detail: str, instance: str) -> Dict[str, Any]:
        return self.builder.build_error_response(
            "insufficient-permissions", "Insufficient Permissions", 403, detail, instance
        )

    def format_not_found_error(self, detail: str, instance: str) -> Dict[str, Any]:
        return self.builder.build_error_response(
            "resource-not-found", "Resource Not Found", 404, detail, instance
        )

    def format_conflict_error(self, detail: str, instance: str) -> Dict[str, Any]:
        return self.builder.build_error_response(
            "resource-conflict", "Resource Conflict", 409, detail, instance
        )

    def format_invalid_transition_error(self, detail: str, instance: str, errors: List[str]) -> Dict[str, Any]:
        return self.builder.build_error_response(
            "invalid-transition", "Invalid Transition", 422, detail, instance, errors
        )

    def format_server_error(self, detail: str, instance: str) -> Dict[str, Any]:
        return self.builder.build_error_response(
            "internal-server-error", "Internal Server Error", 500, detail, instance
        )


def create_hal_formatter(base_url: str) -> HalFormatter:
    """Create a HAL formatter instance."""
    return HalFormatter(base_url)
