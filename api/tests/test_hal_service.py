# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Tests for HAL response formatting utilities.
"""

import pytest
from services.hal import (
    HalLinkBuilder, AffordanceLinkBuilder, HalFormatter, create_hal_formatter
)
from models.responses import HalLink, ErrorResponse


class TestHalLinkBuilder:
    """Test HAL link builder functionality."""

    def test_build_basic_link(self):
        """Test building a basic HAL link."""
        builder = HalLinkBuilder("https://api.example.com")

        link = builder.build_link("/api/reports/123")

        assert isinstance(link, HalLink)
        assert link.href == "https://api.example.com/api/reports/123"
        assert link.method == "GET"
        assert link.type is None

    def test_base_url_with_trailing_slash(self):
        builder = HalLinkBuilder("https://api.example.com/")

        assert builder.build_self_link("api/animals/1").href == "https://api.example.com/api/animals/1"

    def test_templated_is_omitted_when_false(self):
        link = HalLinkBuilder("https://api.example.com").build_link("/x")

        assert "templated" not in link.model_dump(exclude_none=True)


class TestAffordanceLinkBuilder:
    """Links offered by the current workflow state."""

    @pytest.fixture
    def builder(self):
        return AffordanceLinkBuilder("https://api.example.com")

    def test_pending_report(self, builder):
        links = builder.build_report_affordances("r1", "pending")

        assert set(links) == {"self", "transition", "assign"}
        assert links["transition"].method == "PATCH"

    def test_closed_report_is_read_only(self, builder):
        assert set(builder.build_report_affordances("r1", "closed")) == {"self"}

    def test_available_animal(self, builder):
        links = builder.build_animal_affordances("a1", "available", False)

        assert set(links) == {"self", "transition", "delete", "adopt"}
        assert links["adopt"].href == "https://api.example.com/api/adoptions"

    def test_deceased_animal(self, builder):
        assert set(builder.build_animal_affordances("a1", "deceased", False)) == {"self", "delete"}

    def test_deleted_animal(self, builder):
        assert set(builder.build_animal_affordances("a1", "available", True)) == {"self"}

    def test_adoption_links(self, builder):
        approved = builder.build_adoption_affordances("ad1", "approved")
        completed = builder.build_adoption_affordances("ad1", "completed")

        assert approved["review"].href.endswith("/api/adoptions/ad1/status")
        assert approved["cancel"].method == "PUT"
        assert set(completed) == {"self"}

    def test_medical_record_links(self, builder):
        assert set(builder.build_medical_record_affordances("m1", "scheduled")) == {"self", "update", "complete"}
        assert set(builder.build_medical_record_affordances("m1", "cancelled")) == {"self"}

    def test_notification_links(self, builder):
        assert set(builder.build_notification_affordances("n1", False)) == {"mark_read", "delete"}
        assert set(builder.build_notification_affordances("n1", True)) == {"delete"}


class TestHalFormatter:
    """Resource, collection and problem documents."""

    @pytest.fixture
    def formatter(self):
        return create_hal_formatter("https://api.example.com")

    def test_format_resource_with_embedded(self, formatter):
        response = formatter.format_resource(
            "adoption",
            {"id": "ad1", "status": "pending"},
            {"animal": {"id": "a1", "name": "Firulais"}}
        )

        assert response["_links"]["self"]["href"] == "https://api.example.com/api/adoptions/ad1"
        assert response["_embedded"]["animal"]["name"] == "Firulais"

    def test_format_resource_without_embedded(self, formatter):
        response = formatter.format_resource("report", {"id": "r1", "status": "closed"})

        assert "_embedded" not in response

    def test_format_collection(self, formatter):
        items = [{"id": f"n{index}", "isRead": False} for index in range(2)]

        response = formatter.format_collection(
            "notification", items, total=5, page=2, page_size=2,
            query_params={"isRead": False, "type": None}, extra={"unreadCount": 3}
        )

        assert response["totalPages"] == 3
        assert response["unreadCount"] == 3
        assert set(response["_links"]) == {"self", "prev", "next"}
        assert "page=3" in response["_links"]["next"]["href"]
        assert "isRead=False" in response["_links"]["self"]["href"]
        assert "type=" not in response["_links"]["self"]["href"]
        assert "mark_read" in response["_embedded"]["items"][0]["_links"]

    def test_conflict_problem(self, formatter):
        problem = formatter.format_conflict_error("Duplicate application", "/api/adoptions")

        ErrorResponse.model_validate(problem)
        assert problem == {
            "type": "https://api.rescue-workflow.org/problems/resource-conflict",
            "title": "Resource Conflict",
            "status": 409,
            "detail": "Duplicate application",
            "instance": "/api/adoptions"
        }

    def test_invalid_transition_problem_lists_errors(self, formatter):
        problem = formatter.format_invalid_transition_error(
            "Invalid move", "/api/reports/r1", ["Invalid report status transition from closed to rescued"]
        )

        assert problem["status"] == 422
        assert problem["errors"] == ["Invalid report status transition from closed to rescued"]

    def test_validation_problem_links_schema(self, formatter):
        problem = formatter.format_validation_error("Bad input", "/api/reports", [{"field": "latitude"}])

        assert problem["status"] == 400
        assert problem["_links"]["schema"]["href"].endswith("/openapi/openapi.json")

    def test_formatter_type(self, formatter):
        assert isinstance(formatter, HalFormatter)
