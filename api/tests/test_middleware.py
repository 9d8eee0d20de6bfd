# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Tests for middleware functionality: principal extraction, request parsing
and problem document rendering.
"""

import pytest
from flask import Flask, g, jsonify
from pydantic import BaseModel, Field

from middleware.auth import build_user_context, require_principal
from middleware.error_handler import (
    ErrorHandlerMiddleware, register_custom_error_handlers, ConflictException,
    InvalidTransitionException, AuthenticationException
)
from models.entities import Animal
from services.hal import HalFormatter
from utils.request import RequestParser, to_json


class SampleBody(BaseModel):
    name: str = Field(..., min_length=2)
    count: int = 1


@pytest.fixture
def flask_app():
    app = Flask(__name__)
    formatter = HalFormatter("https://api.example.com")
    ErrorHandlerMiddleware(app, "https://api.example.com")
    register_custom_error_handlers(app, formatter)

    @app.route('/whoami')
    @require_principal
    def whoami():
        return jsonify({"id": g.user_context.user_id, "role": g.user_context.role, "name": g.user_context.name})

    @app.route('/echo', methods=['POST'])
    def echo():
        body = RequestParser.parse_body(SampleBody)
        return jsonify(body.model_dump())

    @app.route('/conflict')
    def conflict():
        raise ConflictException("Already exists")

    @app.route('/transition')
    def transition():
        raise InvalidTransitionException("Bad move", ["from closed to rescued"])

    @app.route('/boom')
    def boom():
        raise RuntimeError("unexpected")

    return app


class TestPrincipalExtraction:
    """Gateway headers to UserContext."""

    def test_build_user_context(self, flask_app):
        headers = {'X-User-Id': ' u1 ', 'X-User-Role': 'Organization', 'X-User-Name': 'Patitas', 'User-Agent': 'pytest'}
        with flask_app.test_request_context('/', headers=headers):
            context = build_user_context()

        assert context.user_id == "u1"
        assert context.role == "organization"
        assert context.name == "Patitas"
        assert context.user_agent == "pytest"

    @pytest.mark.parametrize("headers", [
        {},
        {'X-User-Id': 'u1'},
        {'X-User-Role': 'admin'},
        {'X-User-Id': 'u1', 'X-User-Role': 'root'},
    ])
    def test_missing_or_invalid_principal(self, flask_app, headers):
        with flask_app.test_request_context('/', headers=headers):
            assert build_user_context() is None

    def test_require_principal(self, flask_app):
        client = flask_app.test_client()

        ok = client.get('/whoami', headers={'X-User-Id': 'u1', 'X-User-Role': 'user'})
        missing = client.get('/whoami')

        assert ok.status_code == 200
        assert ok.get_json() == {"id": "u1", "role": "user", "name": None}
        assert missing.status_code == 401
        assert missing.get_json()["title"] == "Authentication Required"

    def test_decorator_raises_outside_error_handlers(self):
        app = Flask(__name__)

        @require_principal
        def view():
            return "never"

        with app.test_request_context('/'):
            with pytest.raises(AuthenticationException):
                view()


class TestRequestParser:
    """Body and query parsing."""

    def test_parse_body(self, flask_app):
        response = flask_app.test_client().post('/echo', json={"name": "Luna"})

        assert response.get_json() == {"name": "Luna", "count": 1}

    def test_invalid_body_is_400_problem(self, flask_app):
        response = flask_app.test_client().post('/echo', json={"name": "L"})

        assert response.status_code == 400
        data = response.get_json()
        assert data["type"].endswith("/validation-error")
        assert data["errors"][0]["field"] == "name"

    def test_non_object_body_is_400(self, flask_app):
        response = flask_app.test_client().post('/echo', data="plain text", content_type="text/plain")

        assert response.status_code == 400

    def test_parse_query_drops_empty_values(self, flask_app):
        with flask_app.test_request_context('/?name=Luna&count='):
            parsed = RequestParser.parse_query(SampleBody)

        assert parsed.count == 1

    def test_to_json(self):
        animal = Animal(organization_id="o1", name="Luna", species="cat", size="small", photo_urls=["https://x/l.jpg"])

        data = to_json(animal)

        assert data["organizationId"] == "o1"
        assert isinstance(data["createdAt"], str)
        assert data["healthInfo"] == {
            "isVaccinated": False, "isSterilized": False, "isDewormed": False, "medicalNotes": None
        }


class TestErrorHandlers:
    """Problem documents."""

    def test_custom_exception(self, flask_app):
        response = flask_app.test_client().get('/conflict')

        assert response.status_code == 409
        assert response.get_json() == {
            "type": "https://api.rescue-workflow.org/problems/resource-conflict",
            "title": "Resource Conflict",
            "status": 409,
            "detail": "Already exists",
            "instance": "/conflict"
        }

    def test_invalid_transition(self, flask_app):
        response = flask_app.test_client().get('/transition')

        assert response.status_code == 422
        assert response.get_json()["errors"] == ["from closed to rescued"]

    def test_unknown_route(self, flask_app):
        response = flask_app.test_client().get('/missing')

        assert response.status_code == 404
        assert response.get_json()["type"].endswith("/resource-not-found")

    def test_unexpected_error(self, flask_app):
        response = flask_app.test_client().get('/boom')

        assert response.status_code == 500
        assert "RuntimeError" in response.get_json()["detail"]

    def test_unexpected_error_hidden_in_production(self, flask_app):
        flask_app.config['ENVIRONMENT'] = 'production'

        response = flask_app.test_client().get('/boom')

        assert response.get_json()["detail"] == "An unexpected error occurred"
