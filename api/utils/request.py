# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Request utilities for extracting and processing request data.
"""

from flask import request
from typing import Dict, Any, Type, TypeVar
from pydantic import BaseModel
import logging

from middleware.error_handler import ValidationException

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)


class RequestParser:
    """Utility for parsing and extracting request data."""

    @staticmethod
    def get_json_body() -> Dict[str, Any]:
        """
        Get the JSON request body.

        Raises:
            ValidationException: If the body is missing or not a JSON object
        """
        data = request.get_json(silent=True)
        if not isinstance(data, dict):
            raise ValidationException("Request body must be a JSON object")
        return data

    @staticmethod
    def parse_body(model: Type[ModelT]) -> ModelT:
        """Validate the JSON body against a request model; field errors render as 400."""
        return model.model_validate(RequestParser.get_json_body())

    @staticmethod
    def parse_query(model: Type[ModelT]) -> ModelT:
        """Validate query string parameters against a request model."""
        params = {key: value for key, value in request.args.items() if value != ''}
        return model.model_validate(params)


def to_json(entity: BaseModel) -> Dict[str, Any]:
    """Serialize an entity for a response body (camelCase, ISO dates)."""
    return entity.model_dump(mode="json", by_alias=True)
