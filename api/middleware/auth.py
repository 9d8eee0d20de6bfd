# SPDX-License-Identifier: Apache-2.0

"""
Principal extraction for requests forwarded by the authentication gateway.

Credentials are verified upstream; the gateway asserts the caller through
``X-User-Id``, ``X-User-Role`` and ``X-User-Name`` headers. This module turns
those headers into a UserContext for the workflow engine.
"""

from functools import wraps
from flask import request, g
from typing import Optional, Callable
from opentelemetry import trace
from pydantic import ValidationError
import logging

from models.entities import UserContext
from middleware.error_handler import AuthenticationException

tracer = trace.get_tracer(__name__)
logger = logging.getLogger(__name__)

USER_ID_HEADER = 'X-User-Id'
USER_ROLE_HEADER = 'X-User-Role'
USER_NAME_HEADER = 'X-User-Name'


def build_user_context() -> Optional[UserContext]:
    """
    Build the caller's context from gateway headers.

    Returns:
        UserContext, or None when the gateway asserted no principal
    """
    user_id = request.headers.get(USER_ID_HEADER, '').strip()
    role = request.headers.get(USER_ROLE_HEADER, '').strip().lower()
    if not user_id or not role:
        return None

    try:
        return UserContext(
            user_id=user_id,
            role=role,
            name=request.headers.get(USER_NAME_HEADER) or None,
            ip_address=request.remote_addr,
            user_agent=request.headers.get('User-Agent', '')
        )
    except ValidationError:
        logger.warning(
            "Rejected principal with unknown role",
            extra={"user_id": user_id, "role": role, "path": request.path}
        )
        return None


def require_principal(f: Callable) -> Callable:
    """Decorator that requires a gateway-asserted principal and stores it on ``g``."""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        with tracer.start_as_current_span("auth.middleware.resolve_principal") as span:
            user_context = build_user_context()
            if user_context is None:
                span.set_attribute("auth.result", "missing_principal")
                logger.warning("Authentication failed: missing principal", extra={"path": request.path})
                raise AuthenticationException("Missing or invalid principal headers")

            g.user_context = user_context
            span.set_attributes({
                "auth.result": "success",
                "user.id": user_context.user_id,
                "user.role": user_context.role
            })

        return f(*args, **kwargs)

    return decorated_function
