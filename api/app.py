"""
Animal Rescue Workflow API - Flask Application Entry Point

This module builds the Flask application with OpenAPI 3.0 support,
configures middleware, and wires the workflow engine to its store and
event subscribers.
"""

import atexit
import os
import logging
from typing import Optional
from flask import jsonify
from flask_openapi3 import OpenAPI, Info, Tag
from observability.config import setup_observability
from observability.middleware import add_observability_middleware

from middleware.error_handler import ErrorHandlerMiddleware, register_custom_error_handlers
from services.hal import create_hal_formatter
from services.store import RescueStore
from services.memory_store import InMemoryRescueStore
from services.mongodb import MongoDBService
from services.amqp import AMQPService, create_amqp_service
from services.health import HealthCheckService
from services.workflow import create_workflow_engine

logger = logging.getLogger(__name__)

# OpenAPI info
info = Info(
    title="Animal Rescue Workflow API",
    version="1.0.0",
    description="Workflow engine for citizen reports, rescued animals, adoptions and veterinary care"
)

# API tags for organization
tags = [
    Tag(name="Reports", description="Citizen sighting reports"),
    Tag(name="Animals", description="Animals in the care of rescue organizations"),
    Tag(name="Adoptions", description="Adoption applications"),
    Tag(name="Medical Records", description="Veterinary visits"),
    Tag(name="Veterinaries", description="Verified veterinary clinics"),
    Tag(name="Notifications", description="Per-principal notification mailbox"),
    Tag(name="Organizations", description="Shelter capacity and rescue counters"),
    Tag(name="Health", description="System health and status")
]


def create_store(backend: str, mongodb_uri: Optional[str] = None, database: Optional[str] = None) -> RescueStore:
    """Build the configured store backend (``mongodb`` or ``memory``)."""
    if backend == "memory":
        return InMemoryRescueStore()
    if backend == "mongodb":
        return MongoDBService(mongodb_uri, database)
    raise ValueError(f"Unknown STORE_BACKEND: {backend}")


def create_app(store: Optional[RescueStore] = None, amqp_service: Optional[AMQPService] = None) -> OpenAPI:
    """
    Create the Flask application.

    Args:
        store: Store to use instead of the one selected by STORE_BACKEND
        amqp_service: Broker publisher; defaults to one built from AMQP_URL
    """
    app = OpenAPI(__name__, info=info)

    # Environment configuration
    app.config['ENVIRONMENT'] = os.getenv('ENVIRONMENT', 'development')
    app.config['DEBUG'] = app.config['ENVIRONMENT'] == 'development'
    app.config['BASE_URL'] = os.getenv('BASE_URL', 'http://localhost:5000')
    app.config['OTEL_ENABLED'] = os.getenv('OTEL_ENABLED', 'true').lower() == 'true'

    # Storage configuration
    app.config['STORE_BACKEND'] = os.getenv('STORE_BACKEND', 'mongodb')
    app.config['MONGODB_URI'] = os.getenv('MONGODB_URI', 'mongodb://localhost:27017/rescue_dev')
    app.config['MONGODB_DATABASE'] = os.getenv('MONGODB_DATABASE', 'rescue_dev')

    # Message queue configuration
    app.config['AMQP_URL'] = os.getenv('AMQP_URL', '')
    app.config['NOTIFICATION_RETENTION_DAYS'] = int(os.getenv('NOTIFICATION_RETENTION_DAYS', '30'))

    if app.config['OTEL_ENABLED']:
        setup_observability()
        add_observability_middleware(app)

    # Initialize services
    if store is None:
        store = create_store(app.config['STORE_BACKEND'], app.config['MONGODB_URI'], app.config['MONGODB_DATABASE'])
    if amqp_service is None and app.config['AMQP_URL']:
        amqp_service = create_amqp_service(app.config['AMQP_URL'])
    if amqp_service is not None:
        # Exchange declaration runs on the publisher thread; failures are logged there
        amqp_service.start()
        atexit.register(amqp_service.close)

    workflow_engine = create_workflow_engine(store, amqp_service)
    health_service = HealthCheckService(store, amqp_service)

    # Initialize middleware
    hal_formatter = create_hal_formatter(app.config['BASE_URL'])
    ErrorHandlerMiddleware(app, app.config['BASE_URL'])
    register_custom_error_handlers(app, hal_formatter)

    # Make services available to routes
    app.store = store
    app.amqp_service = amqp_service
    app.workflow_engine = workflow_engine
    app.hal_formatter = hal_formatter

    # Register routes
    from routes.reports import reports_bp
    from routes.animals import animals_bp
    from routes.adoptions import adoptions_bp
    from routes.medical_records import medical_records_bp
    from routes.veterinaries import veterinaries_bp
    from routes.notifications import notifications_bp
    from routes.organizations import organizations_bp

    app.register_api(reports_bp)
    app.register_api(animals_bp)
    app.register_api(adoptions_bp)
    app.register_api(medical_records_bp)
    app.register_api(veterinaries_bp)
    app.register_api(notifications_bp)
    app.register_api(organizations_bp)

    @app.route('/api/healthz')
    def health_check():
        """Dependency health; 503 when the store is unreachable."""
        health_data = health_service.get_comprehensive_health()
        status_code = 503 if health_data["status"] == "unhealthy" else 200

        health_response = dict(health_data)
        health_response['_links'] = {
            'self': hal_formatter.builder.link_builder.build_self_link('/api/healthz').model_dump(exclude_none=True)
        }
        return jsonify(health_response), status_code

    logger.info(
        "Application created",
        extra={
            "environment": app.config['ENVIRONMENT'],
            "store_backend": store.backend,
            "amqp_enabled": amqp_service is not None
        }
    )
    return app


if __name__ == '__main__':
    # Development server
    app = create_app()
    app.run(
        host='0.0.0.0',
        port=int(os.getenv('PORT', 5000)),
        debug=app.config['DEBUG']
    )
