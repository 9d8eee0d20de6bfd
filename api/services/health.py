"""
Health Check Service

Reports the health of the rescue store and the optional AMQP broker.
"""

import os
import time
from datetime import datetime
from typing import Dict, Any, Optional
from opentelemetry import trace

from services.store import RescueStore
from services.amqp import AMQPService

tracer = trace.get_tracer(__name__)

SERVICE_NAME = "rescue-workflow-api"


class HealthCheckService:
    """Service for dependency health monitoring."""

    def __init__(self, store: RescueStore, amqp_service: Optional[AMQPService] = None):
        self.store = store
        self.amqp_service = amqp_service
        self.service_version = os.getenv('SERVICE_VERSION', '1.0.0')

    def get_comprehensive_health(self) -> Dict[str, Any]:
        """Get health status of every dependency."""
        with tracer.start_as_current_span("health.comprehensive_check") as span:
            start_time = time.time()

            store_health = self.store.health_check()
            amqp_health = self._check_amqp_health()

            overall_status = self._determine_overall_status(store_health["status"], amqp_health["status"])
            response_time_ms = round((time.time() - start_time) * 1000, 2)

            span.set_attributes({
                "health.overall_status": overall_status,
                "health.response_time_ms": response_time_ms,
                "health.store_status": store_health["status"],
                "health.amqp_status": amqp_health["status"]
            })

            return {
                "status": overall_status,
                "service": SERVICE_NAME,
                "version": self.service_version,
                "environment": os.getenv('ENVIRONMENT', 'development'),
                "timestamp": datetime.utcnow().isoformat() + "Z",
                "response_time_ms": response_time_ms,
                "dependencies": {
                    "store": store_health,
                    "amqp": amqp_health
                }
            }

    def _check_amqp_health(self) -> Dict[str, Any]:
        if self.amqp_service is None:
            return {"status": "disabled"}
        return self.amqp_service.health_check()

    def _determine_overall_status(self, store_status: str, amqp_status: str) -> str:
        """
        The store is critical; the broker only degrades service since
        publishing to it is best-effort.
        """
        if store_status != "healthy":
            return "unhealthy"
        if amqp_status == "unhealthy":
            return "degraded"
        return "healthy"
