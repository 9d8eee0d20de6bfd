# SPDX-License-Identifier: Apache-2.0

"""
AMQP Service for workflow event publication

This module publishes workflow domain events to a topic exchange so that
external consumers (dashboards, push gateways, analytics) can follow rescue
cases. Publication is best-effort: a broker outage is logged and never
affects the transition that produced the event.
"""

import json
import logging
import os
import threading
import time
import uuid
from concurrent.futures import Future, ThreadPoolExecutor
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Dict, Any, Optional, Generator
from urllib.parse import urlparse

import pika
from opentelemetry import trace
from opentelemetry.trace import Status, StatusCode
from opentelemetry.propagate import inject

from domain.events import DomainEvent, event_payload


logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)


@dataclass
class AMQPConfig:
    """AMQP configuration settings."""
    url: str
    exchange: str = "rescue.events"
    connection_timeout: int = 30
    heartbeat: int = 600
    blocked_connection_timeout: int = 300
    retry_delay: float = 1.0
    max_retries: int = 1


@dataclass
class PublishResult:
    """Result of message publishing operation."""
    success: bool
    correlation_id: str
    exchange: str
    routing_key: str
    error: Optional[str] = None
    retry_count: int = 0


class AMQPConnectionError(Exception):
    """Raised when AMQP connection fails."""
    pass


class PayloadSerializationError(Exception):
    """Raised when an event cannot be serialized."""
    pass


class AMQPService:
    """
    AMQP publisher for workflow events.

    Features:
    - Publishing on a background thread, off the request path
    - Fresh connection per publish with guaranteed cleanup
    - Topic exchange declaration before the first publish
    - Retry with exponential backoff
    - OpenTelemetry trace context propagated in message headers
    """

    def __init__(self, config: AMQPConfig):
        self.config = config
        self._connection_params = self._parse_connection_url(config.url)
        self._executor: Optional[ThreadPoolExecutor] = None
        self._executor_lock = threading.Lock()
        self._exchange_declared = False

    def _parse_connection_url(self, url: str) -> pika.ConnectionParameters:
        """Parse AMQP URL and create connection parameters."""
        parsed = urlparse(url)

        return pika.ConnectionParameters(
            host=parsed.hostname or 'localhost',
            port=parsed.port or 5672,
            virtual_host=parsed.path.lstrip('/') or '/',
            credentials=pika.PlainCredentials(
                username=parsed.username or 'guest',
                password=parsed.password or 'guest'
            ),
            connection_attempts=max(1, self.config.max_retries),
            retry_delay=self.config.retry_delay,
            socket_timeout=self.config.connection_timeout,
            heartbeat=self.config.heartbeat,
            blocked_connection_timeout=self.config.blocked_connection_timeout
        )

    @contextmanager
    def _get_connection(self) -> Generator[Any, None, None]:
        """
        Context manager for AMQP connections with automatic cleanup.

        A fresh connection is opened for each operation so no connection
        outlives the request that needed it.
        """
        connection = None
        channel = None

        try:
            with tracer.start_as_current_span("amqp.connection.create") as span:
                connection = pika.BlockingConnection(self._connection_params)
                channel = connection.channel()

                span.set_attributes({
                    "amqp.host": self._connection_params.host,
                    "amqp.port": self._connection_params.port,
                    "amqp.virtual_host": self._connection_params.virtual_host
                })

            yield channel

        except pika.exceptions.AMQPConnectionError as e:
            logger.error(
                "AMQP connection failed",
                extra={
                    "error": str(e),
                    "host": self._connection_params.host,
                    "port": self._connection_params.port
                }
            )
            raise AMQPConnectionError(f"Failed to connect to AMQP broker: {e}")

        finally:
            if channel and not channel.is_closed:
                try:
                    channel.close()
                except Exception as e:
                    logger.warning(f"Error closing AMQP channel: {e}")

            if connection and not connection.is_closed:
                try:
                    connection.close()
                except Exception as e:
                    logger.warning(f"Error closing AMQP connection: {e}")

    def _declare_exchange(self, channel) -> None:
        channel.exchange_declare(
            exchange=self.config.exchange,
            exchange_type='topic',
            durable=True,
            auto_delete=False
        )
        self._exchange_declared = True

    def setup_exchange(self) -> bool:
        """Declare the durable topic exchange events are published to."""
        with tracer.start_as_current_span("amqp.setup.exchange") as span:
            try:
                with self._get_connection() as channel:
                    self._declare_exchange(channel)
                logger.info("AMQP exchange declared", extra={"exchange": self.config.exchange})
                span.set_status(Status(StatusCode.OK))
                return True
            except Exception as e:
                span.record_exception(e)
                span.set_status(Status(StatusCode.ERROR, str(e)))
                logger.error(
                    "Failed to declare AMQP exchange",
                    extra={"exchange": self.config.exchange, "error": str(e)}
                )
                return False

    def routing_key(self, event: DomainEvent) -> str:
        """Routing keys look like ``adoption.status_changed``."""
        return event.name

    def publish_event(
        self,
        event: DomainEvent,
        correlation_id: Optional[str] = None,
        headers: Optional[Dict[str, Any]] = None
    ) -> PublishResult:
        """
        Publish a domain event to the configured exchange, blocking until done.

        Args:
            event: Event published by the workflow engine
            correlation_id: Optional correlation ID, generated when absent
            headers: Trace context captured by the caller, injected here when absent

        Returns:
            PublishResult describing the outcome
        """
        correlation_id = correlation_id or str(uuid.uuid4())
        routing_key = self.routing_key(event)

        with tracer.start_as_current_span("amqp.publish_event") as span:
            span.set_attributes({
                "amqp.exchange": self.config.exchange,
                "amqp.routing_key": routing_key,
                "amqp.correlation_id": correlation_id,
                "event.entity_id": event.entity_id
            })

            try:
                body = self._serialize_message(event_payload(event))
            except PayloadSerializationError as e:
                span.set_status(Status(StatusCode.ERROR, str(e)))
                return PublishResult(
                    success=False,
                    correlation_id=correlation_id,
                    exchange=self.config.exchange,
                    routing_key=routing_key,
                    error=str(e)
                )

            if headers is None:
                headers = {}
                inject(headers)

            result = self._publish_with_retry(routing_key, body, correlation_id, headers)
            if result.success:
                span.set_status(Status(StatusCode.OK))
            else:
                span.set_status(Status(StatusCode.ERROR, result.error or "publish failed"))
            return result

    def _get_executor(self) -> ThreadPoolExecutor:
        with self._executor_lock:
            if self._executor is None:
                # One worker keeps events in publication order
                self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="amqp-publisher")
            return self._executor

    def start(self) -> Future:
        """Declare the exchange on the publisher thread."""
        return self._get_executor().submit(self.setup_exchange)

    def handle_event(self, event: DomainEvent) -> Future:
        """
        Event bus subscriber entry point.

        Queues the event for the publisher thread and returns immediately, so
        broker latency and retry delays never hold up the request.
        """
        headers: Dict[str, Any] = {}
        inject(headers)
        return self._get_executor().submit(self.publish_event, event, None, headers)

    def close(self, wait: bool = True) -> None:
        """Stop the publisher thread, draining queued events when ``wait`` is set."""
        with self._executor_lock:
            executor, self._executor = self._executor, None
        if executor is not None:
            executor.shutdown(wait=wait)
            logger.info("AMQP publisher stopped", extra={"exchange": self.config.exchange})

    def _publish_with_retry(
        self,
        routing_key: str,
        body: str,
        correlation_id: str,
        headers: Dict[str, Any]
    ) -> PublishResult:
        """Publish message with exponential backoff retry logic."""
        exchange = self.config.exchange
        last_error = None

        for attempt in range(self.config.max_retries + 1):
            try:
                with self._get_connection() as channel:
                    if not self._exchange_declared:
                        self._declare_exchange(channel)

                    properties = pika.BasicProperties(
                        correlation_id=correlation_id,
                        timestamp=int(time.time()),
                        delivery_mode=2,  # Persistent message
                        content_type='application/json',
                        headers=headers
                    )

                    channel.basic_publish(
                        exchange=exchange,
                        routing_key=routing_key,
                        body=body,
                        properties=properties
                    )

                    logger.info(
                        "Event published",
                        extra={
                            "exchange": exchange,
                            "routing_key": routing_key,
                            "correlation_id": correlation_id,
                            "attempt": attempt + 1
                        }
                    )

                    return PublishResult(
                        success=True,
                        correlation_id=correlation_id,
                        exchange=exchange,
                        routing_key=routing_key,
                        retry_count=attempt
                    )

            except Exception as e:
                last_error = e

                if attempt < self.config.max_retries:
                    delay = self.config.retry_delay * (2 ** attempt)
                    logger.warning(
                        "Event publish failed, retrying",
                        extra={
                            "exchange": exchange,
                            "routing_key": routing_key,
                            "correlation_id": correlation_id,
                            "attempt": attempt + 1,
                            "retry_delay": delay,
                            "error": str(e)
                        }
                    )
                    time.sleep(delay)
                else:
                    logger.error(
                        "Event publish failed after all retries",
                        extra={
                            "exchange": exchange,
                            "routing_key": routing_key,
                            "correlation_id": correlation_id,
                            "total_attempts": attempt + 1,
                            "error": str(e)
                        }
                    )

        return PublishResult(
            success=False,
            correlation_id=correlation_id,
            exchange=exchange,
            routing_key=routing_key,
            error=str(last_error),
            retry_count=self.config.max_retries
        )

    def _serialize_message(self, message: Dict[str, Any]) -> str:
        """
        Serialize message to JSON with proper datetime handling.

        Args:
            message: Message to serialize

        Returns:
            str: JSON serialized message
        """
        def json_serializer(obj):
            """Custom JSON serializer for datetime and other objects."""
            if hasattr(obj, 'isoformat'):
                return obj.isoformat()
            return str(obj)

        try:
            return json.dumps(message, default=json_serializer, ensure_ascii=False, separators=(',', ':'))
        except (TypeError, ValueError) as e:
            logger.error("Message serialization failed", extra={"error": str(e)})
            raise PayloadSerializationError(f"Failed to serialize message: {e}")

    def health_check(self) -> Dict[str, Any]:
        """Attempt a connection and passively check the exchange."""
        try:
            with self._get_connection() as channel:
                channel.exchange_declare(exchange=self.config.exchange, exchange_type='topic', passive=True)
            return {'status': 'healthy', 'exchange': self.config.exchange}
        except Exception as e:
            logger.warning(
                "AMQP health check failed",
                extra={"error": str(e), "host": self._connection_params.host}
            )
            return {'status': 'unhealthy', 'exchange': self.config.exchange, 'error': str(e)}


def create_amqp_service(amqp_url: Optional[str] = None) -> Optional[AMQPService]:
    """
    Factory function to create AMQP service with configuration from environment.

    Returns:
        AMQPService, or None when no broker URL is configured
    """
    amqp_url = amqp_url or os.getenv('AMQP_URL')
    if not amqp_url:
        logger.info("AMQP_URL not set, workflow events will not be published to a broker")
        return None

    config = AMQPConfig(
        url=amqp_url,
        exchange=os.getenv('AMQP_EXCHANGE', 'rescue.events'),
        connection_timeout=int(os.getenv('AMQP_CONNECTION_TIMEOUT', '30')),
        heartbeat=int(os.getenv('AMQP_HEARTBEAT', '600')),
        blocked_connection_timeout=int(os.getenv('AMQP_BLOCKED_TIMEOUT', '300')),
        retry_delay=float(os.getenv('AMQP_RETRY_DELAY', '1.0')),
        max_retries=int(os.getenv('AMQP_MAX_RETRIES', '1'))
    )

    return AMQPService(config)
