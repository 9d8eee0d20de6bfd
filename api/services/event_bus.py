# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
In-process event bus for workflow side effects.
"""

import logging
from typing import Callable, List

from opentelemetry import trace

from domain.events import DomainEvent

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

EventHandler = Callable[[DomainEvent], None]


class EventBus:
    """
    Fan out domain events to subscribers.

    Subscribers run synchronously, in registration order, after the primary
    write has committed. A failing subscriber is logged and skipped; the
    remaining subscribers still run and the publisher never sees the error.
    """

    def __init__(self, subscribers: List[EventHandler] = None):
        self._subscribers: List[EventHandler] = [s for s in (subscribers or []) if s is not None]

    def subscribe(self, handler: EventHandler) -> None:
        self._subscribers.append(handler)

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def publish(self, event: DomainEvent) -> int:
        """
        Deliver an event to every subscriber.

        Returns:
            Number of subscribers that handled the event without raising
        """
        delivered = 0
        with tracer.start_as_current_span("event_bus.publish") as span:
            span.set_attributes({
                "event.name": event.name,
                "event.entity_id": event.entity_id,
                "event.subscribers": len(self._subscribers)
            })

            for handler in self._subscribers:
                try:
                    handler(event)
                    delivered += 1
                except Exception as e:
                    span.record_exception(e)
                    logger.error(
                        "Event subscriber failed",
                        extra={
                            "event_name": event.name,
                            "entity_id": event.entity_id,
                            "subscriber": getattr(handler, "__qualname__", repr(handler)),
                            "error": str(e)
                        },
                        exc_info=True
                    )

        return delivered
