# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Notification dispatcher and mailbox operations.
"""

import logging
from datetime import timedelta
from typing import Dict, Optional, Tuple

from opentelemetry import trace

from models.base import utcnow
from models.entities import Notification, UserContext
from domain.authorization import can_access_notification
from domain.events import DomainEvent
from domain.notifications import build_notifications
from middleware.error_handler import AuthorizationException, NotFoundException
from services.store import RescueStore, PaginationResult, NOTIFICATIONS

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

DEFAULT_RETENTION_DAYS = 30


class NotificationDispatcher:
    """
    Records mailbox entries for later retrieval.

    ``notify`` is best-effort: failures are logged and swallowed so a
    notification problem never fails the transition that triggered it.
    """

    def __init__(self, store: RescueStore):
        self.store = store

    def notify(
        self,
        user_id: str,
        type: str,
        title: str,
        body: str,
        related_id: Optional[str] = None,
        related_type: Optional[str] = None,
        metadata: Optional[Dict[str, str]] = None
    ) -> Optional[Notification]:
        """Create a mailbox entry, returning None if it could not be stored."""
        try:
            notification = Notification(
                user_id=user_id,
                type=type,
                title=title,
                body=body,
                related_id=related_id,
                related_type=related_type,
                metadata=metadata or {}
            )
            self.store.insert(NOTIFICATIONS, notification.to_document())

            logger.info(
                "Notification created",
                extra={
                    "notification_id": notification.id,
                    "user_id": user_id,
                    "notification_type": notification.type,
                    "related_id": related_id
                }
            )
            return notification

        except Exception as e:
            logger.error(
                "Failed to create notification",
                extra={"user_id": user_id, "notification_type": str(type), "error": str(e)},
                exc_info=True
            )
            return None

    def handle_event(self, event: DomainEvent) -> None:
        """Event bus subscriber that turns workflow events into mailbox entries."""
        for draft in build_notifications(event):
            self.notify(
                draft.user_id,
                draft.type,
                draft.title,
                draft.body,
                related_id=draft.related_id,
                related_type=draft.related_type,
                metadata=draft.metadata
            )

    # Mailbox operations, always scoped to the caller

    def list(
        self,
        user_context: UserContext,
        page: int = 1,
        limit: int = 20,
        is_read: Optional[bool] = None,
        type: Optional[str] = None
    ) -> Tuple[PaginationResult, int]:
        """
        List the caller's notifications, newest first.

        Returns:
            Tuple of (page of Notification entities, unread count)
        """
        filters: Dict = {"userId": user_context.user_id}
        if is_read is not None:
            filters["isRead"] = is_read
        if type is not None:
            filters["type"] = type

        result = self.store.paginate(NOTIFICATIONS, filters, page=page, page_size=limit)
        result.items = [Notification.from_document(document) for document in result.items]
        return result, self.unread_count(user_context)

    def unread_count(self, user_context: UserContext) -> int:
        return self.store.count(NOTIFICATIONS, {"userId": user_context.user_id, "isRead": False})

    def _get_owned(self, user_context: UserContext, notification_id: str) -> Notification:
        document = self.store.get(NOTIFICATIONS, notification_id)
        if document is None:
            raise NotFoundException("Notification not found")

        notification = Notification.from_document(document)
        access = can_access_notification(user_context, notification.user_id)
        if not access.allowed:
            raise AuthorizationException(access.reason)
        return notification

    def mark_read(self, user_context: UserContext, notification_id: str) -> Notification:
        notification = self._get_owned(user_context, notification_id)
        if not notification.is_read:
            self.store.update_many(
                NOTIFICATIONS,
                {"_id": notification.id, "userId": user_context.user_id},
                {"isRead": True}
            )
            notification.is_read = True
        return notification

    def mark_all_read(self, user_context: UserContext) -> int:
        count = self.store.update_many(
            NOTIFICATIONS,
            {"userId": user_context.user_id, "isRead": False},
            {"isRead": True}
        )
        logger.info("Notifications marked read", extra={"user_id": user_context.user_id, "count": count})
        return count

    def delete(self, user_context: UserContext, notification_id: str) -> None:
        notification = self._get_owned(user_context, notification_id)
        self.store.delete_one(NOTIFICATIONS, {"_id": notification.id, "userId": user_context.user_id})

    def delete_read(self, user_context: UserContext) -> int:
        count = self.store.delete_many(NOTIFICATIONS, {"userId": user_context.user_id, "isRead": True})
        logger.info("Read notifications deleted", extra={"user_id": user_context.user_id, "count": count})
        return count

    def sweep_read(self, retention_days: int = DEFAULT_RETENTION_DAYS, now=None) -> int:
        """
        Delete read notifications older than the retention window.

        Unread notifications and workflow entities are never touched.
        """
        cutoff = (now or utcnow()) - timedelta(days=retention_days)
        with tracer.start_as_current_span("notifications.sweep_read") as span:
            count = self.store.delete_many(NOTIFICATIONS, {"isRead": True, "createdAt": {"$lt": cutoff}})
            span.set_attributes({"sweep.retention_days": retention_days, "sweep.deleted": count})

        logger.info(
            "Notification retention sweep finished",
            extra={"retention_days": retention_days, "cutoff": cutoff.isoformat(), "deleted": count}
        )
        return count
