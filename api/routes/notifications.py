# SPDX-License-Identifier: Apache-2.0

"""
Notification mailbox endpoints.

Every operation is scoped to the calling principal; the workflow engine
fills mailboxes through its event subscribers.
"""

from flask import jsonify, current_app, g
from flask_openapi3 import APIBlueprint, Tag
from opentelemetry import trace
import logging

from models.requests import NotificationQuery, NotificationPath
from middleware.auth import require_principal
from utils.request import RequestParser, to_json

# Set up logging and tracing
logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

# Create API blueprint
notifications_tag = Tag(name="Notifications", description="Per-principal notification mailbox")
notifications_bp = APIBlueprint(
    'notifications',
    __name__,
    url_prefix='/api/notifications',
    abp_tags=[notifications_tag]
)


@notifications_bp.get('')
@require_principal
def list_notifications():
    """
    List the caller's notifications, newest first.

    Supports ``page``, ``limit``, ``isRead`` and ``type`` filters and
    includes the caller's unread count.
    """
    user_context = g.user_context

    with tracer.start_as_current_span(
        "notifications.list",
        attributes={"user.id": user_context.user_id}
    ) as span:
        query = RequestParser.parse_query(NotificationQuery)
        result, unread = current_app.workflow_engine.notifier.list(
            user_context,
            page=query.page,
            limit=query.limit,
            is_read=query.is_read,
            type=query.type
        )
        span.set_attributes({"notifications.total": result.total, "notifications.unread": unread})

        response = current_app.hal_formatter.format_collection(
            "notification",
            [to_json(notification) for notification in result.items],
            result.total,
            result.page,
            result.page_size,
            query_params={"isRead": query.is_read, "type": query.type},
            extra={"unreadCount": unread}
        )
        return jsonify(response)


@notifications_bp.get('/unread-count')
@require_principal
def unread_count():
    """Number of unread notifications for the caller."""
    count = current_app.workflow_engine.notifier.unread_count(g.user_context)
    return jsonify({"unreadCount": count})


@notifications_bp.put('/<notification_id>/read')
@require_principal
def mark_notification_read(path: NotificationPath):
    """Mark one of the caller's notifications as read."""
    with tracer.start_as_current_span(
        "notifications.mark_read",
        attributes={"user.id": g.user_context.user_id, "notification.id": path.notification_id}
    ):
        notification = current_app.workflow_engine.notifier.mark_read(g.user_context, path.notification_id)
        return jsonify(current_app.hal_formatter.format_resource("notification", to_json(notification)))


@notifications_bp.put('/read-all')
@require_principal
def mark_all_read():
    count = current_app.workflow_engine.notifier.mark_all_read(g.user_context)
    return jsonify({"message": "All notifications marked as read", "count": count})


@notifications_bp.delete('/clear-read')
@require_principal
def clear_read():
    count = current_app.workflow_engine.notifier.delete_read(g.user_context)
    return jsonify({"message": "Read notifications deleted", "count": count})


@notifications_bp.delete('/<notification_id>')
@require_principal
def delete_notification(path: NotificationPath):
    """Delete one of the caller's notifications."""
    with tracer.start_as_current_span(
        "notifications.delete",
        attributes={"user.id": g.user_context.user_id, "notification.id": path.notification_id}
    ):
        current_app.workflow_engine.notifier.delete(g.user_context, path.notification_id)
        logger.info(
            "Notification deleted",
            extra={"user_id": g.user_context.user_id, "notification_id": path.notification_id}
        )
        return jsonify({"message": "Notification deleted", "id": path.notification_id})
