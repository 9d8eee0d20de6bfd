# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Tests for the notification dispatcher, mailbox operations and notification drafts.
"""

import pytest
from datetime import datetime, timedelta
from unittest.mock import patch

from models.entities import Notification, Report, GeoPoint, UserContext
from domain.events import ReportAssigned, ReportCreated
from domain.notifications import build_notifications, truncate, NotificationDraft
from middleware.error_handler import AuthorizationException, NotFoundException
from services.notifier import NotificationDispatcher
from services.store import NOTIFICATIONS


@pytest.fixture
def dispatcher(store):
    return NotificationDispatcher(store)


@pytest.fixture
def owner():
    return UserContext(user_id="user-1", role="user", name="Ana")


@pytest.fixture
def stranger():
    return UserContext(user_id="user-2", role="admin", name="Root")


def seed(store, user_id, is_read=False, created_at=None, type="system"):
    notification = Notification(
        user_id=user_id,
        type=type,
        title="Hello",
        body="Something happened",
        is_read=is_read
    )
    document = notification.to_document()
    if created_at is not None:
        document["createdAt"] = created_at
    store.insert(NOTIFICATIONS, document)
    return notification


class TestNotificationDrafts:
    """Event to mailbox mapping."""

    def _report(self, **overrides):
        fields = dict(
            reporter_id="citizen-1",
            description="Kitten trapped in a storm drain",
            animal_type="cat",
            urgency_level="critical",
            location=GeoPoint.from_lat_lng(-33.45, -70.6)
        )
        fields.update(overrides)
        return Report(**fields)

    def test_organization_assignment(self):
        report = self._report()
        drafts = build_notifications(ReportAssigned(report=report, assignee_id="org-1", assignee_role="organization"))

        assert len(drafts) == 1
        assert drafts[0].user_id == "org-1"
        assert drafts[0].type == "new_case"
        assert drafts[0].body == "A new cat case has been assigned to you"
        assert drafts[0].metadata == {"urgencyLevel": "critical"}

    def test_events_without_recipients(self):
        assert build_notifications(ReportCreated(report=self._report())) == []

    def test_truncate(self):
        assert truncate("short", 10) == "short"
        assert truncate("a" * 20, 10) == "aaaaaaa..."

    def test_draft_clips_to_stored_limits(self):
        draft = NotificationDraft(user_id="u", type="system", title="t" * 150, body="b" * 600)

        assert len(draft.title) == 100
        assert len(draft.body) == 500


class TestNotify:
    """Best-effort creation."""

    def test_notify_stores_entry(self, dispatcher, store):
        notification = dispatcher.notify(
            "user-1", "adoption_update", "Adoption update", "Approved", related_id="ad-1", related_type="Adoption"
        )

        document = store.get(NOTIFICATIONS, notification.id)
        assert document["userId"] == "user-1"
        assert document["isRead"] is False
        assert document["relatedType"] == "Adoption"

    def test_notify_swallows_store_errors(self, dispatcher, store):
        with patch.object(store, "insert", side_effect=RuntimeError("disk full")):
            assert dispatcher.notify("user-1", "system", "Hi", "There") is None

    def test_notify_swallows_invalid_drafts(self, dispatcher):
        assert dispatcher.notify("user-1", "not-a-type", "Hi", "There") is None


class TestMailbox:
    """Caller-scoped mailbox operations."""

    def test_list_is_scoped_and_counts_unread(self, dispatcher, store, owner):
        seed(store, "user-1")
        seed(store, "user-1", is_read=True)
        seed(store, "user-2")

        result, unread = dispatcher.list(owner)

        assert result.total == 2
        assert all(item.user_id == "user-1" for item in result.items)
        assert unread == 1

    def test_list_filters(self, dispatcher, store, owner):
        seed(store, "user-1", type="new_case")
        seed(store, "user-1", is_read=True)

        unread_only, _ = dispatcher.list(owner, is_read=False)
        new_cases, _ = dispatcher.list(owner, type="new_case")

        assert unread_only.total == 1
        assert new_cases.total == 1

    def test_list_newest_first(self, dispatcher, store, owner):
        old = seed(store, "user-1", created_at=datetime(2026, 1, 1))
        new = seed(store, "user-1", created_at=datetime(2026, 2, 1))

        result, _ = dispatcher.list(owner)

        assert [item.id for item in result.items] == [new.id, old.id]

    def test_mark_read(self, dispatcher, store, owner):
        notification = seed(store, "user-1")

        marked = dispatcher.mark_read(owner, notification.id)

        assert marked.is_read is True
        assert store.get(NOTIFICATIONS, notification.id)["isRead"] is True
        assert dispatcher.unread_count(owner) == 0

    def test_mark_read_is_idempotent(self, dispatcher, store, owner):
        notification = seed(store, "user-1", is_read=True)

        assert dispatcher.mark_read(owner, notification.id).is_read is True

    def test_mark_read_missing(self, dispatcher, owner):
        with pytest.raises(NotFoundException):
            dispatcher.mark_read(owner, "missing")

    def test_foreign_mailbox_is_forbidden_even_for_admins(self, dispatcher, store, stranger):
        notification = seed(store, "user-1")

        with pytest.raises(AuthorizationException):
            dispatcher.mark_read(stranger, notification.id)
        with pytest.raises(AuthorizationException):
            dispatcher.delete(stranger, notification.id)

        assert store.get(NOTIFICATIONS, notification.id)["isRead"] is False

    def test_mark_all_read(self, dispatcher, store, owner):
        seed(store, "user-1")
        seed(store, "user-1")
        seed(store, "user-2")

        assert dispatcher.mark_all_read(owner) == 2
        assert store.count(NOTIFICATIONS, {"userId": "user-2", "isRead": False}) == 1

    def test_delete(self, dispatcher, store, owner):
        notification = seed(store, "user-1")

        dispatcher.delete(owner, notification.id)

        assert store.get(NOTIFICATIONS, notification.id) is None

    def test_delete_read(self, dispatcher, store, owner):
        seed(store, "user-1", is_read=True)
        seed(store, "user-1")
        seed(store, "user-2", is_read=True)

        assert dispatcher.delete_read(owner) == 1
        assert store.count(NOTIFICATIONS) == 2


class TestRetentionSweep:
    """Periodic deletion of old read notifications."""

    def test_sweep_only_old_read_entries(self, dispatcher, store):
        now = datetime(2026, 6, 1)
        old_read = seed(store, "user-1", is_read=True, created_at=now - timedelta(days=45))
        old_unread = seed(store, "user-1", created_at=now - timedelta(days=45))
        recent_read = seed(store, "user-2", is_read=True, created_at=now - timedelta(days=5))

        deleted = dispatcher.sweep_read(30, now=now)

        assert deleted == 1
        assert store.get(NOTIFICATIONS, old_read.id) is None
        assert store.get(NOTIFICATIONS, old_unread.id) is not None
        assert store.get(NOTIFICATIONS, recent_read.id) is not None

    def test_sweep_respects_retention_window(self, dispatcher, store):
        now = datetime(2026, 6, 1)
        seed(store, "user-1", is_read=True, created_at=now - timedelta(days=10))

        assert dispatcher.sweep_read(30, now=now) == 0
        assert dispatcher.sweep_read(7, now=now) == 1
