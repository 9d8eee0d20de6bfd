#!/usr/bin/env python3
# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Retention sweep for notification mailboxes.

Deletes read notifications older than NOTIFICATION_RETENTION_DAYS (default
30). Intended to run on a schedule, independently of the API process.
"""

import sys
import os
import logging

# Add the parent directory to the path so we can import from api
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from services.mongodb import get_mongodb_service, close_mongodb_connection
from services.notifier import NotificationDispatcher, DEFAULT_RETENTION_DAYS

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)

logger = logging.getLogger(__name__)


def retention_days_from_env() -> int:
    value = os.getenv('NOTIFICATION_RETENTION_DAYS', str(DEFAULT_RETENTION_DAYS))
    try:
        days = int(value)
    except ValueError:
        raise ValueError(f"NOTIFICATION_RETENTION_DAYS must be an integer, got {value!r}")
    if days < 1:
        raise ValueError("NOTIFICATION_RETENTION_DAYS must be at least 1")
    return days


def main():
    """Run one retention sweep."""
    try:
        retention_days = retention_days_from_env()
        dispatcher = NotificationDispatcher(get_mongodb_service())

        deleted = dispatcher.sweep_read(retention_days)
        logger.info(f"Deleted {deleted} read notifications older than {retention_days} days")

    except Exception as e:
        logger.error(f"Notification sweep failed: {e}")
        sys.exit(1)
    finally:
        close_mongodb_connection()


if __name__ == "__main__":
    main()
