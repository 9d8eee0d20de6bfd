#!/usr/bin/env python3
# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Script to create the MongoDB indexes the workflow relies on.

Besides query performance this installs the 2dsphere indexes used by the
proximity searches and the partial unique index that enforces one active
adoption application per (animal, adopter).
"""

import sys
import os
import logging

# Add the parent directory to the path so we can import from api
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from services.mongodb import get_mongodb_service, close_mongodb_connection

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)

logger = logging.getLogger(__name__)

# $in inside a partialFilterExpression needs MongoDB 6.0
MIN_SERVER_MAJOR_VERSION = 6


def server_supports_partial_in(version: str) -> bool:
    try:
        return int(version.split('.')[0]) >= MIN_SERVER_MAJOR_VERSION
    except (AttributeError, ValueError):
        return False


def main():
    """Create MongoDB indexes."""
    try:
        logger.info("Starting MongoDB index creation...")

        mongodb_service = get_mongodb_service()

        health = mongodb_service.health_check()
        if health['status'] != 'healthy':
            logger.error(f"MongoDB is not healthy: {health}")
            sys.exit(1)

        logger.info(f"Connected to MongoDB {health['version']} - Database: {health['database']}")
        if not server_supports_partial_in(health.get('version')):
            logger.error(
                f"MongoDB {MIN_SERVER_MAJOR_VERSION}.0+ is required for the active adoption index "
                f"(server is {health.get('version')})"
            )
            sys.exit(1)

        mongodb_service.create_indexes()

        logger.info("MongoDB indexes created successfully!")

    except Exception as e:
        logger.error(f"Failed to create indexes: {e}")
        sys.exit(1)
    finally:
        close_mongodb_connection()


if __name__ == "__main__":
    main()
