# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Services package - Storage, workflow orchestration and side effects.
"""

from .store import RescueStore, PaginationResult, WriteOutcome
from .memory_store import InMemoryRescueStore
from .mongodb import MongoDBService, get_mongodb_service, close_mongodb_connection
from .amqp import AMQPService, AMQPConfig, PublishResult, create_amqp_service

__all__ = [
    "RescueStore",
    "PaginationResult",
    "WriteOutcome",
    "InMemoryRescueStore",
    "MongoDBService",
    "get_mongodb_service",
    "close_mongodb_connection",
    "AMQPService",
    "AMQPConfig",
    "PublishResult",
    "create_amqp_service"
]
