# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
MongoDB rescue store with connection pooling, conditional writes and
geospatial queries.
"""

import os
import logging
from typing import List, Dict, Optional, Any, Tuple
from pymongo import MongoClient, ASCENDING, DESCENDING, GEOSPHERE, ReturnDocument
from pymongo.collection import Collection
from pymongo.database import Database
from pymongo.errors import (
    ConnectionFailure,
    ServerSelectionTimeoutError,
    DuplicateKeyError,
)
from bson import ObjectId

from models.base import utcnow
from models.enums import ACTIVE_ADOPTION_STATUSES
from middleware.error_handler import ConflictException
from services.store import (
    RescueStore,
    WriteOutcome,
    USERS,
    REPORTS,
    ANIMALS,
    ADOPTIONS,
    MEDICAL_RECORDS,
    NOTIFICATIONS,
    apply_update,
    expected_query,
    get_path,
    plain,
)

logger = logging.getLogger(__name__)

ACTIVE_ADOPTION_INDEX = "uniq_active_adoption"


def _literal(value: Any) -> Dict[str, Any]:
    return {"$literal": value}


class MongoDBService(RescueStore):
    """MongoDB rescue store with connection pooling."""

    backend = "mongodb"

    def __init__(self, connection_string: str = None, database_name: str = None):
        """Initialize MongoDB service with connection pooling."""
        self.connection_string = connection_string or os.getenv(
            'MONGODB_URI',
            'mongodb://localhost:27017/rescue_workflow_dev'
        )
        self.database_name = database_name or os.getenv('MONGODB_DATABASE', 'rescue_workflow_dev')
        self._client: Optional[MongoClient] = None
        self._database: Optional[Database] = None

        # Connection pool settings
        self.max_pool_size = int(os.getenv('MONGODB_MAX_POOL_SIZE', '10'))
        self.min_pool_size = int(os.getenv('MONGODB_MIN_POOL_SIZE', '1'))
        self.max_idle_time_ms = int(os.getenv('MONGODB_MAX_IDLE_TIME_MS', '30000'))
        self.server_selection_timeout_ms = int(os.getenv('MONGODB_SERVER_SELECTION_TIMEOUT_MS', '5000'))

        logger.info(f"MongoDB service initialized for database: {self.database_name}")

    @property
    def client(self) -> MongoClient:
        """Get MongoDB client with connection pooling."""
        if self._client is None:
            try:
                self._client = MongoClient(
                    self.connection_string,
                    maxPoolSize=self.max_pool_size,
                    minPoolSize=self.min_pool_size,
                    maxIdleTimeMS=self.max_idle_time_ms,
                    serverSelectionTimeoutMS=self.server_selection_timeout_ms,
                    retryWrites=True,
                    retryReads=True
                )
                # Test connection
                self._client.admin.command('ping')
                logger.info("MongoDB connection established successfully")
            except (ConnectionFailure, ServerSelectionTimeoutError) as e:
                logger.error(f"Failed to connect to MongoDB: {e}")
                raise

        return self._client

    @property
    def database(self) -> Database:
        """Get MongoDB database."""
        if self._database is None:
            self._database = self.client[self.database_name]
        return self._database

    def get_collection(self, collection_name: str) -> Collection:
        """Get MongoDB collection."""
        return self.database[collection_name]

    def close_connection(self) -> None:
        """Close MongoDB connection."""
        if self._client:
            self._client.close()
            self._client = None
            self._database = None
            logger.info("MongoDB connection closed")

    def health_check(self) -> Dict[str, Any]:
        """Check MongoDB connection health."""
        try:
            result = self.client.admin.command('ping')
            server_info = self.client.server_info()

            return {
                'status': 'healthy',
                'backend': self.backend,
                'ping': result.get('ok') == 1,
                'version': server_info.get('version'),
                'database': self.database_name,
                'connection_pool_size': self.max_pool_size
            }
        except Exception as e:
            logger.error(f"MongoDB health check failed: {e}")
            return {
                'status': 'unhealthy',
                'backend': self.backend,
                'error': str(e),
                'database': self.database_name
            }

    def _id_filter(self, doc_id: str) -> Dict[str, Any]:
        """Match an identity stored either as a string or as an ObjectId."""
        if ObjectId.is_valid(doc_id):
            return {"_id": {"$in": [doc_id, ObjectId(doc_id)]}}
        return {"_id": doc_id}

    @staticmethod
    def _normalize(document: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
        if document is not None and isinstance(document.get("_id"), ObjectId):
            document["_id"] = str(document["_id"])
        return document

    # Document operations

    def insert(self, collection: str, document: Dict[str, Any]) -> Dict[str, Any]:
        """Insert a document, reporting unique index hits as conflicts."""
        document = plain(document)
        if "_id" not in document:
            document["_id"] = str(ObjectId())

        try:
            self.get_collection(collection).insert_one(document)
        except DuplicateKeyError as e:
            logger.warning(
                f"Duplicate key on insert into {collection}",
                extra={"collection": collection, "document_id": document["_id"], "error": str(e)}
            )
            if collection == ADOPTIONS:
                raise ConflictException("An active adoption application already exists for this animal")
            raise ConflictException("Document with this identifier already exists")

        logger.info(f"Created document in {collection}: {document['_id']}")
        return document

    def get(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        if not doc_id:
            return None
        document = self.get_collection(collection).find_one(self._id_filter(doc_id))
        if document is None:
            logger.debug(f"Document {doc_id} not found in {collection}")
        return self._normalize(document)

    def find(
        self,
        collection: str,
        filters: Optional[Dict[str, Any]] = None,
        sort: Optional[List[Tuple[str, int]]] = None,
        skip: int = 0,
        limit: int = 0
    ) -> List[Dict[str, Any]]:
        cursor = self.get_collection(collection).find(plain(filters or {}))
        if sort:
            cursor = cursor.sort(sort)
        if skip:
            cursor = cursor.skip(skip)
        if limit:
            cursor = cursor.limit(limit)
        documents = [self._normalize(document) for document in cursor]
        logger.debug(f"Found {len(documents)} documents in {collection}")
        return documents

    def count(self, collection: str, filters: Optional[Dict[str, Any]] = None) -> int:
        return self.get_collection(collection).count_documents(plain(filters or {}))

    def find_active_adoption(self, animal_id: str, adopter_id: str) -> Optional[Dict[str, Any]]:
        document = self.get_collection(ADOPTIONS).find_one({
            "animalId": animal_id,
            "adopterId": adopter_id,
            "status": {"$in": sorted(plain(ACTIVE_ADOPTION_STATUSES))}
        })
        return self._normalize(document)

    def conditional_update(
        self,
        collection: str,
        doc_id: str,
        expected: Dict[str, Any],
        updates: Dict[str, Any],
        set_once: Optional[Dict[str, Any]] = None
    ) -> Optional[WriteOutcome]:
        """
        Apply a single-document pipeline update guarded by ``expected``.

        Set-once fields use ``$ifNull`` so an existing value is never
        overwritten; values are wrapped in ``$literal`` so strings starting
        with ``$`` are not read as field paths.
        """
        now = utcnow()
        query = {**self._id_filter(doc_id), **expected_query(expected)}

        stage = {path: _literal(value) for path, value in plain(updates).items()}
        for path, value in plain(set_once or {}).items():
            stage[path] = {"$ifNull": [f"${path}", _literal(value)]}
        stage["updatedAt"] = _literal(now)
        stage["version"] = {"$add": [{"$ifNull": ["$version", 0]}, 1]}

        before = self.get_collection(collection).find_one_and_update(
            query,
            [{"$set": stage}],
            return_document=ReturnDocument.BEFORE
        )
        if before is None:
            logger.debug(
                f"Conditional update on {collection} did not match",
                extra={"collection": collection, "document_id": doc_id, "expected": expected_query(expected)}
            )
            return None

        before = self._normalize(before)
        return WriteOutcome(before=before, after=apply_update(before, updates, set_once, now))

    def adjust_counter(self, collection: str, doc_id: str, path: str, delta: int) -> Optional[int]:
        """Add ``delta`` to a counter server-side, clamping the stored value at zero."""
        result = self.get_collection(collection).find_one_and_update(
            self._id_filter(doc_id),
            [{"$set": {path: {"$max": [0, {"$add": [{"$ifNull": [f"${path}", 0]}, int(delta)]}]}}}],
            projection={path: True},
            return_document=ReturnDocument.AFTER
        )
        if result is None:
            logger.warning(f"Counter owner {doc_id} not found in {collection}")
            return None
        return get_path(result, path, 0)

    def geo_near(
        self,
        collection: str,
        location_path: str,
        longitude: float,
        latitude: float,
        max_distance: float,
        filters: Optional[Dict[str, Any]] = None,
        limit: int = 50
    ) -> List[Dict[str, Any]]:
        """Run a spherical ``$geoNear`` against the collection's 2dsphere index."""
        pipeline = [
            {
                "$geoNear": {
                    "near": {"type": "Point", "coordinates": [float(longitude), float(latitude)]},
                    "distanceField": "distanceMeters",
                    "maxDistance": float(max_distance),
                    "spherical": True,
                    "key": location_path,
                    "query": plain(filters or {}),
                }
            },
            {"$limit": int(limit)},
        ]
        results = [self._normalize(document) for document in self.get_collection(collection).aggregate(pipeline)]
        logger.debug(f"geoNear on {collection} returned {len(results)} documents")
        return results

    def update_many(self, collection: str, filters: Dict[str, Any], updates: Dict[str, Any]) -> int:
        query = dict(plain(filters))
        if "_id" in query and isinstance(query["_id"], str):
            query.update(self._id_filter(query["_id"]))
        result = self.get_collection(collection).update_many(
            query,
            {"$set": {**plain(updates), "updatedAt": utcnow()}, "$inc": {"version": 1}}
        )
        return result.modified_count

    def delete_one(self, collection: str, filters: Dict[str, Any]) -> bool:
        query = dict(plain(filters))
        if "_id" in query and isinstance(query["_id"], str):
            query.update(self._id_filter(query["_id"]))
        result = self.get_collection(collection).delete_one(query)
        return result.deleted_count > 0

    def delete_many(self, collection: str, filters: Dict[str, Any]) -> int:
        result = self.get_collection(collection).delete_many(plain(filters))
        return result.deleted_count

    # Index Management

    def create_indexes(self) -> None:
        """
        Create workflow indexes.

        The active-adoption index is a partial unique index over
        (animalId, adopterId); partial filters using ``$in`` need MongoDB 6.0+.
        """
        try:
            logger.info("Creating MongoDB indexes...")

            users = self.get_collection(USERS)
            users.create_index("email", unique=True)
            users.create_index([("role", ASCENDING), ("verified", ASCENDING), ("isActive", ASCENDING)])
            users.create_index([("veterinaryDetails.location", GEOSPHERE)])

            reports = self.get_collection(REPORTS)
            reports.create_index([("location", GEOSPHERE)])
            reports.create_index([("status", ASCENDING), ("createdAt", DESCENDING)])
            reports.create_index([("organizationId", ASCENDING), ("status", ASCENDING)])
            reports.create_index("reporterId")

            animals = self.get_collection(ANIMALS)
            animals.create_index([("organizationId", ASCENDING), ("isDeleted", ASCENDING), ("status", ASCENDING)])
            animals.create_index("reportId")

            adoptions = self.get_collection(ADOPTIONS)
            adoptions.create_index(
                [("animalId", ASCENDING), ("adopterId", ASCENDING)],
                unique=True,
                name=ACTIVE_ADOPTION_INDEX,
                partialFilterExpression={"status": {"$in": sorted(plain(ACTIVE_ADOPTION_STATUSES))}}
            )
            adoptions.create_index([("organizationId", ASCENDING), ("status", ASCENDING)])
            adoptions.create_index([("adopterId", ASCENDING), ("createdAt", DESCENDING)])

            records = self.get_collection(MEDICAL_RECORDS)
            records.create_index([("animalId", ASCENDING), ("visitDate", DESCENDING)])
            records.create_index("veterinaryId")

            notifications = self.get_collection(NOTIFICATIONS)
            notifications.create_index([("userId", ASCENDING), ("isRead", ASCENDING), ("createdAt", DESCENDING)])
            notifications.create_index([("isRead", ASCENDING), ("createdAt", ASCENDING)])

            logger.info("MongoDB indexes created successfully")

        except Exception as e:
            logger.error(f"Failed to create MongoDB indexes: {e}")
            raise


# Singleton instance for application use
_mongodb_service: Optional[MongoDBService] = None


def get_mongodb_service() -> MongoDBService:
    """Get singleton MongoDB service instance."""
    global _mongodb_service
    if _mongodb_service is None:
        _mongodb_service = MongoDBService()
    return _mongodb_service


def close_mongodb_connection() -> None:
    """Close MongoDB connection (for cleanup)."""
    global _mongodb_service
    if _mongodb_service:
        _mongodb_service.close_connection()
        _mongodb_service = None
