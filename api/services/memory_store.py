# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
In-memory rescue store.

Implements the same contract as the MongoDB store for tests and local
development. A single re-entrant lock makes every operation atomic, which
gives the same guarantees as MongoDB's single-document atomicity plus the
partial unique index on active adoptions.
"""

import copy
import logging
import threading
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Tuple

from bson import ObjectId

from models.base import utcnow
from models.enums import ACTIVE_ADOPTION_STATUSES
from middleware.error_handler import ConflictException
from domain.geo import haversine_meters
from services.store import (
    RescueStore,
    WriteOutcome,
    COLLECTIONS,
    ADOPTIONS,
    apply_update,
    expected_query,
    get_path,
    set_path,
    plain,
)

logger = logging.getLogger(__name__)

_MISSING = object()


def _compare(operator: Callable[[Any, Any], bool]) -> Callable[[Any, Any], bool]:
    def check(actual: Any, operand: Any) -> bool:
        if actual is _MISSING or actual is None:
            return False
        return operator(actual, operand)
    return check


_OPERATORS: Dict[str, Callable[[Any, Any], bool]] = {
    "$in": lambda actual, operand: actual in operand,
    "$nin": lambda actual, operand: actual not in operand,
    "$ne": lambda actual, operand: actual != operand,
    "$exists": lambda actual, operand: (actual is not _MISSING) == bool(operand),
    "$lt": _compare(lambda actual, operand: actual < operand),
    "$lte": _compare(lambda actual, operand: actual <= operand),
    "$gt": _compare(lambda actual, operand: actual > operand),
    "$gte": _compare(lambda actual, operand: actual >= operand),
}


def matches(document: Dict[str, Any], filters: Optional[Dict[str, Any]]) -> bool:
    """Evaluate the supported subset of MongoDB filters against a document."""
    for path, condition in plain(filters or {}).items():
        actual = get_path(document, path, _MISSING)
        if isinstance(condition, dict) and condition and all(key.startswith("$") for key in condition):
            for operator, operand in condition.items():
                if operator not in _OPERATORS:
                    raise ValueError(f"Unsupported filter operator: {operator}")
                if operator in ("$in", "$nin"):
                    actual_value = None if actual is _MISSING else actual
                    if not _OPERATORS[operator](actual_value, list(operand)):
                        return False
                elif not _OPERATORS[operator](actual, operand):
                    return False
        else:
            value = None if actual is _MISSING else actual
            if value != condition:
                return False
    return True


def _sort_key(path: str) -> Callable[[Dict[str, Any]], Tuple[int, Any]]:
    def key(document: Dict[str, Any]) -> Tuple[int, Any]:
        value = get_path(document, path)
        return (0, value) if value is not None else (1, 0)
    return key


class InMemoryRescueStore(RescueStore):
    """Thread-safe dict-backed rescue store."""

    backend = "memory"

    def __init__(self):
        self._lock = threading.RLock()
        self._collections: Dict[str, Dict[str, Dict[str, Any]]] = {name: {} for name in COLLECTIONS}
        logger.info("In-memory rescue store initialized")

    def _collection(self, name: str) -> Dict[str, Dict[str, Any]]:
        if name not in self._collections:
            self._collections[name] = {}
        return self._collections[name]

    def _has_active_adoption(self, animal_id: str, adopter_id: str) -> bool:
        return any(
            document.get("animalId") == animal_id
            and document.get("adopterId") == adopter_id
            and document.get("status") in ACTIVE_ADOPTION_STATUSES
            for document in self._collection(ADOPTIONS).values()
        )

    def insert(self, collection: str, document: Dict[str, Any]) -> Dict[str, Any]:
        document = copy.deepcopy(plain(document))
        document.setdefault("_id", str(ObjectId()))

        with self._lock:
            documents = self._collection(collection)
            if document["_id"] in documents:
                raise ConflictException("Document with this identifier already exists")

            if (collection == ADOPTIONS and document.get("status") in ACTIVE_ADOPTION_STATUSES
                    and self._has_active_adoption(document.get("animalId"), document.get("adopterId"))):
                logger.warning(
                    "Active adoption uniqueness violated on insert",
                    extra={"animal_id": document.get("animalId"), "adopter_id": document.get("adopterId")}
                )
                raise ConflictException("An active adoption application already exists for this animal")

            documents[document["_id"]] = document

        logger.debug(f"Created document in {collection}: {document['_id']}")
        return copy.deepcopy(document)

    def get(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            document = self._collection(collection).get(doc_id)
            return copy.deepcopy(document) if document is not None else None

    def find(
        self,
        collection: str,
        filters: Optional[Dict[str, Any]] = None,
        sort: Optional[List[Tuple[str, int]]] = None,
        skip: int = 0,
        limit: int = 0
    ) -> List[Dict[str, Any]]:
        with self._lock:
            documents = [
                copy.deepcopy(document)
                for document in self._collection(collection).values()
                if matches(document, filters)
            ]

        # Stable sorts applied last-key-first give a compound ordering
        for path, direction in reversed(sort or []):
            documents.sort(key=_sort_key(path), reverse=direction < 0)

        if skip:
            documents = documents[skip:]
        if limit:
            documents = documents[:limit]
        return documents

    def count(self, collection: str, filters: Optional[Dict[str, Any]] = None) -> int:
        with self._lock:
            return sum(1 for document in self._collection(collection).values() if matches(document, filters))

    def find_active_adoption(self, animal_id: str, adopter_id: str) -> Optional[Dict[str, Any]]:
        found = self.find(ADOPTIONS, {
            "animalId": animal_id,
            "adopterId": adopter_id,
            "status": {"$in": ACTIVE_ADOPTION_STATUSES},
        }, limit=1)
        return found[0] if found else None

    def conditional_update(
        self,
        collection: str,
        doc_id: str,
        expected: Dict[str, Any],
        updates: Dict[str, Any],
        set_once: Optional[Dict[str, Any]] = None
    ) -> Optional[WriteOutcome]:
        now = utcnow()
        with self._lock:
            documents = self._collection(collection)
            current = documents.get(doc_id)
            if current is None or not matches(current, expected_query(expected)):
                return None

            before = copy.deepcopy(current)
            after = apply_update(current, updates, set_once, now)
            documents[doc_id] = after
            return WriteOutcome(before=before, after=copy.deepcopy(after))

    def adjust_counter(self, collection: str, doc_id: str, path: str, delta: int) -> Optional[int]:
        with self._lock:
            document = self._collection(collection).get(doc_id)
            if document is None:
                logger.warning(f"Counter owner {doc_id} not found in {collection}")
                return None
            value = max(0, int(get_path(document, path) or 0) + int(delta))
            set_path(document, path, value)
            return value

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
        """Haversine scan over every document carrying a GeoJSON point at ``location_path``."""
        results = []
        for document in self.find(collection, filters):
            point = get_path(document, location_path)
            if not isinstance(point, dict) or len(point.get("coordinates") or []) != 2:
                continue
            point_lon, point_lat = point["coordinates"]
            distance = haversine_meters(latitude, longitude, point_lat, point_lon)
            if distance <= max_distance:
                document["distanceMeters"] = distance
                results.append(document)

        results.sort(key=lambda document: document["distanceMeters"])
        return results[:limit]

    def update_many(self, collection: str, filters: Dict[str, Any], updates: Dict[str, Any]) -> int:
        now = utcnow()
        modified = 0
        with self._lock:
            documents = self._collection(collection)
            for doc_id, document in list(documents.items()):
                if matches(document, filters):
                    documents[doc_id] = apply_update(document, updates, None, now)
                    modified += 1
        return modified

    def delete_one(self, collection: str, filters: Dict[str, Any]) -> bool:
        with self._lock:
            documents = self._collection(collection)
            for doc_id, document in documents.items():
                if matches(document, filters):
                    del documents[doc_id]
                    return True
        return False

    def delete_many(self, collection: str, filters: Dict[str, Any]) -> int:
        with self._lock:
            documents = self._collection(collection)
            doomed = [doc_id for doc_id, document in documents.items() if matches(document, filters)]
            for doc_id in doomed:
                del documents[doc_id]
        return len(doomed)

    def health_check(self) -> Dict[str, Any]:
        with self._lock:
            sizes = {name: len(documents) for name, documents in self._collections.items()}
        return {
            'status': 'healthy',
            'backend': self.backend,
            'collections': sizes
        }

    def clear(self) -> None:
        with self._lock:
            for documents in self._collections.values():
                documents.clear()
