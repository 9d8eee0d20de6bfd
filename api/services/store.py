# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Storage contract shared by the MongoDB and in-memory rescue stores.

Documents are plain dicts keyed by their camelCase field names with the
identity under ``_id``. Filters use the MongoDB query dialect; the in-memory
store understands the subset the workflow engine relies on.
"""

import copy
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

USERS = "users"
REPORTS = "reports"
ANIMALS = "animals"
ADOPTIONS = "adoptions"
MEDICAL_RECORDS = "medical_records"
NOTIFICATIONS = "notifications"

COLLECTIONS = (USERS, REPORTS, ANIMALS, ADOPTIONS, MEDICAL_RECORDS, NOTIFICATIONS)

CAPACITY_LEDGER_PATH = "capacityLedger"


class PaginationResult:
    """Result container for paginated queries."""

    def __init__(self, items: List[Dict], total: int, page: int, page_size: int):
        self.items = items
        self.total = total
        self.page = page
        self.page_size = page_size
        self.total_pages = (total + page_size - 1) // page_size
        self.has_next = page < self.total_pages
        self.has_prev = page > 1


@dataclass
class WriteOutcome:
    """Document state on both sides of a conditional write."""
    before: Dict[str, Any]
    after: Dict[str, Any]


def plain(value: Any) -> Any:
    """Convert enums (and containers of them) into storable primitives."""
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, dict):
        return {key: plain(item) for key, item in value.items()}
    if isinstance(value, (list, tuple, set, frozenset)):
        return [plain(item) for item in value]
    return value


def expected_query(expected: Dict[str, Any]) -> Dict[str, Any]:
    """
    Translate write preconditions into a query.

    A collection of values means "any of"; anything else is an equality match.
    """
    query = {}
    for field_name, value in expected.items():
        if isinstance(value, (list, tuple, set, frozenset)):
            query[field_name] = {"$in": sorted(plain(value))}
        else:
            query[field_name] = plain(value)
    return query


def get_path(document: Dict[str, Any], path: str, default: Any = None) -> Any:
    """Read a dotted path from a nested document."""
    current: Any = document
    for part in path.split("."):
        if not isinstance(current, dict) or part not in current:
            return default
        current = current[part]
    return current


def set_path(document: Dict[str, Any], path: str, value: Any) -> None:
    """Write a dotted path into a nested document, creating parents."""
    parts = path.split(".")
    current = document
    for part in parts[:-1]:
        if not isinstance(current.get(part), dict):
            current[part] = {}
        current = current[part]
    current[parts[-1]] = value


def apply_update(
    document: Dict[str, Any],
    updates: Dict[str, Any],
    set_once: Optional[Dict[str, Any]],
    now: datetime
) -> Dict[str, Any]:
    """
    Compute the document produced by a conditional write.

    ``set_once`` fields are only written when currently unset; every write
    bumps ``version`` and ``updatedAt``.
    """
    result = copy.deepcopy(document)
    for path, value in plain(updates).items():
        set_path(result, path, value)
    for path, value in plain(set_once or {}).items():
        if get_path(result, path) is None:
            set_path(result, path, value)
    result["updatedAt"] = now
    result["version"] = int(result.get("version") or 0) + 1
    return result


class RescueStore:
    """
    Storage contract used by the workflow engine.

    Every entity write goes through ``conditional_update`` so that a
    precondition (status, version) and the write are a single atomic step.
    """

    backend = "abstract"

    def insert(self, collection: str, document: Dict[str, Any]) -> Dict[str, Any]:
        """Insert a document; duplicate identities or constraint hits raise ConflictException."""
        raise NotImplementedError

    def get(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        raise NotImplementedError

    def find(
        self,
        collection: str,
        filters: Optional[Dict[str, Any]] = None,
        sort: Optional[List[Tuple[str, int]]] = None,
        skip: int = 0,
        limit: int = 0
    ) -> List[Dict[str, Any]]:
        raise NotImplementedError

    def count(self, collection: str, filters: Optional[Dict[str, Any]] = None) -> int:
        raise NotImplementedError

    def find_active_adoption(self, animal_id: str, adopter_id: str) -> Optional[Dict[str, Any]]:
        raise NotImplementedError

    def conditional_update(
        self,
        collection: str,
        doc_id: str,
        expected: Dict[str, Any],
        updates: Dict[str, Any],
        set_once: Optional[Dict[str, Any]] = None
    ) -> Optional[WriteOutcome]:
        """
        Apply ``updates`` only if the document still matches ``expected``.

        Returns None when the document is missing or a precondition failed.
        """
        raise NotImplementedError

    def adjust_counter(self, collection: str, doc_id: str, path: str, delta: int) -> Optional[int]:
        """Atomically add ``delta`` to a counter, clamping at zero. Returns the new value."""
        raise NotImplementedError

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
        """Documents within ``max_distance`` meters, nearest first, each carrying ``distanceMeters``."""
        raise NotImplementedError

    def update_many(self, collection: str, filters: Dict[str, Any], updates: Dict[str, Any]) -> int:
        raise NotImplementedError

    def delete_one(self, collection: str, filters: Dict[str, Any]) -> bool:
        raise NotImplementedError

    def delete_many(self, collection: str, filters: Dict[str, Any]) -> int:
        raise NotImplementedError

    def create_indexes(self) -> None:
        """Declare indexes and constraints; a no-op where the backend has none."""

    def health_check(self) -> Dict[str, Any]:
        raise NotImplementedError

    def paginate(
        self,
        collection: str,
        filters: Optional[Dict[str, Any]] = None,
        page: int = 1,
        page_size: int = 20,
        sort_by: str = "createdAt",
        sort_order: int = -1
    ) -> PaginationResult:
        """Paginate documents with sorting and filtering."""
        skip = (page - 1) * page_size
        total = self.count(collection, filters)
        items = self.find(collection, filters, sort=[(sort_by, sort_order)], skip=skip, limit=page_size)
        return PaginationResult(items, total, page, page_size)
