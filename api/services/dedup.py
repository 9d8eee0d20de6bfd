# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Duplicate application guard for adoptions.
"""

import logging

from middleware.error_handler import ConflictException
from services.store import RescueStore

logger = logging.getLogger(__name__)


class DedupGuard:
    """
    Reject a new adoption while the same adopter has an active one for the animal.

    The check is a fast path with a clear error message. The store enforces
    the same rule atomically on insert (partial unique index in MongoDB, the
    store lock in memory), which closes the race between check and create.
    """

    def __init__(self, store: RescueStore):
        self.store = store

    def check(self, animal_id: str, adopter_id: str) -> None:
        existing = self.store.find_active_adoption(animal_id, adopter_id)
        if existing is not None:
            logger.info(
                "Duplicate adoption application rejected",
                extra={"animal_id": animal_id, "adopter_id": adopter_id, "existing_id": existing.get("_id")}
            )
            raise ConflictException("You already have an active adoption application for this animal")
