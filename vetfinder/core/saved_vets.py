"""Bridge between a selected candidate and the user's saved vets list."""

from __future__ import annotations

import logging
import threading
from datetime import datetime, timezone
from typing import Any, Callable, List, Optional, Set, Tuple

from vetfinder.core import db
from vetfinder.core.errors import Unauthenticated, UpstreamUnavailable
from vetfinder.etl.transform import to_saved_vet
from vetfinder.models import Candidate, Identity, SavedVet

logger = logging.getLogger(__name__)


def _require_identity(identity: Optional[Identity]) -> Identity:
    if identity is None or not identity.uid:
        raise Unauthenticated("You must be logged in to save a veterinarian.")
    return identity


class SavedVetBridge:
    """Writes saved vets for the signed-in user, one in-flight save per clinic.

    ``store`` exposes ``upsert_saved_vet``, ``get_saved_vet``, ``list_saved_vets``
    and ``delete_saved_vet``; the Postgres helpers in :mod:`vetfinder.core.db`
    are used by default.
    """

    def __init__(self, store: Any = db, clock: Optional[Callable[[], datetime]] = None) -> None:
        self._store = store
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._lock = threading.Lock()
        self._in_flight: Set[Tuple[str, str]] = set()

    def is_saving(self, vet_id: str, identity: Optional[Identity]) -> bool:
        if identity is None:
            return False
        with self._lock:
            return (identity.uid, vet_id) in self._in_flight

    def save_vet(self, candidate: Candidate, identity: Optional[Identity]) -> bool:
        """Upsert ``candidate`` for ``identity``.

        Returns False when a save for the same clinic is already running and
        this request was dropped.
        """
        user = _require_identity(identity)
        key = (user.uid, candidate.id)
        with self._lock:
            if key in self._in_flight:
                logger.info("Save for vet %s already in flight; ignoring repeat", candidate.id)
                return False
            self._in_flight.add(key)

        try:
            record = to_saved_vet(candidate, added_at=self._clock())
            self._store.upsert_saved_vet(user.uid, record)
        except UpstreamUnavailable:
            logger.error("Could not save vet %s for user %s", candidate.id, user.uid)
            raise
        finally:
            with self._lock:
                self._in_flight.discard(key)

        logger.info("Saved vet %s for user %s", candidate.id, user.uid)
        return True

    def remove_vet(self, vet_id: str, identity: Optional[Identity]) -> bool:
        user = _require_identity(identity)
        removed = self._store.delete_saved_vet(user.uid, vet_id)
        logger.info("Removed vet %s for user %s (existed=%s)", vet_id, user.uid, removed)
        return removed

    def is_saved(self, vet_id: str, identity: Optional[Identity]) -> bool:
        if identity is None:
            return False
        return self._store.get_saved_vet(identity.uid, vet_id) is not None

    def list_saved(self, identity: Optional[Identity]) -> List[SavedVet]:
        user = _require_identity(identity)
        return self._store.list_saved_vets(user.uid)
