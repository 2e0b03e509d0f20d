"""Keeps the displayed clinic list in step with searches and map movement.

Every search gets a sequence number when it starts. Results are applied only
when they belong to the most recently started search, so a slow earlier
request can never overwrite a faster later one regardless of arrival order.
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import Executor, Future, ThreadPoolExecutor
from dataclasses import dataclass
from enum import Enum
from typing import Callable, List, Optional

from vetfinder.core.errors import NotFound, UpstreamUnavailable
from vetfinder.core.geo import Bounds, Coordinate, fit_bounds
from vetfinder.models import BoundsQuery, Candidate, Query, ViewportState

logger = logging.getLogger(__name__)

Fetch = Callable[[], List[Candidate]]


class SearchState(str, Enum):
    IDLE = "idle"
    FETCHING = "fetching"
    ERROR = "error"


@dataclass(frozen=True)
class Notice:
    level: str
    message: str
    dismissible: bool = True


@dataclass(frozen=True)
class MapFraming:
    """Either a box to fit or a single point to center on."""

    bounds: Optional[Bounds] = None
    center: Optional[Coordinate] = None


def compute_framing(candidates: List[Candidate]) -> Optional[MapFraming]:
    points = [c.coordinate for c in candidates if c.coordinate is not None]
    if not points:
        return None
    bounds = fit_bounds(points)
    if bounds is not None:
        return MapFraming(bounds=bounds, center=bounds.center)
    return MapFraming(center=points[0])


class ViewportSyncController:
    def __init__(
        self,
        executor: Optional[Executor] = None,
        on_change: Optional[Callable[["ViewportSyncController"], None]] = None,
    ) -> None:
        self._owns_executor = executor is None
        self._executor = executor or ThreadPoolExecutor(max_workers=4)
        self._on_change = on_change
        self._lock = threading.Lock()
        self._sequence = 0

        self.state = SearchState.IDLE
        self.query: Optional[Query] = None
        self.candidates: List[Candidate] = []
        self.notice: Optional[Notice] = None
        self.framing: Optional[MapFraming] = None
        self.viewport = ViewportState()

    def trigger(self, query: Query, fetch: Fetch) -> Future:
        """Start a search; the returned future resolves to whether its result was applied."""
        with self._lock:
            self._sequence += 1
            sequence = self._sequence
            self.query = query
            self.state = SearchState.FETCHING
        logger.debug("Search #%d started for %s", sequence, query)
        self._notify()
        return self._executor.submit(self._run, sequence, fetch)

    def on_map_idle(self, bounds: Bounds, fetch_for_bounds: Callable[[Bounds], List[Candidate]]) -> Optional[Future]:
        """Refetch for the viewport the map settled on, unless it was already fetched."""
        with self._lock:
            if bounds == self.viewport.last_fetched_bounds:
                logger.debug("Map idle on already fetched bounds; skipping")
                return None
            self.viewport.last_fetched_bounds = bounds
        return self.trigger(BoundsQuery(bounds), lambda: fetch_for_bounds(bounds))

    def move_map(self, center: Coordinate, zoom: Optional[float] = None) -> None:
        with self._lock:
            self.viewport.center = center
            if zoom is not None:
                self.viewport.zoom = zoom

    def dismiss_notice(self) -> None:
        with self._lock:
            if self.notice is not None and self.notice.dismissible:
                self.notice = None
        self._notify()

    def close(self) -> None:
        if self._owns_executor:
            self._executor.shutdown(wait=False)

    def _run(self, sequence: int, fetch: Fetch) -> bool:
        try:
            results = fetch()
        except NotFound as exc:
            return self._apply(sequence, [], SearchState.IDLE, Notice("info", str(exc) or "Nothing found"))
        except UpstreamUnavailable as exc:
            logger.error("Search #%d failed: %s", sequence, exc)
            return self._apply(
                sequence,
                [],
                SearchState.ERROR,
                Notice("error", "Could not reach the search service. Please try again."),
            )
        except Exception as exc:  # noqa: BLE001
            logger.exception("Search #%d crashed: %s", sequence, exc)
            return self._apply(
                sequence,
                [],
                SearchState.ERROR,
                Notice("error", "Something went wrong while searching."),
            )
        return self._apply(sequence, list(results), SearchState.IDLE, None)

    def _apply(
        self,
        sequence: int,
        candidates: List[Candidate],
        state: SearchState,
        notice: Optional[Notice],
    ) -> bool:
        with self._lock:
            if sequence != self._sequence:
                logger.debug("Discarding stale result #%d (latest is #%d)", sequence, self._sequence)
                return False
            self.candidates = candidates
            self.state = state
            self.notice = notice
            if state is SearchState.IDLE:
                framing = compute_framing(candidates)
                # No plottable candidates: keep whatever the map is showing.
                if framing is not None:
                    self.framing = framing
                    self.viewport.center = framing.center
                    if framing.bounds is not None:
                        self.viewport.last_fetched_bounds = framing.bounds
            else:
                self.viewport.last_fetched_bounds = None
        logger.info("Search #%d applied: state=%s results=%d", sequence, state.value, len(candidates))
        self._notify()
        return True

    def _notify(self) -> None:
        if self._on_change is not None:
            self._on_change(self)
