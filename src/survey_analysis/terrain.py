"""Terrain profile fetching: point cache, counters and the per-line fetch queue.

The scheduler keeps at most one elevation request in flight. Lines are pulled
from a FIFO queue; a promoted line jumps to the head. Results are cached by
rounded coordinate for the lifetime of the cache object.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import time
from collections import Counter, deque
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Sequence

from .config import CACHE_DECIMALS, FETCH_YIELD_S, MAX_POINTS_PER_REQUEST, PROFILE_SPACING_M
from .elevation import ElevationService, ElevationServiceError
from .models import (
    Coordinate,
    LineFeature,
    LineTerrain,
    ProfilePoint,
    TerrainProfilePoint,
    TerrainSample,
    TerrainStatus,
)
from .profile import generate_profile_points, terrain_query_points

logger = logging.getLogger(__name__)

CacheKey = tuple[int, float, float]
Listener = Callable[[int, LineTerrain], None]


def cache_key(epsg: int, x: float, y: float) -> CacheKey:
    return (epsg, round(x, CACHE_DECIMALS), round(y, CACHE_DECIMALS))


class TerrainCache:
    """Terrain samples keyed by (epsg, rounded x, rounded y). Never evicts."""

    def __init__(self):
        self._entries: dict[CacheKey, TerrainSample] = {}

    def get(self, epsg: int, x: float, y: float) -> TerrainSample | None:
        return self._entries.get(cache_key(epsg, x, y))

    def put(self, epsg: int, x: float, y: float, sample: TerrainSample) -> None:
        self._entries[cache_key(epsg, x, y)] = sample

    def __contains__(self, key: CacheKey) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)


@dataclass
class TerrainStats:
    """Diagnostic counters. Not authoritative."""

    request_count: int = 0
    points_requested: int = 0
    points_from_cache: int = 0
    total_request_ms: float = 0.0
    errors: int = 0
    terrain_types: Counter = field(default_factory=Counter)

    @property
    def cache_hit_ratio(self) -> float:
        if self.points_requested == 0:
            return 0.0
        return self.points_from_cache / self.points_requested

    @property
    def avg_request_ms(self) -> float:
        if self.request_count == 0:
            return 0.0
        return self.total_request_ms / self.request_count

    def snapshot(self, cache_size: int = 0) -> dict:
        return {
            "request_count": self.request_count,
            "points_requested": self.points_requested,
            "points_from_cache": self.points_from_cache,
            "cache_hit_ratio": round(self.cache_hit_ratio, 3),
            "avg_request_ms": round(self.avg_request_ms, 1),
            "cache_size": cache_size,
            "errors": self.errors,
            "terrain_types": dict(self.terrain_types),
        }


class TerrainScheduler:
    """Fetches terrain profiles for the lines of one dataset, one request at a time.

    ``enqueue``/``promote`` only touch the queue and never await, so they are
    atomic with respect to the drain loop popping the queue head. ``drain``
    refuses to run twice concurrently. Status transitions are pushed to
    listeners registered with :meth:`add_listener`.
    """

    def __init__(
        self,
        lines: Sequence[LineFeature],
        epsg: int,
        service: ElevationService,
        *,
        cache: TerrainCache | None = None,
        spacing: float = PROFILE_SPACING_M,
        batch_size: int = MAX_POINTS_PER_REQUEST,
        yield_delay: float = FETCH_YIELD_S,
        clock: Callable[[], float] = time.perf_counter,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.lines = list(lines)
        self.epsg = epsg
        self.service = service
        self.cache = cache if cache is not None else TerrainCache()
        self.stats = TerrainStats()
        self.spacing = spacing
        self.batch_size = batch_size
        self.yield_delay = yield_delay
        self._clock = clock
        self._sleep = sleep

        self._queue: deque[int] = deque()
        self._status: dict[int, LineTerrain] = {}
        self._listeners: list[Listener] = []
        self._draining = False
        self._current: int | None = None
        self._task: asyncio.Task | None = None

    # -- queue ----------------------------------------------------------------

    def enqueue(self, line_index: int) -> bool:
        """Append a line to the queue tail unless it is queued or already has a status."""
        if line_index in self._status or line_index in self._queue:
            return False
        if self._reject_invalid(line_index):
            return False
        self._queue.append(line_index)
        return True

    def enqueue_all(self) -> int:
        return sum(self.enqueue(i) for i in range(len(self.lines)))

    def promote(self, line_index: int) -> bool:
        """Move (or insert) a line to the queue head if it was never fetched."""
        if line_index in self._status:
            return False
        if self._reject_invalid(line_index):
            return False
        if line_index in self._queue:
            self._queue.remove(line_index)
        self._queue.appendleft(line_index)
        return True

    def pending(self) -> list[int]:
        return list(self._queue)

    def _reject_invalid(self, line_index: int) -> bool:
        if 0 <= line_index < len(self.lines) and len(self.lines[line_index].coordinates) >= 2:
            return False
        self._set_status(line_index, "error", "Invalid geometry")
        return True

    # -- status ---------------------------------------------------------------

    def add_listener(self, callback: Listener) -> None:
        self._listeners.append(callback)

    def status(self, line_index: int) -> LineTerrain | None:
        if line_index in self._status:
            return self._status[line_index]
        if line_index in self._queue:
            return LineTerrain(line_index=line_index, status="queued")
        return None

    def terrain(self, line_index: int) -> list[TerrainProfilePoint] | None:
        entry = self._status.get(line_index)
        if entry is None or entry.status != "done":
            return None
        return entry.points

    def statuses(self) -> dict[int, TerrainStatus]:
        out: dict[int, TerrainStatus] = {i: "queued" for i in self._queue}
        out.update({i: entry.status for i, entry in self._status.items()})
        return out

    @property
    def is_draining(self) -> bool:
        return self._draining

    def _set_status(
        self,
        line_index: int,
        status: TerrainStatus,
        message: str | None = None,
        points: list[TerrainProfilePoint] | None = None,
    ) -> None:
        entry = LineTerrain(line_index=line_index, status=status, message=message, points=points or [])
        self._status[line_index] = entry
        for callback in self._listeners:
            try:
                callback(line_index, entry)
            except Exception:
                logger.exception("Terrain status listener failed for line %d", line_index)

    # -- worker ---------------------------------------------------------------

    async def drain(self) -> bool:
        """Process the queue until empty. Returns False if a drain is already running."""
        if self._draining:
            return False
        self._draining = True
        try:
            while self._queue:
                line_index = self._queue.popleft()
                self._current = line_index
                await self._fetch_line(line_index)
                self._current = None
                await self._sleep(self.yield_delay)
        finally:
            if self._current is not None:
                # cancelled mid-request; samples of this line were never cached
                self._set_status(self._current, "error", "Fetch aborted")
                self._current = None
            self._draining = False
        return True

    def start(self) -> asyncio.Task | None:
        """Run :meth:`drain` in the background if it is not already running."""
        if self._draining or (self._task is not None and not self._task.done()):
            return self._task
        if not self._queue:
            return None
        self._task = asyncio.get_running_loop().create_task(self.drain())
        return self._task

    async def aclose(self) -> None:
        """Abort the background drain; the in-flight line is marked as an error."""
        task, self._task = self._task, None
        if task is not None and not task.done():
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task

    async def _fetch_line(self, line_index: int) -> None:
        self._set_status(line_index, "loading")
        try:
            points = await self._sample_line(self.lines[line_index].coordinates)
        except Exception as exc:
            logger.warning("Terrain fetch error for line %d: %s", line_index, exc)
            self._set_status(line_index, "error", str(exc) or type(exc).__name__)
            return
        self._set_status(line_index, "done", points=points)

    async def _sample_line(self, coordinates: Sequence[Coordinate]) -> list[TerrainProfilePoint]:
        profile = generate_profile_points(coordinates, self.spacing)
        self.stats.points_requested += len(profile)

        samples: list[TerrainSample | None] = [None] * len(profile)
        # uncached key -> indices of the profile points sharing it
        pending: dict[CacheKey, list[int]] = {}
        for idx, p in enumerate(profile):
            cached = self.cache.get(self.epsg, p.x, p.y)
            if cached is not None:
                samples[idx] = cached
                self.stats.points_from_cache += 1
            else:
                pending.setdefault(cache_key(self.epsg, p.x, p.y), []).append(idx)

        keys = list(pending)
        fetched: dict[CacheKey, TerrainSample] = {}
        for start in range(0, len(keys), self.batch_size):
            batch = keys[start:start + self.batch_size]
            query = terrain_query_points([profile[pending[key][0]] for key in batch])
            results = await self._request(query)
            for key, sample in zip(batch, results):
                if sample is not None:
                    fetched[key] = sample

        # commit only once the whole line succeeded
        for key, sample in fetched.items():
            _, x, y = key
            self.cache.put(self.epsg, x, y, sample)
            for idx in pending[key]:
                samples[idx] = sample

        return [_join(p, s) for p, s in zip(profile, samples)]

    async def _request(self, points: list[Coordinate]) -> list[TerrainSample | None]:
        started = self._clock()
        self.stats.request_count += 1
        try:
            results = await self.service.fetch(points, self.epsg)
        except Exception:
            self.stats.errors += 1
            raise
        finally:
            self.stats.total_request_ms += (self._clock() - started) * 1000

        if len(results) != len(points):
            self.stats.errors += 1
            raise ElevationServiceError(
                f"Elevation service returned {len(results)} samples for {len(points)} points"
            )
        for sample in results:
            if sample is not None and sample.terrain_type:
                self.stats.terrain_types[sample.terrain_type] += 1
        return results


def _join(point: ProfilePoint, sample: TerrainSample | None) -> TerrainProfilePoint:
    return TerrainProfilePoint(
        **point.model_dump(),
        terrain_z=sample.z if sample else None,
        terrain_type=sample.terrain_type if sample else None,
        source=sample.source if sample else None,
    )
