"""
In-memory intraday history of the market total per game.

Each game owns a bounded, time-ordered series; the oldest point is evicted
once capacity is exceeded. Nothing survives a restart.
"""
from __future__ import annotations

from collections import deque
from datetime import datetime
from typing import Iterable, Optional

from shared.models.domain import HistoryPoint, OddsRow
from shared.utils.logging import get_logger
from shared.utils.metrics import HISTORY_POINTS, HISTORY_SERIES

logger = get_logger(__name__)

DEFAULT_CAPACITY = 2000
DAY_MS = 24 * 60 * 60 * 1000


def to_epoch_ms(dt: datetime) -> int:
    return int(dt.timestamp() * 1000)


def local_day_bounds(now: Optional[datetime] = None) -> tuple[int, int]:
    """[start, end) of the local calendar day containing now, in epoch ms."""
    now = (now or datetime.now()).astimezone()
    start = now.replace(hour=0, minute=0, second=0, microsecond=0)
    start_ms = to_epoch_ms(start)
    return start_ms, start_ms + DAY_MS


class HistoryRecorder:
    """Bounded per-entity series; append from the odds path, read from queries."""

    def __init__(self, capacity: int = DEFAULT_CAPACITY) -> None:
        if capacity < 1:
            raise ValueError("history capacity must be positive")
        self._capacity = capacity
        self._series: dict[str, deque[HistoryPoint]] = {}

    @property
    def capacity(self) -> int:
        return self._capacity

    def __len__(self) -> int:
        return len(self._series)

    def record(self, entity_id: str, ts: int, value: float) -> HistoryPoint:
        """Append one point; timestamps older than the tail are clamped to it."""
        series = self._series.get(entity_id)
        if series is None:
            series = deque(maxlen=self._capacity)
            self._series[entity_id] = series
            HISTORY_SERIES.set(len(self._series))
        if series and ts < series[-1].ts:
            ts = series[-1].ts
        point = HistoryPoint(ts=ts, y=value)
        series.append(point)
        HISTORY_POINTS.inc()
        return point

    def record_totals(self, rows: Iterable[OddsRow], ts: int) -> int:
        """Record every row that has both a total and a schedule time."""
        count = 0
        for row in rows:
            if row.total_point is None or not row.commence_time:
                continue
            self.record(row.id, ts, row.total_point)
            count += 1
        if count:
            logger.debug("history_recorded", points=count, series=len(self._series))
        return count

    def series(self, entity_id: str) -> list[HistoryPoint]:
        return list(self._series.get(entity_id, ()))

    def query(self, day_start: int, day_end: int) -> dict[str, list[HistoryPoint]]:
        """Points with day_start <= ts < day_end; entities with none are omitted."""
        out: dict[str, list[HistoryPoint]] = {}
        for entity_id, series in self._series.items():
            points = [p for p in series if day_start <= p.ts < day_end]
            if points:
                out[entity_id] = points
        return out

    def clear(self) -> None:
        self._series.clear()
        HISTORY_SERIES.set(0)
