"""Column packing for a room-day of occurrences on a vertical time grid.

Greedy interval-graph coloring: occurrences sorted by start (longer first on
ties) go into the first column whose last occupant has ended. Each occurrence
is then sized by the number of columns active during its own range, raised to
the largest such count among the occurrences it intersects (directly or
through a chain), so an occurrence with no concurrent neighbours spans the
full width.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import List, Sequence

from .occurrence_service import Occurrence, ensure_utc


@dataclass(frozen=True)
class PositionedOccurrence:
    occurrence: Occurrence
    column: int
    total_columns: int
    left_percent: float
    width_percent: float
    top: float
    height: float


@dataclass
class _Column:
    start: datetime
    end: datetime
    last_end: datetime


def _minutes_since_midnight(dt: datetime) -> float:
    return dt.hour * 60 + dt.minute + dt.second / 60


def layout_occurrences(
    occurrences: Sequence[Occurrence],
    grid_origin_minute: int = 0,
    pixels_per_minute: float = 1.0,
    min_height_px: float = 20.0,
) -> List[PositionedOccurrence]:
    """
    Args:
        occurrences: One room-day's occurrences, any order
        grid_origin_minute: Minute of day drawn at ``top = 0`` (e.g. 360 for a 6am grid)
        pixels_per_minute: Vertical scale
        min_height_px: Floor for very short occurrences

    Returns:
        Positions in placement order (start ascending, longer first on ties)
    """
    ordered = sorted(
        occurrences,
        key=lambda o: (ensure_utc(o.starts_at), -(o.ends_at - o.starts_at)),
    )

    columns: List[_Column] = []
    placed: List[tuple] = []
    for occ in ordered:
        start, end = ensure_utc(occ.starts_at), ensure_utc(occ.ends_at)
        index = next((i for i, col in enumerate(columns) if col.last_end <= start), None)
        if index is None:
            index = len(columns)
            columns.append(_Column(start=start, end=end, last_end=end))
        else:
            col = columns[index]
            col.end = max(col.end, end)
            col.last_end = end
        placed.append((occ, index, start, end))

    counts = [
        # Inclusive at boundaries: a column ending exactly at our start still counts
        sum(1 for col in columns if col.start <= end and start <= col.end)
        for _, _, start, end in placed
    ]
    counts = _share_counts_across_chains(placed, counts)

    positioned: List[PositionedOccurrence] = []
    for (occ, index, start, end), total in zip(placed, counts):
        width = 100 / total
        duration_minutes = (end - start).total_seconds() / 60
        positioned.append(PositionedOccurrence(
            occurrence=occ,
            column=index,
            total_columns=total,
            left_percent=index * width,
            width_percent=width,
            top=(_minutes_since_midnight(start) - grid_origin_minute) * pixels_per_minute,
            height=max(duration_minutes * pixels_per_minute, min_height_px),
        ))
    return positioned


def _share_counts_across_chains(placed: List[tuple], counts: List[int]) -> List[int]:
    """Give every chain of intersecting occurrences its largest column count.

    Intersecting occurrences then share one width and sit in distinct
    columns, so their horizontal bands cannot collide.
    """
    parent = list(range(len(placed)))

    def find(i: int) -> int:
        while parent[i] != i:
            parent[i] = parent[parent[i]]
            i = parent[i]
        return i

    for i, (_, _, start_i, end_i) in enumerate(placed):
        for j in range(i + 1, len(placed)):
            _, _, start_j, end_j = placed[j]
            if start_j >= end_i:
                break  # placed is sorted by start
            if start_i < end_j:
                parent[find(j)] = find(i)

    chain_max = {}
    for i, total in enumerate(counts):
        root = find(i)
        chain_max[root] = max(chain_max.get(root, 0), total)
    return [chain_max[find(i)] for i in range(len(placed))]
