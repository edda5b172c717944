"""
Footfall heatmap aggregation over the H3 grid.

Turns a snapshot of dated visit events into a small set of scored hexagons
for the map screen. The approach:
1. Optionally keep only the visits that happened on one calendar day
2. Bucket each visit into its H3 cell, counting visits per cell
3. Score each cell linearly against the busiest cell (busiest = 100)
4. When nothing is left to count, return a neutral base grid around the
   city center with every score at 0

Everything here is a pure function of its arguments. The cell map is built
fresh on every call, so concurrent requests never share state.
"""
import logging
import math
from dataclasses import dataclass, field
from datetime import date, datetime, tzinfo
from typing import Iterable, Optional, Union

from .grid import GridIndexer, H3Indexer, InvalidCoordinate, InvalidResolution, validate_latlon, validate_resolution
from .time_utils import falls_on_day, parse_date_filter, resolve_timezone

logger = logging.getLogger(__name__)

MAX_SCORE = 100

# Fallback grid sampling, in degrees
BASE_GRID_RADIUS_DEG = 0.05  # ~5km
BASE_GRID_STEP_DEG = 0.01    # ~1km


@dataclass
class VisitEvent:
    """Geolocated visits at one point and time. weight is how many visits it stands for."""
    lat: float
    lng: float
    timestamp: Optional[datetime] = None
    weight: int = 1


@dataclass
class VisitRow:
    """Visits to one place, grouped by timestamp, as read from the store."""
    place_lat: float
    place_lng: float
    visit_count: int
    timestamp: Optional[datetime] = None


@dataclass
class HeatmapCell:
    """One scored hexagon."""
    cell_id: str
    score: int
    lat: float
    lng: float
    visit_count: int = 0

    def to_dict(self) -> dict:
        return {
            "cell_id": self.cell_id,
            "score": self.score,
            "lat": self.lat,
            "lng": self.lng,
            "visit_count": self.visit_count,
        }


@dataclass
class HeatmapResult:
    """Cells for rendering plus the visit total they represent."""
    cells: list[HeatmapCell] = field(default_factory=list)
    total_visits: int = 0
    is_fallback: bool = False

    @property
    def data_source(self) -> str:
        return "base_grid" if self.is_fallback else "visits"


@dataclass
class _CellBucket:
    count: int
    lat: float
    lng: float


def filter_by_date(
    events: Iterable[VisitEvent],
    date_filter: Union[str, date, None],
    tz: Optional[tzinfo] = None
) -> list[VisitEvent]:
    """
    Keep only the events that fall on the given calendar day.

    Args:
        events: Visit events
        date_filter: Day to keep (date or "YYYY-MM-DD"), or None for no filtering
        tz: Zone the calendar day is observed in (defaults to HEATMAP_TIMEZONE)

    Returns:
        Events on that day. Events without a timestamp are dropped whenever
        a filter is active.

    Raises:
        ValueError: If date_filter is a malformed date string
    """
    day = parse_date_filter(date_filter)
    if day is None:
        return list(events)

    tz = tz or resolve_timezone()
    return [e for e in events if falls_on_day(e.timestamp, day, tz)]


def bucket_visits(events: Iterable[VisitEvent], indexer: GridIndexer) -> dict[str, _CellBucket]:
    """
    Count visits per grid cell.

    Each event adds its weight to its cell. A cell's centroid is looked up
    once, when the cell is first seen. Points the indexer rejects, and events
    with no weight, are skipped.

    Args:
        events: Visit events (already date filtered)
        indexer: Grid used to place each event

    Returns:
        Mapping of cell ID to its running count and centroid
    """
    buckets: dict[str, _CellBucket] = {}
    skipped = 0

    for event in events:
        if event.weight <= 0:
            continue

        try:
            cell_id = indexer.index_of(event.lat, event.lng)
        except InvalidResolution:
            raise
        except InvalidCoordinate as exc:
            skipped += 1
            logger.debug("Skipping unindexable visit at (%s, %s): %s", event.lat, event.lng, exc)
            continue

        bucket = buckets.get(cell_id)
        if bucket is None:
            cell_lat, cell_lng = indexer.centroid_of(cell_id)
            buckets[cell_id] = _CellBucket(count=event.weight, lat=cell_lat, lng=cell_lng)
        else:
            bucket.count += event.weight

    if skipped:
        logger.info("Skipped %d visits with invalid coordinates", skipped)

    return buckets


def score_for(count: int, max_count: int) -> int:
    """
    Linear 0-100 score of count relative to the busiest cell.

    Rounds half up. max_count is floored at 1.
    """
    max_count = max(max_count, 1)
    return int(math.floor(min(MAX_SCORE, count / max_count * MAX_SCORE) + 0.5))


def normalize_scores(buckets: dict[str, _CellBucket]) -> list[HeatmapCell]:
    """
    Turn per-cell counts into scored cells.

    The busiest cell always scores 100; the others scale proportionally.

    Args:
        buckets: Output of bucket_visits

    Returns:
        One HeatmapCell per populated cell, in first-seen order
    """
    max_count = max((b.count for b in buckets.values()), default=1)

    return [
        HeatmapCell(
            cell_id=cell_id,
            score=score_for(bucket.count, max_count),
            lat=bucket.lat,
            lng=bucket.lng,
            visit_count=bucket.count,
        )
        for cell_id, bucket in buckets.items()
    ]


def generate_base_grid(
    center_lat: float,
    center_lng: float,
    indexer: Optional[GridIndexer] = None,
    radius_deg: float = BASE_GRID_RADIUS_DEG,
    step_deg: float = BASE_GRID_STEP_DEG
) -> list[HeatmapCell]:
    """
    Neutral grid of zero-score cells around a city center.

    Samples a lat/lng box around the center in fixed steps, drops samples
    farther than radius_deg from the center, and keeps one cell per H3 ID.

    Args:
        center_lat: City center latitude
        center_lng: City center longitude
        indexer: Grid to sample (defaults to H3 at H3_RESOLUTION)
        radius_deg: Disc radius in degrees
        step_deg: Sampling step in degrees

    Returns:
        Cells with score 0 and visit_count 0
    """
    indexer = indexer or H3Indexer()
    steps = int(round(radius_deg / step_deg))
    cells: dict[str, HeatmapCell] = {}

    for i in range(-steps, steps + 1):
        lat_offset = i * step_deg
        for j in range(-steps, steps + 1):
            lng_offset = j * step_deg

            # Small tolerance so samples exactly on the rim survive float error
            if math.hypot(lat_offset, lng_offset) > radius_deg + 1e-9:
                continue

            try:
                cell_id = indexer.index_of(center_lat + lat_offset, center_lng + lng_offset)
            except InvalidResolution:
                raise
            except InvalidCoordinate:
                continue

            if cell_id in cells:
                continue

            cell_lat, cell_lng = indexer.centroid_of(cell_id)
            cells[cell_id] = HeatmapCell(
                cell_id=cell_id,
                score=0,
                lat=cell_lat,
                lng=cell_lng,
                visit_count=0,
            )

    return list(cells.values())


def total_visits(cells: Iterable[HeatmapCell]) -> int:
    """Sum of visit counts over the given cells (0 for an empty or fallback set)."""
    return sum(cell.visit_count for cell in cells)


def aggregate_visits(
    events: Iterable[VisitEvent],
    center: tuple[float, float],
    date_filter: Union[str, date, None] = None,
    indexer: Optional[GridIndexer] = None,
    tz: Optional[tzinfo] = None
) -> HeatmapResult:
    """
    Build a footfall heatmap from visit events.

    Args:
        events: Visit events for one city
        center: (lat, lng) of the city, used for the fallback grid
        date_filter: Optional calendar day to restrict visits to
        indexer: Grid to bucket into (defaults to H3 at H3_RESOLUTION)
        tz: Zone the date filter is observed in (defaults to HEATMAP_TIMEZONE)

    Returns:
        HeatmapResult with scored populated cells, or the zero-score base
        grid when no visits remain after filtering

    Raises:
        InvalidCoordinate: If center is not a valid coordinate
        InvalidResolution: If the indexer's resolution is unsupported
        ValueError: If date_filter is a malformed date string
    """
    indexer = indexer or H3Indexer()
    validate_resolution(indexer.resolution)
    validate_latlon(*center)

    retained = filter_by_date(events, date_filter, tz)
    buckets = bucket_visits(retained, indexer)

    if buckets:
        cells = normalize_scores(buckets)
        return HeatmapResult(cells=cells, total_visits=total_visits(cells), is_fallback=False)

    center_lat, center_lng = center
    logger.info(
        "No visits to aggregate (date_filter=%s), using base grid around (%s, %s)",
        date_filter, center_lat, center_lng
    )
    cells = generate_base_grid(center_lat, center_lng, indexer)
    return HeatmapResult(cells=cells, total_visits=0, is_fallback=True)


def expand_visit_rows(rows: Iterable[VisitRow]) -> list[VisitEvent]:
    """
    One weighted VisitEvent per store row, placed at the visited place.

    Args:
        rows: Grouped visit rows from the store

    Returns:
        Visit events weighted by visit_count. Rows with no visits are dropped.
    """
    return [
        VisitEvent(lat=row.place_lat, lng=row.place_lng, timestamp=row.timestamp, weight=int(row.visit_count))
        for row in rows
        if int(row.visit_count) > 0
    ]


def build_heatmap(
    center: tuple[float, float],
    rows: Iterable[VisitRow],
    date_filter: Union[str, date, None] = None,
    tz: Optional[tzinfo] = None
) -> HeatmapResult:
    """
    Heatmap straight from store rows. See aggregate_visits.
    """
    return aggregate_visits(expand_visit_rows(rows), center, date_filter=date_filter, tz=tz)
