"""
Performance Stat Series

Turns an athlete's recorded performance stats into one chartable series per
metric, each with its latest point and personal best.

Input rows must already be ordered by (stat_name, recorded_date, id), which
is how ``fetch_series_rows`` queries them (undated rows first, matching
the epoch-zero comparison below). The aggregator never re-sorts; input
order defines point order and breaks ties for "latest".
"""
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Union
import math
import re

from sqlalchemy.orm import Session

from models import PerformanceStat

DateLike = Union[date, datetime, str, None]

# Leading decimal number, optionally signed, optionally with an exponent.
# "12.5 kg" parses as 12.5; "kg 12.5" does not parse. ASCII digits only.
_LEADING_NUMBER = re.compile(r"^\s*([+-]?(?:[0-9]+\.?[0-9]*|\.[0-9]+)(?:[eE][+-]?[0-9]+)?)")

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def parse_numeric(raw: Any) -> Optional[float]:
    """
    Parse the leading number of a stat value.

    Returns None when there is no leading number or the number is not
    finite. Never raises.
    """
    if raw is None:
        return None
    if isinstance(raw, bool):
        return None
    if isinstance(raw, (int, float)):
        value = float(raw)
        return value if math.isfinite(value) else None

    match = _LEADING_NUMBER.match(str(raw))
    if not match:
        return None
    try:
        value = float(match.group(1))
    except (OverflowError, ValueError):
        return None
    return value if math.isfinite(value) else None


def date_sort_key(value: DateLike) -> float:
    """
    Seconds since the epoch for comparing recorded dates.

    A missing date counts as the epoch itself. An unreadable date returns
    NaN, which compares false against everything.
    """
    if value is None or value == "":
        return 0.0
    if isinstance(value, datetime):
        moment = value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    elif isinstance(value, date):
        moment = datetime(value.year, value.month, value.day, tzinfo=timezone.utc)
    else:
        try:
            text = str(value)
            if text.endswith(("Z", "z")):
                text = text[:-1] + "+00:00"
            moment = datetime.fromisoformat(text)
        except ValueError:
            return math.nan
        if moment.tzinfo is None:
            moment = moment.replace(tzinfo=timezone.utc)
    return (moment - _EPOCH).total_seconds()


@dataclass
class StatRow:
    """One ``performance_stats`` row as read for aggregation."""

    id: int
    stat_name: str
    stat_value: str
    unit: Optional[str] = None
    recorded_date: DateLike = None
    notes: Optional[str] = None

    @classmethod
    def from_model(cls, stat: PerformanceStat) -> "StatRow":
        return cls(
            id=stat.id,
            stat_name=stat.stat_name,
            stat_value=stat.stat_value,
            unit=stat.unit,
            recorded_date=stat.recorded_date,
            notes=stat.notes,
        )


@dataclass
class StatPoint:
    id: int
    recorded_date: DateLike
    stat_value: str
    numeric_value: Optional[float]
    is_numeric: bool
    unit: Optional[str]
    notes: Optional[str]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "recorded_date": self.recorded_date,
            "stat_value": self.stat_value,
            "numeric_value": self.numeric_value,
            "is_numeric": self.is_numeric,
            "unit": self.unit,
            "notes": self.notes,
        }


@dataclass
class MetricBucket:
    metric: str
    unit: Optional[str] = None
    points: List[StatPoint] = field(default_factory=list)
    latest: Optional[StatPoint] = None
    personal_best: Optional[StatPoint] = None

    def add(self, row: StatRow) -> StatPoint:
        if not self.unit and row.unit:
            self.unit = row.unit

        numeric_value = parse_numeric(row.stat_value)
        point = StatPoint(
            id=row.id,
            recorded_date=row.recorded_date,
            stat_value=row.stat_value,
            numeric_value=numeric_value,
            is_numeric=numeric_value is not None,
            unit=row.unit or self.unit,
            notes=row.notes,
        )
        self.points.append(point)

        # >= lets a later row with an equal date take over as latest.
        if self.latest is None or date_sort_key(point.recorded_date) >= date_sort_key(self.latest.recorded_date):
            self.latest = point

        # Strictly greater: on a tie the earlier point stays the best.
        if point.is_numeric and (
            self.personal_best is None or point.numeric_value > self.personal_best.numeric_value
        ):
            self.personal_best = point

        return point

    def to_dict(self) -> Dict[str, Any]:
        return {
            "metric": self.metric,
            "unit": self.unit,
            "latest": self.latest.to_dict() if self.latest else None,
            "personal_best": self.personal_best.to_dict() if self.personal_best else None,
            "points": [p.to_dict() for p in self.points],
        }


class MetricBuckets:
    """Buckets keyed by metric name, iterated in first-seen order."""

    def __init__(self):
        self._order: List[str] = []
        self._by_metric: Dict[str, MetricBucket] = {}

    def get_or_create(self, metric: str) -> MetricBucket:
        bucket = self._by_metric.get(metric)
        if bucket is None:
            bucket = MetricBucket(metric=metric)
            self._by_metric[metric] = bucket
            self._order.append(metric)
        return bucket

    def metrics(self) -> List[str]:
        return list(self._order)

    def buckets(self) -> List[MetricBucket]:
        return [self._by_metric[m] for m in self._order]

    def __len__(self) -> int:
        return len(self._order)


def aggregate_series(rows: Iterable[StatRow]) -> MetricBuckets:
    """Group ordered stat rows into per-metric buckets."""
    buckets = MetricBuckets()
    for row in rows:
        metric = row.stat_name if row.stat_name is not None else ""
        buckets.get_or_create(metric).add(row)
    return buckets


def build_series_payload(rows: Iterable[StatRow]) -> Dict[str, Any]:
    """Aggregate rows into the ``{metrics, series}`` response payload."""
    buckets = aggregate_series(rows)
    return {
        "metrics": buckets.metrics(),
        "series": [b.to_dict() for b in buckets.buckets()],
    }


def fetch_series_rows(db: Session, user_id: int, limit: int = 50, offset: int = 0) -> List[StatRow]:
    """Load a user's stats in the order ``aggregate_series`` expects."""
    stats = (
        db.query(PerformanceStat)
        .filter(PerformanceStat.user_id == user_id)
        .order_by(
            PerformanceStat.stat_name.asc(),
            PerformanceStat.recorded_date.asc().nullsfirst(),
            PerformanceStat.id.asc(),
        )
        .limit(limit)
        .offset(offset)
        .all()
    )
    return [StatRow.from_model(s) for s in stats]
