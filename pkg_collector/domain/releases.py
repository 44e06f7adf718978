from datetime import datetime, timedelta, timezone
from typing import Iterable, List, Optional, Sequence, Tuple

from pkg_collector.domain.models import ReleaseRange

# Day offsets (relative to now) where one window ends and the next begins
FREQUENCY_BREAKPOINTS: Sequence[int] = (30, 90, 180, 365, 730)
# Lower bound of the "older" tail window
EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
# Entries of the registry `time` map that are not releases
NON_RELEASE_KEYS = frozenset({"created", "modified", "unpublished"})


def parse_timestamp(raw) -> Optional[datetime]:
    """Parses a registry ISO-8601 timestamp into an aware UTC datetime."""
    if not isinstance(raw, str) or not raw:
        return None
    try:
        parsed = datetime.fromisoformat(raw.replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def release_points(time_map) -> List[Tuple[str, datetime]]:
    """Collects (version, timestamp) pairs from a registry `time` map, skipping bookkeeping entries."""
    if not isinstance(time_map, dict):
        return []

    points = []
    for version, raw in time_map.items():
        if version in NON_RELEASE_KEYS:
            continue
        date = parse_timestamp(raw)
        if date is not None:
            points.append((version, date))
    return points


def build_ranges(now: datetime, breakpoints: Sequence[int] = FREQUENCY_BREAKPOINTS) -> List[Tuple[datetime, datetime]]:
    """
    Builds contiguous, now-relative windows: [now-30d, now], [now-90d, now-30d], ...
    followed by an "older" tail window reaching back to the epoch.
    """
    ranges = []
    end = now
    for days in breakpoints:
        start = now - timedelta(days=days)
        ranges.append((start, end))
        end = start
    ranges.append((EPOCH, end))
    return ranges


def releases_frequency(points: Iterable[Tuple[str, datetime]], now: Optional[datetime] = None) -> List[ReleaseRange]:
    """
    Counts releases per window. Every window is emitted, even with a zero count,
    so the histogram always has the same length.
    """
    now = now or datetime.now(timezone.utc)
    dates = [date for _, date in points]

    frequency = []
    for start, end in build_ranges(now):
        # Windows are closed on the recent side so a release at `now` lands in the first window
        count = sum(1 for date in dates if start < date <= end)
        frequency.append(ReleaseRange(start=start, end=end, count=count))
    return frequency
