from collections.abc import Iterable, Mapping
from datetime import datetime, timezone
from typing import Any

NEGATIVE_THRESHOLD = -0.2
POSITIVE_THRESHOLD = 0.2


def percentage(count: int, total: int) -> int:
    """round(100 * count / total) with halves rounded up; 0 when total is 0."""
    if total <= 0:
        return 0
    # integer arithmetic keeps .5 cases exact
    return (200 * count + total) // (2 * total)


def percentages(counts: Mapping[str, int]) -> tuple[int, dict[str, int]]:
    """Total and per-option percentage over the declared options in ``counts``."""
    total = sum(counts.values())
    return total, {label: percentage(count, total) for label, count in counts.items()}


def nps_bucket_for(value: float | None) -> str | None:
    if value is None or not 0 <= value <= 10:
        return None
    if value >= 9:
        return "promoter"
    if value >= 7:
        return "passive"
    return "detractor"


def nps_value(numbers: Iterable[float | None]) -> float | None:
    """The first numeric answer in [0, 10]; that answer is the recommendation score."""
    for value in numbers:
        if isinstance(value, (int, float)) and 0 <= value <= 10:
            return value
    return None


def sentiment_bucket_for(score: float | None) -> str:
    if score is None:
        return "missing"
    if score < NEGATIVE_THRESHOLD:
        return "negative"
    if score > POSITIVE_THRESHOLD:
        return "positive"
    return "neutral"


def nps_score(promoters: int, passives: int, detractors: int) -> float | None:
    scored = promoters + passives + detractors
    if scored == 0:
        return None
    return ((promoters - detractors) / scored) * 100


def utc_day(ts: datetime) -> str:
    # naive timestamps come back from SQLite and are stored as UTC
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return ts.astimezone(timezone.utc).date().isoformat()


def summarize_responses(rows: Iterable[Any]) -> dict:
    """
    Aggregate response rows into the dashboard summary.

    Rows need ``location``, ``created_at``, ``sentiment_score`` and
    ``nps_bucket`` attributes.
    """
    total = 0
    by_location: dict[str, int] = {}
    by_day: dict[str, int] = {}
    sentiment = {"negative": 0, "neutral": 0, "positive": 0, "missing": 0}
    nps = {"promoters": 0, "passives": 0, "detractors": 0, "missing": 0}
    nps_keys = {"promoter": "promoters", "passive": "passives", "detractor": "detractors"}

    for row in rows:
        total += 1
        if row.location is not None:
            by_location[row.location] = by_location.get(row.location, 0) + 1
        day = utc_day(row.created_at)
        by_day[day] = by_day.get(day, 0) + 1

        sentiment[sentiment_bucket_for(row.sentiment_score)] += 1
        nps[nps_keys.get(row.nps_bucket, "missing")] += 1

    return {
        "total": total,
        "byLocation": by_location,
        "byDay": dict(sorted(by_day.items())),
        "sentiment": sentiment,
        "nps": nps,
        "npsScore": nps_score(nps["promoters"], nps["passives"], nps["detractors"]),
    }


def new_customer_counts(rows: Iterable[Any], locations: Iterable[str]) -> dict:
    """Unique customers (by id, else email) seen in the window, overall and per known location."""
    seen_by_location: dict[str, set[str]] = {loc: set() for loc in locations}
    for row in rows:
        key = row.customer_id or row.customer_email
        if not key or row.location not in seen_by_location:
            continue
        seen_by_location[row.location].add(str(key))

    by_location = {loc: len(keys) for loc, keys in seen_by_location.items()}
    return {"totalNew": sum(by_location.values()), "byLocation": by_location}
