"""
Leaderboard Ranker

Orders URLs by a metric and numbers them 1..n.

Ties on the metric are broken by url_id ascending whatever the sort order,
so identical input always yields identical ranks and no two entries share
a rank.
"""

from typing import Iterable, Optional

from app.core.exceptions import InvalidLimitError
from app.core.setting import settings
from app.services.metrics import LeaderboardEntry, UrlCounts

SORT_METRICS = ("ctr", "clicks", "impressions")
SORT_ORDERS = ("asc", "desc")

MIN_LIMIT = 1


def validate_limit(limit: int, maximum: Optional[int] = None) -> int:
    """
    Raises:
        InvalidLimitError: If limit is outside [1, maximum]
    """
    if maximum is None:
        maximum = settings.LEADERBOARD_MAX_LIMIT
    if not MIN_LIMIT <= limit <= maximum:
        raise InvalidLimitError(limit, MIN_LIMIT, maximum)
    return limit


def rank(
    entries: Iterable[UrlCounts],
    metric: str = "ctr",
    order: str = "desc",
    limit: int = 10,
) -> list[LeaderboardEntry]:
    """
    Sort, number and truncate leaderboard entries.

    Unknown metrics fall back to ctr and unknown orders to desc.

    Args:
        entries: Per-URL counts for the period
        metric: ctr, clicks or impressions
        order: asc or desc
        limit: Maximum number of entries returned

    Raises:
        InvalidLimitError: If limit is outside the allowed bound
    """
    validate_limit(limit)

    metric = metric if metric in SORT_METRICS else "ctr"
    direction = 1 if (order or "").lower() == "asc" else -1

    ordered = sorted(
        entries,
        key=lambda entry: (direction * getattr(entry, metric), entry.url_id),
    )

    return [
        LeaderboardEntry(
            url_id=entry.url_id,
            short_code=entry.short_code,
            title=entry.title,
            impressions=entry.impressions,
            clicks=entry.clicks,
            ctr=entry.ctr,
            rank=position,
        )
        for position, entry in enumerate(ordered[:limit], start=1)
    ]
