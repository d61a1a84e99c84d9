"""
Statistics Service

This service composes the CTR statistics and leaderboard responses from the
aggregation building blocks.

Flow for CTR statistics:
1. The caller resolves the analysis/comparison window (validation first)
2. Summaries are computed for each period
3. The comparison calculator merges them
4. Time series, top days and source breakdown are added

The result is a JSON-serializable dict matching the API schemas.
"""

import logging
from typing import Optional

from app.core.setting import settings
from app.services.aggregator import EventAggregator
from app.services.comparison import compare
from app.services.metrics import AnalysisPeriod, Scope
from app.services.time_window import ResolvedWindow

logger = logging.getLogger(__name__)


class StatsService:
    """
    Service for retrieving CTR statistics.

    Aggregates data for one scope (a URL, or all URLs of a user) over a
    resolved time window.
    """

    def __init__(self, aggregator: EventAggregator, top_days_limit: Optional[int] = None):
        """
        Args:
            aggregator: Event aggregator reading from the event source
            top_days_limit: Number of top performing days (defaults to TOP_DAYS_LIMIT)
        """
        self.aggregator = aggregator
        self.top_days_limit = top_days_limit if top_days_limit is not None else settings.TOP_DAYS_LIMIT

    async def get_ctr_stats(
        self,
        scope: Scope,
        window: ResolvedWindow,
        group_by: Optional[str] = None,
    ) -> dict:
        """
        Get CTR statistics for a scope.

        Returns:
            Dictionary with:
            - overall: summary of the analysis period plus the period itself
            - comparison: only when a comparison period was resolved
            - time_series: only when group_by is given
            - top_performing_days
            - ctr_by_source

        Raises:
            AggregationFailedError: If any underlying read fails
        """
        analysis = window.analysis
        current = await self.aggregator.summarize(scope, analysis)

        response: dict = {
            "overall": {
                **current.to_dict(),
                "analysis_period": analysis.to_dict(include_days=True),
            },
        }

        if window.comparison is not None:
            previous = await self.aggregator.summarize(scope, window.comparison)
            response["comparison"] = {
                "period_days": window.comparison.days,
                "previous_period": window.comparison.to_dict(),
                "metrics": compare(current, previous).to_dict(),
            }

        if group_by:
            points = await self.aggregator.time_series(scope, analysis, group_by)
            response["time_series"] = {"data": [point.to_dict() for point in points]}

        top_days = await self.aggregator.top_days(scope, analysis, self.top_days_limit)
        response["top_performing_days"] = [point.to_dict() for point in top_days]

        sources = await self.aggregator.by_source(scope, analysis)
        response["ctr_by_source"] = [source.to_dict() for source in sources]

        return response

    async def get_leaderboard(
        self,
        user_id: int,
        period: AnalysisPeriod,
        metric: str = "ctr",
        order: str = "desc",
        limit: Optional[int] = None,
    ) -> dict:
        """
        Get the CTR leaderboard of a user's URLs.

        Raises:
            InvalidLimitError: If limit is outside the allowed bound
            AggregationFailedError: If the underlying read fails
        """
        entries = await self.aggregator.leaderboard(user_id, period, metric, order, limit)
        return {
            "period": period.to_dict(),
            "urls": [entry.to_dict() for entry in entries],
        }
