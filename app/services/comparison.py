"""
Comparison Calculator

Deltas between the analysis period and the comparison period.
"""

from app.services.metrics import MetricComparison, MetricSummary, SummaryComparison


def compare(current: MetricSummary, previous: MetricSummary) -> SummaryComparison:
    """
    Compare two period summaries metric by metric.

    change_percentage is 0 whenever the previous value is 0.
    """
    return SummaryComparison(
        impressions=MetricComparison(current.total_impressions, previous.total_impressions),
        clicks=MetricComparison(current.total_clicks, previous.total_clicks),
        ctr=MetricComparison(current.ctr, previous.ctr),
    )
