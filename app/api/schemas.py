"""
API Request and Response Schemas

This module defines all Pydantic models for API requests and responses.
Separated from endpoints to keep concerns separated and enable reuse.

Design Principles:
- Sort literals: invalid sortBy/sortOrder values are rejected by FastAPI (422)
- Response models: mirror the dicts built by the services
- CTR values are ratios (clicks / impressions), not percentages
"""

from datetime import datetime
from typing import Literal, Optional, Union

from pydantic import BaseModel, Field

SortByOption = Literal["ctr", "clicks", "impressions"]
SortOrderOption = Literal["asc", "desc"]

Number = Union[int, float]


class PeriodSchema(BaseModel):
    start_date: str
    end_date: str


class AnalysisPeriodSchema(PeriodSchema):
    days: int = Field(..., description="Calendar days in the period, both ends included")


class OverallStats(BaseModel):
    """Summary of the analysis period."""
    total_impressions: int
    total_clicks: int
    ctr: float
    unique_impressions: int
    unique_ctr: float
    analysis_period: AnalysisPeriodSchema


class MetricComparisonSchema(BaseModel):
    current: Number
    previous: Number
    change: Number
    change_percentage: float = Field(..., description="0 when the previous value is 0")


class ComparisonMetricsSchema(BaseModel):
    impressions: MetricComparisonSchema
    clicks: MetricComparisonSchema
    ctr: MetricComparisonSchema


class ComparisonSchema(BaseModel):
    period_days: int
    previous_period: PeriodSchema
    metrics: ComparisonMetricsSchema


class TimeSeriesPointSchema(BaseModel):
    date: str = Field(..., description="Bucket label: YYYY-MM-DD (day/week start) or YYYY-MM")
    impressions: int
    clicks: int
    ctr: float


class TimeSeriesSchema(BaseModel):
    data: list[TimeSeriesPointSchema]


class SourceStatsSchema(BaseModel):
    source: str = Field(..., description="Referrer hostname, literal referrer, or '' for direct")
    impressions: int
    clicks: int
    ctr: float


class CTRStatsResponse(BaseModel):
    """Response model for the overall and per-URL CTR endpoints."""
    overall: OverallStats
    comparison: Optional[ComparisonSchema] = None
    time_series: Optional[TimeSeriesSchema] = None
    top_performing_days: list[TimeSeriesPointSchema]
    ctr_by_source: list[SourceStatsSchema]


class LeaderboardEntrySchema(BaseModel):
    url_id: int
    short_code: str
    title: Optional[str] = None
    impressions: int
    clicks: int
    ctr: float
    rank: int


class LeaderboardResponse(BaseModel):
    period: PeriodSchema
    urls: list[LeaderboardEntrySchema]


class URLStatusResponse(BaseModel):
    """A URL record decorated with its lifecycle status."""
    id: int
    short_code: str
    original_url: str
    title: Optional[str] = None
    is_active: bool
    expiry_date: Optional[datetime] = None
    created_at: datetime
    status: Literal["active", "inactive", "expired", "expiring-soon"]
    days_until_expiry: Optional[int] = None


class HealthResponse(BaseModel):
    status: str
    caches: dict[str, dict]
