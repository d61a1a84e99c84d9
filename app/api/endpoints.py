"""
FastAPI Endpoints for the Link Analytics Service

This module defines all REST API endpoints with minimal logic.
Endpoints only handle:
- Request validation (query parsing, window resolution)
- Rate limiting
- Error handling and HTTP responses
- Delegating to service layer

Validation errors are detected before any aggregation query runs and are
returned as 400 with a machine-readable reason. Aggregation failures are
returned as 500 without leaking the underlying cause.
"""

import logging
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query, Request, status

from app.api.dependencies import (
    get_clock,
    get_current_user_id,
    get_lifecycle_service,
    get_stats_service,
    get_url_source,
    get_viewer_context,
)
from app.api.schemas import (
    CTRStatsResponse,
    LeaderboardResponse,
    SortByOption,
    SortOrderOption,
    URLStatusResponse,
)
from app.core.clock import Clock
from app.core.exceptions import AggregationFailedError, ValidationError
from app.core.rate_limit import limiter, RATE_LIMITS
from app.core.setting import settings
from app.db.models import ShortURL
from app.middleware.logging import client_ip
from app.services.background_tasks import record_impression_background
from app.services.leaderboard import validate_limit
from app.services.lifecycle import LifecycleStatusService, ViewerContext
from app.services.metrics import UrlScope, UserScope
from app.services.stats_service import StatsService
from app.services.time_window import resolve_analysis_period, resolve_window, validate_granularity
from app.services.url_source import SQLURLSource

logger = logging.getLogger(__name__)

router = APIRouter()


def url_to_payload(url: ShortURL) -> dict:
    return {
        "id": url.id,
        "short_code": url.short_code,
        "original_url": url.original_url,
        "title": url.title,
        "is_active": url.is_active,
        "expiry_date": url.expiry_date,
        "created_at": url.created_at,
    }


def _bad_request(error: ValidationError) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_400_BAD_REQUEST,
        detail=error.to_detail()
    )


def _server_error(message: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail=message
    )


def _url_not_found(url_id: int) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail=f"URL {url_id} not found"
    )


@router.get(
    "/analytics/overall",
    response_model=CTRStatsResponse,
    response_model_exclude_none=True,
    summary="Get overall CTR statistics",
    description="CTR statistics across all URLs of the current user, with optional comparison and time series"
)
@limiter.limit(RATE_LIMITS["analytics"])
async def get_overall_ctr_stats(
    request: Request,  # Required for rate limiting
    start_date: Optional[str] = None,
    end_date: Optional[str] = None,
    comparison: Optional[str] = None,
    custom_comparison_start: Optional[str] = None,
    custom_comparison_end: Optional[str] = None,
    group_by: Optional[str] = None,
    user_id: int = Depends(get_current_user_id),
    stats_service: StatsService = Depends(get_stats_service),
    clock: Clock = Depends(get_clock),
) -> dict:
    """
    Get CTR statistics for all URLs owned by the current user.

    Raises:
        HTTPException 400: Invalid dates, comparison or group_by
        HTTPException 500: If aggregation fails
    """
    try:
        window = resolve_window(
            start_date,
            end_date,
            comparison,
            custom_comparison_start,
            custom_comparison_end,
            today=clock.today(),
        )
        if group_by:
            validate_granularity(group_by)

        stats = await stats_service.get_ctr_stats(UserScope(user_id), window, group_by)
    except ValidationError as e:
        raise _bad_request(e)
    except AggregationFailedError:
        raise _server_error("Failed to retrieve CTR statistics")

    logger.info(f"User {user_id} retrieved overall CTR statistics")
    return stats


@router.get(
    "/analytics/url/{url_id}/ctr",
    response_model=CTRStatsResponse,
    response_model_exclude_none=True,
    summary="Get CTR statistics for one URL",
    description="Same shape as the overall statistics, scoped to a single URL owned by the current user"
)
@limiter.limit(RATE_LIMITS["analytics"])
async def get_url_ctr_stats(
    url_id: int,
    request: Request,
    start_date: Optional[str] = None,
    end_date: Optional[str] = None,
    comparison: Optional[str] = None,
    custom_comparison_start: Optional[str] = None,
    custom_comparison_end: Optional[str] = None,
    group_by: Optional[str] = None,
    user_id: int = Depends(get_current_user_id),
    url_source: SQLURLSource = Depends(get_url_source),
    stats_service: StatsService = Depends(get_stats_service),
    clock: Clock = Depends(get_clock),
) -> dict:
    """
    Get CTR statistics for a specific URL.

    Raises:
        HTTPException 400: Invalid dates, comparison or group_by
        HTTPException 404: If the URL does not exist or belongs to another user
        HTTPException 500: If aggregation fails
    """
    try:
        window = resolve_window(
            start_date,
            end_date,
            comparison,
            custom_comparison_start,
            custom_comparison_end,
            today=clock.today(),
        )
        if group_by:
            validate_granularity(group_by)
    except ValidationError as e:
        raise _bad_request(e)

    url = await url_source.get_url(url_id)
    if url is None or url.user_id != user_id:
        raise _url_not_found(url_id)

    try:
        stats = await stats_service.get_ctr_stats(UrlScope(url_id), window, group_by)
    except AggregationFailedError:
        raise _server_error("Failed to retrieve URL CTR statistics")

    logger.info(f"User {user_id} retrieved CTR statistics for URL {url_id}")
    return stats


@router.get(
    "/analytics/leaderboard",
    response_model=LeaderboardResponse,
    summary="Get CTR leaderboard",
    description="Ranks the current user's URLs with activity in the period"
)
@limiter.limit(RATE_LIMITS["leaderboard"])
async def get_ctr_leaderboard(
    request: Request,
    start_date: Optional[str] = None,
    end_date: Optional[str] = None,
    limit: int = Query(default=settings.LEADERBOARD_DEFAULT_LIMIT),
    sort_by: SortByOption = Query(default="ctr", alias="sortBy"),
    sort_order: SortOrderOption = Query(default="desc", alias="sortOrder"),
    user_id: int = Depends(get_current_user_id),
    stats_service: StatsService = Depends(get_stats_service),
    clock: Clock = Depends(get_clock),
) -> dict:
    """
    Get the CTR leaderboard.

    Raises:
        HTTPException 400: Invalid dates or limit outside [1, LEADERBOARD_MAX_LIMIT]
        HTTPException 500: If aggregation fails
    """
    try:
        period = resolve_analysis_period(start_date, end_date, today=clock.today())
        validate_limit(limit)

        leaderboard = await stats_service.get_leaderboard(user_id, period, sort_by, sort_order, limit)
    except ValidationError as e:
        raise _bad_request(e)
    except AggregationFailedError:
        raise _server_error("Failed to retrieve CTR leaderboard")

    logger.info(f"User {user_id} retrieved CTR leaderboard")
    return leaderboard


@router.get(
    "/urls",
    response_model=list[URLStatusResponse],
    summary="List URLs with lifecycle status",
)
@limiter.limit(RATE_LIMITS["urls"])
async def list_urls(
    request: Request,
    user_id: int = Depends(get_current_user_id),
    url_source: SQLURLSource = Depends(get_url_source),
    lifecycle: LifecycleStatusService = Depends(get_lifecycle_service),
    viewer: ViewerContext = Depends(get_viewer_context),
) -> list:
    urls = await url_source.list_urls(user_id)
    return lifecycle.decorate_with_lifecycle_status([url_to_payload(url) for url in urls], viewer)


@router.get(
    "/urls/{url_id}",
    response_model=URLStatusResponse,
    summary="Get URL details with lifecycle status",
    description="Status is computed in real time relative to the viewer's timezone"
)
@limiter.limit(RATE_LIMITS["urls"])
async def get_url_details(
    url_id: int,
    request: Request,
    user_id: int = Depends(get_current_user_id),
    url_source: SQLURLSource = Depends(get_url_source),
    lifecycle: LifecycleStatusService = Depends(get_lifecycle_service),
    viewer: ViewerContext = Depends(get_viewer_context),
) -> dict:
    """
    Raises:
        HTTPException 404: If the URL does not exist or belongs to another user
    """
    url = await url_source.get_url(url_id)
    if url is None or url.user_id != user_id:
        raise _url_not_found(url_id)

    return lifecycle.decorate_with_lifecycle_status(url_to_payload(url), viewer)


@router.post(
    "/track/{url_id}/impression",
    status_code=status.HTTP_202_ACCEPTED,
    summary="Record an impression",
    description="Queues an impression of the URL; uniqueness and source are derived from the request"
)
@limiter.limit(RATE_LIMITS["track"])
async def track_impression(
    url_id: int,
    request: Request,
    background_tasks: BackgroundTasks,
    url_source: SQLURLSource = Depends(get_url_source),
) -> dict:
    """
    Raises:
        HTTPException 404: If the URL does not exist
    """
    url = await url_source.get_url(url_id)
    if url is None:
        raise _url_not_found(url_id)

    background_tasks.add_task(
        record_impression_background,
        url_id=url_id,
        ip_address=client_ip(request),
        user_agent=request.headers.get("User-Agent"),
        referrer=request.headers.get("Referer"),
    )

    return {"status": "accepted"}
