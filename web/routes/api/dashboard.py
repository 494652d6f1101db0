"""Channel attribution statistics endpoints."""
from typing import Optional

from fastapi import APIRouter, Query, Request, HTTPException

from core.config import config
from web.services import dashboard_service
from web.schemas import (
    ChannelStatsResponse,
    OverallStatsResponse,
    LocationAggregatesResponse,
    LocationDemographicsResponse,
)
from ._deps import (
    limiter,
    validate_channel_ids, validate_place_name,
    ValidationError,
)

router = APIRouter()


@router.get(
    "/dashboard/channel-stats",
    response_model=ChannelStatsResponse,
    response_model_exclude_unset=True,
)
@limiter.limit(config.web.stats_rate_limit)
async def get_channel_stats(
    request: Request,
    period: Optional[str] = Query(None),
    start_date: Optional[str] = Query(None, alias="startDate"),
    end_date: Optional[str] = Query(None, alias="endDate"),
    channel_ids: Optional[str] = Query(None, alias="channelIds"),
):
    """Per-channel access, completion and CTA statistics (default period: all)."""
    try:
        resolved = dashboard_service.parse_period(period, start_date, end_date, default="all")
        ids = validate_channel_ids(channel_ids)
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))

    ids = await dashboard_service.resolve_channel_ids(ids)
    return await dashboard_service.get_channel_stats(ids, resolved)


@router.get(
    "/dashboard/stats",
    response_model=OverallStatsResponse,
    response_model_exclude_unset=True,
)
@limiter.limit(config.web.stats_rate_limit)
async def get_overall_stats(
    request: Request,
    period: Optional[str] = Query(None),
    start_date: Optional[str] = Query(None, alias="startDate"),
    end_date: Optional[str] = Query(None, alias="endDate"),
    channel_ids: Optional[str] = Query(None, alias="channelIds"),
):
    """Cross-channel statistics with trends vs the previous period (default period: month)."""
    try:
        resolved = dashboard_service.parse_period(period, start_date, end_date, default="month")
        ids = validate_channel_ids(channel_ids)
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))

    ids = await dashboard_service.resolve_channel_ids(ids)
    return await dashboard_service.get_overall_stats(ids, resolved)


@router.get("/dashboard/locations", response_model=LocationAggregatesResponse)
@limiter.limit(config.web.stats_rate_limit)
async def get_locations(
    request: Request,
    period: Optional[str] = Query(None),
    start_date: Optional[str] = Query(None, alias="startDate"),
    end_date: Optional[str] = Query(None, alias="endDate"),
    channel_ids: Optional[str] = Query(None, alias="channelIds"),
):
    """Completed sessions rolled up by region, city and town (default period: month)."""
    try:
        resolved = dashboard_service.parse_period(period, start_date, end_date, default="month")
        ids = validate_channel_ids(channel_ids)
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))

    ids = await dashboard_service.resolve_channel_ids(ids)
    return await dashboard_service.get_location_aggregates(ids, resolved)


@router.get("/dashboard/location-demographics", response_model=LocationDemographicsResponse)
@limiter.limit(config.web.stats_rate_limit)
async def get_location_demographics(
    request: Request,
    region: Optional[str] = Query(None),
    city: Optional[str] = Query(None),
    town: Optional[str] = Query(None),
    period: Optional[str] = Query(None),
    start_date: Optional[str] = Query(None, alias="startDate"),
    end_date: Optional[str] = Query(None, alias="endDate"),
    channel_ids: Optional[str] = Query(None, alias="channelIds"),
):
    """Gender and age mix for one place (region and city required)."""
    try:
        region = validate_place_name(region, "region")
        city = validate_place_name(city, "city")
        town = validate_place_name(town, "town", allow_none=True)
        resolved = dashboard_service.parse_period(period, start_date, end_date, default="month")
        ids = validate_channel_ids(channel_ids)
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))

    ids = await dashboard_service.resolve_channel_ids(ids)
    return await dashboard_service.get_location_demographics(region, city, town, ids, resolved)
