"""
Location endpoints — routing, geocoding and device position reports.

Routing and geocoding degrade quietly (straight-line route, null address,
empty search results); they never fail the request.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query

from app_context import AppContext
from deps import get_context
from domain.responses import success_response
from middleware.auth import require_authenticated_user
from models import PositionReport
from services.geolocation import GeolocationFailure, current_fix
from utils.validators import validate_coordinates, validated_location_query

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/location", tags=["location"])


@router.get("/route")
async def route(
    from_lat: float = Query(..., alias="fromLat"),
    from_lng: float = Query(..., alias="fromLng"),
    to_lat: float = Query(..., alias="toLat"),
    to_lng: float = Query(..., alias="toLng"),
    context: AppContext = Depends(get_context),
):
    validate_coordinates(from_lat, from_lng)
    validate_coordinates(to_lat, to_lng)
    result = await context.location.get_route(from_lat, from_lng, to_lat, to_lng)
    return success_response(data=result.to_dict())


@router.get("/reverse")
async def reverse_geocode(
    location: tuple[float, float] = Depends(validated_location_query),
    context: AppContext = Depends(get_context),
):
    lat, lng = location
    address = await context.location.reverse_geocode(lat, lng)
    return success_response(data={"address": address, "lat": lat, "lng": lng})


@router.get("/search")
async def search(
    q: str = Query(..., min_length=1, max_length=200),
    context: AppContext = Depends(get_context),
):
    hits = await context.location.search_address(q)
    return success_response(data=[h.to_dict() for h in hits], meta={"count": len(hits)})


@router.post("/position")
async def report_position(
    report: PositionReport,
    user_id: str = Depends(require_authenticated_user),
    context: AppContext = Depends(get_context),
):
    """The client device reports a fix (or why it has none)."""
    source = context.positions.source_for(user_id)
    if report.error_code is not None:
        failure = GeolocationFailure(report.error_code)
        source.report_failure(failure)
        logger.info(f"Position failure reported for {user_id}: {failure.name}")
        return success_response(data={"accepted": True, "failure": failure.name.lower()})
    fix = source.report(report.lat, report.lng, report.accuracy)
    return success_response(data={"accepted": True, "position": fix.to_dict()})


@router.get("/position")
async def current_position(
    timeout: Optional[float] = Query(None, gt=0, le=60),
    user_id: str = Depends(require_authenticated_user),
    context: AppContext = Depends(get_context),
):
    """One fix for the caller: the next reported (or simulated) position."""
    fix = await current_fix(
        context.position_source_for(user_id),
        timeout or context.settings.geolocation_timeout_seconds,
    )
    return success_response(data=fix.to_dict())
