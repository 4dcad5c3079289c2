"""FastAPI router for coordinate conversion."""

from __future__ import annotations

from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel

from geomatricula.core.types import Hemisphere
from geomatricula.geodesy.utm import utm_to_latlng_safe, utm_zone_from_state

router = APIRouter()


class UtmConversionRequest(BaseModel):
    easting: float
    northing: float
    zone: int | None = None
    hemisphere: Hemisphere | None = None
    state: str | None = None


class UtmConversionResponse(BaseModel):
    lat: float
    lng: float
    zone: int
    hemisphere: str


@router.post("/api/geodesy/utm", response_model=UtmConversionResponse)
async def convert_utm(body: UtmConversionRequest, request: Request) -> UtmConversionResponse:
    """Convert a UTM position (SIRGAS 2000) to WGS84 latitude/longitude.

    The zone falls back to the state's zone, then the configured default.
    """
    geodesy = request.app.state.settings.geodesy
    zone = body.zone or utm_zone_from_state(body.state, default=geodesy.default_zone)
    hemisphere = body.hemisphere or Hemisphere(geodesy.default_hemisphere)

    point = utm_to_latlng_safe(body.easting, body.northing, zone, hemisphere)
    if point is None:
        raise HTTPException(
            status_code=422, detail="Coordinates out of range for Brazilian territory"
        )
    return UtmConversionResponse(lat=point.lat, lng=point.lng, zone=zone, hemisphere=str(hemisphere))
