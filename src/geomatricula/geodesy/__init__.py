"""Geodetic anchoring of local traverses."""

from geomatricula.geodesy.utm import (
    LatLng,
    UtmCoordinates,
    convert_utm_anchor,
    local_to_latlng,
    utm_to_latlng,
    utm_to_latlng_safe,
    utm_zone_from_lng,
    utm_zone_from_state,
)

__all__ = [
    "LatLng",
    "UtmCoordinates",
    "convert_utm_anchor",
    "local_to_latlng",
    "utm_to_latlng",
    "utm_to_latlng_safe",
    "utm_zone_from_lng",
    "utm_zone_from_state",
]
