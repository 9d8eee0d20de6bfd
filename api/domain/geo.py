# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Great-circle distance helpers.

The haversine formula here is the reference for proximity searches; the
MongoDB ``$geoNear`` stage uses the same spherical model operationally.
"""

import math

EARTH_RADIUS_METERS = 6_371_000


def coordinates_valid(latitude: float, longitude: float) -> bool:
    """Check that a pair is finite and within WGS84 bounds."""
    try:
        lat = float(latitude)
        lon = float(longitude)
    except (TypeError, ValueError):
        return False
    if not (math.isfinite(lat) and math.isfinite(lon)):
        return False
    return -90 <= lat <= 90 and -180 <= lon <= 180


def haversine_meters(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Great-circle distance in meters between two WGS84 points."""
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lon2 - lon1)

    a = math.sin(d_phi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    # Rounding can push a past 1 for antipodal points
    a = min(1.0, max(0.0, a))
    return 2 * EARTH_RADIUS_METERS * math.asin(math.sqrt(a))
