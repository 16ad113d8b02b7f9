"""Great-circle helpers shared by route construction and interpolation."""

import math
import random

# Earth's radius in meters for haversine calculation
EARTH_RADIUS_METERS = 6_371_000

# Approximate meters per degree of latitude, used for positional jitter
METERS_PER_DEGREE = 111_000


def haversine_distance(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Calculate the great-circle distance between two points in meters.

    Args:
        lat1, lon1: First point coordinates in degrees.
        lat2, lon2: Second point coordinates in degrees.

    Returns:
        Distance in meters.
    """
    lat1_rad = math.radians(lat1)
    lat2_rad = math.radians(lat2)
    delta_lat = math.radians(lat2 - lat1)
    delta_lon = math.radians(lon2 - lon1)

    a = (
        math.sin(delta_lat / 2) ** 2
        + math.cos(lat1_rad) * math.cos(lat2_rad) * math.sin(delta_lon / 2) ** 2
    )
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))

    return EARTH_RADIUS_METERS * c


def initial_bearing(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Calculate the initial great-circle bearing from point 1 to point 2.

    Returns:
        Bearing in degrees clockwise from north, in [0, 360).
    """
    lat1_rad = math.radians(lat1)
    lat2_rad = math.radians(lat2)
    delta_lon = math.radians(lon2 - lon1)

    y = math.sin(delta_lon) * math.cos(lat2_rad)
    x = math.cos(lat1_rad) * math.sin(lat2_rad) - math.sin(lat1_rad) * math.cos(
        lat2_rad
    ) * math.cos(delta_lon)

    return (math.degrees(math.atan2(y, x)) + 360) % 360


def jitter_offset(
    latitude: float, deviation_meters: float, rng: random.Random
) -> tuple[float, float]:
    """Random (dlat, dlon) offset of up to half the deviation per axis.

    Longitude degrees shrink with latitude, so the longitude offset is
    scaled by cos(latitude).
    """
    if deviation_meters <= 0:
        return 0.0, 0.0

    d_lat = (rng.random() - 0.5) * deviation_meters / METERS_PER_DEGREE
    cos_lat = math.cos(math.radians(latitude))
    if abs(cos_lat) < 1e-12:
        return d_lat, 0.0
    d_lon = (rng.random() - 0.5) * deviation_meters / (METERS_PER_DEGREE * cos_lat)
    return d_lat, d_lon
