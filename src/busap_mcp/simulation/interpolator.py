"""Position interpolation along a RoutePath.

Progress is proportional to distance: after ``elapsed`` of a trip planned to
take ``total_planned_duration``, the vehicle has covered the same fraction of
the path's length. At an exact segment boundary the later segment owns the
point, except at the very end where the last segment reports progress 1.0.
"""

import random
from bisect import bisect_right
from dataclasses import dataclass

from busap_mcp.simulation.geo import initial_bearing, jitter_offset
from busap_mcp.simulation.route_path import RoutePath


@dataclass(frozen=True)
class InterpolatedPosition:
    segment_index: int
    segment_progress: float
    latitude: float
    longitude: float
    heading: float
    speed_kmh: float
    elapsed_ms: float
    fraction_complete: float

    @property
    def is_complete(self) -> bool:
        return self.fraction_complete >= 1.0


def compute_position(
    path: RoutePath,
    elapsed: float,
    total_planned_duration: float,
    random_deviation: float = 0.0,
    rng: random.Random | None = None,
) -> InterpolatedPosition:
    """Compute where a vehicle is after ``elapsed`` simulated seconds.

    Args:
        path: Route geometry with at least 2 points.
        elapsed: Simulated seconds since departure (>= 0).
        total_planned_duration: Scheduled trip duration in seconds (> 0).
        random_deviation: Jitter in meters applied to the reported lat/lng only.
        rng: Random source for the jitter. Without one the result is deterministic.

    Returns:
        InterpolatedPosition for the current moment.

    Raises:
        ValueError: If elapsed is negative or total_planned_duration is not positive.
    """
    if total_planned_duration <= 0:
        raise ValueError(f"total_planned_duration must be positive, got {total_planned_duration}")
    if elapsed < 0:
        raise ValueError(f"elapsed must be non-negative, got {elapsed}")

    elapsed_ms = elapsed * 1000
    fraction = min(1.0, max(0.0, elapsed / total_planned_duration))
    total_distance = path.total_distance
    last_segment = path.segment_count - 1

    # Degenerate path: every point coincides
    if total_distance == 0:
        first = path.points[0]
        return InterpolatedPosition(
            segment_index=0,
            segment_progress=0.0,
            latitude=first.latitude,
            longitude=first.longitude,
            heading=0.0,
            speed_kmh=0.0,
            elapsed_ms=elapsed_ms,
            fraction_complete=fraction,
        )

    if fraction >= 1.0:
        start, end = path.points[last_segment], path.points[-1]
        return InterpolatedPosition(
            segment_index=last_segment,
            segment_progress=1.0,
            latitude=end.latitude,
            longitude=end.longitude,
            heading=initial_bearing(start.latitude, start.longitude, end.latitude, end.longitude),
            speed_kmh=_segment_speed_kmh(path, last_segment, total_planned_duration),
            elapsed_ms=elapsed_ms,
            fraction_complete=1.0,
        )

    target = fraction * total_distance
    index = min(bisect_right(path.cumulative_distances, target) - 1, last_segment)
    index = max(index, 0)

    length = path.segment_lengths[index]
    progress = (target - path.cumulative_distances[index]) / length if length > 0 else 0.0
    progress = min(1.0, max(0.0, progress))

    start, end = path.points[index], path.points[index + 1]
    latitude = start.latitude + (end.latitude - start.latitude) * progress
    longitude = start.longitude + (end.longitude - start.longitude) * progress

    if rng is not None and random_deviation > 0:
        d_lat, d_lon = jitter_offset(latitude, random_deviation, rng)
        latitude += d_lat
        longitude += d_lon

    return InterpolatedPosition(
        segment_index=index,
        segment_progress=progress,
        latitude=latitude,
        longitude=longitude,
        heading=initial_bearing(start.latitude, start.longitude, end.latitude, end.longitude),
        speed_kmh=_segment_speed_kmh(path, index, total_planned_duration),
        elapsed_ms=elapsed_ms,
        fraction_complete=fraction,
    )


def _segment_speed_kmh(path: RoutePath, index: int, total_planned_duration: float) -> float:
    """Planned speed on a segment.

    Uses the segment's scheduled duration when the path carries one. Otherwise
    the segment gets its share of the total planned duration by distance.
    """
    length = path.segment_lengths[index]
    if length == 0 or path.total_distance == 0:
        return 0.0
    durations = path.segment_durations
    if durations is not None and durations[index] > 0:
        segment_duration = durations[index]
    else:
        segment_duration = total_planned_duration * length / path.total_distance
    return (length / 1000) / (segment_duration / 3600)
