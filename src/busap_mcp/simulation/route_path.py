"""Immutable route geometry for one simulated trip."""

import math
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from itertools import accumulate

from busap_mcp.errors import InvalidRouteError
from busap_mcp.models.transit import ShapePoint, TripStop
from busap_mcp.services.trip_service import gtfs_time_to_seconds
from busap_mcp.simulation.geo import haversine_distance


@dataclass(frozen=True)
class GeoPoint:
    latitude: float
    longitude: float


def scheduled_segment_durations(stops: Sequence[TripStop]) -> tuple[float, ...] | None:
    """Scheduled seconds between consecutive stops.

    Each segment runs from one stop's departure (or arrival) to the next stop's
    arrival (or departure). Returns None if any stop lacks a usable time.
    """
    durations: list[float] = []
    for a, b in zip(stops, stops[1:]):
        leave = a.departure_time or a.arrival_time
        reach = b.arrival_time or b.departure_time
        if leave is None or reach is None:
            return None
        try:
            seconds = gtfs_time_to_seconds(reach) - gtfs_time_to_seconds(leave)
        except ValueError:
            return None
        durations.append(float(max(seconds, 0)))
    return tuple(durations)


@dataclass(frozen=True)
class RoutePath:
    """Ordered waypoints with precomputed segment and cumulative distances.

    ``cumulative_distances[i]`` is the distance in meters from the first point
    to point ``i``; it is non-decreasing and has one entry per point.
    ``segment_durations`` holds scheduled seconds per segment when the path
    comes from timed stops, otherwise None.
    """

    points: tuple[GeoPoint, ...]
    segment_lengths: tuple[float, ...] = field(repr=False)
    cumulative_distances: tuple[float, ...] = field(repr=False)
    segment_durations: tuple[float, ...] | None = field(default=None, repr=False)

    @classmethod
    def from_points(
        cls,
        points: Iterable[GeoPoint | tuple[float, float]],
        segment_durations: Sequence[float] | None = None,
    ) -> "RoutePath":
        """Build a path from (lat, lon) pairs or GeoPoints.

        Raises:
            InvalidRouteError: If fewer than 2 points are given.
            ValueError: If segment_durations does not have one entry per segment.
        """
        pts = tuple(
            p if isinstance(p, GeoPoint) else GeoPoint(float(p[0]), float(p[1])) for p in points
        )
        if len(pts) < 2:
            raise InvalidRouteError(f"Route needs at least 2 points, got {len(pts)}")

        lengths = tuple(
            haversine_distance(a.latitude, a.longitude, b.latitude, b.longitude)
            for a, b in zip(pts, pts[1:])
        )
        cumulative = tuple(accumulate(lengths, initial=0.0))

        durations = None
        if segment_durations is not None:
            durations = tuple(float(d) for d in segment_durations)
            if len(durations) != len(lengths):
                raise ValueError(
                    f"Expected {len(lengths)} segment durations, got {len(durations)}"
                )

        return cls(
            points=pts,
            segment_lengths=lengths,
            cumulative_distances=cumulative,
            segment_durations=durations,
        )

    @classmethod
    def from_stops(
        cls,
        stops: Sequence[TripStop],
        shape: Sequence[ShapePoint] | None = None,
    ) -> "RoutePath":
        """Build a path from a trip's stops, preferring road geometry when present.

        Stops are ordered by stop_sequence; stops without coordinates are skipped.
        A path through the stops themselves carries their scheduled segment
        durations.

        Raises:
            InvalidRouteError: If fewer than 2 stops have coordinates.
        """
        ordered = sorted(stops, key=lambda s: s.stop_sequence)
        resolvable = [s for s in ordered if s.latitude is not None and s.longitude is not None]
        if len(resolvable) < 2:
            raise InvalidRouteError(
                f"Trip has {len(resolvable)} stops with coordinates, at least 2 are required"
            )

        if shape and len(shape) >= 2:
            geometry = sorted(shape, key=lambda p: p.sequence)
            return cls.from_points(GeoPoint(p.latitude, p.longitude) for p in geometry)

        return cls.from_points(
            (GeoPoint(s.latitude, s.longitude) for s in resolvable),
            segment_durations=scheduled_segment_durations(resolvable),
        )

    @property
    def total_distance(self) -> float:
        return self.cumulative_distances[-1]

    @property
    def segment_count(self) -> int:
        return len(self.segment_lengths)

    def densify(self, max_segment_meters: float) -> "RoutePath":
        """Insert straight-line points so no segment exceeds max_segment_meters.

        Scheduled durations are split evenly across the pieces of each segment.
        """
        if max_segment_meters <= 0:
            raise ValueError("max_segment_meters must be positive")

        dense: list[GeoPoint] = [self.points[0]]
        durations: list[float] = []
        for i, ((a, b), length) in enumerate(
            zip(zip(self.points, self.points[1:]), self.segment_lengths)
        ):
            pieces = max(1, math.ceil(length / max_segment_meters))
            for step in range(1, pieces):
                t = step / pieces
                dense.append(
                    GeoPoint(
                        a.latitude + (b.latitude - a.latitude) * t,
                        a.longitude + (b.longitude - a.longitude) * t,
                    )
                )
            dense.append(b)
            if self.segment_durations is not None:
                durations.extend([self.segment_durations[i] / pieces] * pieces)

        return RoutePath.from_points(
            dense, segment_durations=durations if self.segment_durations is not None else None
        )
