"""Pydantic models for trips and their routes as read from the feed."""

from pydantic import BaseModel, Field


class TripStop(BaseModel):
    """A stop on a trip's route, in sequence order."""

    stop_id: str
    stop_name: str
    stop_sequence: int
    latitude: float | None = None
    longitude: float | None = None
    arrival_time: str | None = None  # HH:MM:SS (can exceed 24:00:00)
    departure_time: str | None = None


class ShapePoint(BaseModel):
    """Road geometry point between stops."""

    latitude: float
    longitude: float
    sequence: int


class TripRoute(BaseModel):
    """Everything the simulator needs to know about one trip."""

    trip_id: str
    route_id: str
    route_name: str | None = None
    trip_headsign: str | None = None
    vehicle_id: str
    status: str
    stops: list[TripStop]
    shape: list[ShapePoint] = Field(default_factory=list)
    departure_time: str | None = Field(default=None, description="First scheduled departure")
    arrival_time: str | None = Field(default=None, description="Last scheduled arrival")
    planned_duration_seconds: float | None = Field(
        default=None, description="Scheduled arrival minus scheduled departure"
    )


class AvailableTrip(BaseModel):
    """A trip that can be simulated."""

    trip_id: str
    route_id: str
    route_name: str | None = None
    trip_headsign: str | None = None
    vehicle_id: str | None = None
    status: str
    departure_time: str | None = None
    arrival_time: str | None = None
    stop_count: int


class ListAvailableTripsResponse(BaseModel):
    trips: list[AvailableTrip]
    count: int = Field(description="Number of trips returned")
