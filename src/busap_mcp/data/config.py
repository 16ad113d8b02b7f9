from functools import lru_cache
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# Accepted ranges for simulation start parameters
MIN_SPEED_MULTIPLIER = 1.0
MAX_SPEED_MULTIPLIER = 100.0
MIN_UPDATE_INTERVAL_MS = 500
MAX_UPDATE_INTERVAL_MS = 30_000
MIN_RANDOM_DEVIATION = 0.0
MAX_RANDOM_DEVIATION = 500.0


class BusapConfig(BaseSettings):
    """Configuration for the simulator and calendar services.

    Automatically loads from environment variables and .env file.
    """

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    db_path: Path = Field(default=Path("data/busap.db"), alias="BUSAP_DB_PATH")

    # Defaults applied when a start request omits a parameter
    default_speed_multiplier: float = Field(
        default=10.0,
        alias="BUSAP_DEFAULT_SPEED_MULTIPLIER",
        ge=MIN_SPEED_MULTIPLIER,
        le=MAX_SPEED_MULTIPLIER,
    )
    default_update_interval_ms: int = Field(
        default=2000,
        alias="BUSAP_DEFAULT_UPDATE_INTERVAL_MS",
        ge=MIN_UPDATE_INTERVAL_MS,
        le=MAX_UPDATE_INTERVAL_MS,
    )
    default_random_deviation: float = Field(
        default=50.0,
        alias="BUSAP_DEFAULT_RANDOM_DEVIATION",
        ge=MIN_RANDOM_DEVIATION,
        le=MAX_RANDOM_DEVIATION,
    )

    # Position publishing
    position_ttl_seconds: float = Field(default=60.0, alias="BUSAP_POSITION_TTL")
    publish_queue_size: int = Field(default=1000, alias="BUSAP_PUBLISH_QUEUE_SIZE", ge=1)
    persist_positions: bool = Field(default=True, alias="BUSAP_PERSIST_POSITIONS")

    # Longest straight segment between stops before extra points are inserted, unset to disable
    max_segment_meters: float | None = Field(
        default=None, alias="BUSAP_MAX_SEGMENT_METERS", gt=0
    )


@lru_cache
def get_config() -> BusapConfig:
    """Get the service configuration (cached singleton).

    Returns:
        BusapConfig with values from .env file or environment variables.
    """
    return BusapConfig()
