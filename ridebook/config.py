"""Centralised client settings loaded from environment / .env file."""

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Backend REST API
    api_base_url: str = "http://localhost:8000/api"
    api_timeout_seconds: float = 30.0

    # Client shell
    confirmation_screens_max: int = 200

    # Persisted client state
    storage_backend: str = "memory"  # "memory" | "redis"
    redis_url: str = "redis://localhost:6379/0"
    auth_storage_key: str = "auth-storage"
    booking_storage_key: str = "booking-storage"
    storage_schema_version: int = 1

    # Mapping provider
    google_maps_api_key: str = ""
    distance_matrix_url: str = (
        "https://maps.googleapis.com/maps/api/distancematrix/json"
    )

    # Pricing
    base_prices: dict[str, float] = {
        "standard": 15.0,
        "berline": 15.0,
        "break": 20.0,
        "premium": 20.0,
        "van": 25.0,
    }
    default_base_price: float = 15.0
    rate_per_km: float = 1.5  # EUR / km
    rate_per_minute: float = 0.3  # EUR / min
    fallback_base_distance_km: float = 10.0
    fallback_km_per_stop: float = 5.0

    # Timers
    email_retry_delay_seconds: float = 2.0
    location_push_interval_seconds: float = 7.0
    geolocation_timeout_seconds: float = 10.0

    # Driver
    available_rides_per_page: int = 10

    model_config = {"env_file": ".env", "extra": "ignore"}


settings = Settings()
