"""Application configuration helpers."""

import logging
import os
from dataclasses import dataclass
from functools import lru_cache

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

DEFAULT_RADIUS_METERS = 10000


@dataclass(frozen=True)
class Settings:
    google_api_key: str
    database_url: str
    port: int = 8080
    search_radius_m: int = DEFAULT_RADIUS_METERS
    places_type: str = "veterinary_care"
    request_timeout: int = 10


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Load settings from environment variables with sensible defaults."""
    load_dotenv()

    google_api_key = os.getenv("GOOGLE_MAPS_API_KEY", "")
    database_url = os.getenv("DATABASE_URL", "")
    port = int(os.getenv("PORT", "8080"))
    search_radius_m = int(os.getenv("SEARCH_RADIUS_METERS", str(DEFAULT_RADIUS_METERS)))
    places_type = os.getenv("PLACES_TYPE", "veterinary_care").strip() or "veterinary_care"
    request_timeout = int(os.getenv("REQUEST_TIMEOUT_SECONDS", "10"))

    if not database_url:
        logger.warning("DATABASE_URL is not set; saved vets cannot be persisted.")
    if not google_api_key:
        logger.warning("GOOGLE_MAPS_API_KEY is not configured; vet searches will fail.")

    return Settings(
        google_api_key=google_api_key,
        database_url=database_url,
        port=port,
        search_radius_m=search_radius_m,
        places_type=places_type,
        request_timeout=request_timeout,
    )
