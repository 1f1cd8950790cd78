"""Application configuration helpers."""

import logging
import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional

from dotenv import load_dotenv

logger = logging.getLogger(__name__)


class ConfigError(RuntimeError):
    """Raised when mandatory configuration is missing or malformed."""


@dataclass(frozen=True)
class Settings:
    kakao_api_key: str
    database_url: str
    worker_port: int = 9000
    default_keyword: str = ""
    regions_file: Optional[str] = None
    max_workers: int = 4
    initial_radius_m: int = 512
    max_depth: int = 7
    dense_threshold: int = 45
    max_pages: int = 45
    api_call_delay_ms: int = 30
    max_retries: int = 5
    retry_delay_ms: int = 1000
    max_retry_delay_ms: int = 60000
    sink_batch_size: int = 100


def _get_int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = int(raw)
    except ValueError as exc:
        raise ConfigError(f"{name} must be an integer, got {raw!r}") from exc
    if value <= 0:
        raise ConfigError(f"{name} must be positive, got {value}")
    return value


def check_radius_schedule(initial_radius_m: int, max_depth: int) -> None:
    """Reject depth settings that would halve the cell radius down to zero metres."""
    if initial_radius_m >> max_depth < 1:
        raise ConfigError(
            f"COLLECTOR_INITIAL_RADIUS={initial_radius_m} cannot be halved {max_depth} times; "
            "raise the radius or lower COLLECTOR_MAX_DEPTH"
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Load settings from environment variables with sensible defaults."""
    load_dotenv()

    kakao_api_key = os.getenv("KAKAO_API_KEY", "")
    database_url = os.getenv("DATABASE_URL", "")
    default_keyword = os.getenv("COLLECTOR_KEYWORD", "").strip()
    regions_file = os.getenv("REGIONS_FILE") or None

    if not database_url:
        logger.warning("DATABASE_URL is not set; database operations will fail.")
    if not kakao_api_key:
        logger.warning("KAKAO_API_KEY is not configured; keyword searches will fail.")

    initial_radius_m = _get_int_env("COLLECTOR_INITIAL_RADIUS", 512)
    max_depth = _get_int_env("COLLECTOR_MAX_DEPTH", 7)
    check_radius_schedule(initial_radius_m, max_depth)

    return Settings(
        kakao_api_key=kakao_api_key,
        database_url=database_url,
        worker_port=_get_int_env("WORKER_PORT", 9000),
        default_keyword=default_keyword,
        regions_file=regions_file,
        max_workers=_get_int_env("COLLECTOR_MAX_WORKERS", os.cpu_count() or 4),
        initial_radius_m=initial_radius_m,
        max_depth=max_depth,
        dense_threshold=_get_int_env("COLLECTOR_DENSE_THRESHOLD", 45),
        max_pages=_get_int_env("COLLECTOR_MAX_PAGES", 45),
        api_call_delay_ms=_get_int_env("COLLECTOR_API_DELAY_MS", 30),
        max_retries=_get_int_env("COLLECTOR_MAX_RETRIES", 5),
        retry_delay_ms=_get_int_env("COLLECTOR_RETRY_DELAY_MS", 1000),
        max_retry_delay_ms=_get_int_env("COLLECTOR_MAX_RETRY_DELAY_MS", 60000),
        sink_batch_size=_get_int_env("SINK_BATCH_SIZE", 100),
    )
