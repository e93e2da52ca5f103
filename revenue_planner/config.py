# revenue_planner/config.py
"""
Runtime settings, read from environment variables.

- PLANNER_DATA_DIR: where the local JSON stores live (default .planner_data)
- UPSTASH_ENABLED=1 + UPSTASH_REDIS_REST_URL + UPSTASH_REDIS_REST_TOKEN:
  store projects and schedules in Upstash (Redis REST) instead of on disk
- PLANNER_KEY_PREFIX: prefix for every Redis key (default revenue_planner)
- PLANNER_LOG_LEVEL: logging level name (default INFO)
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Tuple

DEFAULT_DATA_DIR = ".planner_data"
DEFAULT_KEY_PREFIX = "revenue_planner"


@dataclass(frozen=True)
class Settings:
    data_dir: Path
    upstash_url: Optional[str] = None
    upstash_token: Optional[str] = None
    key_prefix: str = DEFAULT_KEY_PREFIX
    log_level: str = "INFO"

    @property
    def upstash_configured(self) -> bool:
        return bool(self.upstash_url and self.upstash_token)


def _upstash_config() -> Tuple[Optional[str], Optional[str]]:
    """
    Read Upstash env vars safely.

    Upstash is ONLY used when UPSTASH_ENABLED=1, so local runs never write
    to Redis by accident.
    """
    if os.getenv("UPSTASH_ENABLED") != "1":
        return None, None

    url = os.getenv("UPSTASH_REDIS_REST_URL")
    token = os.getenv("UPSTASH_REDIS_REST_TOKEN")
    if not url or not token:
        return None, None
    return url.rstrip("/"), token


def load_settings() -> Settings:
    url, token = _upstash_config()
    return Settings(
        data_dir=Path(os.getenv("PLANNER_DATA_DIR", "").strip() or DEFAULT_DATA_DIR),
        upstash_url=url,
        upstash_token=token,
        key_prefix=os.getenv("PLANNER_KEY_PREFIX", "").strip() or DEFAULT_KEY_PREFIX,
        log_level=(os.getenv("PLANNER_LOG_LEVEL", "").strip() or "INFO").upper(),
    )


def configure_logging(settings: Settings) -> None:
    """
    Set up root logging once for entry points (API server, smoke script).
    """
    level = logging.getLevelName(settings.log_level)
    if not isinstance(level, int):
        level = logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
