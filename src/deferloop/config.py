# src/deferloop/config.py

"""Centralized settings loaded from environment variables (+ optional .env).

Design goals:
- One Settings object for the whole process (normal "settings layer").
- Programmatic options (callables, platforms) live in SchedulerOptions, not here.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv

ENV_PREFIX = "DEFERLOOP"

DEFAULT_QUEUES = ["sync", "actions", "render", "after_render", "destroy"]

load_dotenv(override=False)


def _k(suffix: str) -> str:
    """Build env var name with the project prefix."""
    return f"{ENV_PREFIX}_{suffix}"


def _env(name: str, default: str = "") -> str:
    v = os.getenv(name)
    return default if v is None else v


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "y", "on"}


def _env_list(name: str, default: List[str]) -> List[str]:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return list(default)
    parts = [p.strip() for p in raw.replace(",", " ").split() if p.strip()]
    return parts


def _env_path(name: str) -> Optional[Path]:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return None
    return Path(raw).expanduser()


@dataclass(frozen=True, slots=True)
class Settings:
    # ---- Queues ----
    queue_names: List[str]
    default_queue: str

    # ---- Diagnostics ----
    debug: bool

    # ---- Logging ----
    log_level: str
    log_dir: Optional[Path]

    @staticmethod
    def from_env() -> "Settings":
        queue_names = _env_list(_k("QUEUES"), DEFAULT_QUEUES)

        # "actions" is the conventional default lane; fall back to the first queue.
        fallback = "actions" if "actions" in queue_names else (queue_names[0] if queue_names else "")
        default_queue = _env(_k("DEFAULT_QUEUE"), fallback).strip() or fallback

        debug = _env_bool(_k("DEBUG"), False)

        log_level = _env(_k("LOG_LEVEL"), "INFO").strip().upper() or "INFO"
        log_dir = _env_path(_k("LOG_DIR"))

        return Settings(
            queue_names=queue_names,
            default_queue=default_queue,
            debug=debug,
            log_level=log_level,
            log_dir=log_dir,
        )


SETTINGS = Settings.from_env()


def get_settings() -> Settings:
    return SETTINGS
