"""
Configuration module for BarangayAPI.

This module loads the environment files for local development and exposes the
settings for the lifecycle scheduler, the local timezone and token verification.
"""

import os
from pathlib import Path
from dotenv import load_dotenv


def _load_env() -> None:
    """
    Load environment variables for local development.

    Prefer `.env.development` in the project root. Fallback to `.env`
    if the development file is missing. Does nothing on Heroku dynos where
    environment variables are provided by the platform.

    Returns:
        None
    """
    if os.getenv("DYNO"):
        return
    root = Path(__file__).resolve().parents[1]
    dev_env = root / ".env.development"
    default_env = root / ".env"
    if dev_env.exists():
        load_dotenv(dev_env)
    elif default_env.exists():
        load_dotenv(default_env)


_load_env()


def _env_flag(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


BARANGAY_TIMEZONE = os.getenv("BARANGAY_TIMEZONE", "Asia/Manila")
"""str: Timezone of the barangay hall; all lifecycle timestamps are local wall-clock times."""

SWEEP_SCHEDULER_ENABLED = _env_flag("SWEEP_SCHEDULER_ENABLED", "true")
"""bool: Start the in-process sweep scheduler together with the web app.

Run exactly one sweep trigger per deployment: leave this on for a single app
process, or turn it off everywhere when `run_lifecycle_sweep` runs from cron.
"""

SWEEP_CHECK_INTERVAL_SECONDS = int(os.getenv("SWEEP_CHECK_INTERVAL_SECONDS", "60"))
"""int: How often the scheduler wakes up to check whether a sweep is due."""

SWEEP_RUN_MINUTE = int(os.getenv("SWEEP_RUN_MINUTE", "0"))
"""int: Minute of each hour from which the hourly sweep may fire."""

ANNOUNCEMENT_TTL_HOURS = int(os.getenv("ANNOUNCEMENT_TTL_HOURS", "24"))
"""int: Age after which announcements are purged by housekeeping."""

JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY", "barangay-dev-secret")
JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
