# ==============================================
# Configuration Management
# ==============================================
#
# PURPOSE:
#   Load and validate all configuration from environment
#   variables / .env file. Provides typed config objects
#   to all other modules.
#
# CLASSES:
# --------
# - MongoConfig (dataclass)
#     uri: str | None        (default None, overrides the fields below)
#     host: str              (default "localhost")
#     port: int              (default 27017)
#     user: str | None       (default None)
#     password: str | None   (default None)
#
# - SamplingConfig (dataclass)
#     max_time_ms: int       (default 10000)
#     sample_size: int       (default 1000)
#     read_preference: str   (default "primaryPreferred")
#     tick_seconds: float    (default 1.0)
#
# - AppConfig (dataclass)
#     mongo: MongoConfig
#     sampling: SamplingConfig
#     log_level: str         (default "INFO")
#
# FUNCTIONS:
# ----------
# - get_config() -> AppConfig
#     Load .env using python-dotenv, construct AppConfig.
#     Returns the same singleton on repeated calls.
# - reset_config() -> None
#     Forget the singleton (tests, reloading).
#
# ENVIRONMENT:
# ------------
#   MONGO_URI, MONGO_HOST, MONGO_PORT, MONGO_USER, MONGO_PASSWORD,
#   SAMPLING_MAX_TIME_MS, SAMPLING_SAMPLE_SIZE,
#   SAMPLING_READ_PREFERENCE, SAMPLING_TICK_SECONDS, LOG_LEVEL
#
# ==============================================

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

from schema_sampler.sampling.errors import InvalidArgument
from schema_sampler.sampling.request import (
    DEFAULT_MAX_TIME_MS,
    DEFAULT_READ_PREFERENCE,
    DEFAULT_SAMPLE_SIZE,
    ReadPreference,
)


@dataclass
class MongoConfig:
    """MongoDB connection configuration."""
    uri: Optional[str] = None
    host: str = "localhost"
    port: int = 27017
    user: Optional[str] = None
    password: Optional[str] = None


@dataclass
class SamplingConfig:
    """Defaults for sampling runs."""
    max_time_ms: int = DEFAULT_MAX_TIME_MS
    sample_size: int = DEFAULT_SAMPLE_SIZE
    read_preference: str = DEFAULT_READ_PREFERENCE.value
    tick_seconds: float = 1.0

    def __post_init__(self):
        if self.max_time_ms < 0:
            raise InvalidArgument(f"max_time_ms must be >= 0, got {self.max_time_ms}")
        if self.sample_size <= 0:
            raise InvalidArgument(f"sample_size must be > 0, got {self.sample_size}")
        if self.tick_seconds < 0:
            raise InvalidArgument(f"tick_seconds must be >= 0, got {self.tick_seconds}")
        # Normalize and validate
        self.read_preference = ReadPreference.parse(self.read_preference).value


@dataclass
class AppConfig:
    """Main application configuration."""
    mongo: MongoConfig = field(default_factory=MongoConfig)
    sampling: SamplingConfig = field(default_factory=SamplingConfig)
    log_level: str = "INFO"


# Singleton instance
_config_instance: Optional[AppConfig] = None


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise InvalidArgument(f"{name} must be an integer, got {raw!r}") from None


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        raise InvalidArgument(f"{name} must be a number, got {raw!r}") from None


def get_config() -> AppConfig:
    """
    Load configuration from environment variables / .env file.
    Returns the same singleton instance on repeated calls.

    Returns:
        AppConfig: Application configuration
    """
    global _config_instance

    if _config_instance is not None:
        return _config_instance

    # Load .env file from project root (existing env vars win)
    env_path = Path(__file__).parent.parent / ".env"
    load_dotenv(dotenv_path=env_path)

    mongo_config = MongoConfig(
        uri=os.getenv("MONGO_URI") or None,
        host=os.getenv("MONGO_HOST", "localhost"),
        port=_env_int("MONGO_PORT", 27017),
        user=os.getenv("MONGO_USER") or None,
        password=os.getenv("MONGO_PASSWORD") or None
    )

    sampling_config = SamplingConfig(
        max_time_ms=_env_int("SAMPLING_MAX_TIME_MS", DEFAULT_MAX_TIME_MS),
        sample_size=_env_int("SAMPLING_SAMPLE_SIZE", DEFAULT_SAMPLE_SIZE),
        read_preference=os.getenv("SAMPLING_READ_PREFERENCE", DEFAULT_READ_PREFERENCE.value),
        tick_seconds=_env_float("SAMPLING_TICK_SECONDS", 1.0)
    )

    _config_instance = AppConfig(
        mongo=mongo_config,
        sampling=sampling_config,
        log_level=os.getenv("LOG_LEVEL", "INFO").upper()
    )

    return _config_instance


def reset_config() -> None:
    """Drop the cached configuration so the next get_config() reloads it."""
    global _config_instance
    _config_instance = None
