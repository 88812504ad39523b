"""Configuration Module

Loads process configuration from environment variables once at startup.
A `.env` file in the working directory is read first if present.

Environment variables:
  ES_URL:        Indexing service base URL (required)
  ES_API_KEY:    API key sent as `Authorization: ApiKey ...` (required)
  ES_INDEX:      Index documents are written to (required)
  ES_VERIFY_TLS: Set to 'true' to validate the remote certificate (default: off)
  PORT:          HTTP listen port (default: 8080)
  LOG_LEVEL:     debug / info / warning / error (default: info)
  LOG_FORMAT:    'json' for JSON lines, anything else for console output
  WORKER_COUNT:  Fixed worker pool size (default: 2 x CPU count)
"""

import logging
import os
from typing import List, Mapping, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, ValidationError

from .errors import ConfigError
from .models import IndexingTarget
from .pool import default_worker_count

logger = logging.getLogger(__name__)

DEFAULT_PORT = "8080"
DEFAULT_LOG_LEVEL = "info"
REQUIRED_VARS = ("ES_URL", "ES_API_KEY", "ES_INDEX")
LOG_LEVELS = ("debug", "info", "warning", "error", "critical")
TRUTHY = ("1", "true", "yes", "on")


class LogConfig(BaseModel):
    level: str = DEFAULT_LOG_LEVEL
    json_format: bool = False


class Config(BaseModel):
    port: int
    target: IndexingTarget
    log: LogConfig
    workers: int


def load_log_config(environ: Mapping[str, str]) -> LogConfig:
    """Read LOG_LEVEL / LOG_FORMAT. Unknown levels fall back to info."""
    level = (environ.get("LOG_LEVEL") or DEFAULT_LOG_LEVEL).strip().lower()
    if level == "warn":
        level = "warning"
    if level not in LOG_LEVELS:
        level = DEFAULT_LOG_LEVEL
    return LogConfig(level=level, json_format=environ.get("LOG_FORMAT") == "json")


def _parse_positive_int(name: str, raw: str, upper: Optional[int] = None) -> int:
    try:
        value = int(raw)
    except ValueError:
        raise ConfigError(f"{name} must be an integer", {name: raw})
    if value < 1 or (upper is not None and value > upper):
        raise ConfigError(f"{name} is out of range", {name: raw})
    return value


def load_config(environ: Optional[Mapping[str, str]] = None) -> Config:
    """
    Build the process configuration.

    Args:
        environ: Mapping to read variables from. Defaults to os.environ
            after loading `.env`.

    Returns:
        Validated Config

    Raises:
        ConfigError: If ES_URL, ES_API_KEY or ES_INDEX is missing (all
            missing names are reported together), or PORT / WORKER_COUNT
            is not a valid positive integer.
    """
    if environ is None:
        load_dotenv()
        environ = os.environ

    missing: List[str] = [name for name in REQUIRED_VARS if not environ.get(name)]
    if missing:
        logger.error(
            "Missing required environment variables: %s",
            ", ".join(missing),
            extra={"component": "config", "missing_variables": missing},
        )
        raise ConfigError(
            f"missing required environment variables: {missing}",
            {"missing_variables": missing},
        )

    try:
        target = IndexingTarget(
            url=environ["ES_URL"],
            api_key=environ["ES_API_KEY"],
            index=environ["ES_INDEX"],
            verify_tls=environ.get("ES_VERIFY_TLS", "").strip().lower() in TRUTHY,
        )
    except ValidationError as e:
        raise ConfigError(f"invalid indexing configuration: {e}")

    raw_port = environ.get("PORT") or DEFAULT_PORT
    port = _parse_positive_int("PORT", raw_port, upper=65535)

    raw_workers = environ.get("WORKER_COUNT")
    if raw_workers:
        workers = _parse_positive_int("WORKER_COUNT", raw_workers)
    else:
        workers = default_worker_count()

    log_config = load_log_config(environ)

    logger.info(
        "Configuration loaded: url=%s index=%s port=%d workers=%d log_level=%s json_logs=%s",
        target.url,
        target.index,
        port,
        workers,
        log_config.level,
        log_config.json_format,
        extra={"component": "config"},
    )
    return Config(port=port, target=target, log=log_config, workers=workers)
