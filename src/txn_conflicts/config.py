"""
Configuration management (SSOT).

This module defines ALL configuration for the conflict engine.
All config keys are defined here; no other module should invent config keys.

Key invariants:
- Endpoint paths are relative to api.base_url
- Detection settings only affect scanning, never resolution
"""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

import yaml

logger = logging.getLogger(__name__)


class ConfigValidationError(Exception):
    """Raised when configuration validation fails."""

    pass


@dataclass
class ApiConfig:
    """Transaction REST API configuration.

    The engine never fetches transactions itself; transactions_path is only
    used by the CLI host to build a snapshot.
    """

    base_url: str = "http://localhost:3000"
    token: str = ""
    transactions_path: str = "/api/transactions"
    resolve_path: str = "/api/transactions-conflict/resolve"
    resolve_batch_path: str = "/api/transactions-conflict/resolve-batch"
    # Request timeout (seconds)
    timeout_seconds: int = 30
    # Max retries per request (429/5xx)
    max_retries: int = 3
    backoff_factor: float = 0.5


@dataclass
class DetectionConfig:
    """Conflict scanning settings."""

    # Minimum score for a pair to be reported as a conflict
    similarity_threshold: float = 0.8
    # Maximum comparisons per scheduled chunk
    chunk_size: int = 50
    # Wall-clock budget per chunk (milliseconds)
    chunk_time_budget_ms: float = 20.0
    # Dates this many days apart (or closer) count as matching
    date_window_days: int = 2


@dataclass
class Config:
    """Application configuration (SSOT)."""

    api: ApiConfig = field(default_factory=ApiConfig)
    detection: DetectionConfig = field(default_factory=DetectionConfig)

    def validate(self) -> list[str]:
        """Validate configuration completeness and consistency.

        Returns:
            List of validation errors (empty if valid)
        """
        errors: list[str] = []

        if not self.api.base_url:
            errors.append("api.base_url is required")
        if self.api.timeout_seconds <= 0:
            errors.append("api.timeout_seconds must be > 0")
        if self.api.max_retries < 0:
            errors.append("api.max_retries must be >= 0")

        if not 0.0 < self.detection.similarity_threshold <= 1.0:
            errors.append("detection.similarity_threshold must be in (0, 1]")
        if self.detection.chunk_size < 1:
            errors.append("detection.chunk_size must be >= 1")
        if self.detection.chunk_time_budget_ms <= 0:
            errors.append("detection.chunk_time_budget_ms must be > 0")
        if self.detection.date_window_days < 0:
            errors.append("detection.date_window_days must be >= 0")

        return errors


def _env_number(name: str, default, cast):
    """Read a numeric env override, keeping the default if it doesn't parse."""
    raw = os.environ.get(name, "")
    if not raw:
        return default
    try:
        return cast(raw)
    except ValueError:
        logger.warning("Ignoring invalid %s=%r", name, raw)
        return default


def load_config(config_path: Path) -> Config:
    """
    Load configuration from YAML file.

    Environment variables can override config values:
    - TXN_CONFLICTS_API_URL
    - TXN_CONFLICTS_API_TOKEN
    - TXN_CONFLICTS_SIMILARITY_THRESHOLD
    - TXN_CONFLICTS_CHUNK_SIZE

    Raises:
        ConfigValidationError: If the resulting configuration is invalid.
    """
    if config_path.exists():
        with open(config_path) as f:
            data = yaml.safe_load(f) or {}
    else:
        data = {}

    api_data = data.get("api", {})
    api = ApiConfig(
        base_url=os.environ.get(
            "TXN_CONFLICTS_API_URL", api_data.get("base_url", "http://localhost:3000")
        ),
        token=os.environ.get("TXN_CONFLICTS_API_TOKEN", api_data.get("token", "")),
        transactions_path=api_data.get("transactions_path", "/api/transactions"),
        resolve_path=api_data.get("resolve_path", "/api/transactions-conflict/resolve"),
        resolve_batch_path=api_data.get(
            "resolve_batch_path", "/api/transactions-conflict/resolve-batch"
        ),
        timeout_seconds=int(api_data.get("timeout_seconds", 30)),
        max_retries=int(api_data.get("max_retries", 3)),
        backoff_factor=float(api_data.get("backoff_factor", 0.5)),
    )

    detection_data = data.get("detection", {})
    detection = DetectionConfig(
        similarity_threshold=_env_number(
            "TXN_CONFLICTS_SIMILARITY_THRESHOLD",
            float(detection_data.get("similarity_threshold", 0.8)),
            float,
        ),
        chunk_size=_env_number(
            "TXN_CONFLICTS_CHUNK_SIZE",
            int(detection_data.get("chunk_size", 50)),
            int,
        ),
        chunk_time_budget_ms=float(detection_data.get("chunk_time_budget_ms", 20.0)),
        date_window_days=int(detection_data.get("date_window_days", 2)),
    )

    config = Config(api=api, detection=detection)

    errors = config.validate()
    if errors:
        raise ConfigValidationError("; ".join(errors))

    return config


def create_default_config(config_path: Path) -> None:
    """Create a default configuration file."""
    default_config = """# Transaction conflict engine configuration
#
# Endpoint paths are appended to api.base_url.

api:
  base_url: "http://localhost:3000"
  token: ""                                  # Bearer token (optional)
  transactions_path: "/api/transactions"     # Used by the CLI to load a snapshot
  resolve_path: "/api/transactions-conflict/resolve"
  resolve_batch_path: "/api/transactions-conflict/resolve-batch"
  timeout_seconds: 30
  max_retries: 3                             # Retries on 429/5xx
  backoff_factor: 0.5

detection:
  similarity_threshold: 0.8                  # Report pairs scoring at least this
  chunk_size: 50                             # Max comparisons per chunk
  chunk_time_budget_ms: 20                   # Max wall-clock time per chunk
  date_window_days: 2                        # Dates this close count as a match
"""

    config_path.parent.mkdir(parents=True, exist_ok=True)
    with open(config_path, "w") as f:
        f.write(default_config)
