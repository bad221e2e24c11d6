"""
Runtime configuration.

Tunables come from an optional config.yaml; secrets (API key, cron secret)
only from the environment or a .env file in the project root.
"""

import logging
import os
from pathlib import Path
from typing import List, Optional, Union

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field, ValidationError, field_validator

from sma_scanner.core.errors import ConfigError
from sma_scanner.core.models import SMA_WINDOWS

BASE_DIR = Path(__file__).resolve().parent.parent.parent
CONFIG_PATH = BASE_DIR / "config.yaml"

LOG_FORMAT = "[%(asctime)s] [%(levelname)s] %(name)s: %(message)s"

# env var -> settings field
ENV_OVERRIDES = {
    "TWELVEDATA_API_KEY": "twelvedata_api_key",
    "CRON_SECRET": "cron_secret",
    "SMA_SCANNER_DB": "db_path",
    "SMA_SCANNER_TICKERS": "tickers_path",
    "SMA_SCANNER_SOURCE": "data_source",
    "SMA_SCANNER_LOG_LEVEL": "log_level",
}


class Settings(BaseModel):
    windows: List[int] = Field(default_factory=lambda: list(SMA_WINDOWS), description="Supported SMA windows")
    data_source: str = Field("stooq", description="stooq (per-symbol CSV) or twelvedata (bulk JSON)")

    # per-symbol path
    concurrency: int = Field(6, ge=1, description="Max in-flight symbol fetches")
    min_history: int = Field(205, ge=0, description="Minimum closes a symbol needs on the per-symbol path")
    lookback: int = Field(210, ge=1, description="Most-recent closes kept per symbol")

    # bulk path
    batch_size: int = Field(50, ge=1, description="Symbols per bulk request")
    bulk_outputsize: int = Field(210, ge=1)
    bulk_concurrency: int = Field(1, ge=1, description="Bulk requests in flight")
    bulk_min_history: int = Field(0, ge=0)
    end_date: Optional[str] = Field(None, description="Optional YYYY-MM-DD upper bound")

    fetch_timeout: float = Field(20.0, gt=0, description="Seconds before a request is abandoned")
    as_of_policy: str = Field("first", description="first (first symbol to resolve) or latest (max date)")

    tickers_path: str = "data/tickers.json"
    db_path: str = "scanner.db"
    cache_ttl_seconds: float = Field(60.0, ge=0)

    twelvedata_api_key: Optional[str] = None
    cron_secret: Optional[str] = None
    log_level: str = "INFO"

    @field_validator("windows")
    @classmethod
    def _positive_windows(cls, v: List[int]) -> List[int]:
        if not v:
            raise ValueError("at least one SMA window is required")
        if any(w <= 0 for w in v):
            raise ValueError(f"SMA windows must be positive, got {v}")
        return sorted(set(v))

    @field_validator("data_source")
    @classmethod
    def _known_source(cls, v: str) -> str:
        v = v.strip().lower()
        if v not in ("stooq", "twelvedata"):
            raise ValueError(f"unknown data_source {v!r}")
        return v

    @field_validator("as_of_policy")
    @classmethod
    def _known_policy(cls, v: str) -> str:
        if v not in ("first", "latest"):
            raise ValueError(f"unknown as_of_policy {v!r}")
        return v

    def resolve_path(self, value: str) -> Path:
        """Relative paths are taken from the project root."""
        p = Path(value)
        return p if p.is_absolute() else BASE_DIR / p


def load_settings(config_path: Optional[Union[str, Path]] = None, **overrides) -> Settings:
    """
    Build Settings from config.yaml, then the environment, then `overrides`.
    Raises ConfigError on unreadable YAML or invalid values.
    """
    load_dotenv(BASE_DIR / ".env")

    path = Path(config_path or os.getenv("SMA_SCANNER_CONFIG") or CONFIG_PATH)
    cfg = {}
    if path.exists():
        try:
            with open(path, "r") as f:
                cfg = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigError(f"Could not parse {path}: {e}") from e
        if not isinstance(cfg, dict):
            raise ConfigError(f"{path} must contain a mapping")

    for env_name, field_name in ENV_OVERRIDES.items():
        value = os.getenv(env_name, "").strip()
        if value:
            cfg[field_name] = value

    cfg.update({k: v for k, v in overrides.items() if v is not None})

    try:
        return Settings(**cfg)
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration: {e}") from e


def configure_logging(level: str = "INFO") -> None:
    root = logging.getLogger()
    if not root.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        root.addHandler(handler)
    root.setLevel(level.upper())
