"""
Configuration management for PostQuarry using Pydantic.
"""

from __future__ import annotations

import logging
import os
import threading
from pathlib import Path
from typing import Any, ClassVar, cast

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# --- Setup Logging ---
log = logging.getLogger(__name__)

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/123.0.0.0 Safari/537.36"
)


def _legacy_headless_flag() -> bool:
    return os.getenv("ENABLE_HEADLESS", "").strip().lower() == "true"


# --- Nested Configuration Models ---


class ScraperConfig(BaseModel):
    """Post scraping and media retrieval configuration."""

    timeout: float = Field(default=12.0, gt=0, description="Per-request timeout in seconds.")
    max_redirects: int = Field(default=2, ge=0, description="Maximum redirect hops followed per fetch.")
    retry_count: int = Field(default=2, ge=0, description="Retries of the whole scrape after the first attempt.")
    retry_backoff_seconds: float = Field(default=0.5, ge=0, description="Base delay between scrape retries.")
    max_media_count: int = Field(default=40, gt=0, description="Maximum URLs kept per media kind.")
    max_download_count: int = Field(default=40, gt=0, description="Maximum media entries downloaded per call.")
    download_concurrency: int = Field(default=3, gt=0, description="Concurrent media downloads.")
    embed_fetch_concurrency: int = Field(default=2, gt=0, description="Concurrent embed frame fetches.")
    max_embed_fetches: int = Field(default=3, ge=0, description="Maximum embed frames fetched per page.")
    max_embed_depth: int = Field(default=1, ge=0, description="Levels of nested embed frames resolved.")
    script_scan_limit: int = Field(default=2_000_000, gt=0, description="Inline scripts above this size are skipped.")
    min_image_dimension: int = Field(default=140, ge=0, description="Smaller explicit img sizes count as icons.")
    user_agent: str = Field(default=DEFAULT_USER_AGENT, description="User-Agent sent with every request.")
    enable_headless: bool = Field(
        default_factory=_legacy_headless_flag,
        description="Reserved for a rendering-based extraction mode. Currently only logs a notice.",
    )

    @field_validator("user_agent")
    @classmethod
    def validate_user_agent(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("user_agent must not be empty")
        return v


class MonitoringConfig(BaseModel):
    """Configuration for logging and metrics."""

    log_level: str = Field(default="INFO", description="Logging level (e.g., DEBUG, INFO, WARNING).")
    log_file: str | None = Field(default=None, description="Path to log file. If None, logs to console.")
    metrics_enabled: bool = Field(default=True, description="Record Prometheus metrics.")

    @field_validator("log_file", mode="before")
    @classmethod
    def create_parent_dir(cls, v: str | Path | None) -> str | None:
        if v is None:
            return None
        path = Path(v)
        path.parent.mkdir(parents=True, exist_ok=True)
        return str(path)


# --- Main Configuration Class ---


class Config(BaseSettings):
    project_name: str = "PostQuarry"
    version: str = "0.1.0"
    scraper: ScraperConfig = Field(default_factory=ScraperConfig)
    monitoring: MonitoringConfig = Field(default_factory=MonitoringConfig)

    model_config = SettingsConfigDict(env_prefix="POSTQUARRY_", env_nested_delimiter="__", case_sensitive=False)

    @classmethod
    def from_yaml(cls, path: Path) -> Config:
        log.debug("Loading configuration from YAML file: %s", path)
        if not path.is_file():
            raise FileNotFoundError(f"Configuration file not found or is not a file: {path}")
        with open(path, "r", encoding="utf-8") as f:
            yaml_data = yaml.safe_load(f)
        if not yaml_data:
            log.warning("Configuration file is empty: %s. Using default settings.", path)
            return cls.model_validate({})
        return cls.model_validate(yaml_data)


def find_config_file() -> Path | None:
    current_dir = Path.cwd()
    for path in (current_dir / "config.yaml", current_dir / "config.yml"):
        if path.exists():
            return path
    return None


# --- Lazy Configuration Loader ---


class LazyConfig:
    """
    A proxy for the Config object that delays its loading and validation
    until an attribute is first accessed.
    """

    _config: ClassVar[Config | None] = None
    _lock: ClassVar[threading.Lock] = threading.Lock()

    def __getattr__(self, name: str) -> Any:
        if self.__class__._config is None:
            with self.__class__._lock:
                if self.__class__._config is None:
                    self.__class__._config = self._load_config_with_fallback()
        return getattr(self.__class__._config, name)

    def _load_config_with_fallback(self) -> Config:
        config_path = find_config_file()
        if config_path:
            try:
                log.info("Lazy loading configuration from: %s", config_path)
                return Config.from_yaml(config_path)
            except (ValidationError, FileNotFoundError, yaml.YAMLError) as e:
                log.error(
                    "Failed to load configuration from '%s': %s. Falling back to default settings.",
                    config_path,
                    e,
                )
        try:
            return Config()
        except ValidationError as e:
            log.critical("FATAL: Default configuration is invalid: %s", e, exc_info=True)
            raise RuntimeError(f"Default configuration is invalid, cannot start: {e}") from e


settings: "Config" = cast("Config", LazyConfig())
