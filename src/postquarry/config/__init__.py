"""Configuration models for PostQuarry."""

from .config import Config, MonitoringConfig, ScraperConfig, find_config_file, settings

__all__ = ["Config", "ScraperConfig", "MonitoringConfig", "find_config_file", "settings"]
