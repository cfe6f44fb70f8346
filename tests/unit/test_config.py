"""
Tests for configuration loading.
"""

import pytest
from postquarry.config import Config
from postquarry.config.config import LazyConfig, ScraperConfig, find_config_file
from pydantic import ValidationError


class TestDefaults:
    def test_scraper_defaults(self):
        scraper = ScraperConfig()

        assert scraper.timeout == 12.0
        assert scraper.max_redirects == 2
        assert scraper.retry_count == 2
        assert scraper.max_media_count == 40
        assert scraper.max_download_count == 40
        assert scraper.download_concurrency == 3
        assert scraper.embed_fetch_concurrency == 2
        assert scraper.max_embed_fetches == 3
        assert scraper.max_embed_depth == 1
        assert scraper.script_scan_limit == 2_000_000
        assert scraper.min_image_dimension == 140

    def test_sections(self):
        assert set(Config().model_dump()) == {"project_name", "version", "scraper", "monitoring"}

    def test_invalid_values_are_rejected(self):
        with pytest.raises(ValidationError):
            ScraperConfig(timeout=0)
        with pytest.raises(ValidationError):
            ScraperConfig(download_concurrency=0)
        with pytest.raises(ValidationError):
            ScraperConfig(user_agent="   ")


class TestEnvironment:
    def test_nested_env_override(self, monkeypatch):
        monkeypatch.setenv("POSTQUARRY_SCRAPER__TIMEOUT", "3.5")
        monkeypatch.setenv("POSTQUARRY_MONITORING__LOG_LEVEL", "DEBUG")

        config = Config()

        assert config.scraper.timeout == 3.5
        assert config.monitoring.log_level == "DEBUG"

    @pytest.mark.parametrize("value,expected", [("true", True), ("TRUE", True), ("1", False), ("", False)])
    def test_legacy_headless_flag(self, monkeypatch, value, expected):
        monkeypatch.setenv("ENABLE_HEADLESS", value)

        assert ScraperConfig().enable_headless is expected


class TestYaml:
    def test_from_yaml(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("scraper:\n  retry_count: 0\n  max_media_count: 10\nmonitoring:\n  metrics_enabled: false\n")

        config = Config.from_yaml(path)

        assert config.scraper.retry_count == 0
        assert config.scraper.max_media_count == 10
        assert config.monitoring.metrics_enabled is False

    def test_empty_yaml_uses_defaults(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("")

        assert Config.from_yaml(path).scraper.timeout == 12.0

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            Config.from_yaml(tmp_path / "absent.yaml")

    def test_log_file_parent_is_created(self, tmp_path):
        path = tmp_path / "logs" / "nested" / "postquarry.log"

        config = Config.model_validate({"monitoring": {"log_file": str(path)}})

        assert config.monitoring.log_file == str(path)
        assert path.parent.is_dir()


class TestDiscovery:
    def test_find_config_file(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        assert find_config_file() is None

        (tmp_path / "config.yml").write_text("scraper:\n  timeout: 4\n")
        assert find_config_file() == tmp_path / "config.yml"

    def test_lazy_config_loads_on_first_access(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        (tmp_path / "config.yaml").write_text("scraper:\n  timeout: 4\n")
        monkeypatch.setattr(LazyConfig, "_config", None)

        assert LazyConfig().scraper.timeout == 4.0

    def test_lazy_config_falls_back_on_invalid_file(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        (tmp_path / "config.yaml").write_text("scraper:\n  timeout: -1\n")
        monkeypatch.setattr(LazyConfig, "_config", None)

        assert LazyConfig().scraper.timeout == 12.0
