"""
Test configuration for PostQuarry.

Provides configuration, client and scraper fixtures.
"""

# Standard library imports
from typing import AsyncGenerator

# Third-party imports
import pytest
import pytest_asyncio

# Local imports
from postquarry.config import Config
from postquarry.crawler.http_client import GuardedHttpClient
from postquarry.scraper import PostScraper


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line("markers", "unit: Unit tests for individual components")
    config.addinivalue_line("markers", "integration: Integration tests across modules")
    config.addinivalue_line("markers", "security: Security and vulnerability tests")


# ============================================================================
# Configuration Fixtures
# ============================================================================


@pytest.fixture
def test_config() -> Config:
    """Configuration with test-friendly timing."""
    config = Config()
    config.scraper.retry_backoff_seconds = 0.0
    config.scraper.timeout = 2.0
    config.scraper.enable_headless = False
    return config


# ============================================================================
# Client Fixtures
# ============================================================================


@pytest_asyncio.fixture
async def http_client(test_config) -> AsyncGenerator[GuardedHttpClient, None]:
    """Initialized guarded HTTP client."""
    async with GuardedHttpClient(test_config) as client:
        yield client


@pytest_asyncio.fixture
async def scraper(test_config) -> AsyncGenerator[PostScraper, None]:
    """Initialized scraper with default pools."""
    async with PostScraper(test_config) as instance:
        yield instance
