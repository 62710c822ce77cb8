"""Root test configuration."""

import logging

import httpx
import pytest
import structlog
from converge.example_platform import ExamplePlatformApi, configure_api
from mock_server import STATE, app, reset_state

PLATFORM_URL = "http://platform.test/api"


def pytest_configure(config):
    """Configure structlog for tests to suppress debug/info output."""
    logging.basicConfig(level=logging.WARNING, force=True)
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.processors.add_log_level,
            structlog.processors.format_exc_info,
            structlog.dev.ConsoleRenderer(),
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=False,
    )


@pytest.fixture
def platform_transport():
    return httpx.ASGITransport(app=app)


@pytest.fixture
def platform(platform_transport):
    """In-process Example Platform; the User handler is pointed at it."""
    reset_state()
    configure_api(api_url=PLATFORM_URL, transport=platform_transport, max_retries=1)
    yield STATE
    configure_api()
    reset_state()


@pytest.fixture
def platform_api(platform, platform_transport):
    """Client for verifying platform state directly."""
    return ExamplePlatformApi(PLATFORM_URL, transport=platform_transport, max_retries=1)
