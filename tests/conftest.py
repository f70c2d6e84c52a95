"""Pytest configuration and shared fixtures for talkbridge tests

This module provides common fixtures and test utilities used across
unit and integration tests.
"""

import logging
from pathlib import Path
from typing import Generator

import pytest

from talkbridge.common.config import Config, ConfigLoader
from talkbridge.common.settings import settings


@pytest.fixture
def sample_config() -> Config:
    """Load the shipped example configuration

    Returns:
        Config object with example values
    """
    config_path = Path(__file__).parent.parent / "config.example.yml"
    if not config_path.exists():
        pytest.skip("config.example.yml not found - required for this test")
    return ConfigLoader.config_load(config_path)


@pytest.fixture
def default_config() -> Config:
    """Built-in defaults without touching the filesystem"""
    return ConfigLoader.config_parse(ConfigLoader.defaults_merge({}))


@pytest.fixture
def reset_settings() -> Generator[None, None, None]:
    """Reset settings singleton between tests

    This fixture ensures each test gets a fresh Settings instance.
    """
    settings._initialized = False
    settings._config = None
    yield
    settings._initialized = False
    settings._config = None


@pytest.fixture(autouse=True)
def setup_logging(caplog):
    """Setup logging for tests"""
    caplog.set_level(logging.DEBUG)


def pytest_configure(config) -> None:
    """Register custom pytest markers used by this test suite."""
    config.addinivalue_line(
        "markers", "integration: tests that open real sockets or spawn processes"
    )
