"""Shared test fixtures."""

from pathlib import Path

import pytest

from introskip.config import ConfigStore, PluginConfig
from introskip.store import SegmentStore

FIXTURES_DIR = Path(__file__).parent / "fixtures"


@pytest.fixture
def store() -> SegmentStore:
    return SegmentStore()


@pytest.fixture
def config() -> PluginConfig:
    return PluginConfig()


@pytest.fixture
def config_store(config) -> ConfigStore:
    return ConfigStore(config)


@pytest.fixture
def sample_config_path() -> Path:
    return FIXTURES_DIR / "sample_config.json"
