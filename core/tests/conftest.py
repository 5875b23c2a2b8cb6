"""Fixtures for engine and CLI tests."""

import pytest

from hippo.config import HippoConfig
from hippo.engine import HippoEngine
from hippo.tracing import PluginManager

ENV_VARS = [
    "HIPPO_STORAGE_PATH",
    "HIPPO_RETENTION_POLICY",
    "HIPPO_SWEEP_EVERY",
    "HIPPO_CONTEXT_MAX_TRACES",
    "HIPPO_REGRESSION_MIN_SCORE",
    "HIPPO_ADAPTER_QUEUE_SIZE",
    "HIPPO_ADAPTER_TIMEOUT",
    "HIPPO_LOG_LEVEL",
    "MEM0_API_KEY",
    "ZEP_API_KEY",
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch, tmp_path):
    """Isolate tests from the caller's environment and any local .env file."""
    for name in ENV_VARS:
        monkeypatch.setenv(name, "")
        monkeypatch.delenv(name)
    monkeypatch.chdir(tmp_path)


@pytest.fixture
def engine():
    with HippoEngine(plugins=PluginManager()) as engine:
        yield engine


@pytest.fixture
def storage_dir(tmp_path):
    path = tmp_path / "store"
    path.mkdir()
    return path


@pytest.fixture
def file_engine(storage_dir):
    with HippoEngine(HippoConfig(storage_path=storage_dir), plugins=PluginManager()) as engine:
        yield engine
