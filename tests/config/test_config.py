from __future__ import annotations

from datetime import timedelta

import pytest

from recordsync.config import (
    ConfigurationError,
    MissingConfigurationError,
    float_env_var,
    get_profile_service_config,
    get_sync_config,
    optional_env_var,
    require_env_vars,
)

SYNC_VARS = (
    "REQUEST_CACHE_TTL_MINUTES",
    "RECORDSYNC_SCHEMA",
    "REDIS_URL",
    "RECORDSYNC_EVENT_QUEUE",
)


@pytest.fixture
def clean_sync_env(monkeypatch: pytest.MonkeyPatch) -> pytest.MonkeyPatch:
    for name in SYNC_VARS:
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


def test_require_env_vars_returns_values(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("EXAMPLE_VAR", "value")

    result = require_env_vars(["EXAMPLE_VAR"])

    assert result["EXAMPLE_VAR"] == "value"


def test_require_env_vars_lists_every_missing_name(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("MISSING_VAR", raising=False)
    monkeypatch.setenv("BLANK_VAR", "   ")

    with pytest.raises(MissingConfigurationError) as exc:
        require_env_vars(["MISSING_VAR", "BLANK_VAR"])

    assert "BLANK_VAR, MISSING_VAR" in str(exc.value)


def test_optional_env_var_treats_blank_as_unset(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("BLANK_VAR", "  ")
    monkeypatch.setenv("PADDED_VAR", " value ")

    assert optional_env_var("BLANK_VAR") is None
    assert optional_env_var("PADDED_VAR") == "value"


def test_float_env_var_rejects_garbage(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("TIMEOUT", "soon")

    with pytest.raises(ConfigurationError, match="TIMEOUT"):
        float_env_var("TIMEOUT", 1.0)


def test_sync_config_defaults(clean_sync_env: pytest.MonkeyPatch) -> None:
    config = get_sync_config()

    assert config.schema == "tcs"
    assert config.request_ttl == timedelta(minutes=60)
    assert config.redis_url is None
    assert config.event_queue == "record-events"
    assert config.family_queues["Placement"] == "placement"


def test_sync_config_reads_environment(clean_sync_env: pytest.MonkeyPatch) -> None:
    clean_sync_env.setenv("REQUEST_CACHE_TTL_MINUTES", "5")
    clean_sync_env.setenv("RECORDSYNC_SCHEMA", "reference")
    clean_sync_env.setenv("REDIS_URL", "redis://localhost:6379/0")

    config = get_sync_config()

    assert config.request_ttl == timedelta(minutes=5)
    assert config.schema == "reference"
    assert config.redis_url == "redis://localhost:6379/0"


@pytest.mark.parametrize("value", ["0", "-1"])
def test_sync_config_requires_positive_ttl(
    clean_sync_env: pytest.MonkeyPatch, value: str
) -> None:
    clean_sync_env.setenv("REQUEST_CACHE_TTL_MINUTES", value)

    with pytest.raises(ConfigurationError):
        get_sync_config()


def test_profile_config_requires_url(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("PROFILE_SERVICE_URL", raising=False)

    with pytest.raises(MissingConfigurationError):
        get_profile_service_config()


def test_profile_config_builds_resilience(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("PROFILE_SERVICE_URL", "https://profile.example.test/")
    monkeypatch.setenv("PROFILE_SERVICE_TIMEOUT_SECONDS", "2.5")

    config = get_profile_service_config()

    assert config.base_url == "https://profile.example.test"
    assert config.resilience.base_url == "https://profile.example.test"
    assert config.resilience.timeout_seconds == 2.5
    assert config.resilience.name == "profile"
