import pytest

from roomflow.config import SchedulingPolicy, get_settings


@pytest.fixture
def fresh_settings():
    get_settings.cache_clear()
    yield get_settings
    get_settings.cache_clear()


def test_defaults(monkeypatch, fresh_settings):
    for name in (
        "ROOMFLOW_PENDING_RESERVES",
        "ROOMFLOW_AUTO_PUBLISH_ON_APPROVE",
        "ROOMFLOW_MAX_OCCURRENCES",
        "ROOMFLOW_CONFLICT_HORIZON_DAYS",
        "ROOMFLOW_LOG_LEVEL",
        "CORS_ALLOW_ORIGINS",
    ):
        monkeypatch.delenv(name, raising=False)

    settings = fresh_settings()

    assert settings.policy == SchedulingPolicy()
    assert settings.policy.pending_reserves is False
    assert settings.policy.auto_publish_on_approve is False
    assert settings.policy.max_occurrences == 10_000
    assert settings.log_level == "INFO"
    assert settings.cors_allow_origins == ["http://localhost:3000"]


def test_environment_overrides(monkeypatch, fresh_settings):
    monkeypatch.setenv("ROOMFLOW_PENDING_RESERVES", "true")
    monkeypatch.setenv("ROOMFLOW_AUTO_PUBLISH_ON_APPROVE", "1")
    monkeypatch.setenv("ROOMFLOW_MAX_OCCURRENCES", "500")
    monkeypatch.setenv("ROOMFLOW_CONFLICT_HORIZON_DAYS", "90")
    monkeypatch.setenv("ROOMFLOW_LOG_LEVEL", "debug")
    monkeypatch.setenv("CORS_ALLOW_ORIGINS", "https://a.example, https://b.example,")

    settings = fresh_settings()

    assert settings.policy == SchedulingPolicy(
        pending_reserves=True,
        auto_publish_on_approve=True,
        max_occurrences=500,
        conflict_horizon_days=90,
    )
    assert settings.log_level == "DEBUG"
    assert settings.cors_allow_origins == ["https://a.example", "https://b.example"]


def test_unrecognised_flag_values_are_false(monkeypatch, fresh_settings):
    monkeypatch.setenv("ROOMFLOW_PENDING_RESERVES", "maybe")
    assert fresh_settings().policy.pending_reserves is False
