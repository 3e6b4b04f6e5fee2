from __future__ import annotations

import pytest

from src.models.config import AgentConfig
from src.models.exceptions import ConfigurationException


def test_defaults_are_valid() -> None:
    config = AgentConfig()
    config.validate()
    assert config.cache_name == "plank-coach-secure-v1"
    assert config.max_notification_actions == 2
    assert config.offline_url in config.essential_resources


def test_absolute_url() -> None:
    config = AgentConfig(origin="https://plankcoach.app/")
    assert config.absolute_url("/favicon.ico") == "https://plankcoach.app/favicon.ico"
    assert config.absolute_url("https://cdn.example.com/x.js") == "https://cdn.example.com/x.js"


def test_from_env_reads_variables(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("PLANKWORKER_CACHE_VERSION", "7")
    monkeypatch.setenv("PLANKWORKER_PARALLEL", "4")
    monkeypatch.setenv("PLANKWORKER_STATIC_STRATEGY", "stale-while-revalidate-on-miss")

    config = AgentConfig.from_env()

    assert config.cache_name == "plank-coach-secure-v7"
    assert config.parallel_workers == 4
    assert config.static_strategy == "stale-while-revalidate-on-miss"


def test_overrides_beat_environment() -> None:
    config = AgentConfig.from_env({"PLANKWORKER_CACHE_VERSION": "7"}, cache_version="9", cache_dir=None)
    assert config.cache_version == "9"
    assert config.cache_dir is None


def test_non_integer_env_is_a_config_error() -> None:
    with pytest.raises(ConfigurationException) as exc:
        AgentConfig.from_env({"PLANKWORKER_TIMEOUT": "soon"})
    assert exc.value.context["config_key"] == "PLANKWORKER_TIMEOUT"


@pytest.mark.parametrize(
    "overrides, fragment",
    [
        ({"origin": "plankcoach.app"}, "origin"),
        ({"backend_url": "ftp://x"}, "backend_url"),
        ({"cache_prefix": "a/b"}, "cache_prefix"),
        ({"offline_url": "/offline.html"}, "offline_url"),
        ({"parallel_workers": 0}, "parallel_workers"),
        ({"request_timeout": 999}, "request_timeout"),
        ({"max_notification_actions": 0}, "max_notification_actions"),
        ({"static_strategy": "yolo"}, "static_strategy"),
    ],
)
def test_validation_errors(overrides, fragment: str) -> None:
    with pytest.raises(ConfigurationException) as exc:
        AgentConfig(**overrides).validate()
    assert any(fragment in e for e in exc.value.context["errors"])
