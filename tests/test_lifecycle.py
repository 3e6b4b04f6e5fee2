from __future__ import annotations

from pathlib import Path

import pytest

from src.core.cache_store import CacheStorage
from src.core.clients import ClientRegistry, WindowClient
from src.core.lifecycle import LifecycleManager, LifecycleState, evict_stale_generations
from src.models.config import AgentConfig
from src.models.exceptions import CacheStorageException, InstallationException
from src.models.http import Request, Response

from conftest import FakeFetcher


def _manager(config=None, storage=None, fetcher=None, clients=None) -> LifecycleManager:
    config = config or AgentConfig()
    return LifecycleManager(
        config,
        storage if storage is not None else CacheStorage(),
        fetcher or FakeFetcher(),
        clients or ClientRegistry(config.origin),
    )


def test_install_precaches_every_essential_resource() -> None:
    manager = _manager()

    count = manager.install()

    assert count == len(manager.config.essential_resources)
    assert manager.state is LifecycleState.INSTALLED
    assert manager.skip_waiting is True
    for path in manager.config.essential_resources:
        assert manager.cache_storage.match(Request(manager.config.absolute_url(path))) is not None


@pytest.mark.parametrize("failure", ["offline", "http_error"])
def test_install_failure_is_fatal(failure: str) -> None:
    fetcher = FakeFetcher()
    config = AgentConfig()
    icon = config.absolute_url("/icons/notification-streak.png")
    if failure == "offline":
        fetcher.failing.add(icon)
    else:
        fetcher.routes[icon] = Response(404, {}, b"")
    manager = _manager(config=config, fetcher=fetcher)

    with pytest.raises(InstallationException) as exc:
        manager.install()

    assert exc.value.context.get("resource") == "/icons/notification-streak.png"
    assert manager.state is LifecycleState.REDUNDANT
    assert manager.skip_waiting is False
    with pytest.raises(InstallationException):
        manager.activate()


def test_nothing_is_stored_when_one_resource_fails() -> None:
    fetcher = FakeFetcher()
    config = AgentConfig()
    fetcher.failing.add(config.absolute_url("/placeholder.svg"))
    manager = _manager(config=config, fetcher=fetcher)

    with pytest.raises(InstallationException):
        manager.install()

    assert manager.cache_storage.match(Request(config.absolute_url("/"))) is None


def test_activation_leaves_exactly_the_current_generation(tmp_path: Path) -> None:
    earlier = CacheStorage(str(tmp_path))
    earlier.open("plank-coach-secure-v0").put(Request("https://plankcoach.app/"), Response(200, {}, b"old"))
    earlier.open("plank-coach-v3").put(Request("https://plankcoach.app/x.js"), Response(200, {}, b"x"))

    storage = CacheStorage(str(tmp_path))
    manager = _manager(storage=storage)
    manager.install()
    report = manager.activate()

    assert storage.list_generations() == [manager.config.cache_name]
    assert sorted(report["evicted"]) == ["plank-coach-secure-v0", "plank-coach-v3"]
    assert report["failed"] == []
    assert manager.state is LifecycleState.ACTIVATED
    assert CacheStorage(str(tmp_path)).list_generations() == [manager.config.cache_name]


def test_activation_claims_open_clients() -> None:
    clients = ClientRegistry("https://plankcoach.app")
    a = clients.add(WindowClient("https://plankcoach.app/"))
    b = clients.add(WindowClient("https://plankcoach.app/?tab=stats"))
    manager = _manager(clients=clients)
    manager.install()

    report = manager.activate()

    assert report["claimed"] == 2
    assert a.controller == manager.agent_id
    assert b.controller == manager.agent_id


class StubbornStorage(CacheStorage):
    def delete(self, name):
        if name == "locked":
            raise CacheStorageException("permission denied", generation=name)
        return super().delete(name)


def test_eviction_failures_are_logged_and_ignored() -> None:
    storage = StubbornStorage()
    storage.open("locked")
    storage.open("stale")
    storage.open("current")

    evicted, failed = evict_stale_generations(storage, "current")

    assert evicted == ["stale"]
    assert failed == ["locked"]
    assert sorted(storage.list_generations()) == ["current", "locked"]
