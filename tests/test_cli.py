from __future__ import annotations

import io
import json
import logging
from pathlib import Path

import pytest

import plankworker
from config.constants import ENV_VARS
from src.core.cache_store import CacheStorage
from src.models.http import Request, Response


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch):
    for var in ENV_VARS:
        monkeypatch.delenv(var, raising=False)
    yield
    for name in ("plankworker", "src", "config"):
        logger = logging.getLogger(name)
        for h in list(logger.handlers):
            logger.removeHandler(h)
        logger.propagate = True


def _run(argv, capsys) -> tuple:
    with pytest.raises(SystemExit) as exc:
        plankworker.main(argv)
    return exc.value.code, capsys.readouterr().out


def test_version(capsys) -> None:
    code, out = _run(["-V"], capsys)
    assert code == 0
    assert "PlankWorker v1.0.0" in out


def test_no_operation_is_a_usage_error(capsys) -> None:
    code, _ = _run(["--quiet"], capsys)
    assert code == 1


def test_render_json(capsys) -> None:
    code, out = _run(["--quiet", "--json", "--render", '{"title":"Streak!","data":{"category":"streak"}}'], capsys)

    assert code == 0
    [record] = json.loads(out)
    assert record["title"] == "Streak!"
    assert record["category"] == "streak"
    assert record["actions"] == ["quick-workout", "full-workout"]
    assert record["vibrate"] == [150, 100, 150, 100, 150]


def test_render_reads_stdin(capsys, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr("sys.stdin", io.StringIO("garbage"))
    code, out = _run(["--quiet", "--no-header", "--render", "-"], capsys)

    assert code == 0
    fields = out.rstrip("\n").split("\t")
    assert fields[0] == "Plank Coach"
    assert fields[1] == "Time for your workout!"
    assert fields[5] == "start-workout;view-progress"


def test_classify_tsv(capsys) -> None:
    code, out = _run(["--quiet", "--classify", "https://plankcoach.supabase.co/auth/v1/user"], capsys)

    assert code == 0
    header, row = out.strip().split("\n")
    assert header == "method\turl\trule\tstrategy\tstore_response"
    assert row.split("\t")[2:] == ["authenticated-api", "network-only", "NO"]


def test_classify_pass_through(capsys) -> None:
    code, out = _run(
        ["--quiet", "--json", "--classify", "https://plankcoach.supabase.co/rest/v1/x", "--method", "POST"], capsys
    )
    assert code == 0
    assert json.loads(out)[0]["rule"] == "pass-through"


def test_route(capsys) -> None:
    code, out = _run(["--quiet", "--json", "--route", "--category", "progress"], capsys)
    assert code == 0
    assert json.loads(out) == [{"action": "click", "category": "progress", "kind": "url", "url": "/?tab=stats"}]


def test_cache_operations_need_a_directory(capsys) -> None:
    code, _ = _run(["--quiet", "--list-caches"], capsys)
    assert code == 3


def test_invalid_configuration(capsys) -> None:
    code, _ = _run(["--quiet", "--route", "--origin", "not-a-url"], capsys)
    assert code == 3


def test_list_and_evict_caches(tmp_path: Path, capsys) -> None:
    storage = CacheStorage(str(tmp_path))
    storage.open("plank-coach-secure-v1").put(Request("https://plankcoach.app/"), Response(200, {}, b"x"))
    storage.open("plank-coach-v0").put(Request("https://plankcoach.app/"), Response(200, {}, b"y"))

    code, out = _run(["--quiet", "--json", "--list-caches", "--cache-dir", str(tmp_path)], capsys)
    assert code == 0
    listed = {r["name"]: r for r in json.loads(out)}
    assert listed["plank-coach-secure-v1"]["current"] is True
    assert listed["plank-coach-v0"] == {"name": "plank-coach-v0", "entries": 1, "current": False}

    code, out = _run(["--quiet", "--json", "--evict-stale", "--cache-dir", str(tmp_path)], capsys)
    assert code == 0
    assert json.loads(out) == [{"name": "plank-coach-v0", "status": "evicted"}]
    assert CacheStorage(str(tmp_path)).list_generations() == ["plank-coach-secure-v1"]


def test_output_file(tmp_path: Path, capsys) -> None:
    target = tmp_path / "route.tsv"
    code, out = _run(["--quiet", "--route", "--action", "share", "-o", str(target)], capsys)

    assert code == 0
    assert out == ""
    assert target.read_text(encoding="utf-8").splitlines()[1].split("\t")[:3] == ["share", "", "share"]
