"""Versioned, named containers of request -> response pairs.

A ``CacheStorage`` holds any number of generations (``CacheGeneration``). When
given a directory it persists each generation to its own JSON file so that
generations written by earlier agent versions are still visible to
``list_generations`` and can be evicted at activation time.
"""
import json
import logging
import os
import threading
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple
from urllib.parse import quote, unquote

from config.constants import CACHE_LIMITS
from .normalizer import url_normalizer
from ..models.exceptions import CacheStorageException, CacheQuotaException
from ..models.http import Request, Response

logger = logging.getLogger(__name__)

_FILE_SUFFIX = ".json"


def _request_key(request: Request) -> Tuple[str, str]:
    return request.method, url_normalizer.normalize_url(request.url)


class CacheGeneration:
    def __init__(self, name: str, storage: "CacheStorage"):
        self.name = name
        self._storage = storage
        self._entries: Dict[Tuple[str, str], List[Dict[str, Any]]] = {}
        self.deleted = False

    def match(self, request: Request) -> Optional[Response]:
        with self._storage.lock:
            for entry in self._entries.get(_request_key(request), []):
                if self._vary_matches(entry["vary"], request):
                    response = Response.from_dict(entry["response"])
                    response.url = response.url or request.url
                    return response
        return None

    def put(self, request: Request, response: Response) -> None:
        if request.method != "GET":
            raise CacheStorageException(
                f"Only GET requests can be cached, got {request.method}",
                generation=self.name,
                url=request.url,
            )
        if len(response.body) > self._storage.max_body_bytes:
            raise CacheQuotaException(
                "Response body exceeds cache quota",
                generation=self.name,
                url=request.url,
                context={"size": len(response.body), "limit": self._storage.max_body_bytes},
            )

        key = _request_key(request)
        vary = {h: request.headers.get(h) for h in response.vary if h != "*"}
        entry = {"method": key[0], "url": key[1], "vary": vary, "response": response.to_dict()}

        with self._storage.lock:
            if self.deleted:
                raise CacheStorageException("Generation has been deleted", generation=self.name, url=request.url)
            current = self._entries.get(key, [])
            existing = [e for e in current if not self._vary_matches(e["vary"], request)]
            replacing = len(existing) < len(current)
            if not replacing and len(self) >= self._storage.max_entries:
                raise CacheQuotaException(
                    "Cache generation is full",
                    generation=self.name,
                    url=request.url,
                    context={"limit": self._storage.max_entries},
                )
            existing.append(entry)
            self._entries[key] = existing
            self._storage.persist(self)

    def keys(self) -> List[str]:
        with self._storage.lock:
            return [e["url"] for entries in self._entries.values() for e in entries]

    def __len__(self) -> int:
        return sum(len(v) for v in self._entries.values())

    def _vary_matches(self, vary: Dict[str, Optional[str]], request: Request) -> bool:
        return all(request.headers.get(h) == v for h, v in vary.items())

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "entries": [e for entries in self._entries.values() for e in entries],
        }

    def load_entries(self, entries: List[Dict[str, Any]]) -> None:
        for e in entries:
            key = (e["method"], e["url"])
            self._entries.setdefault(key, []).append(
                {"method": e["method"], "url": e["url"], "vary": e.get("vary") or {}, "response": e["response"]}
            )


class CacheStorage:
    def __init__(
        self,
        root_dir: Optional[str] = None,
        max_entries: int = CACHE_LIMITS['max_entries_per_generation'],
        max_body_bytes: int = CACHE_LIMITS['max_body_bytes'],
    ):
        self.root_dir = Path(root_dir) if root_dir else None
        self.max_entries = max_entries
        self.max_body_bytes = max_body_bytes
        self.lock = threading.RLock()
        self._generations: Dict[str, CacheGeneration] = {}

        if self.root_dir is not None:
            try:
                self.root_dir.mkdir(parents=True, exist_ok=True)
            except OSError as e:
                raise CacheStorageException(f"Cannot create cache directory: {e}", context={"dir": str(self.root_dir)})

    def open(self, name: str) -> CacheGeneration:
        if not name:
            raise CacheStorageException("Generation name is required")
        with self.lock:
            gen = self._generations.get(name)
            if gen is not None:
                return gen
            gen = CacheGeneration(name, self)
            path = self._path_for(name)
            if path is not None and path.exists():
                gen.load_entries(self._read_file(path, name))
            self._generations[name] = gen
            return gen

    def has(self, name: str) -> bool:
        return name in self.list_generations()

    def match(self, request: Request, generation: Optional[str] = None) -> Optional[Response]:
        names = [generation] if generation else self.list_generations()
        for name in names:
            if not self.has(name):
                continue
            hit = self.open(name).match(request)
            if hit is not None:
                return hit
        return None

    def delete(self, name: str) -> bool:
        with self.lock:
            gen = self._generations.pop(name, None)
            if gen is not None:
                gen.deleted = True
            existed = gen is not None
            path = self._path_for(name)
            if path is not None and path.exists():
                try:
                    path.unlink()
                except OSError as e:
                    raise CacheStorageException(f"Cannot delete generation file: {e}", generation=name)
                existed = True
            return existed

    def list_generations(self) -> List[str]:
        with self.lock:
            names = list(self._generations)
            if self.root_dir is not None:
                try:
                    on_disk = sorted(p for p in self.root_dir.iterdir() if p.name.endswith(_FILE_SUFFIX))
                except OSError as e:
                    raise CacheStorageException(f"Cannot list cache directory: {e}")
                for p in on_disk:
                    name = unquote(p.name[: -len(_FILE_SUFFIX)])
                    if name not in names:
                        names.append(name)
            return names

    def persist(self, gen: CacheGeneration) -> None:
        # handles left over from a deleted generation must not recreate its file
        if self._generations.get(gen.name) is not gen:
            return
        path = self._path_for(gen.name)
        if path is None:
            return
        tmp = path.with_name(path.name + ".tmp")
        try:
            with open(tmp, "w", encoding="utf-8") as f:
                json.dump(gen.to_dict(), f)
            os.replace(tmp, path)
        except OSError as e:
            raise CacheStorageException(f"Cannot write generation file: {e}", generation=gen.name)

    def _path_for(self, name: str) -> Optional[Path]:
        if self.root_dir is None:
            return None
        return self.root_dir / (quote(name, safe="") + _FILE_SUFFIX)

    def _read_file(self, path: Path, name: str) -> List[Dict[str, Any]]:
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            raise CacheStorageException(f"Cannot read generation file: {e}", generation=name)
        entries = data.get("entries") if isinstance(data, dict) else None
        if not isinstance(entries, list):
            raise CacheStorageException("Generation file has no entry list", generation=name)
        logger.debug(f"Loaded {len(entries)} entries for generation {name}")
        return entries
