# store.py
import json
import logging
import os
from datetime import datetime, timezone
from typing import Any, Callable, Optional

import httpx

from errors import StoreUnavailable
from retry_policy import is_store_error, with_retry
from schema import CacheRecord

logger = logging.getLogger(__name__)

# =============================================================================
# Keys
# =============================================================================

FIXTURES = "fixtures"
LIVE_MATCHES = "live_matches"
CONTESTS = "contests"
SCOREBOARDS = "scoreboards"
PLAYER_DATA = "player_data"


def fixtures_key(status: str) -> str:
    return f"{FIXTURES}/{status}"

def live_match_key(match_id: str) -> str:
    return f"{LIVE_MATCHES}/{match_id}"

def contests_key(match_id: str) -> str:
    return f"{CONTESTS}/{match_id}"

def scoreboard_key(match_id: str) -> str:
    return f"{SCOREBOARDS}/{match_id}"

def roster_key(match_id: str, contest_id: str) -> str:
    return f"{PLAYER_DATA}/{match_id}/{contest_id}"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)

# =============================================================================
# Store
# =============================================================================

class Store:
    """
    Timestamped key -> value mapping. Knows nothing about TTLs: readers decide
    freshness from CacheRecord.timestamp.
    """

    def __init__(self, attempts: int = 3, delay: float = 2.0,
                 clock: Callable[[], datetime] = utc_now, sleep=None):
        self.attempts = attempts
        self.delay = delay
        self.clock = clock
        self._sleep = sleep

    async def _read(self, key: str) -> Optional[dict]:
        raise NotImplementedError

    async def _write(self, key: str, doc: dict):
        raise NotImplementedError

    async def aclose(self):
        pass

    def _retry_kwargs(self, label: str) -> dict:
        kwargs = dict(max_attempts=self.attempts, base_delay=self.delay,
                      retriable=is_store_error, label=label)
        if self._sleep is not None:
            kwargs["sleep"] = self._sleep
        return kwargs

    async def get(self, key: str) -> Optional[CacheRecord]:
        doc = await with_retry(lambda: self._read(key), **self._retry_kwargs(f"store get {key}"))
        if not doc or "timestamp" not in doc:
            return None
        return CacheRecord(value=doc.get("value"), timestamp=doc["timestamp"])

    async def put(self, key: str, value: Any) -> CacheRecord:
        record = CacheRecord(value=value, timestamp=self.clock().isoformat())
        await with_retry(lambda: self._write(key, record.model_dump(mode="json")),
                         **self._retry_kwargs(f"store put {key}"))
        logger.info("Store set: %s", key)
        return record


class FirebaseStore(Store):
    """Firebase Realtime Database over its REST API."""

    def __init__(self, database_url: str, auth_token: str = "", timeout: float = 12,
                 client: Optional[httpx.AsyncClient] = None, **kwargs):
        super().__init__(**kwargs)
        self.database_url = database_url.rstrip("/")
        self.auth_token = auth_token
        self._client = client or httpx.AsyncClient(timeout=timeout, follow_redirects=True)

    def _url(self, key: str) -> str:
        return f"{self.database_url}/{key.strip('/')}.json"

    def _params(self) -> dict:
        return {"auth": self.auth_token} if self.auth_token else {}

    async def _read(self, key: str) -> Optional[dict]:
        try:
            r = await self._client.get(self._url(key), params=self._params())
            r.raise_for_status()
            return r.json()
        except (httpx.HTTPError, ValueError) as e:
            raise StoreUnavailable(f"GET {key}: {e}") from e

    async def _write(self, key: str, doc: dict):
        try:
            r = await self._client.put(self._url(key), params=self._params(), json=doc)
            r.raise_for_status()
        except httpx.HTTPError as e:
            raise StoreUnavailable(f"PUT {key}: {e}") from e

    async def aclose(self):
        await self._client.aclose()


def atomic_write(path: str, tmp_path: str, data: dict):
    os.makedirs(os.path.dirname(path), exist_ok=True)
    with open(tmp_path, "w", encoding="utf-8") as f:
        json.dump(data, f, ensure_ascii=False, separators=(",", ":"))
    os.replace(tmp_path, path)


class FileStore(Store):
    """One JSON document per key under `root`; `a/b/c` lives at `root/a/b/c.json`."""

    def __init__(self, root: str, **kwargs):
        super().__init__(**kwargs)
        self.root = root

    def _path(self, key: str) -> str:
        parts = [p for p in key.split("/") if p and p not in (".", "..")]
        return os.path.join(self.root, *parts) + ".json"

    async def _read(self, key: str) -> Optional[dict]:
        path = self._path(key)
        if not os.path.exists(path):
            return None
        try:
            with open(path, "r", encoding="utf-8") as f:
                return json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise StoreUnavailable(f"read {path}: {e}") from e

    async def _write(self, key: str, doc: dict):
        path = self._path(key)
        try:
            atomic_write(path, path + ".tmp", doc)
        except OSError as e:
            raise StoreUnavailable(f"write {path}: {e}") from e


def build_store(cfg: dict) -> Store:
    sc = cfg["store"]
    kwargs = dict(attempts=cfg["retry"]["store_attempts"], delay=cfg["retry"]["store_delay"])
    if sc["backend"] == "firebase":
        if not sc["database_url"]:
            raise ValueError("store.database_url is required for the firebase backend")
        return FirebaseStore(sc["database_url"], sc.get("auth_token", ""), sc.get("timeout", 12), **kwargs)
    if sc["backend"] == "file":
        return FileStore(sc["root"], **kwargs)
    raise ValueError(f"unknown store backend: {sc['backend']!r}")
