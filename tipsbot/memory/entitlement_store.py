"""
Entitlement store: subscriber identity -> EntitlementRecord.
Single source of truth for subscription state.

Backends:
- JsonFileEntitlementStore (default): one human-readable JSON object,
  rewritten in full on every put.
- RedisEntitlementStore (if REDIS_URL is set): one key per subscriber.
- InMemoryEntitlementStore: dev / tests only, nothing survives a restart.

Read-modify-write sequences must run inside `store.lock(identity)`; the
lock is per key, so subscribers never wait on each other.
"""
import json
import logging
import os
import tempfile
import threading
from contextlib import contextmanager
from typing import Dict, Iterator, Optional

from pydantic import ValidationError

from ..models import EntitlementRecord
from ..settings import settings
from ..utils.errors import StoreUnavailable

logger = logging.getLogger(__name__)


class EntitlementStore:
    """Base class: lifecycle, per-key locking and the get/put contract."""

    def __init__(self):
        # identity -> [lock, holders + waiters]; dropped when nobody needs it
        self._locks: Dict[str, list] = {}
        self._locks_guard = threading.Lock()
        self._opened = False

    # ----------------- lifecycle -----------------

    def open(self) -> "EntitlementStore":
        self._open()
        self._opened = True
        return self

    def close(self) -> None:
        if self._opened:
            self._close()
        self._opened = False

    def _open(self) -> None:
        pass

    def _close(self) -> None:
        pass

    def __enter__(self) -> "EntitlementStore":
        return self.open()

    def __exit__(self, *exc) -> None:
        self.close()

    # ----------------- per-key locking -----------------

    @contextmanager
    def lock(self, identity: str) -> Iterator[None]:
        """Serialize read-modify-write for one identity (re-entrant)."""
        with self._locks_guard:
            entry = self._locks.get(identity)
            if entry is None:
                entry = self._locks[identity] = [threading.RLock(), 0]
            entry[1] += 1
        try:
            with entry[0]:
                yield
        finally:
            with self._locks_guard:
                entry[1] -= 1
                if entry[1] == 0:
                    del self._locks[identity]

    # ----------------- API public -----------------

    def get(self, identity: str) -> EntitlementRecord:
        """
        Record for `identity`, or a default Free/unaccepted record.
        The default is not persisted until the first put.
        """
        raw = self._load(identity)
        if raw is None:
            return EntitlementRecord()
        try:
            return EntitlementRecord.from_store(raw)
        except ValidationError as e:
            raise StoreUnavailable(f"Corrupt record for {identity}: {e}") from e

    def put(self, identity: str, record: EntitlementRecord) -> None:
        """Upsert; durable when this returns."""
        self._save(identity, record.to_store())

    def _load(self, identity: str) -> Optional[dict]:
        raise NotImplementedError

    def _save(self, identity: str, data: dict) -> None:
        raise NotImplementedError


class InMemoryEntitlementStore(EntitlementStore):
    """Dict-backed store. Not durable."""

    def __init__(self):
        super().__init__()
        self.store: Dict[str, dict] = {}

    def _load(self, identity: str) -> Optional[dict]:
        data = self.store.get(identity)
        return dict(data) if data is not None else None

    def _save(self, identity: str, data: dict) -> None:
        self.store[identity] = dict(data)


class JsonFileEntitlementStore(EntitlementStore):
    """
    All records in one JSON file. Each put writes a full snapshot to a temp
    file and renames it over the old one, so readers of the file never see
    two records half-written.
    """

    def __init__(self, path: str):
        super().__init__()
        self.path = path
        self._data: Dict[str, dict] = {}
        self._io_lock = threading.Lock()

    def _open(self) -> None:
        with self._io_lock:
            self._data = self._read_file()
        logger.info("Loaded %d subscriber records from %s", len(self._data), self.path)

    def _read_file(self) -> Dict[str, dict]:
        if not os.path.exists(self.path):
            return {}
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            raise StoreUnavailable(f"Cannot read {self.path}: {e}") from e
        if not isinstance(data, dict):
            raise StoreUnavailable(f"{self.path} does not hold a JSON object")
        return data

    def _write_file(self, data: Dict[str, dict]) -> None:
        directory = os.path.dirname(os.path.abspath(self.path))
        try:
            fd, tmp_path = tempfile.mkstemp(prefix=".users-", suffix=".json", dir=directory)
        except OSError as e:
            raise StoreUnavailable(f"Cannot write {self.path}: {e}") from e
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2, ensure_ascii=False)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_path, self.path)
        except OSError as e:
            try:
                os.unlink(tmp_path)
            except OSError:
                pass
            raise StoreUnavailable(f"Cannot write {self.path}: {e}") from e

    def _load(self, identity: str) -> Optional[dict]:
        if not self._opened:
            raise StoreUnavailable("Store is not open")
        with self._io_lock:
            data = self._data.get(identity)
            return dict(data) if data is not None else None

    def _save(self, identity: str, data: dict) -> None:
        if not self._opened:
            raise StoreUnavailable("Store is not open")
        with self._io_lock:
            snapshot = dict(self._data)
            snapshot[identity] = data
            self._write_file(snapshot)
            # memory only advances once the disk did
            self._data = snapshot


class RedisEntitlementStore(EntitlementStore):
    """Redis-backed storage, one JSON string per subscriber."""

    KEY_PREFIX = "tipsbot:subscriber:"

    def __init__(self, redis_client):
        super().__init__()
        self.redis = redis_client

    def _key(self, identity: str) -> str:
        return f"{self.KEY_PREFIX}{identity}"

    def _open(self) -> None:
        import redis

        try:
            self.redis.ping()
        except redis.RedisError as e:
            raise StoreUnavailable(f"Redis not reachable: {e}") from e

    def _close(self) -> None:
        self.redis.close()

    def _load(self, identity: str) -> Optional[dict]:
        import redis

        try:
            data = self.redis.get(self._key(identity))
        except redis.RedisError as e:
            raise StoreUnavailable(f"Redis read failed: {e}") from e
        if not data:
            return None
        try:
            return json.loads(data)
        except ValueError as e:
            raise StoreUnavailable(f"Corrupt record for {identity}: {e}") from e

    def _save(self, identity: str, data: dict) -> None:
        import redis

        try:
            self.redis.set(self._key(identity), json.dumps(data, ensure_ascii=False))
        except redis.RedisError as e:
            raise StoreUnavailable(f"Redis write failed: {e}") from e


# === Global Store Instance ===
_store: Optional[EntitlementStore] = None


def build_store() -> EntitlementStore:
    """Create and open the backend selected by settings."""
    backend = settings.STORE_BACKEND

    if backend == "redis":
        import redis

        client = redis.from_url(settings.REDIS_URL, decode_responses=True)
        store = RedisEntitlementStore(client).open()
        logger.info("Using Redis entitlement store: %s", settings.REDIS_URL)
        return store

    if backend == "memory":
        logger.warning("Using in-memory entitlement store, records are lost on restart")
        return InMemoryEntitlementStore().open()

    store = JsonFileEntitlementStore(settings.USERS_FILE).open()
    logger.info("Using JSON entitlement store: %s", settings.USERS_FILE)
    return store


def get_store() -> EntitlementStore:
    """Get or initialize the global store instance."""
    global _store
    if _store is None:
        _store = build_store()
    return _store


def close_store() -> None:
    global _store
    if _store is not None:
        _store.close()
    _store = None
