"""
Version-keyed storage of analyzed player profiles.

Each player version is stored as two values:

- ``player-<id>.nfunc.js``  n-parameter function source (absent if none)
- ``player-<id>.ops.json``  JSON list of cipher operations

The n-function is written first and the operation list last, so the
operation list marks a complete profile. Entries never expire; they are
removed only by an explicit purge.
"""

import logging
import os
import tempfile
from abc import ABC, abstractmethod
from pathlib import Path

from pydantic import ValidationError

from ..models.cipher import CachedPlayerProfile, dump_operations, load_operations

logger = logging.getLogger(__name__)

_PREFIX = "player-"
_OPS_SUFFIX = ".ops.json"
_NFUNC_SUFFIX = ".nfunc.js"


class KeyValueStore(ABC):
    """Minimal byte store the artifact cache is built on."""

    @abstractmethod
    def get(self, key: str) -> bytes | None:
        """Return the value, or None when the key is absent."""

    @abstractmethod
    def put(self, key: str, value: bytes) -> None:
        """Store the value; a reader sees either the old or the new value."""

    @abstractmethod
    def delete(self, key: str) -> bool:
        """Remove the key. Returns whether it existed."""

    @abstractmethod
    def keys(self) -> list[str]:
        """All stored keys."""


class FileKeyValueStore(KeyValueStore):
    """One file per key inside ``directory``. Survives restarts."""

    def __init__(self, directory: str | Path):
        self.directory = Path(directory)
        self.directory.mkdir(parents=True, exist_ok=True)

    def _path(self, key: str) -> Path:
        if not key or "/" in key or "\\" in key or key.startswith("."):
            raise ValueError(f"Invalid store key: {key!r}")
        return self.directory / key

    def get(self, key: str) -> bytes | None:
        try:
            return self._path(key).read_bytes()
        except FileNotFoundError:
            return None

    def put(self, key: str, value: bytes) -> None:
        path = self._path(key)
        fd, tmp_name = tempfile.mkstemp(dir=self.directory, prefix=".tmp-")
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(value)
            os.replace(tmp_name, path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

    def delete(self, key: str) -> bool:
        try:
            self._path(key).unlink()
            return True
        except FileNotFoundError:
            return False

    def keys(self) -> list[str]:
        return sorted(
            p.name for p in self.directory.iterdir() if p.is_file() and not p.name.startswith(".")
        )


class MemoryKeyValueStore(KeyValueStore):
    """Process-local store for tests and ephemeral deployments."""

    def __init__(self):
        self._data: dict[str, bytes] = {}

    def get(self, key: str) -> bytes | None:
        return self._data.get(key)

    def put(self, key: str, value: bytes) -> None:
        self._data[key] = bytes(value)

    def delete(self, key: str) -> bool:
        return self._data.pop(key, None) is not None

    def keys(self) -> list[str]:
        return sorted(self._data)


def _ops_key(player_version_id: str) -> str:
    return f"{_PREFIX}{player_version_id}{_OPS_SUFFIX}"


def _nfunc_key(player_version_id: str) -> str:
    return f"{_PREFIX}{player_version_id}{_NFUNC_SUFFIX}"


class ArtifactCache:
    """Stores one ``CachedPlayerProfile`` per player version."""

    def __init__(self, store: KeyValueStore):
        self.store = store

    def exists(self, player_version_id: str) -> bool:
        return self.store.get(_ops_key(player_version_id)) is not None

    def get(self, player_version_id: str) -> CachedPlayerProfile | None:
        ops_data = self.store.get(_ops_key(player_version_id))
        if ops_data is None:
            return None

        try:
            operations = load_operations(ops_data)
        except ValidationError as e:
            logger.warning("Discarding corrupt cache entry for %s: %s", player_version_id, e)
            return None

        nfunc_data = self.store.get(_nfunc_key(player_version_id))
        n_function = nfunc_data.decode("utf-8") if nfunc_data else None

        logger.debug("Cache hit for player %s", player_version_id)
        return CachedPlayerProfile(
            player_version_id=player_version_id,
            operations=tuple(operations),
            n_function_source=n_function,
        )

    def put(self, player_version_id: str, profile: CachedPlayerProfile) -> None:
        if profile.n_function_source:
            self.store.put(_nfunc_key(player_version_id), profile.n_function_source.encode("utf-8"))
        else:
            self.store.delete(_nfunc_key(player_version_id))
        self.store.put(_ops_key(player_version_id), dump_operations(profile.operations))
        logger.info(
            "Cached player %s (%d cipher operations, n-function %s)",
            player_version_id,
            len(profile.operations),
            "present" if profile.has_n_function else "absent",
        )

    def versions(self) -> list[str]:
        return sorted(
            key[len(_PREFIX) : -len(_OPS_SUFFIX)]
            for key in self.store.keys()
            if key.startswith(_PREFIX) and key.endswith(_OPS_SUFFIX)
        )

    def purge(self, player_version_id: str | None = None) -> int:
        """
        Remove one player version, or every cached version when None.

        Returns the number of profiles removed.
        """
        targets = [player_version_id] if player_version_id else self.versions()
        removed = 0
        for version in targets:
            if self.store.delete(_ops_key(version)):
                removed += 1
            self.store.delete(_nfunc_key(version))

        if player_version_id is None:
            # Orphaned n-functions from interrupted writes.
            for key in self.store.keys():
                if key.startswith(_PREFIX) and key.endswith(_NFUNC_SUFFIX):
                    self.store.delete(key)

        logger.info("Purged %d cached player profile(s)", removed)
        return removed
