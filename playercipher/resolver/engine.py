import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Protocol

from ..config import get_settings
from ..core.errors import ResolutionUnavailable
from ..models.cipher import CachedPlayerProfile
from .analyzer import analyze
from .cache import ArtifactCache
from .locator import player_version_id

logger = logging.getLogger(__name__)


class Transport(Protocol):
    async def fetch(self, url: str) -> bytes:
        """Return the body at ``url`` or raise TransportFailure."""
        ...


class ScriptTransformEngine:
    """
    Turns a player path into a ``CachedPlayerProfile``.

    The player script is downloaded and analyzed once per version. Later
    calls for the same version are served from the cache without network
    access.
    """

    def __init__(
        self,
        cache: ArtifactCache,
        transport: Transport,
        base_url: str | None = None,
    ):
        self.cache = cache
        self.transport = transport
        self.base_url = (base_url or get_settings().player_base_url).rstrip("/")
        # version -> (lock, number of tasks holding or awaiting it)
        self._locks: dict[str, tuple[asyncio.Lock, int]] = {}

    @asynccontextmanager
    async def _version_lock(self, version: str):
        """Serialize work on one version; the entry goes away with its last user."""
        lock, users = self._locks.get(version) or (asyncio.Lock(), 0)
        self._locks[version] = (lock, users + 1)
        try:
            async with lock:
                yield
        finally:
            lock, users = self._locks[version]
            if users == 1:
                del self._locks[version]
            else:
                self._locks[version] = (lock, users - 1)

    def player_url(self, player_path: str) -> str:
        if player_path.startswith(("http://", "https://")):
            return player_path
        return f"{self.base_url}/{player_path.lstrip('/')}"

    async def resolve(self, player_path: str) -> CachedPlayerProfile:
        version = player_version_id(player_path)
        if not version:
            raise ResolutionUnavailable(f"No player version in path {player_path!r}")

        profile = self.cache.get(version)
        if profile is not None:
            return profile

        async with self._version_lock(version):
            # Another task may have filled the cache while we waited.
            profile = self.cache.get(version)
            if profile is not None:
                return profile

            url = self.player_url(player_path)
            logger.info("Downloading player %s from %s", version, url)
            script = (await self.transport.fetch(url)).decode("utf-8", errors="replace")

            result = analyze(script)
            logger.info(
                "Analyzed player %s: %d cipher operations, n-function %s",
                version,
                len(result.operations),
                "found" if result.n_function_found else "missing",
            )

            profile = result.to_profile(version)
            self.cache.put(version, profile)
            return profile
