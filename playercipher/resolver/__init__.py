"""Player cipher resolution: locate, analyze, cache and apply."""

from ..config import get_cache_dir, get_settings
from ..core.http_client import HTTPClient
from ..core.js_interpreter import SandboxedEvaluator
from .analyzer import AnalysisResult, analyze, extract_cipher_operations, extract_n_function
from .applier import ScriptEvaluator, apply, replay_operations
from .cache import ArtifactCache, FileKeyValueStore, KeyValueStore, MemoryKeyValueStore
from .engine import ScriptTransformEngine, Transport
from .locator import PlayerLocation, locate_player, player_version_id
from .service import FormatResolver, PageResolution

_resolver: FormatResolver | None = None


def create_cache(backend: str | None = None) -> ArtifactCache:
    backend = backend or get_settings().cache_backend
    if backend == "memory":
        return ArtifactCache(MemoryKeyValueStore())
    if backend == "file":
        return ArtifactCache(FileKeyValueStore(get_cache_dir()))
    raise ValueError(f"Unknown cache backend: {backend!r}")


def get_resolver() -> FormatResolver:
    """Process-wide resolver built from settings."""
    global _resolver
    if _resolver is None:
        engine = ScriptTransformEngine(create_cache(), HTTPClient())
        settings = get_settings()
        evaluator = SandboxedEvaluator(settings.evaluator_max_steps, settings.evaluator_max_length)
        _resolver = FormatResolver(engine, evaluator)
    return _resolver


async def close_resolver():
    global _resolver
    if _resolver is not None:
        transport = _resolver.engine.transport
        if isinstance(transport, HTTPClient):
            await transport.close()
        _resolver = None


__all__ = [
    "AnalysisResult",
    "ArtifactCache",
    "FileKeyValueStore",
    "FormatResolver",
    "KeyValueStore",
    "MemoryKeyValueStore",
    "PageResolution",
    "PlayerLocation",
    "ScriptEvaluator",
    "ScriptTransformEngine",
    "Transport",
    "analyze",
    "apply",
    "close_resolver",
    "create_cache",
    "extract_cipher_operations",
    "extract_n_function",
    "get_resolver",
    "locate_player",
    "player_version_id",
    "replay_operations",
]
