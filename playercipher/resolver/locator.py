"""
Find the player script referenced by a watch page.
"""

import logging
import re
from typing import NamedTuple
from urllib.parse import urlparse

logger = logging.getLogger(__name__)

# The player is preloaded right after the generate_204 beacon.
_PRELOAD_MARKER = (
    '<link rel="preload" href="https://i.ytimg.com/generate_204" as="fetch">'
    '<link as="script" rel="preload" href="'
)
_PRELOAD_TERMINATOR = '" nonce="'

_CONFIG_PATTERN = re.compile(r'"(?:PLAYER_JS_URL|jsUrl)"\s*:\s*"([^"]+)"')
_BARE_PATH_PATTERN = re.compile(r"/s/player/[\w-]+/player_ias\.vflset/[^\"'\s]+/base\.js")


class PlayerLocation(NamedTuple):
    player_path: str
    player_version_id: str


def player_version_id(player_path: str) -> str | None:
    """
    Return the path component following ``/s/player/``.

    e.g. ``/s/player/abc123/player_ias.vflset/en_US/base.js`` -> ``abc123``
    """
    _, sep, rest = player_path.partition("/s/player/")
    if not sep:
        return None
    version = rest.split("/", 1)[0].strip()
    return version or None


def _normalize_path(raw: str) -> str:
    path = raw.replace("\\/", "/").strip()
    if path.startswith(("http://", "https://", "//")):
        parsed = urlparse(path)
        path = parsed.path + (f"?{parsed.query}" if parsed.query else "")
    return path


def _from_preload_link(document: str) -> str | None:
    start = document.find(_PRELOAD_MARKER)
    if start < 0:
        return None
    start += len(_PRELOAD_MARKER)
    end = document.find(_PRELOAD_TERMINATOR, start)
    if end < 0:
        return None
    return document[start:end]


def _from_player_config(document: str) -> str | None:
    match = _CONFIG_PATTERN.search(document)
    return match.group(1) if match else None


def _from_bare_path(document: str) -> str | None:
    match = _BARE_PATH_PATTERN.search(document)
    return match.group(0) if match else None


_HEURISTICS = (_from_preload_link, _from_player_config, _from_bare_path)


def locate_player(document: str) -> PlayerLocation | None:
    """
    Find the player script path and its version id in a watch page.

    Returns None when no heuristic matches or the path carries no version id.
    """
    for heuristic in _HEURISTICS:
        raw = heuristic(document)
        if not raw:
            continue

        path = _normalize_path(raw)
        version = player_version_id(path)
        if version is None:
            logger.debug("%s found %r without a player version", heuristic.__name__, path)
            continue

        logger.debug("Located player %s via %s", version, heuristic.__name__)
        return PlayerLocation(player_path=path, player_version_id=version)

    logger.warning("No player script reference found in bootstrap document")
    return None
