"""
Entry point of the resolver: bootstrap document + raw formats in,
resolved formats out.
"""

import logging
from typing import Any

from pydantic import BaseModel, Field

from ..core.errors import LocatorMiss
from ..models.formats import ResolvedFormat, parse_raw_format
from ..utils.helpers import search_json, traverse_obj
from . import applier
from .applier import ScriptEvaluator
from .engine import ScriptTransformEngine
from .locator import PlayerLocation, locate_player

logger = logging.getLogger(__name__)


class PageResolution(BaseModel):
    location: PlayerLocation | None = None
    default_formats: list[ResolvedFormat] = Field(default_factory=list)
    adaptive_formats: list[ResolvedFormat] = Field(default_factory=list)


class FormatResolver:
    def __init__(self, engine: ScriptTransformEngine, evaluator: ScriptEvaluator):
        self.engine = engine
        self.evaluator = evaluator

    def locate(self, bootstrap_document: str) -> PlayerLocation:
        location = locate_player(bootstrap_document)
        if location is None:
            raise LocatorMiss("Bootstrap document does not reference a player script")
        return location

    async def resolve_with_location(
        self, location: PlayerLocation, raw_formats: list[dict[str, Any]]
    ) -> list[ResolvedFormat]:
        profile = await self.engine.resolve(location.player_path)
        resolved = [
            applier.apply(profile, parse_raw_format(raw), self.evaluator) for raw in raw_formats
        ]
        degraded = sum(1 for f in resolved if f.is_degraded)
        if degraded:
            logger.warning(
                "%d of %d formats not fully resolved with player %s",
                degraded,
                len(resolved),
                location.player_version_id,
            )
        return resolved

    async def resolve_formats(
        self, bootstrap_document: str, raw_formats: list[dict[str, Any]]
    ) -> list[ResolvedFormat]:
        """
        Resolve playable URLs for ``raw_formats`` with the player referenced by
        ``bootstrap_document``.

        Raises LocatorMiss or TransportFailure when no format can be resolved.
        Per-format problems are reported on each ResolvedFormat instead.
        """
        return await self.resolve_with_location(self.locate(bootstrap_document), raw_formats)

    async def resolve_page(self, bootstrap_document: str) -> PageResolution:
        """
        Resolve the formats embedded in the page's player response.

        A page without a player reference still yields its base formats,
        unresolved where they need the player. Adaptive formats are dropped.
        """
        location = locate_player(bootstrap_document)
        player_response = search_json(r"var\s+ytInitialPlayerResponse", bootstrap_document) or {}
        if not player_response:
            player_response = search_json(r"ytInitialPlayerResponse", bootstrap_document) or {}

        default_raw = traverse_obj(
            player_response, ("streamingData", "formats"), expected_type=list, default=[]
        )
        adaptive_raw = traverse_obj(
            player_response, ("streamingData", "adaptiveFormats"), expected_type=list, default=[]
        )
        if not default_raw and not adaptive_raw:
            logger.warning("Bootstrap document carries no streaming formats")

        if location is None:
            if not default_raw:
                raise LocatorMiss("Bootstrap document does not reference a player script")
            logger.warning("No player referenced; delivering %d base formats only", len(default_raw))
            return PageResolution(
                default_formats=[
                    applier.apply(None, parse_raw_format(raw), self.evaluator) for raw in default_raw
                ]
            )

        resolved = await self.resolve_with_location(location, [*default_raw, *adaptive_raw])
        return PageResolution(
            location=location,
            default_formats=resolved[: len(default_raw)],
            adaptive_formats=resolved[len(default_raw) :],
        )

    async def resolve_video(self, video_id: str) -> PageResolution:
        """Fetch a watch page and resolve its formats."""
        url = f"{self.engine.base_url}/watch?v={video_id}"
        logger.info("Fetching watch page %s", url)
        document = (await self.engine.transport.fetch(url)).decode("utf-8", errors="replace")
        return await self.resolve_page(document)
