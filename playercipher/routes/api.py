"""
API route definitions for the player cipher resolver.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException

from ..core.errors import LocatorMiss, ResolutionError, TransportFailure
from ..models.api import (
    ErrorResponse,
    PageFormatsResponse,
    PlayerListResponse,
    PlayerProfileResponse,
    PurgeResponse,
    ResolvePageRequest,
    ResolveRequest,
    ResolveResponse,
)
from ..resolver import FormatResolver, PageResolution, get_resolver

logger = logging.getLogger(__name__)

router = APIRouter()

_ERROR_RESPONSES = {
    422: {"model": ErrorResponse, "description": "No player script referenced"},
    502: {"model": ErrorResponse, "description": "Player script could not be downloaded"},
}


def _error(status_code: int, exc: ResolutionError) -> HTTPException:
    return HTTPException(
        status_code=status_code,
        detail={"success": False, "error": str(exc), "error_code": exc.error_code},
    )


def _raise_for(exc: ResolutionError):
    if isinstance(exc, LocatorMiss):
        raise _error(422, exc) from exc
    if isinstance(exc, TransportFailure):
        logger.warning("Transport failure for %s: %s", exc.url, exc)
        raise _error(502, exc) from exc
    logger.error("Resolution failed: %s", exc)
    raise _error(500, exc) from exc


def _page_response(page: PageResolution) -> PageFormatsResponse:
    location = page.location
    return PageFormatsResponse(
        player_version_id=location.player_version_id if location else None,
        player_path=location.player_path if location else None,
        default_formats=page.default_formats,
        adaptive_formats=page.adaptive_formats,
    )


@router.post(
    "/resolve",
    response_model=ResolveResponse,
    responses=_ERROR_RESPONSES,
    summary="Resolve URLs for raw formats",
    description=(
        "Locates the player referenced by the bootstrap document and resolves "
        "the given raw formats into fetchable URLs."
    ),
)
async def resolve_formats(
    request: ResolveRequest, resolver: FormatResolver = Depends(get_resolver)
):
    try:
        location = resolver.locate(request.bootstrap_document)
        formats = await resolver.resolve_with_location(location, request.formats)
    except ResolutionError as e:
        _raise_for(e)

    return ResolveResponse(
        player_version_id=location.player_version_id,
        player_path=location.player_path,
        formats=formats,
    )


@router.post(
    "/resolve/page",
    response_model=PageFormatsResponse,
    responses=_ERROR_RESPONSES,
    summary="Resolve the formats embedded in a watch page",
)
async def resolve_page(
    request: ResolvePageRequest, resolver: FormatResolver = Depends(get_resolver)
):
    try:
        page = await resolver.resolve_page(request.bootstrap_document)
    except ResolutionError as e:
        _raise_for(e)
    return _page_response(page)


@router.get(
    "/videos/{video_id}/formats",
    response_model=PageFormatsResponse,
    responses=_ERROR_RESPONSES,
    summary="Fetch a watch page and resolve its formats",
)
async def video_formats(video_id: str, resolver: FormatResolver = Depends(get_resolver)):
    try:
        page = await resolver.resolve_video(video_id)
    except ResolutionError as e:
        _raise_for(e)
    return _page_response(page)


@router.get("/players", response_model=PlayerListResponse, summary="List cached players")
async def list_players(resolver: FormatResolver = Depends(get_resolver)):
    return PlayerListResponse(players=resolver.engine.cache.versions())


@router.get(
    "/players/{player_version_id}",
    response_model=PlayerProfileResponse,
    responses={404: {"model": ErrorResponse, "description": "Player not cached"}},
    summary="Show one cached player profile",
)
async def get_player(player_version_id: str, resolver: FormatResolver = Depends(get_resolver)):
    profile = resolver.engine.cache.get(player_version_id)
    if profile is None:
        raise HTTPException(
            status_code=404,
            detail={
                "success": False,
                "error": f"Player {player_version_id} is not cached",
                "error_code": "player.not_cached",
            },
        )
    return PlayerProfileResponse(
        profile=profile,
        cipher_operation_count=len(profile.operations),
        has_n_function=profile.has_n_function,
    )


@router.delete("/players", response_model=PurgeResponse, summary="Remove every cached player")
async def purge_players(resolver: FormatResolver = Depends(get_resolver)):
    return PurgeResponse(removed=resolver.engine.cache.purge())


@router.delete(
    "/players/{player_version_id}",
    response_model=PurgeResponse,
    summary="Remove one cached player",
)
async def purge_player(player_version_id: str, resolver: FormatResolver = Depends(get_resolver)):
    return PurgeResponse(removed=resolver.engine.cache.purge(player_version_id))


@router.get("/health", summary="Health check")
async def health_check(resolver: FormatResolver = Depends(get_resolver)):
    """Health check endpoint."""
    return {
        "status": "healthy",
        "cached_players": len(resolver.engine.cache.versions()),
    }
