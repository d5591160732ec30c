from typing import Any

from pydantic import BaseModel, Field

from .cipher import CachedPlayerProfile
from .formats import ResolvedFormat


class ResolveRequest(BaseModel):
    """Request model for the /resolve endpoint."""

    bootstrap_document: str = Field(
        ...,
        min_length=1,
        description="Watch page HTML referencing the current player script",
    )
    formats: list[dict[str, Any]] = Field(
        default_factory=list,
        description="Raw entries of streamingData.formats / adaptiveFormats",
    )


class ResolvePageRequest(BaseModel):
    """Request model for the /resolve/page endpoint."""

    bootstrap_document: str = Field(
        ...,
        min_length=1,
        description="Watch page HTML embedding ytInitialPlayerResponse",
    )


class ResolveResponse(BaseModel):
    """Resolved formats for an explicit list of raw formats."""

    success: bool = Field(True)
    player_version_id: str = Field(..., description="Player build used for resolution")
    player_path: str = Field(..., description="Path of the player script")
    formats: list[ResolvedFormat] = Field(default_factory=list)


class PageFormatsResponse(BaseModel):
    """Resolved formats split the way the watch page lists them."""

    success: bool = Field(True)
    player_version_id: str | None = Field(
        None, description="Player build used for resolution; null when the page references none"
    )
    player_path: str | None = Field(None, description="Path of the player script")
    default_formats: list[ResolvedFormat] = Field(
        default_factory=list, description="Progressive formats (video and audio muxed)"
    )
    adaptive_formats: list[ResolvedFormat] = Field(
        default_factory=list, description="Video-only and audio-only formats"
    )


class PlayerListResponse(BaseModel):
    players: list[str] = Field(default_factory=list, description="Cached player versions")


class PlayerProfileResponse(BaseModel):
    profile: CachedPlayerProfile
    cipher_operation_count: int
    has_n_function: bool


class PurgeResponse(BaseModel):
    removed: int = Field(..., description="Number of player profiles removed")


class ErrorResponse(BaseModel):
    """Error response model."""

    success: bool = Field(False)
    error: str = Field(..., description="Error message")
    error_code: str | None = Field(None, description="Machine-readable error code")
