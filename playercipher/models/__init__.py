from .api import (
    ErrorResponse,
    PageFormatsResponse,
    PlayerListResponse,
    PlayerProfileResponse,
    PurgeResponse,
    ResolvePageRequest,
    ResolveRequest,
    ResolveResponse,
)
from .cipher import (
    CachedPlayerProfile,
    CipherOperation,
    ReverseOperation,
    SpliceOperation,
    SwapOperation,
    UnknownOperation,
)
from .enums import MediaType, OperationKind, ResolutionIssue, ResolutionStatus
from .formats import (
    AudioFormatDescriptor,
    AudioTrackInfo,
    RawFormatDescriptor,
    ResolvedFormat,
    VideoFormatDescriptor,
    parse_raw_format,
)

__all__ = [
    "AudioFormatDescriptor",
    "AudioTrackInfo",
    "CachedPlayerProfile",
    "CipherOperation",
    "ErrorResponse",
    "MediaType",
    "OperationKind",
    "PageFormatsResponse",
    "PlayerListResponse",
    "PlayerProfileResponse",
    "PurgeResponse",
    "RawFormatDescriptor",
    "ResolutionIssue",
    "ResolutionStatus",
    "ResolvePageRequest",
    "ResolveRequest",
    "ResolveResponse",
    "ResolvedFormat",
    "ReverseOperation",
    "SpliceOperation",
    "SwapOperation",
    "UnknownOperation",
    "VideoFormatDescriptor",
    "parse_raw_format",
]
