from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, computed_field

from ..utils.helpers import float_or_none, int_or_none, str_or_none, traverse_obj
from .enums import MediaType, ResolutionIssue, ResolutionStatus


class _FormatDescriptorBase(BaseModel):
    """Fields shared by every upstream format entry, untouched by resolution."""

    model_config = ConfigDict(frozen=True)

    itag: int | None = Field(None, description="Upstream format identifier")
    url: str | None = Field(None, description="Plaintext stream URL, if not protected")
    signature_cipher: str | None = Field(
        None, description="Query string bundling the encoded url and signature"
    )
    mime_type: str | None = Field(None, description="MIME type without codec parameters")
    average_bitrate: int | None = Field(None, description="Average bitrate in bits/s")
    content_length: int | None = Field(None, description="Size in bytes")
    approx_duration_ms: int | None = Field(None, description="Approximate duration in ms")

    @computed_field
    @property
    def is_protected(self) -> bool:
        """Whether the URL must be rebuilt from a signature cipher."""
        return self.signature_cipher is not None


class VideoFormatDescriptor(_FormatDescriptorBase):
    """A format carrying video (possibly muxed with audio)."""

    media_type: Literal["video"] = MediaType.VIDEO.value
    width: int | None = Field(None, description="Width in pixels")
    height: int | None = Field(None, description="Height in pixels")
    quality_label: str | None = Field(None, description="Quality label, e.g. '720p'")
    fps: int | None = Field(None, description="Frames per second")


class AudioTrackInfo(BaseModel):
    """Locale of an audio track that is not the video's original audio."""

    model_config = ConfigDict(frozen=True)

    display_name: str | None = Field(None, description="Language name, e.g. 'French'")
    locale_id: str | None = Field(None, description="Track id, e.g. 'fr.3'")
    is_default: bool | None = Field(None, description="Whether upstream marks it default")


class AudioFormatDescriptor(_FormatDescriptorBase):
    """An audio-only format."""

    media_type: Literal["audio"] = MediaType.AUDIO.value
    audio_sample_rate: int | None = Field(None, description="Sample rate in Hz")
    loudness_db: float | None = Field(None, description="Loudness in decibels")
    audio_track: AudioTrackInfo | None = Field(None, description="Audio track locale")


RawFormatDescriptor = Annotated[
    Union[VideoFormatDescriptor, AudioFormatDescriptor],
    Field(discriminator="media_type"),
]


class ResolvedFormat(BaseModel):
    """A format descriptor with its final, fetchable URL."""

    format: RawFormatDescriptor
    url: str | None = Field(None, description="Resolved stream URL")
    status: ResolutionStatus = Field(..., description="resolved, degraded or unresolved")
    issues: list[ResolutionIssue] = Field(
        default_factory=list, description="Why the URL may not be playable"
    )

    @property
    def is_degraded(self) -> bool:
        return self.status != ResolutionStatus.RESOLVED


def parse_raw_format(data: dict[str, Any]) -> VideoFormatDescriptor | AudioFormatDescriptor:
    """
    Decode one entry of ``streamingData.formats`` / ``adaptiveFormats``.

    Entries carrying ``fps`` are video formats, everything else is audio-only.
    """
    mime_type = str_or_none(data.get("mimeType"))
    common = {
        "itag": int_or_none(data.get("itag")),
        "url": str_or_none(data.get("url")),
        "signature_cipher": str_or_none(data.get("signatureCipher")),
        "mime_type": mime_type.split(";")[0].strip() if mime_type else None,
        "average_bitrate": int_or_none(data.get("averageBitrate")),
        "content_length": int_or_none(data.get("contentLength")),
        "approx_duration_ms": int_or_none(data.get("approxDurationMs")),
    }

    if int_or_none(data.get("fps")) is not None:
        return VideoFormatDescriptor(
            **common,
            width=int_or_none(data.get("width")),
            height=int_or_none(data.get("height")),
            quality_label=str_or_none(data.get("qualityLabel")),
            fps=int_or_none(data.get("fps")),
        )

    audio_track = None
    if traverse_obj(data, ("audioTrack", "id")):
        audio_track = AudioTrackInfo(
            display_name=traverse_obj(data, ("audioTrack", "displayName")),
            locale_id=traverse_obj(data, ("audioTrack", "id")),
            is_default=traverse_obj(data, ("audioTrack", "audioIsDefault")),
        )

    return AudioFormatDescriptor(
        **common,
        audio_sample_rate=int_or_none(data.get("audioSampleRate")),
        loudness_db=float_or_none(data.get("loudnessDb")),
        audio_track=audio_track,
    )
