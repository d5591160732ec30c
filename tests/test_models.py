"""Tests for Pydantic models and enum definitions."""

import pytest
from pydantic import TypeAdapter, ValidationError

from playercipher.models import (
    AudioFormatDescriptor,
    CachedPlayerProfile,
    ErrorResponse,
    OperationKind,
    ResolutionStatus,
    ResolvedFormat,
    ResolveRequest,
    ReverseOperation,
    SpliceOperation,
    SwapOperation,
    UnknownOperation,
    VideoFormatDescriptor,
    parse_raw_format,
)
from playercipher.models.cipher import dump_operations, load_operations
from playercipher.models.formats import RawFormatDescriptor


# ── Enums ────────────────────────────────────────────────────────────
class TestEnums:
    def test_operation_kinds(self):
        assert {k.value for k in OperationKind} == {"swap", "splice", "reverse", "unknown"}

    def test_statuses(self):
        assert {s.value for s in ResolutionStatus} == {"resolved", "degraded", "unresolved"}


# ── Cipher operations ────────────────────────────────────────────────
class TestCipherOperations:
    def test_json_is_tagged(self):
        ops = [SwapOperation(index=3), SpliceOperation(count=2), ReverseOperation()]
        assert load_operations(dump_operations(ops)) == ops
        assert b'"kind":"swap"' in dump_operations(ops)

    def test_empty_list(self):
        assert load_operations(dump_operations([])) == []

    def test_unknown_kind_rejected(self):
        with pytest.raises(ValidationError):
            load_operations(b'[{"kind":"rotate","by":1}]')

    def test_negative_splice_rejected(self):
        with pytest.raises(ValidationError):
            SpliceOperation(count=-1)

    def test_frozen(self):
        op = SwapOperation(index=1)
        with pytest.raises(ValidationError):
            op.index = 2


class TestCachedPlayerProfile:
    def test_helpers(self):
        profile = CachedPlayerProfile(
            player_version_id="abc123",
            operations=(SwapOperation(index=1), UnknownOperation()),
            n_function_source="function processNParameter(a){return a}",
        )
        assert profile.has_cipher_operations
        assert profile.has_n_function
        assert profile.has_unknown_operations

    def test_empty_profile(self):
        profile = CachedPlayerProfile(player_version_id="abc123")
        assert not profile.has_cipher_operations
        assert not profile.has_n_function
        assert not profile.has_unknown_operations

    def test_empty_version_rejected(self):
        with pytest.raises(ValidationError):
            CachedPlayerProfile(player_version_id="")


# ── Raw formats ──────────────────────────────────────────────────────
class TestParseRawFormat:
    def test_video_when_fps_present(self):
        fmt = parse_raw_format(
            {
                "itag": 137,
                "signatureCipher": "s=abc&url=https%3A%2F%2Fexample.com",
                "mimeType": 'video/mp4; codecs="avc1.640028"',
                "width": 1920,
                "height": 1080,
                "fps": 30,
                "qualityLabel": "1080p",
                "contentLength": "12345",
            }
        )
        assert isinstance(fmt, VideoFormatDescriptor)
        assert fmt.media_type == "video"
        assert fmt.mime_type == "video/mp4"
        assert fmt.content_length == 12345
        assert fmt.is_protected
        assert fmt.height == 1080

    def test_audio_with_track(self):
        fmt = parse_raw_format(
            {
                "itag": 251,
                "url": "https://example.com/a",
                "mimeType": 'audio/webm; codecs="opus"',
                "audioSampleRate": "48000",
                "loudnessDb": -3.2,
                "audioTrack": {"displayName": "French", "id": "fr.3", "audioIsDefault": False},
            }
        )
        assert isinstance(fmt, AudioFormatDescriptor)
        assert not fmt.is_protected
        assert fmt.audio_sample_rate == 48000
        assert fmt.loudness_db == -3.2
        assert fmt.audio_track.locale_id == "fr.3"
        assert fmt.audio_track.is_default is False

    def test_audio_without_track(self):
        fmt = parse_raw_format({"itag": 140, "url": "https://example.com/a"})
        assert fmt.audio_track is None

    def test_discriminated_round_trip(self):
        fmt = parse_raw_format({"itag": 18, "url": "https://example.com/v", "fps": 25})
        restored = TypeAdapter(RawFormatDescriptor).validate_python(fmt.model_dump())
        assert isinstance(restored, VideoFormatDescriptor)

    def test_resolved_format_degraded(self):
        fmt = parse_raw_format({"itag": 18, "url": "https://example.com/v", "fps": 25})
        resolved = ResolvedFormat(format=fmt, url=fmt.url, status=ResolutionStatus.DEGRADED)
        assert resolved.is_degraded


# ── Request/response ────────────────────────────────────────────────
class TestApiModels:
    def test_request_requires_document(self):
        with pytest.raises(ValidationError):
            ResolveRequest(bootstrap_document="")

    def test_error_response(self):
        resp = ErrorResponse(error="nope", error_code="player.not_found")
        assert resp.success is False
