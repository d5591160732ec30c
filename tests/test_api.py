"""Tests for the HTTP API."""

from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from playercipher.core.errors import TransportFailure
from playercipher.core.js_interpreter import SandboxedEvaluator
from playercipher.main import app
from playercipher.resolver import FormatResolver, get_resolver
from playercipher.resolver.cache import ArtifactCache, MemoryKeyValueStore
from playercipher.resolver.engine import ScriptTransformEngine

_DATA = Path(__file__).parent / "data"
_BOOTSTRAP = (_DATA / "bootstrap.html").read_text()
_PLAYER = (_DATA / "player.js").read_bytes()


class FakeTransport:
    """Serves the fixture player script and watch page."""

    def __init__(self, available: bool = True):
        self.available = available
        self.urls: list[str] = []

    async def fetch(self, url: str) -> bytes:
        self.urls.append(url)
        if not self.available:
            raise TransportFailure(f"cannot fetch {url}", url=url)
        if "/watch?v=" in url:
            return _BOOTSTRAP.encode()
        return _PLAYER


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def resolver(transport):
    engine = ScriptTransformEngine(
        ArtifactCache(MemoryKeyValueStore()), transport, base_url="https://www.youtube.com"
    )
    return FormatResolver(engine, SandboxedEvaluator())


@pytest.fixture
def client(resolver):
    app.dependency_overrides[get_resolver] = lambda: resolver
    yield TestClient(app)
    app.dependency_overrides.clear()


class TestResolve:
    def test_resolve_formats(self, client):
        response = client.post(
            "/api/resolve",
            json={
                "bootstrap_document": _BOOTSTRAP,
                "formats": [
                    {
                        "itag": 137,
                        "fps": 30,
                        "signatureCipher": "s=abcd&url=https%3A%2F%2Fexample.com%2Fv%3Fn%3Dabcdef",
                    }
                ],
            },
        )
        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["player_version_id"] == "abc123"
        assert data["formats"][0]["url"] == "https://example.com/v?n=afedcb&sig=abc"
        assert data["formats"][0]["status"] == "resolved"
        assert data["formats"][0]["format"]["media_type"] == "video"

    def test_locator_miss(self, client):
        response = client.post(
            "/api/resolve", json={"bootstrap_document": "<html></html>", "formats": []}
        )
        assert response.status_code == 422
        assert response.json()["detail"]["error_code"] == "player.not_found"

    def test_transport_failure(self, client, transport):
        transport.available = False
        response = client.post("/api/resolve", json={"bootstrap_document": _BOOTSTRAP})
        assert response.status_code == 502
        assert response.json()["detail"]["error_code"] == "player.download_failed"

    def test_empty_document_rejected(self, client):
        assert client.post("/api/resolve", json={"bootstrap_document": ""}).status_code == 422


class TestResolvePage:
    def test_embedded_formats(self, client):
        response = client.post("/api/resolve/page", json={"bootstrap_document": _BOOTSTRAP})
        assert response.status_code == 200
        data = response.json()

        [progressive] = data["default_formats"]
        assert progressive["url"] == "https://r1.example.googlevideo.com/videoplayback?itag=18&n=afedcb"
        assert progressive["format"]["quality_label"] == "360p"

        video, audio = data["adaptive_formats"]
        assert video["url"] == (
            "https://r1.example.googlevideo.com/videoplayback?itag=137&n=afedcb&sig=abc"
        )
        assert video["format"]["is_protected"] is True
        assert audio["format"]["media_type"] == "audio"
        assert audio["format"]["audio_track"]["locale_id"] == "en.4"
        assert audio["url"] == "https://r1.example.googlevideo.com/videoplayback?itag=140"

    def test_no_player_reference_keeps_base_formats(self, client, transport):
        document = _BOOTSTRAP.replace("/s/player/abc123/player_ias.vflset/en_US/base.js", "")
        response = client.post("/api/resolve/page", json={"bootstrap_document": document})
        assert response.status_code == 200
        data = response.json()
        assert data["player_version_id"] is None
        assert data["adaptive_formats"] == []
        [progressive] = data["default_formats"]
        assert progressive["status"] == "degraded"
        assert progressive["issues"] == ["n_function_missing"]
        assert transport.urls == []

    def test_no_player_and_no_formats(self, client):
        response = client.post("/api/resolve/page", json={"bootstrap_document": "<html></html>"})
        assert response.status_code == 422

    def test_video_endpoint(self, client, transport):
        response = client.get("/api/videos/dQw4w9WgXcQ/formats")
        assert response.status_code == 200
        assert response.json()["player_version_id"] == "abc123"
        assert transport.urls[0] == "https://www.youtube.com/watch?v=dQw4w9WgXcQ"


class TestPlayers:
    def test_list_show_and_purge(self, client):
        assert client.get("/api/players").json() == {"players": []}
        client.post("/api/resolve", json={"bootstrap_document": _BOOTSTRAP})
        assert client.get("/api/players").json() == {"players": ["abc123"]}

        data = client.get("/api/players/abc123").json()
        assert data["cipher_operation_count"] == 3
        assert data["has_n_function"] is True
        assert data["profile"]["operations"][0] == {"kind": "swap", "index": 2}

        assert client.delete("/api/players/abc123").json() == {"removed": 1}
        assert client.get("/api/players/abc123").status_code == 404

    def test_purge_all(self, client):
        client.post("/api/resolve", json={"bootstrap_document": _BOOTSTRAP})
        assert client.delete("/api/players").json() == {"removed": 1}
        assert client.get("/api/players").json() == {"players": []}

    def test_cached_player_not_refetched(self, client, transport):
        client.post("/api/resolve", json={"bootstrap_document": _BOOTSTRAP})
        client.post("/api/resolve", json={"bootstrap_document": _BOOTSTRAP})
        assert len(transport.urls) == 1


class TestHealth:
    def test_health(self, client):
        response = client.get("/api/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    def test_root(self, client):
        assert client.get("/").json()["name"] == "Player Cipher API"
