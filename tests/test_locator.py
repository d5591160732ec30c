"""Tests for locating the player script in a watch page."""

from pathlib import Path

import pytest

from playercipher.resolver.locator import PlayerLocation, locate_player, player_version_id

_DATA = Path(__file__).parent / "data"

_MARKER = (
    '<link rel="preload" href="https://i.ytimg.com/generate_204" as="fetch">'
    '<link as="script" rel="preload" href="'
)


class TestPlayerVersionId:
    @pytest.mark.parametrize(
        ("path", "expected"),
        [
            ("/s/player/abc123/player_ias.vflset/en_US/base.js", "abc123"),
            ("/s/player/9f1e2d3c/www-player.css", "9f1e2d3c"),
            ("/s/player/", None),
            ("/yts/jsbin/player.js", None),
        ],
    )
    def test_values(self, path, expected):
        assert player_version_id(path) == expected


class TestLocatePlayer:
    def test_preload_marker(self):
        doc = f'<head>{_MARKER}/s/player/abc123/player_ias.vflset/en_US/base.js" nonce="q"></head>'
        assert locate_player(doc) == PlayerLocation(
            player_path="/s/player/abc123/player_ias.vflset/en_US/base.js",
            player_version_id="abc123",
        )

    def test_fixture_page(self):
        location = locate_player((_DATA / "bootstrap.html").read_text())
        assert location.player_version_id == "abc123"

    def test_marker_without_terminator_falls_back(self):
        doc = f'{_MARKER}/s/player/abc123/base.js ... "jsUrl":"\\/s\\/player\\/def456\\/player_ias.vflset\\/en_US\\/base.js"'
        location = locate_player(doc)
        assert location.player_version_id == "def456"
        assert location.player_path == "/s/player/def456/player_ias.vflset/en_US/base.js"

    def test_player_config_absolute_url(self):
        doc = '{"PLAYER_JS_URL":"https://www.youtube.com/s/player/ff00/player_ias.vflset/de_DE/base.js"}'
        location = locate_player(doc)
        assert location.player_path == "/s/player/ff00/player_ias.vflset/de_DE/base.js"

    def test_bare_path(self):
        doc = "<script src=/s/player/77aa/player_ias.vflset/fr_FR/base.js></script>"
        assert locate_player(doc).player_version_id == "77aa"

    def test_no_player(self):
        assert locate_player("<html><body>nothing here</body></html>") is None

    def test_path_without_version(self):
        doc = f'{_MARKER}/yts/jsbin/player.js" nonce="q">'
        assert locate_player(doc) is None
