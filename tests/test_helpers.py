"""Tests for utility helpers."""

import pytest

from playercipher.utils.helpers import (
    find_matching_bracket,
    float_or_none,
    int_or_none,
    search_json,
    str_or_none,
    traverse_obj,
)


class TestTraverseObj:
    def test_single_key(self):
        assert traverse_obj({"a": 1}, ("a",)) == 1

    def test_nested_tuple_path(self):
        data = {"streamingData": {"formats": [{"itag": 18}]}}
        assert traverse_obj(data, ("streamingData", "formats", 0, "itag")) == 18

    def test_missing_key_returns_default(self):
        assert traverse_obj({"a": 1}, ("b", "c"), default=[]) == []

    def test_none_input(self):
        assert traverse_obj(None, ("a",), default="d") == "d"

    def test_multiple_paths_first_wins(self):
        data = {"x": None, "y": 99}
        assert traverse_obj(data, ("x",), ("y",)) == 99

    def test_expected_type(self):
        data = {"streamingData": {"formats": "oops", "adaptiveFormats": [{"itag": 137}]}}
        assert traverse_obj(data, ("streamingData", "formats"), expected_type=list, default=[]) == []
        assert traverse_obj(
            data, ("streamingData", "formats"), ("streamingData", "adaptiveFormats"), expected_type=list
        ) == [{"itag": 137}]

    def test_index_out_of_range(self):
        assert traverse_obj({"f": [1]}, ("f", 3)) is None


class TestIntOrNone:
    @pytest.mark.parametrize(
        ("val", "expected"),
        [
            (42, 42),
            ("100", 100),
            (" 360 ", 360),
            ("3.9", None),
            (None, None),
            (True, None),
            ("", None),
        ],
    )
    def test_values(self, val, expected):
        assert int_or_none(val) == expected


class TestFloatOrNone:
    @pytest.mark.parametrize(
        ("val", "expected"),
        [
            (-7.5, -7.5),
            ("2.5", 2.5),
            (None, None),
            (False, None),
            ("nope", None),
        ],
    )
    def test_values(self, val, expected):
        assert float_or_none(val) == expected


class TestStrOrNone:
    def test_string(self):
        assert str_or_none("hello") == "hello"

    def test_whitespace(self):
        assert str_or_none("   ") is None

    def test_none(self):
        assert str_or_none(None) is None

    def test_int(self):
        assert str_or_none(42) == "42"


class TestFindMatchingBracket:
    def test_nested(self):
        text = "f(a,(b,c))+1"
        assert find_matching_bracket(text, 1) == 9

    def test_skips_brackets_in_strings(self):
        text = '{a:"}",b:\'{\'}'
        assert find_matching_bracket(text, 0) == len(text) - 1

    def test_escaped_quote_in_string(self):
        text = '["a\\"]",1]'
        assert find_matching_bracket(text, 0) == len(text) - 1

    def test_unclosed(self):
        assert find_matching_bracket("{a:{b:1}", 0) == -1


class TestSearchJson:
    def test_assignment(self):
        html = '<script>var ytInitialPlayerResponse = {"a": {"b": "}"}};var x=1;</script>'
        assert search_json(r"var\s+ytInitialPlayerResponse", html) == {"a": {"b": "}"}}

    def test_missing(self):
        assert search_json("ytInitialPlayerResponse", "<html></html>", default={}) == {}

    def test_invalid_json(self):
        html = "var ytInitialPlayerResponse = {a: 1};"
        assert search_json("ytInitialPlayerResponse", html) is None
