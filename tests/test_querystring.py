"""Tests for the query-string codec."""

from __future__ import annotations

from urllib.parse import unquote_plus

import pytest

from arequest import QueryStringError, escape, parse, stringify, unescape


class TestEscape:
    """Tests for percent-encoding."""

    def test_unreserved_characters_pass_through(self) -> None:
        """Test that the unreserved set is returned unchanged."""
        text = "AZaz09-_.~!*'()"
        assert escape(text) == text

    def test_reserved_ascii_uses_uppercase_hex(self) -> None:
        """Test that reserved ASCII characters are escaped in uppercase."""
        assert escape("a b&c=d/e?") == "a%20b%26c%3Dd%2Fe%3F"

    def test_non_ascii_is_utf8_encoded(self) -> None:
        """Test that non-ASCII code points become one escape per UTF-8 byte."""
        assert escape("é") == "%C3%A9"
        assert escape("中") == "%E4%B8%AD"
        assert escape("😀") == "%F0%9F%98%80"

    def test_surrogate_pair_is_combined(self) -> None:
        """Test that a high/low surrogate pair encodes as one code point."""
        assert escape("\ud83d\ude00") == "%F0%9F%98%80"

    @pytest.mark.parametrize("text", ["\ud83d", "a\ud83db", "\ude00"])
    def test_unpaired_surrogate_raises(self, text: str) -> None:
        """Test that unpaired surrogates are a format error."""
        with pytest.raises(QueryStringError, match="URI malformed"):
            escape(text)


class TestUnescape:
    """Tests for strict percent-decoding."""

    def test_decodes_utf8_sequences(self) -> None:
        """Test that escapes are decoded as UTF-8."""
        assert unescape("%E4%B8%AD%20x") == "中 x"

    @pytest.mark.parametrize("text", ["%zz", "%4", "100%", "%C3"])
    def test_malformed_input_raises(self, text: str) -> None:
        """Test that malformed escapes raise QueryStringError."""
        with pytest.raises(QueryStringError):
            unescape(text)

    def test_query_string_error_is_value_error(self) -> None:
        """Test that codec errors can be caught as ValueError."""
        with pytest.raises(ValueError, match="URI malformed"):
            unescape("%zz")


class TestStringify:
    """Tests for mapping serialization."""

    def test_empty_mapping(self) -> None:
        """Test that an empty mapping yields an empty string."""
        assert stringify({}) == ""

    def test_non_mapping_input(self) -> None:
        """Test that non-mapping input yields an empty string."""
        assert stringify(None) == ""
        assert stringify("a=1") == ""  # type: ignore[arg-type]

    def test_pairs_keep_insertion_order(self) -> None:
        """Test that pairs are joined in mapping order."""
        assert stringify({"b": "2", "a": "1"}) == "b=2&a=1"

    def test_keys_and_values_are_escaped(self) -> None:
        """Test that both keys and values are percent-encoded."""
        assert stringify({"a key": "x&y"}) == "a%20key=x%26y"

    def test_list_values_repeat_the_key(self) -> None:
        """Test that sequence values repeat the key once per item."""
        assert stringify({"k": ["v1", "v2"], "z": ("1",)}) == "k=v1&k=v2&z=1"

    def test_empty_list_contributes_nothing(self) -> None:
        """Test that an empty list adds no pairs and no stray separator."""
        assert stringify({"a": 1, "b": [], "c": 2}) == "a=1&c=2"
        assert stringify({"a": 1, "b": []}) == "a=1"

    def test_scalar_conversion(self) -> None:
        """Test how non-string scalars are rendered."""
        result = stringify(
            {"i": 3, "f": 1.5, "whole": 100.0, "t": True, "n": None, "inf": float("inf")},
        )
        assert result == "i=3&f=1.5&whole=100&t=true&n=&inf="

    @pytest.mark.parametrize(
        ("value", "text"),
        [
            (1e21, "1e+21"),
            (-2.5e22, "-2.5e+22"),
            (1e20, "100000000000000000000"),
            (1e-7, "1e-7"),
            (1.5e-7, "1.5e-7"),
            (0.000001, "0.000001"),
            (0.00001, "0.00001"),
            (-0.0, "0"),
        ],
    )
    def test_float_notation(self, value: float, text: str) -> None:
        """Test that floats switch to exponent notation only at the extremes."""
        assert stringify({"f": value}) == f"f={escape(text)}"

    def test_custom_separators(self) -> None:
        """Test custom pair and key/value separators."""
        assert stringify({"a": "1", "b": "2"}, sep=";", eq=":") == "a:1;b:2"

    def test_custom_encoder(self) -> None:
        """Test that a custom encode function replaces escaping."""
        assert stringify({"a": "x y"}, encode=str.upper) == "A=X Y"


class TestParse:
    """Tests for query-string parsing."""

    def test_empty_input(self) -> None:
        """Test that empty and non-string input yield an empty mapping."""
        assert parse("") == {}
        assert parse(None) == {}

    def test_simple_pairs(self) -> None:
        """Test parsing of plain pairs."""
        assert parse("a=1&b=2") == {"a": "1", "b": "2"}

    def test_repeated_keys_accumulate(self) -> None:
        """Test that repeated keys are collected into a list."""
        assert parse("a=1&a=2&a=3") == {"a": ["1", "2", "3"]}
        assert parse("a=1&b=x&a=2") == {"a": ["1", "2"], "b": "x"}

    def test_key_without_equals(self) -> None:
        """Test that a key without a value maps to an empty string."""
        assert parse("flag&a=1") == {"flag": "", "a": "1"}
        assert parse("a=") == {"a": ""}

    def test_trailing_separator(self) -> None:
        """Test that a trailing separator adds nothing."""
        assert parse("a=1&") == {"a": "1"}

    def test_empty_segments_are_skipped(self) -> None:
        """Test that empty segments between separators are ignored."""
        assert parse("a=1&&b=2") == {"a": "1", "b": "2"}
        assert parse("a=1&&b=2", max_keys=3) == {"a": "1", "b": "2"}

    def test_empty_segments_count_toward_max_keys(self) -> None:
        """Test that a long run of separators is bounded by max_keys."""
        qs = "&" * 100_000 + "a=1"
        assert parse(qs, max_keys=5) == {}
        assert parse("a=1&&b=2", max_keys=2) == {"a": "1"}
        assert parse(qs, max_keys=0) == {"a": "1"}

    def test_empty_key(self) -> None:
        """Test that a pair starting with '=' has an empty key."""
        assert parse("=1") == {"": "1"}

    def test_value_may_contain_equals(self) -> None:
        """Test that only the first equals sign splits key and value."""
        assert parse("a=b=c") == {"a": "b=c"}

    def test_plus_decodes_to_space(self) -> None:
        """Test that '+' becomes a space in keys and values."""
        assert parse("a+b=c+d") == {"a b": "c d"}

    def test_percent_escapes_are_decoded(self) -> None:
        """Test that escaped keys and values are decoded."""
        assert parse("%E4%B8%AD=%41%42&x=a%26b") == {"中": "AB", "x": "a&b"}

    def test_malformed_escape_keeps_raw_text(self) -> None:
        """Test that a malformed escape does not raise and keeps the text."""
        assert parse("a=%zz") == {"a": "%zz"}
        assert parse("a=%41%zz") == {"a": "%41%zz"}
        assert parse("a=%E4+b") == {"a": "%E4 b"}

    def test_max_keys_limits_pairs(self) -> None:
        """Test that parsing stops once max_keys pairs were read."""
        qs = "&".join(f"k{i}={i}" for i in range(50))
        result = parse(qs, max_keys=2)
        assert result == {"k0": "0", "k1": "1"}

    def test_max_keys_default(self) -> None:
        """Test that the default limit is 1000 pairs."""
        qs = "&".join(f"k{i}=v" for i in range(1500))
        assert len(parse(qs)) == 1000

    @pytest.mark.parametrize("max_keys", [0, -1])
    def test_max_keys_unbounded(self, max_keys: int) -> None:
        """Test that a non-positive max_keys disables the limit."""
        qs = "&".join(f"k{i}=v" for i in range(1500))
        assert len(parse(qs, max_keys=max_keys)) == 1500

    def test_multi_character_separators(self) -> None:
        """Test separators and equals sequences longer than one character."""
        assert parse("a=>1;;b=>2;;c", ";;", "=>") == {"a": "1", "b": "2", "c": ""}

    def test_partial_separator_stays_in_text(self) -> None:
        """Test that an incomplete separator sequence is kept literally."""
        assert parse("a=1;b;;c=2", ";;") == {"a": "1;b", "c": "2"}

    def test_custom_decoder(self) -> None:
        """Test that a custom decode function is applied to every part."""
        assert parse("a=x%2By", decode=unquote_plus) == {"a": "x+y"}
        assert parse("Key=Value", decode=str.lower) == {"key": "value"}

    def test_custom_decoder_errors_keep_raw_text(self) -> None:
        """Test that a failing custom decoder falls back to the raw text."""

        def failing(_: str) -> str:
            msg = "bad"
            raise ValueError(msg)

        assert parse("a=1", decode=failing) == {"a": "1"}

    @pytest.mark.parametrize(
        "mapping",
        [
            {"a": "1", "b": "2"},
            {"spaced key": "value with spaces", "sym": "&=?/#%+"},
            {"unicode": "中文 é 😀", "empty": ""},
            {"": "blank key"},
        ],
    )
    def test_parse_inverts_stringify(self, mapping: dict[str, str]) -> None:
        """Test that parsing a serialized mapping returns the mapping."""
        assert parse(stringify(mapping)) == mapping
