"""URL-encoded query-string codec.

Encodes mappings into ``application/x-www-form-urlencoded`` text and parses
such text back into a mapping. Keys that repeat are collected into lists.
"""

from __future__ import annotations

import math
import re
import typing as t
from collections.abc import Mapping
from decimal import Decimal

from .errors import QueryStringError

ParsedQuery = dict[str, str | list[str]]

DEFAULT_MAX_KEYS = 1000

_UNRESERVED = frozenset(
    "ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz0123456789-_.~!*'()",
)
_HEX_DIGITS = frozenset("0123456789ABCDEFabcdef")
_HEX_TABLE = tuple(f"%{byte:02X}" for byte in range(256))

_ESCAPE_RUN = re.compile(r"(?:%[0-9A-Fa-f]{2})+")
_BAD_ESCAPE = re.compile(r"%(?![0-9A-Fa-f]{2})")

_EXPONENT_BELOW = 1e-6
_EXPONENT_ABOVE = 1e21

_HIGH_SURROGATES = range(0xD800, 0xDC00)
_LOW_SURROGATES = range(0xDC00, 0xE000)
_SURROGATES = range(0xD800, 0xE000)

# Length of a complete "%XX" escape as counted by _advance_escape.
_ESCAPE_LEN = 3


def escape(text: str) -> str:
    """Percent-encode a string.

    Unreserved ASCII characters pass through unchanged; every other character
    is UTF-8 encoded and each byte written as an uppercase ``%XX`` escape.
    A high surrogate immediately followed by a low surrogate is combined into
    a single code point first.

    Args:
        text: The text to encode.

    Returns:
        str: The encoded text.

    Raises:
        QueryStringError: If the text contains an unpaired surrogate.

    """
    if all(ch in _UNRESERVED for ch in text):
        return text

    out: list[str] = []
    i, length = 0, len(text)
    while i < length:
        ch = text[i]
        code = ord(ch)
        if ch in _UNRESERVED:
            out.append(ch)
        elif code < 0x80:  # noqa: PLR2004
            out.append(_HEX_TABLE[code])
        else:
            if code in _HIGH_SURROGATES and i + 1 < length and ord(text[i + 1]) in _LOW_SURROGATES:
                i += 1
                code = 0x10000 + (((code & 0x3FF) << 10) | (ord(text[i]) & 0x3FF))
            elif code in _SURROGATES:
                msg = f"URI malformed: unpaired surrogate at position {i}"
                raise QueryStringError(msg)
            out.extend(_HEX_TABLE[byte] for byte in chr(code).encode("utf-8"))
        i += 1
    return "".join(out)


def _decode_run(match: re.Match[str]) -> str:
    return bytes.fromhex(match.group().replace("%", "")).decode("utf-8")


def unescape(text: str) -> str:
    """Decode ``%XX`` escapes in a string as UTF-8.

    Args:
        text: The text to decode.

    Returns:
        str: The decoded text.

    Raises:
        QueryStringError: If an escape is malformed or the escaped bytes are
            not valid UTF-8.

    """
    if "%" not in text:
        return text
    if _BAD_ESCAPE.search(text):
        msg = "URI malformed: invalid percent escape"
        raise QueryStringError(msg)
    try:
        return _ESCAPE_RUN.sub(_decode_run, text)
    except UnicodeDecodeError as e:
        msg = "URI malformed: escaped bytes are not valid UTF-8"
        raise QueryStringError(msg, cause=e) from e


def _to_text(value: object) -> str:
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float) and math.isfinite(value):
        return _float_text(value)
    return ""


def _float_text(value: float) -> str:
    """Render a float in shortest form, switching to exponent notation outside [1e-6, 1e21)."""
    magnitude = abs(value)
    if magnitude < _EXPONENT_ABOVE and value.is_integer():
        return str(int(value))
    text = repr(value)
    if _EXPONENT_BELOW <= magnitude < _EXPONENT_ABOVE:
        return format(Decimal(text), "f")
    mantissa, _, exponent = text.partition("e")
    return f"{mantissa}e{int(exponent):+d}"


def stringify(
    obj: Mapping[t.Any, t.Any] | None,
    sep: str = "&",
    eq: str = "=",
    *,
    encode: t.Callable[[str], str] = escape,
) -> str:
    """Serialize a mapping into a query string.

    Strings are used as is, booleans become ``true``/``false`` and finite
    numbers their decimal text; any other scalar is serialized as an empty
    string. List and tuple values repeat the key once per item.

    Args:
        obj: The mapping to serialize. Anything else yields an empty string.
        sep: Separator placed between pairs.
        eq: Separator placed between a key and its value.
        encode: Function used to escape each key and value.

    Returns:
        str: The query string, without a leading ``?``.

    Raises:
        QueryStringError: If a key or value cannot be encoded.

    """
    if not isinstance(obj, Mapping):
        return ""

    pairs: list[str] = []
    for key, value in obj.items():
        prefix = encode(_to_text(key)) + eq
        if isinstance(value, list | tuple):
            pairs.extend(prefix + encode(_to_text(item)) for item in value)
        else:
            pairs.append(prefix + encode(_to_text(value)))
    return sep.join(pairs)


def _advance_escape(ch: str, run: int) -> int:
    if ch == "%":
        return 1
    if run and ch in _HEX_DIGITS:
        return run + 1
    return 0


def _decode_part(text: str, escaped: bool, decode: t.Callable[[str], str]) -> str:  # noqa: FBT001
    if not escaped or not text:
        return text
    try:
        return decode(text)
    except ValueError:
        return text


def _store(result: ParsedQuery, key: str, value: str) -> None:
    existing = result.get(key)
    if existing is None:
        result[key] = value
    elif isinstance(existing, list):
        existing.append(value)
    else:
        result[key] = [existing, value]


def parse(  # noqa: C901, PLR0912, PLR0915
    qs: str | None,
    sep: str = "&",
    eq: str = "=",
    *,
    max_keys: int = DEFAULT_MAX_KEYS,
    decode: t.Callable[[str], str] = unescape,
) -> ParsedQuery:
    """Parse a query string into a mapping.

    The input is scanned once. Separator and equals sequences may be longer
    than one character. Decoding only runs for a key or value in which a
    ``%XX`` escape was seen; ``+`` always becomes a space. Text whose escapes
    turn out to be malformed is kept as is.

    Args:
        qs: The query string, without a leading ``?``.
        sep: Sequence separating pairs.
        eq: Sequence separating a key from its value.
        max_keys: Maximum number of segments to read, empty ones included.
            Zero or less means no limit.
        decode: Function used to unescape keys and values. A custom function
            is applied to every non-empty key and value.

    Returns:
        ParsedQuery: Keys mapped to a string, or to a list of strings when the
            key occurs more than once.

    """
    result: ParsedQuery = {}
    if not isinstance(qs, str) or not qs:
        return result

    sep = sep or "&"
    eq = eq or "="
    sep_len, eq_len = len(sep), len(eq)
    remaining = max_keys if max_keys > 0 else -1
    always_decode = decode is not unescape

    last = 0  # start of raw text not yet copied into key or value
    sep_pos = eq_pos = 0  # matched prefix lengths
    key = value = ""
    key_escaped = value_escaped = always_decode
    hex_run = 0

    for i, ch in enumerate(qs):
        if ch == sep[sep_pos]:
            sep_pos += 1
            if sep_pos < sep_len:
                continue
            end = i - sep_len + 1
            if eq_pos < eq_len:
                key += qs[last:end]
            else:
                value += qs[last:end]
            # empty segments are not stored but still count toward max_keys
            if key or eq_pos == eq_len:
                _store(
                    result,
                    _decode_part(key, key_escaped, decode),
                    _decode_part(value, value_escaped, decode),
                )
            remaining -= 1
            if remaining == 0:
                return result
            last = i + 1
            sep_pos = eq_pos = hex_run = 0
            key = value = ""
            key_escaped = value_escaped = always_decode
            continue
        sep_pos = 0

        if eq_pos < eq_len:
            if ch == eq[eq_pos]:
                eq_pos += 1
                if eq_pos == eq_len:
                    key += qs[last : i - eq_len + 1]
                    last = i + 1
                    hex_run = 0
                continue
            eq_pos = 0
            if not key_escaped:
                hex_run = _advance_escape(ch, hex_run)
                key_escaped = hex_run == _ESCAPE_LEN
        elif not value_escaped:
            hex_run = _advance_escape(ch, hex_run)
            value_escaped = hex_run == _ESCAPE_LEN

        if ch == "+":
            if eq_pos < eq_len:
                key += qs[last:i] + " "
            else:
                value += qs[last:i] + " "
            last = i + 1

    if last < len(qs):
        if eq_pos < eq_len:
            key += qs[last:]
        else:
            value += qs[last:]
    if key or eq_pos == eq_len:
        _store(
            result,
            _decode_part(key, key_escaped, decode),
            _decode_part(value, value_escaped, decode),
        )
    return result
