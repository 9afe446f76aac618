"""application/x-www-form-urlencoded encoding and parsing."""

from __future__ import annotations

import re
from collections.abc import Mapping, Sequence
from urllib.parse import unquote_plus, urlencode

FormValue = str | Sequence[str]
FormValues = Mapping[str, FormValue]

FORM_CONTENT_TYPE = "application/x-www-form-urlencoded"

_INVALID_ESCAPE = re.compile(r"%(?![0-9A-Fa-f]{2})")


class FormDecodeError(ValueError):
    """Body is not valid form-encoded data."""


def values_of(value: FormValue) -> list[str]:
    """Return the values of a field, treating a bare string as a single value."""
    if isinstance(value, str):
        return [value]
    return list(value)


def encode_form(values: FormValues) -> str:
    """Encode fields as a form body, keeping the order of keys and values."""
    pairs = [(key, item) for key, value in values.items() for item in values_of(value)]
    return urlencode(pairs)


def _unescape(component: str) -> str:
    if _INVALID_ESCAPE.search(component):
        raise FormDecodeError(f"invalid percent escape in {component!r}")
    try:
        return unquote_plus(component, encoding="utf-8", errors="strict")
    except UnicodeDecodeError as exc:
        raise FormDecodeError(f"invalid UTF-8 in {component!r}") from exc


def parse_form(body: bytes | str) -> dict[str, list[str]]:
    """
    Parse a form-encoded body into a multi-valued mapping.

    Field order and the order of repeated values are preserved. A field
    without ``=`` yields an empty value. Empty segments are skipped.

    Raises:
        FormDecodeError: On undecodable bytes, a bad percent escape, or a
            ``;`` inside a field
    """
    if isinstance(body, bytes):
        try:
            text = body.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise FormDecodeError("body is not valid UTF-8") from exc
    else:
        text = body

    parsed: dict[str, list[str]] = {}
    for field in text.split("&"):
        if not field:
            continue
        if ";" in field:
            raise FormDecodeError(f"invalid semicolon separator in {field!r}")
        raw_key, _, raw_value = field.partition("=")
        key = _unescape(raw_key)
        parsed.setdefault(key, []).append(_unescape(raw_value))
    return parsed


def is_form_content_type(content_type: str | None) -> bool:
    """True when the media type, parameters ignored, is form-urlencoded."""
    if not content_type:
        return False
    media_type = content_type.split(";", 1)[0].strip().lower()
    return media_type == FORM_CONTENT_TYPE
