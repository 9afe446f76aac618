"""RFC 2822 timestamps used by the 2010-04-01 API resources."""

from __future__ import annotations

import re
from datetime import datetime, timezone
from email.utils import format_datetime, parsedate_to_datetime
from typing import Annotated, Any

from pydantic import BeforeValidator, PlainSerializer

# Day and month names are always English, whatever the process locale
_RFC2822_PATTERN = re.compile(
    r"(Mon|Tue|Wed|Thu|Fri|Sat|Sun), \d{2} "
    r"(Jan|Feb|Mar|Apr|May|Jun|Jul|Aug|Sep|Oct|Nov|Dec) "
    r"\d{4} \d{2}:\d{2}:\d{2} [+-]\d{4}"
)


def parse_rfc2822(value: str) -> datetime:
    """
    Parse a timestamp such as ``Thu, 30 Jul 2020 00:00:00 +0000``.

    Raises:
        ValueError: If the string does not follow the format exactly
    """
    text = value.strip()
    if not _RFC2822_PATTERN.fullmatch(text):
        raise ValueError(f"not an RFC 2822 timestamp: {value!r}")
    try:
        parsed = parsedate_to_datetime(text)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"not an RFC 2822 timestamp: {value!r}") from exc
    if parsed.tzinfo is None:
        # -0000 means UTC with no local offset known
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def format_rfc2822(value: datetime) -> str:
    """Format a datetime the way the API emits it. Naive values are taken as UTC."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return format_datetime(value)


def _coerce_rfc2822(value: Any) -> Any:
    if isinstance(value, str):
        return parse_rfc2822(value)
    return value


Rfc2822Datetime = Annotated[
    datetime,
    BeforeValidator(_coerce_rfc2822),
    PlainSerializer(format_rfc2822, return_type=str),
]
