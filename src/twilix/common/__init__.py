"""Common utilities for twilix."""

from twilix.common.dates import format_rfc2822, parse_rfc2822
from twilix.common.settings import Settings, get_settings

__all__ = [
    "Settings",
    "get_settings",
    "parse_rfc2822",
    "format_rfc2822",
]
