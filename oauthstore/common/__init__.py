"""
Common package providing shared utilities for oauthstore.
"""

from .utils import ensure_utc, generate_id, get_current_time, parse_iso_timestamp

__all__ = [
    "ensure_utc",
    "generate_id",
    "get_current_time",
    "parse_iso_timestamp",
]
