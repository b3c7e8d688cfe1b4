"""Shared utilities for polypipe."""

from utils.uuid_factory import build_log_id, uuid7, uuid7_hex, uuid7_suffix

__all__ = [
    "build_log_id",
    "uuid7",
    "uuid7_hex",
    "uuid7_suffix",
]
