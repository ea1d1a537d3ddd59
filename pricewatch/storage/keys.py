"""
Storage key helpers shared by the on-disk stores.
"""

import re

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]")


class StorageError(Exception):
    """Raised when a store cannot persist its data."""

    def __init__(self, operation: str, key: str, reason: str):
        self.operation = operation
        self.key = key
        self.reason = reason
        super().__init__(f"{operation} failed for {key}: {reason}")


def sanitize_symbol(symbol: str) -> str:
    """
    Reduce a symbol to a safe file-name key.

    Only alphanumerics, "-", "_" and "." survive; anything else becomes "_".
    Keys made only of dots ("." / "..") are neutralised too, so the result can
    never name a parent or current directory. Valid keys pass through
    unchanged.
    """
    key = _UNSAFE_CHARS.sub("_", symbol or "")
    if not key or set(key) == {"."}:
        key = "_" * max(len(key), 1)
    return key
