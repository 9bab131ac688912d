"""Miscellaneous helper utilities."""

from __future__ import annotations

import ulid


def new_id() -> str:
    """Return a new lexicographically sortable unique id (26-char ULID)."""
    return str(ulid.new())
