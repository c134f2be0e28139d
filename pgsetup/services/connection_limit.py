from __future__ import annotations

from typing import Any

from pgsetup.models import RESERVE_CONNECTIONS


def compute_connection_limit(capacity: int, *, reserve: int = RESERVE_CONNECTIONS) -> int | None:
    """Return the role connection limit for a server capacity, or None if unsafe."""
    if capacity <= reserve:
        return None
    return capacity - reserve


def parse_max_connections(rows: list[dict[str, Any]]) -> int | None:
    """Extract max_connections from `SHOW max_connections` rows.

    Postgres reports settings as text, so the value is parsed here. Missing
    rows or a value that is not an integer yield None.
    """
    if not rows:
        return None
    value = rows[0].get("max_connections")
    if value is None:
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None
