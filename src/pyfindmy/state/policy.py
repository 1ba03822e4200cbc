"""Location merge policy."""

from __future__ import annotations

from datetime import datetime


def should_accept_fix(*, current: datetime | None, incoming: datetime | None) -> bool:
    """Decide whether a location fix may replace the stored one.

    Fixes without a timestamp are never accepted. Otherwise the incoming
    fix must be strictly newer than the stored one; equal timestamps are
    duplicate deliveries.
    """
    if incoming is None:
        return False
    if current is None:
        return True
    return incoming > current
