# Overview: Best-effort invalidation signal for caches and open screens.

from __future__ import annotations

from typing import Iterable

from blinker import Namespace
from flask import current_app


_signals = Namespace()

# sender: org_id; kwargs: paths (tuple of view paths whose data changed)
stock_invalidated = _signals.signal("stock-invalidated")


def invalidate(org_id: int, paths: Iterable[str]) -> None:
    """
    Tell receivers that data behind `paths` changed for the organization.

    Fire and forget: a failing receiver is logged and never reaches the caller.
    """
    paths = tuple(paths)
    try:
        stock_invalidated.send(org_id, paths=paths)
    except Exception:
        current_app.logger.exception("Invalidation receiver failed for org %s paths %s", org_id, paths)
