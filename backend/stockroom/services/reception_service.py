# Overview: Allocation of reception numbers (YYMM + 4-digit sequence) for receiving documents.

"""
Reception Numbering

A reception number is the allocation month as YYMM followed by a 4-digit,
zero-padded sequence: 25010001 is the first document received in January
2025. Numbers are unique across ALL organizations (one global sequence per
month, enforced by uq_purchases_reception_number).

The sequence is derived from a live MAX() query, so "find max, then insert"
is not atomic. Allocation is optimistic: the caller's whole unit of work is
run with a candidate number and, if the insert loses a race on the unique
constraint, the transaction is rolled back and the number re-derived. After
RECEPTION_NUMBER_ATTEMPTS tries, NumberingExhaustedError is raised.
"""

from __future__ import annotations

from datetime import datetime
from typing import Callable, TypeVar

from flask import current_app
from sqlalchemy import Integer, cast, func
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..errors import NumberingExhaustedError
from ..models import Purchase
from stockroom.time_utils import utcnow, period_prefix


SEQUENCE_WIDTH = 4
DEFAULT_ATTEMPTS = 3
CONFLICT_MARKERS = ("reception_number",)

T = TypeVar("T")


def next_reception_number(now: datetime | None = None) -> str:
    """Return MAX(sequence) + 1 for the month of `now`, formatted YYMM####."""
    prefix = period_prefix(now or utcnow())
    sequence = cast(func.substr(Purchase.reception_number, len(prefix) + 1), Integer)
    current = (
        db.session.query(func.max(sequence))
        .filter(Purchase.reception_number.like(f"{prefix}%"))
        .scalar()
    )
    return f"{prefix}{(current or 0) + 1:0{SEQUENCE_WIDTH}d}"


def is_reception_number_conflict(exc: IntegrityError) -> bool:
    message = str(getattr(exc, "orig", exc)).lower()
    return any(marker in message for marker in CONFLICT_MARKERS)


def allocate(op: Callable[[str], T], *, now: datetime | None = None) -> T:
    """
    Run `op(reception_number)` until it commits without a numbering conflict.

    `op` must persist a Purchase carrying the number and commit. Any other
    error rolls the session back and propagates unchanged.
    """
    attempts = current_app.config.get("RECEPTION_NUMBER_ATTEMPTS", DEFAULT_ATTEMPTS)

    for attempt in range(1, attempts + 1):
        number = next_reception_number(now)
        try:
            return op(number)
        except IntegrityError as exc:
            db.session.rollback()
            if not is_reception_number_conflict(exc):
                raise
            current_app.logger.warning(
                "Reception number %s already taken (attempt %s/%s)", number, attempt, attempts
            )
        except Exception:
            db.session.rollback()
            raise

    current_app.logger.error("Reception numbering exhausted after %s attempts", attempts)
    raise NumberingExhaustedError(attempts)
