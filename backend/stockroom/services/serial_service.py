# Overview: Duplicate-serial detection against the tenant's active stock.

"""
Duplicate Detection

A serial number may be held by at most one PENDING or IN_STOCK unit per
organization. Sold or adjusted-out units release their serial, so the same
serial can legitimately come back (e.g. a customer return re-received).

Empty values and bulk placeholders ("BULK...", "N/A") are not serials and
are ignored.
"""

from __future__ import annotations

from typing import Iterable

from ..extensions import db
from ..errors import DuplicateSerialError
from ..models import Instance, Product
from ..models.inventory import ACTIVE_STATUSES


PLACEHOLDER_PREFIX = "BULK"
PLACEHOLDER_VALUES = {"N/A", "NA", "-"}

# Keep IN () lists well under SQLite's bound-parameter limit
QUERY_CHUNK = 500


def is_placeholder(serial: str | None) -> bool:
    if serial is None:
        return True
    value = serial.strip()
    if not value:
        return True
    return value.upper().startswith(PLACEHOLDER_PREFIX) or value.upper() in PLACEHOLDER_VALUES


def clean_serial(serial: str | None) -> str | None:
    """Return the stripped serial, or None for empty/placeholder values."""
    if is_placeholder(serial):
        return None
    return serial.strip()


def normalize_serials(serials: Iterable[str | None]) -> list[str]:
    """Strip, drop placeholders, and de-duplicate preserving first-seen order."""
    seen: dict[str, None] = {}
    for serial in serials:
        value = clean_serial(serial)
        if value is not None:
            seen.setdefault(value, None)
    return list(seen)


def find_batch_repeats(serials: Iterable[str | None]) -> list[str]:
    """Serials that appear more than once within the same batch."""
    counts: dict[str, int] = {}
    for serial in serials:
        value = clean_serial(serial)
        if value is not None:
            counts[value] = counts.get(value, 0) + 1
    return [value for value, count in counts.items() if count > 1]


def find_active_duplicates(
    org_id: int,
    serials: Iterable[str | None],
    *,
    exclude_purchase_id: int | None = None,
) -> list[str]:
    """
    Return the subset of `serials` already held by a PENDING/IN_STOCK unit
    of the organization, in input order.

    exclude_purchase_id ignores units owned by that document (used when a
    document is edited and re-checked against everything else).
    """
    candidates = normalize_serials(serials)
    if not candidates:
        return []

    taken: set[str] = set()
    for start in range(0, len(candidates), QUERY_CHUNK):
        chunk = candidates[start:start + QUERY_CHUNK]
        query = (
            db.session.query(Instance.serial_number)
            .join(Product, Instance.product_id == Product.id)
            .filter(
                Product.org_id == org_id,
                Instance.serial_number.in_(chunk),
                Instance.status.in_(ACTIVE_STATUSES),
            )
        )
        if exclude_purchase_id is not None:
            query = query.filter(
                db.or_(
                    Instance.purchase_id.is_(None),
                    Instance.purchase_id != exclude_purchase_id,
                )
            )
        taken.update(row[0] for row in query.all())

    return [serial for serial in candidates if serial in taken]


def assert_no_duplicates(
    org_id: int,
    serials: Iterable[str | None],
    *,
    exclude_purchase_id: int | None = None,
) -> None:
    """
    Reject the batch if any serial repeats within it or is already active.

    Raises DuplicateSerialError listing every offending serial.
    """
    serials = list(serials)
    duplicates = find_batch_repeats(serials)
    for serial in find_active_duplicates(org_id, serials, exclude_purchase_id=exclude_purchase_id):
        if serial not in duplicates:
            duplicates.append(serial)
    if duplicates:
        raise DuplicateSerialError(duplicates)
