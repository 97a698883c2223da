# Overview: Service-layer operations for receiving documents (purchases) and their units.

"""
Receiving Document Manager

LIFECYCLE:
1. DRAFT: Created or edited; new units are PENDING (not sellable)
2. CONFIRMED: PENDING units flipped to IN_STOCK in the same transaction
3. COMPLETED: Synthetic documents written by bulk intake (see intake_service)

RULES:
- Supplier and every product must belong to the organization
- Serial numbers are checked against active stock inside the same
  transaction that inserts the units; a collision rejects the whole batch
- An operator signature (operator id + PIN) is verified before anything is
  persisted
- Every mutation is one transaction; a failure leaves nothing behind
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation

from flask import current_app

from ..extensions import db
from ..errors import (
    IncompleteCostError,
    NotFoundError,
    PurchaseLockedError,
    ValidationError,
)
from ..models import Instance, Product, Purchase
from ..models.inventory import (
    CONDITION_NEW,
    PURCHASE_CONFIRMED,
    PURCHASE_DRAFT,
    PURCHASE_STATUSES,
    STATUS_ADJUSTMENT,
    STATUS_IN_STOCK,
    STATUS_PENDING,
    STATUS_REMOVED,
    STATUS_SOLD,
)
from . import catalog_service, identity_service, notify_service, reception_service, serial_service
from .concurrency import lock_for_update, run_with_retry
from stockroom.time_utils import utcnow


INVALIDATED_PATHS = ("/inventory", "/inventory/purchases")
DISPOSED_STATUSES = (STATUS_SOLD, STATUS_ADJUSTMENT, STATUS_REMOVED)


@dataclass
class PurchaseLineItem:
    """One unit on a receiving document. instance_id is set when editing an existing unit."""
    product_id: int
    cost_cents: int
    serial_number: str | None = None
    original_cost_cents: int | None = None
    instance_id: int | None = None


@dataclass(frozen=True)
class OperatorSignature:
    operator_id: int
    pin: str


def _normalize_currency(currency: str | None) -> str:
    value = (currency or "COP").strip().upper()
    if len(value) != 3 or not value.isalpha():
        raise ValidationError("currency must be a 3-letter code")
    return value


def _normalize_exchange_rate(exchange_rate) -> Decimal:
    if exchange_rate is None:
        return Decimal("1")
    try:
        rate = Decimal(str(exchange_rate))
    except (InvalidOperation, ValueError):
        raise ValidationError("exchange_rate must be a number")
    if not rate.is_finite() or rate <= 0:
        raise ValidationError("exchange_rate must be positive")
    return rate


def _validate_items(items: list[PurchaseLineItem]) -> None:
    if not items:
        raise ValidationError("At least one line item is required")
    for index, item in enumerate(items, start=1):
        if not item.product_id:
            raise ValidationError(f"Line {index}: product_id is required")
        if not isinstance(item.cost_cents, int) or isinstance(item.cost_cents, bool):
            raise ValidationError(f"Line {index}: cost_cents must be an integer")
        if item.cost_cents < 0:
            raise ValidationError(f"Line {index}: cost_cents cannot be negative")
        if item.original_cost_cents is not None and item.original_cost_cents < 0:
            raise ValidationError(f"Line {index}: original_cost_cents cannot be negative")


def _assert_products_owned(org_id: int, product_ids) -> None:
    wanted = set(product_ids)
    found = {
        row[0]
        for row in db.session.query(Product.id).filter(
            Product.org_id == org_id,
            Product.id.in_(wanted),
        ).all()
    }
    missing = sorted(wanted - found)
    if missing:
        raise NotFoundError(f"Product {missing[0]} not found")


def _new_unit(item: PurchaseLineItem, status: str = STATUS_PENDING) -> Instance:
    return Instance(
        product_id=item.product_id,
        serial_number=serial_service.clean_serial(item.serial_number),
        status=status,
        condition=CONDITION_NEW,
        cost_cents=item.cost_cents,
        original_cost_cents=item.original_cost_cents,
    )


def _is_disposed(instance: Instance) -> bool:
    return (
        instance.status in DISPOSED_STATUSES
        or instance.sale_id is not None
        or instance.disposed_by_adjustment_id is not None
    )


def _get_locked(org_id: int, purchase_id: int) -> Purchase:
    purchase = lock_for_update(
        db.session.query(Purchase).filter_by(id=purchase_id, org_id=org_id)
    ).first()
    if purchase is None:
        raise NotFoundError(f"Purchase {purchase_id} not found")
    return purchase


def get_purchase(org_id: int, purchase_id: int) -> Purchase:
    purchase = db.session.query(Purchase).filter_by(id=purchase_id, org_id=org_id).first()
    if purchase is None:
        raise NotFoundError(f"Purchase {purchase_id} not found")
    return purchase


def list_purchases(
    org_id: int,
    *,
    status: str | None = None,
    supplier_id: int | None = None,
    limit: int = 50,
    offset: int = 0,
) -> list[Purchase]:
    query = db.session.query(Purchase).filter(Purchase.org_id == org_id)
    if status:
        if status not in PURCHASE_STATUSES:
            raise ValidationError(f"Invalid status. Must be one of: {', '.join(sorted(PURCHASE_STATUSES))}")
        query = query.filter(Purchase.status == status)
    if supplier_id:
        query = query.filter(Purchase.supplier_id == supplier_id)
    return (
        query.order_by(Purchase.created_at.desc(), Purchase.id.desc())
        .limit(max(1, min(limit, 500)))
        .offset(max(0, offset))
        .all()
    )


def create_draft(
    *,
    org_id: int,
    supplier_id: int,
    items: list[PurchaseLineItem],
    currency: str | None = "COP",
    exchange_rate=1,
    attendant_name: str | None = None,
    notes: str | None = None,
    signature: OperatorSignature | None = None,
) -> Purchase:
    """
    Create a DRAFT receiving document with one PENDING unit per line item.

    Raises:
        ValidationError: no items, no attendant, bad currency/rate/cost
        NotFoundError: supplier or product outside the organization
        InvalidSignatureError: operator PIN does not verify
        DuplicateSerialError: a serial repeats in the batch or is in stock
        NumberingExhaustedError: reception number could not be allocated
    """
    _validate_items(items)
    currency = _normalize_currency(currency)
    rate = _normalize_exchange_rate(exchange_rate)
    attendant_name = (attendant_name or "").strip() or None
    if attendant_name is None and signature is None:
        raise ValidationError("Attendant name or operator signature is required")

    catalog_service.get_supplier_for_org(org_id, supplier_id)
    _assert_products_owned(org_id, [item.product_id for item in items])

    operator = None
    if signature is not None:
        operator = identity_service.verify_operator(org_id, signature.operator_id, signature.pin)

    serials = [item.serial_number for item in items]

    def _op(reception_number: str) -> int:
        serial_service.assert_no_duplicates(org_id, serials)

        purchase = Purchase(
            org_id=org_id,
            supplier_id=supplier_id,
            reception_number=reception_number,
            currency=currency,
            exchange_rate=rate,
            status=PURCHASE_DRAFT,
            attendant_name=attendant_name or (operator.name if operator else None),
            operator_id=operator.operator_id if operator else None,
            operator_name=operator.name if operator else None,
            notes=notes,
            created_at=utcnow(),
        )
        for item in items:
            purchase.instances.append(_new_unit(item))
        purchase.total_cost_cents = sum(item.cost_cents for item in items)

        db.session.add(purchase)
        db.session.commit()
        return purchase.id

    purchase_id = run_with_retry(lambda: reception_service.allocate(_op))
    purchase = db.session.get(Purchase, purchase_id)

    current_app.logger.info(
        "Purchase %s created for org %s with %s unit(s)",
        purchase.reception_number, org_id, len(items),
    )
    notify_service.invalidate(org_id, INVALIDATED_PATHS)
    return purchase


def update(
    *,
    org_id: int,
    purchase_id: int,
    items: list[PurchaseLineItem],
    supplier_id: int | None = None,
    currency: str | None = None,
    exchange_rate=None,
    notes: str | None = None,
) -> Purchase:
    """
    Edit a receiving document in one transaction and reset it to DRAFT.

    Line items carrying instance_id update that unit's cost/serial in place
    (the unit must belong to this document and not be disposed of); the
    others become new PENDING units. Units not mentioned are left as they are.
    """
    _validate_items(items)
    new_currency = _normalize_currency(currency) if currency is not None else None
    new_rate = _normalize_exchange_rate(exchange_rate) if exchange_rate is not None else None
    if supplier_id is not None:
        catalog_service.get_supplier_for_org(org_id, supplier_id)
    _assert_products_owned(org_id, [item.product_id for item in items])

    def _op() -> Purchase:
        purchase = _get_locked(org_id, purchase_id)
        owned = {unit.id: unit for unit in purchase.instances}

        for item in items:
            if item.instance_id is None:
                purchase.instances.append(_new_unit(item))
                continue

            unit = owned.get(item.instance_id)
            if unit is None:
                raise NotFoundError(f"Instance {item.instance_id} not found on this purchase")
            if unit.product_id != item.product_id:
                raise ValidationError(f"Instance {unit.id}: product cannot be changed")
            if _is_disposed(unit):
                raise ValidationError(f"Instance {unit.id} was already {unit.status} and cannot be edited")
            unit.cost_cents = item.cost_cents
            unit.original_cost_cents = item.original_cost_cents
            unit.serial_number = serial_service.clean_serial(item.serial_number)

        serial_service.assert_no_duplicates(
            org_id,
            [unit.serial_number for unit in purchase.instances if not _is_disposed(unit)],
            exclude_purchase_id=purchase.id,
        )

        if supplier_id is not None:
            purchase.supplier_id = supplier_id
        if new_currency is not None:
            purchase.currency = new_currency
        if new_rate is not None:
            purchase.exchange_rate = new_rate
        if notes is not None:
            purchase.notes = notes

        purchase.total_cost_cents = sum(unit.cost_cents for unit in purchase.instances)
        purchase.status = PURCHASE_DRAFT
        purchase.confirmed_at = None

        db.session.commit()
        return purchase

    purchase = run_with_retry(_op)
    notify_service.invalidate(org_id, INVALIDATED_PATHS)
    return purchase


def assert_costs_complete(purchase: Purchase) -> None:
    """Confirmation gate: every live unit needs a positive cost."""
    missing = [
        unit.id
        for unit in purchase.instances
        if not _is_disposed(unit) and (unit.cost_cents or 0) <= 0
    ]
    if missing:
        raise IncompleteCostError(missing)


def confirm(*, org_id: int, purchase_id: int) -> Purchase:
    """
    Mark the document CONFIRMED and flip its PENDING units to IN_STOCK.

    Idempotent: units already IN_STOCK (or disposed of) are left untouched.
    The cost gate (assert_costs_complete) is the caller's responsibility.
    """
    def _op() -> tuple[Purchase, int]:
        purchase = _get_locked(org_id, purchase_id)
        now = utcnow()
        flipped = 0
        for unit in purchase.instances:
            if unit.status == STATUS_PENDING:
                unit.status = STATUS_IN_STOCK
                unit.updated_at = now
                flipped += 1

        if purchase.status == PURCHASE_DRAFT:
            purchase.status = PURCHASE_CONFIRMED
            purchase.confirmed_at = now
        purchase.total_cost_cents = sum(unit.cost_cents for unit in purchase.instances)

        db.session.commit()
        return purchase, flipped

    purchase, flipped = run_with_retry(_op)
    current_app.logger.info(
        "Purchase %s confirmed: %s unit(s) moved to stock", purchase.reception_number, flipped
    )
    notify_service.invalidate(org_id, INVALIDATED_PATHS)
    return purchase


def delete(*, org_id: int, purchase_id: int) -> None:
    """
    Delete the document and all of its units.

    Refused with PurchaseLockedError when any unit was already sold or
    adjusted out, since deleting it would erase that history.
    """
    def _op() -> str | None:
        purchase = _get_locked(org_id, purchase_id)
        disposed = [unit for unit in purchase.instances if _is_disposed(unit)]
        if disposed:
            raise PurchaseLockedError(len(disposed))

        reception_number = purchase.reception_number
        db.session.delete(purchase)
        db.session.commit()
        return reception_number

    reception_number = run_with_retry(_op)
    current_app.logger.info("Purchase %s deleted for org %s", reception_number, org_id)
    notify_service.invalidate(org_id, INVALIDATED_PATHS)
