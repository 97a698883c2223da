# Overview: Bulk intake adapters (catalog import, initial balance, bulk purchase).

"""
Bulk Intake

Rows arrive already parsed (file parsing and column detection happen before
this layer). Each adapter writes serial-less IN_STOCK units onto a synthetic
COMPLETED purchase that receives a normal reception number.

Bulk rows are trusted administrative input: they skip duplicate-serial and
signer checks. Row-level problems (unknown product, bad numbers) are reported
in IntakeResult.errors and the row is skipped; anything else aborts the run
and nothing is written.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable

from flask import current_app

from ..extensions import db
from ..errors import LedgerError, ValidationError
from ..models import Instance, Product, Purchase, Supplier
from ..models.inventory import CONDITION_NEW, PURCHASE_COMPLETED, STATUS_IN_STOCK
from . import catalog_service, notify_service, reception_service
from .concurrency import run_with_retry
from stockroom.time_utils import days_ago, utcnow


INITIAL_BALANCE_SUPPLIER = "INITIAL INVENTORY"
INITIAL_BALANCE_NOTE = "INITIAL_BALANCE"
GENERAL_SUPPLIER = "GENERAL SUPPLIER"
BULK_PURCHASE_NOTE = "BULK IMPORT"
CATALOG_IMPORT_NOTE = "CATALOG IMPORT"
SYSTEM_ATTENDANT = "SYSTEM"

INVALIDATED_PATHS = ("/inventory", "/inventory/purchases")


@dataclass
class CatalogRow:
    name: str
    upc: str | None = None
    sku: str | None = None
    category: str | None = None
    base_price_cents: int | None = None
    quantity: int = 0
    unit_cost_cents: int = 0
    row_number: int | None = None


@dataclass
class BalanceRow:
    upc: str | None
    quantity: int
    unit_cost_cents: int
    base_price_cents: int | None = None
    days_old: int = 0
    sku: str | None = None
    row_number: int | None = None


@dataclass
class BulkPurchaseRow:
    upc: str | None
    sku: str | None
    quantity: int
    unit_cost_cents: int
    row_number: int | None = None


@dataclass
class IntakeResult:
    processed: int = 0
    units: int = 0
    skipped: int = 0
    errors: list[str] = field(default_factory=list)
    purchase_id: int | None = None

    def to_dict(self) -> dict:
        return {
            "processed": self.processed,
            "units": self.units,
            "skipped": self.skipped,
            "errors": list(self.errors),
            "purchase_id": self.purchase_id,
        }


def _label(row, index: int) -> str:
    return f"Row {row.row_number if row.row_number is not None else index}"


def _check_amounts(quantity, unit_cost_cents) -> None:
    if not isinstance(quantity, int) or isinstance(quantity, bool):
        raise ValidationError("quantity must be an integer")
    if not isinstance(unit_cost_cents, int) or unit_cost_cents < 0:
        raise ValidationError("unit cost must be a non-negative integer (cents)")


def _append_units(purchase: Purchase, product: Product, quantity: int, cost_cents: int, created_at=None) -> None:
    created_at = created_at or utcnow()
    for _ in range(quantity):
        purchase.instances.append(
            Instance(
                product_id=product.id,
                serial_number=None,
                status=STATUS_IN_STOCK,
                condition=CONDITION_NEW,
                cost_cents=cost_cents,
                created_at=created_at,
                updated_at=created_at,
            )
        )


def _find_synthetic(org_id: int, supplier_name: str, note: str) -> Purchase | None:
    return (
        db.session.query(Purchase)
        .join(Supplier, Purchase.supplier_id == Supplier.id)
        .filter(
            Purchase.org_id == org_id,
            Purchase.status == PURCHASE_COMPLETED,
            Purchase.notes == note,
            Supplier.name == supplier_name,
        )
        .order_by(Purchase.id)
        .first()
    )


def _finish(purchase: Purchase | None, result: IntakeResult) -> IntakeResult:
    if purchase is not None:
        purchase.total_cost_cents = sum(unit.cost_cents for unit in purchase.instances)
        db.session.flush()
        result.purchase_id = purchase.id
    db.session.commit()
    return result


def _run(
    org_id: int,
    process: Callable[[Purchase | None], IntakeResult],
    *,
    supplier_name: str,
    note: str,
    reuse: bool = False,
    needs_purchase: bool = True,
) -> IntakeResult:
    """
    Run `process` against the synthetic purchase of this run in one transaction.

    A new purchase is only kept when at least one unit was appended to it.
    """
    if not needs_purchase:
        return run_with_retry(lambda: _finish(None, process(None)))

    if reuse:
        def _op_existing():
            purchase = _find_synthetic(org_id, supplier_name, note)
            if purchase is None:
                return None
            return _finish(purchase, process(purchase))

        result = run_with_retry(_op_existing)
        if result is not None:
            return result

    def _op(reception_number: str) -> IntakeResult:
        now = utcnow()
        # Kept out of the session until it has units
        purchase = Purchase(
            org_id=org_id,
            reception_number=reception_number,
            status=PURCHASE_COMPLETED,
            attendant_name=SYSTEM_ATTENDANT,
            notes=note,
            created_at=now,
            confirmed_at=now,
        )

        result = process(purchase)
        if result.units == 0:
            return _finish(None, result)

        purchase.supplier_id = catalog_service.ensure_system_supplier(org_id, supplier_name).id
        db.session.add(purchase)
        return _finish(purchase, result)

    return run_with_retry(lambda: reception_service.allocate(_op))


def import_catalog(org_id: int, rows: list[CatalogRow]) -> IntakeResult:
    """
    Upsert products (UPC first, then SKU). Rows with quantity > 0 also put
    that many units in stock at the row's unit cost.
    """
    def process(purchase: Purchase | None) -> IntakeResult:
        result = IntakeResult()
        for index, row in enumerate(rows, start=1):
            try:
                _check_amounts(row.quantity, row.unit_cost_cents)
                product, created = catalog_service.upsert_product(
                    org_id,
                    upc=(row.upc or "").strip() or None,
                    sku=(row.sku or "").strip() or None,
                    name=row.name,
                    category=row.category,
                    base_price_cents=row.base_price_cents,
                )
            except LedgerError as exc:
                result.skipped += 1
                result.errors.append(f"{_label(row, index)}: {exc.message}")
                continue

            result.processed += 1
            if purchase is not None and row.quantity > 0:
                _append_units(purchase, product, row.quantity, row.unit_cost_cents)
                result.units += row.quantity
        return result

    needs_purchase = any(isinstance(r.quantity, int) and r.quantity > 0 for r in rows)
    result = _run(
        org_id,
        process,
        supplier_name=GENERAL_SUPPLIER,
        note=CATALOG_IMPORT_NOTE,
        needs_purchase=needs_purchase,
    )
    current_app.logger.info(
        "Catalog import for org %s: %s product(s), %s unit(s), %s skipped",
        org_id, result.processed, result.units, result.skipped,
    )
    notify_service.invalidate(org_id, INVALIDATED_PATHS)
    return result


def load_initial_balance(org_id: int, rows: list[BalanceRow]) -> IntakeResult:
    """
    Load opening stock onto the organization's single INITIAL_BALANCE purchase.

    Units are backdated by the row's days_old so aging and FIFO see them as
    old stock. A positive base price on the row updates the product.
    """
    def process(purchase: Purchase) -> IntakeResult:
        result = IntakeResult()
        now = utcnow()
        for index, row in enumerate(rows, start=1):
            try:
                _check_amounts(row.quantity, row.unit_cost_cents)
            except ValidationError as exc:
                result.skipped += 1
                result.errors.append(f"{_label(row, index)}: {exc.message}")
                continue
            if row.quantity <= 0:
                result.skipped += 1
                continue

            product = catalog_service.find_product_or_none(org_id, upc=row.upc, sku=row.sku)
            if product is None:
                result.skipped += 1
                result.errors.append(f"{_label(row, index)}: product not found (UPC: {row.upc or '-'}). Skipped.")
                current_app.logger.warning("Initial balance: unknown product UPC %s for org %s", row.upc, org_id)
                continue

            if row.base_price_cents and row.base_price_cents > 0:
                product.base_price_cents = row.base_price_cents

            created_at = days_ago(row.days_old or 0, now=now)
            _append_units(purchase, product, row.quantity, row.unit_cost_cents, created_at)
            result.processed += 1
            result.units += row.quantity
        return result

    result = _run(
        org_id,
        process,
        supplier_name=INITIAL_BALANCE_SUPPLIER,
        note=INITIAL_BALANCE_NOTE,
        reuse=True,
    )
    current_app.logger.info(
        "Initial balance for org %s: %s unit(s) from %s row(s), %s skipped",
        org_id, result.units, result.processed, result.skipped,
    )
    notify_service.invalidate(org_id, INVALIDATED_PATHS)
    return result


def bulk_purchase(org_id: int, rows: list[BulkPurchaseRow]) -> IntakeResult:
    """
    Receive many serial-less units at once on one new purchase from the
    general supplier. Products are matched by UPC, then SKU; unknown
    products are skipped.
    """
    def process(purchase: Purchase) -> IntakeResult:
        result = IntakeResult()
        for index, row in enumerate(rows, start=1):
            try:
                _check_amounts(row.quantity, row.unit_cost_cents)
            except ValidationError as exc:
                result.skipped += 1
                result.errors.append(f"{_label(row, index)}: {exc.message}")
                continue
            if row.quantity <= 0:
                continue

            product = catalog_service.find_product_or_none(org_id, upc=row.upc, sku=row.sku)
            if product is None:
                result.skipped += 1
                continue

            _append_units(purchase, product, row.quantity, row.unit_cost_cents)
            result.processed += 1
            result.units += row.quantity
        return result

    result = _run(org_id, process, supplier_name=GENERAL_SUPPLIER, note=BULK_PURCHASE_NOTE)
    current_app.logger.info(
        "Bulk purchase for org %s: %s unit(s), %s row(s) skipped",
        org_id, result.units, result.skipped,
    )
    notify_service.invalidate(org_id, INVALIDATED_PATHS)
    return result
