# Overview: JSON payload coercion for API routes.

"""
Payload helpers.

Routes convert request JSON into the typed arguments services expect.
Integers are strict: floats, booleans, decimals-in-strings and scientific
notation are rejected so that money (cents) is never silently rounded.
"""

from __future__ import annotations

from typing import Any

from .errors import ValidationError
from .services.purchase_service import OperatorSignature, PurchaseLineItem
from .services.intake_service import BalanceRow, BulkPurchaseRow, CatalogRow


# Maximum amount: 9,999,999.99 in major units (999,999,999 cents)
MAX_CENTS = 999_999_999


def coerce_int(value: Any, field: str) -> int:
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise ValidationError(f"{field} must be an integer")
        if "e" in stripped.lower():
            raise ValidationError(f"{field} must be a plain integer (scientific notation not allowed)")
        if "." in stripped:
            raise ValidationError(f"{field} must be an integer (no decimals)")
        try:
            return int(stripped)
        except ValueError:
            raise ValidationError(f"{field} must be an integer")
    if isinstance(value, float):
        raise ValidationError(f"{field} must be an integer, not a decimal")
    raise ValidationError(f"{field} must be an integer")


def get_int(data: dict, field: str, *, required: bool = False, default: int | None = None) -> int | None:
    value = data.get(field)
    if value is None or value == "":
        if required:
            raise ValidationError(f"{field} is required")
        return default
    return coerce_int(value, field)


def get_cents(data: dict, field: str, *, required: bool = False, default: int | None = None) -> int | None:
    value = get_int(data, field, required=required, default=default)
    if value is not None and value > MAX_CENTS:
        raise ValidationError(f"{field} exceeds maximum allowed ({MAX_CENTS})")
    return value


def get_str(data: dict, field: str, *, required: bool = False) -> str | None:
    value = data.get(field)
    if value is None:
        if required:
            raise ValidationError(f"{field} is required")
        return None
    if not isinstance(value, str):
        raise ValidationError(f"{field} must be a string")
    value = value.strip()
    if required and not value:
        raise ValidationError(f"{field} is required")
    return value


def get_list(data: dict, field: str) -> list:
    value = data.get(field)
    if not isinstance(value, list):
        raise ValidationError(f"{field} must be a list")
    return value


def _rows(data: dict, field: str = "rows") -> list[tuple[int, dict]]:
    rows = []
    for index, raw in enumerate(get_list(data, field), start=1):
        if not isinstance(raw, dict):
            raise ValidationError(f"{field}[{index}] must be an object")
        rows.append((index, raw))
    return rows


def parse_line_items(data: dict) -> list[PurchaseLineItem]:
    items = []
    for index, raw in _rows(data, "items"):
        prefix = f"items[{index}]."
        items.append(
            PurchaseLineItem(
                product_id=coerce_int(raw.get("product_id"), prefix + "product_id"),
                cost_cents=get_cents(raw, "cost_cents", default=0),
                serial_number=get_str(raw, "serial_number"),
                original_cost_cents=get_cents(raw, "original_cost_cents"),
                instance_id=get_int(raw, "instance_id"),
            )
        )
    return items


def parse_signature(data: dict) -> OperatorSignature | None:
    operator_id = get_int(data, "operator_id")
    pin = get_str(data, "operator_pin")
    if operator_id is None and not pin:
        return None
    if operator_id is None or not pin:
        raise ValidationError("operator_id and operator_pin must be given together")
    return OperatorSignature(operator_id=operator_id, pin=pin)


def parse_catalog_rows(data: dict) -> list[CatalogRow]:
    return [
        CatalogRow(
            name=get_str(raw, "name") or "",
            upc=get_str(raw, "upc"),
            sku=get_str(raw, "sku"),
            category=get_str(raw, "category"),
            base_price_cents=get_cents(raw, "base_price_cents"),
            quantity=get_int(raw, "quantity", default=0),
            unit_cost_cents=get_cents(raw, "unit_cost_cents", default=0),
            row_number=get_int(raw, "row_number", default=index),
        )
        for index, raw in _rows(data)
    ]


def parse_balance_rows(data: dict) -> list[BalanceRow]:
    return [
        BalanceRow(
            upc=get_str(raw, "upc"),
            sku=get_str(raw, "sku"),
            quantity=get_int(raw, "quantity", default=0),
            unit_cost_cents=get_cents(raw, "unit_cost_cents", default=0),
            base_price_cents=get_cents(raw, "base_price_cents"),
            days_old=get_int(raw, "days_old", default=0),
            row_number=get_int(raw, "row_number", default=index),
        )
        for index, raw in _rows(data)
    ]


def parse_bulk_purchase_rows(data: dict) -> list[BulkPurchaseRow]:
    return [
        BulkPurchaseRow(
            upc=get_str(raw, "upc"),
            sku=get_str(raw, "sku"),
            quantity=get_int(raw, "quantity", default=0),
            unit_cost_cents=get_cents(raw, "unit_cost_cents", default=0),
            row_number=get_int(raw, "row_number", default=index),
        )
        for index, raw in _rows(data)
    ]
