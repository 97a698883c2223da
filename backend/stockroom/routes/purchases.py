# Overview: Flask API routes for receiving documents (purchases).

# backend/stockroom/routes/purchases.py
"""
Receiving document routes.

SECURITY: All routes require authentication; the tenant comes from the session.
Typed service errors (validation, duplicates, numbering, not found) are
rendered by the app-level LedgerError handler.
"""
from flask import Blueprint, request

from ..decorators import require_auth
from ..services import purchase_service, tenant_service
from ..validation import (
    get_int,
    get_str,
    parse_line_items,
    parse_signature,
)


purchases_bp = Blueprint("purchases", __name__, url_prefix="/api/purchases")


@purchases_bp.get("")
@require_auth
def list_purchases_route():
    org_id = tenant_service.get_current_org_id()
    args = request.args
    purchases = purchase_service.list_purchases(
        org_id,
        status=args.get("status") or None,
        supplier_id=get_int(args, "supplier_id"),
        limit=get_int(args, "limit", default=50),
        offset=get_int(args, "offset", default=0),
    )
    return {"purchases": [p.to_dict() for p in purchases]}, 200


@purchases_bp.get("/<int:purchase_id>")
@require_auth
def get_purchase_route(purchase_id: int):
    org_id = tenant_service.get_current_org_id()
    purchase = purchase_service.get_purchase(org_id, purchase_id)
    return {"purchase": purchase.to_dict(include_items=True)}, 200


@purchases_bp.post("")
@require_auth
def create_purchase_route():
    """
    Create a DRAFT receiving document.

    Body:
        supplier_id, items: [{product_id, cost_cents, serial_number?, original_cost_cents?}],
        currency?, exchange_rate?, attendant_name?, notes?, operator_id?, operator_pin?
    """
    org_id = tenant_service.get_current_org_id()
    payload = request.get_json(silent=True) or {}

    purchase = purchase_service.create_draft(
        org_id=org_id,
        supplier_id=get_int(payload, "supplier_id", required=True),
        items=parse_line_items(payload),
        currency=get_str(payload, "currency") or "COP",
        exchange_rate=payload.get("exchange_rate", 1),
        attendant_name=get_str(payload, "attendant_name"),
        notes=get_str(payload, "notes"),
        signature=parse_signature(payload),
    )
    return {"purchase": purchase.to_dict(include_items=True)}, 201


@purchases_bp.put("/<int:purchase_id>")
@require_auth
def update_purchase_route(purchase_id: int):
    """Edit a receiving document; it returns to DRAFT and must be confirmed again."""
    org_id = tenant_service.get_current_org_id()
    payload = request.get_json(silent=True) or {}

    purchase = purchase_service.update(
        org_id=org_id,
        purchase_id=purchase_id,
        items=parse_line_items(payload),
        supplier_id=get_int(payload, "supplier_id"),
        currency=get_str(payload, "currency"),
        exchange_rate=payload.get("exchange_rate"),
        notes=get_str(payload, "notes"),
    )
    return {"purchase": purchase.to_dict(include_items=True)}, 200


@purchases_bp.post("/<int:purchase_id>/confirm")
@require_auth
def confirm_purchase_route(purchase_id: int):
    """Cost gate, then move the document's PENDING units into stock."""
    org_id = tenant_service.get_current_org_id()

    purchase = purchase_service.get_purchase(org_id, purchase_id)
    purchase_service.assert_costs_complete(purchase)

    purchase = purchase_service.confirm(org_id=org_id, purchase_id=purchase_id)
    return {"purchase": purchase.to_dict(include_items=True)}, 200


@purchases_bp.delete("/<int:purchase_id>")
@require_auth
def delete_purchase_route(purchase_id: int):
    org_id = tenant_service.get_current_org_id()
    purchase_service.delete(org_id=org_id, purchase_id=purchase_id)
    return {"deleted": True, "purchase_id": purchase_id}, 200
