# Overview: Flask API routes for stock reads and signed stock adjustments.

# backend/stockroom/routes/stock.py
"""
Stock routes.

Adjustments carry the signer's PIN in the body ("pin"). The route never
decides who signed; signer_service does, and an operator signature is
recorded under the signed-in user.
"""
from flask import Blueprint, request

from ..decorators import require_auth
from ..models.inventory import CATEGORY_CORRECTION
from ..services import adjustment_service, instance_service, tenant_service
from ..validation import get_cents, get_int, get_str


stock_bp = Blueprint("stock", __name__, url_prefix="/api")


@stock_bp.get("/products/<int:product_id>/stock")
@require_auth
def stock_summary_route(product_id: int):
    org_id = tenant_service.get_current_org_id()
    return {"stock": instance_service.get_stock_summary(org_id, product_id)}, 200


@stock_bp.get("/products/<int:product_id>/instances")
@require_auth
def list_instances_route(product_id: int):
    org_id = tenant_service.get_current_org_id()
    instances = instance_service.list_instances(
        org_id,
        product_id,
        status=request.args.get("status") or None,
        limit=get_int(request.args, "limit", default=200),
        offset=get_int(request.args, "offset", default=0),
    )
    return {"instances": [i.to_dict() for i in instances]}, 200


@stock_bp.post("/products/<int:product_id>/adjustments")
@require_auth
def adjust_stock_route(product_id: int):
    """
    Body: {"pin", "quantity" (signed, non-zero), "reason", "category"?, "unit_cost_cents"?}
    """
    org_id = tenant_service.get_current_org_id()
    payload = request.get_json(silent=True) or {}

    result = adjustment_service.adjust(
        org_id=org_id,
        product_id=product_id,
        pin=get_str(payload, "pin") or "",
        quantity=get_int(payload, "quantity", required=True),
        reason=get_str(payload, "reason") or "",
        category=get_str(payload, "category") or CATEGORY_CORRECTION,
        unit_cost_cents=get_cents(payload, "unit_cost_cents"),
        recorded_by_user_id=tenant_service.get_current_user_id(),
    )
    return result.to_dict(), 201


@stock_bp.get("/adjustments")
@require_auth
def list_adjustments_route():
    org_id = tenant_service.get_current_org_id()
    adjustments = adjustment_service.list_adjustments(
        org_id,
        product_id=get_int(request.args, "product_id"),
        limit=get_int(request.args, "limit", default=100),
        offset=get_int(request.args, "offset", default=0),
    )
    return {"adjustments": [a.to_dict() for a in adjustments]}, 200
