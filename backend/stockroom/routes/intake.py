# Overview: Flask API routes for bulk intake (catalog, initial balance, bulk purchase).

# backend/stockroom/routes/intake.py
"""
Bulk intake routes.

Files are parsed client-side; these routes take {"rows": [...]} as JSON.
Bulk intake bypasses serial and signer checks, so it is limited to admins.
"""
from flask import Blueprint, request

from ..decorators import require_admin, require_auth
from ..services import intake_service, tenant_service
from ..validation import parse_balance_rows, parse_bulk_purchase_rows, parse_catalog_rows


intake_bp = Blueprint("intake", __name__, url_prefix="/api/intake")


@intake_bp.post("/catalog")
@require_auth
@require_admin
def import_catalog_route():
    org_id = tenant_service.get_current_org_id()
    rows = parse_catalog_rows(request.get_json(silent=True) or {})
    return intake_service.import_catalog(org_id, rows).to_dict(), 200


@intake_bp.post("/initial-balance")
@require_auth
@require_admin
def initial_balance_route():
    org_id = tenant_service.get_current_org_id()
    rows = parse_balance_rows(request.get_json(silent=True) or {})
    return intake_service.load_initial_balance(org_id, rows).to_dict(), 200


@intake_bp.post("/bulk-purchase")
@require_auth
@require_admin
def bulk_purchase_route():
    org_id = tenant_service.get_current_org_id()
    rows = parse_bulk_purchase_rows(request.get_json(silent=True) or {})
    return intake_service.bulk_purchase(org_id, rows).to_dict(), 200
