# Overview: Flask API routes for serial-number checks and scanner lookups.

from flask import Blueprint, request

from ..decorators import require_auth
from ..errors import ValidationError
from ..services import instance_service, serial_service, tenant_service
from ..validation import get_list


serials_bp = Blueprint("serials", __name__, url_prefix="/api/serials")


@serials_bp.post("/duplicates")
@require_auth
def find_duplicates_route():
    """Body: {"serials": [...]}. Returns the ones already active in stock."""
    org_id = tenant_service.get_current_org_id()
    payload = request.get_json(silent=True) or {}
    serials = get_list(payload, "serials")
    if not all(isinstance(s, str) or s is None for s in serials):
        raise ValidationError("serials must be a list of strings")

    duplicates = serial_service.find_active_duplicates(org_id, serials)
    return {"duplicates": duplicates, "batch_repeats": serial_service.find_batch_repeats(serials)}, 200


@serials_bp.get("/<path:serial>")
@require_auth
def lookup_serial_route(serial: str):
    """
    Scanner lookup.

    ?include_sold=true also accepts SOLD units; ?ownership=true returns the
    holder report (null when unknown) instead of enforcing availability.
    """
    org_id = tenant_service.get_current_org_id()

    if request.args.get("ownership", "").lower() in ("1", "true", "yes"):
        return {"ownership": instance_service.check_serial_ownership(org_id, serial)}, 200

    include_sold = request.args.get("include_sold", "").lower() in ("1", "true", "yes")
    instance = instance_service.lookup_serial(org_id, serial, include_sold=include_sold)
    return {"instance": instance.to_dict(), "product": instance.product.to_dict()}, 200
