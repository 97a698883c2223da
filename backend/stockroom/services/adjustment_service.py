# Overview: Signed manual stock additions and FIFO removals (stock adjustments).

"""
Stock Adjustment Protocol

An adjustment adds or removes units outside of receiving and selling. Every
adjustment is bound to a verified signer (see signer_service):

- Admin signer: recorded as signer_user_id, name snapshot in signer_name.
- Operator signer: recorded under the signed-in user who keyed it in
  (recorded_by_user_id), with the operator's name snapshot in signer_name
  and appended to the reason as a co-signature.

quantity > 0 creates |quantity| IN_STOCK units referencing the adjustment.
quantity < 0 disposes of the |quantity| OLDEST IN_STOCK units (FIFO by
created_at, then id). The candidate rows are selected FOR UPDATE in the same
transaction that flips them, and a short selection aborts with
InsufficientStockError before anything is written.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from flask import current_app

from ..extensions import db
from ..errors import (
    InsufficientStockError,
    UnauthenticatedError,
    ValidationError,
)
from ..models import Instance, StockAdjustment, User
from ..models.inventory import (
    ADJUSTMENT_CATEGORIES,
    CATEGORY_CORRECTION,
    CONDITION_NEW,
    STATUS_ADJUSTMENT,
    STATUS_IN_STOCK,
)
from . import catalog_service, notify_service, signer_service
from .concurrency import lock_for_update, run_with_retry
from .signer_service import Signer
from stockroom.time_utils import utcnow


INVALIDATED_PATHS = ("/inventory", "/inventory/adjustments")


@dataclass
class AdjustmentResult:
    adjustment: StockAdjustment
    signer: Signer
    instances: list[Instance] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "adjustment": self.adjustment.to_dict(),
            "signer": {
                "kind": self.signer.kind,
                "name": self.signer.name,
                "user_id": self.signer.user_id,
                "operator_id": self.signer.operator_id,
            },
            "instance_ids": [unit.id for unit in self.instances],
        }


def _validate(quantity, reason: str | None, category: str, unit_cost_cents) -> str:
    if not isinstance(quantity, int) or isinstance(quantity, bool):
        raise ValidationError("quantity must be an integer")
    if quantity == 0:
        raise ValidationError("quantity cannot be zero")
    reason = (reason or "").strip()
    if not reason:
        raise ValidationError("reason is required")
    if category not in ADJUSTMENT_CATEGORIES:
        raise ValidationError(
            f"Invalid category. Must be one of: {', '.join(sorted(ADJUSTMENT_CATEGORIES))}"
        )
    if unit_cost_cents is not None:
        if not isinstance(unit_cost_cents, int) or isinstance(unit_cost_cents, bool) or unit_cost_cents <= 0:
            raise ValidationError("unit_cost_cents must be a positive integer")
    return reason


def adjust(
    *,
    org_id: int,
    product_id: int,
    pin: str,
    quantity: int,
    reason: str,
    category: str = CATEGORY_CORRECTION,
    unit_cost_cents: int | None = None,
    recorded_by_user_id: int | None = None,
) -> AdjustmentResult:
    """
    Add (quantity > 0) or remove (quantity < 0) units of a product.

    Raises:
        ValidationError: zero quantity, empty reason, bad category or cost
        InvalidSignatureError / InsufficientPrivilegeError: signer rejected
        NotFoundError: product outside the organization
        InsufficientStockError: removal larger than IN_STOCK count (no change made)
    """
    reason = _validate(quantity, reason, category, unit_cost_cents)
    signer = signer_service.require_adjustment_signer(org_id, pin)

    if signer.is_operator:
        if recorded_by_user_id is None:
            raise UnauthenticatedError("Operator signatures must be recorded by a signed-in user")
        signer_user_id = recorded_by_user_id
        reason = f"{reason} (Signed by operator: {signer.name})"
    else:
        signer_user_id = signer.user_id

    def _op() -> AdjustmentResult:
        product = catalog_service.find_product(org_id, product_id=product_id, lock=True)
        now = utcnow()

        adjustment = StockAdjustment(
            org_id=org_id,
            product_id=product.id,
            quantity=quantity,
            reason=reason,
            category=category,
            signer_user_id=signer_user_id,
            signer_name=signer.name,
            operator_id=signer.operator_id,
            created_at=now,
        )
        db.session.add(adjustment)

        if quantity > 0:
            cost = unit_cost_cents if unit_cost_cents is not None else (product.base_price_cents or 0)
            units = [
                Instance(
                    product_id=product.id,
                    status=STATUS_IN_STOCK,
                    condition=CONDITION_NEW,
                    cost_cents=cost,
                    created_by_adjustment=adjustment,
                    created_at=now,
                    updated_at=now,
                )
                for _ in range(quantity)
            ]
            db.session.add_all(units)
        else:
            requested = -quantity
            units = lock_for_update(
                db.session.query(Instance)
                .filter(
                    Instance.product_id == product.id,
                    Instance.status == STATUS_IN_STOCK,
                )
                .order_by(Instance.created_at.asc(), Instance.id.asc())
                .limit(requested)
            ).all()
            if len(units) < requested:
                raise InsufficientStockError(available=len(units), requested=requested)
            for unit in units:
                unit.status = STATUS_ADJUSTMENT
                unit.disposed_by_adjustment = adjustment
                unit.updated_at = now

        recorder = db.session.get(User, signer_user_id)
        if recorder is not None:
            recorder.last_action_at = now

        db.session.commit()
        return AdjustmentResult(adjustment=adjustment, signer=signer, instances=units)

    result = run_with_retry(_op)

    current_app.logger.info(
        "Stock adjustment %s on product %s: %+d unit(s), signed by %s (%s)",
        result.adjustment.id, product_id, quantity, signer.name, signer.kind,
    )
    notify_service.invalidate(org_id, INVALIDATED_PATHS)
    return result


def list_adjustments(
    org_id: int,
    *,
    product_id: int | None = None,
    limit: int = 100,
    offset: int = 0,
) -> list[StockAdjustment]:
    query = db.session.query(StockAdjustment).filter(StockAdjustment.org_id == org_id)
    if product_id is not None:
        query = query.filter(StockAdjustment.product_id == product_id)
    return (
        query.order_by(StockAdjustment.created_at.desc(), StockAdjustment.id.desc())
        .limit(max(1, min(limit, 500)))
        .offset(max(0, offset))
        .all()
    )
