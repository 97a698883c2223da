# Overview: Read side of the instance ledger plus the sale disposition hook.

from __future__ import annotations

from sqlalchemy import case, func

from ..extensions import db
from ..errors import (
    InsufficientStockError,
    NotFoundError,
    SerialUnavailableError,
    ValidationError,
)
from ..models import Instance, Product, Sale
from ..models.inventory import (
    INSTANCE_STATUSES,
    STATUS_IN_STOCK,
    STATUS_PENDING,
    STATUS_SOLD,
)
from . import catalog_service, notify_service, serial_service
from .concurrency import lock_for_update, run_with_retry
from stockroom.time_utils import utcnow, to_utc_z


def get_stock_summary(org_id: int, product_id: int) -> dict:
    """IN_STOCK/PENDING counts, average IN_STOCK cost and oldest IN_STOCK unit date."""
    product = catalog_service.find_product(org_id, product_id=product_id)

    counts = dict(
        db.session.query(Instance.status, func.count(Instance.id))
        .filter(Instance.product_id == product.id)
        .group_by(Instance.status)
        .all()
    )
    avg_cost, oldest = (
        db.session.query(func.avg(Instance.cost_cents), func.min(Instance.created_at))
        .filter(Instance.product_id == product.id, Instance.status == STATUS_IN_STOCK)
        .one()
    )

    return {
        "product_id": product.id,
        "product_name": product.name,
        "in_stock": counts.get(STATUS_IN_STOCK, 0),
        "pending": counts.get(STATUS_PENDING, 0),
        "by_status": {status: counts.get(status, 0) for status in sorted(INSTANCE_STATUSES)},
        "average_cost_cents": int(round(avg_cost)) if avg_cost is not None else None,
        "oldest_in_stock_at": to_utc_z(oldest) if oldest else None,
    }


def list_instances(
    org_id: int,
    product_id: int,
    *,
    status: str | None = None,
    limit: int = 200,
    offset: int = 0,
) -> list[Instance]:
    """Units of a product, oldest first (the order removals consume them in)."""
    product = catalog_service.find_product(org_id, product_id=product_id)
    query = db.session.query(Instance).filter(Instance.product_id == product.id)
    if status:
        if status not in INSTANCE_STATUSES:
            raise ValidationError(f"Invalid status. Must be one of: {', '.join(sorted(INSTANCE_STATUSES))}")
        query = query.filter(Instance.status == status)
    return (
        query.order_by(Instance.created_at.asc(), Instance.id.asc())
        .limit(max(1, min(limit, 1000)))
        .offset(max(0, offset))
        .all()
    )


def _find_by_serial(org_id: int, serial: str) -> Instance | None:
    # Active units first, then the most recently disposed one
    active_first = case((Instance.status.in_((STATUS_IN_STOCK, STATUS_PENDING)), 0), else_=1)
    return (
        db.session.query(Instance)
        .join(Product, Instance.product_id == Product.id)
        .filter(Product.org_id == org_id, Instance.serial_number == serial)
        .order_by(active_first, Instance.updated_at.desc(), Instance.id.desc())
        .first()
    )


def lookup_serial(org_id: int, serial: str, *, include_sold: bool = False) -> Instance:
    """
    Scanner lookup. Only IN_STOCK units are returned, plus SOLD ones when
    include_sold is set (returns and warranty checks).
    """
    value = serial_service.clean_serial(serial)
    if value is None:
        raise ValidationError("serial is required")

    instance = _find_by_serial(org_id, value)
    if instance is None:
        raise NotFoundError(f"Serial {value} not found")

    allowed = {STATUS_IN_STOCK, STATUS_SOLD} if include_sold else {STATUS_IN_STOCK}
    if instance.status not in allowed:
        raise SerialUnavailableError(value, instance.status)
    return instance


def check_serial_ownership(org_id: int, serial: str) -> dict | None:
    """Who holds this serial in the organization, or None when unknown."""
    value = serial_service.clean_serial(serial)
    if value is None:
        return None
    instance = _find_by_serial(org_id, value)
    if instance is None:
        return None
    return {
        "instance_id": instance.id,
        "product_id": instance.product_id,
        "product_name": instance.product.name,
        "status": instance.status,
        "sale_id": instance.sale_id,
    }


def mark_sold(*, org_id: int, instance_ids: list[int], sale_id: int) -> list[Instance]:
    """
    Dispose of units by a completed sale: IN_STOCK -> SOLD.

    All or nothing: if any unit is missing, foreign or not IN_STOCK, no unit
    is changed and InsufficientStockError reports how many were available.
    """
    wanted = sorted(set(instance_ids))
    if not wanted:
        raise ValidationError("instance_ids is required")

    def _op() -> list[Instance]:
        sale = db.session.query(Sale).filter_by(id=sale_id, org_id=org_id).first()
        if sale is None:
            raise NotFoundError(f"Sale {sale_id} not found")

        units = lock_for_update(
            db.session.query(Instance)
            .join(Product, Instance.product_id == Product.id)
            .filter(
                Product.org_id == org_id,
                Instance.id.in_(wanted),
                Instance.status == STATUS_IN_STOCK,
            )
            .order_by(Instance.id)
        ).all()
        if len(units) != len(wanted):
            raise InsufficientStockError(available=len(units), requested=len(wanted))

        now = utcnow()
        for unit in units:
            unit.status = STATUS_SOLD
            unit.sale = sale
            unit.updated_at = now

        db.session.commit()
        return units

    units = run_with_retry(_op)
    notify_service.invalidate(org_id, ("/inventory", "/sales"))
    return units
