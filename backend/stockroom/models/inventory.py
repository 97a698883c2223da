from __future__ import annotations

from sqlalchemy import event
from sqlalchemy.orm import Session

from ..extensions import db
from ..errors import InvariantViolationError
from stockroom.time_utils import utcnow, to_utc_z

# Instance lifecycle
STATUS_PENDING = "PENDING"
STATUS_IN_STOCK = "IN_STOCK"
STATUS_SOLD = "SOLD"
STATUS_ADJUSTMENT = "ADJUSTMENT"
STATUS_REMOVED = "REMOVED"
INSTANCE_STATUSES = {STATUS_PENDING, STATUS_IN_STOCK, STATUS_SOLD, STATUS_ADJUSTMENT, STATUS_REMOVED}

# Statuses in which a serial number is considered taken
ACTIVE_STATUSES = (STATUS_IN_STOCK, STATUS_PENDING)

CONDITION_NEW = "NEW"

# Purchase lifecycle
PURCHASE_DRAFT = "DRAFT"
PURCHASE_CONFIRMED = "CONFIRMED"
PURCHASE_COMPLETED = "COMPLETED"
PURCHASE_STATUSES = {PURCHASE_DRAFT, PURCHASE_CONFIRMED, PURCHASE_COMPLETED}

# Adjustment categories
CATEGORY_CORRECTION = "CORRECTION"
CATEGORY_DAMAGE = "DAMAGE"
CATEGORY_LOSS_THEFT = "LOSS_THEFT"
CATEGORY_INTERNAL_USE = "INTERNAL_USE"
CATEGORY_CUSTOMER_RETURN = "CUSTOMER_RETURN"
CATEGORY_OTHER = "OTHER"
ADJUSTMENT_CATEGORIES = {
    CATEGORY_CORRECTION,
    CATEGORY_DAMAGE,
    CATEGORY_LOSS_THEFT,
    CATEGORY_INTERNAL_USE,
    CATEGORY_CUSTOMER_RETURN,
    CATEGORY_OTHER,
}


class Purchase(db.Model):
    """
    Receiving document: a batch of units received from a supplier.

    LIFECYCLE:
    1. DRAFT: Created or edited; its units are PENDING
    2. CONFIRMED: Units flipped to IN_STOCK
    3. COMPLETED: Synthetic documents written by bulk intake (units IN_STOCK on creation)

    reception_number is YYMM + 4-digit sequence and is unique across ALL
    organizations (see services/reception_service.py).
    """
    __tablename__ = "purchases"
    __table_args__ = (
        db.UniqueConstraint("reception_number", name="uq_purchases_reception_number"),
        db.Index("ix_purchases_org_status_created", "org_id", "status", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    org_id = db.Column(db.Integer, db.ForeignKey("organizations.id"), nullable=False, index=True)
    supplier_id = db.Column(db.Integer, db.ForeignKey("suppliers.id"), nullable=False, index=True)

    reception_number = db.Column(db.String(16), nullable=True)

    currency = db.Column(db.String(3), nullable=False, default="COP")
    exchange_rate = db.Column(db.Numeric(12, 4), nullable=False, default=1)

    # Derived: sum of owned instances' cost_cents
    total_cost_cents = db.Column(db.Integer, nullable=False, default=0)

    status = db.Column(db.String(16), nullable=False, default=PURCHASE_DRAFT, index=True)

    # Free-text attendant and/or verified operator with a name snapshot
    attendant_name = db.Column(db.String(255), nullable=True)
    operator_id = db.Column(db.Integer, db.ForeignKey("operators.id"), nullable=True)
    operator_name = db.Column(db.String(255), nullable=True)

    notes = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    confirmed_at = db.Column(db.DateTime(timezone=True), nullable=True)

    supplier = db.relationship("Supplier", backref=db.backref("purchases", lazy=True))
    operator = db.relationship("Operator")
    instances = db.relationship(
        "Instance",
        back_populates="purchase",
        cascade="all, delete-orphan",
        order_by="Instance.id",
    )

    def to_dict(self, include_items: bool = False) -> dict:
        data = {
            "id": self.id,
            "org_id": self.org_id,
            "supplier_id": self.supplier_id,
            "supplier_name": self.supplier.name if self.supplier else None,
            "reception_number": self.reception_number,
            "currency": self.currency,
            "exchange_rate": str(self.exchange_rate) if self.exchange_rate is not None else None,
            "total_cost_cents": self.total_cost_cents,
            "status": self.status,
            "attendant_name": self.attendant_name,
            "operator_id": self.operator_id,
            "operator_name": self.operator_name,
            "notes": self.notes,
            "item_count": len(self.instances),
            "created_at": to_utc_z(self.created_at),
            "confirmed_at": to_utc_z(self.confirmed_at) if self.confirmed_at else None,
        }
        if include_items:
            data["items"] = [i.to_dict() for i in self.instances]
        return data


class StockAdjustment(db.Model):
    """
    Audited manual addition (quantity > 0) or removal (quantity < 0).

    |quantity| equals the number of instances created or disposed by this
    event. signer_name is always set: either the admin user's name or the
    operator's name snapshot.
    """
    __tablename__ = "stock_adjustments"
    __table_args__ = (
        db.Index("ix_stock_adjustments_org_created", "org_id", "created_at"),
        db.CheckConstraint("quantity <> 0", name="ck_stock_adjustments_quantity_nonzero"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    org_id = db.Column(db.Integer, db.ForeignKey("organizations.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    quantity = db.Column(db.Integer, nullable=False)
    reason = db.Column(db.Text, nullable=False)
    category = db.Column(db.String(32), nullable=False)

    signer_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    signer_name = db.Column(db.String(255), nullable=False)
    operator_id = db.Column(db.Integer, db.ForeignKey("operators.id"), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    product = db.relationship("Product")
    signer = db.relationship("User")
    operator = db.relationship("Operator")

    @property
    def is_addition(self) -> bool:
        return self.quantity > 0

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "org_id": self.org_id,
            "product_id": self.product_id,
            "quantity": self.quantity,
            "reason": self.reason,
            "category": self.category,
            "signer_user_id": self.signer_user_id,
            "signer_name": self.signer_name,
            "operator_id": self.operator_id,
            "created_at": to_utc_z(self.created_at),
        }


class Instance(db.Model):
    """
    One physical, individually tracked unit of a product.

    PROVENANCE (two nullable references per side, checked on every flush):
    - created by exactly one of: purchase_id, created_by_adjustment_id
    - disposed by at most one of: sale_id, disposed_by_adjustment_id

    serial_number is unique only among PENDING/IN_STOCK units of the tenant;
    that rule spans rows and is enforced by serial_service, not by the schema.
    """
    __tablename__ = "instances"
    __table_args__ = (
        db.Index("ix_instances_product_status_created", "product_id", "status", "created_at"),
        db.Index("ix_instances_serial_status", "serial_number", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    serial_number = db.Column(db.String(128), nullable=True)
    status = db.Column(db.String(16), nullable=False, default=STATUS_PENDING, index=True)
    condition = db.Column(db.String(16), nullable=False, default=CONDITION_NEW)

    # Tenant currency, cents
    cost_cents = db.Column(db.Integer, nullable=False, default=0)
    # Pre-conversion cost in the document currency, cents
    original_cost_cents = db.Column(db.Integer, nullable=True)

    purchase_id = db.Column(
        db.Integer, db.ForeignKey("purchases.id", ondelete="CASCADE"), nullable=True, index=True
    )
    created_by_adjustment_id = db.Column(
        db.Integer, db.ForeignKey("stock_adjustments.id"), nullable=True, index=True
    )
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=True, index=True)
    disposed_by_adjustment_id = db.Column(
        db.Integer, db.ForeignKey("stock_adjustments.id"), nullable=True, index=True
    )

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    product = db.relationship("Product", backref=db.backref("instances", lazy="dynamic"))
    purchase = db.relationship("Purchase", back_populates="instances")
    created_by_adjustment = db.relationship(
        "StockAdjustment",
        foreign_keys=[created_by_adjustment_id],
        backref=db.backref("created_instances", lazy=True),
    )
    disposed_by_adjustment = db.relationship(
        "StockAdjustment",
        foreign_keys=[disposed_by_adjustment_id],
        backref=db.backref("disposed_instances", lazy=True),
    )
    sale = db.relationship("Sale", backref=db.backref("instances", lazy=True))

    def __repr__(self) -> str:
        return f"<Instance id={self.id} product_id={self.product_id} status={self.status} serial={self.serial_number!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "serial_number": self.serial_number,
            "status": self.status,
            "condition": self.condition,
            "cost_cents": self.cost_cents,
            "original_cost_cents": self.original_cost_cents,
            "purchase_id": self.purchase_id,
            "created_by_adjustment_id": self.created_by_adjustment_id,
            "sale_id": self.sale_id,
            "disposed_by_adjustment_id": self.disposed_by_adjustment_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


def _has(instance: Instance, fk: str, rel: str) -> bool:
    return getattr(instance, fk) is not None or getattr(instance, rel) is not None


def check_instance_provenance(instance: Instance) -> None:
    """
    Raise InvariantViolationError if the instance's creation/disposition
    references contradict each other or its status.
    """
    if instance.status not in INSTANCE_STATUSES:
        raise InvariantViolationError(f"Unknown instance status {instance.status!r}")

    by_purchase = _has(instance, "purchase_id", "purchase")
    by_adjustment = _has(instance, "created_by_adjustment_id", "created_by_adjustment")
    if by_purchase == by_adjustment:
        raise InvariantViolationError(
            "Instance must be created by exactly one of a purchase or a stock adjustment"
        )

    sold = _has(instance, "sale_id", "sale")
    adjusted_out = _has(instance, "disposed_by_adjustment_id", "disposed_by_adjustment")
    if sold and adjusted_out:
        raise InvariantViolationError(
            "Instance cannot be disposed by both a sale and a stock adjustment"
        )

    if instance.status in ACTIVE_STATUSES and (sold or adjusted_out):
        raise InvariantViolationError(
            f"{instance.status} instance cannot carry a disposing event"
        )
    if instance.status == STATUS_SOLD and not sold:
        raise InvariantViolationError("SOLD instance must reference a sale")
    if instance.status in (STATUS_ADJUSTMENT, STATUS_REMOVED) and not adjusted_out:
        raise InvariantViolationError(
            f"{instance.status} instance must reference the removing adjustment"
        )


@event.listens_for(Session, "before_flush")
def _validate_instances_before_flush(session, flush_context, instances):
    for obj in list(session.new) + list(session.dirty):
        if isinstance(obj, Instance) and obj not in session.deleted:
            check_instance_provenance(obj)
