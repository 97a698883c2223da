from __future__ import annotations

from ..extensions import db
from stockroom.time_utils import to_utc_z


class Supplier(db.Model):
    """
    Supplier a receiving document is recorded against.

    MULTI-TENANT: Suppliers are scoped to organizations via org_id.
    Bulk intake creates synthetic suppliers ("INITIAL INVENTORY",
    "GENERAL SUPPLIER") per organization on first use.
    """
    __tablename__ = "suppliers"
    __table_args__ = (
        db.UniqueConstraint("org_id", "name", name="uq_suppliers_org_name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    org_id = db.Column(db.Integer, db.ForeignKey("organizations.id"), nullable=False, index=True)

    name = db.Column(db.String(255), nullable=False)
    tax_id = db.Column(db.String(64), nullable=True)
    phone = db.Column(db.String(64), nullable=True)

    is_active = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    organization = db.relationship("Organization", backref=db.backref("suppliers", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "org_id": self.org_id,
            "name": self.name,
            "tax_id": self.tax_id,
            "phone": self.phone,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
        }


class Product(db.Model):
    """
    Product master data. Catalog management lives elsewhere; the ledger only
    needs identity, tenant, and base price (default cost for additions).

    UPC and SKU are unique within an organization.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.UniqueConstraint("org_id", "upc", name="uq_products_org_upc"),
        db.UniqueConstraint("org_id", "sku", name="uq_products_org_sku"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    org_id = db.Column(db.Integer, db.ForeignKey("organizations.id"), nullable=False, index=True)

    upc = db.Column(db.String(64), nullable=True)
    sku = db.Column(db.String(64), nullable=True)
    name = db.Column(db.String(255), nullable=False)
    category = db.Column(db.String(128), nullable=True)

    # Authoritative storage in cents
    base_price_cents = db.Column(db.Integer, nullable=False, default=0)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    organization = db.relationship("Organization", backref=db.backref("products", lazy=True))

    def __repr__(self) -> str:
        return f"<Product id={self.id} upc={self.upc!r} name={self.name!r} org_id={self.org_id}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "org_id": self.org_id,
            "upc": self.upc,
            "sku": self.sku,
            "name": self.name,
            "category": self.category,
            "base_price_cents": self.base_price_cents,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
