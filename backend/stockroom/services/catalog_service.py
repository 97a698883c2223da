# Overview: Product and supplier lookups used by the ledger (catalog collaborator).

"""
Catalog lookups.

Catalog management (creating, editing, pricing products) is not part of the
ledger. This module only resolves products and suppliers for a tenant and
provides the upsert used by the catalog import.

Lookups never distinguish "missing" from "belongs to another organization":
both raise NotFoundError.
"""

from __future__ import annotations

from ..extensions import db
from ..errors import NotFoundError, ValidationError
from ..models import Product, Supplier
from .concurrency import lock_for_update


def find_product(
    org_id: int,
    *,
    product_id: int | None = None,
    upc: str | None = None,
    sku: str | None = None,
    lock: bool = False,
) -> Product:
    """
    Resolve a product by id, or by UPC first and SKU second.

    Raises NotFoundError if nothing matches within the organization.
    """
    query = db.session.query(Product).filter(Product.org_id == org_id)
    if lock:
        query = lock_for_update(query)

    if product_id is not None:
        product = query.filter(Product.id == product_id).first()
        if product is None:
            raise NotFoundError(f"Product {product_id} not found")
        return product

    product = None
    if upc:
        product = query.filter(Product.upc == upc.strip()).first()
    if product is None and sku:
        product = query.filter(Product.sku == sku.strip()).first()
    if product is None:
        raise NotFoundError(f"Product not found (UPC: {upc or '-'}, SKU: {sku or '-'})")
    return product


def find_product_or_none(org_id: int, *, upc: str | None = None, sku: str | None = None) -> Product | None:
    try:
        return find_product(org_id, upc=upc, sku=sku)
    except NotFoundError:
        return None


def upsert_product(
    org_id: int,
    *,
    upc: str | None,
    sku: str | None,
    name: str,
    category: str | None = None,
    base_price_cents: int | None = None,
) -> tuple[Product, bool]:
    """
    Create or update a product keyed by UPC (then SKU). Does not commit.

    Returns (product, created).
    """
    if not (upc or sku):
        raise ValidationError("UPC or SKU is required")
    if not name or not name.strip():
        raise ValidationError("Product name is required")

    product = find_product_or_none(org_id, upc=upc, sku=sku)
    created = product is None
    if created:
        product = Product(org_id=org_id, upc=upc or None, sku=sku or None, base_price_cents=0)
        db.session.add(product)

    product.name = name.strip()
    if category:
        product.category = category.strip()
    if base_price_cents is not None and base_price_cents > 0:
        product.base_price_cents = base_price_cents

    db.session.flush()
    return product, created


def get_supplier_for_org(org_id: int, supplier_id: int) -> Supplier:
    supplier = db.session.query(Supplier).filter_by(id=supplier_id, org_id=org_id).first()
    if supplier is None:
        raise NotFoundError(f"Supplier {supplier_id} not found")
    return supplier


def ensure_system_supplier(org_id: int, name: str, tax_id: str = "000000000") -> Supplier:
    """Get or create a synthetic supplier used by bulk intake. Does not commit."""
    supplier = db.session.query(Supplier).filter_by(org_id=org_id, name=name).first()
    if supplier is None:
        supplier = Supplier(org_id=org_id, name=name, tax_id=tax_id)
        db.session.add(supplier)
        db.session.flush()
    return supplier
