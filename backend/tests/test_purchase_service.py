# Overview: Pytest coverage for receiving document create/update/confirm/delete.

from decimal import Decimal

import pytest

from stockroom.errors import (
    DuplicateSerialError,
    IncompleteCostError,
    InvalidSignatureError,
    NotFoundError,
    PurchaseLockedError,
    ValidationError,
)
from stockroom.models import Instance, Purchase
from stockroom.models.inventory import (
    PURCHASE_CONFIRMED,
    PURCHASE_DRAFT,
    STATUS_IN_STOCK,
    STATUS_PENDING,
    STATUS_SOLD,
)
from stockroom.services import catalog_service, instance_service, purchase_service
from stockroom.services.purchase_service import OperatorSignature, PurchaseLineItem
from stockroom.extensions import db
from stockroom.models import Sale

from conftest import OPERATOR_A_PIN, seed_stock


def _create(org, supplier, product, *items, **kwargs):
    kwargs.setdefault("attendant_name", "Front desk")
    items = items or (PurchaseLineItem(product_id=product.id, cost_cents=1000),)
    return purchase_service.create_draft(
        org_id=org.id,
        supplier_id=supplier.id,
        items=list(items),
        **kwargs,
    )


class TestCreateDraft:

    def test_creates_pending_units_and_total(self, db_session, org_a, supplier_a, product_a):
        purchase = _create(
            org_a, supplier_a, product_a,
            PurchaseLineItem(product_id=product_a.id, cost_cents=1200, serial_number="S-1"),
            PurchaseLineItem(product_id=product_a.id, cost_cents=800, original_cost_cents=20),
            currency="usd",
            exchange_rate="40.5",
            notes="Invoice 77",
        )

        assert purchase.status == PURCHASE_DRAFT
        assert purchase.currency == "USD"
        assert purchase.exchange_rate == Decimal("40.5")
        assert purchase.total_cost_cents == 2000
        assert [u.status for u in purchase.instances] == [STATUS_PENDING, STATUS_PENDING]
        assert purchase.instances[1].original_cost_cents == 20
        assert purchase.reception_number is not None

    def test_requires_items(self, db_session, org_a, supplier_a):
        with pytest.raises(ValidationError):
            purchase_service.create_draft(
                org_id=org_a.id, supplier_id=supplier_a.id, items=[], attendant_name="x"
            )

    def test_requires_attendant_or_operator(self, db_session, org_a, supplier_a, product_a):
        with pytest.raises(ValidationError):
            _create(org_a, supplier_a, product_a, attendant_name="  ")

    @pytest.mark.parametrize("rate", [0, -1, "abc"])
    def test_rejects_bad_exchange_rate(self, db_session, org_a, supplier_a, product_a, rate):
        with pytest.raises(ValidationError):
            _create(org_a, supplier_a, product_a, exchange_rate=rate)

    def test_rejects_negative_cost(self, db_session, org_a, supplier_a, product_a):
        with pytest.raises(ValidationError):
            _create(org_a, supplier_a, product_a, PurchaseLineItem(product_id=product_a.id, cost_cents=-1))

    def test_foreign_supplier_is_not_found(self, db_session, org_a, supplier_b, product_a):
        with pytest.raises(NotFoundError):
            _create(org_a, supplier_b, product_a)

    def test_foreign_product_is_not_found(self, db_session, org_a, supplier_a, product_b):
        with pytest.raises(NotFoundError):
            _create(org_a, supplier_a, product_b)
        assert db_session.query(Purchase).count() == 0

    def test_operator_signature_snapshots_name(self, db_session, org_a, supplier_a, product_a, operator_a):
        purchase = _create(
            org_a, supplier_a, product_a,
            attendant_name=None,
            signature=OperatorSignature(operator_id=operator_a.id, pin=OPERATOR_A_PIN),
        )
        assert purchase.operator_id == operator_a.id
        assert purchase.operator_name == "Juan Perez"

        operator_a.name = "Juan P. Renamed"
        db_session.commit()
        assert db_session.get(Purchase, purchase.id).operator_name == "Juan Perez"

    def test_bad_operator_pin_persists_nothing(self, db_session, org_a, supplier_a, product_a, operator_a):
        with pytest.raises(InvalidSignatureError):
            _create(
                org_a, supplier_a, product_a,
                signature=OperatorSignature(operator_id=operator_a.id, pin="0000"),
            )
        assert db_session.query(Purchase).count() == 0
        assert db_session.query(Instance).count() == 0


class TestUpdate:

    def test_edits_in_place_adds_lines_and_resets_to_draft(self, db_session, org_a, supplier_a, product_a):
        purchase = _create(org_a, supplier_a, product_a)
        purchase_service.confirm(org_id=org_a.id, purchase_id=purchase.id)
        existing = purchase.instances[0]

        updated = purchase_service.update(
            org_id=org_a.id,
            purchase_id=purchase.id,
            items=[
                PurchaseLineItem(product_id=product_a.id, cost_cents=1500, serial_number="E-1", instance_id=existing.id),
                PurchaseLineItem(product_id=product_a.id, cost_cents=700, serial_number="N-1"),
            ],
            notes="corrected",
        )

        assert updated.status == PURCHASE_DRAFT
        assert updated.confirmed_at is None
        assert updated.total_cost_cents == 2200
        assert updated.notes == "corrected"
        units = {u.serial_number: u for u in updated.instances}
        assert units["E-1"].id == existing.id
        assert units["E-1"].cost_cents == 1500
        assert units["E-1"].status == STATUS_IN_STOCK
        assert units["N-1"].status == STATUS_PENDING

    def test_instance_of_another_purchase_is_not_found(self, db_session, org_a, supplier_a, product_a):
        first = _create(org_a, supplier_a, product_a)
        second = _create(org_a, supplier_a, product_a)

        with pytest.raises(NotFoundError):
            purchase_service.update(
                org_id=org_a.id,
                purchase_id=first.id,
                items=[PurchaseLineItem(product_id=product_a.id, cost_cents=1, instance_id=second.instances[0].id)],
            )

    def test_failed_update_changes_nothing(self, db_session, org_a, supplier_a, product_a):
        seed_stock(product_a, supplier_a, serials=["TAKEN"], count=1)
        purchase = _create(org_a, supplier_a, product_a)
        unit_id = purchase.instances[0].id

        with pytest.raises(DuplicateSerialError):
            purchase_service.update(
                org_id=org_a.id,
                purchase_id=purchase.id,
                items=[
                    PurchaseLineItem(product_id=product_a.id, cost_cents=9999, instance_id=unit_id),
                    PurchaseLineItem(product_id=product_a.id, cost_cents=1, serial_number="TAKEN"),
                ],
            )

        db_session.expire_all()
        reloaded = db_session.get(Purchase, purchase.id)
        assert len(reloaded.instances) == 1
        assert reloaded.instances[0].cost_cents == 1000
        assert reloaded.total_cost_cents == 1000

    def test_keeping_own_serial_is_not_a_duplicate(self, db_session, org_a, supplier_a, product_a):
        purchase = _create(
            org_a, supplier_a, product_a,
            PurchaseLineItem(product_id=product_a.id, cost_cents=1000, serial_number="MINE"),
        )
        unit_id = purchase.instances[0].id

        updated = purchase_service.update(
            org_id=org_a.id,
            purchase_id=purchase.id,
            items=[PurchaseLineItem(product_id=product_a.id, cost_cents=1100, serial_number="MINE", instance_id=unit_id)],
        )
        assert updated.instances[0].serial_number == "MINE"

    def test_product_of_a_unit_cannot_change(self, db_session, org_a, supplier_a, product_a):
        other = catalog_service.upsert_product(org_a.id, upc="555", sku="OTHER", name="Other")[0]
        db_session.commit()
        purchase = _create(org_a, supplier_a, product_a)

        with pytest.raises(ValidationError):
            purchase_service.update(
                org_id=org_a.id,
                purchase_id=purchase.id,
                items=[PurchaseLineItem(product_id=other.id, cost_cents=1, instance_id=purchase.instances[0].id)],
            )


class TestConfirm:

    def test_confirm_twice_is_idempotent(self, db_session, org_a, supplier_a, product_a):
        purchase = _create(
            org_a, supplier_a, product_a,
            *[PurchaseLineItem(product_id=product_a.id, cost_cents=1000) for _ in range(3)],
        )

        purchase_service.confirm(org_id=org_a.id, purchase_id=purchase.id)
        first_confirmed_at = db_session.get(Purchase, purchase.id).confirmed_at
        purchase_service.confirm(org_id=org_a.id, purchase_id=purchase.id)

        units = db_session.query(Instance).filter_by(purchase_id=purchase.id).all()
        assert len(units) == 3
        assert all(u.status == STATUS_IN_STOCK for u in units)
        reloaded = db_session.get(Purchase, purchase.id)
        assert reloaded.status == PURCHASE_CONFIRMED
        assert reloaded.confirmed_at == first_confirmed_at

    def test_confirm_leaves_sold_units_alone(self, db_session, org_a, supplier_a, product_a):
        purchase = _create(
            org_a, supplier_a, product_a,
            PurchaseLineItem(product_id=product_a.id, cost_cents=1000),
            PurchaseLineItem(product_id=product_a.id, cost_cents=1000),
        )
        purchase_service.confirm(org_id=org_a.id, purchase_id=purchase.id)
        sale = Sale(org_id=org_a.id)
        db.session.add(sale)
        db.session.commit()
        instance_service.mark_sold(org_id=org_a.id, instance_ids=[purchase.instances[0].id], sale_id=sale.id)

        purchase_service.confirm(org_id=org_a.id, purchase_id=purchase.id)
        statuses = sorted(u.status for u in db_session.get(Purchase, purchase.id).instances)
        assert statuses == [STATUS_IN_STOCK, STATUS_SOLD]

    def test_cost_gate_lists_zero_cost_units(self, db_session, org_a, supplier_a, product_a):
        purchase = _create(
            org_a, supplier_a, product_a,
            PurchaseLineItem(product_id=product_a.id, cost_cents=1000),
            PurchaseLineItem(product_id=product_a.id, cost_cents=0),
        )
        with pytest.raises(IncompleteCostError) as exc_info:
            purchase_service.assert_costs_complete(purchase)
        assert exc_info.value.instance_ids == [purchase.instances[1].id]
        assert exc_info.value.status_code == 400

    def test_confirm_other_tenant_is_not_found(self, db_session, org_a, org_b, supplier_a, product_a):
        purchase = _create(org_a, supplier_a, product_a)
        with pytest.raises(NotFoundError):
            purchase_service.confirm(org_id=org_b.id, purchase_id=purchase.id)
        assert db_session.get(Purchase, purchase.id).status == PURCHASE_DRAFT


class TestDelete:

    def test_delete_draft_removes_units(self, db_session, org_a, supplier_a, product_a):
        purchase = _create(org_a, supplier_a, product_a)
        purchase_id = purchase.id

        purchase_service.delete(org_id=org_a.id, purchase_id=purchase_id)

        assert db_session.get(Purchase, purchase_id) is None
        assert db_session.query(Instance).filter_by(purchase_id=purchase_id).count() == 0

    def test_delete_refused_when_units_were_sold(self, db_session, org_a, supplier_a, product_a):
        units = seed_stock(product_a, supplier_a, count=2, status=STATUS_SOLD)
        purchase_id = units[0].purchase_id

        with pytest.raises(PurchaseLockedError) as exc_info:
            purchase_service.delete(org_id=org_a.id, purchase_id=purchase_id)

        assert exc_info.value.disposed_count == 2
        assert db_session.get(Purchase, purchase_id) is not None

    def test_delete_other_tenant_is_not_found(self, db_session, org_a, org_b, supplier_a, product_a):
        purchase = _create(org_a, supplier_a, product_a)
        with pytest.raises(NotFoundError):
            purchase_service.delete(org_id=org_b.id, purchase_id=purchase.id)


class TestReads:

    def test_list_filters_by_status_and_tenant(self, db_session, org_a, org_b, supplier_a, supplier_b, product_a, product_b):
        draft = _create(org_a, supplier_a, product_a)
        confirmed = _create(org_a, supplier_a, product_a)
        purchase_service.confirm(org_id=org_a.id, purchase_id=confirmed.id)
        _create(org_b, supplier_b, product_b)

        assert {p.id for p in purchase_service.list_purchases(org_a.id)} == {draft.id, confirmed.id}
        assert [p.id for p in purchase_service.list_purchases(org_a.id, status=PURCHASE_DRAFT)] == [draft.id]

    def test_to_dict_includes_items(self, db_session, org_a, supplier_a, product_a):
        purchase = _create(org_a, supplier_a, product_a)
        data = purchase_service.get_purchase(org_a.id, purchase.id).to_dict(include_items=True)
        assert data["supplier_name"] == "Acme Distribution"
        assert data["item_count"] == 1
        assert data["items"][0]["status"] == STATUS_PENDING
