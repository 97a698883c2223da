# Overview: Pytest coverage for signed stock adjustments (additions and FIFO removals).

"""
Stock adjustment tests.

Removals consume the oldest IN_STOCK units first and are all-or-nothing;
additions create IN_STOCK units owned by the adjustment. Every adjustment
names its signer.
"""

from datetime import datetime

import pytest

from stockroom.errors import (
    InsufficientPrivilegeError,
    InsufficientStockError,
    InvalidSignatureError,
    NotFoundError,
    UnauthenticatedError,
    ValidationError,
)
from stockroom.models import Instance, StockAdjustment, User
from stockroom.models.inventory import (
    CATEGORY_DAMAGE,
    CATEGORY_LOSS_THEFT,
    STATUS_ADJUSTMENT,
    STATUS_IN_STOCK,
    STATUS_PENDING,
)
from stockroom.services import adjustment_service, identity_service

from conftest import ADMIN_A_PIN, OPERATOR_A_PIN, STAFF_A_PIN, in_stock_count, seed_stock


def _day(n):
    return datetime(2025, 1, n, 9, 0, 0)


@pytest.fixture
def five_days(db_session, supplier_a, product_a):
    """5 IN_STOCK units created on days 1..5, inserted out of order."""
    units = seed_stock(product_a, supplier_a, created_ats=[_day(3), _day(1), _day(5), _day(2), _day(4)])
    return {u.created_at.day: u.id for u in units}


class TestRemoval:

    def test_scenario_fifo_removes_oldest(self, db_session, org_a, admin_a, product_a, five_days):
        """Removing 2 of 5 takes the day-1 and day-2 units, leaving 3."""
        result = adjustment_service.adjust(
            org_id=org_a.id,
            product_id=product_a.id,
            pin=ADMIN_A_PIN,
            quantity=-2,
            reason="Broken in storage",
            category=CATEGORY_DAMAGE,
        )

        assert sorted(u.id for u in result.instances) == sorted([five_days[1], five_days[2]])
        assert in_stock_count(product_a.id) == 3
        for day in (1, 2):
            unit = db_session.get(Instance, five_days[day])
            assert unit.status == STATUS_ADJUSTMENT
            assert unit.disposed_by_adjustment_id == result.adjustment.id
        for day in (3, 4, 5):
            assert db_session.get(Instance, five_days[day]).status == STATUS_IN_STOCK

        assert result.adjustment.quantity == -2
        assert result.adjustment.signer_user_id == admin_a.id
        assert result.adjustment.signer_name == "Ana Admin"

    def test_fifo_breaks_ties_by_id(self, db_session, org_a, admin_a, supplier_a, product_a):
        units = seed_stock(product_a, supplier_a, created_ats=[_day(1), _day(1), _day(1)])
        result = adjustment_service.adjust(
            org_id=org_a.id, product_id=product_a.id, pin=ADMIN_A_PIN, quantity=-1, reason="count fix",
        )
        assert [u.id for u in result.instances] == [min(u.id for u in units)]

    def test_scenario_insufficient_stock_changes_nothing(self, db_session, org_a, admin_a, product_a, five_days):
        with pytest.raises(InsufficientStockError) as exc_info:
            adjustment_service.adjust(
                org_id=org_a.id,
                product_id=product_a.id,
                pin=ADMIN_A_PIN,
                quantity=-10,
                reason="Shrinkage",
                category=CATEGORY_LOSS_THEFT,
            )

        assert exc_info.value.available == 5
        assert exc_info.value.requested == 10
        assert in_stock_count(product_a.id) == 5
        assert db_session.query(StockAdjustment).count() == 0
        assert db_session.get(User, admin_a.id).last_action_at is None

    def test_pending_units_are_not_removable(self, db_session, org_a, admin_a, supplier_a, product_a):
        seed_stock(product_a, supplier_a, count=2, status=STATUS_PENDING)
        with pytest.raises(InsufficientStockError) as exc_info:
            adjustment_service.adjust(
                org_id=org_a.id, product_id=product_a.id, pin=ADMIN_A_PIN, quantity=-1, reason="x",
            )
        assert exc_info.value.available == 0

    def test_removal_stamps_signer_activity(self, db_session, org_a, admin_a, product_a, five_days):
        adjustment_service.adjust(
            org_id=org_a.id, product_id=product_a.id, pin=ADMIN_A_PIN, quantity=-1, reason="x",
        )
        assert db_session.get(User, admin_a.id).last_action_at is not None


class TestAddition:

    def test_scenario_operator_addition(self, db_session, org_a, admin_a, operator_a, product_a):
        """+4 at 500 signed by an operator: 4 new units, reason names the operator."""
        result = adjustment_service.adjust(
            org_id=org_a.id,
            product_id=product_a.id,
            pin=OPERATOR_A_PIN,
            quantity=4,
            reason="Found in back room",
            unit_cost_cents=500,
            recorded_by_user_id=admin_a.id,
        )

        assert len(result.instances) == 4
        assert in_stock_count(product_a.id) == 4
        for unit in result.instances:
            assert unit.status == STATUS_IN_STOCK
            assert unit.cost_cents == 500
            assert unit.created_by_adjustment_id == result.adjustment.id
            assert unit.purchase_id is None

        adjustment = result.adjustment
        assert "Juan Perez" in adjustment.reason
        assert adjustment.reason.startswith("Found in back room")
        assert adjustment.signer_name == "Juan Perez"
        assert adjustment.signer_user_id == admin_a.id
        assert adjustment.operator_id == operator_a.id
        assert result.signer.is_operator

    def test_addition_defaults_to_base_price(self, db_session, org_a, admin_a, product_a):
        result = adjustment_service.adjust(
            org_id=org_a.id, product_id=product_a.id, pin=ADMIN_A_PIN, quantity=2, reason="Recount",
        )
        assert [u.cost_cents for u in result.instances] == [150000, 150000]

    def test_operator_signature_needs_a_recorder(self, db_session, org_a, operator_a, product_a):
        with pytest.raises(UnauthenticatedError):
            adjustment_service.adjust(
                org_id=org_a.id, product_id=product_a.id, pin=OPERATOR_A_PIN, quantity=1, reason="x",
            )
        assert db_session.query(StockAdjustment).count() == 0


class TestSignerGate:

    def test_wrong_pin_is_rejected(self, db_session, org_a, admin_a, product_a):
        with pytest.raises(InvalidSignatureError):
            adjustment_service.adjust(
                org_id=org_a.id, product_id=product_a.id, pin="000000", quantity=1, reason="x",
            )
        assert db_session.query(Instance).count() == 0

    def test_non_admin_user_pin_is_insufficient(self, db_session, org_a, staff_a, product_a):
        with pytest.raises(InsufficientPrivilegeError):
            adjustment_service.adjust(
                org_id=org_a.id, product_id=product_a.id, pin=STAFF_A_PIN, quantity=1, reason="x",
            )
        assert db_session.query(StockAdjustment).count() == 0

    def test_hashed_admin_pin_is_accepted(self, db_session, org_a, admin_a, product_a):
        admin_a.security_pin = identity_service.hash_pin("7777")
        db_session.commit()

        result = adjustment_service.adjust(
            org_id=org_a.id, product_id=product_a.id, pin="7777", quantity=1, reason="x",
        )
        assert result.adjustment.signer_user_id == admin_a.id

    def test_other_tenant_pin_is_rejected(self, db_session, org_a, admin_a, admin_b, product_a):
        with pytest.raises(InvalidSignatureError):
            adjustment_service.adjust(
                org_id=org_a.id, product_id=product_a.id, pin="9999", quantity=1, reason="x",
            )

    def test_every_adjustment_names_a_signer(self, db_session, org_a, admin_a, operator_a, product_a):
        adjustment_service.adjust(
            org_id=org_a.id, product_id=product_a.id, pin=ADMIN_A_PIN, quantity=3, reason="a",
        )
        adjustment_service.adjust(
            org_id=org_a.id, product_id=product_a.id, pin=OPERATOR_A_PIN, quantity=-1, reason="b",
            recorded_by_user_id=admin_a.id,
        )
        for pin in ("", "   ", "nope"):
            with pytest.raises(InvalidSignatureError):
                adjustment_service.adjust(
                    org_id=org_a.id, product_id=product_a.id, pin=pin, quantity=1, reason="c",
                )

        adjustments = db_session.query(StockAdjustment).all()
        assert len(adjustments) == 2
        assert all(a.signer_name and a.signer_user_id for a in adjustments)


class TestValidation:

    @pytest.mark.parametrize("kwargs", [
        {"quantity": 0},
        {"reason": "   "},
        {"category": "MISC"},
        {"unit_cost_cents": 0},
        {"quantity": 1.5},
    ])
    def test_invalid_input(self, db_session, org_a, admin_a, product_a, kwargs):
        params = dict(
            org_id=org_a.id, product_id=product_a.id, pin=ADMIN_A_PIN, quantity=1, reason="ok",
        )
        params.update(kwargs)
        with pytest.raises(ValidationError):
            adjustment_service.adjust(**params)

    def test_foreign_product_is_not_found(self, db_session, org_a, admin_a, product_b):
        with pytest.raises(NotFoundError):
            adjustment_service.adjust(
                org_id=org_a.id, product_id=product_b.id, pin=ADMIN_A_PIN, quantity=1, reason="x",
            )


class TestListAdjustments:

    def test_lists_newest_first_per_tenant(self, db_session, org_a, org_b, admin_a, admin_b, product_a, product_b):
        first = adjustment_service.adjust(
            org_id=org_a.id, product_id=product_a.id, pin=ADMIN_A_PIN, quantity=1, reason="one",
        ).adjustment
        second = adjustment_service.adjust(
            org_id=org_a.id, product_id=product_a.id, pin=ADMIN_A_PIN, quantity=1, reason="two",
        ).adjustment
        adjustment_service.adjust(
            org_id=org_b.id, product_id=product_b.id, pin="9999", quantity=1, reason="other",
        )

        listed = adjustment_service.list_adjustments(org_a.id)
        assert [a.id for a in listed] == [second.id, first.id]
        assert adjustment_service.list_adjustments(org_a.id, product_id=product_b.id) == []
