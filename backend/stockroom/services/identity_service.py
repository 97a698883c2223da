# Overview: PIN-based identity verification for field operators.

"""
Identity Verifier

Operators never log in; they prove who they are by PIN at the moment they
sign something (a receiving document, a stock adjustment). PINs are stored as
bcrypt hashes, so identifying an operator by PIN alone means checking every
active operator of the organization.
"""

from __future__ import annotations

from dataclasses import dataclass

import bcrypt
from flask import current_app

from ..extensions import db
from ..errors import InvalidSignatureError, ValidationError
from ..models import Operator


@dataclass(frozen=True)
class OperatorIdentity:
    operator_id: int
    name: str


def validate_pin_format(pin: str) -> None:
    if not pin or not pin.isdigit() or not (4 <= len(pin) <= 8):
        raise ValidationError("PIN must be 4 to 8 digits")


def hash_pin(pin: str) -> str:
    """Hash a PIN with bcrypt using the configured cost factor."""
    validate_pin_format(pin)
    rounds = current_app.config.get("PIN_HASH_ROUNDS", 12)
    return bcrypt.hashpw(pin.encode("utf-8"), bcrypt.gensalt(rounds=rounds)).decode("utf-8")


def check_pin(pin: str, pin_hash: str | None) -> bool:
    """Timing-safe bcrypt comparison. Malformed hashes never match."""
    if not pin or not pin_hash:
        return False
    try:
        return bcrypt.checkpw(pin.encode("utf-8"), pin_hash.encode("utf-8"))
    except ValueError:
        return False


def verify_operator(org_id: int, operator_id: int, pin: str) -> OperatorIdentity:
    """
    Verify that `pin` belongs to operator `operator_id` of the organization.

    Raises InvalidSignatureError otherwise (unknown, inactive, other tenant,
    or wrong PIN are indistinguishable).
    """
    operator = db.session.query(Operator).filter_by(
        id=operator_id,
        org_id=org_id,
        is_active=True,
    ).first()
    if operator is None or not check_pin(pin, operator.pin_hash):
        raise InvalidSignatureError("Operator PIN is invalid")
    return OperatorIdentity(operator_id=operator.id, name=operator.name)


def identify_by_pin(org_id: int, pin: str) -> OperatorIdentity | None:
    """Find the active operator whose PIN matches, or None."""
    if not pin:
        return None
    operators = db.session.query(Operator).filter_by(org_id=org_id, is_active=True).order_by(Operator.id).all()
    for operator in operators:
        if check_pin(pin, operator.pin_hash):
            return OperatorIdentity(operator_id=operator.id, name=operator.name)
    return None


def create_operator(org_id: int, name: str, pin: str) -> Operator:
    """Register a field operator with a hashed PIN."""
    if not name or not name.strip():
        raise ValidationError("Operator name is required")
    operator = Operator(org_id=org_id, name=name.strip(), pin_hash=hash_pin(pin), is_active=True)
    db.session.add(operator)
    db.session.commit()
    return operator
