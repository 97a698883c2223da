# Overview: Resolves an authorization PIN to the human who signs a stock mutation.

"""
Signer resolution

Every stock addition or removal outside of the purchase/sale flow must be
attributable to a verified human. A PIN is resolved by an ordered chain of
resolvers; the first match wins:

1. AdminPlaintextPinResolver: a user whose stored PIN equals the PIN
2. AdminHashedPinResolver:    a user whose stored PIN is a bcrypt hash of it
3. OperatorPinResolver:       an active field operator (Identity Verifier)

Users are "administrative" signers regardless of role; the privilege gate
(require_adjustment_signer) rejects users without the ADMIN role. Operators
pass the gate: holding a valid operator PIN is sufficient for physical stock
handling.
"""

from __future__ import annotations

import hmac
from dataclasses import dataclass

from flask import current_app

from ..extensions import db
from ..errors import InvalidSignatureError, InsufficientPrivilegeError
from ..models import User
from . import identity_service


SIGNER_ADMIN = "ADMIN"
SIGNER_OPERATOR = "OPERATOR"

BCRYPT_PREFIX = "$2"


@dataclass(frozen=True)
class Signer:
    kind: str
    name: str
    user_id: int | None = None
    operator_id: int | None = None
    is_admin: bool = False

    @property
    def is_operator(self) -> bool:
        return self.kind == SIGNER_OPERATOR


def _pin_users(org_id: int) -> list[User]:
    return db.session.query(User).filter(
        User.org_id == org_id,
        User.is_active.is_(True),
        User.security_pin.isnot(None),
    ).order_by(User.id).all()


def _admin_signer(user: User) -> Signer:
    return Signer(
        kind=SIGNER_ADMIN,
        name=user.name,
        user_id=user.id,
        is_admin=user.is_admin,
    )


class AdminPlaintextPinResolver:
    name = "admin-plaintext"

    def resolve(self, org_id: int, pin: str) -> Signer | None:
        for user in _pin_users(org_id):
            stored = user.security_pin
            if stored.startswith(BCRYPT_PREFIX):
                continue
            if hmac.compare_digest(stored.encode("utf-8"), pin.encode("utf-8")):
                return _admin_signer(user)
        return None


class AdminHashedPinResolver:
    name = "admin-hashed"

    def resolve(self, org_id: int, pin: str) -> Signer | None:
        for user in _pin_users(org_id):
            stored = user.security_pin
            if stored.startswith(BCRYPT_PREFIX) and identity_service.check_pin(pin, stored):
                return _admin_signer(user)
        return None


class OperatorPinResolver:
    name = "operator"

    def resolve(self, org_id: int, pin: str) -> Signer | None:
        identity = identity_service.identify_by_pin(org_id, pin)
        if identity is None:
            return None
        return Signer(
            kind=SIGNER_OPERATOR,
            name=identity.name,
            operator_id=identity.operator_id,
        )


DEFAULT_RESOLVERS = (
    AdminPlaintextPinResolver(),
    AdminHashedPinResolver(),
    OperatorPinResolver(),
)


def resolve_signer(org_id: int, pin: str, resolvers=DEFAULT_RESOLVERS) -> Signer:
    """Return the first signer matched by the resolver chain, else raise InvalidSignatureError."""
    if not pin or not pin.strip():
        raise InvalidSignatureError("Authorization PIN is required")
    pin = pin.strip()

    for resolver in resolvers:
        signer = resolver.resolve(org_id, pin)
        if signer is not None:
            current_app.logger.info(
                "Signer resolved via %s for org %s: %s", resolver.name, org_id, signer.name
            )
            return signer

    current_app.logger.warning("Signer PIN rejected for org %s", org_id)
    raise InvalidSignatureError()


def require_adjustment_signer(org_id: int, pin: str) -> Signer:
    """Resolve the signer and apply the adjustment privilege gate."""
    signer = resolve_signer(org_id, pin)
    if signer.kind == SIGNER_ADMIN and not signer.is_admin:
        raise InsufficientPrivilegeError(
            f"{signer.name} is not allowed to authorize stock adjustments"
        )
    return signer
