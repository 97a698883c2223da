"""
Tenant context resolution.

Every request that touches ledger data runs under exactly one organization,
established by @require_auth from the session token. Services receive org_id
explicitly; routes obtain it here.
"""

from flask import g

from ..errors import UnauthenticatedError


def get_current_org_id() -> int:
    """
    Get current tenant's org_id from Flask g context.

    Raises UnauthenticatedError if no tenant context was established.
    """
    org_id = getattr(g, "org_id", None)
    if org_id is None:
        raise UnauthenticatedError("Tenant context not established")
    return org_id


def get_current_user_id() -> int:
    """Session user that records operations signed by field operators."""
    user = getattr(g, "current_user", None)
    if user is None:
        raise UnauthenticatedError("Authentication required")
    return user.id
