# Overview: Service-layer operations for auth; encapsulates business logic and database work.

"""
Authentication Service with Multi-Tenant Support

Users belong to exactly one organization (org_id). Username uniqueness is
tenant-scoped, so logins name the organization by code.

SECURITY NOTES:
- Passwords hashed with bcrypt (cost factor 12)
- Minimum 8 characters required
- Session tokens managed separately (see session_service.py)
"""

import bcrypt
from ..extensions import db
from ..errors import ValidationError
from ..models import User, Organization
from ..models.auth import USER_ROLES, ROLE_STAFF
from stockroom.time_utils import utcnow
from . import identity_service


def hash_password(password: str) -> str:
    """Hash password using bcrypt with cost factor 12."""
    if not password or len(password) < 8:
        raise ValidationError("Password must be at least 8 characters long")
    salt = bcrypt.gensalt(rounds=12)
    hashed = bcrypt.hashpw(password.encode('utf-8'), salt)
    return hashed.decode('utf-8')  # Store as string in database


def verify_password(password: str, password_hash: str) -> bool:
    """Verify password against bcrypt hash. Malformed hashes never match."""
    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError:
        return False


def create_user(
    *,
    org_id: int,
    username: str,
    email: str,
    name: str,
    password: str,
    role: str = ROLE_STAFF,
    security_pin: str | None = None,
) -> User:
    """
    Create a user. security_pin, when given, is stored bcrypt-hashed;
    plaintext PINs only exist on legacy accounts.
    """
    if role not in USER_ROLES:
        raise ValidationError(f"Invalid role. Must be one of: {', '.join(sorted(USER_ROLES))}")

    existing = db.session.query(User).filter_by(org_id=org_id, username=username).first()
    if existing:
        raise ValidationError(f"Username {username!r} already exists in this organization")

    user = User(
        org_id=org_id,
        username=username,
        email=email,
        name=name,
        password_hash=hash_password(password),
        role=role,
        security_pin=identity_service.hash_pin(security_pin) if security_pin else None,
    )
    db.session.add(user)
    db.session.commit()
    return user


def authenticate(username: str, password: str, org_code: str | None = None) -> User | None:
    """
    Authenticate user with username (or email) and password.

    Returns User if credentials valid and organization is active, None otherwise.
    Updates last_login_at on success.
    """
    query = db.session.query(User).join(Organization, User.org_id == Organization.id).filter(
        db.or_(User.username == username, User.email == username),
        User.is_active.is_(True),
        Organization.is_active.is_(True),
    )
    if org_code:
        query = query.filter(Organization.code == org_code)

    user = query.first()
    if not user:
        return None

    if verify_password(password, user.password_hash):
        user.last_login_at = utcnow()
        db.session.commit()
        return user

    return None
