# Overview: Request decorators for API routes.

from functools import wraps
from flask import request, jsonify, g

from .models.auth import ROLE_ADMIN
from .services import session_service


def require_auth(f):
    """
    Require authentication and establish tenant context.

    MULTI-TENANT: Sets the following Flask g attributes:
    - g.current_user: The authenticated User object
    - g.org_id: The organization ID (tenant context) - REQUIRED
    - g.session_context: The full SessionContext object

    SECURITY: Returns 401 if:
    - No Authorization header
    - Invalid or expired token
    - User account or organization deactivated
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        auth_header = request.headers.get("Authorization")

        if not auth_header or not auth_header.startswith("Bearer "):
            return jsonify({"error": "Authentication required", "code": "unauthenticated"}), 401

        token = auth_header.split(" ", 1)[1]
        context = session_service.validate_session(token)

        if not context:
            return jsonify({"error": "Invalid or expired token", "code": "unauthenticated"}), 401

        g.current_user = context.user
        g.org_id = context.org_id
        g.session_context = context

        return f(*args, **kwargs)

    return decorated_function


def require_admin(f):
    """Require the authenticated user to hold the ADMIN role. Use after @require_auth."""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        user = getattr(g, "current_user", None)
        if user is None:
            return jsonify({"error": "Authentication required", "code": "unauthenticated"}), 401
        if user.role != ROLE_ADMIN:
            return jsonify({"error": "Administrator access required", "code": "insufficient_privilege"}), 403
        return f(*args, **kwargs)
    return decorated_function
