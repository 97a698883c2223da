# Overview: Flask API routes for auth operations; parses input and returns JSON responses.

# backend/stockroom/routes/auth.py
"""
Authentication API routes

Login issues an opaque bearer token bound to the user's organization; every
other route resolves its tenant from that token (see decorators.require_auth).
"""

from flask import Blueprint, request, jsonify, current_app, g

from ..services import auth_service
from ..services import session_service
from ..decorators import require_auth


auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


@auth_bp.post("/login")
def login_route():
    """
    Authenticate user and create session token.

    Body: {"username": ..., "password": ..., "org_code": optional}
    Token must be sent as "Authorization: Bearer <token>".
    """
    data = request.get_json(silent=True) or {}
    username = data.get("username") or data.get("email")
    password = data.get("password")

    if not all([username, password]):
        return jsonify({"error": "username/email and password required"}), 400

    user = auth_service.authenticate(username, password, org_code=data.get("org_code"))
    if not user:
        current_app.logger.warning("Failed login for %r from %s", username, request.remote_addr)
        return jsonify({"error": "Invalid credentials"}), 401

    session, token = session_service.create_session(user_id=user.id)

    return jsonify({
        "user": user.to_dict(),
        "token": token,
        "expires_at": session.expires_at.isoformat() + "Z",
    }), 200


@auth_bp.post("/logout")
@require_auth
def logout_route():
    """Revoke the current session token."""
    token = request.headers.get("Authorization").split(" ", 1)[1]
    session_service.revoke_session(token, reason="User logout")
    current_app.logger.info("User %s logged out", g.current_user.id)
    return jsonify({"message": "Logged out successfully"}), 200
