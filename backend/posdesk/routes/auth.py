# Overview: Flask API routes for auth operations; parses input and returns JSON responses.

# backend/posdesk/routes/auth.py
"""
Authentication API routes

Email/password sign-up and sign-in, token-based sessions. The session token
returned by signup/login must be sent as `Authorization: Bearer <token>` on
every other /api route.
"""

from flask import Blueprint, request, jsonify, current_app, g

from ..services import auth_service
from ..services import session_service
from ..services.auth_service import PasswordValidationError, SignUpError
from ..decorators import require_auth, bearer_token


auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


def _start_session(user):
    session, token = session_service.create_session(
        user_id=user.id,
        user_agent=request.headers.get("User-Agent"),
        ip_address=request.remote_addr,
    )
    return {
        "user": user.to_dict(),
        "token": token,
        "session": session.to_dict(),
    }


@auth_bp.post("/signup")
def signup_route():
    """
    Create an account and sign it in.

    Body: {email, password, confirm_password}
    """
    data = request.get_json(silent=True) or {}
    email = data.get("email")
    password = data.get("password")
    confirm = data.get("confirm_password")

    if not email or not password:
        return jsonify({"error": "email and password required"}), 400
    if confirm is not None and confirm != password:
        return jsonify({"error": "Passwords do not match", "field": "confirm_password"}), 400

    try:
        user = auth_service.sign_up(email, password)
    except PasswordValidationError as e:
        return jsonify({"error": str(e), "field": "password"}), 400
    except SignUpError as e:
        return jsonify({"error": str(e), "field": "email"}), 400

    try:
        body = _start_session(user)
    except Exception:
        current_app.logger.exception("Failed to start session after signup")
        return jsonify({"error": "Internal server error"}), 500

    body["message"] = "Account created"
    return jsonify(body), 201


@auth_bp.post("/login")
def login_route():
    """
    Authenticate user and create session token.

    Returns user info and session token on success.
    """
    try:
        data = request.get_json(silent=True) or {}
        email = data.get("email")
        password = data.get("password")

        if not all([email, password]):
            return jsonify({"error": "email and password required"}), 400

        user = auth_service.authenticate(email, password)
        if not user:
            return jsonify({"error": "Invalid credentials"}), 401

        body = _start_session(user)
        body["message"] = "Login successful"
        return jsonify(body), 200

    except Exception:
        current_app.logger.exception("Failed to login user")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.post("/logout")
def logout_route():
    """
    Revoke session token (logout) and drop its POS cart.

    Expects Authorization header: Bearer <token>
    """
    try:
        token = bearer_token()
        if not token:
            return jsonify({"error": "Authorization header required"}), 401

        revoked = session_service.revoke_session(token, reason="User logout")
        if not revoked:
            return jsonify({"error": "Invalid or expired token"}), 401

        return jsonify({"message": "Logout successful"}), 200

    except Exception:
        current_app.logger.exception("Failed to logout user")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.get("/session")
@require_auth
def session_route():
    """Current signed-in user; 401 (with login_url) when signed out."""
    context = g.session_context
    return jsonify({
        "user": context.user.to_dict(),
        "session": context.session.to_dict(),
    })
