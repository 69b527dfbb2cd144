# Overview: Request decorators for API routes.

from functools import wraps
from flask import request, jsonify, g

from .services import session_service

# Where the frontend sends a signed-out user
LOGIN_PATH = "/login"


def bearer_token() -> str | None:
    auth_header = request.headers.get("Authorization")
    if not auth_header or not auth_header.startswith("Bearer "):
        return None
    return auth_header.split(" ", 1)[1].strip() or None


def header_or_query_token() -> str | None:
    # EventSource and plain page navigations cannot set headers
    return bearer_token() or request.args.get("access_token") or None


def _auth_gate(f, get_token):
    @wraps(f)
    def decorated_function(*args, **kwargs):
        token = get_token()
        if not token:
            return jsonify({"error": "Authentication required", "login_url": LOGIN_PATH}), 401

        context = session_service.validate_session(token)
        if not context:
            return jsonify({"error": "Invalid or expired token", "login_url": LOGIN_PATH}), 401

        g.current_user = context.user
        g.session_context = context

        return f(*args, **kwargs)

    return decorated_function


def require_auth(f):
    """
    Require an authenticated session.

    Sets the following Flask g attributes:
    - g.current_user: The authenticated User object
    - g.session_context: The full SessionContext object

    Returns 401 with a login_url if:
    - No Authorization header
    - Invalid, revoked or expired token
    - User account deactivated
    """
    return _auth_gate(f, bearer_token)


def require_auth_allow_query_token(f):
    """
    Same as require_auth, but the token may also come as `?access_token=`.

    Only for GET routes the browser opens directly (SSE, print page).
    """
    return _auth_gate(f, header_or_query_token)
