"""
Authentication tests.

Verifies:
- Sign-up validates email, password length and confirmation
- Login issues a bearer token; bad credentials are rejected
- Protected routes answer 401 with a login_url when signed out
- Logout revokes the token and drops the session's cart
- Expired, idle and cleaned-up sessions lose their carts too
"""

from datetime import timedelta

import pytest

from posdesk.extensions import db
from posdesk.models import SessionToken
from posdesk.services import auth_service, session_service
from posdesk.services.auth_service import PasswordValidationError, SignUpError
from posdesk.services.cart_service import get_cart_registry
from posdesk.time_utils import utcnow

from conftest import auth_headers, get_auth_token


# =============================================================================
# SERVICE
# =============================================================================


class TestAuthService:

    def test_sign_up_lowercases_email(self, db_session):
        user = auth_service.sign_up("  Owner@Shop.Test ", "secret1")
        assert user.email == "owner@shop.test"
        assert user.password_hash != "secret1"

    def test_short_password_rejected(self, db_session):
        with pytest.raises(PasswordValidationError):
            auth_service.sign_up("owner@shop.test", "12345")

    def test_malformed_email_rejected(self, db_session):
        with pytest.raises(SignUpError):
            auth_service.sign_up("not-an-email", "secret1")

    def test_duplicate_email_rejected(self, db_session, user_a):
        with pytest.raises(SignUpError):
            auth_service.sign_up(user_a.email.upper(), "secret1")

    def test_authenticate(self, db_session, user_a):
        assert auth_service.authenticate(user_a.email, "secret123").id == user_a.id
        assert auth_service.authenticate(user_a.email, "wrong-password") is None
        assert auth_service.authenticate("nobody@shop.test", "secret123") is None

    def test_revoked_session_no_longer_validates(self, db_session, user_a):
        session, token = session_service.create_session(user_a.id)
        assert session_service.validate_session(token).user.id == user_a.id

        session_service.revoke_session(token)
        assert session_service.validate_session(token) is None

    def test_idle_session_is_revoked(self, app, db_session, user_a, monkeypatch):
        session, token = session_service.create_session(user_a.id)
        monkeypatch.setitem(app.config, "SESSION_IDLE_MINUTES", 0)
        session.last_used_at = session.last_used_at - timedelta(seconds=5)
        db_session.commit()

        assert session_service.validate_session(token) is None
        db_session.refresh(session)
        assert session.is_revoked is True
        assert session.revoked_reason == "Idle timeout"


# =============================================================================
# ROUTES
# =============================================================================


class TestSignupRoute:

    def test_signup_returns_token(self, client, db_session):
        resp = client.post("/api/auth/signup", json={
            "email": "new@shop.test",
            "password": "secret1",
            "confirm_password": "secret1",
        })
        assert resp.status_code == 201
        assert resp.json["user"]["email"] == "new@shop.test"

        token = resp.json["token"]
        session = client.get("/api/auth/session", headers={"Authorization": f"Bearer {token}"})
        assert session.status_code == 200

    def test_password_mismatch(self, client, db_session):
        resp = client.post("/api/auth/signup", json={
            "email": "new@shop.test",
            "password": "secret1",
            "confirm_password": "secret2",
        })
        assert resp.status_code == 400
        assert resp.json["field"] == "confirm_password"

    def test_short_password(self, client, db_session):
        resp = client.post("/api/auth/signup", json={
            "email": "new@shop.test",
            "password": "123",
            "confirm_password": "123",
        })
        assert resp.status_code == 400
        assert resp.json["field"] == "password"

    def test_duplicate_email(self, client, user_a):
        resp = client.post("/api/auth/signup", json={
            "email": user_a.email,
            "password": "secret1",
            "confirm_password": "secret1",
        })
        assert resp.status_code == 400
        assert resp.json["field"] == "email"


class TestLoginRoute:

    def test_login_success(self, client, user_a):
        resp = client.post("/api/auth/login", json={"email": user_a.email, "password": "secret123"})
        assert resp.status_code == 200
        assert resp.json["token"]
        assert resp.json["user"]["id"] == user_a.id

    def test_login_wrong_password(self, client, user_a):
        resp = client.post("/api/auth/login", json={"email": user_a.email, "password": "nope-nope"})
        assert resp.status_code == 401

    def test_login_missing_fields(self, client, db_session):
        resp = client.post("/api/auth/login", json={"email": "x@shop.test"})
        assert resp.status_code == 400


class TestAuthGate:

    @pytest.mark.parametrize(
        "method,path",
        [
            ("GET", "/api/auth/session"),
            ("GET", "/api/products"),
            ("POST", "/api/products"),
            ("GET", "/api/pos/cart"),
            ("POST", "/api/pos/checkout"),
            ("GET", "/api/sales"),
            ("GET", "/api/invoices"),
            ("POST", "/api/invoices"),
            ("GET", "/api/invoices/1/pdf"),
            ("GET", "/api/analytics"),
            ("GET", "/api/stream/products"),
        ],
    )
    def test_requires_auth(self, client, db_session, method, path):
        resp = getattr(client, method.lower())(path)
        assert resp.status_code == 401, f"{method} {path} returned {resp.status_code}"
        assert resp.json["login_url"] == "/login"

    def test_garbage_token(self, client, db_session):
        resp = client.get("/api/products", headers={"Authorization": "Bearer not-a-token"})
        assert resp.status_code == 401


class TestLogout:

    def test_logout_revokes_token(self, client, headers_a):
        resp = client.post("/api/auth/logout", headers=headers_a)
        assert resp.status_code == 200

        assert client.get("/api/auth/session", headers=headers_a).status_code == 401
        assert client.post("/api/auth/logout", headers=headers_a).status_code == 401

    def test_logout_discards_cart(self, app, client, headers_a, new_product):
        product = new_product()
        client.post("/api/pos/cart/items", json={"product_id": product.id}, headers=headers_a)
        assert len(get_cart_registry()) == 1

        client.post("/api/auth/logout", headers=headers_a)
        assert len(get_cart_registry()) == 0


class TestCartLifetime:

    def _open_carts(self, client, user, count):
        tokens = []
        for _ in range(count):
            token = get_auth_token(client, user.email)
            client.get("/api/pos/cart", headers=auth_headers(token))
            tokens.append(token)
        return tokens

    def test_cleanup_drops_carts_of_ended_sessions(self, client, user_a):
        self._open_carts(client, user_a, 5)
        assert len(get_cart_registry()) == 5

        past = utcnow() - timedelta(days=2)
        db.session.query(SessionToken).update({"expires_at": past, "created_at": past})
        db.session.commit()

        session_service.cleanup_expired_sessions(retention_days=0)
        assert len(get_cart_registry()) == 0

    def test_cleanup_keeps_active_carts(self, client, user_a):
        self._open_carts(client, user_a, 2)
        session_service.cleanup_expired_sessions(retention_days=0)
        assert len(get_cart_registry()) == 2

    def test_expired_session_loses_cart(self, client, user_a):
        [token] = self._open_carts(client, user_a, 1)
        db.session.query(SessionToken).update({"expires_at": utcnow() - timedelta(minutes=1)})
        db.session.commit()

        assert client.get("/api/pos/cart", headers=auth_headers(token)).status_code == 401
        assert len(get_cart_registry()) == 0

    def test_idle_session_loses_cart(self, app, client, user_a, monkeypatch):
        [token] = self._open_carts(client, user_a, 1)
        db.session.query(SessionToken).update({"last_used_at": utcnow() - timedelta(minutes=5)})
        db.session.commit()
        monkeypatch.setitem(app.config, "SESSION_IDLE_MINUTES", 1)

        assert client.get("/api/pos/cart", headers=auth_headers(token)).status_code == 401
        assert len(get_cart_registry()) == 0
