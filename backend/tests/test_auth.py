"""
Authentication and session tests.

Verifies:
- password strength rules and bcrypt hashing
- retailer self-registration starts inactive
- tokens are stored hashed and expire (absolute and idle)
- deactivating an account revokes its sessions
"""

from datetime import timedelta

import pytest

from serialdesk.extensions import db
from serialdesk.models import SessionToken, User
from serialdesk.services import auth_service, session_service
from serialdesk.services.auth_service import PasswordValidationError
from serialdesk.validation import ConflictError, ValidationError

from conftest import PASSWORD, auth_headers


class TestPasswords:

    @pytest.mark.parametrize("password", ["Short1!", "alllowercase1!", "ALLUPPERCASE1!", "NoDigits!!", "NoSpecial123"])
    def test_weak_passwords(self, password):
        with pytest.raises(PasswordValidationError):
            auth_service.validate_password_strength(password)

    def test_hash_roundtrip(self, app):
        hashed = auth_service.hash_password(PASSWORD)
        assert hashed != PASSWORD
        assert auth_service.verify_password(PASSWORD, hashed)
        assert not auth_service.verify_password("Wrong123!", hashed)

    def test_verify_garbage_hash(self):
        assert auth_service.verify_password(PASSWORD, "not-a-bcrypt-hash") is False


class TestAccounts:

    def test_duplicate_email_case_insensitive(self, customer):
        with pytest.raises(ConflictError):
            auth_service.create_user(name="Dup", email="CASEY@example.com", password=PASSWORD)

    def test_invalid_email(self, app):
        with pytest.raises(ValidationError):
            auth_service.create_user(name="X", email="not-an-email", password=PASSWORD)

    def test_retailer_registration_is_inactive(self, app):
        user = auth_service.register_account(name="New Shop", email="shop@example.com",
                                             password=PASSWORD, role="retailer")
        assert user.is_active is False
        assert auth_service.authenticate("shop@example.com", PASSWORD) is None

    def test_cannot_self_register_admin(self, app):
        with pytest.raises(ValidationError):
            auth_service.register_account(name="Eve", email="eve@example.com", password=PASSWORD, role="admin")

    def test_authenticate_sets_last_login(self, customer):
        user = auth_service.authenticate("casey@example.com", PASSWORD)
        assert user.id == customer.id
        assert user.last_login_at is not None

    def test_admin_cannot_demote_self(self, admin_user):
        with pytest.raises(ConflictError):
            auth_service.update_user(user_id=admin_user.id, patch={"role": "user"}, actor_user_id=admin_user.id)


class TestSessions:

    def test_token_stored_hashed(self, customer):
        session, token = session_service.create_session(customer.id)
        assert session.token_hash == session_service.hash_token(token)
        assert token not in session.token_hash

    def test_absolute_expiry(self, customer, db_session):
        session, token = session_service.create_session(customer.id)
        session.expires_at = session.created_at - timedelta(seconds=1)
        db_session.commit()
        assert session_service.validate_session(token) is None

    def test_idle_timeout_revokes(self, customer, db_session):
        session, token = session_service.create_session(customer.id)
        session.last_used_at = session.last_used_at - timedelta(hours=3)
        db_session.commit()

        assert session_service.validate_session(token) is None
        assert db.session.get(SessionToken, session.id).revoked_reason == "Idle timeout"

    def test_inactive_user_revokes(self, customer, db_session):
        _, token = session_service.create_session(customer.id)
        customer.is_active = False
        db_session.commit()
        assert session_service.validate_session(token) is None


class TestAuthRoutes:

    def test_register_login_me_logout(self, client):
        resp = client.post("/api/auth/register", json={
            "name": "Pat", "email": "pat@example.com", "password": PASSWORD,
        })
        assert resp.status_code == 201

        resp = client.post("/api/auth/login", json={"email": "pat@example.com", "password": PASSWORD})
        assert resp.status_code == 200
        token = resp.json["token"]
        assert resp.json["expires_at"].endswith("Z")

        resp = client.get("/api/auth/me", headers=auth_headers(token))
        assert resp.json["user"]["email"] == "pat@example.com"

        assert client.post("/api/auth/logout", headers=auth_headers(token)).status_code == 200
        assert client.get("/api/auth/me", headers=auth_headers(token)).status_code == 401

    def test_register_weak_password(self, client):
        resp = client.post("/api/auth/register", json={"name": "Pat", "email": "pat@example.com", "password": "weak"})
        assert resp.status_code == 400

    def test_register_duplicate(self, client, customer):
        resp = client.post("/api/auth/register", json={
            "name": "Casey", "email": "casey@example.com", "password": PASSWORD,
        })
        assert resp.status_code == 409

    def test_bad_credentials(self, client, customer):
        resp = client.post("/api/auth/login", json={"email": "casey@example.com", "password": "Wrong123!"})
        assert resp.status_code == 401

    def test_missing_token(self, client):
        assert client.get("/api/auth/me").status_code == 401
        assert client.get("/api/auth/me", headers=auth_headers("bogus")).status_code == 401


class TestAdminUsers:

    def test_deactivation_revokes_sessions(self, client, admin_headers, customer, customer_headers):
        resp = client.put(f"/api/admin/users/{customer.id}", headers=admin_headers, json={"is_active": False})

        assert resp.status_code == 200
        assert client.get("/api/auth/me", headers=customer_headers).status_code == 401
        assert db.session.query(SessionToken).filter_by(user_id=customer.id, is_revoked=False).count() == 0

    def test_activate_retailer(self, client, admin_headers):
        retailer = auth_service.register_account(name="Shop", email="shop@example.com",
                                                 password=PASSWORD, role="retailer")
        resp = client.put(f"/api/admin/users/{retailer.id}", headers=admin_headers, json={"is_active": True})

        assert resp.status_code == 200
        assert auth_service.authenticate("shop@example.com", PASSWORD) is not None

    def test_unknown_field(self, client, admin_headers, customer):
        resp = client.put(f"/api/admin/users/{customer.id}", headers=admin_headers, json={"password_hash": "x"})
        assert resp.status_code == 400

    def test_create_and_list(self, client, admin_headers):
        resp = client.post("/api/admin/users", headers=admin_headers, json={
            "name": "Staff", "email": "staff@example.com", "password": PASSWORD, "role": "admin",
        })
        assert resp.status_code == 201

        resp = client.get("/api/admin/users?role=admin", headers=admin_headers)
        assert {u["email"] for u in resp.json["users"]} == {"admin@serialdesk.test", "staff@example.com"}

    def test_customer_cannot_list_users(self, client, customer_headers):
        resp = client.get("/api/admin/users", headers=customer_headers)
        assert resp.status_code == 403
        assert resp.json["required_role"] == ["admin"]
