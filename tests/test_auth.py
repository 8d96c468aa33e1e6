"""
Tests for authentication endpoints.
"""
import pytest
from sqlalchemy import select

from generatorlog.core import security
from generatorlog.core.db.tables.user import User
from generatorlog.core.security import verify_password

COOKIE_NAME = "generatorlog_session"
DEFAULT_PASSWORD = "correct horse battery"


@pytest.fixture
def derived_salts(monkeypatch):
    """Record the salt of every scrypt derivation."""
    salts = []
    real = security._derive

    def spy(password, salt):
        salts.append(salt)
        return real(password, salt)

    monkeypatch.setattr(security, "_derive", spy)
    return salts


class TestEnrollment:
    """Tests for account enrollment"""

    def test_enroll_success(self, client_factory, db_session):
        client = client_factory(db_session)

        response = client.post("/api/auth/enroll", json={
            "email": "New.Owner@Example.com",
            "password": "long enough password",
            "name": "New Owner",
        })

        assert response.status_code == 201
        data = response.json()
        assert data["email"] == "new.owner@example.com"
        assert data["name"] == "New Owner"
        assert "createdAt" in data
        assert "password" not in data
        assert "passwordHash" not in data
        assert COOKIE_NAME in response.cookies

    def test_enroll_stores_scrypt_credential(self, client_factory, db_session):
        client = client_factory(db_session)
        client.post("/api/auth/enroll", json={"email": "a@example.com", "password": "long enough password"})

        user = db_session.execute(select(User).where(User.email == "a@example.com")).scalar_one()
        assert user.password_hash != "long enough password"
        assert verify_password("long enough password", user.password_hash)

    def test_enroll_session_is_usable(self, client_factory, db_session):
        client = client_factory(db_session)
        client.post("/api/auth/enroll", json={"email": "a@example.com", "password": "long enough password"})

        response = client.get("/api/auth/me")
        assert response.status_code == 200
        assert response.json()["email"] == "a@example.com"

    def test_enroll_duplicate_email(self, client_factory, db_session, owner):
        client = client_factory(db_session)

        response = client.post("/api/auth/enroll", json={
            "email": "OWNER@example.com",
            "password": "long enough password",
        })

        assert response.status_code == 409
        assert response.json() == {"error": "Email already registered"}

    def test_enroll_invalid_email(self, client_factory, db_session):
        client = client_factory(db_session)

        response = client.post("/api/auth/enroll", json={"email": "not-an-email", "password": "long enough password"})

        assert response.status_code == 400
        body = response.json()
        assert body["error"] == "Invalid request"
        assert body["details"]

    def test_enroll_short_password(self, client_factory, db_session):
        client = client_factory(db_session)

        response = client.post("/api/auth/enroll", json={"email": "a@example.com", "password": "short"})

        assert response.status_code == 400

    def test_enroll_name_is_sanitized(self, client_factory, db_session):
        client = client_factory(db_session)

        response = client.post("/api/auth/enroll", json={
            "email": "a@example.com",
            "password": "long enough password",
            "name": "<script>alert(1)</script>Sam",
        })

        assert response.status_code == 201
        assert "<script>" not in response.json()["name"]


class TestLogin:
    """Tests for login"""

    def test_login_success_sets_cookie(self, client_factory, db_session, owner):
        client = client_factory(db_session)

        response = client.post("/api/auth/login", json={"email": owner.email, "password": DEFAULT_PASSWORD})

        assert response.status_code == 200
        assert response.json()["id"] == owner.id

        cookie = response.headers["set-cookie"].lower()
        assert cookie.startswith(f"{COOKIE_NAME}=")
        assert "httponly" in cookie
        assert "samesite=strict" in cookie
        assert "path=/" in cookie
        assert "max-age=86400" in cookie
        assert "secure" not in cookie

    def test_login_email_is_case_insensitive(self, client_factory, db_session, owner):
        client = client_factory(db_session)

        response = client.post("/api/auth/login", json={"email": "Owner@Example.COM", "password": DEFAULT_PASSWORD})

        assert response.status_code == 200

    def test_wrong_password(self, client_factory, db_session, owner):
        client = client_factory(db_session)

        response = client.post("/api/auth/login", json={"email": owner.email, "password": "wrong password"})

        assert response.status_code == 401
        assert response.json() == {"error": "Invalid email or password"}
        assert COOKIE_NAME not in response.cookies

    def test_unknown_email_same_response(self, client_factory, db_session, owner):
        client = client_factory(db_session)

        response = client.post("/api/auth/login", json={"email": "ghost@example.com", "password": DEFAULT_PASSWORD})

        assert response.status_code == 401
        assert response.json() == {"error": "Invalid email or password"}

    def test_unknown_email_derives_against_dummy_credential(self, client_factory, db_session, owner, derived_salts):
        client = client_factory(db_session)

        response = client.post("/api/auth/login", json={"email": "ghost@example.com", "password": DEFAULT_PASSWORD})

        assert response.status_code == 401
        assert derived_salts == [bytes.fromhex(security.DUMMY_CREDENTIAL.split(":")[0])]

    def test_wrong_password_derives_against_stored_credential(self, client_factory, db_session, owner, derived_salts):
        client = client_factory(db_session)

        client.post("/api/auth/login", json={"email": owner.email, "password": "wrong password"})

        assert derived_salts == [bytes.fromhex(owner.password_hash.split(":")[0])]

    def test_login_is_rate_limited(self, client_factory, db_session, owner):
        client = client_factory(db_session)

        statuses = [
            client.post("/api/auth/login", json={"email": owner.email, "password": "wrong password"}).status_code
            for _ in range(11)
        ]

        assert statuses[:10] == [401] * 10
        assert statuses[10] == 429


class TestSessionEndpoints:
    """Tests for me and logout"""

    def test_me_requires_session(self, client_factory, db_session):
        client = client_factory(db_session)

        response = client.get("/api/auth/me")

        assert response.status_code == 401
        assert response.json() == {"error": "Not authenticated"}

    def test_me_with_unknown_session(self, client_factory, db_session):
        client = client_factory(db_session, session_id="f" * 64)

        assert client.get("/api/auth/me").status_code == 401

    def test_me_with_expired_session(self, client_factory, db_session, owner, login_session, clock):
        session_id = login_session(owner, clock=clock)
        clock.advance(days=1, seconds=1)
        client = client_factory(db_session, session_id=session_id, clock=clock)

        assert client.get("/api/auth/me").status_code == 401

    def test_logout_revokes_session(self, client_factory, db_session, owner, login_session):
        session_id = login_session(owner)
        client = client_factory(db_session, session_id=session_id)

        response = client.post("/api/auth/logout")
        assert response.status_code == 204
        assert 'max-age=0' in response.headers["set-cookie"].lower()

        replay = client_factory(db_session, session_id=session_id)
        assert replay.get("/api/auth/me").status_code == 401

    def test_logout_without_session(self, client_factory, db_session):
        client = client_factory(db_session)

        assert client.post("/api/auth/logout").status_code == 204


class TestPasswordChange:
    """Tests for password change"""

    def test_change_password_revokes_other_sessions(self, client_factory, db_session, owner, login_session):
        current = login_session(owner)
        other = login_session(owner)
        client = client_factory(db_session, session_id=current)

        response = client.post("/api/auth/password", json={
            "currentPassword": DEFAULT_PASSWORD,
            "newPassword": "an even better password",
        })

        assert response.status_code == 204
        assert client.get("/api/auth/me").status_code == 200
        assert client_factory(db_session, session_id=other).get("/api/auth/me").status_code == 401

        db_session.refresh(owner)
        assert verify_password("an even better password", owner.password_hash)

    def test_wrong_current_password(self, client_factory, db_session, owner, login_session):
        client = client_factory(db_session, session_id=login_session(owner))

        response = client.post("/api/auth/password", json={
            "currentPassword": "not my password",
            "newPassword": "an even better password",
        })

        assert response.status_code == 401
        assert response.json() == {"error": "Current password is incorrect"}

    def test_requires_session(self, client_factory, db_session):
        client = client_factory(db_session)

        response = client.post("/api/auth/password", json={
            "currentPassword": DEFAULT_PASSWORD,
            "newPassword": "an even better password",
        })

        assert response.status_code == 401
