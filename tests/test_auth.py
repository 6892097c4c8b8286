"""
Tests for user accounts and JWT access tokens.
"""

from datetime import timedelta
from uuid import uuid4

import jwt
import pytest

from poster_gen_backend.auth import (
    RevokedTokenRepository,
    TokenService,
    UserRepository,
    UserService,
    hash_password,
    verify_password,
)
from poster_gen_backend.errors import AuthError, ConflictError
from poster_gen_backend.models import LoginRequest, RegisterRequest
from poster_gen_backend.utils import utcnow

SECRET = "unit-test-secret-0123456789abcdef0123"


@pytest.fixture
def token_service(database):
    return TokenService(RevokedTokenRepository(database), secret=SECRET)


@pytest.fixture
def user_service(database, token_service):
    return UserService(UserRepository(database), token_service)


class TestPasswords:
    def test_hash_round_trip(self):
        encoded = hash_password("correct horse")
        assert encoded.startswith("pbkdf2_sha256$")
        assert verify_password("correct horse", encoded)
        assert not verify_password("wrong horse", encoded)

    def test_hashes_are_salted(self):
        assert hash_password("same") != hash_password("same")

    def test_malformed_hash_never_verifies(self):
        assert not verify_password("x", "plaintext")
        assert not verify_password("x", "md5$1$salt$abc")


class TestUserService:
    def test_register_and_login(self, user_service, token_service):
        user = user_service.register(RegisterRequest(email="Owner@Example.com", password="s3cret-pass"))
        assert user.email == "owner@example.com"
        assert user.role == "user"

        token = user_service.login(LoginRequest(email="owner@example.com", password="s3cret-pass"))
        principal = token_service.verify(token.access_token)
        assert principal.user_id == user.id
        assert token.token_type == "bearer"

    def test_duplicate_email(self, user_service):
        user_service.register(RegisterRequest(email="dup@example.com", password="s3cret-pass"))
        with pytest.raises(ConflictError):
            user_service.register(RegisterRequest(email="DUP@example.com", password="s3cret-pass"))

    def test_wrong_password(self, user_service):
        user_service.register(RegisterRequest(email="a@example.com", password="s3cret-pass"))
        with pytest.raises(AuthError):
            user_service.login(LoginRequest(email="a@example.com", password="nope-nope"))

    def test_unknown_user(self, user_service):
        with pytest.raises(AuthError):
            user_service.login(LoginRequest(email="ghost@example.com", password="whatever1"))

    def test_logout_revokes_token(self, user_service, token_service):
        user_service.register(RegisterRequest(email="b@example.com", password="s3cret-pass"))
        token = user_service.login(LoginRequest(email="b@example.com", password="s3cret-pass"))
        principal = token_service.verify(token.access_token)

        user_service.logout(principal)
        with pytest.raises(AuthError):
            token_service.verify(token.access_token)


class TestTokenVerification:
    def _claims(self, **overrides):
        now = utcnow()
        claims = {
            "sub": "1",
            "role": "user",
            "jti": str(uuid4()),
            "iss": "poster-gen-api",
            "iat": now,
            "exp": now + timedelta(minutes=5),
        }
        claims.update(overrides)
        return claims

    def test_expired_token(self, token_service):
        token = jwt.encode(self._claims(exp=utcnow() - timedelta(minutes=1)), SECRET, algorithm="HS256")
        with pytest.raises(AuthError) as exc_info:
            token_service.verify(token)
        assert exc_info.value.message == "token has expired"

    def test_wrong_secret(self, token_service):
        token = jwt.encode(self._claims(), "another-secret-0123456789abcdef0123", algorithm="HS256")
        with pytest.raises(AuthError):
            token_service.verify(token)

    def test_wrong_issuer(self, token_service):
        token = jwt.encode(self._claims(iss="someone-else"), SECRET, algorithm="HS256")
        with pytest.raises(AuthError):
            token_service.verify(token)

    def test_missing_jti(self, token_service):
        claims = self._claims()
        del claims["jti"]
        with pytest.raises(AuthError):
            token_service.verify(jwt.encode(claims, SECRET, algorithm="HS256"))

    def test_garbage(self, token_service):
        with pytest.raises(AuthError):
            token_service.verify("not-a-token")


class TestAuthEndpoints:
    def test_register_login_me_logout(self, client):
        email = f"flow-{uuid4().hex[:8]}@example.com"
        response = client.post("/auth/register", json={"email": email, "password": "s3cret-pass"})
        assert response.status_code == 201

        token = client.post("/auth/login", json={"email": email, "password": "s3cret-pass"}).json()
        headers = {"Authorization": f"Bearer {token['access_token']}"}

        me = client.get("/auth/me", headers=headers)
        assert me.status_code == 200
        assert me.json()["email"] == email

        assert client.post("/auth/logout", headers=headers).status_code == 200
        assert client.get("/auth/me", headers=headers).status_code == 401

    def test_short_password_rejected(self, client):
        response = client.post("/auth/register", json={"email": "short@example.com", "password": "123"})
        assert response.status_code == 400
        assert "password" in response.json()["errors"]

    def test_bad_credentials(self, client):
        response = client.post("/auth/login", json={"email": "nobody@example.com", "password": "s3cret-pass"})
        assert response.status_code == 401
