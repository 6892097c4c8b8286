"""
User accounts and JWT access tokens.

Passwords are stored as salted PBKDF2-SHA256 hashes. Access tokens are HS256
JWTs carrying the user id, role and a unique ``jti``; logging out records the
``jti`` in ``revoked_tokens`` until the token would have expired anyway.
"""

import hashlib
import hmac
import logging
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional, Tuple
from uuid import uuid4

import jwt

from .database import Database, is_row_id
from .errors import AuthError, ConflictError, NotFoundError
from .models import LoginRequest, RegisterRequest, TokenResponse, UserView
from .utils import utcnow

logger = logging.getLogger(__name__)

_PBKDF2_ITERATIONS = 240_000


def hash_password(password: str) -> str:
    """Return ``pbkdf2_sha256$<iterations>$<salt>$<hex digest>``."""
    salt = secrets.token_hex(16)
    digest = hashlib.pbkdf2_hmac("sha256", password.encode(), salt.encode(), _PBKDF2_ITERATIONS)
    return f"pbkdf2_sha256${_PBKDF2_ITERATIONS}${salt}${digest.hex()}"


def verify_password(password: str, encoded: str) -> bool:
    try:
        algorithm, iterations, salt, expected = encoded.split("$")
    except ValueError:
        return False
    if algorithm != "pbkdf2_sha256":
        return False
    digest = hashlib.pbkdf2_hmac("sha256", password.encode(), salt.encode(), int(iterations))
    return hmac.compare_digest(digest.hex(), expected)


@dataclass
class UserRecord:
    id: int
    email: str
    password_hash: str
    role: str
    created_at: str

    def to_view(self) -> UserView:
        return UserView(id=self.id, email=self.email, role=self.role, created_at=datetime.fromisoformat(self.created_at))


@dataclass
class Principal:
    """The authenticated caller behind a request."""

    user_id: int
    role: str
    jti: str
    expires_at: datetime


class UserRepository:
    def __init__(self, database: Database):
        self.database = database

    def _to_record(self, row) -> UserRecord:
        return UserRecord(
            id=row["id"],
            email=row["email"],
            password_hash=row["password_hash"],
            role=row["role"],
            created_at=row["created_at"],
        )

    def create(self, email: str, password_hash: str, role: str) -> UserRecord:
        now = utcnow().isoformat()
        with self.database.connection() as conn:
            cursor = conn.execute(
                """
                INSERT INTO users (email, password_hash, role, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?)
                """,
                (email, password_hash, role, now, now),
            )
            row = conn.execute("SELECT * FROM users WHERE id = ?", (cursor.lastrowid,)).fetchone()
        return self._to_record(row)

    def get_by_email(self, email: str) -> Optional[UserRecord]:
        with self.database.connection() as conn:
            row = conn.execute("SELECT * FROM users WHERE email = ?", (email,)).fetchone()
        return self._to_record(row) if row else None

    def get_by_id(self, user_id: int) -> Optional[UserRecord]:
        if not is_row_id(user_id):
            return None
        with self.database.connection() as conn:
            row = conn.execute("SELECT * FROM users WHERE id = ?", (user_id,)).fetchone()
        return self._to_record(row) if row else None


class RevokedTokenRepository:
    def __init__(self, database: Database):
        self.database = database

    def revoke(self, jti: str, expires_at: datetime) -> None:
        with self.database.connection() as conn:
            conn.execute(
                "INSERT OR REPLACE INTO revoked_tokens (jti, expires_at) VALUES (?, ?)",
                (jti, expires_at.isoformat()),
            )

    def is_revoked(self, jti: str) -> bool:
        with self.database.connection() as conn:
            row = conn.execute("SELECT 1 FROM revoked_tokens WHERE jti = ?", (jti,)).fetchone()
        return row is not None

    def purge_expired(self, now: datetime) -> int:
        """Drop revocations whose tokens have expired. Returns the number removed."""
        with self.database.connection() as conn:
            cursor = conn.execute("DELETE FROM revoked_tokens WHERE expires_at < ?", (now.isoformat(),))
            return cursor.rowcount


class TokenService:
    def __init__(
        self,
        revoked_tokens: RevokedTokenRepository,
        secret: str,
        algorithm: str = "HS256",
        issuer: str = "poster-gen-api",
        ttl_minutes: int = 60,
    ):
        self.revoked_tokens = revoked_tokens
        self.secret = secret
        self.algorithm = algorithm
        self.issuer = issuer
        self.ttl = timedelta(minutes=ttl_minutes)

    def issue(self, user: UserRecord) -> Tuple[str, datetime]:
        now = utcnow()
        expires_at = now + self.ttl
        jti = str(uuid4())
        payload = {
            "sub": str(user.id),
            "role": user.role,
            "jti": jti,
            "iss": self.issuer,
            "iat": now,
            "nbf": now,
            "exp": expires_at,
        }
        token = jwt.encode(payload, self.secret, algorithm=self.algorithm)
        logger.info(f"JWT issued for user {user.id} (jti={jti})")
        return token, expires_at

    def verify(self, token: str) -> Principal:
        """
        Decode and check a token.

        Raises:
            AuthError: If the token is malformed, expired, signed with another
                key or algorithm, or revoked
        """
        try:
            claims = jwt.decode(
                token,
                self.secret,
                algorithms=[self.algorithm],
                issuer=self.issuer,
                options={"require": ["exp", "sub", "jti"]},
            )
        except jwt.ExpiredSignatureError as exc:
            raise AuthError("token has expired") from exc
        except jwt.InvalidTokenError as exc:
            logger.debug(f"Rejected token: {exc}")
            raise AuthError("invalid token") from exc

        if self.revoked_tokens.is_revoked(claims["jti"]):
            raise AuthError("token has been revoked")

        try:
            user_id = int(claims["sub"])
        except (TypeError, ValueError) as exc:
            raise AuthError("invalid token") from exc

        return Principal(
            user_id=user_id,
            role=claims.get("role", "user"),
            jti=claims["jti"],
            expires_at=datetime.fromtimestamp(claims["exp"], tz=timezone.utc),
        )

    def revoke(self, principal: Principal) -> None:
        self.revoked_tokens.revoke(principal.jti, principal.expires_at)
        self.revoked_tokens.purge_expired(utcnow())
        logger.info(f"JWT revoked for user {principal.user_id} (jti={principal.jti})")


class UserService:
    def __init__(self, users: UserRepository, tokens: TokenService):
        self.users = users
        self.tokens = tokens

    def register(self, request: RegisterRequest) -> UserView:
        email = request.email.strip().lower()
        if self.users.get_by_email(email):
            raise ConflictError("email already registered")
        user = self.users.create(email, hash_password(request.password), request.role)
        logger.info(f"User {user.id} registered with role '{user.role}'")
        return user.to_view()

    def login(self, request: LoginRequest) -> TokenResponse:
        user = self.users.get_by_email(request.email.strip().lower())
        if user is None or not verify_password(request.password, user.password_hash):
            logger.warning("Login failed: invalid credentials")
            raise AuthError("invalid email or password")
        token, expires_at = self.tokens.issue(user)
        return TokenResponse(access_token=token, expires_at=expires_at, user=user.to_view())

    def logout(self, principal: Principal) -> None:
        self.tokens.revoke(principal)

    def get_user(self, user_id: int) -> UserView:
        user = self.users.get_by_id(user_id)
        if user is None:
            raise NotFoundError("user not found")
        return user.to_view()
