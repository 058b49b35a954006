"""
Security utilities for authentication: password hashing, JWT access/refresh
tokens and one-time verification/reset tokens.
"""
from dataclasses import dataclass
from datetime import timedelta
from typing import Optional
import secrets

import bcrypt
from jose import ExpiredSignatureError, JWTError, jwt

from auth.errors import TokenExpiredError, TokenInvalidError, ValidationError
from core.logger import logger
from core.utils import utcnow

ACCESS = "access"
REFRESH = "refresh"

# bcrypt only looks at the first 72 bytes
BCRYPT_MAX_BYTES = 72


class PasswordHasher:
    """One-way bcrypt hashing with a per-call random salt embedded in the digest."""

    def __init__(self, rounds: int = 12):
        """
        Args:
            rounds: bcrypt cost factor
        """
        self.rounds = rounds
        self._dummy_hash: Optional[bytes] = None

    def hash(self, password: str) -> str:
        """
        Hash a password using bcrypt.

        Raises:
            ValidationError: If the password is empty or longer than 72 bytes
        """
        if not password:
            raise ValidationError("Password cannot be empty")
        password_bytes = password.encode('utf-8')
        if len(password_bytes) > BCRYPT_MAX_BYTES:
            raise ValidationError("Password cannot be longer than 72 bytes. Please use a shorter password.")

        salt = bcrypt.gensalt(rounds=self.rounds)
        return bcrypt.hashpw(password_bytes, salt).decode('utf-8')

    def verify(self, password: str, password_hash: str) -> bool:
        """Verify a password against a hash (bcrypt compares in constant time)."""
        if not password or not password_hash:
            return False
        password_bytes = password.encode('utf-8')
        if len(password_bytes) > BCRYPT_MAX_BYTES:
            return False
        try:
            return bcrypt.checkpw(password_bytes, password_hash.encode('utf-8'))
        except ValueError as e:
            logger.warning(f"Password verification failed on malformed hash: {e}")
            return False

    def verify_dummy(self, password: str) -> bool:
        """
        Burn one bcrypt verification for a caller with no stored hash, so an
        unknown account costs the same time as a known one. Always False.
        """
        if self._dummy_hash is None:
            self._dummy_hash = bcrypt.hashpw(b"dummy-password", bcrypt.gensalt(rounds=self.rounds))
        password_bytes = (password or "").encode('utf-8')[:BCRYPT_MAX_BYTES]
        bcrypt.checkpw(password_bytes, self._dummy_hash)
        return False


def generate_secure_token(nbytes: int = 32) -> str:
    """Random hex token for email verification and password reset links."""
    return secrets.token_hex(nbytes)


@dataclass(frozen=True)
class TokenPair:
    access_token: str
    refresh_token: str


class TokenIssuer:
    """
    Creates and validates signed, time-limited JWTs.

    Access and refresh tokens use independent secrets so that leaking one
    secret cannot forge the other kind of token. Stateless: revocation is
    handled by the caller through the stored refresh token.
    """

    def __init__(
        self,
        access_secret: str,
        refresh_secret: str,
        algorithm: str = "HS256",
        access_expire_minutes: int = 15,
        refresh_expire_days: int = 7,
    ):
        if access_secret == refresh_secret:
            raise ValueError("Access and refresh tokens must use different secrets")
        self._secrets = {ACCESS: access_secret, REFRESH: refresh_secret}
        self._lifetimes = {
            ACCESS: timedelta(minutes=access_expire_minutes),
            REFRESH: timedelta(days=refresh_expire_days),
        }
        self.algorithm = algorithm

    def _issue(self, identity_id: str, kind: str, expires_delta: Optional[timedelta] = None) -> str:
        now = utcnow()
        expire = now + (expires_delta if expires_delta is not None else self._lifetimes[kind])
        payload = {
            "sub": str(identity_id),
            "type": kind,
            "iat": now,
            "exp": expire,
            "jti": secrets.token_urlsafe(16),
        }
        return jwt.encode(payload, self._secrets[kind], algorithm=self.algorithm)

    def issue_access_token(self, identity_id: str, expires_delta: Optional[timedelta] = None) -> str:
        """Create a short-lived access token for an identity."""
        return self._issue(identity_id, ACCESS, expires_delta)

    def issue_refresh_token(self, identity_id: str, expires_delta: Optional[timedelta] = None) -> str:
        """Create a long-lived refresh token for an identity."""
        return self._issue(identity_id, REFRESH, expires_delta)

    def issue_pair(self, identity_id: str) -> TokenPair:
        return TokenPair(
            access_token=self.issue_access_token(identity_id),
            refresh_token=self.issue_refresh_token(identity_id),
        )

    def verify(self, token: str, kind: str = ACCESS) -> str:
        """
        Decode and verify a token of the given kind.

        Args:
            token: Encoded JWT
            kind: "access" or "refresh"

        Returns:
            The identity id the token was issued for

        Raises:
            TokenExpiredError: If the token is past its lifetime
            TokenInvalidError: If the token is malformed, badly signed or of the wrong kind
        """
        if kind not in self._secrets:
            raise ValueError(f"Unknown token kind: {kind}")
        if not token:
            raise TokenInvalidError()
        try:
            payload = jwt.decode(token, self._secrets[kind], algorithms=[self.algorithm])
        except ExpiredSignatureError:
            raise TokenExpiredError()
        except JWTError:
            raise TokenInvalidError()

        if payload.get("type") != kind or not payload.get("sub"):
            raise TokenInvalidError()
        return payload["sub"]
