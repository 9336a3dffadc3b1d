"""Password hashing and bearer credentials for the directory API."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from fastapi import Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import ExpiredSignatureError, JWTError, jwt
from passlib.context import CryptContext

from .errors import InvalidCredentials, Unauthenticated, Unauthorized, ValidationError
from .models import User, UserDraft
from .store import DeveloperStore, normalize_email

logger = logging.getLogger("devdirectory.auth")

TOKEN_ALGORITHM = "HS256"
MIN_PASSWORD_LENGTH = 6

_pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")


def hash_password(password: str) -> str:
    return _pwd_context.hash(password)


def verify_password(password: str, hashed: str) -> bool:
    try:
        return _pwd_context.verify(password, hashed)
    except ValueError:
        return False


@dataclass(frozen=True)
class Credential:
    token: str
    expires_at: datetime


@dataclass(frozen=True)
class UserIdentity:
    id: str
    name: str
    email: str

    @staticmethod
    def from_user(user: User) -> "UserIdentity":
        return UserIdentity(id=user.id, name=user.name, email=user.email)

    def to_dict(self) -> Dict[str, str]:
        return {"id": self.id, "name": self.name, "email": self.email}


class AuthGate:
    """Issue and validate HMAC-signed bearer tokens with an absolute expiry."""

    def __init__(self, store: DeveloperStore, secret: str, *, ttl: timedelta = timedelta(hours=1)) -> None:
        if not secret:
            raise ValueError("A token signing secret must be provided")
        if ttl <= timedelta(0):
            raise ValueError("Token lifetime must be positive")
        self._store = store
        self._secret = secret
        self._ttl = ttl

    @property
    def ttl(self) -> timedelta:
        return self._ttl

    def signup(self, name: str, email: str, password: str) -> tuple[User, Credential]:
        if not password or len(password) < MIN_PASSWORD_LENGTH:
            message = f"Password must be at least {MIN_PASSWORD_LENGTH} characters."
            raise ValidationError(message, details=[{"field": "password", "message": message}])

        user = self._store.insert_user(UserDraft(name=name, email=email, password_hash=hash_password(password)))
        logger.info("Registered user %s <%s>", user.id, user.email)
        return user, self.issue(user)

    def login(self, email: str, password: str) -> tuple[User, Credential]:
        found = self._store.get_password_hash(email)
        if found is None or not verify_password(password, found[1]):
            logger.warning("Failed login attempt for %s", normalize_email(email))
            raise InvalidCredentials()
        user = found[0]
        logger.info("User %s logged in", user.id)
        return user, self.issue(user)

    def issue(self, user: User) -> Credential:
        issued_at = self._now()
        expires_at = issued_at + self._ttl
        claims = {
            "sub": user.id,
            "email": user.email,
            "name": user.name,
            "iat": int(issued_at.timestamp()),
            "exp": int(expires_at.timestamp()),
        }
        token = jwt.encode(claims, self._secret, algorithm=TOKEN_ALGORITHM)
        return Credential(token=token, expires_at=datetime.fromtimestamp(claims["exp"], tz=timezone.utc))

    def validate(self, token: Optional[str]) -> UserIdentity:
        if not token or not token.strip():
            raise Unauthenticated()
        token = token.strip()

        try:
            header = jwt.get_unverified_header(token)
            unverified = jwt.get_unverified_claims(token)
        except JWTError as exc:
            raise Unauthenticated("Malformed bearer token") from exc
        if header.get("alg") != TOKEN_ALGORITHM or not isinstance(unverified.get("sub"), str) or "exp" not in unverified:
            raise Unauthenticated("Malformed bearer token")

        try:
            claims: Dict[str, Any] = jwt.decode(token, self._secret, algorithms=[TOKEN_ALGORITHM])
        except ExpiredSignatureError as exc:
            logger.warning("Rejected expired credential for user %s", unverified.get("sub"))
            raise Unauthorized("Credential has expired") from exc
        except JWTError as exc:
            logger.warning("Rejected credential with invalid signature")
            raise Unauthorized("Credential signature is invalid") from exc

        user = self._store.get_user(claims["sub"])
        if user is None:
            raise Unauthorized("Credential subject no longer exists")
        return UserIdentity.from_user(user)

    def _now(self) -> datetime:
        return datetime.now(timezone.utc)


class BearerAuth:
    """FastAPI dependency resolving the Authorization header to a user identity."""

    def __init__(self, gate: AuthGate) -> None:
        self._gate = gate
        self._bearer = HTTPBearer(auto_error=False)

    async def __call__(self, request: Request) -> UserIdentity:
        credentials: HTTPAuthorizationCredentials | None = await self._bearer(request)  # type: ignore[assignment]
        if credentials is None or credentials.scheme.lower() != "bearer":
            raise Unauthenticated("Missing bearer token")
        return self._gate.validate(credentials.credentials)


__all__ = [
    "AuthGate",
    "BearerAuth",
    "Credential",
    "UserIdentity",
    "hash_password",
    "verify_password",
]
