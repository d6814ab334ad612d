"""Session access tokens for anonymous principals (PyJWT, HS256)."""

from __future__ import annotations

import hashlib
import logging
import secrets
import uuid
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from typing import Any

import jwt as pyjwt

logger = logging.getLogger(__name__)

TOKEN_ISSUER = "task-tracker"
TOKEN_AUDIENCE = "authenticated"


def new_refresh_token() -> tuple[str, str]:
    """Return an opaque refresh token and the digest stored server-side."""
    raw = secrets.token_urlsafe(32)
    return raw, hash_refresh_token(raw)


def hash_refresh_token(raw: str) -> str:
    return hashlib.sha256(raw.encode("utf-8")).hexdigest()


class InvalidToken(Exception):
    """Token is malformed, has a bad signature or is expired."""


@dataclass
class AccessToken:
    """Decoded session token."""

    user_id: str
    issued_at: datetime
    expires_at: datetime
    role: str = "anon"
    token_type: str = "bearer"
    jti: str = field(default_factory=lambda: str(uuid.uuid4()))

    def is_expired(self) -> bool:
        return datetime.now(UTC) >= self.expires_at


class TokenService:
    """Issue and verify signed session tokens."""

    def __init__(self, secret_key: str, *, ttl_s: int) -> None:
        if not secret_key:
            raise RuntimeError(
                "TASK_TRACKER_JWT_SECRET is required. "
                "Set it to a cryptographically random string."
            )
        self.secret_key = secret_key
        self.ttl_s = ttl_s

    def issue(self, user_id: str) -> tuple[str, AccessToken]:
        # JWT timestamps have one-second resolution.
        now = datetime.now(UTC).replace(microsecond=0)
        token = AccessToken(
            user_id=user_id,
            issued_at=now,
            expires_at=now + timedelta(seconds=self.ttl_s),
        )
        payload: dict[str, Any] = {
            "sub": token.user_id,
            "role": token.role,
            "iat": token.issued_at,
            "exp": token.expires_at,
            "jti": token.jti,
            "iss": TOKEN_ISSUER,
            "aud": TOKEN_AUDIENCE,
        }
        encoded = pyjwt.encode(payload, self.secret_key, algorithm="HS256")
        logger.debug("auth event=token_issued user_id=%s jti=%s", user_id, token.jti)
        return encoded, token

    def verify(self, encoded: str) -> AccessToken:
        try:
            payload = pyjwt.decode(
                encoded,
                self.secret_key,
                algorithms=["HS256"],
                audience=TOKEN_AUDIENCE,
                issuer=TOKEN_ISSUER,
                options={"require": ["sub", "exp", "iat"]},
            )
        except pyjwt.ExpiredSignatureError as exc:
            logger.info("auth event=token_rejected reason=expired")
            raise InvalidToken("Session token expired") from exc
        except pyjwt.InvalidTokenError as exc:
            logger.warning("auth event=token_rejected reason=invalid error=%s", exc)
            raise InvalidToken("Invalid session token") from exc

        return AccessToken(
            user_id=str(payload["sub"]),
            issued_at=datetime.fromtimestamp(payload["iat"], tz=UTC),
            expires_at=datetime.fromtimestamp(payload["exp"], tz=UTC),
            role=str(payload.get("role", "anon")),
            jti=str(payload.get("jti", "")),
        )
