"""Anonymous session management for the client.

A session store is the client's storage scope: as long as it holds a session,
every ``ensure_session`` call resolves to the same principal. Expired access
tokens are exchanged for new ones through the stored refresh token.
"""

from __future__ import annotations

import json
import logging
import os
from datetime import UTC, datetime, timedelta
from pathlib import Path
from typing import Any, Protocol

from pydantic import BaseModel, ValidationError as PydanticValidationError

from task_tracker.client.http import ApiResponse, BackendClient, TransportError
from task_tracker.errors import AuthError
from task_tracker.storage.models import UserRecord

logger = logging.getLogger(__name__)

# Treat a session this close to expiry as already expired.
EXPIRY_LEEWAY = timedelta(seconds=30)


class Session(BaseModel):
    access_token: str
    token_type: str = "bearer"
    expires_at: datetime
    refresh_token: str | None = None
    user: UserRecord

    @property
    def principal(self) -> str:
        return self.user.id

    def is_valid(self, now: datetime | None = None) -> bool:
        now = now or datetime.now(UTC)
        return bool(self.access_token) and self.expires_at - EXPIRY_LEEWAY > now


class SessionStore(Protocol):
    def load(self) -> Session | None: ...

    def save(self, session: Session) -> None: ...


class MemorySessionStore:
    """Session scope that lives as long as the process."""

    def __init__(self) -> None:
        self._session: Session | None = None

    def load(self) -> Session | None:
        return self._session

    def save(self, session: Session) -> None:
        self._session = session


class FileSessionStore:
    """Session scope persisted to a JSON file, shared by every run that points at it."""

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path).expanduser()

    def load(self) -> Session | None:
        if not self.path.exists():
            return None
        try:
            raw = self.path.read_text(encoding="utf-8")
            return Session.model_validate_json(raw)
        except (OSError, UnicodeDecodeError, PydanticValidationError) as exc:
            logger.warning("session event=load_failed path=%s error=%s", self.path, exc)
            return None

    def save(self, session: Session) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        # Bearer tokens: owner read/write only, from the moment the file exists.
        fd = os.open(self.path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
        os.fchmod(fd, 0o600)
        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            json.dump(session.model_dump(mode="json"), handle, indent=2)


class SessionManager:
    """Reuse the stored session, refresh it once expired, or sign in anonymously.

    Refreshing keeps the principal; a new anonymous sign-in only happens when
    there is no stored session or the backend rejects its refresh token.
    """

    def __init__(self, backend: BackendClient, store: SessionStore) -> None:
        self.backend = backend
        self.store = store

    def ensure_session(self) -> Session:
        existing = self.store.load()
        if existing is not None and existing.is_valid():
            logger.debug("session event=reused user_id=%s", existing.principal)
            return existing

        session = None
        if existing is not None:
            logger.info("session event=expired user_id=%s", existing.principal)
            session = self._refresh(existing)
        if session is None:
            session = self._sign_in_anonymously()
            logger.info("session event=created user_id=%s", session.principal)
        self.store.save(session)
        return session

    def _refresh(self, expired: Session) -> Session | None:
        if not expired.refresh_token:
            return None
        response = self._auth_request(
            "/auth/v1/token?grant_type=refresh_token",
            payload={"refresh_token": expired.refresh_token},
        )
        if response.status >= 500:
            raise AuthError(f"Session refresh failed: {response.error_message()}")
        if not response.ok:
            logger.warning(
                "session event=refresh_rejected user_id=%s error=%s",
                expired.principal,
                response.error_message(),
            )
            return None
        session = self._parse_session(response)
        logger.info("session event=refreshed user_id=%s", session.principal)
        return session

    def _sign_in_anonymously(self) -> Session:
        response = self._auth_request("/auth/v1/signup/anonymous")
        if not response.ok:
            raise AuthError(f"Anonymous sign-in failed: {response.error_message()}")
        return self._parse_session(response)

    def _auth_request(self, path: str, *, payload: Any = None) -> ApiResponse:
        try:
            return self.backend.request("POST", path, payload=payload)
        except TransportError as exc:
            raise AuthError(f"Could not reach the identity provider: {exc}") from exc

    @staticmethod
    def _parse_session(response: ApiResponse) -> Session:
        try:
            return Session.model_validate(response.payload)
        except PydanticValidationError as exc:
            raise AuthError("Identity provider returned an unreadable session") from exc
