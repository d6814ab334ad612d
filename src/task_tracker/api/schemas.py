"""Request and response bodies for the identity endpoints."""

from datetime import datetime

from pydantic import BaseModel, Field

from task_tracker.storage.models import UserRecord


class SessionResponse(BaseModel):
    """Returned by anonymous sign-up and token refresh; the client persists it as-is."""

    access_token: str
    token_type: str = "bearer"
    expires_in: int
    expires_at: datetime
    refresh_token: str
    user: UserRecord


class RefreshTokenRequest(BaseModel):
    refresh_token: str = Field(min_length=1)


class HealthResponse(BaseModel):
    status: str
    service: str
