"""FastAPI app entrypoint for the task-tracker backend.

Postponed annotation evaluation stays off in this module: the dependency
callables referenced inside ``Annotated[...]`` are closures of ``create_app``.
"""

import hmac
import logging
from contextlib import asynccontextmanager
from typing import Annotated

from fastapi import Depends, FastAPI, Header, HTTPException, Query, Request, Response, status
from fastapi.responses import JSONResponse

from task_tracker.api.schemas import HealthResponse, RefreshTokenRequest, SessionResponse
from task_tracker.auth.tokens import (
    InvalidToken,
    TokenService,
    hash_refresh_token,
    new_refresh_token,
)
from task_tracker.config.settings import Settings, get_settings
from task_tracker.services.policies import PolicyViolation
from task_tracker.services.tasks import TaskNotAccessible, TaskService
from task_tracker.storage.base import TaskStorage
from task_tracker.storage.models import NewTask, TaskChanges, TaskRecord, UserRecord
from task_tracker.storage.postgres import PostgresTaskStorage

logger = logging.getLogger(__name__)


def _ensure_runtime_state(
    app: FastAPI,
    *,
    settings: Settings,
    storage_override: TaskStorage | None,
) -> None:
    if not hasattr(app.state, "storage"):
        if storage_override is None and not settings.database_url:
            raise RuntimeError(
                "Missing database URL. Set TASK_TRACKER_DATABASE_URL before starting the app."
            )
        app.state.storage = storage_override or PostgresTaskStorage(settings.database_url)
        app.state.storage.migrate()

    if not hasattr(app.state, "tokens"):
        app.state.tokens = TokenService(settings.jwt_secret, ttl_s=settings.session_ttl_s)

    if not hasattr(app.state, "tasks"):
        app.state.tasks = TaskService(app.state.storage)

    if not hasattr(app.state, "settings"):
        app.state.settings = settings


def create_app(
    *,
    storage: TaskStorage | None = None,
    settings_override: Settings | None = None,
) -> FastAPI:
    settings = settings_override or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        _ensure_runtime_state(app, settings=settings, storage_override=storage)
        yield

    app_lifespan = lifespan if storage is None else None
    app = FastAPI(title=settings.app_name, lifespan=app_lifespan)

    # Keep test paths reliable when lifespan is not executed by the client.
    if storage is not None:
        _ensure_runtime_state(app, settings=settings, storage_override=storage)

    def _runtime(request: Request) -> Request:
        if not hasattr(request.app.state, "tasks"):
            _ensure_runtime_state(request.app, settings=settings, storage_override=storage)
        return request

    def require_api_key(
        request: Annotated[Request, Depends(_runtime)],
        apikey: Annotated[str | None, Header()] = None,
    ) -> None:
        expected = request.app.state.settings.resolved_anon_key()
        if not expected:
            raise RuntimeError("TASK_TRACKER_ANON_KEY is required to serve requests.")
        if not apikey or not hmac.compare_digest(apikey.encode(), expected.encode()):
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid API key")

    def current_user(
        request: Annotated[Request, Depends(_runtime)],
        _: Annotated[None, Depends(require_api_key)],
        authorization: Annotated[str | None, Header()] = None,
    ) -> UserRecord:
        scheme, _sep, raw_token = (authorization or "").partition(" ")
        if scheme.lower() != "bearer" or not raw_token.strip():
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Not authenticated",
                headers={"WWW-Authenticate": "Bearer"},
            )
        try:
            token = request.app.state.tokens.verify(raw_token.strip())
        except InvalidToken as exc:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail=str(exc),
                headers={"WWW-Authenticate": "Bearer"},
            ) from exc
        user = request.app.state.storage.get_user(token.user_id)
        if user is None:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Session user no longer exists",
                headers={"WWW-Authenticate": "Bearer"},
            )
        return user

    def _issue_session(request: Request, user: UserRecord) -> SessionResponse:
        encoded, token = request.app.state.tokens.issue(user.id)
        refresh_token, refresh_hash = new_refresh_token()
        request.app.state.storage.add_refresh_token(user.id, refresh_hash)
        return SessionResponse(
            access_token=encoded,
            token_type=token.token_type,
            expires_in=request.app.state.tokens.ttl_s,
            expires_at=token.expires_at,
            refresh_token=refresh_token,
            user=user,
        )

    @app.exception_handler(PolicyViolation)
    async def _policy_violation(_request: Request, exc: PolicyViolation) -> JSONResponse:
        return JSONResponse(status_code=status.HTTP_403_FORBIDDEN, content={"detail": str(exc)})

    @app.exception_handler(TaskNotAccessible)
    async def _not_accessible(_request: Request, exc: TaskNotAccessible) -> JSONResponse:
        return JSONResponse(status_code=status.HTTP_403_FORBIDDEN, content={"detail": str(exc)})

    @app.get("/health", response_model=HealthResponse)
    def health() -> HealthResponse:
        return HealthResponse(status="ok", service=settings.app_name)

    @app.post("/auth/v1/signup/anonymous", response_model=SessionResponse)
    def sign_up_anonymously(
        request: Annotated[Request, Depends(_runtime)],
        _: Annotated[None, Depends(require_api_key)],
    ) -> SessionResponse:
        if not request.app.state.settings.anonymous_sign_in_enabled:
            logger.warning("auth event=anonymous_sign_in_rejected reason=disabled")
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Anonymous sign-ins are disabled",
            )
        user = request.app.state.storage.create_user(is_anonymous=True)
        logger.info("auth event=anonymous_sign_in user_id=%s", user.id)
        return _issue_session(request, user)

    @app.post("/auth/v1/token", response_model=SessionResponse)
    def refresh_session(
        payload: RefreshTokenRequest,
        request: Annotated[Request, Depends(_runtime)],
        _: Annotated[None, Depends(require_api_key)],
        grant_type: Annotated[str, Query()] = "refresh_token",
    ) -> SessionResponse:
        if grant_type != "refresh_token":
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"Unsupported grant_type: {grant_type}",
            )
        storage = request.app.state.storage
        user_id = storage.redeem_refresh_token(hash_refresh_token(payload.refresh_token))
        user = storage.get_user(user_id) if user_id is not None else None
        if user is None:
            logger.info("auth event=refresh_rejected")
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Invalid refresh token",
            )
        logger.info("auth event=session_refreshed user_id=%s", user.id)
        return _issue_session(request, user)

    @app.get("/auth/v1/user", response_model=UserRecord)
    def get_user(user: Annotated[UserRecord, Depends(current_user)]) -> UserRecord:
        return user

    @app.get("/rest/v1/tasks", response_model=list[TaskRecord])
    def list_tasks(
        request: Request,
        user: Annotated[UserRecord, Depends(current_user)],
    ) -> list[TaskRecord]:
        return request.app.state.tasks.list_tasks(user.id)

    @app.post("/rest/v1/tasks", response_model=TaskRecord, status_code=status.HTTP_201_CREATED)
    def insert_task(
        payload: NewTask,
        request: Request,
        user: Annotated[UserRecord, Depends(current_user)],
    ) -> TaskRecord:
        return request.app.state.tasks.create_task(user.id, payload)

    @app.patch("/rest/v1/tasks/{task_id}", response_model=TaskRecord)
    def update_task(
        task_id: str,
        payload: TaskChanges,
        request: Request,
        user: Annotated[UserRecord, Depends(current_user)],
    ) -> TaskRecord:
        return request.app.state.tasks.update_task(user.id, task_id, payload)

    @app.delete("/rest/v1/tasks/{task_id}", status_code=status.HTTP_204_NO_CONTENT)
    def delete_task(
        task_id: str,
        request: Request,
        user: Annotated[UserRecord, Depends(current_user)],
    ) -> Response:
        request.app.state.tasks.delete_task(user.id, task_id)
        return Response(status_code=status.HTTP_204_NO_CONTENT)

    return app


app = create_app()
