"""JSON-over-HTTP access to the backend, with a swappable transport."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, Protocol
from urllib import error, request

logger = logging.getLogger(__name__)


class TransportError(Exception):
    """Backend could not be reached at all (DNS, refused connection, timeout)."""


class HttpTransport(Protocol):
    def send(
        self,
        method: str,
        url: str,
        *,
        headers: dict[str, str],
        body: bytes | None,
        timeout_s: float,
    ) -> tuple[int, bytes]: ...


class UrllibTransport:
    """Default transport on top of ``urllib.request``."""

    def send(
        self,
        method: str,
        url: str,
        *,
        headers: dict[str, str],
        body: bytes | None,
        timeout_s: float,
    ) -> tuple[int, bytes]:
        req = request.Request(url=url, data=body, method=method, headers=headers)
        try:
            with request.urlopen(req, timeout=timeout_s) as response:
                return response.status, response.read()
        except error.HTTPError as exc:
            return exc.code, exc.read()
        except (error.URLError, TimeoutError, OSError) as exc:
            raise TransportError(f"Backend unreachable: {exc}") from exc


@dataclass
class ApiResponse:
    status: int
    payload: Any

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300

    def error_message(self) -> str:
        """Human-readable message from a FastAPI-style error body."""
        detail = self.payload.get("detail") if isinstance(self.payload, dict) else None
        if isinstance(detail, str) and detail:
            return detail
        if isinstance(detail, list):
            messages = []
            for item in detail:
                if not isinstance(item, dict):
                    continue
                field = ".".join(str(part) for part in item.get("loc", [])[1:])
                msg = str(item.get("msg", "invalid value"))
                messages.append(f"{field}: {msg}" if field else msg)
            if messages:
                return "; ".join(messages)
        return f"Backend returned HTTP {self.status}"


class BackendClient:
    """Sends requests with the public API key and, when given, a session token."""

    def __init__(
        self,
        *,
        base_url: str,
        api_key: str,
        timeout_s: float = 10.0,
        transport: HttpTransport | None = None,
    ) -> None:
        if not base_url or not api_key:
            raise RuntimeError(
                "Task tracker configuration missing. "
                "Set TASK_TRACKER_URL and TASK_TRACKER_ANON_KEY."
            )
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.timeout_s = timeout_s
        self.transport = transport or UrllibTransport()

    def request(
        self,
        method: str,
        path: str,
        *,
        access_token: str | None = None,
        payload: Any = None,
    ) -> ApiResponse:
        headers = {"apikey": self.api_key, "Accept": "application/json"}
        if access_token:
            headers["Authorization"] = f"Bearer {access_token}"
        body = None
        if payload is not None:
            body = json.dumps(payload).encode("utf-8")
            headers["Content-Type"] = "application/json"

        status, raw = self.transport.send(
            method,
            f"{self.base_url}{path}",
            headers=headers,
            body=body,
            timeout_s=self.timeout_s,
        )
        logger.debug("http event=response method=%s path=%s status=%s", method, path, status)
        return ApiResponse(status=status, payload=_decode_json(raw))


def _decode_json(raw: bytes) -> Any:
    if not raw:
        return None
    try:
        return json.loads(raw.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError):
        return {"detail": raw.decode("utf-8", errors="replace")[:200]}
