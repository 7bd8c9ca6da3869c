"""Request logging middleware.

One structured event per request: method, path, params, masked JSON body,
status code, duration and, for error responses, the error code/message.
Events are shipped to Axiom when AXIOM_API_TOKEN and AXIOM_DATASET are
set; otherwise a one-line summary goes to the standard logger.
"""

import json
import logging
import re
import time
from typing import Any

from axiom_py import Client as AxiomClient
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from bluegrid.config import settings

logger = logging.getLogger(__name__)

# Credentials and one-time codes never reach the logs
_SENSITIVE_KEYS = re.compile(
    r"(password|passwd|secret|token|authorization|api_key|apikey|credential|otp)",
    re.IGNORECASE,
)

_SKIP_PATHS = {"/health", "/docs", "/redoc", "/openapi.json"}


def mask_sensitive(data: Any, depth: int = 0) -> Any:
    """Recursively replace values of sensitive keys with ``***``."""
    if depth > 5:
        return "..."
    if isinstance(data, dict):
        return {
            k: "***" if _SENSITIVE_KEYS.search(str(k)) else mask_sensitive(v, depth + 1)
            for k, v in data.items()
        }
    if isinstance(data, list):
        return [mask_sensitive(item, depth + 1) for item in data[:20]]
    if isinstance(data, str) and len(data) > 2000:
        return data[:2000] + "...(truncated)"
    return data


def error_summary(body: bytes) -> str:
    """Pull a short reason out of an error response body."""
    try:
        detail = json.loads(body).get("detail")
    except (json.JSONDecodeError, UnicodeDecodeError, AttributeError):
        return body.decode("utf-8", errors="replace")[:500]
    if isinstance(detail, dict):
        detail = f"{detail.get('code')}: {detail.get('message')}"
    elif not isinstance(detail, str):
        detail = json.dumps(detail)[:500]
    return detail[:500]


class AxiomLoggingMiddleware(BaseHTTPMiddleware):
    """Logs every API request and response."""

    def __init__(self, app: Any) -> None:
        super().__init__(app)
        self._client: AxiomClient | None = None
        self._dataset: str = settings.AXIOM_DATASET

        if settings.AXIOM_API_TOKEN and settings.AXIOM_DATASET:
            self._client = AxiomClient(token=settings.AXIOM_API_TOKEN)

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        if request.url.path in _SKIP_PATHS:
            return await call_next(request)

        start_time = time.time()
        method = request.method
        path = request.url.path

        request_body: Any = None
        if self._client and method in ("POST", "PUT", "PATCH"):
            try:
                body_bytes = await request.body()
                if body_bytes:
                    request_body = mask_sensitive(json.loads(body_bytes))
            except (json.JSONDecodeError, UnicodeDecodeError):
                request_body = "(non-json body)"

        error_detail: str | None = None
        status_code: int = 500
        try:
            response = await call_next(request)
            status_code = response.status_code

            if status_code >= 400:
                resp_body = b""
                async for chunk in response.body_iterator:
                    resp_body += chunk if isinstance(chunk, bytes) else chunk.encode("utf-8")
                error_detail = error_summary(resp_body)
                response = Response(
                    content=resp_body,
                    status_code=status_code,
                    headers=dict(response.headers),
                    media_type=response.media_type,
                )
        except Exception as exc:
            error_detail = f"{type(exc).__name__}: {str(exc)[:300]}"
            raise
        finally:
            duration_ms = round((time.time() - start_time) * 1000, 2)
            self._emit(request, method, path, status_code, duration_ms, request_body, error_detail)

        return response

    def _emit(
        self,
        request: Request,
        method: str,
        path: str,
        status_code: int,
        duration_ms: float,
        request_body: Any,
        error_detail: str | None,
    ) -> None:
        if not self._client:
            logger.info(
                "%s %s -> %d (%.1f ms)%s",
                method, path, status_code, duration_ms,
                f" {error_detail}" if error_detail else "",
            )
            return

        log_event: dict[str, Any] = {
            "service": settings.APP_NAME,
            "method": method,
            "path": path,
            "status_code": status_code,
            "duration_ms": duration_ms,
        }
        if request.query_params:
            log_event["query_params"] = mask_sensitive(dict(request.query_params))
        if request.path_params:
            log_event["path_params"] = dict(request.path_params)
        if request_body is not None:
            log_event["request_body"] = request_body
        if error_detail:
            log_event["error"] = error_detail

        try:
            self._client.ingest_events(self._dataset, [log_event])
        except Exception:
            logger.warning("Axiom ingest failed for %s %s", method, path, exc_info=True)
