"""
Access logging for endpoints that touch patient data.

Each request to a patient, document or summary route is logged with the
caller's id, the action and the resource. No request or response bodies are
logged.
"""
import logging
import time
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from ..core.security import decode_access_token, request_settings

logger = logging.getLogger("app.access")

# Endpoints that touch PHI - requests to these paths are logged
PHI_PATH_PREFIXES = (
    "/api/v1/patients",
    "/api/v1/documents",
)

ACTION_MAP = {
    "GET": "view",
    "POST": "create",
    "PUT": "update",
    "PATCH": "update",
    "DELETE": "delete",
}


def describe_path(path: str):
    """Return (resource_type, resource_id) for an ``/api/v1/...`` path."""
    parts = [p for p in path.split("/") if p]
    resource_type = parts[2] if len(parts) >= 3 else "unknown"
    resource_id = parts[3] if len(parts) >= 4 else "-"
    if resource_type == "patients" and len(parts) >= 5:
        resource_type = parts[4]  # e.g. "documents", "summaries"
    return resource_type, resource_id


class AccessLogMiddleware(BaseHTTPMiddleware):
    """Middleware that logs access to PHI endpoints."""

    async def dispatch(self, request: Request, call_next):
        started = time.perf_counter()
        response = await call_next(request)

        path = request.url.path
        if not any(path.startswith(prefix) for prefix in PHI_PATH_PREFIXES):
            return response
        if request.method not in ACTION_MAP:
            return response

        user_id = "anonymous"
        auth_header = request.headers.get("Authorization", "")
        if auth_header.startswith("Bearer "):
            payload = decode_access_token(auth_header[7:], request_settings(request))
            if payload:
                user_id = payload.get("sub", "anonymous")

        resource_type, resource_id = describe_path(path)
        logger.info(
            "user=%s action=%s resource=%s id=%s status=%d ip=%s duration_ms=%.1f",
            user_id,
            ACTION_MAP[request.method],
            resource_type,
            resource_id,
            response.status_code,
            request.client.host if request.client else "-",
            (time.perf_counter() - started) * 1000,
        )
        return response
