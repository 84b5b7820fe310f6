"""
Request/response logging and user activity tracking.
"""
import json
import logging
import re
import time
import uuid
from datetime import datetime, timezone
from typing import Dict, Any, Optional, Set
from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from app.config import settings

request_logger = logging.getLogger("request")
performance_logger = logging.getLogger("performance")
analytics_logger = logging.getLogger("analytics")

SENSITIVE_HEADERS = {
    "authorization", "cookie", "x-api-key", "x-auth-token",
    "proxy-authorization", "stripe-signature"
}

SENSITIVE_FIELDS = {
    "password", "old_password", "new_password", "token",
    "access_token", "refresh_token", "secret", "authorization"
}

UUID_PATTERN = re.compile(r"/[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}")

SLOW_REQUEST_SECONDS = 1.0


def setup_logging() -> None:
    """Configure the root logger from settings."""
    log_level = getattr(logging, settings.log_level.upper(), logging.INFO)
    logging.basicConfig(level=log_level, format=settings.log_format)

    logging.getLogger("uvicorn").setLevel(logging.INFO)
    logging.getLogger("sqlalchemy.engine").setLevel(
        logging.INFO if settings.debug else logging.WARNING
    )


def redact_headers(headers: Dict[str, str]) -> Dict[str, str]:
    return {
        key: "[REDACTED]" if key.lower() in SENSITIVE_HEADERS else value
        for key, value in headers.items()
    }


def redact(data: Any) -> Any:
    if isinstance(data, dict):
        return {
            key: "[REDACTED]" if key.lower() in SENSITIVE_FIELDS else redact(value)
            for key, value in data.items()
        }
    if isinstance(data, list):
        return [redact(item) for item in data]
    return data


def normalize_endpoint(path: str) -> str:
    """Collapse ids so metrics group by route, e.g. /api/posts/{id}."""
    return UUID_PATTERN.sub("/{id}", path)


class LoggingMiddleware(BaseHTTPMiddleware):
    """Logs each request and response with a request id and timing."""

    def __init__(
        self,
        app,
        log_request_body: bool = True,
        max_body_size: int = 1024 * 10,
        exclude_paths: Optional[Set[str]] = None,
    ):
        super().__init__(app)
        self.log_request_body = log_request_body
        self.max_body_size = max_body_size
        self.exclude_paths = exclude_paths or {"/health", "/favicon.ico"}

    async def dispatch(self, request: Request, call_next) -> Response:
        if request.url.path in self.exclude_paths:
            return await call_next(request)

        request_id = getattr(request.state, "request_id", None) or str(uuid.uuid4())
        request.state.request_id = request_id
        start_time = time.time()

        await self._log_request(request, request_id)

        try:
            response = await call_next(request)
        except Exception as exc:
            request_logger.error(
                f"Request exception: {type(exc).__name__}: {exc}",
                extra={"request_id": request_id, "path": request.url.path},
                exc_info=True,
            )
            raise

        process_time = time.time() - start_time
        response.headers["X-Process-Time"] = f"{process_time:.4f}"
        response.headers["X-Request-ID"] = request_id

        self._log_response(request, response, request_id, process_time)
        return response

    async def _log_request(self, request: Request, request_id: str) -> None:
        log_data = {
            "request_id": request_id,
            "method": request.method,
            "path": request.url.path,
            "query_params": dict(request.query_params),
            "client_ip": self._get_client_ip(request),
            "headers": redact_headers(dict(request.headers)),
        }

        if self.log_request_body and self._should_log_body(request):
            body = await self._get_request_body(request)
            if body is not None:
                log_data["body"] = redact(body)

        request_logger.info(f"--> {request.method} {request.url.path}", extra=log_data)

    def _log_response(self, request: Request, response: Response, request_id: str, process_time: float) -> None:
        log_data = {
            "request_id": request_id,
            "method": request.method,
            "endpoint": normalize_endpoint(request.url.path),
            "status_code": response.status_code,
            "process_time": process_time,
        }
        message = f"<-- {request.method} {request.url.path} {response.status_code} ({process_time:.3f}s)"
        if response.status_code >= 500:
            request_logger.error(message, extra=log_data)
        elif response.status_code >= 400:
            request_logger.warning(message, extra=log_data)
        else:
            request_logger.info(message, extra=log_data)

        if process_time > SLOW_REQUEST_SECONDS:
            performance_logger.warning(f"Slow request detected: {process_time:.2f}s", extra=log_data)

    def _get_client_ip(self, request: Request) -> str:
        forwarded_for = request.headers.get("x-forwarded-for")
        if forwarded_for:
            return forwarded_for.split(",")[0].strip()
        return request.client.host if request.client else "unknown"

    def _should_log_body(self, request: Request) -> bool:
        content_type = request.headers.get("content-type", "")
        try:
            content_length = int(request.headers.get("content-length", "0"))
        except ValueError:
            return False
        if content_length > self.max_body_size:
            return False
        return content_type.startswith("application/json")

    async def _get_request_body(self, request: Request) -> Optional[Any]:
        body = await request.body()
        if not body:
            return None
        try:
            return json.loads(body.decode())
        except (UnicodeDecodeError, json.JSONDecodeError):
            return None


class UserActivityLogger:
    """Specialized logger for user activity tracking."""

    @staticmethod
    async def log_user_action(
        user_id: str,
        action: str,
        resource: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        request_id: Optional[str] = None
    ) -> None:
        log_data = {
            "user_id": user_id,
            "action": action,
            "resource": resource,
            "details": details or {},
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "request_id": request_id
        }
        analytics_logger.info(f"User activity: {action} by {user_id}", extra=log_data)

    @staticmethod
    async def log_authentication_event(
        user_id: Optional[str],
        event_type: str,
        success: bool,
        client_ip: str,
        details: Optional[Dict[str, Any]] = None
    ) -> None:
        log_data = {
            "user_id": user_id,
            "event_type": event_type,
            "success": success,
            "client_ip": client_ip,
            "details": details or {},
            "timestamp": datetime.now(timezone.utc).isoformat()
        }
        level = logging.INFO if success else logging.WARNING
        analytics_logger.log(level, f"Authentication event: {event_type} success={success}", extra=log_data)
