"""
Logging configuration for the Bazaar social core

structlog on top of stdlib logging. Every line logged while serving a request
carries the request id and, once the bearer token has been checked, the
viewer id, so a relationship toggle can be followed across the probe,
ledger and follow-graph events it produces.
"""

import logging
import sys
import time
import uuid
from contextvars import ContextVar
from typing import Any, Optional

import structlog
from pythonjsonlogger import jsonlogger

from bazaar.core.config import settings

request_id_var: ContextVar[str] = ContextVar("request_id", default="")

REQUEST_ID_HEADER = b"x-request-id"
# Liveness probes hit this every few seconds
QUIET_PATHS = frozenset({"/health"})


def add_request_id(logger: Any, method_name: str, event_dict: dict) -> dict:
    request_id = request_id_var.get()
    if request_id:
        event_dict.setdefault("request_id", request_id)
    return event_dict


def bind_viewer(viewer_id: Optional[str]) -> None:
    """Attach the authenticated viewer (or 'guest') to every later log line of this request"""
    structlog.contextvars.bind_contextvars(viewer=viewer_id or "guest")


def setup_logging() -> None:
    """Configure structured logging for the application"""

    log_level = getattr(logging, settings.log_level.upper(), logging.INFO)

    if settings.is_production:
        formatter = jsonlogger.JsonFormatter(
            "%(asctime)s %(name)s %(levelname)s %(message)s %(request_id)s"
        )
    else:
        formatter = logging.Formatter(
            "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
        )

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    # Reloads and repeated app factories must not stack handlers
    if not any(getattr(h, "_bazaar", False) for h in root_logger.handlers):
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(formatter)
        handler._bazaar = True
        root_logger.addHandler(handler)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            add_request_id,
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.processors.JSONRenderer()
            if settings.is_production
            else structlog.dev.ConsoleRenderer(),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.INFO if settings.db_echo else logging.WARNING)
    logging.getLogger("aiomysql").setLevel(logging.WARNING)


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Get a logger instance"""
    return structlog.get_logger(name)


class RequestIDMiddleware:
    """
    Reuses the caller's X-Request-ID when the edge proxy already set one,
    otherwise mints a new id. Per-request structlog context starts empty.
    """

    def __init__(self, app):
        self.app = app

    async def __call__(self, scope, receive, send):
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        incoming = dict(scope.get("headers") or []).get(REQUEST_ID_HEADER, b"").decode("latin-1")
        request_id = incoming[:64] or str(uuid.uuid4())
        request_id_var.set(request_id)
        structlog.contextvars.clear_contextvars()

        async def send_with_request_id(message):
            if message["type"] == "http.response.start":
                headers = [h for h in message.get("headers", []) if h[0] != REQUEST_ID_HEADER]
                headers.append((REQUEST_ID_HEADER, request_id.encode()))
                message["headers"] = headers
            await send(message)

        await self.app(scope, receive, send_with_request_id)


class RequestLoggingMiddleware:
    """One `request.end` line per HTTP request; 5xx responses log at error level"""

    def __init__(self, app):
        self.app = app
        self.logger = get_logger("bazaar.request")

    async def __call__(self, scope, receive, send):
        if scope["type"] != "http" or scope.get("path") in QUIET_PATHS:
            await self.app(scope, receive, send)
            return

        start_time = time.perf_counter()
        status_code = None
        client = scope.get("client") or (None, None)

        async def send_with_status(message):
            nonlocal status_code
            if message["type"] == "http.response.start":
                status_code = message.get("status")
            await send(message)

        try:
            await self.app(scope, receive, send_with_status)
        except Exception as exc:
            self.logger.exception(
                "request.error",
                method=scope.get("method"),
                path=scope.get("path"),
                client_host=client[0],
                error=str(exc),
            )
            raise
        finally:
            status_code = status_code or 500
            log = self.logger.error if status_code >= 500 else self.logger.info
            log(
                "request.end",
                method=scope.get("method"),
                path=scope.get("path"),
                status_code=status_code,
                duration_ms=round((time.perf_counter() - start_time) * 1000, 2),
                client_host=client[0],
            )


class LatencyLogger:
    """
    Times one operation. Assign `outcome` inside the block to record what the
    operation ended in (e.g. the new relationship status).

        with LatencyLogger("relationship.toggle", logger, subject_id=s) as timer:
            timer.outcome = await transition(...)
    """

    def __init__(self, operation: str, logger: structlog.stdlib.BoundLogger, **context: Any):
        self.operation = operation
        self.logger = logger
        self.context = context
        self.outcome: Any = None
        self.start_time: Optional[float] = None

    def __enter__(self):
        self.start_time = time.perf_counter()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        latency_ms = round((time.perf_counter() - self.start_time) * 1000, 2)
        fields = dict(self.context, operation=self.operation, latency_ms=latency_ms, success=exc_type is None)
        if exc_type is not None:
            fields["error_type"] = exc_type.__name__
            self.logger.warning(f"{self.operation}.failed", **fields)
        else:
            outcome = getattr(self.outcome, "value", self.outcome)
            if outcome is not None:
                fields["outcome"] = outcome
            self.logger.info(f"{self.operation}.completed", **fields)
        return False
