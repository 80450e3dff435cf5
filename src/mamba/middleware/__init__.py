"""Middleware registration."""

from fastapi import FastAPI

from mamba.config import Settings
from mamba.middleware.cors import setup_cors
from mamba.middleware.error_handler import setup_error_handlers
from mamba.middleware.logging import setup_logging
from mamba.middleware.rate_limit import RateLimitMiddleware
from mamba.middleware.request_id import RequestIdMiddleware

# Never throttled: platform health checks, and the payment processor, which retries on 429.
UNTHROTTLED_PATHS = frozenset({"/health", "/ready", "/webhooks/payments"})


def setup_middleware(app: FastAPI, settings: Settings) -> None:
    """Install logging, error handlers and the middleware stack.

    Outermost first: CORS, request id, rate limit. CORS wraps everything so a
    429 still carries the storefront's allow-origin header, and the request id
    is bound before a throttled request is logged.
    """
    setup_logging(settings)
    setup_error_handlers(app)
    app.add_middleware(
        RateLimitMiddleware,
        requests_per_window=settings.rate_limit_requests,
        window_seconds=settings.rate_limit_window_seconds,
        exempt_paths=UNTHROTTLED_PATHS,
    )
    app.add_middleware(RequestIdMiddleware)
    setup_cors(app, settings)
