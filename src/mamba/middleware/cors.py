"""CORS for the storefront frontend."""

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from mamba.config import Settings

# Browsers only call the JSON API; the payment webhook is server to server.
_ALLOWED_HEADERS = ["Content-Type", "X-Request-Id"]
_EXPOSED_HEADERS = ["X-Request-Id", "X-RateLimit-Remaining", "X-RateLimit-Limit", "Retry-After"]


def setup_cors(app: FastAPI, settings: Settings) -> None:
    """Allow the configured storefront origins, plus any matching ``cors_origin_regex``.

    The storefront sends no cookies, so credentials stay disabled.
    """
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_origin_regex=settings.cors_origin_regex or None,
        allow_credentials=False,
        allow_methods=["GET", "POST", "PATCH", "OPTIONS"],
        allow_headers=_ALLOWED_HEADERS,
        expose_headers=_EXPOSED_HEADERS,
        max_age=600,
    )
