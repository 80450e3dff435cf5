"""
Domain exceptions.

Services raise these; routers translate them into HTTP responses via
``status_code``. Messages are safe to show to clients.
"""

from __future__ import annotations


class MambaError(Exception):
    """Base class for all domain errors."""

    status_code = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(MambaError):
    """Malformed input: bad email, short password, missing field."""

    status_code = 400


class AuthenticationError(MambaError):
    """Credentials did not match."""

    status_code = 401


class AccessExpiredError(MambaError):
    """A Discord access record exists but its expiry has passed."""

    status_code = 403


class NotFoundError(MambaError):
    """Unknown user, order, access record or payment link."""

    status_code = 404


class PoolExhaustedError(NotFoundError):
    """No unused access code left for a product type. Needs operator action."""


class PoolContendedError(MambaError):
    """Unused codes remain but every claim attempt lost to a concurrent transaction. Safe to retry."""

    status_code = 503


class ConflictError(MambaError):
    """Duplicate email, double bind of a Discord identity, and similar."""

    status_code = 409


class InvalidTransitionError(ConflictError):
    """An order status change that the state machine does not allow."""


class DuplicateEmailError(ConflictError):
    """Signup with an email that is already registered. Reported as a bad request."""

    status_code = 400
