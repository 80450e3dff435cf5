"""
Access code pool.

Codes are seeded ahead of time and handed out one per purchase. The claim
is a single atomic storage operation; this module only picks the product
type and reports exhaustion.
"""

from __future__ import annotations

import secrets
import string
from datetime import datetime
from typing import TYPE_CHECKING

import structlog

from mamba.auth.service import normalize_email
from mamba.db.models import PRODUCT_TYPES
from mamba.errors import PoolExhaustedError, ValidationError

if TYPE_CHECKING:
    from mamba.db.models import AccessCode
    from mamba.storage import Storage

logger = structlog.get_logger()

CODE_CHARSET = string.ascii_uppercase + string.digits  # A-Z, 0-9
CODE_LENGTH = 16
CODE_GROUP = 4


def generate_access_code() -> str:
    """Cryptographically random code, grouped for readability (XXXX-XXXX-XXXX-XXXX)."""
    raw = "".join(secrets.choice(CODE_CHARSET) for _ in range(CODE_LENGTH))
    return "-".join(raw[i : i + CODE_GROUP] for i in range(0, CODE_LENGTH, CODE_GROUP))


def product_type_for(product_id: str) -> str:
    """Map a storefront product id onto a code pool (``obywatel-basic`` -> ``obywatel``)."""
    normalized = (product_id or "").strip().lower()
    for product_type in PRODUCT_TYPES:
        if normalized.startswith(product_type):
            return product_type
    msg = f"Unknown product: {product_id}"
    raise ValidationError(msg)


async def claim_code(
    storage: Storage,
    product_type: str,
    email: str,
    *,
    now: datetime,
    claim_key: str | None = None,
) -> AccessCode:
    """
    Claim one unused code for ``email``.

    ``claim_key`` (a payment session or order id) makes the claim idempotent:
    a second call with the same key returns the code already assigned.

    Raises:
        PoolExhaustedError: No unused code left for ``product_type``.
        PoolContendedError: Codes remain but concurrent claims took every attempt.
    """
    if product_type not in PRODUCT_TYPES:
        msg = f"Unknown product type: {product_type}"
        raise ValidationError(msg)

    code = await storage.claim_access_code(product_type, email, claim_key, now=now)
    if code is None:
        logger.warning("access_code_pool_exhausted", product_type=product_type)
        msg = f"No access codes available for {product_type}"
        raise PoolExhaustedError(msg)

    logger.info("access_code_claimed", code_id=code.id, product_type=product_type, claim_key=claim_key)
    return code


async def claim_for_product(
    storage: Storage,
    email: str,
    product_id: str,
    *,
    now: datetime,
    order_id: str | None = None,
) -> AccessCode:
    """Claim endpoint entry point: validates input and resolves the pool."""
    return await claim_code(
        storage,
        product_type_for(product_id),
        normalize_email(email),
        now=now,
        claim_key=order_id,
    )
