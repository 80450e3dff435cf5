"""
Payment link -> product policy table.

Each payment link sold on the storefront maps to exactly one policy, and
every policy resolves to exactly one fulfillment strategy. The table is
checked when the module is imported so an unmapped product fails at start-up
instead of on the first purchase.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass


class ProductFamily(str, enum.Enum):
    OBYWATEL = "obywatel"
    RECEIPTS = "receipts"


class Tier(str, enum.Enum):
    BASIC = "basic"
    PREMIUM = "premium"


class Fulfillment(str, enum.Enum):
    ACCESS_CODE = "access_code"
    TICKET = "ticket"
    DISCORD_ACCESS = "discord_access"


DEFAULT_ACCESS_DAYS = 31
MAX_ACCESS_DAYS = 999


@dataclass(frozen=True)
class ProductPolicy:
    family: ProductFamily
    tier: Tier | None = None
    duration_days: int | None = None
    label: str = ""

    @property
    def fulfillment(self) -> Fulfillment:
        if self.family is ProductFamily.RECEIPTS:
            return Fulfillment.DISCORD_ACCESS
        if self.family is ProductFamily.OBYWATEL:
            return Fulfillment.TICKET if self.tier is Tier.PREMIUM else Fulfillment.ACCESS_CODE
        msg = f"No fulfillment strategy for product family {self.family!r}"
        raise ValueError(msg)

    def access_days(self, default: int = DEFAULT_ACCESS_DAYS) -> int:
        return self.duration_days or default


PAYMENT_LINK_POLICIES: dict[str, ProductPolicy] = {
    # live
    "6oU28s5Fo3PjaHLfRCgEg06": ProductPolicy(ProductFamily.OBYWATEL, Tier.PREMIUM, label="Obywatel Premium"),
    "28E4gA0l499Dg25eNygEg00": ProductPolicy(ProductFamily.OBYWATEL, Tier.BASIC, label="Obywatel"),
    "9B600k7NwbhLdTXdJugEg02": ProductPolicy(ProductFamily.RECEIPTS, duration_days=31, label="Receipts monthly"),
    "5kQ00k8RA5Xr2bfdJugEg03": ProductPolicy(ProductFamily.RECEIPTS, duration_days=999, label="Receipts annual"),
    # test mode
    "6oU28r2O8f6v3eI0C9cEw00": ProductPolicy(ProductFamily.OBYWATEL, Tier.PREMIUM, label="Obywatel Premium (test)"),
}

TEST_PAYMENT_LINK = "6oU28r2O8f6v3eI0C9cEw00"


def normalize_link_id(value: str | None) -> str | None:
    """Accept a bare link id or a full payment link URL; return the id."""
    if not value:
        return None
    link_id = value.strip().rstrip("/").rsplit("/", 1)[-1]
    link_id = link_id.split("?", 1)[0]
    return link_id or None


def policy_for_link(value: str | None) -> ProductPolicy | None:
    link_id = normalize_link_id(value)
    if link_id is None:
        return None
    return PAYMENT_LINK_POLICIES.get(link_id)


def validate_policies(policies: dict[str, ProductPolicy] | None = None) -> None:
    """
    Check every policy resolves to a fulfillment strategy with sane parameters.

    Raises ValueError on the first bad entry.
    """
    for family in ProductFamily:
        # raises for a family with no strategy
        _ = ProductPolicy(family).fulfillment

    for link_id, policy in (policies if policies is not None else PAYMENT_LINK_POLICIES).items():
        if normalize_link_id(link_id) != link_id:
            msg = f"Payment link id {link_id!r} is not normalized"
            raise ValueError(msg)
        fulfillment = policy.fulfillment
        if fulfillment is Fulfillment.DISCORD_ACCESS:
            if policy.tier is not None:
                msg = f"{link_id}: receipts products have no tier"
                raise ValueError(msg)
            if not 1 <= policy.access_days() <= MAX_ACCESS_DAYS:
                msg = f"{link_id}: duration must be between 1 and {MAX_ACCESS_DAYS} days"
                raise ValueError(msg)
        elif policy.duration_days is not None:
            msg = f"{link_id}: only receipts products carry a duration"
            raise ValueError(msg)


validate_policies()
