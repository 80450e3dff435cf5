"""Payment link policy table."""

from __future__ import annotations

import pytest

from mamba.payments.products import (
    PAYMENT_LINK_POLICIES,
    TEST_PAYMENT_LINK,
    Fulfillment,
    ProductFamily,
    ProductPolicy,
    Tier,
    normalize_link_id,
    policy_for_link,
    validate_policies,
)


class TestNormalizeLinkId:
    @pytest.mark.parametrize(
        "value",
        [
            "28E4gA0l499Dg25eNygEg00",
            "https://buy.stripe.com/28E4gA0l499Dg25eNygEg00",
            "https://buy.stripe.com/28E4gA0l499Dg25eNygEg00/",
            "https://buy.stripe.com/28E4gA0l499Dg25eNygEg00?prefilled_email=a%40b.co",
        ],
    )
    def test_extracts_id(self, value: str):
        assert normalize_link_id(value) == "28E4gA0l499Dg25eNygEg00"

    @pytest.mark.parametrize("value", [None, "", "/"])
    def test_empty(self, value):
        assert normalize_link_id(value) is None


class TestPolicyTable:
    def test_table_is_valid(self):
        validate_policies()

    def test_known_links(self):
        assert policy_for_link("6oU28s5Fo3PjaHLfRCgEg06").fulfillment is Fulfillment.TICKET
        assert policy_for_link("28E4gA0l499Dg25eNygEg00").fulfillment is Fulfillment.ACCESS_CODE
        receipts = policy_for_link("9B600k7NwbhLdTXdJugEg02")
        assert receipts.fulfillment is Fulfillment.DISCORD_ACCESS
        assert receipts.access_days() == 31
        assert policy_for_link("5kQ00k8RA5Xr2bfdJugEg03").access_days() == 999

    def test_test_link_is_mapped(self):
        assert TEST_PAYMENT_LINK in PAYMENT_LINK_POLICIES

    def test_unknown_link(self):
        assert policy_for_link("not-a-link") is None

    def test_every_policy_has_one_fulfillment(self):
        for policy in PAYMENT_LINK_POLICIES.values():
            assert isinstance(policy.fulfillment, Fulfillment)


class TestValidatePolicies:
    def test_receipts_duration_out_of_range(self):
        with pytest.raises(ValueError, match="between 1 and 999"):
            validate_policies({"abc": ProductPolicy(ProductFamily.RECEIPTS, duration_days=1000)})

    def test_receipts_with_tier(self):
        with pytest.raises(ValueError, match="no tier"):
            validate_policies({"abc": ProductPolicy(ProductFamily.RECEIPTS, Tier.BASIC)})

    def test_duration_on_obywatel(self):
        with pytest.raises(ValueError, match="only receipts"):
            validate_policies({"abc": ProductPolicy(ProductFamily.OBYWATEL, Tier.BASIC, duration_days=31)})

    def test_unnormalized_link_id(self):
        with pytest.raises(ValueError, match="not normalized"):
            validate_policies({"https://buy.stripe.com/abc": ProductPolicy(ProductFamily.OBYWATEL, Tier.BASIC)})

    def test_obywatel_without_tier_gets_code(self):
        assert ProductPolicy(ProductFamily.OBYWATEL).fulfillment is Fulfillment.ACCESS_CODE
