"""Access code pool: claiming, exhaustion, concurrency."""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from unittest.mock import AsyncMock

import pytest
from httpx import AsyncClient

from mamba.codes.service import claim_code, claim_for_product, product_type_for
from mamba.errors import PoolContendedError, PoolExhaustedError, ValidationError
from mamba.storage.memory import MemoryStorage

NOW = datetime(2026, 1, 15, 12, 0, tzinfo=timezone.utc)


async def _pool(*codes: str, product_type: str = "obywatel") -> MemoryStorage:
    storage = MemoryStorage()
    await storage.seed_access_codes([(c, product_type) for c in codes], now=NOW)
    return storage


class TestProductType:
    @pytest.mark.parametrize(
        ("product_id", "expected"),
        [("obywatel", "obywatel"), ("obywatel-basic", "obywatel"), ("Receipts-Monthly", "receipts")],
    )
    def test_prefix_match(self, product_id: str, expected: str):
        assert product_type_for(product_id) == expected

    def test_unknown_product(self):
        with pytest.raises(ValidationError):
            product_type_for("mystery-box")


class TestClaimCode:
    async def test_claim_marks_code_used(self):
        storage = await _pool("AAAA-1111")
        code = await claim_code(storage, "obywatel", "a@example.com", now=NOW)
        assert code.code == "AAAA-1111"
        assert code.is_used is True
        assert code.email == "a@example.com"
        assert code.used_at == NOW
        assert await storage.count_unused_codes("obywatel") == 0

    async def test_claim_respects_product_type(self):
        storage = MemoryStorage()
        await storage.seed_access_codes([("R-1", "receipts"), ("O-1", "obywatel")], now=NOW)
        code = await claim_code(storage, "obywatel", "a@example.com", now=NOW)
        assert code.code == "O-1"

    async def test_empty_pool_raises(self):
        storage = await _pool("R-1", product_type="receipts")
        with pytest.raises(PoolExhaustedError):
            await claim_code(storage, "obywatel", "a@example.com", now=NOW)

    async def test_claim_key_is_idempotent(self):
        storage = await _pool("C-1", "C-2")
        first = await claim_code(storage, "obywatel", "a@example.com", now=NOW, claim_key="cs_1")
        second = await claim_code(storage, "obywatel", "a@example.com", now=NOW, claim_key="cs_1")
        assert first.id == second.id
        assert await storage.count_unused_codes("obywatel") == 1

    async def test_concurrent_claims_never_share_a_code(self):
        storage = await _pool("C-1", "C-2")
        results = await asyncio.gather(
            *(claim_code(storage, "obywatel", f"u{i}@example.com", now=NOW) for i in range(3)),
            return_exceptions=True,
        )
        claimed = [r.code for r in results if not isinstance(r, Exception)]
        errors = [r for r in results if isinstance(r, Exception)]
        assert sorted(claimed) == ["C-1", "C-2"]
        assert len(errors) == 1
        assert isinstance(errors[0], PoolExhaustedError)

    async def test_claim_for_product_normalizes_email(self):
        storage = await _pool("C-1")
        code = await claim_for_product(storage, " Buyer@Example.com ", "obywatel-basic", now=NOW)
        assert code.email == "buyer@example.com"


class TestClaimEndpoint:
    async def test_claim(self, client: AsyncClient, seed_codes):
        await seed_codes("ABCD-EFGH-JKLM-NPQR")
        response = await client.post(
            "/access-codes/claim", json={"email": "buyer@example.com", "productId": "obywatel"}
        )
        assert response.status_code == 200
        assert response.json() == {
            "code": "ABCD-EFGH-JKLM-NPQR",
            "generatorLink": "https://mambagen.up.railway.app/gen.html",
        }

    async def test_exhausted_pool_is_404(self, client: AsyncClient):
        response = await client.post(
            "/access-codes/claim", json={"email": "buyer@example.com", "productId": "obywatel"}
        )
        assert response.status_code == 404
        assert "No access codes available" in response.json()["error"]

    async def test_busy_pool_is_503(self, client: AsyncClient, storage: MemoryStorage, monkeypatch):
        monkeypatch.setattr(
            storage, "claim_access_code", AsyncMock(side_effect=PoolContendedError("Access codes are busy, try again"))
        )
        response = await client.post(
            "/access-codes/claim", json={"email": "buyer@example.com", "productId": "obywatel"}
        )
        assert response.status_code == 503
        assert response.json() == {"error": "Access codes are busy, try again"}

    async def test_same_order_returns_same_code(self, client: AsyncClient, seed_codes):
        await seed_codes("C-1", "C-2")
        body = {"email": "buyer@example.com", "productId": "obywatel", "orderId": "ord_1"}
        first = await client.post("/access-codes/claim", json=body)
        second = await client.post("/access-codes/claim", json=body)
        assert first.json()["code"] == second.json()["code"]

    async def test_unknown_product_is_400(self, client: AsyncClient):
        response = await client.post("/access-codes/claim", json={"email": "buyer@example.com", "productId": "x"})
        assert response.status_code == 400
