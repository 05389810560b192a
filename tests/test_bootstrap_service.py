# =============================================================================
# File: tests/test_bootstrap_service.py
# Description: Seeding the ledger from the projection, projection statistics
# =============================================================================

import pytest


@pytest.fixture
def seeded_projection(fake_db):
    fake_db["novels"].seed(
        {"id": "n1", "author": "a", "storyOutline": "outline-1", "totalScenes": "3",
         "createdAt": "2024-01-01 10:00:00", "updatedAt": "2024-01-01 10:00:00"},
    )
    fake_db["user_credits"].seed(
        {"id": "uc1", "userId": "u1", "credit": 10, "totalUsed": 1, "totalRecharge": 11},
        {"id": "uc2", "userId": "u2", "credit": 20, "totalUsed": 0, "totalRecharge": 20},
    )
    return fake_db


class TestLedgerBootstrap:

    @pytest.mark.asyncio
    async def test_snapshot_has_ledger_fields_only(self, components, seeded_projection):
        snapshot = await components.bootstrap_service.collect_projection_snapshot()

        assert snapshot["novels"][0]["storyOutline"] == "outline-1"
        assert snapshot["novels"][0]["totalScenes"] == "3"
        assert "_id" not in snapshot["novels"][0]
        assert {uc["userId"] for uc in snapshot["userCredits"]} == {"u1", "u2"}
        assert all("id" not in uc for uc in snapshot["userCredits"])

    @pytest.mark.asyncio
    async def test_init_ledger_from_projection(self, components, fake_ledger, seeded_projection):
        summary = await components.bootstrap_service.init_ledger_from_projection()

        assert summary == "imported novels=1, userCredits=2"
        assert fake_ledger.novel_count == 1
        assert fake_ledger.world_state["u2"]["credit"] == 20

    @pytest.mark.asyncio
    async def test_running_twice_imports_nothing_new(self, components, seeded_projection):
        await components.bootstrap_service.init_ledger_from_projection()
        summary = await components.bootstrap_service.init_ledger_from_projection()

        assert summary == "imported novels=0, userCredits=0"

    @pytest.mark.asyncio
    async def test_projection_stats(self, components, seeded_projection):
        stats = await components.bootstrap_service.projection_stats()

        assert stats == {
            "totalNovels": 1,
            "totalUserCredits": 2,
            "totalCreditSum": 30,
            "averageCredit": 15.0,
        }

    @pytest.mark.asyncio
    async def test_projection_stats_empty(self, components):
        stats = await components.bootstrap_service.projection_stats()

        assert stats["averageCredit"] == 0.0
