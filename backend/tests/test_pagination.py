"""Tests for the shared limit/offset helper."""

import pytest
from sqlalchemy import select

from onetouch.config import settings
from onetouch.models.contract import Contract
from onetouch.models.item import Item
from onetouch.models.partner import Partner
from onetouch.utils.pagination import clamp_limit, paginate


@pytest.mark.unit
class TestClampLimit:

    def test_missing_limit_uses_default(self):
        assert clamp_limit(None) == settings.default_page_size

    def test_limit_capped_at_max(self):
        assert clamp_limit(settings.max_page_size + 1) == settings.max_page_size


@pytest.mark.api
@pytest.mark.asyncio
class TestPaginate:

    async def test_single_entity_returns_orm_objects(self, db_session, make_item):
        for _ in range(3):
            await make_item()

        rows, total, limit = await paginate(
            db_session, select(Item), limit=2, offset=0, order_by=(Item.item_id,),
        )

        assert total == 3
        assert limit == 2
        assert [type(r) for r in rows] == [Item, Item]
        assert rows[0].item_id == "ITEM-TEST-0001"

    async def test_offset_past_first_page(self, db_session, make_item):
        for _ in range(3):
            await make_item()

        rows, total, _ = await paginate(
            db_session, select(Item), limit=2, offset=2, order_by=(Item.item_id,),
        )

        assert total == 3
        assert [r.item_id for r in rows] == ["ITEM-TEST-0003"]

    async def test_joined_select_returns_rows(self, db_session, make_contract):
        await make_contract("PN001")
        await make_contract("PN002")

        stmt = select(Contract, Partner.name).join(Partner, Partner.id == Contract.partner_id)
        rows, total, _ = await paginate(
            db_session, stmt, limit=None, offset=0, order_by=(Contract.created_at,),
        )

        assert total == 2
        contract, partner_name = rows[0]
        assert isinstance(contract, Contract)
        assert partner_name == "Tokyo Facilities"
