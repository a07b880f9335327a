"""Tests for partner resolution (manual pin → contracts → unassigned)."""

from datetime import datetime

import pytest

from onetouch.categories import Category
from onetouch.services.partner_resolution import (
    UNASSIGNED,
    AssignmentSource,
    ContractRecord,
    ResolutionQuery,
    matching_contracts,
    resolve_partner,
)

A = Category.BUILDING_INFRA.value
B = Category.KITCHEN_MEALS.value


def contract(cid, partner, office=None, categories=(A,), company="C1", status="active",
             created_at=None):
    return ContractRecord(
        id=cid,
        partner_id=partner,
        company_code=company,
        office_code=office,
        categories=frozenset(categories),
        status=status,
        created_at=created_at,
        partner_name=f"{partner} Inc.",
    )


def query(category=A, office="O1", company="C1", pin=None, pin_name=""):
    return ResolutionQuery(
        category=category, company_code=company, office_code=office,
        assigned_partner_id=pin, assigned_partner_name=pin_name,
    )


@pytest.mark.unit
class TestTierPriority:

    @pytest.mark.parametrize("order", [(0, 1), (1, 0)])
    def test_office_contract_beats_company_wide(self, order):
        contracts = [
            contract("K-office", "P-OFFICE", office="O1"),
            contract("K-company", "P-COMPANY", office=None),
        ]
        ordered = [contracts[i] for i in order]
        result = resolve_partner(query(), ordered)
        assert result.partner_id == "P-OFFICE"
        assert result.contract_id == "K-office"
        assert result.source is AssignmentSource.CONTRACT

    def test_office_contract_wins_even_if_created_later(self):
        contracts = [
            contract("K-company", "P-COMPANY", created_at=datetime(2024, 1, 1)),
            contract("K-office", "P-OFFICE", office="O1", created_at=datetime(2026, 1, 1)),
        ]
        assert resolve_partner(query(), contracts).partner_id == "P-OFFICE"

    def test_company_wide_used_when_no_office_contract(self):
        contracts = [
            contract("K-other-office", "P-O2", office="O2"),
            contract("K-company", "P-COMPANY"),
        ]
        assert resolve_partner(query(), contracts).partner_id == "P-COMPANY"

    def test_manual_pin_overrides_every_contract(self):
        contracts = [contract("K-office", "P-OFFICE", office="O1")]
        result = resolve_partner(query(pin="PX", pin_name="Pinned Ltd"), contracts)
        assert result.partner_id == "PX"
        assert result.partner_name == "Pinned Ltd"
        assert result.source is AssignmentSource.ITEM
        assert result.contract_id is None

    def test_pin_returned_even_without_category(self):
        assert resolve_partner(query(category=None, pin="PX")).partner_id == "PX"


@pytest.mark.unit
class TestEligibility:

    def test_no_match_is_unassigned_not_error(self):
        result = resolve_partner(query(category=B), [contract("K1", "P1")])
        assert result == UNASSIGNED
        assert result.partner_id is None
        assert not result.is_assigned
        assert result.source is AssignmentSource.UNASSIGNED

    def test_empty_contract_list(self):
        assert resolve_partner(query(), []) == UNASSIGNED

    def test_inactive_contracts_ignored(self):
        assert resolve_partner(query(), [contract("K1", "P1", status="inactive")]) == UNASSIGNED

    def test_other_company_ignored(self):
        assert resolve_partner(query(), [contract("K1", "P1", company="C2")]) == UNASSIGNED

    def test_missing_category_is_unassigned(self):
        assert resolve_partner(query(category=None), [contract("K1", "P1")]) == UNASSIGNED

    def test_category_enum_and_label_match_alike(self):
        contracts = [contract("K1", "P1")]
        assert resolve_partner(query(category=Category.BUILDING_INFRA), contracts).partner_id == "P1"

    def test_company_level_query_skips_office_contracts(self):
        contracts = [contract("K-office", "P-OFFICE", office="O1"), contract("K-co", "P-CO")]
        assert resolve_partner(query(office=None), contracts).partner_id == "P-CO"


@pytest.mark.unit
class TestTieBreak:

    def test_earliest_created_wins_within_tier(self):
        contracts = [
            contract("K-new", "P-NEW", office="O1", created_at=datetime(2026, 3, 1)),
            contract("K-old", "P-OLD", office="O1", created_at=datetime(2025, 3, 1)),
        ]
        assert resolve_partner(query(), contracts).partner_id == "P-OLD"

    def test_input_order_breaks_exact_ties(self):
        stamp = datetime(2026, 1, 1)
        contracts = [
            contract("K-first", "P-FIRST", created_at=stamp),
            contract("K-second", "P-SECOND", created_at=stamp),
        ]
        assert resolve_partner(query(), contracts).partner_id == "P-FIRST"

    def test_undated_contracts_sort_after_dated(self):
        contracts = [
            contract("K-undated", "P-UNDATED"),
            contract("K-dated", "P-DATED", created_at=datetime(2026, 1, 1)),
        ]
        assert [c.id for c in matching_contracts(query(), contracts)] == ["K-dated", "K-undated"]

    def test_resolution_is_repeatable(self):
        contracts = [contract("K1", "P1", office="O1"), contract("K2", "P2")]
        first = resolve_partner(query(), contracts)
        assert all(resolve_partner(query(), contracts) == first for _ in range(5))
