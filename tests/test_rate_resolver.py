"""Tests for contribution configuration resolution."""

import logging
from datetime import date, datetime
from uuid import uuid4

import pytest

from factories import TENANT_ID, make_brackets, make_configuration
from planilla_engine.calculators.rate_resolver import (
    ConfigurationNotFoundError,
    RateResolver,
    select_configuration,
)


class FakeConfigurationStore:
    """In-memory configuration store."""

    def __init__(self, configurations, brackets=None):
        self.configurations = configurations
        self.brackets = brackets or []

    async def list_configurations(self, tenant_id, pay_date):
        return [c for c in self.configurations if c.tenant_id == tenant_id]

    async def list_brackets(self, tenant_id, fiscal_year):
        return [b for b in self.brackets if b.fiscal_year == fiscal_year]


class TestSelectConfiguration:
    """Test interval matching."""

    def test_matches_inside_interval(self):
        config = make_configuration()
        assert select_configuration([config], TENANT_ID, date(2025, 6, 15)) is config

    def test_start_is_inclusive(self):
        config = make_configuration()
        assert select_configuration([config], TENANT_ID, date(2025, 1, 1)) is config

    def test_end_is_exclusive(self):
        config = make_configuration()
        with pytest.raises(ConfigurationNotFoundError) as exc_info:
            select_configuration([config], TENANT_ID, date(2026, 1, 1))

        assert exc_info.value.tenant_id == TENANT_ID
        assert exc_info.value.pay_date == date(2026, 1, 1)

    def test_open_ended_configuration(self):
        config = make_configuration(effective_end=None)
        assert select_configuration([config], TENANT_ID, date(2040, 1, 1)) is config

    def test_other_tenant_is_ignored(self):
        config = make_configuration(tenant_id=uuid4())
        with pytest.raises(ConfigurationNotFoundError):
            select_configuration([config], TENANT_ID, date(2025, 6, 1))

    def test_consecutive_configurations(self):
        first = make_configuration(effective_end=date(2025, 7, 1))
        second = make_configuration(effective_start=date(2025, 7, 1), effective_end=None)

        assert select_configuration([first, second], TENANT_ID, date(2025, 6, 30)) is first
        assert select_configuration([first, second], TENANT_ID, date(2025, 7, 1)) is second

    def test_overlap_prefers_most_recently_created(self, caplog):
        older = make_configuration(created_at=datetime(2024, 11, 1))
        newer = make_configuration(created_at=datetime(2024, 12, 15))

        with caplog.at_level(logging.WARNING):
            chosen = select_configuration([newer, older], TENANT_ID, date(2025, 3, 1))

        assert chosen is newer
        assert "Overlapping tax configurations" in caplog.text

    def test_undated_configuration_loses_overlap(self):
        undated = make_configuration(created_at=None)
        dated = make_configuration(created_at=datetime(2024, 1, 1))
        assert select_configuration([undated, dated], TENANT_ID, date(2025, 3, 1)) is dated


class TestRateResolver:
    @pytest.mark.asyncio
    async def test_resolve(self):
        config = make_configuration()
        resolver = RateResolver(FakeConfigurationStore([config]))

        assert await resolver.resolve(TENANT_ID, date(2025, 2, 28)) is config

    @pytest.mark.asyncio
    async def test_resolve_missing(self):
        resolver = RateResolver(FakeConfigurationStore([]))

        with pytest.raises(ConfigurationNotFoundError):
            await resolver.resolve(TENANT_ID, date(2025, 2, 28))

    @pytest.mark.asyncio
    async def test_brackets_sorted_by_order(self):
        brackets = list(reversed(make_brackets()))
        resolver = RateResolver(FakeConfigurationStore([], brackets))

        resolved = await resolver.resolve_brackets(TENANT_ID, 2025)

        assert [b.order for b in resolved] == [1, 2, 3]
        assert await resolver.resolve_brackets(TENANT_ID, 2024) == []
