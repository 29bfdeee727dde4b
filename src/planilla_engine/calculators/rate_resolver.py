"""Contribution configuration resolution by tenant and pay date."""

from __future__ import annotations

import logging
from datetime import date
from typing import TYPE_CHECKING, Iterable
from uuid import UUID

from planilla_engine.calculators.types import TaxBracket, TaxConfiguration
from planilla_engine.errors import PayrollEngineError

if TYPE_CHECKING:
    from planilla_engine.services.ports import ConfigurationStore

logger = logging.getLogger(__name__)


class ConfigurationNotFoundError(PayrollEngineError):
    """Raised when no configuration covers the pay date."""

    def __init__(self, tenant_id: UUID, pay_date: date):
        self.tenant_id = tenant_id
        self.pay_date = pay_date
        super().__init__(
            f"No tax configuration effective on {pay_date} for tenant {tenant_id}"
        )


def select_configuration(
    configurations: Iterable[TaxConfiguration],
    tenant_id: UUID,
    pay_date: date,
) -> TaxConfiguration:
    """Pick the configuration whose validity interval contains ``pay_date``.

    If intervals overlap (a data-integrity problem owned by whoever maintains
    the configuration) the most recently created one wins.

    Raises:
        ConfigurationNotFoundError: If nothing matches.
    """
    matches = [
        c for c in configurations
        if c.tenant_id == tenant_id and c.is_effective_on(pay_date)
    ]
    if not matches:
        raise ConfigurationNotFoundError(tenant_id, pay_date)

    if len(matches) > 1:
        logger.warning(
            "Overlapping tax configurations for tenant %s on %s: %s",
            tenant_id,
            pay_date,
            ", ".join(str(c.configuration_id) for c in matches),
        )

    return max(matches, key=_recency)


def _recency(configuration: TaxConfiguration) -> tuple[bool, float, date]:
    # Undated configurations sort oldest
    created = configuration.created_at
    return (
        created is not None,
        created.timestamp() if created is not None else 0.0,
        configuration.effective_start,
    )


class RateResolver:
    """Resolves the configuration and bracket set in force for a run.

    The store is read-only from this side; tenant and date are always passed
    explicitly.
    """

    def __init__(self, store: ConfigurationStore):
        self.store = store

    async def resolve(self, tenant_id: UUID, pay_date: date) -> TaxConfiguration:
        """Return the configuration effective on ``pay_date``.

        Raises:
            ConfigurationNotFoundError: If no configuration covers the date.
        """
        candidates = await self.store.list_configurations(tenant_id, pay_date)
        return select_configuration(candidates, tenant_id, pay_date)

    async def resolve_brackets(self, tenant_id: UUID, fiscal_year: int) -> list[TaxBracket]:
        """Return the fiscal year's brackets sorted by ``order``."""
        brackets = await self.store.list_brackets(tenant_id, fiscal_year)
        return sorted(brackets, key=lambda b: b.order)
