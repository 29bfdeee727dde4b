"""Integration test fixtures backed by a throwaway SQLite database file."""

from __future__ import annotations

from dataclasses import asdict
from datetime import date
from decimal import Decimal
from typing import AsyncGenerator
from uuid import UUID

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from factories import TENANT_ID, make_brackets, make_configuration
from planilla_engine.calculators.engine import PayrollEngine
from planilla_engine.database import create_schema, get_engine, make_session_factory
from planilla_engine.models import (
    ContributionConfiguration,
    Employee,
    IncomeTaxBracket,
)
from planilla_engine.services.run_service import PayrollRunService


@pytest_asyncio.fixture
async def db_engine(tmp_path) -> AsyncGenerator[AsyncEngine, None]:
    """One database file per test; sessions on it see each other's commits."""
    engine = get_engine(f"sqlite+aiosqlite:///{tmp_path / 'planilla.db'}")
    await create_schema(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(db_engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return make_session_factory(db_engine)


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Session the service under test works on."""
    async with session_factory() as session:
        yield session


class Seeder:
    """Inserts fixture rows through a separate, short-lived session."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory
        self._employee_count = 0

    async def add(self, *rows):
        async with self.session_factory() as session:
            session.add_all(rows)
            await session.commit()
        return rows[0] if len(rows) == 1 else rows

    async def configuration(self, tenant_id: UUID = TENANT_ID, **overrides) -> ContributionConfiguration:
        values = asdict(make_configuration(tenant_id=tenant_id, **overrides))
        values.pop("created_at")
        return await self.add(ContributionConfiguration(**values))

    async def brackets(self, tenant_id: UUID = TENANT_ID, fiscal_year: int = 2025) -> None:
        await self.add(
            *[
                IncomeTaxBracket(
                    tenant_id=tenant_id,
                    fiscal_year=bracket.fiscal_year,
                    bracket_order=bracket.order,
                    min_income=bracket.min_income,
                    max_income=bracket.max_income,
                    rate=bracket.rate,
                    fixed_amount=bracket.fixed_amount,
                )
                for bracket in make_brackets(fiscal_year)
            ]
        )

    async def employee(self, tenant_id: UUID = TENANT_ID, **overrides) -> Employee:
        self._employee_count += 1
        values = dict(
            tenant_id=tenant_id,
            employee_number=f"E{self._employee_count:03d}",
            full_name=f"Employee {self._employee_count}",
            base_salary=Decimal("1000.00"),
            pay_frequency="monthly",
            years_cotized=3,
            average_salary_10y=Decimal("900.00"),
            risk_percentage=Decimal("0.0056"),
            hire_date=date(2020, 1, 1),
        )
        values.update(overrides)
        return await self.add(Employee(**values))

    async def rules(self, tenant_id: UUID = TENANT_ID) -> None:
        await self.configuration(tenant_id)
        await self.brackets(tenant_id)


@pytest.fixture
def seed(session_factory) -> Seeder:
    return Seeder(session_factory)


def build_service(session: AsyncSession, audit=None) -> PayrollRunService:
    return PayrollRunService.for_session(
        session,
        audit=audit,
        engine=PayrollEngine("test"),
        max_workers=2,
    )


@pytest.fixture
def make_service():
    """Build a service on any session, e.g. a second concurrent one."""
    return build_service


@pytest.fixture
def service(db_session: AsyncSession) -> PayrollRunService:
    return build_service(db_session)
