"""Planilla Command Line Interface.

Provides operational tools for:
- Schema creation
- Creating, processing, approving and paying payroll runs
- Inspecting a run and its details

Usage:
    python -m planilla_engine init-db
    python -m planilla_engine create-run --tenant-id X --start 2025-01-01 --end 2025-01-31 --pay-date 2025-01-31
    python -m planilla_engine process --run-id X
    python -m planilla_engine approve --run-id X --approver alice
    python -m planilla_engine pay --run-id X --reference ACH-123
    python -m planilla_engine show --run-id X

Exit codes: 0 on success, 1 on an error, 2 when a run processed with
excluded employees.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from datetime import date
from typing import Any, Awaitable, Callable
from uuid import UUID

from planilla_engine.config import get_settings
from planilla_engine.database import create_schema, get_session, init_db
from planilla_engine.errors import PayrollEngineError
from planilla_engine.services.audit import LoggingAuditSink
from planilla_engine.services.run_service import PayrollRunService
from planilla_engine.services.store import SqlPayrollStore


def parse_date(s: str) -> date:
    """Parse ISO date string."""
    return date.fromisoformat(s)


def parse_uuid(s: str) -> UUID:
    """Parse UUID string."""
    return UUID(s)


def _run_summary(run: Any) -> dict[str, Any]:
    return {
        "run_id": str(run.run_id),
        "run_number": run.run_number,
        "status": run.status,
        "period": [run.period_start.isoformat(), run.period_end.isoformat()],
        "pay_date": run.pay_date.isoformat(),
        "total_gross": str(run.total_gross),
        "total_deductions": str(run.total_deductions),
        "total_net": str(run.total_net),
        "total_employer_cost": str(run.total_employer_cost),
        "failed_employee_count": run.failed_employee_count,
        "approved_by": run.approved_by,
        "paid_by": run.paid_by,
        "payment_reference": run.payment_reference,
        "version": run.version,
    }


class PlanillaCli:
    """Planilla Command Line Interface."""

    def __init__(self) -> None:
        self.parser = self._build_parser()

    def _build_parser(self) -> argparse.ArgumentParser:
        """Build argument parser."""
        parser = argparse.ArgumentParser(
            prog="python -m planilla_engine",
            description="Payroll run operations",
        )
        subparsers = parser.add_subparsers(dest="command", help="Commands")

        subparsers.add_parser("init-db", help="Create all tables")

        create = subparsers.add_parser("create-run", help="Create a draft payroll run")
        create.add_argument("--tenant-id", type=parse_uuid, required=True)
        create.add_argument("--start", type=parse_date, required=True, help="Period start (ISO date)")
        create.add_argument("--end", type=parse_date, required=True, help="Period end (ISO date)")
        create.add_argument("--pay-date", type=parse_date, required=True, help="Pay date (ISO date)")
        create.add_argument("--run-number", help="Explicit run number (default: next YYYY-NNN)")
        create.add_argument("--description")

        process = subparsers.add_parser("process", help="Calculate a draft run")
        process.add_argument("--run-id", type=parse_uuid, required=True)
        process.add_argument("--actor", help="Who is processing the run")

        approve = subparsers.add_parser("approve", help="Approve a processed run")
        approve.add_argument("--run-id", type=parse_uuid, required=True)
        approve.add_argument("--approver", required=True)

        pay = subparsers.add_parser("pay", help="Mark an approved run as paid")
        pay.add_argument("--run-id", type=parse_uuid, required=True)
        pay.add_argument("--reference", required=True, help="Payment reference")
        pay.add_argument("--paid-by", help="Who released the payment")

        delete = subparsers.add_parser("delete", help="Delete a draft run")
        delete.add_argument("--run-id", type=parse_uuid, required=True)

        show = subparsers.add_parser("show", help="Show a run and its details")
        show.add_argument("--run-id", type=parse_uuid, required=True)
        show.add_argument("--details", action="store_true", help="Include per-employee details")

        return parser

    def run(self, args: list[str] | None = None) -> int:
        """Run the CLI with given arguments."""
        parsed = self.parser.parse_args(args)

        if not parsed.command:
            self.parser.print_help()
            return 1

        settings = get_settings()
        logging.basicConfig(
            level=getattr(logging, settings.log_level, logging.INFO),
            format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        )

        handlers: dict[str, Callable[[argparse.Namespace], Awaitable[int]]] = {
            "init-db": self._cmd_init_db,
            "create-run": self._cmd_create_run,
            "process": self._cmd_process,
            "approve": self._cmd_approve,
            "pay": self._cmd_pay,
            "delete": self._cmd_delete,
            "show": self._cmd_show,
        }

        handler = handlers.get(parsed.command)
        if handler is None:
            print(f"Unknown command: {parsed.command}", file=sys.stderr)
            return 1

        try:
            return asyncio.run(handler(parsed))
        except (PayrollEngineError, ValueError) as e:
            print(f"ERROR: {e}", file=sys.stderr)
            return 1

    @staticmethod
    def _emit(data: dict[str, Any]) -> None:
        print(json.dumps(data, indent=2, default=str))

    async def _cmd_init_db(self, args: argparse.Namespace) -> int:
        engine, _ = init_db()
        await create_schema(engine)
        print("Schema created")
        return 0

    async def _cmd_create_run(self, args: argparse.Namespace) -> int:
        async with get_session() as session:
            service = PayrollRunService.for_session(session, audit=LoggingAuditSink())
            run = await service.create_run(
                tenant_id=args.tenant_id,
                period_start=args.start,
                period_end=args.end,
                pay_date=args.pay_date,
                run_number=args.run_number,
                description=args.description,
            )
            self._emit(_run_summary(run))
        return 0

    async def _cmd_process(self, args: argparse.Namespace) -> int:
        async with get_session() as session:
            service = PayrollRunService.for_session(session, audit=LoggingAuditSink())
            result = await service.process_run(args.run_id, actor=args.actor)
            self._emit({
                "run_id": str(result.run_id),
                "processed_count": result.processed_count,
                "complete": result.is_complete,
                "failures": [
                    {
                        "employee_id": str(f.employee_id),
                        "reason": f.reason.value,
                        "message": f.message,
                    }
                    for f in result.failures
                ],
                "total_gross": str(result.totals.total_gross),
                "total_deductions": str(result.totals.total_deductions),
                "total_net": str(result.totals.total_net),
                "total_employer_cost": str(result.totals.total_employer_cost),
                "version": result.version,
            })
        return 0 if result.is_complete else 2

    async def _cmd_approve(self, args: argparse.Namespace) -> int:
        async with get_session() as session:
            service = PayrollRunService.for_session(session, audit=LoggingAuditSink())
            run = await service.approve_run(args.run_id, args.approver)
            self._emit(_run_summary(run))
        return 0

    async def _cmd_pay(self, args: argparse.Namespace) -> int:
        async with get_session() as session:
            service = PayrollRunService.for_session(session, audit=LoggingAuditSink())
            run = await service.mark_paid(args.run_id, args.reference, actor=args.paid_by)
            self._emit(_run_summary(run))
        return 0

    async def _cmd_delete(self, args: argparse.Namespace) -> int:
        async with get_session() as session:
            service = PayrollRunService.for_session(session, audit=LoggingAuditSink())
            await service.delete_run(args.run_id)
            print(f"Deleted run {args.run_id}")
        return 0

    async def _cmd_show(self, args: argparse.Namespace) -> int:
        async with get_session() as session:
            service = PayrollRunService.for_session(session)
            run = await service.get_run(args.run_id)
            data = _run_summary(run)
            if args.details:
                details = await SqlPayrollStore(session).list_details(run.run_id)
                data["details"] = [
                    {k: v for k, v in detail.to_dict().items() if k != "deduction_lines"}
                    for detail in details
                ]
            self._emit(data)
        return 0


def main() -> int:
    """CLI entry point."""
    cli = PlanillaCli()
    return cli.run()


if __name__ == "__main__":
    sys.exit(main())
