"""Command Line Interface for operating the approval service.

Provides:
- Schema creation
- Functional role backfill for existing admin accounts

Usage:
    python -m payroll_approvals.cli init-db
    python -m payroll_approvals.cli backfill-roles --dry-run
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from typing import Callable

from payroll_approvals.config import configure_logging, get_settings
from payroll_approvals.database import create_schema, get_engine, make_session_factory
from payroll_approvals.services.role_inference import backfill_functional_roles

logger = logging.getLogger(__name__)


class ApprovalsCli:
    """Approval service Command Line Interface."""

    def __init__(self) -> None:
        self.parser = self._build_parser()

    def _build_parser(self) -> argparse.ArgumentParser:
        """Build argument parser."""
        parser = argparse.ArgumentParser(
            prog="python -m payroll_approvals.cli",
            description="Payroll approval operational tools",
        )
        parser.add_argument(
            "--database-url",
            type=str,
            help="Database URL (default: $DATABASE_URL)",
        )
        subparsers = parser.add_subparsers(dest="command", help="Commands")

        subparsers.add_parser(
            "init-db",
            help="Create all tables",
        )

        backfill = subparsers.add_parser(
            "backfill-roles",
            help="Infer functional roles for admins that have none",
        )
        backfill.add_argument(
            "--dry-run",
            action="store_true",
            help="Show what would change without writing",
        )

        return parser

    def run(self, args: list[str] | None = None) -> int:
        """Run the CLI with given arguments."""
        parsed = self.parser.parse_args(args)

        if not parsed.command:
            self.parser.print_help()
            return 1

        handlers: dict[str, Callable[[argparse.Namespace], int]] = {
            "init-db": self._cmd_init_db,
            "backfill-roles": self._cmd_backfill_roles,
        }

        handler = handlers.get(parsed.command)
        if handler:
            return handler(parsed)

        print(f"Unknown command: {parsed.command}", file=sys.stderr)
        return 1

    def _cmd_init_db(self, args: argparse.Namespace) -> int:
        """Create the schema."""

        async def _run() -> None:
            engine = get_engine(args.database_url)
            try:
                await create_schema(engine)
            finally:
                await engine.dispose()

        asyncio.run(_run())
        print("Schema created.")
        return 0

    def _cmd_backfill_roles(self, args: argparse.Namespace) -> int:
        """Backfill functional roles from position titles."""

        async def _run() -> list:
            engine = get_engine(args.database_url)
            factory = make_session_factory(engine)
            try:
                async with factory() as session:
                    changes = await backfill_functional_roles(session, dry_run=args.dry_run)
                    if not args.dry_run:
                        await session.commit()
                    return [(user.email, user.position, role) for user, role in changes]
            finally:
                await engine.dispose()

        changes = asyncio.run(_run())
        prefix = "[DRY RUN] " if args.dry_run else ""
        for email, position, role in changes:
            print(f"  {prefix}{email} ({position}) -> {role.value}")
        print(f"\n{prefix}{len(changes)} account(s) updated.")
        return 0


def main() -> int:
    """CLI entry point."""
    configure_logging(get_settings().log_level)
    cli = ApprovalsCli()
    return cli.run()


if __name__ == "__main__":
    sys.exit(main())
