"""Expense workflow command line interface.

Provides operational tools for:
- Schema creation
- Bootstrapping accounts (signup itself belongs to the identity provider)
- Listing expense categories

Usage:
    python -m expense_workflow.cli init-db
    python -m expense_workflow.cli create-account --name "Ada" --role admin
    python -m expense_workflow.cli categories
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from typing import Callable

from expense_workflow.categories import CATEGORIES
from expense_workflow.config import get_settings
from expense_workflow.database import create_all, get_engine, make_session_factory
from expense_workflow.errors import WorkflowError
from expense_workflow.services.directory_service import DirectoryService
from expense_workflow.services.state_machine import Role

logger = logging.getLogger(__name__)


class ExpenseCli:
    """Expense workflow command line interface."""

    def __init__(self) -> None:
        self.parser = self._build_parser()

    def _build_parser(self) -> argparse.ArgumentParser:
        """Build argument parser."""
        parser = argparse.ArgumentParser(
            prog="python -m expense_workflow.cli",
            description="Expense workflow operational tools",
        )
        parser.add_argument(
            "--database-url",
            help="Override DATABASE_URL",
        )
        subparsers = parser.add_subparsers(dest="command", help="Commands")

        subparsers.add_parser("init-db", help="Create all tables")

        account = subparsers.add_parser(
            "create-account",
            help="Register an account profile",
        )
        account.add_argument("--name", required=True, help="Display name")
        account.add_argument(
            "--role",
            choices=[r.value for r in Role],
            default=Role.EMPLOYEE.value,
            help="Account role",
        )
        account.add_argument("--department", help="Department tag used for routing")
        account.add_argument("--email", help="Contact email")

        subparsers.add_parser("categories", help="Print the expense category table")

        return parser

    def run(self, args: list[str] | None = None) -> int:
        """Run the CLI with given arguments."""
        parsed = self.parser.parse_args(args)

        if not parsed.command:
            self.parser.print_help()
            return 1

        handlers: dict[str, Callable[[argparse.Namespace], int]] = {
            "init-db": self._cmd_init_db,
            "create-account": self._cmd_create_account,
            "categories": self._cmd_categories,
        }

        handler = handlers.get(parsed.command)
        if handler:
            return handler(parsed)

        print(f"Unknown command: {parsed.command}", file=sys.stderr)
        return 1

    def _cmd_init_db(self, args: argparse.Namespace) -> int:
        """Create every table."""

        async def _run() -> None:
            engine = get_engine(args.database_url)
            try:
                await create_all(engine)
            finally:
                await engine.dispose()

        asyncio.run(_run())
        print("Tables created")
        return 0

    def _cmd_create_account(self, args: argparse.Namespace) -> int:
        """Create an account and print its id."""

        async def _run() -> str:
            engine = get_engine(args.database_url)
            try:
                async with make_session_factory(engine)() as session:
                    account = await DirectoryService(session).create_account(
                        display_name=args.name,
                        role=args.role,
                        department=args.department,
                        email=args.email,
                    )
                    await session.commit()
                    return str(account.account_id)
            finally:
                await engine.dispose()

        try:
            account_id = asyncio.run(_run())
        except WorkflowError as e:
            print(f"Error: {e.message}", file=sys.stderr)
            return 1

        print(account_id)
        return 0

    def _cmd_categories(self, args: argparse.Namespace) -> int:
        """Print the category table."""
        print(f"{'Code':<22}{'Label':<24}{'VAT':<5}Rate")
        print("-" * 56)
        for category in CATEGORIES.values():
            vat = "yes" if category.default_vat_enabled else "no"
            rate = f"{category.default_tax_rate}%" if category.default_tax_rate is not None else "-"
            print(f"{category.code:<22}{category.label:<24}{vat:<5}{rate}")
        return 0


def main() -> int:
    """CLI entry point."""
    logging.basicConfig(level=get_settings().log_level)
    cli = ExpenseCli()
    return cli.run()


if __name__ == "__main__":
    sys.exit(main())
