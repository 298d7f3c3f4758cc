#!/usr/bin/env python3
"""Seed a demo microfinance portfolio.

This script generates groups, members and loans with repayment history and
writes them either to an in-memory store (``--dry-run``) or to PostgreSQL.
Optionally prints derived repayment schedules and runs a member deletion
through the reconciler.
"""

import argparse
import json
import logging
import sys
import time
from pathlib import Path

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from microfin.config import MicrofinConfig
from microfin.engine import AmortizationEngine, DependentRecordReconciler
from microfin.exceptions import MicrofinError
from microfin.logging import setup_logging
from microfin.scenarios import PortfolioScenario
from microfin.serialization import to_dict, to_dict_fast
from microfin.store import InMemoryDataStore
from microfin.store.postgres import PostgresDataStore

logger = logging.getLogger(__name__)


def show_schedules(scenario: PortfolioScenario, limit: int) -> None:
    """Print the derived schedule of the first ``limit`` loans."""
    engine: AmortizationEngine = scenario.engine
    for loan in scenario.loans[:limit]:
        print(f"\nLoan {loan.loan_id} ({loan.program}, {loan.status}) principal {loan.principal}")
        for inst in engine.build_schedule(loan):
            print(
                f"  #{inst.installment_number:>2} {inst.due_date}  "
                f"{inst.total_amount:>10}  {inst.status.value}"
            )
        print("  " + json.dumps(to_dict_fast(engine.summarize(loan))))


def main() -> None:
    """Main entry point."""
    parser = argparse.ArgumentParser(description="Seed a demo microfinance portfolio")
    parser.add_argument(
        "--groups",
        type=int,
        default=5,
        help="Number of lending groups to generate (default: 5)",
    )
    parser.add_argument(
        "--members",
        type=int,
        default=10,
        help="Members per group (default: 10)",
    )
    parser.add_argument(
        "--seed",
        type=int,
        default=None,
        help="Random seed for reproducibility (default: SEED env var)",
    )
    parser.add_argument(
        "--postgres-url",
        type=str,
        default=None,
        help="PostgreSQL connection string (default: built from POSTGRES_* env vars)",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Generate into an in-memory store instead of PostgreSQL",
    )
    parser.add_argument(
        "--truncate",
        action="store_true",
        help="Truncate all tables before seeding (allows re-running)",
    )
    parser.add_argument(
        "--show-schedules",
        type=int,
        default=0,
        metavar="N",
        help="Print the repayment schedule of the first N loans",
    )
    parser.add_argument(
        "--delete-member",
        type=str,
        default=None,
        metavar="MEMBER_ID",
        help="Run a member deletion through the reconciler after seeding",
    )
    parser.add_argument(
        "--log-format",
        choices=["standard", "json"],
        default="standard",
        help="Log output format (default: standard)",
    )

    args = parser.parse_args()
    config = MicrofinConfig.from_env()
    setup_logging(level=config.log_level, format_type=args.log_format)

    seed = args.seed if args.seed is not None else config.seed

    logger.info("=" * 60)
    logger.info("Portfolio seeder")
    logger.info("=" * 60)
    logger.info("Groups: %d x %d members", args.groups, args.members)
    logger.info("Seed: %s", seed)

    if args.dry_run:
        store = InMemoryDataStore()
    else:
        store = PostgresDataStore(args.postgres_url or config.postgres)

    try:
        if isinstance(store, PostgresDataStore):
            store.create_schema()
            if args.truncate:
                store.truncate()

        t0 = time.perf_counter()
        scenario = PortfolioScenario(
            num_groups=args.groups,
            members_per_group=args.members,
            seed=seed,
            store=store,
            schedule_config=config.schedule,
        )
        scenario.generate()
        logger.info("Seeded portfolio in %.1fs", time.perf_counter() - t0)

        summary = scenario.get_portfolio_summary()
        print(json.dumps(to_dict(summary), indent=2))

        if args.show_schedules:
            show_schedules(scenario, args.show_schedules)

        if args.delete_member:
            reconciler = DependentRecordReconciler(store, config=config.reconciler)
            report = reconciler.delete_member(args.delete_member)
            print(json.dumps(to_dict(report), indent=2))
    except MicrofinError as e:
        logger.error("Seeding failed: %s", e)
        sys.exit(1)
    finally:
        if isinstance(store, PostgresDataStore):
            store.close()


if __name__ == "__main__":
    main()
