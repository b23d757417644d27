"""
Loan risk mart command line
===========================
Thin async wrapper around the schema, loader and reporting modules.

Usage:
  python -m app.cli init-db                          # CREATE tables + view
  python -m app.cli seed                             # sample portfolio (idempotent)
  python -m app.cli render-sql --dialect sqlite      # combined DDL/DML script on stdout
  python -m app.cli report --date-key 20251201       # portfolio metrics as JSON
  python -m app.cli dq-check --date-key 20251201     # data-quality report as JSON
  python -m app.cli export --date-key 20251201       # vw_portfolio_snapshot -> CSV

Every command accepts --database-url to override DATABASE_URL.
"""
import argparse
import asyncio
import json
import logging
import sys
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError

from app.config import settings
from app.core.exceptions import MartError

logger = logging.getLogger(__name__)


def _configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def _print_json(payload: dict) -> None:
    print(json.dumps(payload, indent=2, ensure_ascii=False, default=str))


# ── Commands ─────────────────────────────────────────────────────
async def init_db(engine) -> None:
    from app.db.base import Base
    import app.db.schemas  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info(f"Schema created: {len(Base.metadata.tables)} tables + views")


async def seed(session_factory) -> int:
    from app.core.seed_sample_data import seed_sample_data

    async with session_factory() as db:
        return await seed_sample_data(db)


async def report(session_factory, date_key: int, from_key: Optional[int], to_key: Optional[int]) -> dict:
    from app.core.portfolio_analytics import PortfolioAnalytics

    async with session_factory() as db:
        analytics = PortfolioAnalytics(db)
        payload = (await analytics.full_report(date_key)).to_dict()
        if from_key is not None and to_key is not None:
            channels = await analytics.collections_by_channel(from_key, to_key)
            payload["collections_by_channel"] = [c.to_dict() for c in channels]
    return payload


async def dq_check(session_factory, date_key: Optional[int]) -> dict:
    from app.core.data_quality import run_data_quality_checks

    async with session_factory() as db:
        return (await run_data_quality_checks(db, date_key)).to_dict()


async def export(session_factory, date_key: int, export_dir: str) -> str:
    from app.core.export import load_portfolio_frame, write_csv

    async with session_factory() as db:
        df = await load_portfolio_frame(db, date_key)
    return write_csv(df, export_dir, date_key)


# ── Dispatcher ───────────────────────────────────────────────────
async def _run(args) -> int:
    from app.db.session import make_engine, make_session_factory

    engine = make_engine(args.database_url, echo=settings.SQL_ECHO)
    session_factory = make_session_factory(engine)
    try:
        if args.command == "init-db":
            await init_db(engine)
        elif args.command == "seed":
            inserted = await seed(session_factory)
            logger.info(f"seed: {inserted} fact rows inserted")
        elif args.command == "report":
            _print_json(await report(session_factory, args.date_key, args.from_date_key, args.to_date_key))
        elif args.command == "dq-check":
            result = await dq_check(session_factory, args.date_key)
            _print_json(result)
            if not result["passed"]:
                return 2
        elif args.command == "export":
            path = await export(session_factory, args.date_key, args.output_dir)
            print(path)
    finally:
        await engine.dispose()
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="loan-mart", description="Loan portfolio credit-risk data mart"
    )
    parser.add_argument(
        "--database-url", default=settings.DATABASE_URL,
        help="async SQLAlchemy URL (default: DATABASE_URL)",
    )
    parser.add_argument("--log-level", default=settings.LOG_LEVEL)
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("init-db", help="create all tables and views")
    sub.add_parser("seed", help="load the sample portfolio")

    render = sub.add_parser("render-sql", help="print the combined DDL/DML script")
    render.add_argument("--dialect", default="postgresql", choices=["postgresql", "sqlite"])
    render.add_argument("--no-data", action="store_true", help="schema only, no sample INSERTs")

    rep = sub.add_parser("report", help="portfolio metrics for one reporting date")
    rep.add_argument("--date-key", type=int, default=settings.DEFAULT_SNAPSHOT_DATE_KEY)
    rep.add_argument("--from-date-key", type=int, help="collections window start (YYYYMMDD)")
    rep.add_argument("--to-date-key", type=int, help="collections window end (YYYYMMDD)")

    dq = sub.add_parser("dq-check", help="run data-quality checks")
    dq.add_argument("--date-key", type=int, default=None)

    exp = sub.add_parser("export", help="write vw_portfolio_snapshot for one date as CSV")
    exp.add_argument("--date-key", type=int, default=settings.DEFAULT_SNAPSHOT_DATE_KEY)
    exp.add_argument("--output-dir", default=settings.EXPORT_DIR)
    return parser


def main(argv: Optional[list[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    _configure_logging(args.log_level)

    if args.command == "render-sql":
        from app.db.ddl import render_script

        sys.stdout.write(render_script(args.dialect, include_sample_data=not args.no_data))
        return 0

    try:
        return asyncio.run(_run(args))
    except MartError as e:
        logger.error(f"{args.command} failed:\n{e}")
        return 1
    except SQLAlchemyError as e:
        logger.error(f"{args.command} failed (database): {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
