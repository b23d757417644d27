"""
BI extract of vw_portfolio_snapshot
===================================
Reads one reporting date from the semantic view into a pandas DataFrame,
adds the DPD bucket label (same boundaries as the SQL CASE) and writes CSV.

Run: python -m app.cli export --date-key 20251201
"""
import logging
import os

import pandas as pd
from sqlalchemy import select

from app.core.dpd import assign_dpd_buckets
from app.db.views import vw_portfolio_snapshot

logger = logging.getLogger(__name__)

# Money columns arrive as Decimal; extracts carry floats
_MONEY_COLUMNS = [
    "principal_os",
    "interest_os",
    "charges_os",
    "total_os",
    "emi_due_amount",
    "emi_paid_amount",
]


def portfolio_snapshot_query(date_key: int):
    v = vw_portfolio_snapshot
    return select(v).where(v.c.date_key == date_key).order_by(v.c.loan_account_number)


def snapshot_frame(rows, columns: list[str]) -> pd.DataFrame:
    df = pd.DataFrame([tuple(r) for r in rows], columns=columns)
    for col in _MONEY_COLUMNS:
        if col in df.columns:
            df[col] = pd.to_numeric(df[col], errors="coerce").astype(float)
    df["dpd_bucket"] = assign_dpd_buckets(df["days_past_due"])
    return df


async def load_portfolio_frame(db, date_key: int) -> pd.DataFrame:
    result = await db.execute(portfolio_snapshot_query(date_key))
    columns = list(result.keys())
    df = snapshot_frame(result.all(), columns)
    if df.empty:
        logger.warning(f"vw_portfolio_snapshot has no rows for date_key={date_key}")
    return df


def write_csv(df: pd.DataFrame, export_dir: str, date_key: int) -> str:
    os.makedirs(export_dir, exist_ok=True)
    path = os.path.join(export_dir, f"portfolio_snapshot_{date_key}.csv")
    df.to_csv(path, index=False)
    logger.info(f"Exported {len(df)} rows to {path}")
    return path
