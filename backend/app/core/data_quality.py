"""
Data-quality checks
===================
Read-only checks for what the schema alone does not (or cannot) guarantee:

  orphaned_snapshots   : snapshot facts missing a match in any joined dimension
                         (vw_portfolio_snapshot silently drops these rows)
  duplicate_grain      : more than one snapshot per (loan_key, date_key)
  payment_mismatches   : principal + interest + charges != payment_amount
  null_dpd             : snapshot rows without days_past_due (no DPD bucket)

With foreign keys and the grain constraint enforced the first two stay empty;
they exist for databases loaded with constraints disabled or created before
the constraint was added.
"""
import logging
from dataclasses import dataclass, field
from typing import Optional

from sqlalchemy import func, or_, select

from app.config import settings
from app.db.schemas import (
    DimCustomer,
    DimDate,
    DimGeo,
    DimLoan,
    DimStatus,
    FactLoanSnapshot,
    FactPaymentTxn,
)
from app.db.views import vw_portfolio_snapshot

logger = logging.getLogger(__name__)

# dimension table -> (entity, dimension key column, fact FK column)
_SNAPSHOT_DIMENSIONS = {
    "dim_date": (DimDate, DimDate.date_key, FactLoanSnapshot.date_key),
    "dim_loan": (DimLoan, DimLoan.loan_key, FactLoanSnapshot.loan_key),
    "dim_customer": (DimCustomer, DimCustomer.customer_key, FactLoanSnapshot.customer_key),
    "dim_geo": (DimGeo, DimGeo.geo_key, FactLoanSnapshot.geo_key),
    "dim_status": (DimStatus, DimStatus.status_key, FactLoanSnapshot.status_key),
}


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Query builders
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
def _for_date(stmt, date_key: Optional[int]):
    return stmt if date_key is None else stmt.where(FactLoanSnapshot.date_key == date_key)


def orphaned_snapshots_query(date_key: Optional[int] = None):
    f = FactLoanSnapshot
    stmt = select(
        f.snapshot_key,
        f.date_key,
        *[dim_key.label(f"{name}_key") for name, (_, dim_key, _) in _SNAPSHOT_DIMENSIONS.items()],
    ).select_from(f)
    for entity, dim_key, fact_key in _SNAPSHOT_DIMENSIONS.values():
        stmt = stmt.outerjoin(entity, fact_key == dim_key)
    stmt = stmt.where(or_(*[dim_key.is_(None) for _, dim_key, _ in _SNAPSHOT_DIMENSIONS.values()]))
    return _for_date(stmt, date_key).order_by(f.snapshot_key)


def duplicate_grain_query(date_key: Optional[int] = None):
    f = FactLoanSnapshot
    stmt = (
        select(f.loan_key, f.date_key, func.count().label("row_count"))
        .group_by(f.loan_key, f.date_key)
        .having(func.count() > 1)
    )
    return _for_date(stmt, date_key)


def payment_mismatch_query(tolerance: Optional[float] = None):
    p = FactPaymentTxn
    tolerance = settings.PAYMENT_COMPONENT_TOLERANCE if tolerance is None else tolerance
    component_total = p.principal_component + p.interest_component + p.charges_component
    return (
        select(
            p.txn_key,
            p.txn_reference,
            p.payment_amount,
            component_total.label("component_total"),
        )
        .where(func.abs(p.payment_amount - component_total) > tolerance)
        .order_by(p.txn_key)
    )


def null_dpd_query(date_key: Optional[int] = None):
    f = FactLoanSnapshot
    stmt = select(f.snapshot_key, f.date_key).where(f.days_past_due.is_(None))
    return _for_date(stmt, date_key).order_by(f.snapshot_key)


def view_coverage_query(date_key: int):
    """(fact rows for the date, view rows for the date); equal when nothing is orphaned."""
    facts = (
        select(func.count())
        .select_from(FactLoanSnapshot)
        .where(FactLoanSnapshot.date_key == date_key)
        .scalar_subquery()
    )
    view_rows = (
        select(func.count())
        .select_from(vw_portfolio_snapshot)
        .where(vw_portfolio_snapshot.c.date_key == date_key)
        .scalar_subquery()
    )
    return select(facts.label("fact_rows"), view_rows.label("view_rows"))


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Report
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
@dataclass
class DataQualityReport:
    date_key: Optional[int]
    orphaned_snapshots: list[dict] = field(default_factory=list)
    duplicate_grain: list[dict] = field(default_factory=list)
    payment_mismatches: list[dict] = field(default_factory=list)
    null_dpd: list[dict] = field(default_factory=list)
    # {"fact_rows": n, "view_rows": m} when checked for a single date
    view_coverage: Optional[dict] = None

    @property
    def passed(self) -> bool:
        return not (
            self.orphaned_snapshots or self.duplicate_grain
            or self.payment_mismatches or self.null_dpd
        )

    def to_dict(self) -> dict:
        return {
            "date_key": self.date_key,
            "passed": self.passed,
            "orphaned_snapshots": self.orphaned_snapshots,
            "duplicate_grain": self.duplicate_grain,
            "payment_mismatches": self.payment_mismatches,
            "null_dpd": self.null_dpd,
            "view_coverage": self.view_coverage,
        }


def _orphan_row(row) -> dict:
    missing = [name for name in _SNAPSHOT_DIMENSIONS if row._mapping[f"{name}_key"] is None]
    return {"snapshot_key": row.snapshot_key, "date_key": row.date_key, "missing_dimensions": missing}


def _mismatch_row(row) -> dict:
    return {
        "txn_key": row.txn_key,
        "txn_reference": row.txn_reference,
        "payment_amount": float(row.payment_amount),
        "component_total": float(row.component_total),
    }


async def run_data_quality_checks(db, date_key: Optional[int] = None) -> DataQualityReport:
    report = DataQualityReport(date_key=date_key)

    report.orphaned_snapshots = [
        _orphan_row(r) for r in (await db.execute(orphaned_snapshots_query(date_key))).all()
    ]
    report.duplicate_grain = [
        dict(r._mapping) for r in (await db.execute(duplicate_grain_query(date_key))).all()
    ]
    report.payment_mismatches = [
        _mismatch_row(r) for r in (await db.execute(payment_mismatch_query())).all()
    ]
    report.null_dpd = [
        dict(r._mapping) for r in (await db.execute(null_dpd_query(date_key))).all()
    ]
    if date_key is not None:
        report.view_coverage = dict((await db.execute(view_coverage_query(date_key))).one()._mapping)

    if report.passed:
        logger.info(f"Data-quality checks passed (date_key={date_key})")
    else:
        logger.warning(
            f"Data-quality findings (date_key={date_key}): "
            f"orphaned={len(report.orphaned_snapshots)}, "
            f"duplicate_grain={len(report.duplicate_grain)}, "
            f"payment_mismatches={len(report.payment_mismatches)}, "
            f"null_dpd={len(report.null_dpd)}"
        )
    return report
