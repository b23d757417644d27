"""
Portfolio credit-risk analytics
================================
Read-only aggregate queries over fact_loan_snapshot / fact_payment_txn.

Each metric is a plain SQLAlchemy Select builder (usable from sync sessions,
the DDL renderer or ad-hoc SQL) plus an async executor on PortfolioAnalytics.

  Portfolio outstanding : SUM(principal_os) by product_type, one snapshot date
  NPA %                 : NPA principal / total principal x 100
  DPD buckets           : principal by Current / 1-30 / 31-60 / 61-90 / 90+
  Collection efficiency : SUM(emi_paid) / SUM(emi_due) x 100
  Vintage NPA %         : NPA % per disbursement year-month cohort, ROUND(.., 2)
  Channel collections   : payments by channel over a date_key range

Every percentage divides by NULLIF(denominator, 0): an empty or zero
portfolio yields NULL (None), never a division error.
"""
import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Optional

from sqlalchemy import case, func, literal_column, select
from sqlalchemy.orm import aliased

from app.core.dpd import DPD_BUCKET_LABELS, dpd_bucket_case, dpd_bucket_order_case
from app.db.schemas import (
    DimChannel,
    DimDate,
    DimLoan,
    DimStatus,
    FactLoanSnapshot,
    FactPaymentTxn,
    StatusCode,
)

logger = logging.getLogger(__name__)

# Rendered inline: keeps the multiplication in floating/numeric space on
# engines that would otherwise do integer division (SQLite)
_HUNDRED = literal_column("100.0")


def _pct(numerator, denominator):
    return numerator * _HUNDRED / func.nullif(denominator, 0)


def _npa_principal():
    return func.sum(
        case(
            (DimStatus.status_code == StatusCode.NPA.value, FactLoanSnapshot.principal_os),
            else_=0,
        )
    )


def _num(value) -> Optional[float]:
    return None if value is None else float(value)


def _round(value, digits: int = 2) -> Optional[float]:
    return None if value is None else round(float(value), digits)


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Query builders
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
def portfolio_outstanding_by_product_query(date_key: int):
    f = FactLoanSnapshot
    return (
        select(
            DimLoan.product_type,
            func.count(f.snapshot_key).label("loan_count"),
            func.sum(f.principal_os).label("principal_os"),
        )
        .select_from(f)
        .join(DimLoan, f.loan_key == DimLoan.loan_key)
        .where(f.date_key == date_key)
        .group_by(DimLoan.product_type)
        .order_by(DimLoan.product_type)
    )


def portfolio_total_query(date_key: int):
    f = FactLoanSnapshot
    return select(
        func.count(f.snapshot_key).label("loan_count"),
        func.coalesce(func.sum(f.principal_os), 0).label("principal_os"),
    ).where(f.date_key == date_key)


def npa_percentage_query(date_key: int):
    f = FactLoanSnapshot
    total = func.sum(f.principal_os)
    npa = _npa_principal()
    return (
        select(
            npa.label("npa_principal_os"),
            total.label("total_principal_os"),
            _pct(npa, total).label("npa_pct"),
        )
        .select_from(f)
        .join(DimStatus, f.status_key == DimStatus.status_key)
        .where(f.date_key == date_key)
    )


def dpd_bucket_query(date_key: int):
    """
    Principal and loan count per DPD bucket.
    Buckets are labelled in a subquery and grouped outside it, so the CASE is
    not repeated in GROUP BY (PostgreSQL rejects a re-bound copy of it).
    Rows with NULL DPD are excluded.
    """
    f = FactLoanSnapshot
    labelled = (
        select(
            f.principal_os,
            dpd_bucket_case(f.days_past_due).label("dpd_bucket"),
            dpd_bucket_order_case(f.days_past_due).label("bucket_order"),
        )
        .where(f.date_key == date_key, f.days_past_due.isnot(None))
        .subquery("dpd_labelled")
    )
    return (
        select(
            labelled.c.dpd_bucket,
            func.count().label("loan_count"),
            func.sum(labelled.c.principal_os).label("principal_os"),
        )
        .group_by(labelled.c.dpd_bucket, labelled.c.bucket_order)
        .order_by(labelled.c.bucket_order)
    )


def collection_efficiency_query(date_key: int):
    f = FactLoanSnapshot
    due = func.sum(f.emi_due_amount)
    paid = func.sum(f.emi_paid_amount)
    return select(
        paid.label("emi_paid_amount"),
        due.label("emi_due_amount"),
        _pct(paid, due).label("ce_pct"),
    ).where(f.date_key == date_key)


def vintage_npa_query(date_key: int):
    """NPA % by disbursement cohort (year, month) at one snapshot date."""
    f = FactLoanSnapshot
    disb = aliased(DimDate, name="disb_date")
    total = func.sum(f.principal_os)
    npa = _npa_principal()
    return (
        select(
            disb.year_num.label("vintage_year"),
            disb.month_num.label("vintage_month"),
            func.count(f.snapshot_key).label("loan_count"),
            total.label("principal_os"),
            npa.label("npa_principal_os"),
            func.round(_pct(npa, total), 2).label("npa_pct"),
        )
        .select_from(f)
        .join(DimLoan, f.loan_key == DimLoan.loan_key)
        .join(disb, DimLoan.disbursement_date_key == disb.date_key)
        .join(DimStatus, f.status_key == DimStatus.status_key)
        .where(f.date_key == date_key)
        .group_by(disb.year_num, disb.month_num)
        .order_by(disb.year_num, disb.month_num)
    )


def collections_by_channel_query(from_date_key: int, to_date_key: int):
    """Payments per channel for date_key in [from_date_key, to_date_key]."""
    p = FactPaymentTxn
    return (
        select(
            DimChannel.channel_code,
            func.count(p.txn_key).label("txn_count"),
            func.sum(p.payment_amount).label("payment_amount"),
            func.sum(p.principal_component).label("principal_component"),
            func.sum(p.interest_component).label("interest_component"),
            func.sum(p.charges_component).label("charges_component"),
            func.sum(case((p.is_overdue_payment, p.payment_amount), else_=0)).label("overdue_amount"),
        )
        .select_from(p)
        .join(DimChannel, p.channel_key == DimChannel.channel_key)
        .where(p.date_key.between(from_date_key, to_date_key))
        .group_by(DimChannel.channel_code)
        .order_by(DimChannel.channel_code)
    )


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Result dataclasses
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
@dataclass
class ProductOutstanding:
    product_type: str
    loan_count: int
    principal_os: Decimal

    def to_dict(self) -> dict:
        return {
            "product_type": self.product_type,
            "loan_count": self.loan_count,
            "principal_os": _num(self.principal_os),
        }


@dataclass
class RatioResult:
    """numerator / denominator x 100; pct is None when the denominator is zero or absent."""
    numerator: Optional[Decimal]
    denominator: Optional[Decimal]
    pct: Optional[float]

    def to_dict(self) -> dict:
        return {
            "numerator": _num(self.numerator),
            "denominator": _num(self.denominator),
            "pct": _round(self.pct),
        }


@dataclass
class DpdBucket:
    bucket: str
    loan_count: int
    principal_os: Decimal

    def to_dict(self) -> dict:
        return {
            "bucket": self.bucket,
            "loan_count": self.loan_count,
            "principal_os": _num(self.principal_os),
        }


@dataclass
class VintageCohort:
    vintage_year: int
    vintage_month: int
    loan_count: int
    principal_os: Decimal
    npa_principal_os: Decimal
    npa_pct: Optional[float]

    @property
    def cohort(self) -> str:
        return f"{self.vintage_year:04d}-{self.vintage_month:02d}"

    def to_dict(self) -> dict:
        return {
            "cohort": self.cohort,
            "loan_count": self.loan_count,
            "principal_os": _num(self.principal_os),
            "npa_principal_os": _num(self.npa_principal_os),
            "npa_pct": _round(self.npa_pct),
        }


@dataclass
class ChannelCollection:
    channel_code: str
    txn_count: int
    payment_amount: Decimal
    principal_component: Decimal
    interest_component: Decimal
    charges_component: Decimal
    overdue_amount: Decimal

    def to_dict(self) -> dict:
        return {
            "channel_code": self.channel_code,
            "txn_count": self.txn_count,
            "payment_amount": _num(self.payment_amount),
            "principal_component": _num(self.principal_component),
            "interest_component": _num(self.interest_component),
            "charges_component": _num(self.charges_component),
            "overdue_amount": _num(self.overdue_amount),
        }


@dataclass
class PortfolioReport:
    date_key: int
    loan_count: int
    total_principal_os: Decimal
    by_product: list[ProductOutstanding] = field(default_factory=list)
    npa: Optional[RatioResult] = None
    dpd_buckets: list[DpdBucket] = field(default_factory=list)
    collection_efficiency: Optional[RatioResult] = None
    vintage: list[VintageCohort] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "date_key": self.date_key,
            "loan_count": self.loan_count,
            "total_principal_os": _num(self.total_principal_os),
            "by_product": [p.to_dict() for p in self.by_product],
            "npa": self.npa.to_dict() if self.npa else None,
            "dpd_buckets": [b.to_dict() for b in self.dpd_buckets],
            "collection_efficiency": (
                self.collection_efficiency.to_dict() if self.collection_efficiency else None
            ),
            "vintage": [v.to_dict() for v in self.vintage],
        }


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Async executor
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
class PortfolioAnalytics:
    """
    Runs the analytical queries on an AsyncSession.

    Usage:
        analytics = PortfolioAnalytics(db)
        report = await analytics.full_report(20251201)
    """

    def __init__(self, db_session):
        self._db = db_session

    async def portfolio_outstanding_by_product(self, date_key: int) -> list[ProductOutstanding]:
        rows = (await self._db.execute(portfolio_outstanding_by_product_query(date_key))).all()
        return [ProductOutstanding(r.product_type, r.loan_count, r.principal_os) for r in rows]

    async def portfolio_total(self, date_key: int) -> tuple[int, Decimal]:
        row = (await self._db.execute(portfolio_total_query(date_key))).one()
        return row.loan_count, row.principal_os

    async def npa_percentage(self, date_key: int) -> RatioResult:
        row = (await self._db.execute(npa_percentage_query(date_key))).one()
        return RatioResult(row.npa_principal_os, row.total_principal_os, _num(row.npa_pct))

    async def dpd_bucket_analysis(self, date_key: int) -> list[DpdBucket]:
        """All five buckets in boundary order; empty buckets report zero."""
        rows = (await self._db.execute(dpd_bucket_query(date_key))).all()
        found = {r.dpd_bucket: r for r in rows}
        return [
            DpdBucket(label, found[label].loan_count, found[label].principal_os)
            if label in found
            else DpdBucket(label, 0, Decimal("0"))
            for label in DPD_BUCKET_LABELS
        ]

    async def collection_efficiency(self, date_key: int) -> RatioResult:
        row = (await self._db.execute(collection_efficiency_query(date_key))).one()
        return RatioResult(row.emi_paid_amount, row.emi_due_amount, _num(row.ce_pct))

    async def vintage_npa(self, date_key: int) -> list[VintageCohort]:
        rows = (await self._db.execute(vintage_npa_query(date_key))).all()
        return [
            VintageCohort(
                vintage_year=r.vintage_year,
                vintage_month=r.vintage_month,
                loan_count=r.loan_count,
                principal_os=r.principal_os,
                npa_principal_os=r.npa_principal_os,
                npa_pct=_num(r.npa_pct),
            )
            for r in rows
        ]

    async def collections_by_channel(
        self, from_date_key: int, to_date_key: int
    ) -> list[ChannelCollection]:
        rows = (await self._db.execute(collections_by_channel_query(from_date_key, to_date_key))).all()
        return [ChannelCollection(**r._mapping) for r in rows]

    async def full_report(self, date_key: int) -> PortfolioReport:
        """All snapshot metrics for one reporting date."""
        loan_count, total = await self.portfolio_total(date_key)
        if loan_count == 0:
            logger.warning(f"No fact_loan_snapshot rows for date_key={date_key}")

        report = PortfolioReport(
            date_key=date_key,
            loan_count=loan_count,
            total_principal_os=total,
            by_product=await self.portfolio_outstanding_by_product(date_key),
            npa=await self.npa_percentage(date_key),
            dpd_buckets=await self.dpd_bucket_analysis(date_key),
            collection_efficiency=await self.collection_efficiency(date_key),
            vintage=await self.vintage_npa(date_key),
        )
        logger.info(
            f"Portfolio report {date_key}: {loan_count} loans, "
            f"NPA%={_round(report.npa.pct)}, CE%={_round(report.collection_efficiency.pct)}"
        )
        return report
