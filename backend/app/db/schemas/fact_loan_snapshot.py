"""
Loan snapshot fact
Grain: one row per loan per reporting date. Loaded by the periodic snapshot
process; never updated in place, each reporting date gets a new row.
uq_fact_loan_snapshot_grain enforces the grain so reports cannot double count.
"""
from decimal import Decimal

from sqlalchemy import ForeignKey, Index, Integer, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.db.append_only import append_only
from app.db.base import Base
from app.db.compat import Money, SurrogateKey


@append_only
class FactLoanSnapshot(Base):
    __tablename__ = "fact_loan_snapshot"

    __table_args__ = (
        UniqueConstraint("loan_key", "date_key", name="uq_fact_loan_snapshot_grain"),
        Index("idx_fact_loan_snapshot_date", "date_key"),
        Index("idx_fact_loan_snapshot_status", "date_key", "status_key"),
        {"sqlite_autoincrement": True},
    )

    snapshot_key: Mapped[int] = mapped_column(SurrogateKey, primary_key=True, autoincrement=True)

    # ── Dimension keys ────────────────────────────────────────────
    date_key: Mapped[int] = mapped_column(Integer, ForeignKey("dim_date.date_key"), nullable=False)
    loan_key: Mapped[int] = mapped_column(SurrogateKey, ForeignKey("dim_loan.loan_key"), nullable=False)
    customer_key: Mapped[int] = mapped_column(
        SurrogateKey, ForeignKey("dim_customer.customer_key"), nullable=False
    )
    geo_key: Mapped[int] = mapped_column(SurrogateKey, ForeignKey("dim_geo.geo_key"), nullable=False)
    status_key: Mapped[int] = mapped_column(
        SurrogateKey, ForeignKey("dim_status.status_key"), nullable=False
    )

    # ── Outstanding balances ──────────────────────────────────────
    principal_os: Mapped[Decimal] = mapped_column(
        Money, nullable=False, default=0, server_default="0"
    )
    interest_os: Mapped[Decimal] = mapped_column(
        Money, nullable=False, default=0, server_default="0"
    )
    charges_os: Mapped[Decimal] = mapped_column(
        Money, nullable=False, default=0, server_default="0"
    )

    # ── Delinquency / collections ─────────────────────────────────
    days_past_due: Mapped[int | None] = mapped_column(Integer, comment="DPD as of the snapshot date")
    emi_due_amount: Mapped[Decimal] = mapped_column(
        Money, nullable=False, default=0, server_default="0"
    )
    emi_paid_amount: Mapped[Decimal] = mapped_column(
        Money, nullable=False, default=0, server_default="0"
    )

    # ── ORM relationships (many-to-one) ───────────────────────────
    date: Mapped["DimDate"] = relationship("DimDate", lazy="select")  # noqa: F821
    loan: Mapped["DimLoan"] = relationship("DimLoan", lazy="select")  # noqa: F821
    customer: Mapped["DimCustomer"] = relationship("DimCustomer", lazy="select")  # noqa: F821
    geo: Mapped["DimGeo"] = relationship("DimGeo", lazy="select")  # noqa: F821
    status: Mapped["DimStatus"] = relationship("DimStatus", lazy="select")  # noqa: F821
