"""
Payment transaction fact
Grain: one row per payment event. Append-only audit trail.
principal + interest + charges components should add up to payment_amount;
the schema does not enforce it, the loader and the data-quality checks do.
"""
from decimal import Decimal

from sqlalchemy import Boolean, ForeignKey, Index, Integer, String, false
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.db.append_only import append_only
from app.db.base import Base
from app.db.compat import Money, SurrogateKey


@append_only
class FactPaymentTxn(Base):
    __tablename__ = "fact_payment_txn"

    __table_args__ = (
        Index("idx_fact_payment_txn_date", "date_key"),
        Index("idx_fact_payment_txn_loan", "loan_key"),
        {"sqlite_autoincrement": True},
    )

    txn_key: Mapped[int] = mapped_column(SurrogateKey, primary_key=True, autoincrement=True)
    txn_reference: Mapped[str | None] = mapped_column(
        String(50), unique=True, comment="Source-system transaction id"
    )

    date_key: Mapped[int] = mapped_column(Integer, ForeignKey("dim_date.date_key"), nullable=False)
    loan_key: Mapped[int] = mapped_column(SurrogateKey, ForeignKey("dim_loan.loan_key"), nullable=False)
    channel_key: Mapped[int] = mapped_column(
        SurrogateKey, ForeignKey("dim_channel.channel_key"), nullable=False
    )

    payment_amount: Mapped[Decimal] = mapped_column(Money, nullable=False)
    principal_component: Mapped[Decimal] = mapped_column(
        Money, nullable=False, default=0, server_default="0"
    )
    interest_component: Mapped[Decimal] = mapped_column(
        Money, nullable=False, default=0, server_default="0"
    )
    charges_component: Mapped[Decimal] = mapped_column(
        Money, nullable=False, default=0, server_default="0"
    )
    is_overdue_payment: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
        server_default=false(),
        comment="Payment made against an overdue installment",
    )

    date: Mapped["DimDate"] = relationship("DimDate", lazy="select")  # noqa: F821
    loan: Mapped["DimLoan"] = relationship("DimLoan", lazy="select")  # noqa: F821
    channel: Mapped["DimChannel"] = relationship("DimChannel", lazy="select")  # noqa: F821
