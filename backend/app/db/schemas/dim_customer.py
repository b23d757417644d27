"""
Customer dimension
Created on onboarding, changed on KYC updates.

Versioning follows CUSTOMER_SCD_POLICY:
  type1: one row per customer_id, attributes overwritten in place (history lost)
  type2: a new row per change; the previous row is closed via effective_to / is_current
Facts always reference customer_key, so type-2 snapshots keep pointing at the
version that was current when they were loaded.
"""
from datetime import date

from sqlalchemy import Boolean, Date, Index, String, UniqueConstraint, true
from sqlalchemy.orm import Mapped, mapped_column

from app.db.base import Base
from app.db.compat import SurrogateKey


class DimCustomer(Base):
    __tablename__ = "dim_customer"

    __table_args__ = (
        UniqueConstraint("customer_id", "effective_from", name="uq_dim_customer_version"),
        Index("idx_dim_customer_current", "customer_id", "is_current"),
        {"sqlite_autoincrement": True},
    )

    customer_key: Mapped[int] = mapped_column(SurrogateKey, primary_key=True, autoincrement=True)
    customer_id: Mapped[str] = mapped_column(String(30), nullable=False, comment="Source-system customer id")
    customer_name: Mapped[str] = mapped_column(String(200), nullable=False)
    kyc_status: Mapped[str | None] = mapped_column(String(20), comment="verified | pending | expired")

    # ── SCD versioning (type2 only; type1 keeps the initial values) ─────────
    effective_from: Mapped[date] = mapped_column(Date, nullable=False)
    effective_to: Mapped[date | None] = mapped_column(Date, comment="null = current version")
    is_current: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=True, server_default=true()
    )
