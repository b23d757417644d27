"""Initial schema v1.0

Loan portfolio star schema:
  - dim_date (YYYYMMDD calendar)
  - dim_status, dim_channel (static code sets)
  - dim_geo, dim_customer, dim_loan
  - fact_loan_snapshot (one row per loan per reporting date)
  - fact_payment_txn (one row per payment event)
  - vw_portfolio_snapshot (semantic layer view)

Revision ID: 001
Revises:
Create Date: 2025-12-01 00:00:00.000000
"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa

from app.db.compat import Money, SurrogateKey

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

# vw_portfolio_snapshot as of this revision. Later changes to the view get
# their own revision instead of editing this text.
PORTFOLIO_SNAPSHOT_VIEW_SQL = """
CREATE VIEW vw_portfolio_snapshot AS
SELECT
    f.snapshot_key,
    f.date_key,
    d.full_date AS snapshot_date,
    d.year_num,
    d.month_num,
    d.quarter,
    l.loan_account_number,
    l.product_type,
    l.disbursement_date_key,
    c.customer_id,
    c.customer_name,
    g.branch_name,
    g.city,
    g.state,
    s.status_code,
    s.status_bucket,
    f.principal_os,
    f.interest_os,
    f.charges_os,
    f.principal_os + f.interest_os + f.charges_os AS total_os,
    f.days_past_due,
    f.emi_due_amount,
    f.emi_paid_amount
FROM fact_loan_snapshot f
JOIN dim_date d ON f.date_key = d.date_key
JOIN dim_loan l ON f.loan_key = l.loan_key
JOIN dim_customer c ON f.customer_key = c.customer_key
JOIN dim_geo g ON f.geo_key = g.geo_key
JOIN dim_status s ON f.status_key = s.status_key
"""


def _money(name: str, nullable: bool = False) -> sa.Column:
    if nullable:
        return sa.Column(name, Money)
    return sa.Column(name, Money, nullable=False, server_default="0")


def upgrade() -> None:
    # ── 1. dim_date ────────────────────────────────────────────────────────
    op.create_table(
        "dim_date",
        sa.Column("date_key", sa.Integer, autoincrement=False, comment="YYYYMMDD"),
        sa.Column("full_date", sa.Date, nullable=False),
        sa.Column("year_num", sa.SmallInteger, nullable=False),
        sa.Column("month_num", sa.SmallInteger, nullable=False),
        sa.Column("day_num", sa.SmallInteger, nullable=False),
        sa.Column("quarter", sa.SmallInteger, nullable=False, comment="1-4"),
        sa.Column("month_name", sa.String(9), nullable=False),
        sa.Column("is_month_end", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.PrimaryKeyConstraint("date_key", name="pk_dim_date"),
        sa.UniqueConstraint("full_date", name="uq_dim_date_full_date"),
        sa.CheckConstraint(
            "date_key = year_num * 10000 + month_num * 100 + day_num",
            name="chk_dim_date_key_format",
        ),
        sa.CheckConstraint("month_num BETWEEN 1 AND 12", name="chk_dim_date_month"),
        sa.CheckConstraint("quarter BETWEEN 1 AND 4", name="chk_dim_date_quarter"),
    )

    # ── 2. reference dimensions ────────────────────────────────────────────
    op.create_table(
        "dim_status",
        sa.Column("status_key", SurrogateKey, autoincrement=True),
        sa.Column("status_code", sa.String(10), nullable=False, comment="STD | SMA | NPA | WO | Closed"),
        sa.Column("status_bucket", sa.String(30), nullable=False),
        sa.Column("description", sa.String(200)),
        sa.PrimaryKeyConstraint("status_key", name="pk_dim_status"),
        sa.UniqueConstraint("status_code", name="uq_dim_status_code"),
        sqlite_autoincrement=True,
    )
    op.create_table(
        "dim_channel",
        sa.Column("channel_key", SurrogateKey, autoincrement=True),
        sa.Column("channel_code", sa.String(20), nullable=False, comment="UPI | NACH | Cash | NEFT | Cheque"),
        sa.Column("channel_name", sa.String(100)),
        sa.PrimaryKeyConstraint("channel_key", name="pk_dim_channel"),
        sa.UniqueConstraint("channel_code", name="uq_dim_channel_code"),
        sqlite_autoincrement=True,
    )

    # ── 3. business dimensions ─────────────────────────────────────────────
    op.create_table(
        "dim_geo",
        sa.Column("geo_key", SurrogateKey, autoincrement=True),
        sa.Column("branch_name", sa.String(100), nullable=False),
        sa.Column("city", sa.String(100), nullable=False),
        sa.Column("state", sa.String(100), nullable=False),
        sa.PrimaryKeyConstraint("geo_key", name="pk_dim_geo"),
        sa.UniqueConstraint("branch_name", "city", "state", name="uq_dim_geo_branch_city_state"),
        sqlite_autoincrement=True,
    )
    op.create_table(
        "dim_customer",
        sa.Column("customer_key", SurrogateKey, autoincrement=True),
        sa.Column("customer_id", sa.String(30), nullable=False, comment="Source-system customer id"),
        sa.Column("customer_name", sa.String(200), nullable=False),
        sa.Column("kyc_status", sa.String(20), comment="verified | pending | expired"),
        sa.Column("effective_from", sa.Date, nullable=False),
        sa.Column("effective_to", sa.Date, comment="null = current version"),
        sa.Column("is_current", sa.Boolean, nullable=False, server_default=sa.true()),
        sa.PrimaryKeyConstraint("customer_key", name="pk_dim_customer"),
        sa.UniqueConstraint("customer_id", "effective_from", name="uq_dim_customer_version"),
        sqlite_autoincrement=True,
    )
    op.create_index("idx_dim_customer_current", "dim_customer", ["customer_id", "is_current"])

    op.create_table(
        "dim_loan",
        sa.Column("loan_key", SurrogateKey, autoincrement=True),
        sa.Column("loan_account_number", sa.String(30), nullable=False),
        sa.Column("product_type", sa.String(50), nullable=False),
        sa.Column("disbursement_date_key", sa.Integer, nullable=False, comment="Vintage cohort date"),
        sa.PrimaryKeyConstraint("loan_key", name="pk_dim_loan"),
        sa.UniqueConstraint("loan_account_number", name="uq_dim_loan_loan_account_number"),
        sa.ForeignKeyConstraint(
            ["disbursement_date_key"], ["dim_date.date_key"],
            name="fk_dim_loan_disbursement_date_key_dim_date",
        ),
        sqlite_autoincrement=True,
    )

    # ── 4. fact_loan_snapshot ──────────────────────────────────────────────
    op.create_table(
        "fact_loan_snapshot",
        sa.Column("snapshot_key", SurrogateKey, autoincrement=True),
        sa.Column("date_key", sa.Integer, nullable=False),
        sa.Column("loan_key", SurrogateKey, nullable=False),
        sa.Column("customer_key", SurrogateKey, nullable=False),
        sa.Column("geo_key", SurrogateKey, nullable=False),
        sa.Column("status_key", SurrogateKey, nullable=False),
        _money("principal_os"),
        _money("interest_os"),
        _money("charges_os"),
        sa.Column("days_past_due", sa.Integer, comment="DPD as of the snapshot date"),
        _money("emi_due_amount"),
        _money("emi_paid_amount"),
        sa.PrimaryKeyConstraint("snapshot_key", name="pk_fact_loan_snapshot"),
        sa.UniqueConstraint("loan_key", "date_key", name="uq_fact_loan_snapshot_grain"),
        sa.ForeignKeyConstraint(["date_key"], ["dim_date.date_key"],
                                name="fk_fact_loan_snapshot_date_key_dim_date"),
        sa.ForeignKeyConstraint(["loan_key"], ["dim_loan.loan_key"],
                                name="fk_fact_loan_snapshot_loan_key_dim_loan"),
        sa.ForeignKeyConstraint(["customer_key"], ["dim_customer.customer_key"],
                                name="fk_fact_loan_snapshot_customer_key_dim_customer"),
        sa.ForeignKeyConstraint(["geo_key"], ["dim_geo.geo_key"],
                                name="fk_fact_loan_snapshot_geo_key_dim_geo"),
        sa.ForeignKeyConstraint(["status_key"], ["dim_status.status_key"],
                                name="fk_fact_loan_snapshot_status_key_dim_status"),
        sqlite_autoincrement=True,
    )
    op.create_index("idx_fact_loan_snapshot_date", "fact_loan_snapshot", ["date_key"])
    op.create_index("idx_fact_loan_snapshot_status", "fact_loan_snapshot", ["date_key", "status_key"])

    # ── 5. fact_payment_txn ────────────────────────────────────────────────
    op.create_table(
        "fact_payment_txn",
        sa.Column("txn_key", SurrogateKey, autoincrement=True),
        sa.Column("txn_reference", sa.String(50), comment="Source-system transaction id"),
        sa.Column("date_key", sa.Integer, nullable=False),
        sa.Column("loan_key", SurrogateKey, nullable=False),
        sa.Column("channel_key", SurrogateKey, nullable=False),
        sa.Column("payment_amount", Money, nullable=False),
        _money("principal_component"),
        _money("interest_component"),
        _money("charges_component"),
        sa.Column("is_overdue_payment", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.PrimaryKeyConstraint("txn_key", name="pk_fact_payment_txn"),
        sa.UniqueConstraint("txn_reference", name="uq_fact_payment_txn_txn_reference"),
        sa.ForeignKeyConstraint(["date_key"], ["dim_date.date_key"],
                                name="fk_fact_payment_txn_date_key_dim_date"),
        sa.ForeignKeyConstraint(["loan_key"], ["dim_loan.loan_key"],
                                name="fk_fact_payment_txn_loan_key_dim_loan"),
        sa.ForeignKeyConstraint(["channel_key"], ["dim_channel.channel_key"],
                                name="fk_fact_payment_txn_channel_key_dim_channel"),
        sqlite_autoincrement=True,
    )
    op.create_index("idx_fact_payment_txn_date", "fact_payment_txn", ["date_key"])
    op.create_index("idx_fact_payment_txn_loan", "fact_payment_txn", ["loan_key"])

    # ── 6. semantic layer ──────────────────────────────────────────────────
    op.execute(PORTFOLIO_SNAPSHOT_VIEW_SQL)


def downgrade() -> None:
    op.execute("DROP VIEW IF EXISTS vw_portfolio_snapshot")
    # Facts first, then dimensions (FK dependency order)
    op.drop_table("fact_payment_txn")
    op.drop_table("fact_loan_snapshot")
    op.drop_table("dim_loan")
    op.drop_table("dim_customer")
    op.drop_table("dim_geo")
    op.drop_table("dim_channel")
    op.drop_table("dim_status")
    op.drop_table("dim_date")
