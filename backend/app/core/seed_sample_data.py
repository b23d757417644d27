"""
Sample portfolio seed
=====================
Three loans on reporting date 20251201, one per asset class:

  LN0001  STD  DPD 0    principal_os 295,000  EMI due 10,500  paid 10,500
  LN0002  SMA  DPD 45   principal_os 480,000  EMI due 13,500  paid  7,000
  LN0003  NPA  DPD 120  principal_os 730,000  EMI due 22,000  paid      0

Expected: outstanding 1,505,000 / NPA% 48.50 / CE% 38.04.

Two ways in:
  seed_sample_data(db)       : async, through the warehouse loader helpers (idempotent)
  sample_data_statements()   : Core INSERT statements resolving surrogate keys by
                               natural key subqueries; used for the combined SQL script

Run: python -m app.cli seed
"""
from datetime import date
from decimal import Decimal
import logging

from sqlalchemy import and_, insert, select

from app.config import settings
from app.core.date_dimension import build_date_rows
from app.core import warehouse_loader as loader
from app.db.schemas import (
    CHANNEL_REFERENCE,
    STATUS_REFERENCE,
    DimChannel,
    DimCustomer,
    DimDate,
    DimGeo,
    DimLoan,
    DimStatus,
    FactLoanSnapshot,
    FactPaymentTxn,
)

logger = logging.getLogger(__name__)

SAMPLE_SNAPSHOT_DATE_KEY = 20251201

# ── Customers onboard on the calendar start date ─────────────────
CUSTOMER_ONBOARDING_DATE = date(2023, 1, 1)

SAMPLE_GEOS = [
    # (branch_name, city, state)
    ("Andheri West", "Mumbai", "Maharashtra"),
    ("Koramangala", "Bengaluru", "Karnataka"),
    ("Connaught Place", "New Delhi", "Delhi"),
]

SAMPLE_CUSTOMERS = [
    # (customer_id, customer_name, kyc_status)
    ("C001", "Aarav Sharma", "verified"),
    ("C002", "Priya Nair", "verified"),
    ("C003", "Rohan Mehta", "pending"),
]

SAMPLE_LOANS = [
    # (loan_account_number, product_type, disbursement_date_key)
    ("LN0001", "Home Loan", 20240115),
    ("LN0002", "Personal Loan", 20240620),
    ("LN0003", "Business Loan", 20230910),
]

SAMPLE_SNAPSHOTS = [
    {
        "loan_account_number": "LN0001", "customer_id": "C001", "branch_name": "Andheri West",
        "city": "Mumbai", "state": "Maharashtra",
        "status_code": "STD", "principal_os": Decimal("295000.00"), "interest_os": Decimal("2100.00"),
        "charges_os": Decimal("0.00"), "days_past_due": 0,
        "emi_due_amount": Decimal("10500.00"), "emi_paid_amount": Decimal("10500.00"),
    },
    {
        "loan_account_number": "LN0002", "customer_id": "C002", "branch_name": "Koramangala",
        "city": "Bengaluru", "state": "Karnataka",
        "status_code": "SMA", "principal_os": Decimal("480000.00"), "interest_os": Decimal("5400.00"),
        "charges_os": Decimal("750.00"), "days_past_due": 45,
        "emi_due_amount": Decimal("13500.00"), "emi_paid_amount": Decimal("7000.00"),
    },
    {
        "loan_account_number": "LN0003", "customer_id": "C003", "branch_name": "Connaught Place",
        "city": "New Delhi", "state": "Delhi",
        "status_code": "NPA", "principal_os": Decimal("730000.00"), "interest_os": Decimal("18250.00"),
        "charges_os": Decimal("2400.00"), "days_past_due": 120,
        "emi_due_amount": Decimal("22000.00"), "emi_paid_amount": Decimal("0.00"),
    },
]

SAMPLE_PAYMENTS = [
    {
        "txn_reference": "TXN-20251105-0001", "date_key": 20251105, "loan_account_number": "LN0001",
        "channel_code": "UPI", "payment_amount": Decimal("10500.00"),
        "principal_component": Decimal("8400.00"), "interest_component": Decimal("2100.00"),
        "charges_component": Decimal("0.00"), "is_overdue_payment": False,
    },
    {
        "txn_reference": "TXN-20251110-0002", "date_key": 20251110, "loan_account_number": "LN0002",
        "channel_code": "NACH", "payment_amount": Decimal("7000.00"),
        "principal_component": Decimal("4800.00"), "interest_component": Decimal("2000.00"),
        "charges_component": Decimal("200.00"), "is_overdue_payment": True,
    },
    {
        "txn_reference": "TXN-20251003-0003", "date_key": 20251003, "loan_account_number": "LN0003",
        "channel_code": "Cash", "payment_amount": Decimal("5000.00"),
        "principal_component": Decimal("2500.00"), "interest_component": Decimal("2200.00"),
        "charges_component": Decimal("300.00"), "is_overdue_payment": True,
    },
]


def sample_calendar() -> tuple[date, date]:
    return (
        date.fromisoformat(settings.SAMPLE_CALENDAR_START),
        date.fromisoformat(settings.SAMPLE_CALENDAR_END),
    )


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Async seed via loader helpers
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
async def seed_sample_data(db) -> int:
    """
    Load reference data, the sample calendar and the sample portfolio.
    Members that already exist are skipped; the portfolio facts are loaded only
    when no snapshot exists yet for SAMPLE_SNAPSHOT_DATE_KEY.

    Returns:
        number of fact rows inserted
    """
    start, end = sample_calendar()
    await loader.ensure_dates(db, start, end)
    await loader.seed_reference_dimensions(db)

    for branch_name, city, state in SAMPLE_GEOS:
        await loader.get_or_create_geo(db, branch_name, city, state)
    for customer_id, name, kyc_status in SAMPLE_CUSTOMERS:
        await loader.upsert_customer(db, customer_id, name, kyc_status, as_of=CUSTOMER_ONBOARDING_DATE)
    for account, product_type, disbursement_date_key in SAMPLE_LOANS:
        await loader.register_loan(db, account, product_type, disbursement_date_key)

    stmt = select(FactLoanSnapshot.snapshot_key).where(
        FactLoanSnapshot.date_key == SAMPLE_SNAPSHOT_DATE_KEY
    ).limit(1)
    if (await db.execute(stmt)).scalar_one_or_none() is not None:
        await db.commit()
        logger.warning(f"Sample snapshot {SAMPLE_SNAPSHOT_DATE_KEY} already loaded, facts skipped")
        return 0

    inserted = 0
    for snap in SAMPLE_SNAPSHOTS:
        await loader.append_snapshot(db, date_key=SAMPLE_SNAPSHOT_DATE_KEY, **snap)
        inserted += 1
    for payment in SAMPLE_PAYMENTS:
        await loader.record_payment(db, **payment)
        inserted += 1

    await db.commit()
    logger.info(f"Sample data seeded: {inserted} fact rows")
    return inserted


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Core INSERT statements (combined SQL script / sync sessions)
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
def _key_of(key_column, *criteria):
    return select(key_column).where(and_(*criteria)).scalar_subquery()


def sample_data_statements() -> list:
    """
    INSERT statements for the full sample data set, in load order
    (calendar and reference dimensions, business dimensions, facts).
    Fact rows resolve surrogate keys with scalar subqueries on natural keys,
    so the statements do not depend on the values the engine assigns.
    """
    start, end = sample_calendar()
    statements = [
        insert(DimDate).values(build_date_rows(start, end)),
        insert(DimStatus).values([
            {"status_code": code.value, "status_bucket": bucket, "description": description}
            for code, (bucket, description) in STATUS_REFERENCE.items()
        ]),
        insert(DimChannel).values([
            {"channel_code": code.value, "channel_name": name}
            for code, name in CHANNEL_REFERENCE.items()
        ]),
        insert(DimGeo).values([
            {"branch_name": b, "city": c, "state": s} for b, c, s in SAMPLE_GEOS
        ]),
        insert(DimCustomer).values([
            {
                "customer_id": cid, "customer_name": name, "kyc_status": kyc,
                "effective_from": CUSTOMER_ONBOARDING_DATE, "is_current": True,
            }
            for cid, name, kyc in SAMPLE_CUSTOMERS
        ]),
        insert(DimLoan).values([
            {"loan_account_number": acct, "product_type": product, "disbursement_date_key": dk}
            for acct, product, dk in SAMPLE_LOANS
        ]),
    ]

    for snap in SAMPLE_SNAPSHOTS:
        statements.append(insert(FactLoanSnapshot).values(
            date_key=SAMPLE_SNAPSHOT_DATE_KEY,
            loan_key=_key_of(DimLoan.loan_key, DimLoan.loan_account_number == snap["loan_account_number"]),
            customer_key=_key_of(
                DimCustomer.customer_key,
                DimCustomer.customer_id == snap["customer_id"],
                DimCustomer.is_current.is_(True),
            ),
            geo_key=_key_of(
                DimGeo.geo_key,
                DimGeo.branch_name == snap["branch_name"],
                DimGeo.city == snap["city"],
                DimGeo.state == snap["state"],
            ),
            status_key=_key_of(DimStatus.status_key, DimStatus.status_code == snap["status_code"]),
            principal_os=snap["principal_os"],
            interest_os=snap["interest_os"],
            charges_os=snap["charges_os"],
            days_past_due=snap["days_past_due"],
            emi_due_amount=snap["emi_due_amount"],
            emi_paid_amount=snap["emi_paid_amount"],
        ))

    for pay in SAMPLE_PAYMENTS:
        statements.append(insert(FactPaymentTxn).values(
            txn_reference=pay["txn_reference"],
            date_key=pay["date_key"],
            loan_key=_key_of(DimLoan.loan_key, DimLoan.loan_account_number == pay["loan_account_number"]),
            channel_key=_key_of(DimChannel.channel_key, DimChannel.channel_code == pay["channel_code"]),
            payment_amount=pay["payment_amount"],
            principal_component=pay["principal_component"],
            interest_component=pay["interest_component"],
            charges_component=pay["charges_component"],
            is_overdue_payment=pay["is_overdue_payment"],
        ))

    return statements
