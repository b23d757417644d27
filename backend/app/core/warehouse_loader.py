"""
Warehouse load helpers
======================
Building blocks for an external loader. Load order follows referential integrity:

  1. dim_date, dim_status, dim_channel  (reference / calendar)
  2. dim_geo, dim_customer, dim_loan    (business dimensions)
  3. fact_loan_snapshot, fact_payment_txn

Facts are addressed by natural keys (loan_account_number, customer_id, ...);
the helpers resolve them to surrogate keys and fail with a domain error when a
member is missing. Constraint violations from the database are re-raised as
domain errors chained to the original IntegrityError. Nothing here commits:
transaction boundaries belong to the caller, which must roll back after a
failed flush.
"""
import logging
from datetime import date
from decimal import Decimal
from typing import Optional

from sqlalchemy import and_, insert, select
from sqlalchemy.exc import IntegrityError

from app.config import settings
from app.core.date_dimension import build_date_rows, date_from_key
from app.core.exceptions import (
    CustomerVersionConflictError,
    GrainViolationError,
    PaymentComponentMismatchError,
    SCDPolicyError,
    UnknownDimensionMemberError,
)
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

SCD_POLICIES = ["type1", "type2"]


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Reference / calendar dimensions
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
async def ensure_dates(db, start: date, end: date) -> int:
    """Insert dim_date rows missing in [start, end]. Existing rows are left untouched."""
    rows = build_date_rows(start, end)
    if not rows:
        return 0
    existing = set(
        (
            await db.execute(
                select(DimDate.date_key).where(
                    DimDate.date_key.between(rows[0]["date_key"], rows[-1]["date_key"])
                )
            )
        ).scalars().all()
    )
    missing = [r for r in rows if r["date_key"] not in existing]
    if missing:
        await db.execute(insert(DimDate), missing)
    logger.info(f"dim_date: {len(missing)} inserted, {len(existing)} already present")
    return len(missing)


async def seed_reference_dimensions(db) -> int:
    """dim_status / dim_channel static code sets. Existing codes are skipped."""
    inserted = 0

    existing_status = set((await db.execute(select(DimStatus.status_code))).scalars().all())
    for code, (bucket, description) in STATUS_REFERENCE.items():
        if code.value in existing_status:
            continue
        db.add(DimStatus(status_code=code.value, status_bucket=bucket, description=description))
        inserted += 1

    existing_channel = set((await db.execute(select(DimChannel.channel_code))).scalars().all())
    for code, name in CHANNEL_REFERENCE.items():
        if code.value in existing_channel:
            continue
        db.add(DimChannel(channel_code=code.value, channel_name=name))
        inserted += 1

    await db.flush()
    logger.info(f"reference dimensions: {inserted} code(s) inserted")
    return inserted


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Business dimensions
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
async def get_or_create_geo(db, branch_name: str, city: str, state: str) -> int:
    stmt = select(DimGeo.geo_key).where(
        DimGeo.branch_name == branch_name,
        DimGeo.city == city,
        DimGeo.state == state,
    )
    geo_key = (await db.execute(stmt)).scalar_one_or_none()
    if geo_key is not None:
        return geo_key
    geo = DimGeo(branch_name=branch_name, city=city, state=state)
    db.add(geo)
    await db.flush()
    return geo.geo_key


async def upsert_customer(
    db,
    customer_id: str,
    customer_name: str,
    kyc_status: Optional[str] = None,
    as_of: Optional[date] = None,
    policy: Optional[str] = None,
) -> int:
    """
    Create or update a customer; returns the customer_key facts should reference.

    type1: overwrite the single row in place (prior attribute values are lost).
    type2: when attributes changed, close the current row (effective_to = as_of,
           is_current = False) and insert a new current version. A change dated
           on the current version's effective_from corrects that version in
           place; a change dated before it raises CustomerVersionConflictError.
    """
    policy = policy or settings.CUSTOMER_SCD_POLICY
    if policy not in SCD_POLICIES:
        raise SCDPolicyError(policy, SCD_POLICIES)
    as_of = as_of or date.today()

    stmt = select(DimCustomer).where(
        DimCustomer.customer_id == customer_id,
        DimCustomer.is_current.is_(True),
    )
    current = (await db.execute(stmt)).scalar_one_or_none()

    if current is None:
        customer = DimCustomer(
            customer_id=customer_id,
            customer_name=customer_name,
            kyc_status=kyc_status,
            effective_from=as_of,
            is_current=True,
        )
        db.add(customer)
        await db.flush()
        logger.info(f"dim_customer: onboarded {customer_id} (key={customer.customer_key})")
        return customer.customer_key

    if current.customer_name == customer_name and current.kyc_status == kyc_status:
        return current.customer_key

    if policy == "type1":
        current.customer_name = customer_name
        current.kyc_status = kyc_status
        await db.flush()
        logger.info(f"dim_customer: {customer_id} overwritten in place (type1)")
        return current.customer_key

    if current.effective_from == as_of:
        # Same-day correction: the version opened on as_of absorbs the change
        current.customer_name = customer_name
        current.kyc_status = kyc_status
        await db.flush()
        logger.info(f"dim_customer: {customer_id} key={current.customer_key} corrected as of {as_of}")
        return current.customer_key
    if as_of < current.effective_from:
        raise CustomerVersionConflictError(customer_id, as_of, current.effective_from)

    closed_from = current.effective_from
    current.effective_to = as_of
    current.is_current = False
    version = DimCustomer(
        customer_id=customer_id,
        customer_name=customer_name,
        kyc_status=kyc_status,
        effective_from=as_of,
        is_current=True,
    )
    db.add(version)
    try:
        await db.flush()
    except IntegrityError as e:
        logger.error(f"dim_customer version conflict: {customer_id} @ {as_of}")
        raise CustomerVersionConflictError(customer_id, as_of, closed_from) from e
    logger.info(
        f"dim_customer: {customer_id} new version key={version.customer_key} "
        f"(closed key={current.customer_key})"
    )
    return version.customer_key


async def register_loan(
    db,
    loan_account_number: str,
    product_type: str,
    disbursement_date_key: int,
) -> int:
    """Return the loan_key for an account, inserting it on first sight."""
    stmt = select(DimLoan.loan_key).where(DimLoan.loan_account_number == loan_account_number)
    loan_key = (await db.execute(stmt)).scalar_one_or_none()
    if loan_key is not None:
        return loan_key

    date_from_key(disbursement_date_key)  # raises InvalidDateKeyError for malformed keys
    await _require(
        db, DimDate.date_key, DimDate.date_key == disbursement_date_key,
        "dim_date", "date_key", disbursement_date_key,
    )

    loan = DimLoan(
        loan_account_number=loan_account_number,
        product_type=product_type,
        disbursement_date_key=disbursement_date_key,
    )
    db.add(loan)
    await db.flush()
    return loan.loan_key


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Facts
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
async def _require(db, key_column, criterion, dimension: str, natural_key: str, value):
    """Resolve a natural key to its surrogate key or raise UnknownDimensionMemberError."""
    stmt = select(key_column).where(criterion)
    key = (await db.execute(stmt)).scalar_one_or_none()
    if key is None:
        raise UnknownDimensionMemberError(dimension, natural_key, value)
    return key


async def append_snapshot(
    db,
    date_key: int,
    loan_account_number: str,
    customer_id: str,
    branch_name: str,
    city: str,
    state: str,
    status_code: str,
    principal_os: Decimal,
    interest_os: Decimal = Decimal("0"),
    charges_os: Decimal = Decimal("0"),
    days_past_due: Optional[int] = None,
    emi_due_amount: Decimal = Decimal("0"),
    emi_paid_amount: Decimal = Decimal("0"),
) -> int:
    """Insert one fact_loan_snapshot row; returns snapshot_key."""
    await _require(db, DimDate.date_key, DimDate.date_key == date_key, "dim_date", "date_key", date_key)
    loan_key = await _require(
        db, DimLoan.loan_key, DimLoan.loan_account_number == loan_account_number,
        "dim_loan", "loan_account_number", loan_account_number,
    )
    customer_key = await _require(
        db, DimCustomer.customer_key,
        and_(DimCustomer.customer_id == customer_id, DimCustomer.is_current.is_(True)),
        "dim_customer", "customer_id", customer_id,
    )
    # Branch names repeat across cities; the geo member is the full triple
    geo_key = await _require(
        db, DimGeo.geo_key,
        and_(DimGeo.branch_name == branch_name, DimGeo.city == city, DimGeo.state == state),
        "dim_geo", "branch_name, city, state", (branch_name, city, state),
    )
    status_key = await _require(
        db, DimStatus.status_key, DimStatus.status_code == status_code,
        "dim_status", "status_code", status_code,
    )

    snapshot = FactLoanSnapshot(
        date_key=date_key,
        loan_key=loan_key,
        customer_key=customer_key,
        geo_key=geo_key,
        status_key=status_key,
        principal_os=principal_os,
        interest_os=interest_os,
        charges_os=charges_os,
        days_past_due=days_past_due,
        emi_due_amount=emi_due_amount,
        emi_paid_amount=emi_paid_amount,
    )
    db.add(snapshot)
    try:
        await db.flush()
    except IntegrityError as e:
        logger.error(f"fact_loan_snapshot grain violation: {loan_account_number} @ {date_key}")
        raise GrainViolationError(
            "fact_loan_snapshot",
            {"loan_account_number": loan_account_number, "date_key": date_key},
        ) from e
    return snapshot.snapshot_key


def check_payment_components(
    payment_amount: Decimal,
    principal_component: Decimal,
    interest_component: Decimal,
    charges_component: Decimal,
    tolerance: Optional[float] = None,
    txn_reference: Optional[str] = None,
) -> None:
    tolerance = settings.PAYMENT_COMPONENT_TOLERANCE if tolerance is None else tolerance
    component_total = (
        Decimal(str(principal_component))
        + Decimal(str(interest_component))
        + Decimal(str(charges_component))
    )
    if abs(Decimal(str(payment_amount)) - component_total) > Decimal(str(tolerance)):
        raise PaymentComponentMismatchError(txn_reference, payment_amount, component_total, tolerance)


async def record_payment(
    db,
    date_key: int,
    loan_account_number: str,
    channel_code: str,
    payment_amount: Decimal,
    principal_component: Decimal,
    interest_component: Decimal = Decimal("0"),
    charges_component: Decimal = Decimal("0"),
    is_overdue_payment: bool = False,
    txn_reference: Optional[str] = None,
    validate_components: bool = True,
) -> int:
    """Append one fact_payment_txn row; returns txn_key."""
    if validate_components:
        check_payment_components(
            payment_amount, principal_component, interest_component, charges_component,
            txn_reference=txn_reference,
        )

    await _require(db, DimDate.date_key, DimDate.date_key == date_key, "dim_date", "date_key", date_key)
    loan_key = await _require(
        db, DimLoan.loan_key, DimLoan.loan_account_number == loan_account_number,
        "dim_loan", "loan_account_number", loan_account_number,
    )
    channel_key = await _require(
        db, DimChannel.channel_key, DimChannel.channel_code == channel_code,
        "dim_channel", "channel_code", channel_code,
    )

    txn = FactPaymentTxn(
        txn_reference=txn_reference,
        date_key=date_key,
        loan_key=loan_key,
        channel_key=channel_key,
        payment_amount=payment_amount,
        principal_component=principal_component,
        interest_component=interest_component,
        charges_component=charges_component,
        is_overdue_payment=is_overdue_payment,
    )
    db.add(txn)
    try:
        await db.flush()
    except IntegrityError as e:
        logger.error(f"fact_payment_txn duplicate txn_reference: {txn_reference}")
        raise GrainViolationError("fact_payment_txn", {"txn_reference": txn_reference}) from e
    return txn.txn_key
