"""
[Unit] Warehouse load helpers
=============================
Natural-key resolution, SCD policies and load-time validation, on aiosqlite.

pytest tests/unit/test_warehouse_loader.py -v
"""
import os
import sys
from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy import func, select

BASE_DIR = os.path.abspath(os.path.join(os.path.dirname(__file__), "../.."))
BACKEND_DIR = os.path.join(BASE_DIR, "backend")
sys.path.insert(0, BACKEND_DIR)

from app.core import warehouse_loader as loader  # noqa: E402
from app.core.exceptions import (  # noqa: E402
    CustomerVersionConflictError,
    GrainViolationError,
    InvalidDateKeyError,
    LoadError,
    PaymentComponentMismatchError,
    SCDPolicyError,
    UnknownDimensionMemberError,
)
from app.core.seed_sample_data import seed_sample_data  # noqa: E402
from app.db.schemas import DimCustomer, DimDate, DimStatus, FactLoanSnapshot  # noqa: E402


@pytest.fixture
async def loaded(async_session):
    """Calendar for Dec 2025 + reference codes + one branch/customer/loan."""
    db = async_session
    await loader.ensure_dates(db, date(2025, 12, 1), date(2025, 12, 31))
    await loader.ensure_dates(db, date(2024, 1, 15), date(2024, 1, 15))
    await loader.seed_reference_dimensions(db)
    await loader.get_or_create_geo(db, "Andheri West", "Mumbai", "Maharashtra")
    await loader.upsert_customer(db, "C001", "Aarav Sharma", "verified", as_of=date(2024, 1, 1))
    await loader.register_loan(db, "LN0001", "Home Loan", 20240115)
    return db


async def _count(db, entity) -> int:
    return (await db.execute(select(func.count()).select_from(entity))).scalar_one()


# ══════════════════════════════════════════════════════════════════════════════
# 1. Reference / calendar dimensions
# ══════════════════════════════════════════════════════════════════════════════
class TestReferenceDimensions:

    async def test_ensure_dates_is_idempotent(self, async_session):
        assert await loader.ensure_dates(async_session, date(2025, 12, 1), date(2025, 12, 31)) == 31
        assert await loader.ensure_dates(async_session, date(2025, 12, 15), date(2026, 1, 5)) == 5
        assert await _count(async_session, DimDate) == 36

    async def test_reference_codes_seeded_once(self, async_session):
        assert await loader.seed_reference_dimensions(async_session) == 10
        assert await loader.seed_reference_dimensions(async_session) == 0
        assert await _count(async_session, DimStatus) == 5

    async def test_geo_get_or_create(self, loaded):
        first = await loader.get_or_create_geo(loaded, "Andheri West", "Mumbai", "Maharashtra")
        second = await loader.get_or_create_geo(loaded, "Koramangala", "Bengaluru", "Karnataka")
        assert first != second
        assert await loader.get_or_create_geo(loaded, "Koramangala", "Bengaluru", "Karnataka") == second


# ══════════════════════════════════════════════════════════════════════════════
# 2. Customer SCD policies
# ══════════════════════════════════════════════════════════════════════════════
class TestCustomerScd:

    async def test_unchanged_returns_same_key(self, loaded):
        key = await loader.upsert_customer(loaded, "C001", "Aarav Sharma", "verified")
        again = await loader.upsert_customer(loaded, "C001", "Aarav Sharma", "verified", policy="type2")
        assert key == again
        assert await _count(loaded, DimCustomer) == 1

    async def test_type1_overwrites_in_place(self, loaded):
        key = await loader.upsert_customer(loaded, "C001", "Aarav Sharma", "verified")
        updated = await loader.upsert_customer(
            loaded, "C001", "Aarav S. Sharma", "expired", policy="type1"
        )
        assert updated == key
        row = await loaded.get(DimCustomer, key)
        assert (row.customer_name, row.kyc_status, row.is_current) == ("Aarav S. Sharma", "expired", True)
        assert await _count(loaded, DimCustomer) == 1

    async def test_type2_closes_and_versions(self, loaded):
        old_key = await loader.upsert_customer(loaded, "C001", "Aarav Sharma", "verified")
        new_key = await loader.upsert_customer(
            loaded, "C001", "Aarav Sharma", "expired", as_of=date(2025, 6, 1), policy="type2"
        )
        assert new_key != old_key

        old = await loaded.get(DimCustomer, old_key)
        new = await loaded.get(DimCustomer, new_key)
        assert old.is_current is False
        assert old.effective_to == date(2025, 6, 1)
        assert new.is_current is True
        assert new.effective_from == date(2025, 6, 1)
        assert new.effective_to is None

    async def test_type2_same_day_change_corrects_version(self, loaded):
        first = await loader.upsert_customer(
            loaded, "C001", "Aarav Sharma", "expired", as_of=date(2025, 6, 1), policy="type2"
        )
        second = await loader.upsert_customer(
            loaded, "C001", "Aarav Sharma", "pending", as_of=date(2025, 6, 1), policy="type2"
        )
        assert second == first
        row = await loaded.get(DimCustomer, second)
        assert (row.kyc_status, row.is_current, row.effective_from) == ("pending", True, date(2025, 6, 1))
        assert await _count(loaded, DimCustomer) == 2

    async def test_type2_onboard_and_change_same_day(self, async_session):
        key = await loader.upsert_customer(async_session, "C100", "Meera Iyer", "pending", policy="type2")
        again = await loader.upsert_customer(async_session, "C100", "Meera Iyer", "verified", policy="type2")
        assert again == key
        assert await _count(async_session, DimCustomer) == 1

    async def test_type2_backdated_change_rejected(self, loaded):
        await loader.upsert_customer(
            loaded, "C001", "Aarav Sharma", "expired", as_of=date(2025, 6, 1), policy="type2"
        )
        with pytest.raises(CustomerVersionConflictError) as exc:
            await loader.upsert_customer(
                loaded, "C001", "Aarav Sharma", "verified", as_of=date(2025, 3, 1), policy="type2"
            )
        assert exc.value.current_effective_from == date(2025, 6, 1)
        assert isinstance(exc.value, LoadError)

    async def test_facts_reference_current_version(self, loaded):
        await loader.upsert_customer(
            loaded, "C001", "Aarav Sharma", "expired", as_of=date(2025, 6, 1), policy="type2"
        )
        snapshot_key = await loader.append_snapshot(
            loaded, date_key=20251201, loan_account_number="LN0001", customer_id="C001",
            branch_name="Andheri West", city="Mumbai", state="Maharashtra",
            status_code="STD", principal_os=Decimal("295000"),
        )
        snap = await loaded.get(FactLoanSnapshot, snapshot_key)
        customer = await loaded.get(DimCustomer, snap.customer_key)
        assert customer.kyc_status == "expired"

    async def test_unknown_policy(self, loaded):
        with pytest.raises(SCDPolicyError) as exc:
            await loader.upsert_customer(loaded, "C001", "X", policy="type3")
        assert exc.value.available_policies == ["type1", "type2"]


# ══════════════════════════════════════════════════════════════════════════════
# 3. Fact loading
# ══════════════════════════════════════════════════════════════════════════════
class TestFactLoading:

    async def test_append_snapshot(self, loaded):
        key = await loader.append_snapshot(
            loaded, date_key=20251201, loan_account_number="LN0001", customer_id="C001",
            branch_name="Andheri West", city="Mumbai", state="Maharashtra",
            status_code="STD", principal_os=Decimal("295000"),
            days_past_due=0,
        )
        assert key is not None
        assert await _count(loaded, FactLoanSnapshot) == 1

    @pytest.mark.parametrize("field,value,dimension", [
        ("loan_account_number", "LN9999", "dim_loan"),
        ("customer_id", "C999", "dim_customer"),
        ("status_code", "XYZ", "dim_status"),
        ("date_key", 20300101, "dim_date"),
    ])
    async def test_unknown_member(self, loaded, field, value, dimension):
        kwargs = dict(
            date_key=20251201, loan_account_number="LN0001", customer_id="C001",
            branch_name="Andheri West", city="Mumbai", state="Maharashtra",
            status_code="STD", principal_os=Decimal("1"),
        )
        kwargs[field] = value
        with pytest.raises(UnknownDimensionMemberError) as exc:
            await loader.append_snapshot(loaded, **kwargs)
        assert exc.value.dimension == dimension
        assert exc.value.value == value
        assert isinstance(exc.value, LoadError)

    async def test_unknown_geo_member(self, loaded):
        with pytest.raises(UnknownDimensionMemberError) as exc:
            await loader.append_snapshot(
                loaded, date_key=20251201, loan_account_number="LN0001", customer_id="C001",
                branch_name="Andheri West", city="Pune", state="Maharashtra",
                status_code="STD", principal_os=Decimal("1"),
            )
        assert exc.value.dimension == "dim_geo"
        assert exc.value.value == ("Andheri West", "Pune", "Maharashtra")

    async def test_same_branch_name_in_two_cities(self, loaded):
        mumbai = await loader.get_or_create_geo(loaded, "Main Branch", "Mumbai", "Maharashtra")
        pune = await loader.get_or_create_geo(loaded, "Main Branch", "Pune", "Maharashtra")
        assert mumbai != pune

        key = await loader.append_snapshot(
            loaded, date_key=20251201, loan_account_number="LN0001", customer_id="C001",
            branch_name="Main Branch", city="Pune", state="Maharashtra",
            status_code="STD", principal_os=Decimal("295000"),
        )
        snap = await loaded.get(FactLoanSnapshot, key)
        assert snap.geo_key == pune

    async def test_duplicate_grain(self, loaded):
        kwargs = dict(
            date_key=20251201, loan_account_number="LN0001", customer_id="C001",
            branch_name="Andheri West", city="Mumbai", state="Maharashtra",
            status_code="STD", principal_os=Decimal("295000"),
        )
        await loader.append_snapshot(loaded, **kwargs)
        with pytest.raises(GrainViolationError) as exc:
            await loader.append_snapshot(loaded, **kwargs)
        assert exc.value.table == "fact_loan_snapshot"
        assert exc.value.grain == {"loan_account_number": "LN0001", "date_key": 20251201}
        assert exc.value.__cause__ is not None

    async def test_register_loan_unknown_disbursement_date(self, loaded):
        with pytest.raises(UnknownDimensionMemberError):
            await loader.register_loan(loaded, "LN0002", "Personal Loan", 20240620)

    async def test_register_loan_malformed_date(self, loaded):
        with pytest.raises(InvalidDateKeyError):
            await loader.register_loan(loaded, "LN0002", "Personal Loan", 20241340)

    async def test_register_loan_existing_returns_key(self, loaded):
        first = await loader.register_loan(loaded, "LN0001", "Home Loan", 20240115)
        assert await loader.register_loan(loaded, "LN0001", "Home Loan", 20240115) == first


class TestPayments:

    async def test_record_payment(self, loaded):
        key = await loader.record_payment(
            loaded, date_key=20251205, loan_account_number="LN0001", channel_code="UPI",
            payment_amount=Decimal("10500"), principal_component=Decimal("8400"),
            interest_component=Decimal("2100"), txn_reference="TXN-1",
        )
        assert key is not None

    async def test_component_mismatch(self, loaded):
        with pytest.raises(PaymentComponentMismatchError) as exc:
            await loader.record_payment(
                loaded, date_key=20251205, loan_account_number="LN0001", channel_code="UPI",
                payment_amount=Decimal("10500"), principal_component=Decimal("8000"),
                interest_component=Decimal("2100"), txn_reference="TXN-2",
            )
        assert exc.value.component_total == Decimal("10100")

    async def test_mismatch_allowed_when_validation_off(self, loaded):
        key = await loader.record_payment(
            loaded, date_key=20251205, loan_account_number="LN0001", channel_code="UPI",
            payment_amount=Decimal("10500"), principal_component=Decimal("8000"),
            validate_components=False,
        )
        assert key is not None

    async def test_unknown_channel(self, loaded):
        with pytest.raises(UnknownDimensionMemberError) as exc:
            await loader.record_payment(
                loaded, date_key=20251205, loan_account_number="LN0001", channel_code="Crypto",
                payment_amount=Decimal("100"), principal_component=Decimal("100"),
            )
        assert exc.value.dimension == "dim_channel"

    async def test_duplicate_txn_reference(self, loaded):
        kwargs = dict(
            date_key=20251205, loan_account_number="LN0001", channel_code="NACH",
            payment_amount=Decimal("100"), principal_component=Decimal("100"), txn_reference="TXN-9",
        )
        await loader.record_payment(loaded, **kwargs)
        with pytest.raises(GrainViolationError):
            await loader.record_payment(loaded, **kwargs)

    def test_component_tolerance(self):
        loader.check_payment_components(
            Decimal("100.00"), Decimal("60.00"), Decimal("39.995"), Decimal("0"), tolerance=0.01
        )
        with pytest.raises(PaymentComponentMismatchError):
            loader.check_payment_components(
                Decimal("100.00"), Decimal("60.00"), Decimal("39.98"), Decimal("0"), tolerance=0.01
            )


# ══════════════════════════════════════════════════════════════════════════════
# 4. Sample seed
# ══════════════════════════════════════════════════════════════════════════════
class TestSampleSeed:

    async def test_seed_inserts_six_facts(self, async_session):
        assert await seed_sample_data(async_session) == 6

    async def test_seed_is_idempotent(self, async_session):
        await seed_sample_data(async_session)
        assert await seed_sample_data(async_session) == 0
        assert await _count(async_session, FactLoanSnapshot) == 3
