"""
[Unit] Portfolio analytics
==========================
Sample portfolio on 20251201:
  LN0001 STD DPD 0   295,000 / LN0002 SMA DPD 45 480,000 / LN0003 NPA DPD 120 730,000

pytest tests/unit/test_portfolio_analytics.py -v
"""
import os
import sys
from decimal import Decimal

import pytest
from sqlalchemy.dialects import postgresql

BASE_DIR = os.path.abspath(os.path.join(os.path.dirname(__file__), "../.."))
BACKEND_DIR = os.path.join(BASE_DIR, "backend")
sys.path.insert(0, BACKEND_DIR)

from app.core.portfolio_analytics import (  # noqa: E402
    PortfolioAnalytics,
    collection_efficiency_query,
    dpd_bucket_query,
    npa_percentage_query,
    portfolio_outstanding_by_product_query,
    vintage_npa_query,
)
from app.core.seed_sample_data import SAMPLE_SNAPSHOT_DATE_KEY  # noqa: E402

DK = SAMPLE_SNAPSHOT_DATE_KEY
EMPTY_DK = 20251130


# ══════════════════════════════════════════════════════════════════════════════
# 1. Query builders (sync session, Core-seeded data)
# ══════════════════════════════════════════════════════════════════════════════
class TestQueryBuilders:
    """Select builders run as plain SQL on a sync session."""

    def test_outstanding_by_product(self, seeded_session):
        rows = seeded_session.execute(portfolio_outstanding_by_product_query(DK)).all()
        result = {r.product_type: float(r.principal_os) for r in rows}
        assert result == {
            "Business Loan": 730000.0,
            "Home Loan": 295000.0,
            "Personal Loan": 480000.0,
        }

    def test_npa_pct(self, seeded_session):
        row = seeded_session.execute(npa_percentage_query(DK)).one()
        assert float(row.npa_principal_os) == 730000.0
        assert float(row.total_principal_os) == 1505000.0
        assert float(row.npa_pct) == pytest.approx(48.50, abs=0.01)

    def test_collection_efficiency(self, seeded_session):
        row = seeded_session.execute(collection_efficiency_query(DK)).one()
        assert float(row.ce_pct) == pytest.approx(17500 / 46000 * 100, abs=0.01)

    def test_dpd_bucket_rows_exclude_empty_buckets(self, seeded_session):
        rows = seeded_session.execute(dpd_bucket_query(DK)).all()
        assert [r.dpd_bucket for r in rows] == ["Current", "31-60", "90+"]

    def test_empty_date_npa_is_null(self, seeded_session):
        row = seeded_session.execute(npa_percentage_query(EMPTY_DK)).one()
        assert row.npa_pct is None

    def test_empty_date_ce_is_null(self, seeded_session):
        row = seeded_session.execute(collection_efficiency_query(EMPTY_DK)).one()
        assert row.ce_pct is None

    def test_percentages_use_nullif(self):
        sql = str(npa_percentage_query(DK).compile(dialect=postgresql.dialect()))
        assert "nullif" in sql.lower()
        assert "100.0" in sql

    def test_vintage_rounds_to_two_places(self):
        sql = str(vintage_npa_query(DK).compile(dialect=postgresql.dialect()))
        assert "round(" in sql.lower()


# ══════════════════════════════════════════════════════════════════════════════
# 2. Async executor (loader-seeded data)
# ══════════════════════════════════════════════════════════════════════════════
class TestPortfolioAnalytics:
    """PortfolioAnalytics on an AsyncSession."""

    async def test_portfolio_total(self, seeded_async_session):
        loan_count, total = await PortfolioAnalytics(seeded_async_session).portfolio_total(DK)
        assert loan_count == 3
        assert float(total) == 1505000.0

    async def test_outstanding_by_product(self, seeded_async_session):
        rows = await PortfolioAnalytics(seeded_async_session).portfolio_outstanding_by_product(DK)
        assert [r.product_type for r in rows] == ["Business Loan", "Home Loan", "Personal Loan"]
        assert all(r.loan_count == 1 for r in rows)
        assert sum(float(r.principal_os) for r in rows) == 1505000.0

    async def test_npa_percentage(self, seeded_async_session):
        npa = await PortfolioAnalytics(seeded_async_session).npa_percentage(DK)
        assert npa.pct == pytest.approx(48.50, abs=0.01)
        assert npa.to_dict()["pct"] == pytest.approx(48.5, abs=0.01)

    async def test_dpd_buckets_all_five(self, seeded_async_session):
        buckets = await PortfolioAnalytics(seeded_async_session).dpd_bucket_analysis(DK)
        summary = {b.bucket: (b.loan_count, float(b.principal_os)) for b in buckets}
        assert list(summary) == ["Current", "1-30", "31-60", "61-90", "90+"]
        assert summary == {
            "Current": (1, 295000.0),
            "1-30": (0, 0.0),
            "31-60": (1, 480000.0),
            "61-90": (0, 0.0),
            "90+": (1, 730000.0),
        }

    async def test_collection_efficiency(self, seeded_async_session):
        ce = await PortfolioAnalytics(seeded_async_session).collection_efficiency(DK)
        assert float(ce.numerator) == 17500.0
        assert float(ce.denominator) == 46000.0
        assert ce.pct == pytest.approx(38.04, abs=0.01)

    async def test_vintage_npa(self, seeded_async_session):
        cohorts = await PortfolioAnalytics(seeded_async_session).vintage_npa(DK)
        result = {c.cohort: c.npa_pct for c in cohorts}
        assert result == {"2023-09": 100.0, "2024-01": 0.0, "2024-06": 0.0}

    async def test_collections_by_channel(self, seeded_async_session):
        channels = await PortfolioAnalytics(seeded_async_session).collections_by_channel(
            20251001, 20251130
        )
        result = {c.channel_code: c.to_dict() for c in channels}
        assert list(result) == ["Cash", "NACH", "UPI"]
        assert result["UPI"]["payment_amount"] == 10500.0
        assert result["UPI"]["overdue_amount"] == 0.0
        assert result["NACH"]["overdue_amount"] == 7000.0
        assert result["Cash"]["charges_component"] == 300.0

    async def test_collections_window_filters(self, seeded_async_session):
        channels = await PortfolioAnalytics(seeded_async_session).collections_by_channel(
            20251101, 20251130
        )
        assert {c.channel_code for c in channels} == {"NACH", "UPI"}

    async def test_empty_date_is_null_not_error(self, seeded_async_session):
        analytics = PortfolioAnalytics(seeded_async_session)
        assert (await analytics.npa_percentage(EMPTY_DK)).pct is None
        assert (await analytics.collection_efficiency(EMPTY_DK)).pct is None
        assert await analytics.portfolio_outstanding_by_product(EMPTY_DK) == []

    async def test_zero_principal_npa_is_null(self, seeded_async_session):
        from app.core import warehouse_loader as loader

        await loader.append_snapshot(
            seeded_async_session, date_key=20251231, loan_account_number="LN0001",
            customer_id="C001", branch_name="Andheri West", city="Mumbai", state="Maharashtra",
            status_code="Closed",
            principal_os=Decimal("0"), days_past_due=0,
        )
        npa = await PortfolioAnalytics(seeded_async_session).npa_percentage(20251231)
        assert float(npa.denominator) == 0.0
        assert npa.pct is None

    async def test_full_report(self, seeded_async_session):
        report = await PortfolioAnalytics(seeded_async_session).full_report(DK)
        d = report.to_dict()
        assert d["loan_count"] == 3
        assert d["total_principal_os"] == 1505000.0
        assert d["npa"]["pct"] == pytest.approx(48.50, abs=0.01)
        assert d["collection_efficiency"]["pct"] == pytest.approx(38.04, abs=0.01)
        assert len(d["dpd_buckets"]) == 5
        assert len(d["vintage"]) == 3

    async def test_full_report_empty_date(self, seeded_async_session):
        report = await PortfolioAnalytics(seeded_async_session).full_report(EMPTY_DK)
        assert report.loan_count == 0
        assert report.npa.pct is None
        assert all(b.loan_count == 0 for b in report.dpd_buckets)
