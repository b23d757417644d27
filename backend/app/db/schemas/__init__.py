"""
SQLAlchemy ORM schema package
Importing it registers every dimension and fact table (and the semantic view) on Base.metadata.
"""
from app.db.schemas.dim_date import DimDate
from app.db.schemas.dim_customer import DimCustomer
from app.db.schemas.dim_geo import DimGeo
from app.db.schemas.dim_loan import DimLoan
from app.db.schemas.reference import (
    CHANNEL_REFERENCE,
    STATUS_REFERENCE,
    ChannelCode,
    DimChannel,
    DimStatus,
    StatusCode,
)
from app.db.schemas.fact_loan_snapshot import FactLoanSnapshot
from app.db.schemas.fact_payment_txn import FactPaymentTxn
import app.db.views  # noqa: E402,F401 - registers vw_portfolio_snapshot DDL on Base.metadata

__all__ = [
    "DimDate",
    "DimCustomer",
    "DimGeo",
    "DimLoan",
    "DimStatus",
    "DimChannel",
    "StatusCode",
    "ChannelCode",
    "STATUS_REFERENCE",
    "CHANNEL_REFERENCE",
    "FactLoanSnapshot",
    "FactPaymentTxn",
]
