from sqlalchemy import ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.db.base import Base
from app.db.compat import SurrogateKey


class DimLoan(Base):
    """Loan account. disbursement_date_key must already exist in dim_date."""
    __tablename__ = "dim_loan"

    __table_args__ = {"sqlite_autoincrement": True}

    loan_key: Mapped[int] = mapped_column(SurrogateKey, primary_key=True, autoincrement=True)
    loan_account_number: Mapped[str] = mapped_column(String(30), nullable=False, unique=True)
    product_type: Mapped[str] = mapped_column(
        String(50), nullable=False, comment="Home Loan | Personal Loan | Business Loan | ..."
    )
    disbursement_date_key: Mapped[int] = mapped_column(
        Integer, ForeignKey("dim_date.date_key"), nullable=False, comment="Vintage cohort date"
    )

    disbursement_date: Mapped["DimDate"] = relationship("DimDate", lazy="select")  # noqa: F821
