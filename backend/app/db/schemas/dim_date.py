"""
Calendar dimension
One row per calendar date. date_key is the integer YYYYMMDD (e.g. 20251201),
used as both the primary key here and the FK in every fact table.
Rows are immutable once created.
"""
from datetime import date

from sqlalchemy import Boolean, CheckConstraint, Date, Integer, SmallInteger, String, false
from sqlalchemy.orm import Mapped, mapped_column

from app.db.append_only import append_only
from app.db.base import Base


@append_only
class DimDate(Base):
    __tablename__ = "dim_date"

    __table_args__ = (
        CheckConstraint(
            "date_key = year_num * 10000 + month_num * 100 + day_num",
            name="chk_dim_date_key_format",
        ),
        CheckConstraint("month_num BETWEEN 1 AND 12", name="chk_dim_date_month"),
        CheckConstraint("quarter BETWEEN 1 AND 4", name="chk_dim_date_quarter"),
    )

    date_key: Mapped[int] = mapped_column(
        Integer, primary_key=True, autoincrement=False, comment="YYYYMMDD"
    )
    full_date: Mapped[date] = mapped_column(Date, nullable=False, unique=True)

    year_num: Mapped[int] = mapped_column(SmallInteger, nullable=False)
    month_num: Mapped[int] = mapped_column(SmallInteger, nullable=False)
    day_num: Mapped[int] = mapped_column(SmallInteger, nullable=False)
    quarter: Mapped[int] = mapped_column(SmallInteger, nullable=False, comment="1-4")
    month_name: Mapped[str] = mapped_column(String(9), nullable=False)
    is_month_end: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
        server_default=false(),
        comment="Month-end reporting date flag",
    )
