"""
Static reference dimensions (dim_status, dim_channel)
Fixed code sets mirrored by in-memory enums; seeded once, never edited by loaders.

Asset classification (regulatory):
  STD    : standard, performing
  SMA    : special mention, early-warning overdue (before NPA)
  NPA    : non-performing asset
  WO     : written off
  Closed : fully repaid / closed
"""
import enum

from sqlalchemy import String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from app.db.base import Base
from app.db.compat import SurrogateKey


class StatusCode(str, enum.Enum):
    STD = "STD"
    SMA = "SMA"
    NPA = "NPA"
    WO = "WO"
    CLOSED = "Closed"


class ChannelCode(str, enum.Enum):
    UPI = "UPI"
    NACH = "NACH"
    CASH = "Cash"
    NEFT = "NEFT"
    CHEQUE = "Cheque"


# status_code -> (status_bucket, description)
STATUS_REFERENCE: dict[StatusCode, tuple[str, str]] = {
    StatusCode.STD: ("Performing", "Standard asset, no overdue beyond tolerance"),
    StatusCode.SMA: ("Early Warning", "Special mention account, overdue below NPA threshold"),
    StatusCode.NPA: ("Non-Performing", "Non-performing asset, overdue beyond regulatory threshold"),
    StatusCode.WO: ("Written Off", "Balance written off the books"),
    StatusCode.CLOSED: ("Closed", "Loan closed, no outstanding"),
}

CHANNEL_REFERENCE: dict[ChannelCode, str] = {
    ChannelCode.UPI: "Unified Payments Interface",
    ChannelCode.NACH: "National Automated Clearing House mandate",
    ChannelCode.CASH: "Cash at branch / field collection",
    ChannelCode.NEFT: "National Electronic Funds Transfer",
    ChannelCode.CHEQUE: "Cheque",
}


class DimStatus(Base):
    __tablename__ = "dim_status"

    __table_args__ = (
        UniqueConstraint("status_code", name="uq_dim_status_code"),
        {"sqlite_autoincrement": True},
    )

    status_key: Mapped[int] = mapped_column(SurrogateKey, primary_key=True, autoincrement=True)
    status_code: Mapped[str] = mapped_column(
        String(10), nullable=False, comment="STD | SMA | NPA | WO | Closed"
    )
    status_bucket: Mapped[str] = mapped_column(String(30), nullable=False)
    description: Mapped[str | None] = mapped_column(String(200))


class DimChannel(Base):
    __tablename__ = "dim_channel"

    __table_args__ = (
        UniqueConstraint("channel_code", name="uq_dim_channel_code"),
        {"sqlite_autoincrement": True},
    )

    channel_key: Mapped[int] = mapped_column(SurrogateKey, primary_key=True, autoincrement=True)
    channel_code: Mapped[str] = mapped_column(
        String(20), nullable=False, comment="UPI | NACH | Cash | NEFT | Cheque"
    )
    channel_name: Mapped[str | None] = mapped_column(String(100))
