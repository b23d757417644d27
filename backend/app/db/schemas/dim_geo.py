from sqlalchemy import String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from app.db.base import Base
from app.db.compat import SurrogateKey


class DimGeo(Base):
    """Branch / city / state. One row per distinct combination."""
    __tablename__ = "dim_geo"

    __table_args__ = (
        UniqueConstraint("branch_name", "city", "state", name="uq_dim_geo_branch_city_state"),
        {"sqlite_autoincrement": True},
    )

    geo_key: Mapped[int] = mapped_column(SurrogateKey, primary_key=True, autoincrement=True)
    branch_name: Mapped[str] = mapped_column(String(100), nullable=False)
    city: Mapped[str] = mapped_column(String(100), nullable=False)
    state: Mapped[str] = mapped_column(String(100), nullable=False)
