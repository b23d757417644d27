"""
Semantic layer views
====================
vw_portfolio_snapshot: fact_loan_snapshot denormalised with its five dimensions
(date, loan, customer, geo, status) for BI tools. Its column list and
inner-join semantics are the contract external dashboards depend on:
a snapshot row without a match in every dimension does not appear in the view.
app.core.data_quality surfaces such rows with outer joins instead.

CREATE VIEW / DROP VIEW are attached to Base.metadata, so
Base.metadata.create_all() / drop_all() manage the view with the tables.
"""
from sqlalchemy import event, select
from sqlalchemy.ext.compiler import compiles
from sqlalchemy.schema import ExecutableDDLElement
from sqlalchemy.sql import column, table

from app.db.base import Base
from app.db.schemas.dim_customer import DimCustomer
from app.db.schemas.dim_date import DimDate
from app.db.schemas.dim_geo import DimGeo
from app.db.schemas.dim_loan import DimLoan
from app.db.schemas.fact_loan_snapshot import FactLoanSnapshot
from app.db.schemas.reference import DimStatus


class CreateView(ExecutableDDLElement):
    def __init__(self, name: str, selectable):
        self.name = name
        self.selectable = selectable


class DropView(ExecutableDDLElement):
    def __init__(self, name: str):
        self.name = name


@compiles(CreateView)
def _compile_create_view(element, compiler, **kw):
    body = compiler.sql_compiler.process(element.selectable, literal_binds=True)
    # create_all() may run against an existing database; keep the DDL re-runnable
    if compiler.dialect.name == "sqlite":
        return f"CREATE VIEW IF NOT EXISTS {element.name} AS {body}"
    return f"CREATE OR REPLACE VIEW {element.name} AS {body}"


@compiles(DropView)
def _compile_drop_view(element, compiler, **kw):
    return f"DROP VIEW IF EXISTS {element.name}"


def portfolio_snapshot_select():
    """SELECT behind vw_portfolio_snapshot (inner joins to all five dimensions)."""
    f = FactLoanSnapshot
    return (
        select(
            f.snapshot_key,
            f.date_key,
            DimDate.full_date.label("snapshot_date"),
            DimDate.year_num,
            DimDate.month_num,
            DimDate.quarter,
            DimLoan.loan_account_number,
            DimLoan.product_type,
            DimLoan.disbursement_date_key,
            DimCustomer.customer_id,
            DimCustomer.customer_name,
            DimGeo.branch_name,
            DimGeo.city,
            DimGeo.state,
            DimStatus.status_code,
            DimStatus.status_bucket,
            f.principal_os,
            f.interest_os,
            f.charges_os,
            (f.principal_os + f.interest_os + f.charges_os).label("total_os"),
            f.days_past_due,
            f.emi_due_amount,
            f.emi_paid_amount,
        )
        .select_from(f)
        .join(DimDate, f.date_key == DimDate.date_key)
        .join(DimLoan, f.loan_key == DimLoan.loan_key)
        .join(DimCustomer, f.customer_key == DimCustomer.customer_key)
        .join(DimGeo, f.geo_key == DimGeo.geo_key)
        .join(DimStatus, f.status_key == DimStatus.status_key)
    )


def _view_table(name: str, selectable):
    """Lightweight TableClause over a view so it can be queried like a table."""
    return table(name, *[column(c.name, c.type) for c in selectable.selected_columns])


PORTFOLIO_SNAPSHOT_VIEW = "vw_portfolio_snapshot"

_portfolio_select = portfolio_snapshot_select()

vw_portfolio_snapshot = _view_table(PORTFOLIO_SNAPSHOT_VIEW, _portfolio_select)

# (name, selectable) in creation order
VIEWS = [
    (PORTFOLIO_SNAPSHOT_VIEW, _portfolio_select),
]

for _name, _selectable in VIEWS:
    event.listen(Base.metadata, "after_create", CreateView(_name, _selectable))
    event.listen(Base.metadata, "before_drop", DropView(_name))
