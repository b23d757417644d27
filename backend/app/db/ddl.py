"""
Combined DDL/DML script
=======================
Renders one SQL script for a target dialect: CREATE TABLE (dimensions before
facts, from metadata dependency order), CREATE INDEX, CREATE VIEW and,
optionally, the sample data INSERTs. The script can be run by any SQL client
against an empty database, then queried directly or through a BI tool.

Run: python -m app.cli render-sql --dialect postgresql > loan_mart.sql
"""
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.schema import CreateIndex, CreateTable

from app.db.base import Base
import app.db.schemas  # noqa: F401 - registers all tables on Base.metadata
from app.db.views import VIEWS, CreateView

DIALECTS = {
    "postgresql": postgresql.dialect,
    "sqlite": sqlite.dialect,
}


def schema_statements(dialect) -> list[str]:
    statements = []
    for table in Base.metadata.sorted_tables:
        statements.append(str(CreateTable(table).compile(dialect=dialect)).strip())
        for index in sorted(table.indexes, key=lambda i: i.name):
            statements.append(str(CreateIndex(index).compile(dialect=dialect)).strip())
    for name, selectable in VIEWS:
        statements.append(str(CreateView(name, selectable).compile(dialect=dialect)).strip())
    return statements


def data_statements(dialect) -> list[str]:
    from app.core.seed_sample_data import sample_data_statements

    return [
        str(stmt.compile(dialect=dialect, compile_kwargs={"literal_binds": True})).strip()
        for stmt in sample_data_statements()
    ]


def render_script(dialect_name: str = "postgresql", include_sample_data: bool = True) -> str:
    if dialect_name not in DIALECTS:
        raise ValueError(f"Unsupported dialect '{dialect_name}'. Available: {sorted(DIALECTS)}")
    dialect = DIALECTS[dialect_name]()

    statements = schema_statements(dialect)
    if include_sample_data:
        statements += data_statements(dialect)
    return ";\n\n".join(statements) + ";\n"
