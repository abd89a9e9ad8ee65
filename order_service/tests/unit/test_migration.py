import importlib.util
from pathlib import Path

import pytest
import sqlalchemy as sa
from alembic.migration import MigrationContext
from alembic.operations import Operations

from order_service.app.models.document import DocumentRecord

MIGRATION = (
    Path(__file__).resolve().parents[2]
    / "database"
    / "alembic"
    / "versions"
    / "001_initial_migration.py"
)


@pytest.fixture
def migration():
    spec = importlib.util.spec_from_file_location("initial_migration", MIGRATION)
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


def test_upgrade_creates_the_documents_table(migration):
    engine = sa.create_engine("sqlite://")
    with engine.begin() as connection:
        with Operations.context(MigrationContext.configure(connection)):
            migration.upgrade()

        inspector = sa.inspect(connection)
        assert "documents" in inspector.get_table_names()
        columns = {column["name"] for column in inspector.get_columns("documents")}
        assert columns == {column.name for column in DocumentRecord.__table__.columns}
        assert inspector.get_pk_constraint("documents")["constrained_columns"] == [
            "table_name",
            "document_key",
        ]


def test_downgrade_drops_the_documents_table(migration):
    engine = sa.create_engine("sqlite://")
    with engine.begin() as connection:
        with Operations.context(MigrationContext.configure(connection)):
            migration.upgrade()
            migration.downgrade()

        assert "documents" not in sa.inspect(connection).get_table_names()
