"""Tests for the schema migration and model metadata."""

import importlib.util
from pathlib import Path

import pytest
from alembic.migration import MigrationContext
from alembic.operations import Operations
from sqlalchemy import inspect
from sqlalchemy.ext.asyncio import create_async_engine

from clinic_history.database import Base

MIGRATION = Path(__file__).parent.parent / "alembic" / "versions" / "create_clinic_history_tables.py"


def _load_migration():
    spec = importlib.util.spec_from_file_location("create_clinic_history_tables", MIGRATION)
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


@pytest.fixture
async def migration_engine(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'migrated.db'}")
    yield engine
    await engine.dispose()


def _run(conn, step):
    context = MigrationContext.configure(conn)
    with Operations.context(context):
        step()
    inspector = inspect(conn)
    return {name: {c["name"] for c in inspector.get_columns(name)} for name in inspector.get_table_names()}


class TestMigration:
    """The hand-written migration must match the models."""

    def test_is_root_revision(self):
        migration = _load_migration()
        assert migration.down_revision is None
        assert migration.revision == "create_clinic_history_tables"

    @pytest.mark.asyncio
    async def test_upgrade_creates_model_tables(self, migration_engine):
        migration = _load_migration()

        async with migration_engine.begin() as conn:
            tables = await conn.run_sync(_run, migration.upgrade)

        assert set(tables) == set(Base.metadata.tables)
        for name, table in Base.metadata.tables.items():
            assert tables[name] == {c.name for c in table.columns}, name

    @pytest.mark.asyncio
    async def test_downgrade_drops_everything(self, migration_engine):
        migration = _load_migration()

        async with migration_engine.begin() as conn:
            await conn.run_sync(_run, migration.upgrade)
            tables = await conn.run_sync(_run, migration.downgrade)

        assert tables == {}


def test_billing_columns_keep_legacy_names():
    columns = Base.metadata.tables["facturacion"].columns
    assert "estado_pago" in columns
    assert "fecha_pago" in columns
