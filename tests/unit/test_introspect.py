"""
Tests for pg_policies introspection.
"""

import pytest
from unittest.mock import AsyncMock, MagicMock

from rlscat.models.policy import Command
from rlscat.services.introspect import record_from_row, snapshot


def pg_row(**overrides):
    row = {
        "table_name": "buses",
        "policy_name": "Public read access for buses",
        "permissive": "PERMISSIVE",
        "command": "SELECT",
        "roles": ["public"],
        "using_expression": "true",
        "check_expression": None,
    }
    row.update(overrides)
    return row


def mock_engine(rows):
    """Async engine whose connection returns the given pg_policies rows."""
    result = MagicMock()
    result.mappings.return_value.all.return_value = rows

    conn = MagicMock()
    conn.execute = AsyncMock(return_value=result)

    context = MagicMock()
    context.__aenter__ = AsyncMock(return_value=conn)
    context.__aexit__ = AsyncMock(return_value=False)

    engine = MagicMock()
    engine.connect.return_value = context
    return engine, conn


class TestRecordFromRow:
    """Tests for record_from_row."""

    def test_list_roles(self):
        record = record_from_row(pg_row(roles=["authenticated", "anon"]))
        assert record.roles == ("anon", "authenticated")

    def test_literal_roles(self):
        record = record_from_row(pg_row(roles="{authenticated}"))
        assert record.roles == ("authenticated",)

    def test_fields(self):
        record = record_from_row(pg_row())
        assert record.command is Command.SELECT
        assert record.using_expression == "true"
        assert record.check_expression is None


class TestSnapshot:
    """Tests for snapshot."""

    @pytest.mark.asyncio
    async def test_snapshot_reads_schema(self):
        engine, conn = mock_engine([
            pg_row(),
            pg_row(table_name="routes", policy_name="routes_insert", command="INSERT",
                   using_expression=None, check_expression="(auth.role() = 'authenticated'::text)"),
        ])

        records = await snapshot(engine, "app")

        assert [r.table_name for r in records] == ["buses", "routes"]
        assert records[1].command is Command.INSERT
        params = conn.execute.call_args[0][1]
        assert params == {"schema": "app"}

    @pytest.mark.asyncio
    async def test_snapshot_empty(self):
        engine, _ = mock_engine([])
        assert await snapshot(engine) == []
