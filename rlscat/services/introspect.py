"""
Snapshot the live policies of a PostgreSQL database.
"""

import logging

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncEngine

from rlscat.services.catalog import PolicyRecord

logger = logging.getLogger(__name__)


PG_POLICIES_QUERY = text(
    """
    SELECT
        tablename AS table_name,
        policyname AS policy_name,
        permissive,
        cmd AS command,
        roles,
        qual AS using_expression,
        with_check AS check_expression
    FROM pg_catalog.pg_policies
    WHERE schemaname = :schema
    ORDER BY tablename, policyname
    """
)


def record_from_row(row) -> PolicyRecord:
    """Build a record from one pg_policies row mapping."""
    data = dict(row)
    roles = data.get("roles")
    # asyncpg decodes name[] to a list, other drivers may hand back the literal
    if roles is not None and not isinstance(roles, str):
        data["roles"] = list(roles)
    return PolicyRecord.from_dict(data)


async def snapshot(engine: AsyncEngine, schema: str = "public") -> list[PolicyRecord]:
    """Read every policy defined in ``schema``."""
    async with engine.connect() as conn:
        result = await conn.execute(PG_POLICIES_QUERY, {"schema": schema})
        rows = result.mappings().all()

    records = [record_from_row(row) for row in rows]
    logger.info(f"Read {len(records)} policies from schema {schema}")
    return records
