"""
Database-backed storage for the policy catalog.
"""

import json
import logging
from typing import Any, Callable, Coroutine, Iterable, Optional

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from rlscat.models.policy import RlsPolicy
from rlscat.services.catalog import PolicyCatalog, PolicyRecord, parse_records

logger = logging.getLogger(__name__)


def record_from_row(row: RlsPolicy) -> PolicyRecord:
    return PolicyRecord(
        table_name=row.table_name,
        policy_name=row.policy_name,
        permissive=row.permissive,
        command=row.command,
        roles=tuple(row.role_list),
        using_expression=row.using_expression,
        check_expression=row.check_expression,
    )


def _apply_record(row: RlsPolicy, record: PolicyRecord) -> None:
    row.permissive = record.permissive
    row.command = record.command
    row.roles = json.dumps(list(record.roles))
    row.using_expression = record.using_expression
    row.check_expression = record.check_expression


def _new_row(record: PolicyRecord) -> RlsPolicy:
    row = RlsPolicy(table_name=record.table_name, policy_name=record.policy_name)
    _apply_record(row, record)
    return row


class PolicyStore:
    """Reads and imports the stored policy catalog."""

    def __init__(self, session_factory: Callable[[], AsyncSession]):
        self._session_factory = session_factory
        self._update_callbacks: list[Callable[[str], Coroutine[Any, Any, None]]] = []

    def on_update(self, callback: Callable[[str], Coroutine[Any, Any, None]]):
        """Register a callback fired with "table.policy" after each change."""
        self._update_callbacks.append(callback)

    async def _notify_update(self, label: str):
        for callback in self._update_callbacks:
            try:
                await callback(label)
            except Exception as e:
                logger.error(f"Error in policy update callback: {e}")

    async def get_all(self) -> list[PolicyRecord]:
        """Get all stored policies ordered by table and name."""
        async with self._session_factory() as session:
            result = await session.execute(
                select(RlsPolicy).order_by(RlsPolicy.table_name, RlsPolicy.policy_name)
            )
            return [record_from_row(row) for row in result.scalars().all()]

    async def get_catalog(self) -> PolicyCatalog:
        return PolicyCatalog(await self.get_all())

    async def get(self, table_name: str, policy_name: str) -> Optional[PolicyRecord]:
        """Get a single stored policy."""
        async with self._session_factory() as session:
            result = await session.execute(
                select(RlsPolicy).where(
                    RlsPolicy.table_name == table_name,
                    RlsPolicy.policy_name == policy_name,
                )
            )
            row = result.scalar_one_or_none()
            return record_from_row(row) if row else None

    async def count(self) -> int:
        async with self._session_factory() as session:
            result = await session.execute(select(func.count()).select_from(RlsPolicy))
            return result.scalar_one()

    async def seed(self, records: Iterable[PolicyRecord]) -> bool:
        """
        Write the seed snapshot if the table is empty.
        Returns True if rows were written, False if data already existed.
        """
        catalog = PolicyCatalog(records)

        async with self._session_factory() as session:
            result = await session.execute(select(RlsPolicy).limit(1))
            if result.scalar_one_or_none() is not None:
                return False

            session.add_all(_new_row(record) for record in catalog)
            await session.commit()

        logger.info(f"Seeded {len(catalog)} policies across {len(catalog.tables())} tables")
        return True

    async def parse_import(self, content: str, fmt: str = "json") -> dict[str, dict]:
        """
        Parse snapshot content and return its diff against the stored catalog.

        Raises:
            CatalogError: If the content is not a valid snapshot.
        """
        incoming = PolicyCatalog(parse_records(content, fmt))
        current = await self.get_catalog()
        return current.diff(incoming)

    async def apply_import(self, records: Iterable[PolicyRecord], prune: bool = False) -> dict[str, list[str]]:
        """
        Upsert records into the store.

        With prune=True, stored policies missing from the import are deleted.

        Returns:
            {"added": [...], "modified": [...], "removed": [...]} labels.
        """
        incoming = PolicyCatalog(records)
        changes: dict[str, list[str]] = {"added": [], "modified": [], "removed": []}

        async with self._session_factory() as session:
            result = await session.execute(select(RlsPolicy))
            existing = {(row.table_name, row.policy_name): row for row in result.scalars().all()}

            for record in incoming:
                row = existing.get(record.key)
                if row is None:
                    session.add(_new_row(record))
                    changes["added"].append(record.label)
                elif record_from_row(row) != record:
                    _apply_record(row, record)
                    changes["modified"].append(record.label)

            if prune:
                for key, row in existing.items():
                    if key not in incoming:
                        await session.delete(row)
                        changes["removed"].append(f"{key[0]}.{key[1]}")

            await session.commit()

        logger.info(
            f"Imported policies: {len(changes['added'])} added, "
            f"{len(changes['modified'])} modified, {len(changes['removed'])} removed"
        )

        for labels in changes.values():
            for label in labels:
                await self._notify_update(label)

        return changes

    async def export(self, fmt: str = "json") -> str:
        """Export the stored catalog as JSON or YAML."""
        catalog = await self.get_catalog()
        if fmt.lower() in ("yaml", "yml"):
            return catalog.to_yaml()
        return catalog.to_json()
