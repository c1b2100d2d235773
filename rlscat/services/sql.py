"""
Render policy catalogs as PostgreSQL DDL.
"""

from typing import Optional

from sqlalchemy.dialects import postgresql

from rlscat.services.catalog import PolicyCatalog, PolicyRecord
from rlscat.utils.roles import PUBLIC_ROLE

_preparer = postgresql.dialect().identifier_preparer


def quote_ident(name: str) -> str:
    """Quote an identifier only when PostgreSQL requires it."""
    return _preparer.quote(name)


def qualified_table(table_name: str, schema: Optional[str] = None) -> str:
    if schema:
        return f"{_preparer.quote_schema(schema)}.{quote_ident(table_name)}"
    return quote_ident(table_name)


def _role_clause(roles: tuple[str, ...]) -> str:
    return ", ".join("PUBLIC" if role == PUBLIC_ROLE else quote_ident(role) for role in roles)


def _has_outer_parens(expression: str) -> bool:
    """True when the whole expression sits inside one pair of parentheses."""
    text = expression.strip()
    if not (text.startswith("(") and text.endswith(")")):
        return False

    depth = 0
    quote: Optional[str] = None
    for i, ch in enumerate(text):
        if quote:
            if ch == quote:
                quote = None
            continue
        if ch in ("'", '"'):
            quote = ch
        elif ch == "(":
            depth += 1
        elif ch == ")":
            depth -= 1
            if depth == 0 and i != len(text) - 1:
                return False
    return depth == 0


def _wrap(expression: str) -> str:
    text = expression.strip()
    return text if _has_outer_parens(text) else f"({text})"


def render_create(record: PolicyRecord, schema: Optional[str] = None) -> str:
    """Render a CREATE POLICY statement for one record."""
    lines = [
        f"CREATE POLICY {quote_ident(record.policy_name)} ON {qualified_table(record.table_name, schema)}",
        f"    AS {record.permissive.value}",
        f"    FOR {record.command.value}",
        f"    TO {_role_clause(record.roles)}",
    ]
    if record.using_expression is not None:
        lines.append(f"    USING {_wrap(record.using_expression)}")
    if record.check_expression is not None:
        lines.append(f"    WITH CHECK {_wrap(record.check_expression)}")
    return "\n".join(lines) + ";"


def render_drop(record: PolicyRecord, schema: Optional[str] = None) -> str:
    return (
        f"DROP POLICY IF EXISTS {quote_ident(record.policy_name)} "
        f"ON {qualified_table(record.table_name, schema)};"
    )


def render_enable(table_name: str, schema: Optional[str] = None, force: bool = False) -> str:
    table = qualified_table(table_name, schema)
    statements = [f"ALTER TABLE {table} ENABLE ROW LEVEL SECURITY;"]
    if force:
        statements.append(f"ALTER TABLE {table} FORCE ROW LEVEL SECURITY;")
    return "\n".join(statements)


def render_catalog(
    catalog: PolicyCatalog,
    schema: Optional[str] = None,
    drop_existing: bool = False,
    force: bool = False,
) -> str:
    """
    Render a migration script for the whole catalog.

    Statements are grouped per table: enable RLS, optionally drop the
    existing policies, then create each policy.
    """
    blocks = []
    for table_name in catalog.tables():
        records = catalog.for_table(table_name)
        statements = [f"-- {table_name}", render_enable(table_name, schema, force)]
        if drop_existing:
            statements.extend(render_drop(r, schema) for r in records)
        statements.extend(render_create(r, schema) for r in records)
        blocks.append("\n".join(statements))
    return "\n\n".join(blocks) + ("\n" if blocks else "")
