"""
Read-only catalog API routes.
"""

from typing import Optional, List

from fastapi import APIRouter, HTTPException
from fastapi.responses import Response
from pydantic import BaseModel

from rlscat.models.policy import Command
from rlscat.services.catalog import PolicyRecord
from rlscat.services.policy_store import PolicyStore
from rlscat.services.sql import render_catalog, render_create


router = APIRouter()


# These will be set by the application on startup
_policy_store: Optional[PolicyStore] = None
_schema: Optional[str] = None


def set_dependencies(policy_store: PolicyStore, schema: Optional[str] = None):
    """Set the dependencies for the catalog routes."""
    global _policy_store, _schema
    _policy_store = policy_store
    _schema = schema


# ============== Response Models ==============

class PolicyResponse(BaseModel):
    """One policy record."""
    table_name: str
    policy_name: str
    permissive: str
    command: str
    roles: List[str]
    using_expression: Optional[str]
    check_expression: Optional[str]


class TableSummary(BaseModel):
    """Policies defined on one table."""
    table_name: str
    policy_count: int
    commands: List[str]


def _to_response(record: PolicyRecord) -> PolicyResponse:
    return PolicyResponse(
        table_name=record.table_name,
        policy_name=record.policy_name,
        permissive=record.permissive.value,
        command=record.command.value,
        roles=list(record.roles),
        using_expression=record.using_expression,
        check_expression=record.check_expression,
    )


def _require_store() -> PolicyStore:
    if not _policy_store:
        raise HTTPException(status_code=503, detail="Service not configured")
    return _policy_store


def _not_found(message: str) -> HTTPException:
    return HTTPException(status_code=404, detail={"error": "not_found", "message": message})


# ============== Routes ==============

@router.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "ok"}


@router.get("/tables", response_model=List[TableSummary])
async def list_tables():
    """List every table that has policies."""
    catalog = await _require_store().get_catalog()
    summaries = []
    for table_name in catalog.tables():
        records = catalog.for_table(table_name)
        summaries.append(TableSummary(
            table_name=table_name,
            policy_count=len(records),
            commands=sorted({r.command.value for r in records}),
        ))
    return summaries


@router.get("/policies", response_model=List[PolicyResponse])
async def list_policies(
    table: Optional[str] = None,
    command: Optional[str] = None,
    role: Optional[str] = None,
):
    """
    List policies, optionally filtered.

    ALL policies match any command filter; policies granted to PUBLIC match
    any role filter.
    """
    store = _require_store()

    parsed_command = None
    if command:
        try:
            parsed_command = Command(command.upper())
        except ValueError:
            raise HTTPException(
                status_code=400,
                detail={"error": "invalid_command", "message": f"Invalid command: {command}"}
            )

    catalog = await store.get_catalog()
    return [_to_response(r) for r in catalog.filter(table=table, command=parsed_command, role=role)]


@router.get("/policies/{table_name}", response_model=List[PolicyResponse])
async def get_table_policies(table_name: str):
    """List the policies of one table."""
    catalog = await _require_store().get_catalog()
    records = catalog.for_table(table_name)
    if not records:
        raise _not_found(f"No policies for table: {table_name}")
    return [_to_response(r) for r in records]


@router.get("/policies/{table_name}/{policy_name}", response_model=PolicyResponse)
async def get_policy(table_name: str, policy_name: str):
    """Get one policy."""
    record = await _require_store().get(table_name, policy_name)
    if record is None:
        raise _not_found(f"Policy not found: {table_name}.{policy_name}")
    return _to_response(record)


@router.get("/policies/{table_name}/{policy_name}/sql")
async def get_policy_sql(table_name: str, policy_name: str):
    """CREATE POLICY statement for one policy."""
    record = await _require_store().get(table_name, policy_name)
    if record is None:
        raise _not_found(f"Policy not found: {table_name}.{policy_name}")
    return Response(content=render_create(record, _schema) + "\n", media_type="text/plain")


@router.get("/sql")
async def get_catalog_sql(drop_existing: bool = False, force: bool = False):
    """Migration script for the whole catalog."""
    catalog = await _require_store().get_catalog()
    script = render_catalog(catalog, schema=_schema, drop_existing=drop_existing, force=force)
    return Response(content=script, media_type="text/plain")


@router.get("/export")
async def export_catalog(format: str = "json"):
    """Download the catalog as JSON or YAML."""
    if format not in ("json", "yaml"):
        raise HTTPException(
            status_code=400,
            detail={"error": "invalid_format", "message": "Format must be json or yaml"}
        )

    content = await _require_store().export(format)
    media_type = "application/json" if format == "json" else "application/x-yaml"
    return Response(
        content=content,
        media_type=media_type,
        headers={"Content-Disposition": f"attachment; filename=rls_policies.{format}"},
    )
