"""
Admin API routes for importing policy snapshots.
"""

from typing import Optional, List, Dict, Any

from fastapi import APIRouter, Request, HTTPException, Depends
from pydantic import BaseModel

from rlscat.services.admin_auth import AdminAuthService
from rlscat.services.catalog import CatalogError, parse_records
from rlscat.services.policy_store import PolicyStore


router = APIRouter()


# These will be set by the application on startup
_admin_auth_service: Optional[AdminAuthService] = None
_policy_store: Optional[PolicyStore] = None


def set_dependencies(admin_auth_service: AdminAuthService, policy_store: PolicyStore):
    """Set the dependencies for the admin routes."""
    global _admin_auth_service, _policy_store
    _admin_auth_service = admin_auth_service
    _policy_store = policy_store


# ============== Request/Response Models ==============

class LoginRequest(BaseModel):
    """Login request body."""
    password: str


class LoginResponse(BaseModel):
    """Login response body."""
    token: str
    expires_in_hours: int


class ImportRequest(BaseModel):
    """Snapshot content to preview or apply."""
    content: str
    format: str = "json"
    prune: bool = False


class ImportPreviewResponse(BaseModel):
    """Diff between the stored catalog and the snapshot."""
    added: Dict[str, Any]
    removed: Dict[str, Any]
    modified: Dict[str, Any]
    unchanged: Dict[str, Any]


class ImportApplyResponse(BaseModel):
    """Labels of the policies an import changed."""
    added: List[str]
    modified: List[str]
    removed: List[str]


# ============== Auth Dependency ==============

async def require_auth(request: Request):
    """Dependency to require admin authentication."""
    if not _admin_auth_service:
        raise HTTPException(status_code=503, detail="Service not configured")

    token = _admin_auth_service.bearer_token(request.headers.get("Authorization"))
    if not token:
        raise HTTPException(
            status_code=401,
            detail={"error": "unauthorized", "message": "Missing or invalid token"}
        )

    if not _admin_auth_service.verify_token(token):
        raise HTTPException(
            status_code=401,
            detail={"error": "unauthorized", "message": "Invalid or expired token"}
        )


def _require_store() -> PolicyStore:
    if not _policy_store:
        raise HTTPException(status_code=503, detail="Service not configured")
    return _policy_store


def _invalid_snapshot(error: CatalogError) -> HTTPException:
    return HTTPException(
        status_code=400,
        detail={"error": "invalid_snapshot", "message": str(error)}
    )


# ============== Routes ==============

@router.post("/login", response_model=LoginResponse)
async def login(body: LoginRequest):
    """Authenticate admin and get a bearer token."""
    if not _admin_auth_service:
        raise HTTPException(status_code=503, detail="Service not configured")

    token = _admin_auth_service.authenticate(body.password)
    if not token:
        raise HTTPException(
            status_code=401,
            detail={"error": "unauthorized", "message": "Invalid password"}
        )

    return LoginResponse(
        token=token,
        expires_in_hours=_admin_auth_service.config.jwt_expire_hours,
    )


@router.post("/import/preview", response_model=ImportPreviewResponse, dependencies=[Depends(require_auth)])
async def preview_import(body: ImportRequest):
    """Show what applying a snapshot would change."""
    store = _require_store()
    try:
        diff = await store.parse_import(body.content, body.format)
    except CatalogError as e:
        raise _invalid_snapshot(e)
    return ImportPreviewResponse(**diff)


@router.post("/import/apply", response_model=ImportApplyResponse, dependencies=[Depends(require_auth)])
async def apply_import(body: ImportRequest):
    """Upsert a snapshot into the catalog; prune removes policies it lacks."""
    store = _require_store()
    try:
        records = parse_records(body.content, body.format)
        changes = await store.apply_import(records, prune=body.prune)
    except CatalogError as e:
        raise _invalid_snapshot(e)
    return ImportApplyResponse(**changes)
