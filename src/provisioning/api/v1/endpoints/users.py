"""
User Provisioning API Endpoints.

Endpoints:
  POST   /users/upload-users  - Provision a batch from a CSV upload
  POST   /users/bulk          - Provision a batch from a JSON array of rows
  GET    /users               - Paginated list of identity records

Both provisioning endpoints return the same batch summary. Per-row failures
never fail the request; they are reported in ``errors``.
"""
from __future__ import annotations

from typing import Annotated

import structlog
from fastapi import APIRouter, Depends, File, Query, UploadFile, status

from ....core.config import Settings, get_settings
from ....core.exceptions import BadRequestError, PayloadTooLargeError
from ....db.session import DbSession
from ....repositories.user_repository import UserRepository
from ....schemas.bulk import BulkProvisionRequest, BulkProvisionResponse
from ....schemas.user import UserListResponse, UserResponse
from ....services.bulk_provisioning_service import BulkProvisioningService
from ....services.clients import ServiceClients, get_service_clients
from ....services.credential_service import CredentialProvisioner
from ....services.csv_reader import parse_csv_rows
from ....services.profile_service import ProfileProvisioner
from ....services.resource_resolver import RemoteResourceResolver
from ....services.row_orchestrator import RowOrchestrator

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/users")

_CSV_CONTENT_TYPES = ("text/csv", "application/csv", "application/octet-stream", "text/plain")


# =============================================================================
# Dependencies
# =============================================================================

SettingsDep = Annotated[Settings, Depends(get_settings)]
ClientsDep = Annotated[ServiceClients, Depends(get_service_clients)]


async def get_user_repo(db: DbSession) -> UserRepository:
    """Get user repository with database session."""
    return UserRepository(db)


async def get_bulk_service(
    settings: SettingsDep,
    clients: ClientsDep,
    repo: Annotated[UserRepository, Depends(get_user_repo)],
) -> BulkProvisioningService:
    """Wire the provisioning saga for one request."""
    orchestrator = RowOrchestrator(
        store=repo,
        resolver=RemoteResourceResolver(clients.departments, clients.specializations),
        credentials=CredentialProvisioner(clients.auth),
        profiles=ProfileProvisioner(clients.patients, clients.doctors, clients.nurses, settings),
        settings=settings,
    )
    return BulkProvisioningService(orchestrator)


BulkServiceDep = Annotated[BulkProvisioningService, Depends(get_bulk_service)]


async def _read_upload_file(file: UploadFile, settings: Settings) -> bytes:
    """Read and basic-validate an uploaded file, returning raw bytes."""
    # Browsers often send application/octet-stream for .csv files, so check
    # the extension only when the MIME type is wrong.
    filename = file.filename or ""
    if file.content_type not in _CSV_CONTENT_TYPES and not filename.lower().endswith(".csv"):
        raise BadRequestError(
            message="Only CSV files are accepted (.csv extension required).",
            error_code="UNSUPPORTED_FILE_TYPE",
        )

    limit = settings.max_file_size_bytes
    if file.size is not None and file.size > limit:
        raise PayloadTooLargeError(
            f"File exceeds {settings.BULK_MAX_FILE_SIZE_MB} MB limit.",
            limit=limit,
        )

    raw_bytes = await file.read(limit + 1)
    if len(raw_bytes) > limit:
        raise PayloadTooLargeError(
            f"File exceeds {settings.BULK_MAX_FILE_SIZE_MB} MB limit.",
            limit=limit,
        )
    return raw_bytes


# =============================================================================
# PROVISIONING ENDPOINTS
# =============================================================================

@router.post(
    "/upload-users",
    response_model=BulkProvisionResponse,
    status_code=status.HTTP_200_OK,
    summary="Bulk provision users from CSV",
    description="""
Create identity records, credentials and role profiles for every row of a
CSV file.

Rows are processed one at a time in file order. Duplicates (by email) and
rows missing email or full name are skipped. A row whose credential cannot
be created has its identity record removed again. A row whose profile cannot
be created keeps its identity and credential.
    """,
    responses={
        400: {"description": "Not a CSV file, not UTF-8, or no header row"},
        413: {"description": "File or row count above the configured limits"},
    },
)
async def upload_users(
    settings: SettingsDep,
    service: BulkServiceDep,
    file: UploadFile = File(..., description="CSV file (UTF-8) with a header row"),
) -> BulkProvisionResponse:
    """Decode the uploaded CSV and run the batch."""
    raw_bytes = await _read_upload_file(file, settings)
    rows = parse_csv_rows(raw_bytes, max_rows=settings.BULK_MAX_ROWS, filename=file.filename)

    summary = await service.run(rows, source=file.filename or "upload")
    return BulkProvisionResponse.model_validate(summary)


@router.post(
    "/bulk",
    response_model=BulkProvisionResponse,
    status_code=status.HTTP_200_OK,
    summary="Bulk provision users from JSON",
    description="Same as `/upload-users`, with rows supplied as a JSON array.",
    responses={413: {"description": "Row count above the configured limit"}},
)
async def bulk_provision(
    body: BulkProvisionRequest,
    settings: SettingsDep,
    service: BulkServiceDep,
) -> BulkProvisionResponse:
    """Run the batch for rows given in the request body."""
    if len(body.rows) > settings.BULK_MAX_ROWS:
        raise PayloadTooLargeError(
            f"Too many rows: {len(body.rows)} (maximum allowed: {settings.BULK_MAX_ROWS}).",
            limit=settings.BULK_MAX_ROWS,
        )

    summary = await service.run(body.rows, source="json")
    return BulkProvisionResponse.model_validate(summary)


# =============================================================================
# LIST ENDPOINTS
# =============================================================================

@router.get(
    "",
    response_model=UserListResponse,
    summary="List users",
    description="Get paginated list of users with optional filtering by role and status.",
)
async def list_users(
    repo: Annotated[UserRepository, Depends(get_user_repo)],
    skip: int = Query(0, ge=0, description="Number of records to skip"),
    limit: int = Query(50, ge=1, le=100, description="Number of records to return"),
    role: list[str] | None = Query(None, description="Filter by role (ADMINISTRATOR, CLINICIAN, NURSE, PATIENT)"),
    user_status: str | None = Query(None, alias="status", description="Filter by status"),
) -> UserListResponse:
    """List users with pagination and optional filtering."""
    # One session cannot run two queries concurrently, so these stay sequential.
    users = await repo.get_all(skip=skip, limit=limit, role=role, status=user_status)
    total = await repo.count_all(role=role, status=user_status)

    return UserListResponse(
        success=True,
        users=[UserResponse.model_validate(u) for u in users],
        total=total,
        skip=skip,
        limit=limit,
    )
