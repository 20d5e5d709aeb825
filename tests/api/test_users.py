"""API tests for the user provisioning endpoints."""

import pytest
from httpx import AsyncClient

CSV_HEADER = "email,full name,role,department,specialization,license_number,shift"


def _csv(*lines: str) -> bytes:
    return ("\n".join((CSV_HEADER, *lines)) + "\n").encode("utf-8")


def _upload(content: bytes, filename: str = "users.csv", content_type: str = "text/csv") -> dict:
    return {"file": (filename, content, content_type)}


# =============================================================================
# POST /users/upload-users
# =============================================================================

@pytest.mark.asyncio
async def test_upload_users_returns_summary(client: AsyncClient, fake_services):
    content = _csv(
        "pat@clinic.test,Pat Lee,patient,,,,",
        "doc@clinic.test,Doc Ray,Doctor,Cardiology,Echo,L-77,",
        "nur@clinic.test,Nur Kim,Enfermera,Cardiology,,,night",
        "adm@clinic.test,Adm Roe,admin,,,,",
        "pat@clinic.test,Pat Again,patient,,,,",
    )

    response = await client.post("/api/v1/users/upload-users", files=_upload(content))

    assert response.status_code == 200
    data = response.json()
    assert data["message"] == "Bulk provisioning completed"
    assert data["total"] == 5
    assert data["users"] == 4
    assert data["auth"] == 4
    assert (data["patients"], data["doctors"], data["nurses"]) == (1, 1, 1)
    assert data["duplicates"] == 1
    assert data["orphaned"] == 0
    assert data["errors"] == [
        {"email": "pat@clinic.test", "stage": "duplicate", "message": "Email already registered"}
    ]
    assert len(fake_services.departments) == 1
    assert fake_services.profiles["nurses"][0]["shift"] == "night"


@pytest.mark.asyncio
async def test_upload_users_reports_credential_failures(client: AsyncClient, fake_services):
    fake_services.fail("auth", 503)
    content = _csv("a@clinic.test,A,patient,,,,", "b@clinic.test,B,nurse,,,,")

    response = await client.post("/api/v1/users/upload-users", files=_upload(content))

    assert response.status_code == 200
    data = response.json()
    assert data["users"] == 0
    assert [e["stage"] for e in data["errors"]] == ["credential-provisioning"] * 2

    listing = await client.get("/api/v1/users")
    assert listing.json()["total"] == 0


@pytest.mark.asyncio
async def test_upload_rejects_non_csv(client: AsyncClient):
    response = await client.post(
        "/api/v1/users/upload-users",
        files=_upload(b"%PDF-1.4", filename="users.pdf", content_type="application/pdf"),
    )

    assert response.status_code == 400
    body = response.json()
    assert body["success"] is False
    assert body["error"]["code"] == "UNSUPPORTED_FILE_TYPE"


@pytest.mark.asyncio
async def test_upload_rejects_oversized_file(client: AsyncClient, test_settings):
    test_settings.BULK_MAX_FILE_SIZE_MB = 1
    content = _csv(*(f"u{i}@clinic.test,{'x' * 200},patient,,,," for i in range(6000)))

    response = await client.post("/api/v1/users/upload-users", files=_upload(content))

    assert response.status_code == 413
    assert response.json()["error"]["code"] == "PAYLOAD_TOO_LARGE"


@pytest.mark.asyncio
async def test_upload_rejects_too_many_rows(client: AsyncClient, test_settings):
    content = _csv(*(f"u{i}@clinic.test,U{i},patient,,,," for i in range(test_settings.BULK_MAX_ROWS + 1)))

    response = await client.post("/api/v1/users/upload-users", files=_upload(content))

    assert response.status_code == 413


@pytest.mark.asyncio
async def test_upload_rejects_undecodable_file(client: AsyncClient):
    response = await client.post(
        "/api/v1/users/upload-users",
        files=_upload("email\nmaría@clinic.test\n".encode("latin-1")),
    )

    assert response.status_code == 400
    assert response.json()["error"]["code"] == "CSV_FORMAT_ERROR"


@pytest.mark.asyncio
async def test_upload_header_only_returns_zero_summary(client: AsyncClient, fake_services):
    response = await client.post("/api/v1/users/upload-users", files=_upload(_csv()))

    assert response.status_code == 200
    data = response.json()
    assert data["message"] == "Bulk provisioning completed"
    assert data["total"] == 0
    assert data["users"] == data["auth"] == data["duplicates"] == 0
    assert data["errors"] == []
    assert fake_services.calls == []


@pytest.mark.asyncio
async def test_upload_requires_file(client: AsyncClient):
    response = await client.post("/api/v1/users/upload-users")

    assert response.status_code == 422
    assert response.json()["error"]["code"] == "VALIDATION_ERROR"


# =============================================================================
# POST /users/bulk
# =============================================================================

@pytest.mark.asyncio
async def test_bulk_json(client: AsyncClient, fake_services):
    payload = {
        "rows": [
            {"email": "j1@clinic.test", "full_name": "J One", "role": "medic", "license_number": "L-1"},
            {"email": "j2@clinic.test", "role": "nurse"},
        ]
    }

    response = await client.post("/api/v1/users/bulk", json=payload)

    assert response.status_code == 200
    data = response.json()
    assert (data["total"], data["users"], data["doctors"], data["invalid"]) == (2, 1, 1, 1)
    assert data["errors"][0]["stage"] == "invalid"
    assert fake_services.profiles["doctors"][0]["licenseNumber"] == "L-1"


@pytest.mark.asyncio
async def test_bulk_json_empty_rows_returns_zero_summary(client: AsyncClient):
    response = await client.post("/api/v1/users/bulk", json={"rows": []})

    assert response.status_code == 200
    data = response.json()
    assert data["total"] == 0
    assert data["users"] == 0
    assert data["errors"] == []


@pytest.mark.asyncio
async def test_bulk_json_row_limit(client: AsyncClient, test_settings):
    test_settings.BULK_MAX_ROWS = 1
    payload = {"rows": [{"email": "a@clinic.test"}, {"email": "b@clinic.test"}]}

    response = await client.post("/api/v1/users/bulk", json=payload)

    assert response.status_code == 413


# =============================================================================
# GET /users
# =============================================================================

@pytest.mark.asyncio
async def test_list_users_filters(client: AsyncClient):
    payload = {
        "rows": [
            {"email": "l1@clinic.test", "fullname": "L1", "role": "patient"},
            {"email": "l2@clinic.test", "fullname": "L2", "role": "doctor", "status": "active"},
            {"email": "l3@clinic.test", "fullname": "L3", "role": "nurse"},
        ]
    }
    await client.post("/api/v1/users/bulk", json=payload)

    all_users = (await client.get("/api/v1/users")).json()
    clinicians = (await client.get("/api/v1/users", params={"role": "CLINICIAN"})).json()
    active = (await client.get("/api/v1/users", params={"status": "ACTIVE"})).json()
    page = (await client.get("/api/v1/users", params={"skip": 1, "limit": 1})).json()

    assert all_users["total"] == 3
    assert [u["email"] for u in all_users["users"]] == ["l1@clinic.test", "l2@clinic.test", "l3@clinic.test"]
    assert "credential_digest" not in all_users["users"][0]
    assert [u["email"] for u in clinicians["users"]] == ["l2@clinic.test"]
    assert [u["email"] for u in active["users"]] == ["l2@clinic.test"]
    assert page["total"] == 3
    assert [u["email"] for u in page["users"]] == ["l2@clinic.test"]


@pytest.mark.asyncio
async def test_list_users_role_filter_is_case_insensitive(client: AsyncClient):
    await client.post(
        "/api/v1/users/bulk",
        json={"rows": [{"email": "doc@clinic.test", "fullname": "Doc", "role": "doctor"}]},
    )

    lower = (await client.get("/api/v1/users", params={"role": "clinician"})).json()
    label = (await client.get("/api/v1/users", params={"role": "Doctor", "status": "pending"})).json()

    assert lower["total"] == 1
    assert [u["email"] for u in label["users"]] == ["doc@clinic.test"]
