"""Tests for the credential provisioner."""

import httpx
import pytest

from src.provisioning.core.exceptions import CredentialProvisionError
from src.provisioning.models.enums import NormalizedRole
from src.provisioning.services.credential_service import SIGN_UP_PATH, CredentialProvisioner


@pytest.fixture
def provisioner(service_clients):
    return CredentialProvisioner(service_clients.auth)


async def test_provision_sends_verified_credential(provisioner, fake_services):
    result = await provisioner.provision(7, "a@x.com", "pw", NormalizedRole.NURSE)

    assert result.success
    assert result.http_status_code == 201
    call = fake_services.calls_to("auth")[0]
    assert call.path == SIGN_UP_PATH
    assert call.body == {
        "userId": 7,
        "email": "a@x.com",
        "password": "pw",
        "role": "NURSE",
        "verified": True,
    }
    result.raise_for_error()


async def test_rejection_is_reported(provisioner, fake_services):
    await provisioner.provision(1, "a@x.com", "pw", NormalizedRole.PATIENT)

    result = await provisioner.provision(2, "a@x.com", "pw", NormalizedRole.PATIENT)

    assert not result.success
    assert result.http_status_code == 409
    assert result.error_message == "API returned status 409: Email already registered"
    with pytest.raises(CredentialProvisionError):
        result.raise_for_error()


async def test_timeout_is_reported(provisioner, fake_services):
    fake_services.fail("auth", timeout=True)

    result = await provisioner.provision(1, "a@x.com", "pw", NormalizedRole.PATIENT)

    assert not result.success
    assert "timeout" in result.error_message.lower()


async def test_connection_error_is_reported():
    def refuse(request):
        raise httpx.ConnectError("connection refused", request=request)

    async with httpx.AsyncClient(base_url="http://auth.test", transport=httpx.MockTransport(refuse)) as client:
        result = await CredentialProvisioner(client).provision(1, "a@x.com", "pw", NormalizedRole.PATIENT)

    assert not result.success
    assert result.error_message.startswith("Connection error")


async def test_non_json_error_body():
    transport = httpx.MockTransport(lambda request: httpx.Response(502, text="<html>bad gateway</html>"))
    async with httpx.AsyncClient(base_url="http://auth.test", transport=transport) as client:
        result = await CredentialProvisioner(client).provision(1, "a@x.com", "pw", NormalizedRole.PATIENT)

    assert not result.success
    assert result.error_message == "API returned status 502"
