"""Tests for the profile provisioner."""

from datetime import date

import pytest

from src.provisioning.core.exceptions import ProfileProvisionError
from src.provisioning.models.enums import NormalizedRole
from src.provisioning.services.profile_service import PROFILE_ROUTES, ProfileFields, ProfileProvisioner


@pytest.fixture
def provisioner(service_clients, test_settings):
    return ProfileProvisioner(
        service_clients.patients,
        service_clients.doctors,
        service_clients.nurses,
        test_settings,
    )


def test_every_role_has_a_route_decision():
    assert set(PROFILE_ROUTES) == set(NormalizedRole)
    assert PROFILE_ROUTES[NormalizedRole.ADMINISTRATOR] is None


async def test_patient_profile(provisioner, fake_services):
    fields = ProfileFields(
        document_number="DOC-1",
        birth_date=date(1990, 5, 17),
        age=35,
        gender="F",
        phone="555",
        address="Main St 1",
    )

    result = await provisioner.provision_profile(NormalizedRole.PATIENT, 3, fields)

    assert result.success and not result.skipped
    assert fake_services.calls_to("patients")[0].path == "/patients/bulk"
    assert fake_services.profiles["patients"] == [{
        "userId": 3,
        "documentNumber": "DOC-1",
        "birthDate": "1990-05-17",
        "age": 35,
        "gender": "F",
        "phone": "555",
        "address": "Main St 1",
    }]


async def test_doctor_profile_uses_schedule_defaults(provisioner, fake_services, test_settings):
    fields = ProfileFields(license_number="LIC-9", department_id="dep-1", specialization_id=None)

    result = await provisioner.provision_profile(NormalizedRole.CLINICIAN, 4, fields)

    assert result.success
    assert fake_services.profiles["doctors"] == [{
        "userId": 4,
        "licenseNumber": "LIC-9",
        "specializationId": None,
        "departmentId": "dep-1",
        "consultationTime": test_settings.DOCTOR_CONSULTATION_MINUTES,
        "availableFrom": test_settings.DOCTOR_AVAILABLE_FROM,
        "availableTo": test_settings.DOCTOR_AVAILABLE_TO,
    }]


async def test_nurse_profile(provisioner, fake_services):
    result = await provisioner.provision_profile(
        NormalizedRole.NURSE, 5, ProfileFields(department_id="dep-2", shift="night")
    )

    assert result.success
    assert fake_services.profiles["nurses"] == [{"userId": 5, "departmentId": "dep-2", "shift": "night"}]


async def test_administrator_skips_remote_call(provisioner, fake_services):
    result = await provisioner.provision_profile(NormalizedRole.ADMINISTRATOR, 6, ProfileFields())

    assert result.success and result.skipped
    assert fake_services.calls == []


async def test_failure_is_reported(provisioner, fake_services):
    fake_services.fail("doctors", 422)

    result = await provisioner.provision_profile(NormalizedRole.CLINICIAN, 7, ProfileFields())

    assert not result.success
    assert result.http_status_code == 422
    with pytest.raises(ProfileProvisionError):
        result.raise_for_error()
