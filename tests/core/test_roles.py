"""Tests for role normalization."""

import pytest

from src.provisioning.core.roles import normalize_role
from src.provisioning.models.enums import NormalizedRole


@pytest.mark.parametrize(
    "role_text, expected",
    [
        ("Admin", NormalizedRole.ADMINISTRATOR),
        ("admin_user", NormalizedRole.ADMINISTRATOR),
        ("medical_doctor", NormalizedRole.CLINICIAN),
        ("Enfermero Jefe", NormalizedRole.NURSE),
        ("", NormalizedRole.PATIENT),
        ("gardener", NormalizedRole.PATIENT),
    ],
)
def test_normalize_role_table(role_text, expected):
    assert normalize_role(role_text) is expected


def test_none_is_patient():
    assert normalize_role(None) is NormalizedRole.PATIENT


@pytest.mark.parametrize("role_text", ["Doctor", "MÉDICO", "Médico general", "  medic  "])
def test_clinician_markers(role_text):
    assert normalize_role(role_text) is NormalizedRole.CLINICIAN


def test_admin_wins_over_clinician():
    assert normalize_role("Medical Administrator") is NormalizedRole.ADMINISTRATOR


def test_clinician_wins_over_nurse():
    assert normalize_role("nurse doctor") is NormalizedRole.CLINICIAN


def test_nurse_english():
    assert normalize_role("Head Nurse") is NormalizedRole.NURSE


def test_only_administrator_has_no_profile():
    assert [r for r in NormalizedRole if not r.has_profile] == [NormalizedRole.ADMINISTRATOR]
