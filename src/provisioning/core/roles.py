"""Role normalization.

Maps free-text role strings from bulk files to ``NormalizedRole``.
"""
from __future__ import annotations

from ..models.enums import NormalizedRole

# Checked in order; the first matching group wins.
_ROLE_MARKERS: tuple[tuple[NormalizedRole, tuple[str, ...]], ...] = (
    (NormalizedRole.ADMINISTRATOR, ("admin",)),
    (NormalizedRole.CLINICIAN, ("medic", "médic", "doctor")),
    (NormalizedRole.NURSE, ("nurse", "enfermer")),
)


def normalize_role(role_text: str | None) -> NormalizedRole:
    """Return the canonical role for ``role_text``.

    Case-insensitive substring match. Empty or unknown input yields
    ``NormalizedRole.PATIENT``.

    >>> normalize_role("Enfermero Jefe")
    <NormalizedRole.NURSE: 'NURSE'>
    """
    if not role_text:
        return NormalizedRole.default()

    text = str(role_text).strip().lower()
    for role, markers in _ROLE_MARKERS:
        if any(marker in text for marker in markers):
            return role
    return NormalizedRole.default()
