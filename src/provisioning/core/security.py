"""Credential helpers.

Hashes secrets for the local identity record and generates temporary
passwords for rows that do not carry one.
"""
from __future__ import annotations

import secrets
import string

import bcrypt

_TEMP_PASSWORD_ALPHABET = string.ascii_letters + string.digits + "!@#$%^&*"


def hash_password(secret: str, rounds: int = 10) -> str:
    """Return the bcrypt digest of ``secret`` as text."""
    digest = bcrypt.hashpw(secret.encode("utf-8"), bcrypt.gensalt(rounds=rounds))
    return digest.decode("utf-8")


def generate_temporary_password(length: int = 16) -> str:
    """Generate a random temporary password."""
    return "".join(secrets.choice(_TEMP_PASSWORD_ALPHABET) for _ in range(length))
