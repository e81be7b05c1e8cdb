"""Canonical owner references and rental codes"""

import secrets
from datetime import date
from typing import Optional

from rental_engine.domain.exceptions import ValidationError


def normalize_email(email: str) -> str:
    normalized = (email or "").strip().lower()
    if "@" not in normalized:
        raise ValidationError(f"Invalid customer email {email!r}")
    return normalized


def resolve_owner(email: str, user_id: Optional[str] = None) -> str:
    """
    Collapse "user id or email" into one owner reference, once, at ingestion.

    A known account wins; otherwise the normalized email identifies the owner.
    """
    if user_id:
        return f"user:{user_id}"
    return f"email:{normalize_email(email)}"


def new_rental_code(today: date) -> str:
    """``RENT-YYYY-MMDD-XXXXXX`` with a random hex suffix"""
    return f"RENT-{today.year:04d}-{today.month:02d}{today.day:02d}-{secrets.token_hex(3).upper()}"
