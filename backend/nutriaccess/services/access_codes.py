"""Access code generation and the code lifecycle state machine.

Codes are drawn from ``[A-Z0-9]``. The revocation sentinel contains a ``-`` and is
longer than a generated code, so the generator can never produce it.
"""
from __future__ import annotations

import enum
import secrets
import string
from datetime import datetime, timedelta, timezone
from typing import Optional

from nutriaccess.config import CODE_LENGTH, CODE_VALIDITY_DAYS

CODE_ALPHABET = string.ascii_uppercase + string.digits

# 화면에 표시되는 폐기 코드
REVOKED_CODE = "ANULADO"


class CodeState(str, enum.Enum):
    ACTIVE = "ACTIVE"
    EXPIRED = "EXPIRED"
    ROTATED = "ROTATED"
    REVOKED = "REVOKED"
    DEACTIVATED = "DEACTIVATED"


def generate_access_code(length: int = CODE_LENGTH) -> str:
    return "".join(secrets.choice(CODE_ALPHABET) for _ in range(length))


def revoked_sentinel(patient_id: int) -> str:
    """Per-patient sentinel so the unique constraint holds for many revoked patients."""
    return f"{REVOKED_CODE}-{patient_id}"


def is_generated_code(code: Optional[str]) -> bool:
    return bool(code) and len(code) == CODE_LENGTH and all(c in CODE_ALPHABET for c in code)


def display_code(code: str) -> str:
    if code.startswith(REVOKED_CODE + "-"):
        return REVOKED_CODE
    return code


def mask_code(code: Optional[str]) -> str:
    """로그용 마스킹: 'AB****YZ'"""
    if not code:
        return "<empty>"
    if len(code) <= 4:
        return "*" * len(code)
    return f"{code[:2]}{'*' * (len(code) - 4)}{code[-2:]}"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    # sqlite 는 tz 정보 없이 돌려줌 (저장은 항상 UTC)
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def new_expiry(now: datetime) -> datetime:
    return now + timedelta(days=CODE_VALIDITY_DAYS)


def code_state(patient, now: datetime, presented: Optional[str] = None) -> CodeState:
    """Classify the code a client presented against the patient row.

    Without ``presented`` the patient's current code is classified. Order matters:
    deactivation and revocation win over a mismatch, and a mismatch wins over expiry
    so a superseded code never reports as merely expired.
    """
    if not patient.is_active:
        return CodeState.DEACTIVATED
    if patient.code_status == CodeState.REVOKED.value:
        return CodeState.REVOKED
    if presented is not None and presented != patient.access_code:
        return CodeState.ROTATED
    if as_utc(now) > as_utc(patient.code_expiry):
        return CodeState.EXPIRED
    return CodeState.ACTIVE
