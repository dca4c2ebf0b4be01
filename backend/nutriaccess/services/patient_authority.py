"""Patient access-code authority.

Everything that reads or changes a patient's access code goes through here. Writes
that issue a fresh code run as one unit of work and are retried from scratch when
the unique constraint on ``access_code`` rejects the generated value.
"""
from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Awaitable, Callable, Optional, Tuple, TypeVar

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from nutriaccess.config import CODE_WRITE_ATTEMPTS, MIN_WEIGHT_KG, MAX_WEIGHT_KG
from nutriaccess.errors import (
    ClinicError, ConflictError, InternalError, InvalidOrExpiredCode, NotFoundError, ValidationError,
)
from nutriaccess.models import Patient, WeightRecord
from nutriaccess.schemas import PatientSessionData
from nutriaccess.services import access_codes
from nutriaccess.services.access_codes import CodeState, code_state, mask_code, new_expiry

logger = logging.getLogger(__name__)

T = TypeVar("T")

INITIAL_WEIGHT_NOTE = "Initial weight recorded at patient creation"


def check_weight(value, field: str = "weight") -> float:
    """Weight in kg, inclusive bounds [10, 500], rounded to 2 decimals."""
    try:
        weight = float(value)
    except (TypeError, ValueError):
        raise ValidationError(f"Invalid {field}: must be between {MIN_WEIGHT_KG} and {MAX_WEIGHT_KG} kg")
    if not (MIN_WEIGHT_KG <= weight <= MAX_WEIGHT_KG):
        raise ValidationError(f"Invalid {field}: must be between {MIN_WEIGHT_KG} and {MAX_WEIGHT_KG} kg")
    return round(weight, 2)


def check_diet_level(value) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or not (1 <= value <= 5):
        raise ValidationError("Diet level must be an integer between 1 and 5")
    return value


async def _load_patient(db: AsyncSession, patient_id: int, lock: bool = False) -> Patient:
    q = select(Patient).where(Patient.id == patient_id)
    if lock:
        q = q.with_for_update()
    patient = (await db.execute(q)).scalar_one_or_none()
    if patient is None or not patient.is_active:
        raise NotFoundError("Patient not found")
    return patient


async def get_patient(db: AsyncSession, patient_id: int) -> Patient:
    return await _load_patient(db, patient_id)


async def weight_history(db: AsyncSession, patient_id: int) -> list[WeightRecord]:
    q = (
        select(WeightRecord)
        .where(WeightRecord.patient_id == patient_id)
        .order_by(WeightRecord.created_at.asc(), WeightRecord.id.asc())
    )
    return list((await db.execute(q)).scalars().all())


def _rotate(patient: Patient, now: datetime) -> str:
    code = access_codes.generate_access_code()
    patient.access_code = code
    patient.code_expiry = new_expiry(now)
    patient.code_status = CodeState.ACTIVE.value
    return code


async def _commit_unit(db: AsyncSession, unit: Callable[[], Awaitable[T]], action: str) -> T:
    """Run ``unit`` and commit. Both halves of the unit land together or not at all."""
    for attempt in range(1, CODE_WRITE_ATTEMPTS + 1):
        try:
            result = await unit()
            await db.commit()
            return result
        except IntegrityError:
            await db.rollback()
            logger.warning("%s: access code collision, retrying (%d/%d)", action, attempt, CODE_WRITE_ATTEMPTS)
        except ClinicError:
            await db.rollback()
            raise
        except Exception as e:
            await db.rollback()
            logger.exception("%s failed, transaction rolled back", action)
            raise InternalError(f"{action} failed") from e
    raise InternalError(f"{action} failed: could not allocate a unique access code")


# ── 검증 ─────────────────────────────────────────────────────────────

async def inspect_code(db: AsyncSession, code: str, now: datetime) -> Tuple[Optional[Patient], CodeState]:
    """Look a code up by exact match and classify it. Unknown codes report as ROTATED."""
    patient = (
        await db.execute(select(Patient).where(Patient.access_code == code))
    ).scalar_one_or_none()
    if patient is None:
        return None, CodeState.ROTATED
    return patient, code_state(patient, now, presented=code)


async def validate_code(db: AsyncSession, code: str, now: datetime) -> Patient:
    patient, state = await inspect_code(db, code, now)
    if state is not CodeState.ACTIVE:
        raise InvalidOrExpiredCode()
    return patient


async def check_presented_code(db: AsyncSession, patient_id: int, code: str, now: datetime) -> Patient:
    """Patient id + code pair as carried by the header channel and the session cookie."""
    patient = await db.get(Patient, patient_id)
    if patient is None or code_state(patient, now, presented=code) is not CodeState.ACTIVE:
        raise InvalidOrExpiredCode()
    return patient


async def revalidate_session(db: AsyncSession, data: PatientSessionData, now: datetime) -> Patient:
    return await check_presented_code(db, data.id, data.access_code, now)


async def find_by_subject_id(db: AsyncSession, subject_id: str, now: datetime) -> Optional[Patient]:
    patient = (
        await db.execute(select(Patient).where(Patient.subject_id == subject_id))
    ).scalar_one_or_none()
    if patient is None or code_state(patient, now) is not CodeState.ACTIVE:
        return None
    return patient


# ── 외부 인증 연결 ───────────────────────────────────────────────────

async def link_to_identity(db: AsyncSession, patient_id: int, subject_id: str) -> Patient:
    patient = await _load_patient(db, patient_id)
    if patient.subject_id == subject_id:
        return patient
    if patient.subject_id is not None:
        raise ConflictError("Patient is already linked to a different identity")

    other = (
        await db.execute(
            select(Patient.id).where(Patient.subject_id == subject_id, Patient.id != patient_id)
        )
    ).scalar_one_or_none()
    if other is not None:
        raise ConflictError("Identity is already linked to a different patient")

    patient.subject_id = subject_id
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise ConflictError("Identity is already linked to a different patient")
    logger.info("Patient %s linked to external identity", patient_id)
    return patient


# ── 생성 / 체중 기록(코드 회전) / 폐기 / 재발급 ──────────────────────

async def create_patient(db: AsyncSession, fields: dict, now: datetime) -> Tuple[Patient, str]:
    diet_level = check_diet_level(fields.get("diet_level", 1))
    initial_weight = fields.get("initial_weight")
    target_weight = fields.get("target_weight")
    if initial_weight is not None:
        initial_weight = check_weight(initial_weight, "initial weight")
    if target_weight is not None:
        target_weight = check_weight(target_weight, "target weight")

    async def unit():
        code = access_codes.generate_access_code()
        patient = Patient(
            name=fields["name"],
            age=fields.get("age"),
            height=fields.get("height"),
            initial_weight=initial_weight,
            target_weight=target_weight,
            diet_level=diet_level,
            medical_notes=fields.get("medical_notes"),
            access_code=code,
            code_expiry=new_expiry(now),
            code_status=CodeState.ACTIVE.value,
            is_active=True,
            created_at=now,
        )
        db.add(patient)
        await db.flush()
        if initial_weight is not None:
            db.add(WeightRecord(
                patient_id=patient.id,
                weight=initial_weight,
                notes=INITIAL_WEIGHT_NOTE,
                recorded_date=now,
                created_at=now,
            ))
            await db.flush()
        return patient, code

    patient, code = await _commit_unit(db, unit, "Create patient")
    logger.info("Patient %s created, code %s issued", patient.id, mask_code(code))
    return patient, code


async def record_weight(
    db: AsyncSession,
    patient_id: int,
    weight,
    now: datetime,
    target_weight=None,
    notes: Optional[str] = None,
) -> Tuple[WeightRecord, str]:
    """Record a weigh-in and rotate the patient's code in the same transaction.

    This is the only way to rotate a code: a weight record is never written without
    a new code, and a new code is never issued by a weigh-in that did not persist.
    """
    weight = check_weight(weight)
    if target_weight is not None:
        target_weight = check_weight(target_weight, "target weight")

    async def unit():
        patient = await _load_patient(db, patient_id, lock=True)
        if code_state(patient, now) is CodeState.REVOKED:
            raise ConflictError("Access code is revoked; issue a new code before recording weight")

        record = WeightRecord(
            patient_id=patient.id,
            weight=weight,
            notes=notes or None,
            recorded_date=now.replace(hour=12, minute=0, second=0, microsecond=0),
            created_at=now,
        )
        db.add(record)
        await db.flush()

        code = _rotate(patient, now)
        if target_weight is not None:
            patient.target_weight = target_weight
        await db.flush()
        return record, code

    record, code = await _commit_unit(db, unit, "Record weight")
    logger.info("Weight recorded for patient %s, code rotated to %s", patient_id, mask_code(code))
    return record, code


async def revoke_code(db: AsyncSession, patient_id: int, now: datetime) -> Patient:
    patient = await _load_patient(db, patient_id, lock=True)
    patient.access_code = access_codes.revoked_sentinel(patient.id)
    patient.code_expiry = now - timedelta(days=1)
    patient.code_status = CodeState.REVOKED.value
    await db.commit()
    logger.info("Access code revoked for patient %s", patient_id)
    return patient


async def reissue_code(db: AsyncSession, patient_id: int, now: datetime) -> Tuple[Patient, str]:
    async def unit():
        patient = await _load_patient(db, patient_id, lock=True)
        return patient, _rotate(patient, now)

    patient, code = await _commit_unit(db, unit, "Reissue code")
    logger.info("Access code reissued for patient %s (%s)", patient_id, mask_code(code))
    return patient, code


async def set_diet_level(db: AsyncSession, patient_id: int, diet_level) -> Patient:
    level = check_diet_level(diet_level)
    patient = await _load_patient(db, patient_id)
    patient.diet_level = level
    await db.commit()
    return patient


async def set_target_weight(db: AsyncSession, patient_id: int, target_weight) -> Patient:
    target = check_weight(target_weight, "target weight")
    patient = await _load_patient(db, patient_id)
    patient.target_weight = target
    await db.commit()
    return patient
