from __future__ import annotations
import logging
from datetime import datetime
from typing import List

from fastapi import APIRouter, Depends, Request, Response
from sqlalchemy import select, desc
from sqlalchemy.ext.asyncio import AsyncSession

from nutriaccess.api.deps import RowId, require_professional, require_professional_path_code, get_now, client_key
from nutriaccess.db import get_db
from nutriaccess.errors import InvalidOrExpiredCode, NotFoundError, ValidationError
from nutriaccess.models import Patient
from nutriaccess.schemas import (
    AccessCodeReq, ProfessionalValidateResp, ProfessionalProfileResp,
    ProfessionalSession, PatientPublic, PatientCreate, PatientCreateResp, WeightCreate,
    WeightCreateResp, WeightRecordOut, DietLevelUpdate, TargetWeightUpdate, TargetWeightResp,
    RevokeCodeResp, ReissueCodeResp, MessageResp,
)
from nutriaccess.services import patient_authority, professional_authority
from nutriaccess.services.access_codes import display_code
from nutriaccess.services.identity import Identity
from nutriaccess.services.rate_limit import code_attempts
from nutriaccess.services.session_tokens import set_session_cookie, clear_session_cookie

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/professional", tags=["professional"])


@router.post("/validate", response_model=ProfessionalValidateResp)
async def validate_professional_code(
    req: AccessCodeReq,
    request: Request,
    response: Response,
    db: AsyncSession = Depends(get_db),
    now: datetime = Depends(get_now),
):
    if not req.access_code:
        raise ValidationError("Access code required")

    key = client_key(request)
    code_attempts.check(key)
    try:
        professional = await professional_authority.validate_code(db, req.access_code)
    except InvalidOrExpiredCode:
        code_attempts.record_failure(key)
        raise NotFoundError("Invalid professional code")

    code_attempts.reset(key)
    set_session_cookie(
        response,
        ProfessionalSession(
            id=professional.id,
            name=professional.name,
            specialty=professional.specialty,
            license_number=professional.license_number,
            email=professional.email,
            access_code=professional.access_code,
            login_time=now,
        ),
    )
    logger.info("Professional %s signed in", professional.id)
    return {"valid": True, "professional": professional}


@router.get("/profile", response_model=ProfessionalProfileResp)
async def get_professional_profile(identity: Identity = Depends(require_professional)):
    return {"professional": identity.actor}


@router.post("/logout", response_model=MessageResp)
async def logout_professional(response: Response):
    clear_session_cookie(response)
    return {"message": "Logged out"}


# ── 환자 목록 / 생성 ─────────────────────────────────────────────────

async def _list_patients(db: AsyncSession):
    q = (
        select(Patient)
        .where(Patient.is_active == True)  # noqa: E712
        .order_by(desc(Patient.created_at), desc(Patient.id))
    )
    return (await db.execute(q)).scalars().all()


async def _create_patient(req: PatientCreate, identity: Identity, db: AsyncSession, now: datetime):
    patient, code = await patient_authority.create_patient(db, req.model_dump(), now)
    logger.info("Professional %s created patient %s", identity.actor_id, patient.id)
    return {"patient": patient, "access_code": code, "message": "Patient created"}


@router.get("/patients", response_model=List[PatientPublic])
async def list_patients(
    identity: Identity = Depends(require_professional),
    db: AsyncSession = Depends(get_db),
):
    return await _list_patients(db)


@router.post("/patients", response_model=PatientCreateResp)
async def create_patient(
    req: PatientCreate,
    identity: Identity = Depends(require_professional),
    db: AsyncSession = Depends(get_db),
    now: datetime = Depends(get_now),
):
    return await _create_patient(req, identity, db, now)


@router.get("/patients/{code}", response_model=List[PatientPublic])
async def list_patients_by_code(
    identity: Identity = Depends(require_professional_path_code),
    db: AsyncSession = Depends(get_db),
):
    """경로에 전문가 코드를 넣는 방식 (구 클라이언트 호환)"""
    return await _list_patients(db)


@router.post("/patients/{code}", response_model=PatientCreateResp)
async def create_patient_by_code(
    req: PatientCreate,
    identity: Identity = Depends(require_professional_path_code),
    db: AsyncSession = Depends(get_db),
    now: datetime = Depends(get_now),
):
    return await _create_patient(req, identity, db, now)


# ── 환자 상태 변경 ───────────────────────────────────────────────────

@router.post("/patients/{patient_id}/weight", response_model=WeightCreateResp)
async def add_weight_record(
    patient_id: RowId,
    req: WeightCreate,
    identity: Identity = Depends(require_professional),
    db: AsyncSession = Depends(get_db),
    now: datetime = Depends(get_now),
):
    """체중을 기록하면 환자의 접근 코드가 항상 새로 발급됩니다."""
    record, new_code = await patient_authority.record_weight(
        db, patient_id, req.weight, now, target_weight=req.target_weight, notes=req.notes
    )
    return {"weight_record": record, "new_access_code": new_code}


@router.patch("/patients/{patient_id}/diet-level", response_model=MessageResp)
async def update_diet_level(
    patient_id: RowId,
    req: DietLevelUpdate,
    identity: Identity = Depends(require_professional),
    db: AsyncSession = Depends(get_db),
):
    await patient_authority.set_diet_level(db, patient_id, req.diet_level)
    return {"message": "Diet level updated"}


@router.patch("/patients/{patient_id}/target-weight", response_model=TargetWeightResp)
async def update_target_weight(
    patient_id: RowId,
    req: TargetWeightUpdate,
    identity: Identity = Depends(require_professional),
    db: AsyncSession = Depends(get_db),
):
    patient = await patient_authority.set_target_weight(db, patient_id, req.target_weight)
    return {"patient_id": patient.id, "new_target_weight": patient.target_weight}


@router.patch("/patients/{patient_id}/revoke-code", response_model=RevokeCodeResp)
async def revoke_access_code(
    patient_id: RowId,
    identity: Identity = Depends(require_professional),
    db: AsyncSession = Depends(get_db),
    now: datetime = Depends(get_now),
):
    patient = await patient_authority.revoke_code(db, patient_id, now)
    logger.info("Professional %s revoked the code of patient %s", identity.actor_id, patient_id)
    return {"access_code": display_code(patient.access_code), "revoked_at": now}


@router.post("/patients/{patient_id}/reissue-code", response_model=ReissueCodeResp)
async def reissue_access_code(
    patient_id: RowId,
    identity: Identity = Depends(require_professional),
    db: AsyncSession = Depends(get_db),
    now: datetime = Depends(get_now),
):
    patient, code = await patient_authority.reissue_code(db, patient_id, now)
    return {"access_code": code, "code_expiry": patient.code_expiry}


@router.get("/patients/{patient_id}/weight-history", response_model=List[WeightRecordOut])
async def get_patient_weight_history(
    patient_id: RowId,
    identity: Identity = Depends(require_professional),
    db: AsyncSession = Depends(get_db),
):
    await patient_authority.get_patient(db, patient_id)
    return await patient_authority.weight_history(db, patient_id)
