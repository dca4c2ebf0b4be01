from __future__ import annotations
import logging
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, Request, Response
from sqlalchemy import select, desc
from sqlalchemy.ext.asyncio import AsyncSession

from nutriaccess.api.deps import RowId, require_patient, get_now, ensure_own_patient, client_key
from nutriaccess.db import get_db
from nutriaccess.errors import ExpiredCredential, NotFoundError, ValidationError
from nutriaccess.models import MoodEntry, IntermittentFasting
from nutriaccess.schemas import (
    AccessCodeReq, PatientValidateResp, PatientPublic, PatientCurrentResp, PatientSessionData,
    PatientSession, WeightRecordOut, MoodEntryCreate, MoodEntryOut, IntermittentFastingOut, MessageResp,
)
from nutriaccess.services import patient_authority
from nutriaccess.services.access_codes import CodeState, mask_code
from nutriaccess.services.identity import Identity
from nutriaccess.services.rate_limit import code_attempts
from nutriaccess.services.session_tokens import set_session_cookie, clear_session_cookie

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/patient", tags=["patient"])


@router.post("/validate", response_model=PatientValidateResp)
async def validate_patient_code(
    req: AccessCodeReq,
    request: Request,
    response: Response,
    db: AsyncSession = Depends(get_db),
    now: datetime = Depends(get_now),
):
    """
    환자 접근 코드를 검증하고 세션 쿠키를 발급합니다.
    만료된 코드만 410, 그 외(없음/폐기/회전됨/비활성)는 모두 404 입니다.
    """
    if not req.access_code:
        raise ValidationError("Access code required")

    key = client_key(request)
    code_attempts.check(key)

    patient, state = await patient_authority.inspect_code(db, req.access_code, now)
    if state is not CodeState.ACTIVE:
        code_attempts.record_failure(key)
        logger.info("Patient code %s rejected (%s)", mask_code(req.access_code), state.value)
        if state is CodeState.EXPIRED:
            raise ExpiredCredential()
        raise NotFoundError("Invalid access code")

    code_attempts.reset(key)
    set_session_cookie(
        response,
        PatientSession(patient=PatientSessionData.model_validate(patient), login_time=now),
    )
    return PatientValidateResp(valid=True, patient=PatientPublic.model_validate(patient))


@router.get("/current", response_model=PatientCurrentResp)
async def get_current_patient(identity: Identity = Depends(require_patient)):
    return {"patient": identity.actor}


@router.post("/logout", response_model=MessageResp)
async def logout_patient(response: Response):
    clear_session_cookie(response)
    return {"message": "Logged out"}


# ── 체중 기록 조회 ───────────────────────────────────────────────────

@router.get("/weight-history", response_model=List[WeightRecordOut])
async def get_my_weight_history(
    identity: Identity = Depends(require_patient),
    db: AsyncSession = Depends(get_db),
):
    return await patient_authority.weight_history(db, identity.actor_id)


@router.get("/weight-history/{patient_id}", response_model=List[WeightRecordOut])
async def get_weight_history_by_id(
    patient_id: RowId,
    identity: Identity = Depends(require_patient),
    db: AsyncSession = Depends(get_db),
):
    ensure_own_patient(identity, patient_id)
    return await patient_authority.weight_history(db, patient_id)


# ── 기분 기록 ────────────────────────────────────────────────────────

@router.get("/mood-entries", response_model=List[MoodEntryOut])
async def list_mood_entries(
    identity: Identity = Depends(require_patient),
    db: AsyncSession = Depends(get_db),
):
    q = (
        select(MoodEntry)
        .where(MoodEntry.patient_id == identity.actor_id)
        .order_by(desc(MoodEntry.recorded_date), desc(MoodEntry.id))
    )
    return (await db.execute(q)).scalars().all()


@router.post("/mood-entries", response_model=MoodEntryOut)
async def create_mood_entry(
    req: MoodEntryCreate,
    identity: Identity = Depends(require_patient),
    db: AsyncSession = Depends(get_db),
    now: datetime = Depends(get_now),
):
    levels = (req.mood_level, req.energy_level, req.motivation_level)
    if any(level is None for level in levels):
        raise ValidationError("Mood, energy and motivation levels are required")
    if any(not (1 <= level <= 5) for level in levels):
        raise ValidationError("Levels must be between 1 and 5")

    entry = MoodEntry(
        patient_id=identity.actor_id,
        mood_level=req.mood_level,
        energy_level=req.energy_level,
        motivation_level=req.motivation_level,
        notes=req.notes or None,
        tags=req.tags or [],
        recorded_date=now,
        created_at=now,
    )
    db.add(entry)
    await db.commit()
    await db.refresh(entry)
    return entry


@router.get("/mood-entries/recent", response_model=MoodEntryOut)
async def get_recent_mood_entry(
    identity: Identity = Depends(require_patient),
    db: AsyncSession = Depends(get_db),
):
    q = (
        select(MoodEntry)
        .where(MoodEntry.patient_id == identity.actor_id)
        .order_by(desc(MoodEntry.recorded_date), desc(MoodEntry.id))
        .limit(1)
    )
    entry = (await db.execute(q)).scalar_one_or_none()
    if entry is None:
        raise NotFoundError("No mood entries found")
    return entry


# ── 간헐적 단식 ──────────────────────────────────────────────────────

@router.get("/intermittent-fasting", response_model=Optional[IntermittentFastingOut])
async def get_intermittent_fasting(
    identity: Identity = Depends(require_patient),
    db: AsyncSession = Depends(get_db),
):
    q = (
        select(IntermittentFasting)
        .where(
            IntermittentFasting.patient_id == identity.actor_id,
            IntermittentFasting.is_active == True,  # noqa: E712
        )
        .order_by(desc(IntermittentFasting.created_at))
        .limit(1)
    )
    return (await db.execute(q)).scalar_one_or_none()
