import logging
from datetime import datetime

from fastapi import APIRouter, Depends, Request
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from nutriaccess.api.deps import require_external_subject, get_now, client_key
from nutriaccess.db import get_db
from nutriaccess.errors import ConflictError, InvalidOrExpiredCode, NotFoundError, ValidationError
from nutriaccess.models import ExternalUser
from nutriaccess.schemas import (
    KakaoLoginRequest, IdentityToken, ExternalUserPublic, AccessCodeReq, PatientLinkResp,
)
from nutriaccess.services import kakao_client, patient_authority
from nutriaccess.services.rate_limit import code_attempts
from nutriaccess.services.session_tokens import create_identity_token

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])


async def upsert_external_user(db: AsyncSession, profile: kakao_client.ExternalProfile) -> ExternalUser:
    user = await db.get(ExternalUser, profile.subject_id)
    if user is None:
        user = ExternalUser(id=profile.subject_id, email=profile.email, name=profile.name)
        db.add(user)
    else:
        user.email = profile.email or user.email
        user.name = profile.name or user.name
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise ConflictError("Email already registered by another account")
    return user


@router.post("/kakao", response_model=IdentityToken)
async def login_with_kakao(req: KakaoLoginRequest, db: AsyncSession = Depends(get_db)):
    """
    카카오 인가 코드를 교환해 외부 인증 주체를 확인하고 identity 토큰을 발급합니다.
    이 토큰은 환자/전문가 식별 채널(Authorization: Bearer)로 사용됩니다.
    """
    profile = await kakao_client.exchange_code(req.code, req.redirect_uri)
    user = await upsert_external_user(db, profile)
    logger.info("External identity %s signed in", user.id)
    return IdentityToken(access_token=create_identity_token(user.id), subject_id=user.id)


@router.get("/user", response_model=ExternalUserPublic)
async def get_external_user(
    subject_id: str = Depends(require_external_subject),
    db: AsyncSession = Depends(get_db),
):
    user = await db.get(ExternalUser, subject_id)
    if user is None:
        raise NotFoundError("User not found")
    return user


@router.post("/link-patient", response_model=PatientLinkResp)
async def link_patient(
    req: AccessCodeReq,
    request: Request,
    subject_id: str = Depends(require_external_subject),
    db: AsyncSession = Depends(get_db),
    now: datetime = Depends(get_now),
):
    """접근 코드로 환자를 확인하고 로그인한 외부 인증 주체와 연결합니다."""
    if not req.access_code:
        raise ValidationError("Access code required")

    key = client_key(request)
    code_attempts.check(key)
    try:
        patient = await patient_authority.validate_code(db, req.access_code, now)
    except InvalidOrExpiredCode:
        code_attempts.record_failure(key)
        raise
    code_attempts.reset(key)

    if await db.get(ExternalUser, subject_id) is None:
        raise NotFoundError("User not found")

    patient = await patient_authority.link_to_identity(db, patient.id, subject_id)
    return {"patient": patient}
