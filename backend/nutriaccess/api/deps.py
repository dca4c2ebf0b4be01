from datetime import datetime
from typing import Annotated

from fastapi import Depends, Path, Request
from sqlalchemy.ext.asyncio import AsyncSession

from nutriaccess.db import get_db
from nutriaccess.errors import AuthenticationFailure, AuthorizationFailure, InvalidOrExpiredCode
from nutriaccess.models import MAX_ID
from nutriaccess.services import professional_authority
from nutriaccess.services.access_codes import utcnow
from nutriaccess.services.identity import (
    ActorKind, Credentials, Identity, resolve, client_address,
    PATIENT_CHANNELS, PROFESSIONAL_CHANNELS, EITHER_CHANNELS,
)
from nutriaccess.services.rate_limit import code_attempts
from nutriaccess.services.session_tokens import decode_identity_token

# 경로의 DB id (범위를 벗어나면 400)
RowId = Annotated[int, Path(ge=1, le=MAX_ID)]


def get_now() -> datetime:
    """현재 시각 (UTC). 테스트에서 override 합니다."""
    return utcnow()


async def _gate(request: Request, db: AsyncSession, now: datetime, channels) -> Identity:
    identity = await resolve(channels, Credentials.from_request(request), db, now)
    request.state.identity = identity
    return identity


async def require_patient(
    request: Request, db: AsyncSession = Depends(get_db), now: datetime = Depends(get_now)
) -> Identity:
    return await _gate(request, db, now, PATIENT_CHANNELS)


async def require_professional(
    request: Request, db: AsyncSession = Depends(get_db), now: datetime = Depends(get_now)
) -> Identity:
    return await _gate(request, db, now, PROFESSIONAL_CHANNELS)


async def require_either(
    request: Request, db: AsyncSession = Depends(get_db), now: datetime = Depends(get_now)
) -> Identity:
    return await _gate(request, db, now, EITHER_CHANNELS)


async def require_professional_path_code(
    code: str, request: Request, db: AsyncSession = Depends(get_db)
) -> Identity:
    """/professional/patients/{code} 처럼 경로에 전문가 코드가 들어오는 경우"""
    key = client_key(request)
    code_attempts.check(key)
    try:
        professional = await professional_authority.validate_code(db, code)
    except InvalidOrExpiredCode:
        code_attempts.record_failure(key)
        raise AuthenticationFailure()
    identity = Identity(ActorKind.PROFESSIONAL, professional, "path")
    request.state.identity = identity
    return identity


def require_external_subject(request: Request) -> str:
    """Bearer identity 토큰의 subject id. 없거나 잘못되면 401."""
    subject_id = decode_identity_token(Credentials.from_request(request).bearer_token)
    if subject_id is None:
        raise AuthenticationFailure()
    return subject_id


def ensure_own_patient(identity: Identity, patient_id: int) -> None:
    """환자는 자기 자신의 데이터만 볼 수 있습니다."""
    if identity.is_patient and identity.actor_id != patient_id:
        raise AuthorizationFailure()


def client_key(request: Request) -> str:
    return client_address(request)
