"""Identity resolution over the credential channels a request may carry.

A channel is an async function ``(credentials, db, now) -> Identity | None``. ``None``
is a miss: the channel was absent, malformed or did not check out against the store,
and the resolver moves on to the next channel in the chain. Every channel
re-derives trust from the store; payloads carried by the client are never
authoritative on their own. Channels that compare a presented code count
mismatches against the failed-attempt limiter, so header guessing is throttled
like the validate endpoints.
"""
from __future__ import annotations

import enum
import json
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Awaitable, Callable, Optional, Sequence, Union

from fastapi import Request
from fastapi.security.utils import get_authorization_scheme_param
from sqlalchemy.ext.asyncio import AsyncSession

from nutriaccess.config import SESSION_COOKIE_NAME
from nutriaccess.errors import AuthenticationFailure, InvalidOrExpiredCode
from nutriaccess.models import MAX_ID, Patient, Professional
from nutriaccess.schemas import PatientSession, ProfessionalSession
from nutriaccess.services import patient_authority, professional_authority
from nutriaccess.services.rate_limit import code_attempts
from nutriaccess.services.session_tokens import decode_identity_token, decode_session

logger = logging.getLogger(__name__)

PATIENT_SESSION_HEADER = "x-patient-session"
PROFESSIONAL_CODE_HEADER = "x-professional-code"


def client_address(request: Request) -> str:
    return request.client.host if request.client else "unknown"


class ActorKind(str, enum.Enum):
    PATIENT = "patient"
    PROFESSIONAL = "professional"


@dataclass(frozen=True)
class Credentials:
    bearer_token: Optional[str] = None
    session_token: Optional[str] = None
    patient_header: Optional[str] = None
    professional_code: Optional[str] = None
    client_key: str = "unknown"

    @classmethod
    def from_request(cls, request: Request) -> "Credentials":
        scheme, param = get_authorization_scheme_param(request.headers.get("authorization"))
        return cls(
            bearer_token=param if scheme.lower() == "bearer" and param else None,
            session_token=request.cookies.get(SESSION_COOKIE_NAME),
            patient_header=request.headers.get(PATIENT_SESSION_HEADER),
            professional_code=request.headers.get(PROFESSIONAL_CODE_HEADER),
            client_key=client_address(request),
        )


@dataclass(frozen=True)
class Identity:
    kind: ActorKind
    actor: Union[Patient, Professional]
    channel: str

    @property
    def actor_id(self) -> int:
        return self.actor.id

    @property
    def is_patient(self) -> bool:
        return self.kind is ActorKind.PATIENT


Channel = Callable[[Credentials, AsyncSession, datetime], Awaitable[Optional[Identity]]]


def parse_patient_header(raw: Optional[str]):
    """``{"patientId": 1, "accessCode": "..."}`` -> (1, "...") or None when malformed."""
    if not raw:
        return None
    try:
        data = json.loads(raw)
    except ValueError:
        return None
    if not isinstance(data, dict):
        return None
    patient_id, code = data.get("patientId"), data.get("accessCode")
    if isinstance(patient_id, bool) or not isinstance(code, str) or not code:
        return None
    if isinstance(patient_id, str) and patient_id.isdigit():
        patient_id = int(patient_id)
    if not isinstance(patient_id, int) or not (1 <= patient_id <= MAX_ID):
        return None
    return patient_id, code


# ── 환자 채널 ────────────────────────────────────────────────────────

async def patient_from_external_identity(creds: Credentials, db: AsyncSession, now: datetime) -> Optional[Identity]:
    subject_id = decode_identity_token(creds.bearer_token)
    if subject_id is None:
        return None
    patient = await patient_authority.find_by_subject_id(db, subject_id, now)
    if patient is None:
        return None
    return Identity(ActorKind.PATIENT, patient, "external_identity")


async def patient_from_session(creds: Credentials, db: AsyncSession, now: datetime) -> Optional[Identity]:
    session = decode_session(creds.session_token)
    if not isinstance(session, PatientSession):
        return None
    try:
        patient = await patient_authority.revalidate_session(db, session.patient, now)
    except InvalidOrExpiredCode:
        logger.info("Stale patient session for patient %s", session.patient.id)
        return None
    return Identity(ActorKind.PATIENT, patient, "session")


async def patient_from_header(creds: Credentials, db: AsyncSession, now: datetime) -> Optional[Identity]:
    parsed = parse_patient_header(creds.patient_header)
    if parsed is None:
        return None
    patient_id, code = parsed
    code_attempts.check(creds.client_key)
    try:
        patient = await patient_authority.check_presented_code(db, patient_id, code, now)
    except InvalidOrExpiredCode:
        code_attempts.record_failure(creds.client_key)
        return None
    return Identity(ActorKind.PATIENT, patient, "header")


# ── 전문가 채널 ──────────────────────────────────────────────────────

async def professional_from_header(creds: Credentials, db: AsyncSession, now: datetime) -> Optional[Identity]:
    if not creds.professional_code:
        return None
    code_attempts.check(creds.client_key)
    try:
        professional = await professional_authority.validate_code(db, creds.professional_code)
    except InvalidOrExpiredCode:
        code_attempts.record_failure(creds.client_key)
        return None
    return Identity(ActorKind.PROFESSIONAL, professional, "header")


async def professional_from_session(creds: Credentials, db: AsyncSession, now: datetime) -> Optional[Identity]:
    session = decode_session(creds.session_token)
    if not isinstance(session, ProfessionalSession):
        return None
    try:
        professional = await professional_authority.revalidate_session(db, session)
    except InvalidOrExpiredCode:
        logger.info("Stale professional session for professional %s", session.id)
        return None
    return Identity(ActorKind.PROFESSIONAL, professional, "session")


async def professional_from_external_identity(creds: Credentials, db: AsyncSession, now: datetime) -> Optional[Identity]:
    subject_id = decode_identity_token(creds.bearer_token)
    if subject_id is None:
        return None
    professional = await professional_authority.find_by_subject_id(db, subject_id)
    if professional is None or not professional.is_active:
        return None
    return Identity(ActorKind.PROFESSIONAL, professional, "external_identity")


PATIENT_CHANNELS: Sequence[Channel] = (
    patient_from_external_identity,
    patient_from_session,
    patient_from_header,
)

PROFESSIONAL_CHANNELS: Sequence[Channel] = (
    professional_from_header,
    professional_from_session,
    professional_from_external_identity,
)

EITHER_CHANNELS: Sequence[Channel] = tuple(PROFESSIONAL_CHANNELS) + tuple(PATIENT_CHANNELS)


async def resolve(channels: Sequence[Channel], creds: Credentials, db: AsyncSession, now: datetime) -> Identity:
    """First channel that yields an identity wins; no channel at all is a 401."""
    for channel in channels:
        identity = await channel(creds, db, now)
        if identity is not None:
            return identity
    raise AuthenticationFailure()
