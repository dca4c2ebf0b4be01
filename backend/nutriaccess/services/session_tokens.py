import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import Response
from jose import JWTError, jwt
from pydantic import TypeAdapter, ValidationError as PydanticValidationError

from nutriaccess.config import (
    SECRET_KEY, ALGORITHM, SESSION_COOKIE_NAME, SESSION_EXPIRE_HOURS,
    SESSION_COOKIE_SECURE, IDENTITY_TOKEN_EXPIRE_MINUTES,
)
from nutriaccess.schemas import SessionPayload

logger = logging.getLogger(__name__)

SESSION_SCOPE = "session"
IDENTITY_SCOPE = "identity"

_session_adapter = TypeAdapter(SessionPayload)


def _encode(claims: dict, expires_delta: timedelta, scope: str) -> str:
    to_encode = claims.copy()
    now = datetime.now(timezone.utc)
    to_encode.update({"iat": now, "exp": now + expires_delta, "scope": scope})
    return jwt.encode(to_encode, SECRET_KEY, algorithm=ALGORITHM)


def _decode(token: str, scope: str) -> Optional[dict]:
    try:
        payload = jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
    except JWTError:
        return None
    if payload.get("scope") != scope:  # 용도(scope) 확인
        return None
    return payload


# ── 서버 측 세션 (쿠키) ──────────────────────────────────────────────

def encode_session(payload: SessionPayload) -> str:
    return _encode(
        {"session": payload.model_dump(mode="json")},
        timedelta(hours=SESSION_EXPIRE_HOURS),
        SESSION_SCOPE,
    )


def decode_session(token: Optional[str]) -> Optional[SessionPayload]:
    """Return the session payload, or None for a missing, forged, expired or malformed token."""
    if not token:
        return None
    claims = _decode(token, SESSION_SCOPE)
    if claims is None:
        return None
    try:
        return _session_adapter.validate_python(claims.get("session"))
    except PydanticValidationError:
        logger.warning("Discarding session cookie with an unreadable payload")
        return None


def set_session_cookie(response: Response, payload: SessionPayload) -> None:
    response.set_cookie(
        key=SESSION_COOKIE_NAME,
        value=encode_session(payload),
        max_age=SESSION_EXPIRE_HOURS * 3600,
        httponly=True,
        secure=SESSION_COOKIE_SECURE,
        samesite="lax",
    )


def clear_session_cookie(response: Response) -> None:
    response.delete_cookie(
        key=SESSION_COOKIE_NAME, httponly=True, secure=SESSION_COOKIE_SECURE, samesite="lax"
    )


# ── 외부 인증 identity 토큰 ──────────────────────────────────────────

def create_identity_token(subject_id: str, expires_delta: Optional[timedelta] = None) -> str:
    return _encode(
        {"sub": subject_id},
        expires_delta or timedelta(minutes=IDENTITY_TOKEN_EXPIRE_MINUTES),
        IDENTITY_SCOPE,
    )


def decode_identity_token(token: Optional[str]) -> Optional[str]:
    """Return the subject id carried by an identity token, or None."""
    if not token:
        return None
    claims = _decode(token, IDENTITY_SCOPE)
    if claims is None:
        return None
    subject = claims.get("sub")
    if not isinstance(subject, str) or not subject:
        return None
    return subject
