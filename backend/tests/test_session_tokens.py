from datetime import datetime, timedelta, timezone

from jose import jwt

from nutriaccess.config import SECRET_KEY, ALGORITHM
from nutriaccess.schemas import PatientSession, PatientSessionData, ProfessionalSession
from nutriaccess.services.session_tokens import (
    create_identity_token, decode_identity_token, decode_session, encode_session,
)

LOGIN = datetime(2026, 1, 5, 9, 0, tzinfo=timezone.utc)


def patient_session():
    data = PatientSessionData(
        id=3, name="Maria Lopez", diet_level=2, access_code="ABCD1234",
        code_expiry=LOGIN + timedelta(days=30), target_weight=70.5,
    )
    return PatientSession(patient=data, login_time=LOGIN)


def test_patient_session_round_trips_as_patient_variant():
    decoded = decode_session(encode_session(patient_session()))
    assert isinstance(decoded, PatientSession)
    assert decoded.patient.id == 3
    assert decoded.patient.access_code == "ABCD1234"


def test_professional_session_is_discriminated():
    session = ProfessionalSession(id=1, name="Dra. Laura Garcia", access_code="NUTRIPRO2024", login_time=LOGIN)
    assert isinstance(decode_session(encode_session(session)), ProfessionalSession)


def test_forged_or_garbage_cookies_are_ignored():
    token = encode_session(patient_session())
    assert decode_session(token + "x") is None
    assert decode_session("not-a-jwt") is None
    assert decode_session(None) is None

    forged = jwt.encode({"session": {"kind": "patient"}, "scope": "session"}, "wrong-key", algorithm=ALGORITHM)
    assert decode_session(forged) is None


def test_unreadable_payload_is_ignored():
    token = jwt.encode({"session": {"kind": "admin", "id": 1}, "scope": "session"}, SECRET_KEY, algorithm=ALGORITHM)
    assert decode_session(token) is None


def test_scopes_are_not_interchangeable():
    identity = create_identity_token("kakao:42")
    assert decode_identity_token(identity) == "kakao:42"
    assert decode_session(identity) is None
    assert decode_identity_token(encode_session(patient_session())) is None


def test_expired_identity_token_is_rejected():
    token = create_identity_token("kakao:42", expires_delta=timedelta(seconds=-5))
    assert decode_identity_token(token) is None
