from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import func, select

from nutriaccess.errors import ConflictError, InternalError, InvalidOrExpiredCode, NotFoundError, ValidationError
from nutriaccess.models import ExternalUser, Patient, WeightRecord
from nutriaccess.services import access_codes, patient_authority
from nutriaccess.services.access_codes import CodeState, as_utc

T0 = datetime(2026, 1, 5, 9, 0, tzinfo=timezone.utc)


def create(run, now=T0, **fields):
    fields.setdefault("name", "Maria Lopez")

    async def go(db):
        return await patient_authority.create_patient(db, fields, now)

    patient, code = run(go)
    return patient.id, code


def record_count(run, patient_id):
    async def go(db):
        q = select(func.count()).select_from(WeightRecord).where(WeightRecord.patient_id == patient_id)
        return (await db.execute(q)).scalar_one()

    return run(go)


def load(run, patient_id):
    return run(lambda db: db.get(Patient, patient_id))


@pytest.mark.parametrize("value", [10, 500, 72.456])
def test_weight_bounds_accept(value):
    assert patient_authority.check_weight(value) == round(value, 2)


@pytest.mark.parametrize("value", [9.99, 500.01, "heavy", None])
def test_weight_bounds_reject(value):
    with pytest.raises(ValidationError):
        patient_authority.check_weight(value)


@pytest.mark.parametrize("value", [0, 6, "2", True, 1.5])
def test_diet_level_rejects(value):
    with pytest.raises(ValidationError):
        patient_authority.check_diet_level(value)


def test_create_patient_records_initial_weight(run):
    patient_id, code = create(run, initial_weight=82.5, target_weight=70)

    patient = load(run, patient_id)
    assert patient.access_code == code
    assert access_codes.is_generated_code(code)
    assert as_utc(patient.code_expiry) == T0 + timedelta(days=30)
    assert patient.initial_weight == 82.5

    history = run(lambda db: patient_authority.weight_history(db, patient_id))
    assert [r.weight for r in history] == [82.5]
    assert history[0].notes == patient_authority.INITIAL_WEIGHT_NOTE


def test_create_patient_without_weight_has_empty_history(run):
    patient_id, _ = create(run)
    assert record_count(run, patient_id) == 0


def test_weigh_in_after_ten_days_rotates_code(run):
    patient_id, first_code = create(run, initial_weight=80)
    later = T0 + timedelta(days=10)

    async def weigh(db):
        return await patient_authority.record_weight(db, patient_id, 78.2, later, notes="control")

    record, new_code = run(weigh)
    assert record.weight == 78.2
    assert new_code != first_code

    patient = load(run, patient_id)
    assert patient.access_code == new_code
    assert as_utc(patient.code_expiry) == later + timedelta(days=30)

    old = run(lambda db: patient_authority.inspect_code(db, first_code, later))
    assert old == (None, CodeState.ROTATED)
    validated = run(lambda db: patient_authority.validate_code(db, new_code, later))
    assert validated.id == patient_id

    history = run(lambda db: patient_authority.weight_history(db, patient_id))
    assert [r.weight for r in history] == [80, 78.2]


def test_weigh_in_updates_target_weight(run):
    patient_id, _ = create(run, target_weight=75)
    run(lambda db: patient_authority.record_weight(db, patient_id, 90, T0, target_weight=72))
    assert load(run, patient_id).target_weight == 72


def test_invalid_weight_changes_nothing(run):
    patient_id, code = create(run)
    with pytest.raises(ValidationError):
        run(lambda db: patient_authority.record_weight(db, patient_id, 9.99, T0))
    assert load(run, patient_id).access_code == code
    assert record_count(run, patient_id) == 0


def test_generator_failure_rolls_back_weight_record(run, monkeypatch):
    patient_id, code = create(run, initial_weight=80)

    def broken():
        raise RuntimeError("entropy source unavailable")

    monkeypatch.setattr(access_codes, "generate_access_code", broken)
    with pytest.raises(InternalError):
        run(lambda db: patient_authority.record_weight(db, patient_id, 79, T0 + timedelta(days=1)))

    assert record_count(run, patient_id) == 1
    assert load(run, patient_id).access_code == code


def test_code_collision_is_retried(run, monkeypatch):
    _, taken = create(run, name="Ana")
    patient_id, _ = create(run, name="Luis")

    codes = iter([taken, "FRESH001"])
    monkeypatch.setattr(access_codes, "generate_access_code", lambda: next(codes))

    record, new_code = run(lambda db: patient_authority.record_weight(db, patient_id, 70, T0))
    assert new_code == "FRESH001"
    assert load(run, patient_id).access_code == "FRESH001"
    assert record_count(run, patient_id) == 1


def test_collision_retries_are_bounded(run, monkeypatch):
    _, taken = create(run, name="Ana")
    patient_id, code = create(run, name="Luis")

    monkeypatch.setattr(access_codes, "generate_access_code", lambda: taken)
    with pytest.raises(InternalError):
        run(lambda db: patient_authority.record_weight(db, patient_id, 70, T0))
    assert load(run, patient_id).access_code == code
    assert record_count(run, patient_id) == 0


def test_revoke_then_reissue(run):
    patient_id, code = create(run)
    later = T0 + timedelta(days=2)

    revoked = run(lambda db: patient_authority.revoke_code(db, patient_id, later))
    assert revoked.access_code == f"ANULADO-{patient_id}"
    assert revoked.code_status == "REVOKED"
    assert as_utc(revoked.code_expiry) < later

    with pytest.raises(InvalidOrExpiredCode):
        run(lambda db: patient_authority.validate_code(db, code, later))
    assert run(lambda db: patient_authority.inspect_code(db, "ANULADO", later)) == (None, CodeState.ROTATED)
    with pytest.raises(ConflictError):
        run(lambda db: patient_authority.record_weight(db, patient_id, 70, later))

    patient, new_code = run(lambda db: patient_authority.reissue_code(db, patient_id, later))
    assert patient.code_status == "ACTIVE"
    assert run(lambda db: patient_authority.validate_code(db, new_code, later)).id == patient_id
    with pytest.raises(InvalidOrExpiredCode):
        run(lambda db: patient_authority.validate_code(db, code, later))


def test_many_patients_can_be_revoked(run):
    ids = [create(run, name=f"Paciente {i}")[0] for i in range(3)]
    for pid in ids:
        run(lambda db, pid=pid: patient_authority.revoke_code(db, pid, T0))
    assert {load(run, pid).access_code for pid in ids} == {f"ANULADO-{pid}" for pid in ids}


def test_expired_code_inspects_as_expired(run):
    patient_id, code = create(run)
    patient, state = run(lambda db: patient_authority.inspect_code(db, code, T0 + timedelta(days=31)))
    assert patient.id == patient_id
    assert state is CodeState.EXPIRED


def test_unknown_patient_is_not_found(run):
    with pytest.raises(NotFoundError):
        run(lambda db: patient_authority.record_weight(db, 999, 70, T0))
    with pytest.raises(NotFoundError):
        run(lambda db: patient_authority.set_diet_level(db, 999, 2))


def test_link_to_identity(run):
    async def add_users(db):
        db.add_all([ExternalUser(id="kakao:1"), ExternalUser(id="kakao:2")])
        await db.commit()

    run(add_users)
    first, first_code = create(run, name="Ana")
    second, _ = create(run, name="Luis")

    linked = run(lambda db: patient_authority.link_to_identity(db, first, "kakao:1"))
    assert linked.subject_id == "kakao:1"
    # 같은 주체로 다시 연결하는 것은 허용
    run(lambda db: patient_authority.link_to_identity(db, first, "kakao:1"))

    with pytest.raises(ConflictError):
        run(lambda db: patient_authority.link_to_identity(db, second, "kakao:1"))
    with pytest.raises(ConflictError):
        run(lambda db: patient_authority.link_to_identity(db, first, "kakao:2"))

    found = run(lambda db: patient_authority.find_by_subject_id(db, "kakao:1", T0))
    assert found.id == first
    run(lambda db: patient_authority.revoke_code(db, first, T0))
    assert run(lambda db: patient_authority.find_by_subject_id(db, "kakao:1", T0)) is None
