from __future__ import annotations
from typing import Optional, List, Literal, Union, Annotated
from pydantic import BaseModel, Field, EmailStr, ConfigDict, field_validator
from pydantic.alias_generators import to_camel
from datetime import datetime

from nutriaccess.services.access_codes import display_code


class CamelModel(BaseModel):
    """JSON 은 camelCase, 파이썬 쪽은 snake_case"""
    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, from_attributes=True
    )


# ── 접근 코드 ────────────────────────────────────────────────────────

class AccessCodeReq(CamelModel):
    # 누락 시 라우터에서 400 처리
    access_code: Optional[str] = Field(None, max_length=64)


# ── 환자 ─────────────────────────────────────────────────────────────

class PatientSummary(CamelModel):
    id: int
    name: str
    diet_level: int
    code_expiry: datetime


class PatientPublic(CamelModel):
    id: int
    name: str
    diet_level: int
    access_code: str
    code_expiry: datetime
    age: Optional[int] = None
    height: Optional[str] = None
    initial_weight: Optional[float] = None
    target_weight: Optional[float] = None
    medical_notes: Optional[str] = None
    is_active: bool = True
    created_at: Optional[datetime] = None

    @field_validator("access_code")
    @classmethod
    def _display_sentinel(cls, v: str) -> str:
        return display_code(v)


class PatientValidateResp(CamelModel):
    valid: bool = True
    patient: PatientPublic


class PatientCurrentResp(CamelModel):
    patient: PatientSummary


class PatientLinkResp(CamelModel):
    patient: PatientSummary


class PatientCreate(CamelModel):
    """
    전문가가 새 환자를 등록할 때의 요청 스키마.
    initial_weight 가 있으면 첫 체중 기록으로도 저장됩니다.
    """
    name: str = Field(..., min_length=1, max_length=255)
    age: Optional[int] = Field(None, ge=0, le=130)
    height: Optional[str] = None
    initial_weight: Optional[float] = None
    target_weight: Optional[float] = None
    diet_level: int = 1
    medical_notes: Optional[str] = None

    @field_validator("height", mode="before")
    @classmethod
    def _height_as_text(cls, v):
        if v is None or isinstance(v, str):
            return v
        return str(v)


class PatientCreateResp(CamelModel):
    patient: PatientPublic
    access_code: str
    message: str = "Patient created"


# ── 체중 ─────────────────────────────────────────────────────────────

class WeightCreate(CamelModel):
    weight: float
    target_weight: Optional[float] = None
    notes: Optional[str] = None


class WeightRecordOut(CamelModel):
    id: int
    patient_id: int
    weight: float
    recorded_date: Optional[datetime] = None
    notes: Optional[str] = None
    created_at: datetime


class WeightCreateResp(CamelModel):
    weight_record: WeightRecordOut
    new_access_code: str
    message: str = "Weight recorded, new access code issued"


class DietLevelUpdate(CamelModel):
    diet_level: int


class TargetWeightUpdate(CamelModel):
    target_weight: float


class TargetWeightResp(CamelModel):
    message: str = "Target weight updated"
    patient_id: int
    new_target_weight: float


class RevokeCodeResp(CamelModel):
    message: str = "Access code revoked"
    access_code: str
    revoked_at: datetime


class ReissueCodeResp(CamelModel):
    message: str = "New access code issued"
    access_code: str
    code_expiry: datetime


class MessageResp(CamelModel):
    message: str


# ── 전문가 ───────────────────────────────────────────────────────────

class ProfessionalPublic(CamelModel):
    id: int
    name: str
    specialty: Optional[str] = None
    license_number: Optional[str] = None
    email: Optional[EmailStr] = None
    access_code: Optional[str] = None


class ProfessionalValidateResp(CamelModel):
    valid: bool = True
    professional: ProfessionalPublic


class ProfessionalProfileResp(CamelModel):
    professional: ProfessionalPublic


# ── 기분 / 간헐적 단식 ────────────────────────────────────────────────

class MoodEntryCreate(CamelModel):
    mood_level: Optional[int] = None
    energy_level: Optional[int] = None
    motivation_level: Optional[int] = None
    notes: Optional[str] = None
    tags: List[str] = []


class MoodEntryOut(CamelModel):
    id: int
    patient_id: int
    mood_level: int
    energy_level: int
    motivation_level: int
    notes: Optional[str] = None
    tags: Optional[List[str]] = None
    recorded_date: datetime
    created_at: Optional[datetime] = None


class IntermittentFastingOut(CamelModel):
    id: int
    patient_id: int
    start_time: str
    end_time: str
    duration: int
    allowed_drinks: Optional[List[str]] = None
    breakfast_options: Optional[List[str]] = None
    is_active: bool
    created_at: Optional[datetime] = None


# ── 카탈로그 ─────────────────────────────────────────────────────────

class DietLevelOut(CamelModel):
    id: int
    name: str
    description: str
    category: str
    level: int
    glycemic_index: str


class MealPlanOut(CamelModel):
    id: int
    diet_level_id: int
    meal_type: str
    option_number: int
    title: str
    description: Optional[str] = None
    beverages: Optional[List[str]] = None
    allowed_breads: Optional[List[str]] = None
    proteins: Optional[List[str]] = None
    fruits: Optional[List[str]] = None
    vegetables: Optional[List[str]] = None
    cereals: Optional[List[str]] = None
    others: Optional[List[str]] = None


class RecipeOut(CamelModel):
    id: int
    name: str
    description: Optional[str] = None
    ingredients: List[str]
    instructions: List[str]
    preparation_time: Optional[int] = None
    meal_plan_id: Optional[int] = None
    category: str


class FoodItemOut(CamelModel):
    id: int
    name: str
    category: str
    allowed_in_diet: Optional[List[int]] = None
    quantity: Optional[str] = None
    notes: Optional[str] = None


# ── 외부 인증 ────────────────────────────────────────────────────────

class KakaoLoginRequest(CamelModel):
    code: str
    redirect_uri: str


class IdentityToken(CamelModel):
    """
    /auth/kakao 응답 스키마.
    외부 인증 주체(subject)를 담은 bearer 토큰입니다.
    """
    access_token: str
    token_type: str = "bearer"
    subject_id: str


class ExternalUserPublic(CamelModel):
    id: str
    email: Optional[str] = None
    name: Optional[str] = None


# ── 세션 페이로드 (서명된 쿠키 안에 들어가는 불변 값) ─────────────────

class PatientSessionData(BaseModel):
    model_config = ConfigDict(frozen=True, from_attributes=True)

    id: int
    name: str
    diet_level: int
    access_code: str
    code_expiry: datetime
    age: Optional[int] = None
    height: Optional[str] = None
    initial_weight: Optional[float] = None
    target_weight: Optional[float] = None
    medical_notes: Optional[str] = None


class PatientSession(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["patient"] = "patient"
    patient: PatientSessionData
    login_time: datetime


class ProfessionalSession(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["professional"] = "professional"
    id: int
    name: str
    specialty: Optional[str] = None
    license_number: Optional[str] = None
    email: Optional[str] = None
    access_code: str
    login_time: datetime


SessionPayload = Annotated[Union[PatientSession, ProfessionalSession], Field(discriminator="kind")]
