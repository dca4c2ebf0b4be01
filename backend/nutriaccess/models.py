from __future__ import annotations
from typing import Optional
from datetime import datetime

from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy import (
    BigInteger, String, Text, Integer, DateTime, CheckConstraint,
    ForeignKey, Index, Boolean, JSON, Numeric
)
from sqlalchemy.sql import func, true

from nutriaccess.db import Base

# sqlite는 INTEGER PRIMARY KEY 만 자동 증가
BigIntPK = BigInteger().with_variant(Integer, "sqlite")
# BIGINT 상한 (요청으로 들어온 id 검증용)
MAX_ID = 2**63 - 1


class ExternalUser(Base):
    """외부 인증(카카오) 로그인으로 확인된 주체. id 는 'kakao:<id>' 형태의 subject id."""
    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String, primary_key=True)
    email: Mapped[Optional[str]] = mapped_column(String, unique=True, nullable=True)
    name: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    created_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )


class Patient(Base):
    __tablename__ = "patients"
    __table_args__ = (
        CheckConstraint("code_status in ('ACTIVE','REVOKED')", name="ck_patients_code_status"),
        CheckConstraint("diet_level between 1 and 5", name="ck_patients_diet_level"),
        Index("idx_patients_active_created", "is_active", "created_at"),
    )

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    # 외부 인증 주체와의 연결 (한 번만 설정)
    subject_id: Mapped[Optional[str]] = mapped_column(
        String, ForeignKey("users.id"), unique=True, nullable=True
    )
    name: Mapped[str] = mapped_column(Text, nullable=False)

    access_code: Mapped[str] = mapped_column(String(32), unique=True, nullable=False, index=True)
    code_expiry: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    code_status: Mapped[str] = mapped_column(String(16), default="ACTIVE", server_default="ACTIVE", nullable=False)

    diet_level: Mapped[int] = mapped_column(Integer, default=1, server_default="1", nullable=False)
    age: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    height: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    initial_weight: Mapped[Optional[float]] = mapped_column(Numeric(6, 2, asdecimal=False), nullable=True)
    target_weight: Mapped[Optional[float]] = mapped_column(Numeric(6, 2, asdecimal=False), nullable=True)
    medical_notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    is_active: Mapped[bool] = mapped_column(Boolean, default=True, server_default=true(), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    weight_records: Mapped[list["WeightRecord"]] = relationship(
        back_populates="patient", cascade="all, delete-orphan", order_by="WeightRecord.created_at"
    )
    mood_entries: Mapped[list["MoodEntry"]] = relationship(back_populates="patient")


class Professional(Base):
    __tablename__ = "professionals"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    subject_id: Mapped[str] = mapped_column(String, unique=True, nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    specialty: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    license_number: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    # 전문가 코드는 만료 없음 (is_active 로만 차단)
    access_code: Mapped[str] = mapped_column(String(20), unique=True, nullable=False, index=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, server_default=true(), nullable=False)
    created_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )


class WeightRecord(Base):
    __tablename__ = "weight_records"
    __table_args__ = (
        Index("idx_weight_records_patient_time", "patient_id", "created_at"),
    )

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    patient_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("patients.id", ondelete="CASCADE"), nullable=False
    )
    weight: Mapped[float] = mapped_column(Numeric(6, 2, asdecimal=False), nullable=False)
    recorded_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    patient: Mapped["Patient"] = relationship(back_populates="weight_records")


class DietLevel(Base):
    __tablename__ = "diet_levels"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    category: Mapped[str] = mapped_column(Text, nullable=False)  # 'breakfast' | 'snack' | 'lunch' | 'fasting'
    level: Mapped[int] = mapped_column(Integer, nullable=False)
    glycemic_index: Mapped[str] = mapped_column(Text, nullable=False)  # 'low' | 'intermediate' | 'high'
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, server_default=true(), nullable=False)

    meal_plans: Mapped[list["MealPlan"]] = relationship(back_populates="diet_level")


class MealPlan(Base):
    __tablename__ = "meal_plans"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    diet_level_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("diet_levels.id"), nullable=False)
    meal_type: Mapped[str] = mapped_column(Text, nullable=False)
    option_number: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    title: Mapped[str] = mapped_column(Text, nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    beverages: Mapped[Optional[list[str]]] = mapped_column(JSON, default=list)
    allowed_breads: Mapped[Optional[list[str]]] = mapped_column(JSON, default=list)
    proteins: Mapped[Optional[list[str]]] = mapped_column(JSON, default=list)
    fruits: Mapped[Optional[list[str]]] = mapped_column(JSON, default=list)
    vegetables: Mapped[Optional[list[str]]] = mapped_column(JSON, default=list)
    cereals: Mapped[Optional[list[str]]] = mapped_column(JSON, default=list)
    others: Mapped[Optional[list[str]]] = mapped_column(JSON, default=list)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, server_default=true(), nullable=False)

    diet_level: Mapped["DietLevel"] = relationship(back_populates="meal_plans")
    recipes: Mapped[list["Recipe"]] = relationship(back_populates="meal_plan")


class Recipe(Base):
    __tablename__ = "recipes"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    ingredients: Mapped[list[str]] = mapped_column(JSON, nullable=False)
    instructions: Mapped[list[str]] = mapped_column(JSON, nullable=False)
    preparation_time: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)  # 분
    meal_plan_id: Mapped[Optional[int]] = mapped_column(BigInteger, ForeignKey("meal_plans.id"), nullable=True)
    category: Mapped[str] = mapped_column(Text, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, server_default=true(), nullable=False)

    meal_plan: Mapped[Optional["MealPlan"]] = relationship(back_populates="recipes")


class FoodItem(Base):
    __tablename__ = "food_items"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    category: Mapped[str] = mapped_column(Text, nullable=False, index=True)
    allowed_in_diet: Mapped[Optional[list[int]]] = mapped_column(JSON, default=list)  # diet level ids
    quantity: Mapped[Optional[str]] = mapped_column(Text, nullable=True)  # 예: "1 taza", "1/2 taza"
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, server_default=true(), nullable=False)


class IntermittentFasting(Base):
    __tablename__ = "intermittent_fasting"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    patient_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("patients.id"), nullable=False)
    start_time: Mapped[str] = mapped_column(String(5), nullable=False)  # "19:00"
    end_time: Mapped[str] = mapped_column(String(5), nullable=False)  # "07:00"
    duration: Mapped[int] = mapped_column(Integer, nullable=False)  # 일 수
    allowed_drinks: Mapped[Optional[list[str]]] = mapped_column(JSON, default=list)
    breakfast_options: Mapped[Optional[list[str]]] = mapped_column(JSON, default=list)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, server_default=true(), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )


class MoodEntry(Base):
    __tablename__ = "mood_entries"
    __table_args__ = (
        CheckConstraint("mood_level between 1 and 5", name="ck_mood_entries_mood"),
        CheckConstraint("energy_level between 1 and 5", name="ck_mood_entries_energy"),
        CheckConstraint("motivation_level between 1 and 5", name="ck_mood_entries_motivation"),
        Index("idx_mood_entries_patient_time", "patient_id", "recorded_date"),
    )

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    patient_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("patients.id"), nullable=False)
    mood_level: Mapped[int] = mapped_column(Integer, nullable=False)
    energy_level: Mapped[int] = mapped_column(Integer, nullable=False)
    motivation_level: Mapped[int] = mapped_column(Integer, nullable=False)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    tags: Mapped[Optional[list[str]]] = mapped_column(JSON, default=list)  # 예: ["stressed", "tired"]
    recorded_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    patient: Mapped["Patient"] = relationship(back_populates="mood_entries")
