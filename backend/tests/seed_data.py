import asyncio
from datetime import datetime, timedelta, timezone

from sqlalchemy import insert
from sqlalchemy.ext.asyncio import AsyncSession

from nutriaccess.db import Base, SessionLocal, engine
from nutriaccess.models import (
    Professional, Patient, DietLevel, MealPlan, Recipe, FoodItem, IntermittentFasting,
)

PRO_CODE = "NUTRIPRO2024"
PRO_SUBJECT = "kakao:1001"
OTHER_PRO_CODE = "NUTRIPRO2025"


async def seed_professionals(session: AsyncSession):
    # 1) 전문가 예시
    await session.execute(insert(Professional), [
        {
            "subject_id": PRO_SUBJECT,
            "name": "Dra. Laura Garcia",
            "email": "laura.garcia@nutriclinic.com",
            "specialty": "Nutricion clinica",
            "license_number": "LIC-12345",
            "access_code": PRO_CODE,
            "is_active": True,
        },
        {
            "subject_id": "kakao:1002",
            "name": "Dr. Pablo Ruiz",
            "email": "pablo.ruiz@nutriclinic.com",
            "specialty": "Endocrinologia",
            "license_number": "LIC-67890",
            "access_code": OTHER_PRO_CODE,
            "is_active": True,
        },
    ])


async def seed_catalog(session: AsyncSession):
    # 2) 식단 단계 / 식단표 / 레시피 / 식품 예시
    await session.execute(insert(DietLevel), [
        {"name": "Nivel 1", "description": "Desayuno bajo en indice glucemico",
         "category": "breakfast", "level": 1, "glycemic_index": "low", "is_active": True},
        {"name": "Nivel 2", "description": "Colaciones intermedias",
         "category": "snack", "level": 2, "glycemic_index": "intermediate", "is_active": True},
        {"name": "Nivel retirado", "description": "Ya no se usa",
         "category": "lunch", "level": 3, "glycemic_index": "high", "is_active": False},
    ])
    await session.execute(insert(MealPlan), [
        {"diet_level_id": 1, "meal_type": "breakfast", "option_number": 2, "title": "Avena con fruta",
         "beverages": ["cafe sin azucar"], "fruits": ["manzana"], "cereals": ["avena"], "is_active": True},
        {"diet_level_id": 1, "meal_type": "breakfast", "option_number": 1, "title": "Huevos con verduras",
         "beverages": ["te verde"], "proteins": ["huevo"], "vegetables": ["espinaca"], "is_active": True},
    ])
    await session.execute(insert(Recipe), [
        {"name": "Omelette de espinaca", "ingredients": ["2 huevos", "1 taza de espinaca"],
         "instructions": ["Batir los huevos", "Cocinar con la espinaca"], "preparation_time": 10,
         "meal_plan_id": 2, "category": "breakfast", "is_active": True},
    ])
    await session.execute(insert(FoodItem), [
        {"name": "Manzana", "category": "fruits", "allowed_in_diet": [1, 2], "quantity": "1 pieza", "is_active": True},
        {"name": "Papaya", "category": "fruits", "allowed_in_diet": [2], "quantity": "1 taza", "is_active": True},
        {"name": "Pan blanco", "category": "breads", "allowed_in_diet": [], "is_active": True},
    ])


async def seed_fasting(session: AsyncSession, patient_id: int):
    await session.execute(insert(IntermittentFasting), [
        {"patient_id": patient_id, "start_time": "19:00", "end_time": "07:00", "duration": 14,
         "allowed_drinks": ["agua", "te"], "breakfast_options": ["avena"], "is_active": True},
    ])


async def seed_patient(session: AsyncSession, code: str, now: datetime, **fields) -> int:
    # 3) 환자 예시 (테스트에서 코드를 고정하고 싶을 때)
    values = {
        "name": "Maria Lopez",
        "access_code": code,
        "code_expiry": now + timedelta(days=30),
        "code_status": "ACTIVE",
        "diet_level": 1,
        "is_active": True,
        "created_at": now,
    }
    values.update(fields)
    result = await session.execute(insert(Patient).values(values).returning(Patient.id))
    return result.scalar_one()


async def seed_data():
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    async with SessionLocal() as session:
        await seed_professionals(session)
        await seed_catalog(session)
        await seed_patient(session, "DEMO2024", datetime.now(timezone.utc))
        await session.commit()

if __name__ == "__main__":
    asyncio.run(seed_data())
