from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from nutriaccess.api.deps import RowId, require_either, require_professional_path_code
from nutriaccess.db import get_db
from nutriaccess.models import DietLevel, MealPlan, Recipe, FoodItem
from nutriaccess.schemas import DietLevelOut, MealPlanOut, RecipeOut, FoodItemOut
from nutriaccess.services.identity import Identity

# 식단 카탈로그: 환자/전문가 모두 조회 가능
router = APIRouter(tags=["catalog"])


async def _active_diet_levels(db: AsyncSession):
    q = select(DietLevel).where(DietLevel.is_active == True).order_by(DietLevel.level)  # noqa: E712
    return (await db.execute(q)).scalars().all()


@router.get("/diet-levels", response_model=List[DietLevelOut])
async def list_diet_levels(
    identity: Identity = Depends(require_either),
    db: AsyncSession = Depends(get_db),
):
    return await _active_diet_levels(db)


@router.get("/diet-levels/{code}", response_model=List[DietLevelOut])
async def list_diet_levels_by_code(
    identity: Identity = Depends(require_professional_path_code),
    db: AsyncSession = Depends(get_db),
):
    """경로에 전문가 코드를 넣는 방식 (구 클라이언트 호환)"""
    return await _active_diet_levels(db)


@router.get("/meal-plans/{diet_level_id}", response_model=List[MealPlanOut])
async def list_meal_plans(
    diet_level_id: RowId,
    identity: Identity = Depends(require_either),
    db: AsyncSession = Depends(get_db),
):
    q = select(MealPlan).where(
        MealPlan.diet_level_id == diet_level_id, MealPlan.is_active == True  # noqa: E712
    ).order_by(MealPlan.meal_type, MealPlan.option_number)
    return (await db.execute(q)).scalars().all()


@router.get("/recipes/{meal_plan_id}", response_model=List[RecipeOut])
async def list_recipes(
    meal_plan_id: RowId,
    identity: Identity = Depends(require_either),
    db: AsyncSession = Depends(get_db),
):
    q = select(Recipe).where(Recipe.meal_plan_id == meal_plan_id, Recipe.is_active == True)  # noqa: E712
    return (await db.execute(q)).scalars().all()


@router.get("/food-items/{category}", response_model=List[FoodItemOut])
async def list_food_items(
    category: str,
    identity: Identity = Depends(require_either),
    db: AsyncSession = Depends(get_db),
):
    q = select(FoodItem).where(FoodItem.category == category, FoodItem.is_active == True)  # noqa: E712
    return (await db.execute(q)).scalars().all()
