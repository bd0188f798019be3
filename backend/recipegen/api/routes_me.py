# recipegen/api/routes_me.py
# 내 활동 조회 (anon_id 쿠키): 저장한 레시피 / 평점 / 통계

from __future__ import annotations
from typing import List

from fastapi import APIRouter, Depends

from recipegen.core.deps import get_activity, get_or_set_anon_id
from recipegen.db.models.activity import Rating
from recipegen.db.models.recipe import Recipe
from recipegen.db.models.schemas import UserStats

router = APIRouter(prefix="/api/me", tags=["me"])


@router.get("/saved", response_model=List[Recipe])
async def saved_recipes(activity=Depends(get_activity), anon_id: str = Depends(get_or_set_anon_id)):
    return await activity.saved_recipes(anon_id)


@router.get("/ratings", response_model=List[Rating])
async def my_ratings(activity=Depends(get_activity), anon_id: str = Depends(get_or_set_anon_id)):
    return await activity.user_ratings(anon_id)


@router.get("/stats", response_model=UserStats)
async def my_stats(activity=Depends(get_activity), anon_id: str = Depends(get_or_set_anon_id)):
    return await activity.user_stats(anon_id)
