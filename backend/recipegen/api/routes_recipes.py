# recipegen/api/routes_recipes.py
# 재료 입력 → 레시피 생성(DB + LLM), 검색/상세, 생성 레시피 저장
# 즐겨찾기/평점은 anon_id 쿠키 기준

from __future__ import annotations
import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from recipegen.core.deps import get_activity, get_or_set_anon_id, get_orchestrator, get_recipe_store
from recipegen.db.models.recipe import Difficulty, Recipe
from recipegen.db.models.schemas import FavoriteInfo, RateIn, RatingInfo, RecipePage, RecipeRequest, RecipeResponse
from recipegen.db.repository import AlreadyFavorited
from recipegen.services.activity import RecipeNotFound

log = logging.getLogger(__name__)

router = APIRouter(prefix="/api/recipes", tags=["recipes"])


@router.post("/generate", response_model=RecipeResponse)
async def generate_recipes(
    body: RecipeRequest,
    orchestrator=Depends(get_orchestrator),
    anon_id: str = Depends(get_or_set_anon_id),
):
    # 파이프라인은 실패를 내부에서 흡수 → 항상 응답
    return await orchestrator.generate(body, actor=anon_id)


@router.get("", response_model=RecipePage)
async def search_recipes(
    query: Optional[str] = None,
    diet: Optional[str] = None,
    time_max: Optional[int] = Query(None, alias="timeMax", ge=1),
    difficulty: Optional[Difficulty] = None,
    cuisine: Optional[str] = None,
    page: int = Query(0, ge=0),
    size: int = Query(20, ge=1, le=100),
    store=Depends(get_recipe_store),
):
    try:
        items, total = await store.search(
            query=query, diet=diet, time_max=time_max, difficulty=difficulty,
            cuisine=cuisine, skip=page * size, limit=size,
        )
    except Exception as e:
        log.exception("recipe search failed")
        raise HTTPException(status_code=503, detail=f"search_error: {e}")
    return RecipePage(items=items, total=total, page=page, size=size)


@router.get("/{rid}", response_model=Recipe)
async def get_recipe(rid: str, store=Depends(get_recipe_store)):
    recipe = await store.find_by_id(rid)
    if not recipe:
        raise HTTPException(status_code=404, detail="recipe not found")
    return recipe


@router.post("/save-llm", response_model=Recipe)
async def save_llm_recipe(
    body: Recipe,
    orchestrator=Depends(get_orchestrator),
    activity=Depends(get_activity),
    anon_id: str = Depends(get_or_set_anon_id),
):
    # 생성 레시피 저장 + 바로 즐겨찾기
    if not body.is_presentable():
        raise HTTPException(status_code=422, detail="recipe needs ingredients and steps")
    try:
        saved = await orchestrator.save_recipe(body, actor=anon_id)
        await activity.add_favorite(anon_id, saved.id)
    except Exception as e:
        log.exception("saving generated recipe failed")
        raise HTTPException(status_code=503, detail=f"save_error: {e}")
    return saved


# ------------------------------
# 즐겨찾기
# ------------------------------

@router.post("/{rid}/save")
async def save_recipe(rid: str, activity=Depends(get_activity), anon_id: str = Depends(get_or_set_anon_id)):
    try:
        await activity.add_favorite(anon_id, rid)
    except RecipeNotFound:
        raise HTTPException(status_code=404, detail="recipe not found")
    except AlreadyFavorited as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {"success": True, "message": "Recipe saved to favorites"}


@router.delete("/{rid}/save")
async def unsave_recipe(rid: str, activity=Depends(get_activity), anon_id: str = Depends(get_or_set_anon_id)):
    await activity.remove_favorite(anon_id, rid)
    return {"success": True, "message": "Recipe removed from favorites"}


@router.get("/{rid}/favorite", response_model=FavoriteInfo)
async def get_favorite(rid: str, activity=Depends(get_activity), anon_id: str = Depends(get_or_set_anon_id)):
    return await activity.favorite_info(anon_id, rid)


# ------------------------------
# 평점
# ------------------------------

@router.post("/{rid}/rate", response_model=RatingInfo)
async def rate_recipe(
    rid: str,
    body: RateIn,
    activity=Depends(get_activity),
    anon_id: str = Depends(get_or_set_anon_id),
):
    try:
        return await activity.rate(anon_id, rid, body.stars)
    except RecipeNotFound:
        raise HTTPException(status_code=404, detail="recipe not found")


@router.delete("/{rid}/rate")
async def delete_rating(rid: str, activity=Depends(get_activity), anon_id: str = Depends(get_or_set_anon_id)):
    removed = await activity.delete_rating(anon_id, rid)
    return {"success": True, "removed": removed}


@router.get("/{rid}/rating", response_model=RatingInfo)
async def get_rating(rid: str, activity=Depends(get_activity), anon_id: str = Depends(get_or_set_anon_id)):
    return await activity.rating_info(anon_id, rid)
