# 목적: 운영 중 레시피 추가/시드 재적재/통계 확인용 관리 API
# 사용: POST /api/admin/seed → {"ok": true, "inserted": N}

from fastapi import APIRouter, Depends, HTTPException

from recipegen.core.deps import get_recipe_store, get_telemetry
from recipegen.db.models.recipe import Recipe, Source
from recipegen.services.seed import seed_database
from recipegen.services.telemetry import RecipeAdded

router = APIRouter(prefix="/api/admin", tags=["admin"])


@router.post("/recipes", response_model=Recipe)
async def add_recipe(body: Recipe, store=Depends(get_recipe_store), telemetry=Depends(get_telemetry)):
    # 관리자가 넣는 레시피는 항상 DB 출처
    if not body.is_presentable():
        raise HTTPException(status_code=422, detail="recipe needs ingredients and steps")
    saved = await store.save(body.model_copy(update={"id": None, "source": Source.DB, "created_by": None}))
    await telemetry.record("admin_recipe_added", None, RecipeAdded(recipe_id=saved.id, title=saved.title))
    return saved


@router.post("/seed")
async def seed(store=Depends(get_recipe_store), telemetry=Depends(get_telemetry)):
    try:
        inserted = await seed_database(store, telemetry)
    except Exception as e:
        raise HTTPException(status_code=500, detail=str(e))
    return {"ok": True, "inserted": inserted}


@router.get("/stats")
async def stats(store=Depends(get_recipe_store)):
    return {
        "totalRecipes": await store.count(),
        "dbRecipes": await store.count(Source.DB),
        "llmRecipes": await store.count(Source.LLM),
    }
