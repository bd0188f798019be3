# recipegen/api/routes_ingredients.py
# 재료 마스터 리스트 / 입력 분류 / 사진 인식

from __future__ import annotations
import logging
from typing import List

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile

from recipegen.core.deps import get_llm, get_recipe_store
from recipegen.db.models.schemas import IngredientCategories, IngredientRecognition, IngredientsIn
from recipegen.services.catalog import categorize, load_master_list
from recipegen.services.llm import LLMNotReady
from recipegen.services.vision import recognize_ingredients

log = logging.getLogger(__name__)

router = APIRouter(prefix="/api/ingredients", tags=["ingredients"])

MAX_IMAGE_BYTES = 10 * 1024 * 1024
IMAGE_TYPES = ("image/png", "image/jpeg", "image/jpg", "image/webp")


@router.get("/master-list", response_model=List[str])
async def master_list(store=Depends(get_recipe_store)):
    names = await load_master_list(store)
    return sorted(names, key=str.lower)


@router.post("/categorize", response_model=IngredientCategories)
async def categorize_ingredients(body: IngredientsIn, store=Depends(get_recipe_store)):
    return categorize(body.ingredients, await load_master_list(store))


@router.post("/recognize", response_model=IngredientRecognition)
async def recognize(
    image: UploadFile = File(...),
    store=Depends(get_recipe_store),
    llm=Depends(get_llm),
):
    if image.content_type not in IMAGE_TYPES:
        raise HTTPException(status_code=400, detail="이미지 형식은 png/jpeg/webp만 지원합니다.")
    data = await image.read()
    if not data:
        raise HTTPException(status_code=400, detail="이미지 파일이 없습니다.")
    if len(data) > MAX_IMAGE_BYTES:
        raise HTTPException(status_code=413, detail="이미지는 10MB 이하만 가능합니다.")

    master = await load_master_list(store)
    try:
        items = await recognize_ingredients(llm, data, master, content_type=image.content_type)
    except LLMNotReady as e:
        raise HTTPException(status_code=503, detail=f"vision_not_ready: {e}")
    return IngredientRecognition(ingredients=items)
