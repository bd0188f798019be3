# recipegen/core/deps.py
# 공용 의존성/헬퍼 (익명 사용자 쿠키 발급, 저장소/LLM/텔레메트리 조립)
# 즐겨찾기/평점도 로그인 없이 anon_id 쿠키 기준
# 테스트는 app.dependency_overrides로 get_recipe_store/get_llm/get_telemetry를 바꿔 끼운다
import uuid
from functools import lru_cache

from fastapi import Depends, HTTPException, Request, Response

from recipegen.db.init import get_db
from recipegen.db.repository import MongoFavoriteStore, MongoRatingStore, MongoRecipeStore
from recipegen.services.activity import UserActivity
from recipegen.services.llm import LLMRecipeClient
from recipegen.services.orchestrator import RecipeOrchestrator
from recipegen.services.telemetry import TelemetrySink

COOKIE = "anon_id"
MAX_AGE = 60 * 60 * 24 * 365 * 2  # 2년

def get_or_set_anon_id(request: Request, response: Response) -> str:
    # 쿠키 없으면 발급, 있으면 그대로 사용
    v = request.cookies.get(COOKIE)
    if not v:
        v = uuid.uuid4().hex
        response.set_cookie(COOKIE, v, max_age=MAX_AGE, httponly=True, samesite="lax")
    return v

def get_recipe_store() -> MongoRecipeStore:
    try:
        db = get_db()
    except RuntimeError:
        raise HTTPException(status_code=503, detail="database not ready")
    return MongoRecipeStore(db["recipes"])

def get_telemetry() -> TelemetrySink:
    try:
        return TelemetrySink(get_db()["logs"])
    except RuntimeError:
        return TelemetrySink()  # DB 없으면 로그만

@lru_cache
def get_llm() -> LLMRecipeClient:
    return LLMRecipeClient()

def get_orchestrator(
    store=Depends(get_recipe_store),
    llm=Depends(get_llm),
    telemetry=Depends(get_telemetry),
) -> RecipeOrchestrator:
    return RecipeOrchestrator(store, llm, telemetry)

def get_favorite_store() -> MongoFavoriteStore:
    try:
        return MongoFavoriteStore(get_db()["favorites"])
    except RuntimeError:
        raise HTTPException(status_code=503, detail="database not ready")

def get_rating_store() -> MongoRatingStore:
    try:
        return MongoRatingStore(get_db()["ratings"])
    except RuntimeError:
        raise HTTPException(status_code=503, detail="database not ready")

def get_activity(
    store=Depends(get_recipe_store),
    favorites=Depends(get_favorite_store),
    ratings=Depends(get_rating_store),
    telemetry=Depends(get_telemetry),
) -> UserActivity:
    return UserActivity(store, favorites, ratings, telemetry)
