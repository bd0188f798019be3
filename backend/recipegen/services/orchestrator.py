# recipegen/services/orchestrator.py
# 레시피 생성 파이프라인
#   재료 분류 → DB 후보 선정 → (식단 변환) → 부족분 LLM 생성 → 병합/정렬 → 중복 제거 → 인분 스케일
# - 요청마다 저장소를 한 번만 읽는다 (스냅샷)
# - LLM/저장소 실패는 해당 단계 결과를 비우고 계속 진행, 항상 RecipeResponse 반환
# - 외부 호출은 모두 순차 (요청당 최대 1 + 3회)

from __future__ import annotations
import logging
from typing import List, Optional

from pydantic import BaseModel

from recipegen.core.config import Settings, settings as default_settings
from recipegen.db.models.recipe import Recipe
from recipegen.db.models.schemas import RecipeMetadata, RecipeRequest, RecipeResponse
from recipegen.services.catalog import categorize, master_list
from recipegen.services.dedupe import dedupe
from recipegen.services.scaler import scale_recipe
from recipegen.services.scoring import has_all, rank_by_similarity, similarity
from recipegen.services.telemetry import (
    AdaptationCall,
    CandidateSelection,
    GenerationCall,
    GenerationSummary,
    IngredientAnalysis,
    PipelineError,
    RecipeSaved,
)

log = logging.getLogger(__name__)


def passes_filters(recipe: Recipe, request: RecipeRequest) -> bool:
    # 하드 필터: 요리 종류(부분 일치), 난이도(정확히), 최대 시간(시간 모르는 레시피는 통과)
    # 식단 태그는 필터가 아님 (LLM 변환 대상)
    if request.cuisine:
        if not recipe.cuisine or request.cuisine.lower() not in recipe.cuisine.lower():
            return False
    if request.difficulty and recipe.difficulty != request.difficulty:
        return False
    if request.max_time_minutes and recipe.time_minutes is not None:
        if recipe.time_minutes > request.max_time_minutes:
            return False
    return True


class RecipeOrchestrator:
    def __init__(self, store, llm, telemetry, config: Optional[Settings] = None):
        self.store = store
        self.llm = llm
        self.telemetry = telemetry
        cfg = config or default_settings
        self.max_recipes = cfg.MAX_RECIPES
        self.base_servings = cfg.BASE_SERVINGS
        self.timeout = cfg.LLM_TIMEOUT_SEC

    async def _emit(self, event: str, actor: Optional[str], payload: BaseModel, level: str = "INFO") -> None:
        try:
            await self.telemetry.record(event, actor, payload, level)
        except Exception:
            log.exception("telemetry sink failed for %s", event)

    async def _snapshot(self, actor: Optional[str]) -> List[Recipe]:
        try:
            return await self.store.find_all()
        except Exception as e:
            log.exception("recipe store read failed")
            await self._emit("recipe_store_error", actor, PipelineError(stage="find_all", error=str(e)), "ERROR")
            return []

    def select_candidates(self, snapshot: List[Recipe], request: RecipeRequest) -> List[Recipe]:
        user = {s.lower() for s in request.ingredients}
        pool = [
            r for r in snapshot
            if r.is_presentable() and (r.ingredient_names() & user) and passes_filters(r, request)
        ]
        return rank_by_similarity(pool, request.ingredients)[: self.max_recipes]

    async def _adapt(self, candidates: List[Recipe], request: RecipeRequest, actor: Optional[str]) -> List[Recipe]:
        try:
            adapted = await self.llm.adapt(candidates, request, actor=actor, timeout=self.timeout)
        except Exception as e:
            log.exception("dietary adaptation raised")
            await self._emit("dietary_adaptation_error", actor, PipelineError(stage="adapt", error=str(e)), "ERROR")
            adapted = []
        adapted = [r for r in adapted if r.is_presentable()][: self.max_recipes]
        await self._emit(
            "dietary_adaptation",
            actor,
            AdaptationCall(diet_tags=sorted(request.diet_tags), input_count=len(candidates), output_count=len(adapted)),
        )
        return adapted

    async def _fill_gap(self, have: List[Recipe], request: RecipeRequest, actor: Optional[str]) -> List[Recipe]:
        generated: List[Recipe] = []
        exclude = [r.title for r in have]
        attempt = 0
        while len(have) + len(generated) < self.max_recipes:
            attempt += 1
            try:
                produced = await self.llm.generate(request, list(exclude), actor=actor, timeout=self.timeout)
            except Exception as e:
                log.exception("recipe generation raised")
                await self._emit("recipe_generation_error", actor, PipelineError(stage="generate", error=str(e)), "ERROR")
                produced = []
            produced = [r for r in produced if r.is_presentable()]
            await self._emit(
                "recipe_generation",
                actor,
                GenerationCall(attempt=attempt, exclude_titles=list(exclude), produced=[r.title for r in produced]),
            )
            if not produced:
                break
            room = self.max_recipes - len(have) - len(generated)
            for r in produced[:room]:
                generated.append(r)
                exclude.append(r.title)
        return generated

    async def generate(self, request: RecipeRequest, actor: Optional[str] = None) -> RecipeResponse:
        snapshot = await self._snapshot(actor)

        # 1) 재료 분류
        cats = categorize(request.ingredients, master_list(snapshot))
        await self._emit(
            "ingredient_analysis",
            actor,
            IngredientAnalysis(ingredients=request.ingredients, matched=cats.matched, unmatched=cats.unmatched),
        )

        # 2~3) DB 후보
        candidates = self.select_candidates(snapshot, request)
        await self._emit(
            "db_match",
            actor,
            CandidateSelection(
                stored_total=len(snapshot),
                selected=[r.title for r in candidates],
                similarities=[round(similarity(request.ingredients, r), 4) for r in candidates],
            ),
        )

        # 4) 식단 변환 (후보 있고 태그 있을 때만, 결과로 후보 교체)
        if candidates and request.diet_tags:
            candidates = await self._adapt(candidates, request, actor)

        # 5) 부족분 생성
        generated = await self._fill_gap(candidates, request, actor)

        # 6~8) 병합 → 최종 정렬 → 중복 제거
        merged = rank_by_similarity(candidates + generated, request.ingredients)[: self.max_recipes]
        final = dedupe(merged)
        used_generated = [r for r in final if any(r is g for g in generated)]

        # 9) 인분 스케일 (마지막에 한 번만)
        scaled = [scale_recipe(r, request.servings, self.base_servings) for r in final]

        # 10) 응답 구성
        has_all_ids = [r.id for r in scaled if r.id and has_all(r, request.ingredients)]
        has_all_count = len([r for r in scaled if has_all(r, request.ingredients)])
        strategy = "db_llm_combined" if used_generated else "db_only"
        message = None
        if has_all_count:
            message = f"{has_all_count} recipe(s) can be made with only the ingredients you have."

        response = RecipeResponse(
            recipes=scaled,
            metadata=RecipeMetadata(
                total_recipes=len(scaled),
                high_match_count=len(candidates),
                llm_generated_count=len(generated),
                strategy=strategy,
                user_has_all_count=has_all_count,
                has_user_has_all_recipes=has_all_count > 0,
                message=message,
                user_has_all_recipe_ids=has_all_ids,
            ),
        )
        await self._emit(
            "recipe_generation_complete",
            actor,
            GenerationSummary(
                strategy=strategy,
                total=len(scaled),
                from_store=len(scaled) - len(used_generated),
                generated=len(used_generated),
                servings=request.servings,
                titles=[r.title for r in scaled],
            ),
        )
        return response

    async def save_recipe(self, recipe: Recipe, actor: Optional[str] = None) -> Recipe:
        # 사용자가 고른 생성 레시피 저장 (id는 저장소가 새로 부여)
        update = {"id": None}
        if recipe.created_by is None:
            update["created_by"] = actor
        saved = await self.store.save(recipe.model_copy(update=update))
        await self._emit("recipe_saved", actor, RecipeSaved(recipe_id=saved.id, title=saved.title, source=saved.source.value))
        return saved
