# recipegen/services/scoring.py
# 재료 집합 기반 매칭 점수
# - 메인 파이프라인은 similarity(Jaccard) 정렬만 사용
# - composite_score / ScoredRecipe / 품질 게이트는 실험 경로(라이브러리로만 유지)

from __future__ import annotations
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Set

from recipegen.db.models.recipe import Difficulty, Recipe
from recipegen.db.models.schemas import RecipeRequest


def _user_set(user_ingredients: Iterable[str]) -> Set[str]:
    return {s.strip().lower() for s in user_ingredients if s and s.strip()}


def similarity(user_ingredients: Iterable[str], recipe: Recipe) -> float:
    """|U ∩ R| / |U ∪ R|, 한쪽이라도 비면 0."""
    u = _user_set(user_ingredients)
    r = recipe.ingredient_names()
    if not u or not r:
        return 0.0
    return len(u & r) / len(u | r)


def has_all(recipe: Recipe, user_ingredients: Iterable[str]) -> bool:
    # 레시피 재료를 사용자가 전부 보유했는지
    # 재료 없는 레시피는 노출 대상이 아니므로 공집합 포함이어도 False로 둔다
    u = _user_set(user_ingredients)
    r = recipe.ingredient_names()
    if not u or not r:
        return False
    return r <= u


def coverage(user_ingredients: Iterable[str], recipe: Recipe) -> float:
    u = _user_set(user_ingredients)
    r = recipe.ingredient_names()
    if not r:
        return 0.0
    return len(u & r) / len(r)


def time_bonus(time_minutes: Optional[int], max_time: Optional[int]) -> float:
    if not max_time or not time_minutes:
        return 0.05
    if time_minutes <= max_time:
        return 0.15 * (1 - time_minutes / max_time)
    return -0.05


def difficulty_bonus(recipe_difficulty: Difficulty, requested: Optional[Difficulty]) -> float:
    if requested is None:
        return 0.05
    if recipe_difficulty == requested:
        return 0.15
    if recipe_difficulty.rank < requested.rank:
        return 0.10
    return 0.0


def composite_score(recipe: Recipe, request: RecipeRequest) -> float:
    s = (
        0.7 * similarity(request.ingredients, recipe)
        + 0.15 * time_bonus(recipe.time_minutes, request.max_time_minutes)
        + 0.15 * difficulty_bonus(recipe.difficulty, request.difficulty)
    )
    return min(1.0, max(0.0, s))


def rank_by_similarity(recipes: List[Recipe], user_ingredients: Iterable[str]) -> List[Recipe]:
    # sorted()는 안정 정렬 → 동점이면 입력 순서 유지
    u = list(user_ingredients)
    return sorted(recipes, key=lambda r: similarity(u, r), reverse=True)


# -----------------------------------------------------------------------------
# 실험 경로: 복합 점수 + 품질 게이트
# -----------------------------------------------------------------------------

@dataclass(frozen=True)
class ScoredRecipe:
    recipe: Recipe
    score: float
    jaccard: float


def score_recipes(recipes: Iterable[Recipe], request: RecipeRequest, limit: int = 20) -> List[ScoredRecipe]:
    scored = [
        ScoredRecipe(recipe=r, score=composite_score(r, request), jaccard=similarity(request.ingredients, r))
        for r in recipes
    ]
    scored.sort(key=lambda s: s.score, reverse=True)
    return scored[:limit]


def passes_quality_gate(scored: List[ScoredRecipe], score_min: float, score_avg_min: float) -> bool:
    """
    상위 결과가 충분히 좋은지 판단.
    - score_min 이상인 레시피가 3개 이상
    - 상위 5개 평균이 score_avg_min 이상
    """
    if len([s for s in scored if s.score >= score_min]) < 3:
        return False
    top = sorted((s.score for s in scored), reverse=True)[:5]
    return sum(top) / len(top) >= score_avg_min


def filter_by_threshold(recipes: Iterable[Recipe], user_ingredients: Iterable[str], threshold: float) -> List[Recipe]:
    u = list(user_ingredients)
    return [r for r in recipes if similarity(u, r) >= threshold]


def categorize_by_match(
    recipes: Iterable[Recipe], user_ingredients: Iterable[str], high_threshold: float = 0.5
) -> Dict[str, List[Recipe]]:
    # highMatch / userHasAll / other, 각 버킷은 유사도 내림차순
    u = list(user_ingredients)
    buckets: Dict[str, List[Recipe]] = {"highMatch": [], "userHasAll": [], "other": []}
    for r in recipes:
        if has_all(r, u):
            buckets["userHasAll"].append(r)
        elif similarity(u, r) >= high_threshold:
            buckets["highMatch"].append(r)
        else:
            buckets["other"].append(r)
    return {k: rank_by_similarity(v, u) for k, v in buckets.items()}
