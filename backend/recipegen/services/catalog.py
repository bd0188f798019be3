# recipegen/services/catalog.py
# 재료 마스터 리스트 + 사용자 입력 분류
# - 마스터 리스트는 요청마다 받은 레시피 스냅샷에서 바로 계산 (모듈 캐시 없음)
# - 비교는 소문자/trim 기준, matched에는 마스터 표기, unmatched에는 원문

from __future__ import annotations
import logging
from typing import Iterable, List, Optional, Set

from recipegen.db.models.recipe import Recipe
from recipegen.db.models.schemas import IngredientCategories

log = logging.getLogger(__name__)


def normalize(name: Optional[str]) -> str:
    return (name or "").strip().lower()


def master_list(recipes: Iterable[Recipe]) -> Set[str]:
    out: Set[str] = set()
    for r in recipes:
        for ing in r.ingredients:
            n = normalize(ing.name)
            if n:
                out.add(n)
    return out


async def load_master_list(store) -> Set[str]:
    # 저장소 실패는 빈 집합으로 강등 (호출자는 전부 unmatched 처리)
    try:
        return master_list(await store.find_all())
    except Exception:
        log.exception("failed to load ingredient master list")
        return set()


def in_master_list(name: str, master: Set[str]) -> bool:
    return normalize(name) in master


def standardize(name: str, master: Set[str]) -> Optional[str]:
    n = normalize(name)
    return n if n in master else None


def categorize(names: List[str], master: Set[str]) -> IngredientCategories:
    matched: List[str] = []
    unmatched: List[str] = []
    for name in names:
        canon = standardize(name, master)
        if canon is not None:
            matched.append(canon)
        else:
            unmatched.append(name)
    return IngredientCategories(matched=matched, unmatched=unmatched)
