# recipegen/services/dedupe.py
# 제목 + 재료 이름 집합으로 중복 제거 (먼저 나온 것 유지, 순서 보존)

from __future__ import annotations
from typing import Dict, Iterable, List

from recipegen.db.models.recipe import Recipe


def recipe_key(recipe: Recipe) -> str:
    names = sorted((i.name or "").lower() for i in recipe.ingredients)
    return recipe.title.lower().strip() + "|" + ",".join(names)


def dedupe(recipes: Iterable[Recipe]) -> List[Recipe]:
    seen: Dict[str, Recipe] = {}
    for r in recipes:
        seen.setdefault(recipe_key(r), r)
    return list(seen.values())
