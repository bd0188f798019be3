# backend/tests/conftest.py
# 인메모리 가짜 저장소/LLM/텔레메트리 + 레시피 팩토리

from __future__ import annotations
from typing import Dict, List, Optional

import pytest

from recipegen.db.models.activity import Favorite, Rating
from recipegen.db.models.recipe import Difficulty, Ingredient, Nutrition, Recipe, Source
from recipegen.db.repository import AlreadyFavorited


def make_recipe(
    title: str,
    names: List[str],
    rid: Optional[str] = None,
    time_minutes: Optional[int] = 20,
    difficulty: Difficulty = Difficulty.EASY,
    cuisine: Optional[str] = "Italian",
    source: Source = Source.DB,
    quantities: Optional[List[Optional[str]]] = None,
    nutrition: Optional[Nutrition] = None,
    steps: Optional[List[str]] = None,
) -> Recipe:
    qs = quantities or ["1"] * len(names)
    return Recipe(
        id=rid,
        title=title,
        ingredients=[Ingredient(name=n, quantity=q, unit="pc") for n, q in zip(names, qs)],
        steps=["Cook it."] if steps is None else steps,
        time_minutes=time_minutes,
        difficulty=difficulty,
        cuisine=cuisine,
        nutrition=nutrition,
        source=source,
    )


class FakeStore:
    def __init__(self, recipes: Optional[List[Recipe]] = None, fail: bool = False):
        self.recipes: List[Recipe] = list(recipes or [])
        self.fail = fail
        self.find_all_calls = 0
        self._next = 1

    async def find_all(self) -> List[Recipe]:
        self.find_all_calls += 1
        if self.fail:
            raise RuntimeError("store down")
        return list(self.recipes)

    async def find_by_id(self, rid: str) -> Optional[Recipe]:
        return next((r for r in self.recipes if r.id == rid), None)

    async def find_by_ids(self, ids) -> List[Recipe]:
        by_id = {r.id: r for r in self.recipes}
        return [by_id[i] for i in ids if i in by_id]

    async def save(self, recipe: Recipe) -> Recipe:
        if recipe.id is None:
            recipe = recipe.model_copy(update={"id": f"new-{self._next}"})
            self._next += 1
        self.recipes = [r for r in self.recipes if r.id != recipe.id] + [recipe]
        return recipe

    async def save_all(self, recipes) -> List[Recipe]:
        return [await self.save(r) for r in recipes]

    async def delete_by_source(self, source: Source) -> int:
        before = len(self.recipes)
        self.recipes = [r for r in self.recipes if r.source != source]
        return before - len(self.recipes)

    async def count(self, source: Optional[Source] = None) -> int:
        return len([r for r in self.recipes if source is None or r.source == source])

    async def search(self, query=None, diet=None, time_max=None, difficulty=None, cuisine=None, skip=0, limit=20):
        items = [r for r in self.recipes if not query or query.lower() in r.title.lower()]
        return items[skip:skip + limit], len(items)


class FakeFavoriteStore:
    def __init__(self):
        self.items: List[Favorite] = []

    async def exists(self, anon_id, recipe_id) -> bool:
        return any(f.anon_id == anon_id and f.recipe_id == recipe_id for f in self.items)

    async def add(self, anon_id, recipe_id) -> Favorite:
        if await self.exists(anon_id, recipe_id):
            raise AlreadyFavorited("Recipe already in favorites")
        fav = Favorite(id=f"f{len(self.items) + 1}", anon_id=anon_id, recipe_id=recipe_id)
        self.items.append(fav)
        return fav

    async def remove(self, anon_id, recipe_id) -> bool:
        before = len(self.items)
        self.items = [f for f in self.items if not (f.anon_id == anon_id and f.recipe_id == recipe_id)]
        return len(self.items) < before

    async def list_by_user(self, anon_id) -> List[Favorite]:
        return [f for f in reversed(self.items) if f.anon_id == anon_id]

    async def count_by_recipe(self, recipe_id) -> int:
        return len([f for f in self.items if f.recipe_id == recipe_id])


class FakeRatingStore:
    def __init__(self):
        self.items: Dict[tuple, Rating] = {}

    async def get(self, anon_id, recipe_id) -> Optional[Rating]:
        return self.items.get((anon_id, recipe_id))

    async def upsert(self, anon_id, recipe_id, stars):
        old = self.items.get((anon_id, recipe_id))
        rating = Rating(anon_id=anon_id, recipe_id=recipe_id, stars=stars)
        self.items[(anon_id, recipe_id)] = rating
        return rating, (old.stars if old else None)

    async def delete(self, anon_id, recipe_id) -> bool:
        return self.items.pop((anon_id, recipe_id), None) is not None

    async def list_by_user(self, anon_id) -> List[Rating]:
        return [r for (a, _), r in self.items.items() if a == anon_id]

    async def summary(self, recipe_id):
        stars = [r.stars for r in self.items.values() if r.recipe_id == recipe_id]
        return (sum(stars) / len(stars), len(stars)) if stars else (0.0, 0)


class FakeLLM:
    """generate는 호출마다 다음 레시피 하나를 돌려줌. 목록이 바닥나면 []."""

    def __init__(self, generated: Optional[List[Recipe]] = None, adapted: Optional[List[Recipe]] = None,
                 raise_on_adapt: bool = False):
        self.generated = list(generated or [])
        self.adapted = adapted
        self.raise_on_adapt = raise_on_adapt
        self.calls: List[str] = []
        self.exclude_seen: List[List[str]] = []

    async def adapt(self, recipes, request, actor=None, timeout=None):
        self.calls.append("adapt")
        if self.raise_on_adapt:
            raise TimeoutError("deadline")
        if self.adapted is not None:
            return list(self.adapted)
        return [
            r.model_copy(update={"source": Source.LLM, "diet_tags": set(request.diet_tags)})
            for r in recipes
        ]

    async def generate(self, request, exclude_titles=(), actor=None, timeout=None):
        self.calls.append("generate")
        self.exclude_seen.append(list(exclude_titles))
        if not self.generated:
            return []
        return [self.generated.pop(0)]


class FakeTelemetry:
    def __init__(self, fail: bool = False):
        self.events: List[Dict] = []
        self.fail = fail

    async def record(self, event, actor, payload, level="INFO"):
        if self.fail:
            raise RuntimeError("sink down")
        self.events.append({"event": event, "actor": actor, "payload": payload, "level": level})

    def names(self) -> List[str]:
        return [e["event"] for e in self.events]


@pytest.fixture
def chicken_tomato():
    return make_recipe(
        "Chicken Tomato Skillet", ["chicken", "tomato"], rid="r-ct",
        quantities=["2", "1/2"], nutrition=Nutrition(kcal=400, protein=30.0, carbs=10.0, fat=20.0),
    )


@pytest.fixture
def telemetry():
    return FakeTelemetry()
