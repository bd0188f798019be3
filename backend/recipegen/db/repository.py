# recipegen/db/repository.py
# recipes 컬렉션 저장소: motor
# - _id(ObjectId) ↔ Recipe.id(str) 변환은 여기서만 한다
# - 스키마 깨진 문서는 건너뛰고 경고만 남김

from __future__ import annotations
import logging
import re
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Tuple

from bson import ObjectId
from motor.motor_asyncio import AsyncIOMotorCollection
from pymongo.errors import DuplicateKeyError
from pydantic import ValidationError

from recipegen.db.models.activity import Favorite, Rating
from recipegen.db.models.recipe import Difficulty, Recipe, Source

log = logging.getLogger(__name__)


def _to_doc(recipe: Recipe) -> Dict[str, Any]:
    doc = recipe.model_dump(by_alias=True, mode="json", exclude={"id"})
    doc["createdAt"] = recipe.created_at  # Mongo에는 datetime 그대로
    doc["dietTags"] = sorted(recipe.diet_tags)
    return doc


def _from_doc(doc: Dict[str, Any]) -> Optional[Recipe]:
    d = dict(doc)
    oid = d.pop("_id", None)
    if oid is not None:
        d["id"] = str(oid)
    try:
        return Recipe.model_validate(d)
    except ValidationError as e:
        log.warning("skipping malformed recipe doc %s: %s", d.get("id"), e.error_count())
        return None


class MongoRecipeStore:
    def __init__(self, collection: AsyncIOMotorCollection):
        self.col = collection

    async def find_all(self) -> List[Recipe]:
        out: List[Recipe] = []
        async for doc in self.col.find({}):
            r = _from_doc(doc)
            if r is not None:
                out.append(r)
        return out

    async def find_by_id(self, rid: str) -> Optional[Recipe]:
        if not ObjectId.is_valid(rid):
            return None
        doc = await self.col.find_one({"_id": ObjectId(rid)})
        return _from_doc(doc) if doc else None

    async def find_by_ids(self, ids: Iterable[str]) -> List[Recipe]:
        # 입력 순서 유지, 없는 id는 건너뜀
        wanted = [ObjectId(i) for i in ids if ObjectId.is_valid(i)]
        if not wanted:
            return []
        found: Dict[str, Recipe] = {}
        async for doc in self.col.find({"_id": {"$in": wanted}}):
            r = _from_doc(doc)
            if r is not None:
                found[r.id] = r
        return [found[str(o)] for o in wanted if str(o) in found]

    async def save(self, recipe: Recipe) -> Recipe:
        # id 없으면 insert 후 새 id 부여, 있으면 전체 교체(upsert)
        doc = _to_doc(recipe)
        if recipe.id and ObjectId.is_valid(recipe.id):
            await self.col.replace_one({"_id": ObjectId(recipe.id)}, doc, upsert=True)
            return recipe
        res = await self.col.insert_one(doc)
        return recipe.model_copy(update={"id": str(res.inserted_id)})

    async def save_all(self, recipes: Iterable[Recipe]) -> List[Recipe]:
        items = list(recipes)
        if not items:
            return []
        res = await self.col.insert_many([_to_doc(r) for r in items])
        return [r.model_copy(update={"id": str(oid)}) for r, oid in zip(items, res.inserted_ids)]

    async def delete_by_source(self, source: Source) -> int:
        res = await self.col.delete_many({"source": source.value})
        return res.deleted_count

    async def count(self, source: Optional[Source] = None) -> int:
        q = {"source": source.value} if source else {}
        return await self.col.count_documents(q)

    async def search(
        self,
        query: Optional[str] = None,
        diet: Optional[str] = None,
        time_max: Optional[int] = None,
        difficulty: Optional[Difficulty] = None,
        cuisine: Optional[str] = None,
        skip: int = 0,
        limit: int = 20,
    ) -> Tuple[List[Recipe], int]:
        q: Dict[str, Any] = {}
        if query:
            q["title"] = {"$regex": re.escape(query.strip()), "$options": "i"}
        if diet:
            q["dietTags"] = diet
        if time_max:
            q["timeMinutes"] = {"$lte": time_max}
        if difficulty:
            q["difficulty"] = difficulty.value
        if cuisine:
            q["cuisine"] = {"$regex": re.escape(cuisine.strip()), "$options": "i"}

        total = await self.col.count_documents(q)
        cur = self.col.find(q).sort([("title", 1), ("_id", 1)]).skip(skip).limit(limit)
        docs = await cur.to_list(length=limit)
        items = [r for r in (_from_doc(d) for d in docs) if r is not None]
        return items, total


# -----------------------------------------------------------------------------
# 즐겨찾기 / 평점 (userId = anon_id 쿠키)
# -----------------------------------------------------------------------------

class AlreadyFavorited(Exception):
    pass


def _activity_doc(m) -> Dict[str, Any]:
    return m.model_dump(by_alias=True, exclude={"id"})


def _with_id(doc: Dict[str, Any]) -> Dict[str, Any]:
    d = dict(doc)
    d["id"] = str(d.pop("_id"))
    return d


class MongoFavoriteStore:
    def __init__(self, collection: AsyncIOMotorCollection):
        self.col = collection

    async def exists(self, anon_id: str, recipe_id: str) -> bool:
        return await self.col.count_documents({"userId": anon_id, "recipeId": recipe_id}, limit=1) > 0

    async def add(self, anon_id: str, recipe_id: str) -> Favorite:
        if await self.exists(anon_id, recipe_id):
            raise AlreadyFavorited("Recipe already in favorites")
        fav = Favorite(anon_id=anon_id, recipe_id=recipe_id)
        try:
            res = await self.col.insert_one(_activity_doc(fav))
        except DuplicateKeyError:
            # (userId, recipeId) unique 인덱스
            raise AlreadyFavorited("Recipe already in favorites")
        return fav.model_copy(update={"id": str(res.inserted_id)})

    async def remove(self, anon_id: str, recipe_id: str) -> bool:
        res = await self.col.delete_one({"userId": anon_id, "recipeId": recipe_id})
        return res.deleted_count > 0

    async def list_by_user(self, anon_id: str) -> List[Favorite]:
        cur = self.col.find({"userId": anon_id}).sort([("createdAt", -1), ("_id", -1)])
        return [Favorite.model_validate(_with_id(d)) async for d in cur]

    async def count_by_recipe(self, recipe_id: str) -> int:
        return await self.col.count_documents({"recipeId": recipe_id})


class MongoRatingStore:
    def __init__(self, collection: AsyncIOMotorCollection):
        self.col = collection

    async def get(self, anon_id: str, recipe_id: str) -> Optional[Rating]:
        doc = await self.col.find_one({"userId": anon_id, "recipeId": recipe_id})
        return Rating.model_validate(_with_id(doc)) if doc else None

    async def upsert(self, anon_id: str, recipe_id: str, stars: int) -> Tuple[Rating, Optional[int]]:
        # (저장된 평점, 이전 별점) 반환. 신규면 이전 별점은 None
        existing = await self.get(anon_id, recipe_id)
        if existing is None:
            rating = Rating(anon_id=anon_id, recipe_id=recipe_id, stars=stars)
            res = await self.col.insert_one(_activity_doc(rating))
            return rating.model_copy(update={"id": str(res.inserted_id)}), None

        updated = existing.model_copy(update={"stars": stars, "updated_at": datetime.now(timezone.utc)})
        await self.col.update_one(
            {"_id": ObjectId(existing.id)},
            {"$set": {"stars": updated.stars, "updatedAt": updated.updated_at}},
        )
        return updated, existing.stars

    async def delete(self, anon_id: str, recipe_id: str) -> bool:
        res = await self.col.delete_one({"userId": anon_id, "recipeId": recipe_id})
        return res.deleted_count > 0

    async def list_by_user(self, anon_id: str) -> List[Rating]:
        cur = self.col.find({"userId": anon_id}).sort([("createdAt", -1), ("_id", -1)])
        return [Rating.model_validate(_with_id(d)) async for d in cur]

    async def summary(self, recipe_id: str) -> Tuple[float, int]:
        # (평균 별점, 평점 수), 평점 없으면 (0.0, 0)
        pipeline = [
            {"$match": {"recipeId": recipe_id}},
            {"$group": {"_id": None, "avg": {"$avg": "$stars"}, "n": {"$sum": 1}}},
        ]
        rows = await self.col.aggregate(pipeline).to_list(length=1)
        if not rows:
            return 0.0, 0
        return float(rows[0]["avg"]), int(rows[0]["n"])
