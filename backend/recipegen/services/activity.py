# recipegen/services/activity.py
# 즐겨찾기 / 평점 (익명 사용자 anon_id 기준)
# - 레시피 존재 확인 후 기록, 중복 즐겨찾기는 AlreadyFavorited
# - 활동 이벤트는 텔레메트리로 남기되 실패는 무시

from __future__ import annotations
import logging
from typing import List, Optional

from pydantic import BaseModel

from recipegen.db.models.activity import Favorite, Rating
from recipegen.db.models.recipe import Recipe
from recipegen.db.models.schemas import FavoriteInfo, RatingInfo, UserStats
from recipegen.services.telemetry import FavoriteChange, RatingChange

log = logging.getLogger(__name__)


class RecipeNotFound(Exception):
    pass


class UserActivity:
    def __init__(self, recipes, favorites, ratings, telemetry):
        self.recipes = recipes
        self.favorites = favorites
        self.ratings = ratings
        self.telemetry = telemetry

    async def _emit(self, event: str, actor: str, payload: BaseModel) -> None:
        try:
            await self.telemetry.record(event, actor, payload)
        except Exception:
            log.exception("telemetry sink failed for %s", event)

    async def _require_recipe(self, recipe_id: str) -> None:
        if await self.recipes.find_by_id(recipe_id) is None:
            raise RecipeNotFound(recipe_id)

    # ------------------------------
    # 즐겨찾기
    # ------------------------------

    async def add_favorite(self, anon_id: str, recipe_id: str) -> Favorite:
        await self._require_recipe(recipe_id)
        fav = await self.favorites.add(anon_id, recipe_id)
        await self._emit("recipe_favorited", anon_id, FavoriteChange(recipe_id=recipe_id))
        return fav

    async def remove_favorite(self, anon_id: str, recipe_id: str) -> bool:
        removed = await self.favorites.remove(anon_id, recipe_id)
        await self._emit("recipe_unfavorited", anon_id, FavoriteChange(recipe_id=recipe_id))
        return removed

    async def favorite_info(self, anon_id: Optional[str], recipe_id: str) -> FavoriteInfo:
        return FavoriteInfo(
            favorite_count=await self.favorites.count_by_recipe(recipe_id),
            is_favorited=bool(anon_id) and await self.favorites.exists(anon_id, recipe_id),
        )

    async def saved_recipes(self, anon_id: str) -> List[Recipe]:
        # 최근 즐겨찾기 순, 삭제된 레시피는 빠짐
        favs = await self.favorites.list_by_user(anon_id)
        return await self.recipes.find_by_ids([f.recipe_id for f in favs])

    # ------------------------------
    # 평점
    # ------------------------------

    async def rate(self, anon_id: str, recipe_id: str, stars: int) -> RatingInfo:
        await self._require_recipe(recipe_id)
        rating, old = await self.ratings.upsert(anon_id, recipe_id, stars)
        event = "rating_created" if old is None else "rating_updated"
        await self._emit(event, anon_id, RatingChange(recipe_id=recipe_id, stars=stars, old_stars=old))
        return await self.rating_info(anon_id, recipe_id, user_rating=rating.stars)

    async def delete_rating(self, anon_id: str, recipe_id: str) -> bool:
        removed = await self.ratings.delete(anon_id, recipe_id)
        await self._emit("rating_deleted", anon_id, RatingChange(recipe_id=recipe_id))
        return removed

    async def rating_info(
        self, anon_id: Optional[str], recipe_id: str, user_rating: Optional[int] = None
    ) -> RatingInfo:
        avg, count = await self.ratings.summary(recipe_id)
        if user_rating is None and anon_id:
            mine = await self.ratings.get(anon_id, recipe_id)
            user_rating = mine.stars if mine else None
        return RatingInfo(average_rating=avg, rating_count=count, user_rating=user_rating)

    async def user_ratings(self, anon_id: str) -> List[Rating]:
        return await self.ratings.list_by_user(anon_id)

    async def user_stats(self, anon_id: str) -> UserStats:
        favs = await self.favorites.list_by_user(anon_id)
        ratings = await self.ratings.list_by_user(anon_id)
        stamps = [f.created_at for f in favs] + [r.created_at for r in ratings]
        return UserStats(
            saved_recipes_count=len(favs),
            ratings_count=len(ratings),
            first_seen=min(stamps) if stamps else None,
        )
