# recipegen/db/models/schemas.py
# API 입출력 모델
# RecipeRequest: 재료/필터 입력 (camelCase alias 허용)
# RecipeResponse: 최대 3개 레시피 + 생성 메타데이터
from __future__ import annotations
from datetime import datetime
from typing import List, Literal, Optional, Set

from pydantic import BaseModel, ConfigDict, Field, field_validator

from recipegen.db.models.recipe import Difficulty, Recipe


class RecipeRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    ingredients: List[str] = Field(min_length=1)
    diet_tags: Set[str] = Field(default_factory=set, alias="dietTags")
    max_time_minutes: Optional[int] = Field(default=None, alias="maxTimeMinutes", ge=1, le=300)
    difficulty: Optional[Difficulty] = None
    cuisine: Optional[str] = None
    servings: int = Field(default=4, gt=0)

    @field_validator("ingredients")
    @classmethod
    def _strip_ingredients(cls, v: List[str]) -> List[str]:
        # 공백만 있는 항목 제거, 전부 비면 거절
        out = [s.strip() for s in v if isinstance(s, str) and s.strip()]
        if not out:
            raise ValueError("at least one non-blank ingredient is required")
        return out

    @field_validator("diet_tags")
    @classmethod
    def _strip_tags(cls, v: Set[str]) -> Set[str]:
        return {t.strip() for t in v if t and t.strip()}

    @field_validator("cuisine")
    @classmethod
    def _blank_cuisine(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        return v.strip() or None


class RecipeMetadata(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    total_recipes: int = Field(alias="totalRecipes")
    high_match_count: int = Field(alias="highMatchCount")
    llm_generated_count: int = Field(alias="llmGeneratedCount")
    strategy: Literal["db_only", "db_llm_combined"]
    user_has_all_count: int = Field(default=0, alias="userHasAllCount")
    has_user_has_all_recipes: bool = Field(default=False, alias="hasUserHasAllRecipes")
    message: Optional[str] = None
    user_has_all_recipe_ids: List[str] = Field(default_factory=list, alias="userHasAllRecipeIds")


class RecipeResponse(BaseModel):
    recipes: List[Recipe] = Field(default_factory=list)
    metadata: RecipeMetadata


class IngredientCategories(BaseModel):
    matched: List[str] = Field(default_factory=list)
    unmatched: List[str] = Field(default_factory=list)


class IngredientsIn(BaseModel):
    ingredients: List[str] = Field(default_factory=list)


class RecognizedIngredient(BaseModel):
    name: str
    confidence: float = Field(default=0.5, ge=0, le=1)


class IngredientRecognition(BaseModel):
    ingredients: List[RecognizedIngredient] = Field(default_factory=list)


class RecipePage(BaseModel):
    items: List[Recipe] = Field(default_factory=list)
    total: int = 0
    page: int = 0
    size: int = 20


# # 즐겨찾기/평점 입출력
class RateIn(BaseModel):
    stars: int = Field(ge=1, le=5)


class RatingInfo(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    average_rating: float = Field(default=0.0, alias="averageRating")
    rating_count: int = Field(default=0, alias="ratingCount")
    user_rating: Optional[int] = Field(default=None, alias="userRating")


class FavoriteInfo(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    favorite_count: int = Field(default=0, alias="favoriteCount")
    is_favorited: bool = Field(default=False, alias="isFavorited")


class UserStats(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    saved_recipes_count: int = Field(default=0, alias="savedRecipesCount")
    ratings_count: int = Field(default=0, alias="ratingsCount")
    first_seen: Optional[datetime] = Field(default=None, alias="firstSeen")   # 첫 활동 시각
