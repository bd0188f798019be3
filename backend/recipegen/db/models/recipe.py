# recipegen/db/models/recipe.py
# 레시피 표준 스키마
# - JSON(프론트/LLM/Mongo)은 camelCase, 파이썬 속성은 snake_case
# - 파이프라인은 모델을 변경하지 않고 model_copy로 새 값을 만든다

from __future__ import annotations
from datetime import datetime, timezone
from enum import Enum
from typing import Any, List, Optional, Set

from pydantic import BaseModel, ConfigDict, Field, field_validator


class Difficulty(str, Enum):
    EASY = "EASY"
    MEDIUM = "MEDIUM"
    HARD = "HARD"

    @property
    def rank(self) -> int:
        return _DIFFICULTY_RANK[self]


_DIFFICULTY_RANK = {Difficulty.EASY: 0, Difficulty.MEDIUM: 1, Difficulty.HARD: 2}


class Source(str, Enum):
    DB = "DB"
    LLM = "LLM"
    FALLBACK = "FALLBACK"


class Ingredient(BaseModel):
    name: str
    quantity: Optional[str] = None   # "2", "1.5", "3/4", "to taste"
    unit: Optional[str] = None

    @field_validator("quantity", mode="before")
    @classmethod
    def _quantity_as_text(cls, v: Any) -> Any:
        # LLM이 숫자로 주는 경우가 많음 → 문자열로 통일
        if isinstance(v, bool):
            return str(v).lower()
        if isinstance(v, (int, float)):
            return f"{v:g}"
        return v


class Nutrition(BaseModel):
    kcal: int = Field(ge=0)
    protein: float = Field(ge=0)   # g
    carbs: float = Field(ge=0)
    fat: float = Field(ge=0)


class Recipe(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: Optional[str] = None
    title: str
    ingredients: List[Ingredient] = Field(default_factory=list)
    steps: List[str] = Field(default_factory=list)
    time_minutes: Optional[int] = Field(default=None, alias="timeMinutes", gt=0)
    difficulty: Difficulty = Difficulty.EASY
    cuisine: Optional[str] = None
    diet_tags: Set[str] = Field(default_factory=set, alias="dietTags")
    nutrition: Optional[Nutrition] = None
    source: Source = Source.DB
    created_by: Optional[str] = Field(default=None, alias="createdBy")
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc), alias="createdAt")
    image_url: Optional[str] = Field(default=None, alias="imageUrl")

    def ingredient_names(self) -> Set[str]:
        return {i.name.strip().lower() for i in self.ingredients if i.name and i.name.strip()}

    def is_presentable(self) -> bool:
        # 사용자에게 노출 가능한 최소 조건
        return bool(self.ingredients) and bool(self.steps)
