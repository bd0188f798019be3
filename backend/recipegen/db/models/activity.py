# recipegen/db/models/activity.py
# 사용자 활동 문서: 즐겨찾기 / 평점
# 사용자 식별은 anon_id 쿠키 (Mongo 필드명은 userId)
from __future__ import annotations
from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


def _now() -> datetime:
    return datetime.now(timezone.utc)


class Favorite(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: Optional[str] = None
    anon_id: str = Field(alias="userId")
    recipe_id: str = Field(alias="recipeId")
    created_at: datetime = Field(default_factory=_now, alias="createdAt")


class Rating(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: Optional[str] = None
    anon_id: str = Field(alias="userId")
    recipe_id: str = Field(alias="recipeId")
    stars: int = Field(ge=1, le=5)
    created_at: datetime = Field(default_factory=_now, alias="createdAt")
    updated_at: Optional[datetime] = Field(default=None, alias="updatedAt")
