# recipegen/services/telemetry.py
# 파이프라인 이벤트 기록: logging + Mongo logs 컬렉션
# - 이벤트마다 payload 모델을 따로 둔다 (자유형 dict 금지)
# - 기록 실패는 호출자에게 올리지 않음

from __future__ import annotations
import logging
from datetime import datetime, timezone
from typing import List, Literal, Optional

from motor.motor_asyncio import AsyncIOMotorCollection
from pydantic import BaseModel

log = logging.getLogger(__name__)

Level = Literal["INFO", "WARN", "ERROR", "DEBUG"]

_PY_LEVEL = {"INFO": logging.INFO, "WARN": logging.WARNING, "ERROR": logging.ERROR, "DEBUG": logging.DEBUG}


class IngredientAnalysis(BaseModel):
    ingredients: List[str]
    matched: List[str]
    unmatched: List[str]


class CandidateSelection(BaseModel):
    stored_total: int
    selected: List[str]           # 제목
    similarities: List[float]


class AdaptationCall(BaseModel):
    diet_tags: List[str]
    input_count: int
    output_count: int


class GenerationCall(BaseModel):
    attempt: int
    exclude_titles: List[str]
    produced: List[str]


class GenerationSummary(BaseModel):
    strategy: str
    total: int
    from_store: int
    generated: int
    servings: int
    titles: List[str]


class PipelineError(BaseModel):
    stage: str
    error: str


class RecipeSaved(BaseModel):
    recipe_id: Optional[str]
    title: str
    source: str


class DatabaseSeeded(BaseModel):
    inserted: int
    removed: int


class RecipeAdded(BaseModel):
    recipe_id: Optional[str]
    title: str


class FavoriteChange(BaseModel):
    recipe_id: str


class RatingChange(BaseModel):
    recipe_id: str
    stars: Optional[int] = None       # 삭제면 None
    old_stars: Optional[int] = None


class TelemetrySink:
    def __init__(self, collection: Optional[AsyncIOMotorCollection] = None):
        self.col = collection

    async def record(self, event: str, actor: Optional[str], payload: BaseModel, level: Level = "INFO") -> None:
        data = payload.model_dump(mode="json")
        log.log(_PY_LEVEL.get(level, logging.INFO), "[telemetry] %s actor=%s %s", event, actor, data)
        if self.col is None:
            return
        try:
            await self.col.insert_one({
                "timestamp": datetime.now(timezone.utc),
                "event": event,
                "userId": actor,
                "level": level,
                "metadata": data,
            })
        except Exception:
            log.exception("failed to persist telemetry event %s", event)
