# recipegen/services/seed.py
# 시드 레시피 적재
# - {"recipes": [...]} 형식 JSON, 모든 레시피는 source=DB / createdBy=None
# - 기존 DB 출처 레시피는 지우고 다시 넣는다 (LLM 저장분은 유지)

from __future__ import annotations
import json
import logging
from pathlib import Path
from typing import List, Optional, Union

from pydantic import ValidationError

from recipegen.core.config import settings
from recipegen.db.models.recipe import Recipe, Source
from recipegen.services.telemetry import DatabaseSeeded

log = logging.getLogger(__name__)

DEFAULT_SEED_FILE = Path(__file__).resolve().parent.parent / "data" / "seed_recipes.json"


def seed_path() -> Path:
    return Path(settings.SEED_FILE) if settings.SEED_FILE else DEFAULT_SEED_FILE


def load_seed_recipes(path: Optional[Union[str, Path]] = None) -> List[Recipe]:
    p = Path(path) if path else seed_path()
    with p.open(encoding="utf-8") as f:
        data = json.load(f)

    items = data.get("recipes", []) if isinstance(data, dict) else data
    out: List[Recipe] = []
    for i, item in enumerate(items):
        try:
            r = Recipe.model_validate(item)
        except ValidationError as e:
            log.warning("seed recipe #%d skipped: %s", i, e.error_count())
            continue
        out.append(r.model_copy(update={"id": None, "source": Source.DB, "created_by": None}))
    return out


async def seed_database(store, telemetry=None, path: Optional[Union[str, Path]] = None) -> int:
    recipes = load_seed_recipes(path)
    removed = await store.delete_by_source(Source.DB)
    saved = await store.save_all(recipes)
    log.info("seeded %d recipes (removed %d)", len(saved), removed)
    if telemetry is not None:
        try:
            await telemetry.record(
                "database_seeded", None, DatabaseSeeded(inserted=len(saved), removed=removed)
            )
        except Exception:
            log.exception("telemetry sink failed for database_seeded")
    return len(saved)
