# recipegen/services/llm.py
# LLM 레시피 생성/식단 변환 (OpenAI 호환 엔드포인트, 기본 OpenRouter)
# - Chat Completions + JSON 응답만 사용
# - 모든 실패(키 없음/네트워크/타임아웃/JSON 깨짐)는 [] 로 강등
# - 응답 JSON은 제어문자/깨진 문자 제거 후 바깥 {...} 또는 [...]만 잘라 파싱

from __future__ import annotations
import asyncio
import json
import logging
import re
from typing import Any, Dict, Iterable, List, Optional

import httpx
from openai import AsyncOpenAI
from pydantic import ValidationError

from recipegen.core.config import settings
from recipegen.db.models.recipe import Difficulty, Ingredient, Nutrition, Recipe, Source
from recipegen.db.models.schemas import RecipeRequest

log = logging.getLogger(__name__)


class LLMNotReady(Exception):
    # LLM 호출 준비 미완(키 없음)
    pass


GENERATE_SYSTEM = (
    "You are a culinary assistant creating practical, detailed, safe recipes. "
    "Always return valid JSON."
)
ADAPT_SYSTEM = (
    "You are a culinary expert who modifies existing recipes to accommodate dietary "
    "restrictions while maintaining the original flavor and structure. Always return valid JSON."
)

_RECIPE_SHAPE: Dict[str, Any] = {
    "title": "Recipe Title",
    "timeMinutes": 30,
    "difficulty": "EASY",
    "cuisine": "Cuisine Name",
    "ingredients": [{"name": "Ingredient Name", "quantity": "2", "unit": "cups"}],
    "steps": ["Step 1 description", "Step 2 description"],
    "nutrition": {"kcal": 400, "protein": 20.0, "carbs": 45.0, "fat": 15.0},
}

_JSON_ONLY = "\nDo not include any text before or after the JSON. Only return the JSON object."


# -----------------------------------------------------------------------------
# 프롬프트
# -----------------------------------------------------------------------------

def build_generation_prompt(request: RecipeRequest, exclude_titles: Iterable[str] = ()) -> str:
    parts = ["Generate 1 practical recipe using these ingredients: " + ", ".join(request.ingredients)]
    if request.diet_tags:
        parts.append("Dietary requirements: " + ", ".join(sorted(request.diet_tags)))
        parts.append("Ensure the recipe strictly follows these dietary restrictions")
    if request.cuisine:
        parts.append(f"Preferred cuisine: {request.cuisine}")
    if request.max_time_minutes:
        parts.append(f"Maximum cooking time: {request.max_time_minutes} minutes")
    if request.difficulty:
        parts.append(f"Difficulty: {request.difficulty.value.lower()}")
    parts.append(f"Number of people: {request.servings}")
    excluded = [t for t in exclude_titles if t]
    if excluded:
        parts.append("Do NOT create a recipe with these titles: " + ", ".join(excluded))

    return (
        ". ".join(parts)
        + "\n\nIMPORTANT: Return ONLY valid JSON in this exact format:\n"
        + json.dumps(_RECIPE_SHAPE, indent=2)
        + "\n"
        + _JSON_ONLY
    )


def build_adaptation_prompt(recipes: List[Recipe], request: RecipeRequest) -> str:
    lines = [ADAPT_SYSTEM.replace(" Always return valid JSON.", "") + " Given the following DB recipes:"]
    for i, r in enumerate(recipes, 1):
        lines.append(f"Recipe {i}: {r.title} ({r.difficulty.value.lower()})")
        lines.append("Ingredients: " + ", ".join(ing.name for ing in r.ingredients))
        lines.append("Steps: " + "; ".join(r.steps))
        lines.append(f"--- End Recipe {i} ---")
    lines.append(f"Number of people to serve: {request.servings}.")
    lines.append(
        "Your task is to modify these recipes to accommodate the following dietary preferences: "
        + ", ".join(sorted(request.diet_tags)) + "."
    )
    lines.append(
        "For each recipe, if an ingredient is not suitable for the dietary preference, replace it "
        "with a suitable alternative. If a step is not suitable for the dietary preference, modify it."
    )
    shape = {k: v for k, v in _RECIPE_SHAPE.items() if k != "nutrition"}
    return (
        "\n".join(lines)
        + "\n\nIMPORTANT: Return ONLY valid JSON in this exact format:\n"
        + json.dumps({"recipes": [shape]}, indent=2)
        + "\n"
        + _JSON_ONLY
    )


# -----------------------------------------------------------------------------
# 응답 정리/파싱
# -----------------------------------------------------------------------------

# 제어문자, U+FFFD, CJK 기호/구두점, 반각/전각 형태
_JUNK_RE = re.compile(r"[\x00-\x1f\x7f\ufffd\u3000-\u303f\uff00-\uffef]")


def clean_json_response(text: Optional[str]) -> str:
    s = _JUNK_RE.sub("", text or "").strip()
    if s.startswith("["):
        open_ch, close_ch = "[", "]"
    else:
        open_ch, close_ch = "{", "}"
    start, end = s.find(open_ch), s.rfind(close_ch)
    if start == -1 or end <= start:
        return ""
    return s[start:end + 1]


def _as_int(v: Any) -> Optional[int]:
    try:
        n = int(float(v))
    except (TypeError, ValueError):
        return None
    return n if n > 0 else None


def _as_difficulty(v: Any) -> Difficulty:
    try:
        return Difficulty(str(v).strip().upper())
    except ValueError:
        return Difficulty.EASY


def _as_ingredient(v: Any) -> Optional[Ingredient]:
    if isinstance(v, str):
        return Ingredient(name=v.strip()) if v.strip() else None
    if not isinstance(v, dict):
        return None
    name = str(v.get("name") or "").strip()
    if not name:
        return None
    try:
        return Ingredient(name=name, quantity=v.get("quantity"), unit=v.get("unit") or None)
    except ValidationError:
        return Ingredient(name=name)


def recipe_from_llm(item: Any) -> Optional[Recipe]:
    """LLM dict → Recipe(source=LLM). 제목/재료/단계 중 하나라도 없으면 None."""
    if not isinstance(item, dict):
        return None
    title = str(item.get("title") or "").strip()
    ingredients = [i for i in (_as_ingredient(x) for x in item.get("ingredients") or []) if i]
    steps = [str(s).strip() for s in item.get("steps") or [] if str(s).strip()]
    if not title or not ingredients or not steps:
        return None

    nutrition = None
    if isinstance(item.get("nutrition"), dict):
        try:
            nutrition = Nutrition.model_validate(item["nutrition"])
        except ValidationError:
            log.debug("dropping invalid nutrition for %r", title)

    tags = item.get("dietTags") or []
    cuisine = item.get("cuisine")
    return Recipe(
        title=title,
        ingredients=ingredients,
        steps=steps,
        time_minutes=_as_int(item.get("timeMinutes")),
        difficulty=_as_difficulty(item.get("difficulty")),
        cuisine=(str(cuisine).strip() or None) if cuisine else None,
        diet_tags={str(t) for t in tags if t} if isinstance(tags, list) else set(),
        nutrition=nutrition,
        source=Source.LLM,
    )


def parse_recipes(text: Optional[str]) -> List[Recipe]:
    # 배열 / {"recipes": [...]} / 단일 객체 모두 허용, 깨진 항목은 건너뜀
    cleaned = clean_json_response(text)
    if not cleaned:
        return []
    try:
        obj = json.loads(cleaned)
    except json.JSONDecodeError:
        log.warning("LLM returned non-JSON content; ignoring")
        return []

    if isinstance(obj, list):
        items = obj
    elif isinstance(obj, dict) and isinstance(obj.get("recipes"), list):
        items = obj["recipes"]
    else:
        items = [obj]
    return [r for r in (recipe_from_llm(it) for it in items) if r is not None]


# -----------------------------------------------------------------------------
# 클라이언트
# -----------------------------------------------------------------------------

class LLMRecipeClient:
    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        model: Optional[str] = None,
        timeout: Optional[float] = None,
        client: Optional[AsyncOpenAI] = None,
    ):
        self.api_key = api_key if api_key is not None else settings.llm_api_key
        self.base_url = base_url or settings.LLM_BASE_URL
        self.model = model or settings.LLM_MODEL
        self.timeout = timeout or settings.LLM_TIMEOUT_SEC
        self._sdk = client

    def _client(self) -> AsyncOpenAI:
        if self._sdk is None:
            if not self.api_key:
                raise LLMNotReady("LLM_API_KEY not set")
            self._sdk = AsyncOpenAI(
                api_key=self.api_key,
                base_url=self.base_url,
                default_headers={"X-Title": "Smart Recipe Generator"},
                timeout=httpx.Timeout(self.timeout, connect=10.0),
                max_retries=0,
            )
        return self._sdk

    async def chat(
        self,
        messages: List[Dict[str, Any]],
        temperature: float,
        max_tokens: int,
        timeout: Optional[float] = None,
        model: Optional[str] = None,
    ) -> str:
        # 호출당 데드라인. 타임아웃은 asyncio.TimeoutError로 올라감
        client = self._client()
        chat = await asyncio.wait_for(
            client.chat.completions.create(
                model=model or self.model,
                temperature=temperature,
                max_tokens=max_tokens,
                messages=messages,
                response_format={"type": "json_object"},
            ),
            timeout=timeout or self.timeout,
        )
        text = chat.choices[0].message.content if chat and chat.choices else ""
        return text or ""

    async def generate(
        self,
        request: RecipeRequest,
        exclude_titles: Iterable[str] = (),
        actor: Optional[str] = None,
        timeout: Optional[float] = None,
    ) -> List[Recipe]:
        prompt = build_generation_prompt(request, exclude_titles)
        log.debug("recipe generation prompt (actor=%s): %s", actor, prompt)
        try:
            text = await self.chat(
                [{"role": "system", "content": GENERATE_SYSTEM}, {"role": "user", "content": prompt}],
                temperature=0.7,
                max_tokens=4096,
                timeout=timeout,
            )
        except Exception as e:
            log.exception("recipe generation failed: %s", e)
            return []
        if not text:
            log.warning("recipe generation returned empty text")
            return []
        return parse_recipes(text)[:1]

    async def adapt(
        self,
        recipes: List[Recipe],
        request: RecipeRequest,
        actor: Optional[str] = None,
        timeout: Optional[float] = None,
    ) -> List[Recipe]:
        if not recipes:
            return []
        prompt = build_adaptation_prompt(recipes, request)
        log.debug("dietary adaptation prompt (actor=%s): %s", actor, prompt)
        try:
            text = await self.chat(
                [{"role": "system", "content": ADAPT_SYSTEM}, {"role": "user", "content": prompt}],
                temperature=0.6,
                max_tokens=2000,
                timeout=timeout,
            )
        except Exception as e:
            log.exception("dietary adaptation failed: %s", e)
            return []

        adapted = parse_recipes(text)
        # 요청한 식단 태그를 결과에 반영
        return [r.model_copy(update={"diet_tags": r.diet_tags | request.diet_tags}) for r in adapted]
