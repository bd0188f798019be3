# recipegen/services/vision.py
# 사진에서 재료 인식 (LLM Vision)
# - 마스터 리스트를 프롬프트에 넣어 알려진 재료는 그 표기 그대로 돌려받음
# - 실패 시 [] (LLMNotReady는 라우터에서 503으로 변환)

from __future__ import annotations
import base64
import json
import logging
from typing import Any, Iterable, List, Optional

from pydantic import ValidationError

from recipegen.core.config import settings
from recipegen.db.models.schemas import RecognizedIngredient
from recipegen.services.llm import LLMNotReady, LLMRecipeClient, clean_json_response

log = logging.getLogger(__name__)


def _b64(b: bytes) -> str:
    return base64.b64encode(b).decode("ascii")


def build_recognition_prompt(master: Iterable[str]) -> str:
    known = ", ".join(sorted(master))
    return (
        f"Here is a list of known ingredients: [{known}]. "
        "For each ingredient you recognize in this image: "
        "- If it matches an ingredient in the provided list, return exactly that ingredient name from the list "
        "- If it doesn't match any ingredient in the list, return the ingredient name as you recognize it "
        'Return JSON: {"ingredients": [{"name": "ingredient", "confidence": 0.95}]}. '
        "No brands. No cookware. Be specific but concise."
    )


def parse_recognition(text: Optional[str]) -> List[RecognizedIngredient]:
    cleaned = clean_json_response(text)
    if not cleaned:
        return []
    try:
        obj: Any = json.loads(cleaned)
    except json.JSONDecodeError:
        log.warning("recognition returned non-JSON content; ignoring")
        return []

    items = obj.get("ingredients", []) if isinstance(obj, dict) else obj
    out: List[RecognizedIngredient] = []
    seen = set()
    for it in items if isinstance(items, list) else []:
        if isinstance(it, str):
            it = {"name": it}
        if not isinstance(it, dict) or not str(it.get("name") or "").strip():
            continue
        try:
            ing = RecognizedIngredient(
                name=str(it["name"]).strip(),
                confidence=min(1.0, max(0.0, float(it.get("confidence", 0.5)))),
            )
        except (TypeError, ValueError, ValidationError):
            continue
        if ing.name.lower() in seen:
            continue
        seen.add(ing.name.lower())
        out.append(ing)
    return out


async def recognize_ingredients(
    llm: LLMRecipeClient,
    image: bytes,
    master: Iterable[str],
    content_type: str = "image/jpeg",
    timeout: Optional[float] = None,
) -> List[RecognizedIngredient]:
    if not image:
        log.info("recognition skipped (empty image)")
        return []

    content = [
        {"type": "text", "text": build_recognition_prompt(master)},
        {
            "type": "image_url",
            "image_url": {"url": f"data:{content_type};base64,{_b64(image)}", "detail": "low"},
        },
    ]
    try:
        text = await llm.chat(
            [{"role": "user", "content": content}],
            temperature=0.3,
            max_tokens=500,
            timeout=timeout,
            model=settings.LLM_VISION_MODEL,
        )
    except LLMNotReady:
        raise
    except Exception as e:
        log.exception("ingredient recognition failed: %s", e)
        return []
    return parse_recognition(text)
