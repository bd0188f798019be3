# recipegen/services/scaler.py
# 인분 스케일링
# - 원본은 건드리지 않고 model_copy로 새 레시피 반환
# - "to taste" 같은 비수치 수량은 그대로, 파싱 실패도 원문 유지 (예외 없음)

from __future__ import annotations
import math
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional

from recipegen.core.config import settings
from recipegen.db.models.recipe import Ingredient, Nutrition, Recipe

_UNSCALABLE = {"to taste"}


def _parse_quantity(text: str) -> Optional[float]:
    s = text.strip()
    if "/" in s:
        parts = s.split("/")
        if len(parts) != 2:
            return None
        head = parts[0].split()
        if not head or len(head) > 2:
            return None
        whole = float(head[0]) if len(head) == 2 else 0.0   # "1 1/2" 대분수
        num, den = float(head[-1]), float(parts[1].strip())
        if den == 0:
            return None
        value = whole + num / den
    else:
        value = float(s)
    if not math.isfinite(value) or value < 0:
        return None
    return value


def format_quantity(value: float) -> str:
    whole = math.floor(value)
    if math.isclose(value, round(value), abs_tol=1e-9):
        return str(int(round(value)))
    if math.isclose(value - whole, 0.5, abs_tol=1e-9):
        return "1/2" if whole == 0 else f"{whole} 1/2"
    return str(_half_up(value, 1))


def scale_quantity(quantity: Optional[str], factor: float) -> Optional[str]:
    if quantity is None or not quantity.strip():
        return quantity
    if quantity.strip().lower() in _UNSCALABLE:
        return quantity
    try:
        value = _parse_quantity(quantity)
    except ValueError:
        return quantity
    if value is None:
        return quantity
    return format_quantity(value * factor)


def _half_up(x: float, places: int) -> Decimal:
    q = Decimal(1).scaleb(-places)
    return Decimal(str(x)).quantize(q, rounding=ROUND_HALF_UP)


def scale_nutrition(n: Optional[Nutrition], factor: float) -> Optional[Nutrition]:
    if n is None:
        return None
    return Nutrition(
        kcal=int(_half_up(n.kcal * factor, 0)),
        protein=float(_half_up(n.protein * factor, 1)),
        carbs=float(_half_up(n.carbs * factor, 1)),
        fat=float(_half_up(n.fat * factor, 1)),
    )


def scale_recipe(recipe: Recipe, servings: int, base_servings: Optional[int] = None) -> Recipe:
    base = base_servings or settings.BASE_SERVINGS
    if servings == base:
        return recipe
    factor = servings / base
    ingredients = [
        Ingredient(name=i.name, quantity=scale_quantity(i.quantity, factor), unit=i.unit)
        for i in recipe.ingredients
    ]
    return recipe.model_copy(
        update={"ingredients": ingredients, "nutrition": scale_nutrition(recipe.nutrition, factor)}
    )
