import asyncio
import json
from types import SimpleNamespace

from conftest import make_recipe
from recipegen.db.models.recipe import Difficulty, Source
from recipegen.db.models.schemas import RecipeRequest
from recipegen.services.llm import (
    LLMRecipeClient,
    build_adaptation_prompt,
    build_generation_prompt,
    clean_json_response,
    parse_recipes,
    recipe_from_llm,
)

RECIPE = {
    "title": "Garlic Chicken",
    "timeMinutes": 30,
    "difficulty": "medium",
    "cuisine": "French",
    "ingredients": [{"name": "chicken", "quantity": 2, "unit": "pc"}, {"name": "garlic", "quantity": "3"}],
    "steps": ["Brown chicken.", "Add garlic."],
    "nutrition": {"kcal": 500, "protein": 40, "carbs": 5, "fat": 30},
}


class _Completions:
    def __init__(self, content=None, exc=None, delay=0.0):
        self.content, self.exc, self.delay = content, exc, delay
        self.kwargs = []

    async def create(self, **kwargs):
        self.kwargs.append(kwargs)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.exc:
            raise self.exc
        msg = SimpleNamespace(content=self.content)
        return SimpleNamespace(choices=[SimpleNamespace(message=msg)])


def _client(completions):
    sdk = SimpleNamespace(chat=SimpleNamespace(completions=completions))
    return LLMRecipeClient(api_key="k", client=sdk, timeout=5)


def test_clean_json_response_strips_junk_and_prose():
    raw = "Sure!\x00 Here you go:\n{\"title\": \"X\"}\u3000 thanks\ufffd"
    assert clean_json_response(raw) == '{"title": "X"}'


def test_clean_json_response_root_array():
    assert clean_json_response('  [{"a": 1}, {"b": 2}] trailing') == '[{"a": 1}, {"b": 2}]'


def test_clean_json_response_without_json():
    assert clean_json_response("no json here") == ""
    assert clean_json_response(None) == ""


def test_recipe_from_llm_maps_fields():
    r = recipe_from_llm(RECIPE)
    assert r.title == "Garlic Chicken"
    assert r.difficulty == Difficulty.MEDIUM
    assert r.source == Source.LLM
    assert r.ingredients[0].quantity == "2"
    assert r.ingredients[1].unit is None
    assert r.nutrition.kcal == 500


def test_recipe_from_llm_defaults_and_rejects():
    r = recipe_from_llm({**RECIPE, "difficulty": "impossible", "timeMinutes": None, "nutrition": {"kcal": -1}})
    assert r.difficulty == Difficulty.EASY
    assert r.time_minutes is None
    assert r.nutrition is None
    assert recipe_from_llm({**RECIPE, "steps": []}) is None
    assert recipe_from_llm({**RECIPE, "ingredients": []}) is None
    assert recipe_from_llm({**RECIPE, "title": " "}) is None
    assert recipe_from_llm("not a dict") is None


def test_parse_recipes_accepts_all_shapes():
    one = json.dumps(RECIPE)
    assert len(parse_recipes(one)) == 1
    assert len(parse_recipes(json.dumps([RECIPE, RECIPE]))) == 2
    envelope = json.dumps({"recipes": [RECIPE, {"title": "broken"}]})
    assert [r.title for r in parse_recipes(envelope)] == ["Garlic Chicken"]
    assert parse_recipes("{not json}") == []


def test_generation_prompt_lists_constraints():
    req = RecipeRequest(
        ingredients=["chicken", "rice"], dietTags={"halal"}, cuisine="Thai",
        maxTimeMinutes=40, difficulty="HARD", servings=2,
    )
    p = build_generation_prompt(req, ["Old Title"])
    assert p.startswith("Generate 1 practical recipe using these ingredients: chicken, rice")
    for part in ("Dietary requirements: halal", "Preferred cuisine: Thai", "Maximum cooking time: 40 minutes",
                 "Difficulty: hard", "Number of people: 2", "Do NOT create a recipe with these titles: Old Title",
                 '"timeMinutes"'):
        assert part in p


def test_adaptation_prompt_lists_recipes():
    req = RecipeRequest(ingredients=["chicken"], dietTags={"vegan"}, servings=3)
    r = make_recipe("Chicken Soup", ["chicken", "carrot"], steps=["Boil.", "Serve."])
    p = build_adaptation_prompt([r], req)
    assert "Recipe 1: Chicken Soup (easy)" in p
    assert "Ingredients: chicken, carrot" in p
    assert "Steps: Boil.; Serve." in p
    assert "dietary preferences: vegan" in p
    assert '"recipes"' in p


def test_generate_uses_json_mode_and_parses():
    comp = _Completions(content="```json\n" + json.dumps(RECIPE) + "\n```")
    out = asyncio.run(_client(comp).generate(RecipeRequest(ingredients=["chicken"]), ["X"]))
    assert [r.title for r in out] == ["Garlic Chicken"]
    kw = comp.kwargs[0]
    assert kw["response_format"] == {"type": "json_object"}
    assert kw["temperature"] == 0.7 and kw["max_tokens"] == 4096
    assert kw["messages"][0]["role"] == "system"


def test_generate_failures_degrade_to_empty():
    req = RecipeRequest(ingredients=["chicken"])
    assert asyncio.run(_client(_Completions(exc=RuntimeError("500"))).generate(req)) == []
    assert asyncio.run(_client(_Completions(content="")).generate(req)) == []
    assert asyncio.run(_client(_Completions(content="garbage")).generate(req)) == []
    slow = _Completions(content=json.dumps(RECIPE), delay=1.0)
    assert asyncio.run(_client(slow).generate(req, timeout=0.01)) == []


def test_missing_api_key_degrades_to_empty():
    llm = LLMRecipeClient(api_key="")
    assert asyncio.run(llm.generate(RecipeRequest(ingredients=["chicken"]))) == []


def test_adapt_marks_llm_and_adds_diet_tags():
    comp = _Completions(content=json.dumps({"recipes": [RECIPE]}))
    req = RecipeRequest(ingredients=["chicken"], dietTags={"keto"})
    out = asyncio.run(_client(comp).adapt([make_recipe("Orig", ["chicken"])], req))
    assert len(out) == 1
    assert out[0].source == Source.LLM
    assert out[0].diet_tags == {"keto"}
    assert comp.kwargs[0]["temperature"] == 0.6 and comp.kwargs[0]["max_tokens"] == 2000


def test_adapt_without_recipes_makes_no_call():
    comp = _Completions(content="{}")
    assert asyncio.run(_client(comp).adapt([], RecipeRequest(ingredients=["x"], dietTags={"vegan"}))) == []
    assert comp.kwargs == []
