import asyncio

from conftest import FakeLLM, FakeStore, FakeTelemetry, make_recipe
from recipegen.core.config import Settings
from recipegen.db.models.recipe import Difficulty, Source
from recipegen.db.models.schemas import RecipeRequest
from recipegen.services.orchestrator import RecipeOrchestrator, passes_filters
from recipegen.services.scoring import similarity

CFG = Settings(MAX_RECIPES=3, BASE_SERVINGS=1, LLM_TIMEOUT_SEC=30)


def _run(store, llm, request, telemetry=None, actor="anon-1"):
    orch = RecipeOrchestrator(store, llm, telemetry or FakeTelemetry(), CFG)
    return asyncio.run(orch.generate(request, actor=actor))


def _gen(title, names):
    return make_recipe(title, names, source=Source.LLM)


def test_single_exact_match_is_db_only():
    stored = make_recipe("Chicken Tomato", ["chicken", "tomato"], rid="r1", time_minutes=30)
    store, llm = FakeStore([stored]), FakeLLM()
    req = RecipeRequest(ingredients=["chicken", "tomato"], servings=1)
    res = _run(store, llm, req)
    assert len(res.recipes) == 1
    assert similarity(req.ingredients, res.recipes[0]) == 1.0
    assert res.metadata.strategy == "db_only"
    assert res.metadata.high_match_count == 1
    assert res.metadata.llm_generated_count == 0
    assert store.find_all_calls == 1


def test_no_stored_match_generates_three():
    store = FakeStore([make_recipe("Beef Stew", ["beef", "potato"])])
    llm = FakeLLM(generated=[_gen("G1", ["chicken"]), _gen("G2", ["chicken", "rice"]), _gen("G3", ["tomato"])])
    res = _run(store, llm, RecipeRequest(ingredients=["chicken", "tomato"]))
    assert llm.calls == ["generate", "generate", "generate"]
    assert len(res.recipes) == 3
    assert all(r.source == Source.LLM for r in res.recipes)
    assert res.metadata.strategy == "db_llm_combined"
    assert res.metadata.llm_generated_count == 3
    # 제외 제목 누적
    assert llm.exclude_seen == [[], ["G1"], ["G1", "G2"]]


def test_diet_tags_trigger_one_adaptation_before_generation():
    store = FakeStore([make_recipe("Chicken Soup", ["chicken", "carrot"], rid="r1")])
    llm = FakeLLM(generated=[_gen("Tofu Bowl", ["tofu"])])
    res = _run(store, llm, RecipeRequest(ingredients=["chicken"], dietTags={"vegan"}))
    assert llm.calls[0] == "adapt"
    assert llm.calls.count("adapt") == 1
    assert "generate" in llm.calls[1:]
    adapted = [r for r in res.recipes if r.title == "Chicken Soup"]
    assert adapted and adapted[0].source == Source.LLM
    assert "vegan" in adapted[0].diet_tags


def test_no_adaptation_without_candidates():
    llm = FakeLLM()
    _run(FakeStore([]), llm, RecipeRequest(ingredients=["chicken"], dietTags={"vegan"}))
    assert "adapt" not in llm.calls


def test_adaptation_failure_empties_candidates_and_fills_gap():
    store = FakeStore([make_recipe("Chicken Soup", ["chicken"], rid="r1")])
    llm = FakeLLM(generated=[_gen("A", ["chicken"]), _gen("B", ["chicken"]), _gen("C", ["chicken"])],
                  raise_on_adapt=True)
    tel = FakeTelemetry()
    res = _run(store, llm, RecipeRequest(ingredients=["chicken"], dietTags={"vegan"}), telemetry=tel)
    assert llm.calls == ["adapt", "generate", "generate", "generate"]
    assert [r.title for r in res.recipes] == ["A", "B", "C"]
    assert res.metadata.high_match_count == 0
    assert "dietary_adaptation_error" in tel.names()


def test_generation_stops_on_empty_result():
    llm = FakeLLM(generated=[_gen("Only", ["chicken"])])
    res = _run(FakeStore([]), llm, RecipeRequest(ingredients=["chicken"]))
    assert llm.calls == ["generate", "generate"]
    assert [r.title for r in res.recipes] == ["Only"]


def test_store_failure_still_returns_response():
    tel = FakeTelemetry()
    llm = FakeLLM(generated=[_gen("G", ["chicken"])])
    res = _run(FakeStore(fail=True), llm, RecipeRequest(ingredients=["chicken"]), telemetry=tel)
    assert [r.title for r in res.recipes] == ["G"]
    assert "recipe_store_error" in tel.names()


def test_hard_filters():
    r = make_recipe("R", ["chicken"], time_minutes=40, difficulty=Difficulty.MEDIUM, cuisine="South Indian")
    assert passes_filters(r, RecipeRequest(ingredients=["x"], cuisine="indian"))
    assert not passes_filters(r, RecipeRequest(ingredients=["x"], cuisine="thai"))
    assert not passes_filters(r, RecipeRequest(ingredients=["x"], difficulty="EASY"))
    assert not passes_filters(r, RecipeRequest(ingredients=["x"], maxTimeMinutes=30))
    unknown_time = make_recipe("U", ["chicken"], time_minutes=None, cuisine=None)
    assert passes_filters(unknown_time, RecipeRequest(ingredients=["x"], maxTimeMinutes=5))
    assert not passes_filters(unknown_time, RecipeRequest(ingredients=["x"], cuisine="thai"))


def test_candidates_ranked_and_capped():
    stored = [
        make_recipe("Low", ["chicken", "a", "b", "c"]),
        make_recipe("High", ["chicken", "tomato"]),
        make_recipe("Mid", ["chicken", "x"]),
        make_recipe("Mid2", ["tomato", "y"]),
        make_recipe("NoSteps", ["chicken", "tomato"], steps=[]),
    ]
    llm = FakeLLM()
    res = _run(FakeStore(stored), llm, RecipeRequest(ingredients=["chicken", "tomato"], servings=1))
    assert [r.title for r in res.recipes] == ["High", "Mid", "Mid2"]
    assert llm.calls == []


def test_generated_duplicates_are_removed():
    stored = make_recipe("Pasta", ["tomato", "basil"], rid="r1")
    llm = FakeLLM(generated=[_gen("PASTA", ["Basil", "Tomato"]), _gen("Salad", ["tomato"])])
    res = _run(FakeStore([stored]), llm, RecipeRequest(ingredients=["tomato", "basil"]))
    titles = [r.title for r in res.recipes]
    assert titles.count("Pasta") + titles.count("PASTA") == 1
    assert res.recipes[0].id == "r1"


def test_recipes_scaled_once_to_requested_servings():
    stored = make_recipe("Eggs", ["egg"], rid="r1", quantities=["2"])
    res = _run(FakeStore([stored]), FakeLLM(), RecipeRequest(ingredients=["egg"], servings=3))
    assert res.recipes[0].ingredients[0].quantity == "6"
    assert stored.ingredients[0].quantity == "2"


def test_user_has_all_metadata():
    stored = make_recipe("Eggs", ["egg"], rid="r1")
    res = _run(FakeStore([stored]), FakeLLM(), RecipeRequest(ingredients=["egg", "salt"]))
    assert res.metadata.user_has_all_count == 1
    assert res.metadata.has_user_has_all_recipes is True
    assert res.metadata.user_has_all_recipe_ids == ["r1"]
    assert res.metadata.message


def test_telemetry_failures_are_swallowed():
    stored = make_recipe("Eggs", ["egg"], rid="r1")
    res = _run(FakeStore([stored]), FakeLLM(), RecipeRequest(ingredients=["egg"]), telemetry=FakeTelemetry(fail=True))
    assert len(res.recipes) == 1


def test_pipeline_emits_stage_events():
    tel = FakeTelemetry()
    _run(FakeStore([make_recipe("Eggs", ["egg"])]), FakeLLM(), RecipeRequest(ingredients=["egg"]), telemetry=tel)
    names = tel.names()
    for ev in ("ingredient_analysis", "db_match", "recipe_generation", "recipe_generation_complete"):
        assert ev in names
    assert all(e["actor"] == "anon-1" for e in tel.events)


def test_save_recipe_sets_creator():
    store = FakeStore()
    orch = RecipeOrchestrator(store, FakeLLM(), FakeTelemetry(), CFG)
    saved = asyncio.run(orch.save_recipe(_gen("G", ["egg"]), actor="anon-9"))
    assert saved.id and saved.created_by == "anon-9"
    assert saved.source == Source.LLM
    assert store.recipes == [saved]
