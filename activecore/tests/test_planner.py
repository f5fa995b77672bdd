import random
import pytest
from datetime import datetime

from activecore.meal_planner_service.catalog import DAYS, MEAL_SLOTS, TRUSTED_DISHES, catalog_names
from activecore.meal_planner_service.planner import (
    create_meal_object,
    generate_shopping_list,
    generate_week_plan,
    get_meal_prep_tips,
    get_nutrition_tips,
    parse_ingredients,
    pick_random_excluding,
    pick_unique_meals,
    reconcile_ai_day,
    reconcile_ai_week_plan,
    sum_macros,
    todays_shopping_list,
)


def names_of(day):
    return [m["name"] for m in day["meals"].values()]


def ai_week(names):
    """Seven AI-style days cycling through `names`."""
    week = []
    for i, day in enumerate(DAYS):
        picks = [names[(i * 5 + j) % len(names)] for j in range(5)]
        week.append({"day": day, "meals": dict(zip(MEAL_SLOTS, picks))})
    return week


def test_catalog_has_twenty_unique_dishes():
    assert len(TRUSTED_DISHES) == 20
    assert len(catalog_names()) == 20


@pytest.mark.parametrize("value,expected", [
    (["rice", "egg"], ["rice", "egg"]),
    ('["chicken", "ginger"]', ["chicken", "ginger"]),
    ("pork, vinegar , garlic", ["pork", "vinegar", "garlic"]),
    ('"just text"', ['"just text"']),
    (None, []),
])
def test_parse_ingredients(value, expected):
    assert parse_ingredients(value) == expected


def test_create_meal_object_defaults():
    meal = create_meal_object({})
    assert meal["name"] == "Unnamed Meal"
    assert meal["portionSize"] == "1 serving"
    assert meal["calories"] == 0
    assert meal["recipe"] == "No recipe provided"


def test_create_meal_object_from_db_row():
    meal = create_meal_object({"name": "Laing", "ingredients": '["gabi leaves"]', "portion_size": "1 cup",
                               "cal": "350", "protein": 12.5})
    assert meal["ingredients"] == ["gabi leaves"]
    assert meal["portionSize"] == "1 cup"
    assert meal["calories"] == 350
    assert meal["protein"] == 12.5


def test_sum_macros():
    totals = sum_macros([{"calories": 100, "protein": 10}, {"calories": 250, "fats": 5}])
    assert totals == {"calories": 350, "protein": 10, "carbs": 0, "fats": 5, "fiber": 0}


def test_pick_unique_meals_records_picks():
    used = set()
    picks = pick_unique_meals(TRUSTED_DISHES, used, 5, random.Random(1))
    assert len({p["name"] for p in picks}) == 5
    assert used == {p["name"] for p in picks}


def test_pick_unique_meals_resets_when_exhausted():
    used = {d["name"] for d in TRUSTED_DISHES[:17]}
    picks = pick_unique_meals(TRUSTED_DISHES, used, 5, random.Random(2))
    assert len(picks) == 5
    assert used == {p["name"] for p in picks}


@pytest.mark.parametrize("seed", range(5))
def test_week_plan_shape(seed):
    week = generate_week_plan(rng=random.Random(seed))

    assert [d["day"] for d in week] == list(DAYS)
    for day in week:
        assert list(day["meals"]) == list(MEAL_SLOTS)
        assert len(set(names_of(day))) == 5
        assert day["totalCalories"] == sum(m["calories"] for m in day["meals"].values())


@pytest.mark.parametrize("seed", range(5))
def test_week_plan_no_repeats_before_exhaustion(seed):
    week = generate_week_plan(rng=random.Random(seed))
    # 20 dishes cover the first four days without any repeat
    first_four = [n for day in week[:4] for n in names_of(day)]
    assert len(first_four) == len(set(first_four)) == 20


def test_week_plan_keeps_valid_ai_day():
    ai_day = reconcile_ai_day(
        {"day": "Wednesday", "meals": dict(zip(MEAL_SLOTS, ["Tapsilog", "Laing", "Bulalo", "Pancit Bihon", "Pochero"]))},
        TRUSTED_DISHES,
    )
    week = generate_week_plan(ai_day, rng=random.Random(3))

    assert names_of(week[2]) == ["Tapsilog", "Laing", "Bulalo", "Pancit Bihon", "Pochero"]
    # AI dishes count as used, so Monday avoids them
    assert not set(names_of(week[0])) & set(names_of(week[2]))


def test_week_plan_ignores_incomplete_ai_day():
    ai_day = {"day": "Monday", "meals": {"breakfast": create_meal_object({"name": "Tapsilog"})}}
    week = generate_week_plan(ai_day, rng=random.Random(4))
    assert len(week[0]["meals"]) == 5


def test_reconcile_week_plan_accepts_catalog_week():
    names = [d["name"].upper() for d in TRUSTED_DISHES]
    week = reconcile_ai_week_plan(ai_week(names), TRUSTED_DISHES)

    assert week is not None
    assert len(week) == 7
    monday = week[0]["meals"]["breakfast"]
    assert monday["name"] == TRUSTED_DISHES[0]["name"]
    assert monday["calories"] == TRUSTED_DISHES[0]["calories"]


def test_reconcile_week_plan_rejects_unknown_dish():
    names = [d["name"] for d in TRUSTED_DISHES]
    week = ai_week(names)
    week[3]["meals"]["dinner"] = "Cheeseburger"
    assert reconcile_ai_week_plan(week, TRUSTED_DISHES) is None


def test_reconcile_week_plan_rejects_short_week():
    names = [d["name"] for d in TRUSTED_DISHES]
    assert reconcile_ai_week_plan(ai_week(names)[:6], TRUSTED_DISHES) is None


def test_reconcile_week_plan_rejects_missing_slot():
    names = [d["name"] for d in TRUSTED_DISHES]
    week = ai_week(names)
    del week[0]["meals"]["snack2"]
    assert reconcile_ai_week_plan(week, TRUSTED_DISHES) is None


def test_reconcile_week_plan_rejects_non_list():
    assert reconcile_ai_week_plan({"weekPlan": []}, TRUSTED_DISHES) is None


def test_reconcile_day_rejects_repeated_dish():
    day = {"day": "Monday", "meals": dict(zip(MEAL_SLOTS, ["Tapsilog", "Laing", "tapsilog", "Bulalo", "Pochero"]))}
    assert reconcile_ai_day(day, TRUSTED_DISHES) is None


def test_reconcile_week_plan_rejects_same_dish_all_day():
    week = [{"day": day, "meals": dict.fromkeys(MEAL_SLOTS, "Tapsilog")} for day in DAYS]
    assert reconcile_ai_week_plan(week, TRUSTED_DISHES) is None


def test_week_plan_ignores_ai_day_with_repeats():
    tapsilog = create_meal_object({"name": "Tapsilog"})
    ai_day = {"day": "Monday", "meals": dict.fromkeys(MEAL_SLOTS, tapsilog)}

    week = generate_week_plan(ai_day, rng=random.Random(5))

    assert len(set(names_of(week[0]))) == 5


def test_pick_random_excluding():
    dishes = [{"name": "Laing"}, {"name": "Bulalo"}]
    assert pick_random_excluding(dishes, ["laing"], random.Random(0))["name"] == "Bulalo"


def test_pick_random_excluding_everything_labels_alt():
    dishes = [{"name": "Laing"}]
    picked = pick_random_excluding(dishes, ["LAING"], random.Random(0))
    assert picked["name"] == "Laing (Alt)"
    assert dishes[0]["name"] == "Laing"


def test_shopping_list_counts_and_order():
    week = [
        {"day": "Monday", "meals": {"a": {"ingredients": ["Rice ", "egg"]}, "b": {"ingredients": ["rice"]}}},
        {"day": "Tuesday", "meals": {"a": {"ingredients": ["garlic", "EGG", "rice"]}}},
    ]
    assert generate_shopping_list(week) == [
        {"ingredient": "rice", "estimate": "3 portion(s)"},
        {"ingredient": "egg", "estimate": "2 portion(s)"},
        {"ingredient": "garlic", "estimate": "1 portion(s)"},
    ]


def test_todays_shopping_list_uses_weekday():
    week = [
        {"day": "Monday", "meals": {"a": {"ingredients": ["rice"]}}},
        {"day": "Tuesday", "meals": {"a": {"ingredients": ["bangus"]}}},
    ]
    # 2025-05-13 is a Tuesday
    assert todays_shopping_list(week, datetime(2025, 5, 13)) == [{"ingredient": "bangus", "estimate": "1 portion(s)"}]
    # No Sunday in the plan, so the first day is used
    assert todays_shopping_list(week, datetime(2025, 5, 18))[0]["ingredient"] == "rice"


def test_meal_prep_tips_extras():
    stew_day = {"meals": {"a": {"name": "Bangus Sinigang"}, "b": {"name": "Crispy Pata"}, "c": {"name": "Daing na Bangus"}}}
    tips = get_meal_prep_tips([stew_day, stew_day])
    assert len(tips) == 7
    assert any("broths" in t for t in tips)
    assert any("pan-searing" in t for t in tips)


def test_meal_prep_tips_base_only():
    assert len(get_meal_prep_tips([{"meals": {"a": {"name": "Laing"}}}])) == 5


@pytest.mark.parametrize("goal,first_word", [
    ("Muscle Gain", "Increase"),
    ("loss", "Focus"),
    (None, "Balance"),
])
def test_nutrition_tips(goal, first_word):
    assert get_nutrition_tips(goal)[0].startswith(first_word)
