"""
Weekly meal plan construction.

Pure functions over dish dictionaries: the deterministic week generator,
reconciliation of AI output against the dish catalog, shopping lists and
tips. Nothing here touches the database or the network.
"""

import json
import random
import re
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional, Set

from activecore.meal_planner_service.catalog import DAYS, MEAL_SLOTS, TRUSTED_DISHES

STEW_RE = re.compile(r"sinigang|tinola|bulalo|pochero", re.IGNORECASE)
FRIED_RE = re.compile(r"fried|crispy|prito|daing|tapa|longganisa|spamsilog", re.IGNORECASE)

BASE_PREP_TIPS = [
    "Batch-cook rice (3-4 servings) and freeze in portion containers.",
    "Roast or grill proteins on one day to use across multiple meals.",
    "Chop vegetables and store them in airtight containers for quick cooking.",
    "Prepare sauces and dressings in a jar to add flavor quickly.",
    "Portion meals in reusable containers labeled by day to speed up reheating and reduce waste.",
]

NUTRITION_TIPS = {
    "gain": [
        "Increase protein intake at every meal (aim for 20-40g per meal).",
        "Include a mix of fast-digesting carbs and protein post-workout (e.g., rice + chicken).",
        "Use healthy fats (avocado, coconut, nuts) to increase calorie density.",
    ],
    "loss": [
        "Focus on lean proteins and vegetables to increase satiety.",
        "Reduce portion sizes of calorie-dense foods and favor low-calorie volume foods "
        "(leafy greens, broth-based soups).",
        "Avoid sugary beverages and reduce fried foods; use steamed or grilled methods.",
    ],
    "default": [
        "Balance protein, carbs, and fats throughout the day.",
        "Aim for whole foods and fiber-rich vegetables to maintain steady energy.",
        "Drink plenty of water and keep sodium moderate to reduce water retention.",
    ],
}

GOAL_ALIASES = {
    "muscle gain": "gain",
    "gain": "gain",
    "weight loss": "loss",
    "loss": "loss",
}


def _number(value: Any):
    if value is None or value == "":
        return 0
    if isinstance(value, Decimal):
        value = float(value)
    try:
        value = float(value)
    except (TypeError, ValueError):
        return 0
    return int(value) if value.is_integer() else value


def parse_ingredients(value: Any) -> List[str]:
    """
    Normalize a stored ingredient list.

    Accepts a list, a JSON-encoded list, or comma-separated text.
    """
    if isinstance(value, list):
        return [str(i) for i in value]
    if not value:
        return []
    text = str(value)
    try:
        parsed = json.loads(text)
    except ValueError:
        return [part.strip() for part in text.split(",") if part.strip()]
    if isinstance(parsed, list):
        return [str(i) for i in parsed]
    return [text]


def create_meal_object(meal: Dict[str, Any]) -> Dict[str, Any]:
    """Coerce a dish row, catalog entry or AI meal into the meal shape the client renders."""
    return {
        "name": meal.get("name") or "Unnamed Meal",
        "ingredients": parse_ingredients(meal.get("ingredients")),
        "portionSize": meal.get("portionSize") or meal.get("portion_size") or "1 serving",
        "calories": _number(meal.get("calories", meal.get("cal"))),
        "protein": _number(meal.get("protein", meal.get("pro"))),
        "carbs": _number(meal.get("carbs", meal.get("carb"))),
        "fats": _number(meal.get("fats", meal.get("fat"))),
        "fiber": _number(meal.get("fiber")),
        "recipe": meal.get("recipe") or "No recipe provided",
    }


def sum_macros(meals) -> Dict[str, Any]:
    totals = {"calories": 0, "protein": 0, "carbs": 0, "fats": 0, "fiber": 0}
    for meal in meals:
        for key in totals:
            totals[key] += _number(meal.get(key))
    return totals


def build_day(day: str, meals: Dict[str, Dict[str, Any]]) -> Dict[str, Any]:
    totals = sum_macros(meals.values())
    return {
        "day": day,
        "meals": meals,
        "totalCalories": totals["calories"],
        "totalProtein": totals["protein"],
        "totalCarbs": totals["carbs"],
        "totalFats": totals["fats"],
    }


def pick_unique_meals(source: List[Dict[str, Any]], used: Set[str], count: int, rng=None) -> List[Dict[str, Any]]:
    """
    Pick `count` distinct dishes whose names are not in `used`.

    When fewer than `count` unused dishes remain, `used` is cleared and the
    whole source becomes eligible again. Picked names are added to `used`.
    """
    rng = rng or random
    pool = [m for m in source if m["name"] not in used]
    if len(pool) < count:
        used.clear()
        pool = list(source)

    picked = rng.sample(pool, min(count, len(pool)))
    for meal in picked:
        used.add(meal["name"])
    return picked


def _is_complete_day(day: Optional[Dict[str, Any]]) -> bool:
    if not isinstance(day, dict) or day.get("day") not in DAYS:
        return False
    meals = day.get("meals")
    if not isinstance(meals, dict) or set(meals) != set(MEAL_SLOTS):
        return False
    names = {str(m.get("name") or "").strip().lower() for m in meals.values() if isinstance(m, dict)}
    return len(names) == len(MEAL_SLOTS)


def generate_week_plan(ai_day: Optional[Dict[str, Any]] = None, rng=None,
                       source: Optional[List[Dict[str, Any]]] = None) -> List[Dict[str, Any]]:
    """
    Build Monday..Sunday with five meals per day from the dish catalog.

    A complete `ai_day` (weekday name plus all five meal slots) is kept as-is
    for its weekday and its dishes count as already used.
    """
    rng = rng or random
    source = source or TRUSTED_DISHES
    used: Set[str] = set()

    if not _is_complete_day(ai_day):
        ai_day = None
    if ai_day:
        for meal in ai_day["meals"].values():
            if meal.get("name"):
                used.add(meal["name"])

    week_plan = []
    for day in DAYS:
        if ai_day and ai_day["day"] == day:
            meals = {slot: create_meal_object(ai_day["meals"][slot]) for slot in MEAL_SLOTS}
            week_plan.append(build_day(day, meals))
            continue

        picks = pick_unique_meals(source, used, len(MEAL_SLOTS), rng)
        meals = {slot: create_meal_object(dish) for slot, dish in zip(MEAL_SLOTS, picks)}
        week_plan.append(build_day(day, meals))

    return week_plan


def _dish_index(dishes: List[Dict[str, Any]]) -> Dict[str, Dict[str, Any]]:
    return {str(d.get("name") or "").strip().lower(): d for d in dishes}


def _meal_name(value: Any) -> str:
    if isinstance(value, str):
        return value
    if isinstance(value, dict):
        return str(value.get("name") or "")
    return ""


def reconcile_ai_day(day_obj: Any, dishes: List[Dict[str, Any]], default_day: str = "") -> Optional[Dict[str, Any]]:
    """
    Enrich one AI day from the catalog, or None when it is not exactly the
    five meal slots each naming a different catalog dish.
    """
    if not isinstance(day_obj, dict):
        return None
    meals = day_obj.get("meals")
    if not isinstance(meals, dict) or set(meals) != set(MEAL_SLOTS):
        return None

    index = _dish_index(dishes)
    enriched = {}
    for slot in MEAL_SLOTS:
        dish = index.get(_meal_name(meals[slot]).strip().lower())
        if not dish:
            return None
        enriched[slot] = create_meal_object(dish)

    if len({m["name"] for m in enriched.values()}) != len(MEAL_SLOTS):
        return None

    day = day_obj.get("day") or day_obj.get("dayName") or default_day
    return build_day(day, enriched)


def reconcile_ai_week_plan(parsed: Any, dishes: List[Dict[str, Any]]) -> Optional[List[Dict[str, Any]]]:
    """
    Accept an AI week plan only if it is seven valid days.

    Names are matched case-insensitively against `dishes` and every meal is
    replaced by the catalog's own data. Returns None when any day fails, so
    the caller can fall back to the deterministic plan.
    """
    if not isinstance(parsed, list) or len(parsed) != len(DAYS):
        return None

    week_plan = []
    for default_day, day_obj in zip(DAYS, parsed):
        day = reconcile_ai_day(day_obj, dishes, default_day)
        if day is None:
            return None
        week_plan.append(day)
    return week_plan


def pick_random_excluding(dishes: List[Dict[str, Any]], exclude, rng=None) -> Dict[str, Any]:
    """
    Random dish whose name is not in `exclude` (lowercased names).

    When every dish is excluded, a random one is returned labelled " (Alt)".
    """
    rng = rng or random
    excluded = {str(n).strip().lower() for n in exclude}
    pool = [d for d in dishes if str(d.get("name") or "").strip().lower() not in excluded]
    if not pool:
        dish = dict(rng.choice(dishes))
        dish["name"] = f"{dish.get('name')} (Alt)"
        return dish
    return rng.choice(pool)


def generate_shopping_list(week_plan: List[Dict[str, Any]]) -> List[Dict[str, str]]:
    """Ingredient counts across the plan, most frequent first."""
    counts: Dict[str, int] = {}
    for day in week_plan or []:
        for meal in (day.get("meals") or {}).values():
            for ingredient in meal.get("ingredients") or []:
                key = str(ingredient).strip().lower()
                if key:
                    counts[key] = counts.get(key, 0) + 1

    ordered = sorted(counts.items(), key=lambda item: (-item[1], item[0]))
    return [{"ingredient": name, "estimate": f"{count} portion(s)"} for name, count in ordered]


def todays_shopping_list(week_plan: List[Dict[str, Any]], now: Optional[datetime] = None) -> List[Dict[str, str]]:
    if not week_plan:
        return []
    today = (now or datetime.now()).strftime("%A")
    plan = next((d for d in week_plan if d.get("day") == today), week_plan[0])
    return generate_shopping_list([plan])


def get_meal_prep_tips(week_plan: List[Dict[str, Any]]) -> List[str]:
    tips = list(BASE_PREP_TIPS)

    def names(day):
        return [m.get("name") or "" for m in (day.get("meals") or {}).values()]

    stew_days = [d for d in week_plan or [] if any(STEW_RE.search(n) for n in names(d))]
    if len(stew_days) >= 2:
        tips.append("Make a big batch of broths (sinigang/tinola/bulalo) and freeze in portions "
                    "for quick lunches/dinners.")

    fried = sum(1 for d in week_plan or [] for n in names(d) if FRIED_RE.search(n))
    if fried >= 4:
        tips.append("For fried items, consider pan-searing instead of deep frying to reduce oil use "
                    "and cleanup time.")

    return tips


def get_nutrition_tips(goal: Optional[str]) -> List[str]:
    key = GOAL_ALIASES.get((goal or "").strip().lower(), "default")
    return list(NUTRITION_TIPS[key])
