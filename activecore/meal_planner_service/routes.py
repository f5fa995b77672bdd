"""
Meal planner routes: AI-assisted weekly plan generation with a
deterministic fallback, single-meal regeneration and saved plans.
"""

import json
import logging
from datetime import datetime
from typing import Tuple, Dict, Any, List, Optional

from flask import Blueprint, request, jsonify, Response
from psycopg2.extras import Json

from activecore.database.db_connection import get_db, column_exists
from activecore.auth_service.utils import verify_token_from_request
from activecore.meal_planner_service import ai_client
from activecore.meal_planner_service.catalog import TRUSTED_DISHES
from activecore.meal_planner_service.planner import (
    create_meal_object,
    generate_shopping_list,
    generate_week_plan,
    get_meal_prep_tips,
    get_nutrition_tips,
    pick_random_excluding,
    reconcile_ai_day,
    reconcile_ai_week_plan,
    todays_shopping_list,
)

meal_planner_bp = Blueprint("meal_planner", __name__)

logger = logging.getLogger(__name__)

WEEK_PLAN_TIMEOUT_SECONDS = 12
REGENERATE_TIMEOUT_SECONDS = 8
DEFAULT_PLAN_NAME = "Untitled Plan"

# --- PROMPTS ---
WEEK_PLAN_SYSTEM_PROMPT = "You are a nutritionist and only use the provided list."

WEEK_PLAN_PROMPT = """
You are a professional Filipino nutritionist and meal planner. The user preferences:
- Lifestyle: {lifestyle}
- Type: {meal_type}
- Goal: {goal}
- Restrictions: {restrictions}
- Targets: {calories} kcal, {protein}g protein, {carbs}g carbs, {fats}g fats

Only use meals from the provided DB list (JSON) below:
{dishes}

Rules:
- Only use dishes that appear in the list (no new dishes).
- Randomize meals across days and avoid repeating the same meal on consecutive days.
- Every day has exactly these meals: breakfast, lunch, dinner, snack1, snack2.
- Return a JSON object with "weekPlan": an array of 7 objects shaped like
  {{"day": "Monday", "meals": {{"breakfast": "Tapsilog", "lunch": "...", "dinner": "...", "snack1": "...", "snack2": "..."}}}}
"""

REGENERATE_SYSTEM_PROMPT = "You are a Filipino nutritionist. Use only the provided list."

REGENERATE_PROMPT = """
Choose a single dish best suited for the user's {category} from the list below.
User targets: {calories} kcal, {protein}g protein, {carbs}g carbs, {fats}g fats.
Dietary restrictions: {restrictions}.
{exclude}
List: {dishes}
Return a JSON object: {{"newMeal": {{"name": "..."}}}}
"""


def _targets(data: Dict[str, Any]) -> Dict[str, Any]:
    targets = data.get("targets") or {}
    return {
        "calories": targets.get("calories", 2000),
        "protein": targets.get("protein", 150),
        "carbs": targets.get("carbs", 250),
        "fats": targets.get("fats", 70),
    }


def _dishes_for_prompt(dishes: List[Dict[str, Any]]) -> str:
    return json.dumps([
        {
            "name": d.get("name"),
            "category": d.get("category"),
            "calories": float(d.get("calories") or 0),
            "protein": float(d.get("protein") or 0),
            "carbs": float(d.get("carbs") or 0),
            "fats": float(d.get("fats") or 0),
        }
        for d in dishes
    ])


def _plan_data(value: Any) -> Any:
    if isinstance(value, str):
        try:
            return json.loads(value)
        except ValueError:
            return value
    return value


def _timestamp(value: Any) -> Optional[str]:
    if isinstance(value, datetime):
        return value.isoformat()
    return value


def ensure_preference_id(cur, user_id: int) -> int:
    """Return the user's meal preference row id, creating an empty row if needed."""
    cur.execute("SELECT id FROM user_meal_preferences WHERE user_id = %s;", (user_id,))
    row = cur.fetchone()
    if row:
        return row["id"]

    cur.execute(
        "INSERT INTO user_meal_preferences (user_id, preferences) VALUES (%s, %s) RETURNING id;",
        (user_id, Json({})),
    )
    return cur.fetchone()["id"]


def insert_plan(cur, user_id: int, preference_id: Optional[int], plan_name: str,
                week_plan: List[Dict[str, Any]]) -> int:
    """Insert a meal plan, filling generated_at only where that column exists."""
    columns = ["user_id", "preference_id", "plan_name", "plan_data"]
    values = [user_id, preference_id, plan_name, Json({"weekPlan": week_plan})]

    if column_exists("meal_plans", "generated_at"):
        columns.append("generated_at")
        values.append(datetime.now())

    placeholders = ", ".join(["%s"] * len(values))
    cur.execute(
        f"INSERT INTO meal_plans ({', '.join(columns)}) VALUES ({placeholders}) RETURNING id;",
        values,
    )
    return cur.fetchone()["id"]


def _meal_plan_body(week_plan: List[Dict[str, Any]], goal: Optional[str]) -> Dict[str, Any]:
    return {
        "weekPlan": week_plan,
        "shoppingList": generate_shopping_list(week_plan),
        "todayShoppingList": todays_shopping_list(week_plan),
        "mealPrepTips": get_meal_prep_tips(week_plan),
        "nutritionTips": get_nutrition_tips(goal),
    }


def _ai_week_plan(data: Dict[str, Any], dishes: List[Dict[str, Any]]) -> Optional[List[Dict[str, Any]]]:
    """
    Ask the model for a full week. A valid week is returned as-is; a valid
    first day seeds the built-in generator; anything else returns None.
    """
    prompt = WEEK_PLAN_PROMPT.format(
        lifestyle=data.get("lifestyle") or "not specified",
        meal_type=data.get("mealType") or "balanced",
        goal=data.get("goal") or "maintenance",
        restrictions=data.get("dietaryRestrictions") or "none",
        dishes=_dishes_for_prompt(dishes),
        **_targets(data),
    )

    try:
        parsed = ai_client.request_json(WEEK_PLAN_SYSTEM_PROMPT, prompt, timeout=WEEK_PLAN_TIMEOUT_SECONDS)
    except ai_client.AIServiceError as e:
        logger.warning(f"AI meal plan generation failed, using built-in generator: {e}")
        return None

    raw_week = parsed.get("weekPlan")
    week_plan = reconcile_ai_week_plan(raw_week, dishes)
    if week_plan is not None:
        return week_plan

    logger.warning("AI meal plan did not match the dish catalog, using built-in generator")
    first_day = raw_week[0] if isinstance(raw_week, list) and raw_week else None
    ai_day = reconcile_ai_day(first_day, dishes)
    return generate_week_plan(ai_day) if ai_day else None


# --- GENERATE ---
@meal_planner_bp.route("/meal-planner/generate", methods=["POST"])
def generate_plan() -> Tuple[Response, int]:
    """
    Generate and persist a week of meals.

    Expects JSON (all optional): lifestyle, mealType, goal, dietaryRestrictions,
    targets {calories, protein, carbs, fats}, planName.

    Returns:
        200: {success, mealPlan{weekPlan, shoppingList, todayShoppingList,
             mealPrepTips, nutritionTips}, saved, planId}
        401: Authentication failure.
        503: Dish catalog unavailable; built-in plan returned unsaved.
    """
    user_id, _, err, code = verify_token_from_request()
    if err:
        return err, code

    data: Dict[str, Any] = request.get_json(silent=True) or {}
    goal = data.get("goal")

    try:
        with get_db() as conn:
            with conn.cursor() as cur:
                cur.execute("SELECT * FROM filipino_dishes ORDER BY name ASC;")
                dishes = [dict(r) for r in cur.fetchall()]
    except Exception as e:
        logger.warning(f"Dish catalog unavailable, returning built-in plan: {e}")
        week_plan = generate_week_plan()
        return jsonify({
            "success": False,
            "message": "Database not connected, returning fallback plan",
            "mealPlan": _meal_plan_body(week_plan, goal),
            "saved": False,
        }), 503

    dishes = dishes or TRUSTED_DISHES

    week_plan = None
    if ai_client.ai_available():
        week_plan = _ai_week_plan(data, dishes)
    if week_plan is None:
        week_plan = generate_week_plan()

    saved = False
    plan_id = None
    try:
        with get_db() as conn:
            with conn.cursor() as cur:
                preference_id = ensure_preference_id(cur, user_id)
                plan_id = insert_plan(cur, user_id, preference_id, data.get("planName") or DEFAULT_PLAN_NAME, week_plan)
                conn.commit()
                saved = True
    except Exception as e:
        logger.warning(f"Failed to persist generated meal plan: {e}")

    return jsonify({
        "success": True,
        "mealPlan": _meal_plan_body(week_plan, goal),
        "saved": saved,
        "planId": plan_id,
    }), 200


def _excluded_names(data: Dict[str, Any]) -> List[str]:
    exclude = data.get("excludeMealNames") or []
    exclude = list(exclude) if isinstance(exclude, list) else [exclude]

    current = data.get("currentMeal")
    if isinstance(current, str):
        exclude.append(current)
    elif isinstance(current, dict) and current.get("name"):
        exclude.append(current["name"])

    return [str(n).strip().lower() for n in exclude if str(n or "").strip()]


# --- REGENERATE ONE MEAL ---
@meal_planner_bp.route("/meal-planner/regenerate", methods=["POST"])
def regenerate_meal() -> Tuple[Response, int]:
    """
    Suggest one replacement dish for a meal slot.

    Expects JSON: mealType | mealKey | mealTypeKey, excludeMealNames?, currentMeal?,
    dietaryRestrictions?, targets?

    Returns:
        200: {success, newMeal, source} where source is ai, fallback or fallback-excluded.
    """
    _, _, err, code = verify_token_from_request()
    if err:
        return err, code

    data: Dict[str, Any] = request.get_json(silent=True) or {}
    slot = data.get("mealTypeKey") or data.get("mealType") or data.get("mealKey")
    # snack1/snack2 share the "snack" category
    category = slot.rstrip("0123456789") if isinstance(slot, str) else None
    exclude = _excluded_names(data)

    try:
        with get_db() as conn:
            with conn.cursor() as cur:
                dishes = []
                if category:
                    cur.execute("SELECT * FROM filipino_dishes WHERE category = %s ORDER BY name;", (category,))
                    dishes = [dict(r) for r in cur.fetchall()]
                if not dishes:
                    cur.execute("SELECT * FROM filipino_dishes ORDER BY name;")
                    dishes = [dict(r) for r in cur.fetchall()]
    except Exception as e:
        logger.error(f"Regenerate meal error: {e}")
        return jsonify({"error": "Regenerate failed"}), 500

    if not dishes:
        return jsonify({
            "success": True,
            "newMeal": create_meal_object(pick_random_excluding(TRUSTED_DISHES, exclude)),
            "source": "fallback",
        }), 200

    if ai_client.ai_available():
        prompt = REGENERATE_PROMPT.format(
            category=slot or "meal",
            restrictions=data.get("dietaryRestrictions") or "none",
            exclude=f"Do NOT return these dish names: {', '.join(exclude)}" if exclude else "",
            dishes=_dishes_for_prompt(dishes),
            **_targets(data),
        )
        try:
            parsed = ai_client.request_json(REGENERATE_SYSTEM_PROMPT, prompt,
                                            timeout=REGENERATE_TIMEOUT_SECONDS, max_tokens=700)
            new_meal = parsed.get("newMeal")
            name = str(new_meal.get("name") or "").strip().lower() if isinstance(new_meal, dict) else ""
            if name in exclude and name:
                return jsonify({
                    "success": True,
                    "newMeal": create_meal_object(pick_random_excluding(dishes, exclude)),
                    "source": "fallback-excluded",
                }), 200
            found = next((d for d in dishes if str(d.get("name") or "").strip().lower() == name), None)
            if found:
                return jsonify({"success": True, "newMeal": create_meal_object(found), "source": "ai"}), 200
            logger.warning(f"AI suggested a dish outside the catalog: {name!r}")
        except ai_client.AIServiceError as e:
            logger.warning(f"AI regeneration failed, falling back to random pick: {e}")

    return jsonify({
        "success": True,
        "newMeal": create_meal_object(pick_random_excluding(dishes, exclude)),
        "source": "fallback",
    }), 200


# --- SAVE ---
@meal_planner_bp.route("/meal-planner/save", methods=["POST"])
def save_plan() -> Tuple[Response, int]:
    """
    Save a week plan. With planId the caller's existing plan is replaced,
    otherwise a new plan is inserted.

    Expects JSON: { "mealPlan": [day, ...], "planName"?: str, "planId"?: int }

    Returns:
        200: Plan updated.
        201: Plan created.
        400: mealPlan missing or not a list.
        404: planId does not name one of the caller's plans.
    """
    user_id, _, err, code = verify_token_from_request()
    if err:
        return err, code

    data: Dict[str, Any] = request.get_json(silent=True) or {}
    meal_plan = data.get("mealPlan")
    plan_id = data.get("planId")
    plan_name = data.get("planName") or None

    if not isinstance(meal_plan, list):
        return jsonify({"error": "Invalid mealPlan payload"}), 400

    if plan_id:
        assignments = "plan_name = %s, plan_data = %s"
        if column_exists("meal_plans", "updated_at"):
            assignments += ", updated_at = NOW()"

        try:
            with get_db() as conn:
                with conn.cursor() as cur:
                    cur.execute(
                        f"UPDATE meal_plans SET {assignments} WHERE id = %s AND user_id = %s;",
                        (plan_name, Json({"weekPlan": meal_plan}), plan_id, user_id),
                    )
                    updated = cur.rowcount
                    conn.commit()
        except Exception as e:
            logger.error(f"Update meal plan failed: {e}")
            return jsonify({"error": "Failed to update meal plan"}), 500

        if updated == 0:
            return jsonify({"error": "Plan not found"}), 404
        return jsonify({"success": True, "message": "Meal plan updated", "planId": plan_id}), 200

    try:
        with get_db() as conn:
            with conn.cursor() as cur:
                preference_id = ensure_preference_id(cur, user_id)
                new_id = insert_plan(cur, user_id, preference_id, plan_name, meal_plan)
                conn.commit()
    except Exception as e:
        logger.error(f"Insert meal plan failed: {e}")
        return jsonify({"error": "Failed to save meal plan"}), 500

    return jsonify({"success": True, "message": "Meal plan saved", "planId": new_id}), 201


def _optional_columns() -> List[str]:
    return [c for c in ("generated_at", "updated_at") if column_exists("meal_plans", c)]


# --- LIST PLANS ---
@meal_planner_bp.route("/meal-planner/plans", methods=["GET"])
def list_plans() -> Tuple[Response, int]:
    """The caller's saved plans, newest first."""
    user_id, _, err, code = verify_token_from_request()
    if err:
        return err, code

    extra = _optional_columns()
    columns = ["id", "plan_name", "plan_data"] + extra
    order_by = "generated_at" if "generated_at" in extra else "id"

    try:
        with get_db() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    f"SELECT {', '.join(columns)} FROM meal_plans WHERE user_id = %s ORDER BY {order_by} DESC;",
                    (user_id,),
                )
                rows = [dict(r) for r in cur.fetchall()]
    except Exception as e:
        logger.error(f"List meal plans error: {e}")
        return jsonify({"error": "Failed to list meal plans"}), 500

    plans = [{
        "id": r["id"],
        "planName": r.get("plan_name"),
        "plan_data": _plan_data(r.get("plan_data")),
        "generatedAt": _timestamp(r.get("generated_at")),
        "updatedAt": _timestamp(r.get("updated_at") or r.get("generated_at")),
    } for r in rows]

    return jsonify({"success": True, "plans": plans}), 200


def _load_owned_plan(plan_id: int, user_id: int, role: str, columns: List[str]):
    """
    Fetch a plan row the caller may access.

    Returns:
        tuple: (row, error_response, status); row is None on error.
    """
    with get_db() as conn:
        with conn.cursor() as cur:
            cur.execute(f"SELECT {', '.join(columns)} FROM meal_plans WHERE id = %s;", (plan_id,))
            plan = cur.fetchone()

    if not plan:
        return None, jsonify({"error": "Plan not found"}), 404
    if plan["user_id"] != user_id and role != "admin":
        return None, jsonify({"error": "Forbidden: not the owner"}), 403
    return dict(plan), None, None


# --- GET PLAN ---
@meal_planner_bp.route("/meal-planner/plans/<int:plan_id>", methods=["GET"])
def get_plan(plan_id: int) -> Tuple[Response, int]:
    """One saved plan. Owner or admin only."""
    user_id, role, err, code = verify_token_from_request()
    if err:
        return err, code

    try:
        plan, error, status = _load_owned_plan(
            plan_id, user_id, role, ["id", "user_id", "plan_name", "plan_data"] + _optional_columns()
        )
    except Exception as e:
        logger.error(f"Load meal plan error: {e}")
        return jsonify({"error": "Failed to load meal plan"}), 500

    if error:
        return error, status

    return jsonify({
        "success": True,
        "plan": {
            "id": plan["id"],
            "name": plan.get("plan_name"),
            "generatedAt": _timestamp(plan.get("generated_at")),
            "updatedAt": _timestamp(plan.get("updated_at") or plan.get("generated_at")),
            "data": _plan_data(plan.get("plan_data")),
        },
    }), 200


# --- DELETE PLAN ---
@meal_planner_bp.route("/meal-planner/plans/<int:plan_id>", methods=["DELETE"])
def delete_plan(plan_id: int) -> Tuple[Response, int]:
    """Delete a saved plan. Owner or admin only."""
    user_id, role, err, code = verify_token_from_request()
    if err:
        return err, code

    try:
        plan, error, status = _load_owned_plan(plan_id, user_id, role, ["id", "user_id"])
        if error:
            return error, status

        with get_db() as conn:
            with conn.cursor() as cur:
                cur.execute("DELETE FROM meal_plans WHERE id = %s;", (plan_id,))
                conn.commit()
    except Exception as e:
        logger.error(f"Delete meal plan error: {e}")
        return jsonify({"error": "Failed to delete meal plan"}), 500

    logger.info(f"Meal plan {plan_id} deleted by user {user_id}")
    return jsonify({"success": True, "message": "Meal plan deleted"}), 200
