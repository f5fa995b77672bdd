"""
Curated Filipino dish catalog used by the meal planner.

The detailed list is the fixed rotation source for deterministic week plans
and is also what init_db seeds into the filipino_dishes table.
"""

MEAL_SLOTS = ("breakfast", "lunch", "dinner", "snack1", "snack2")

DAYS = ("Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday")

TRUSTED_DISHES = [
    {"name": "Chicken Adobo", "category": "lunch", "ingredients": ["chicken", "soy sauce", "vinegar"],
     "calories": 480, "protein": 36, "carbs": 50, "fats": 14, "fiber": 2},
    {"name": "Pork Adobo", "category": "dinner", "ingredients": ["pork", "soy", "vinegar"],
     "calories": 520, "protein": 32, "carbs": 52, "fats": 22, "fiber": 2},
    {"name": "Tapsilog", "category": "breakfast", "ingredients": ["beef tapa", "garlic rice", "egg"],
     "calories": 520, "protein": 36, "carbs": 48, "fats": 16, "fiber": 2},
    {"name": "Bangus Sinigang", "category": "lunch", "ingredients": ["bangus", "sinigang mix", "vegetables"],
     "calories": 410, "protein": 32, "carbs": 46, "fats": 10, "fiber": 3},
    {"name": "Tinolang Manok", "category": "dinner", "ingredients": ["chicken", "ginger", "malunggay"],
     "calories": 390, "protein": 34, "carbs": 44, "fats": 8, "fiber": 3},
    {"name": "Laing", "category": "lunch", "ingredients": ["gabi leaves", "coconut milk"],
     "calories": 350, "protein": 12, "carbs": 38, "fats": 16, "fiber": 5},
    {"name": "Pinakbet", "category": "dinner", "ingredients": ["eggplant", "ampalaya", "sitaw", "okra", "shrimp paste"],
     "calories": 300, "protein": 12, "carbs": 30, "fats": 10, "fiber": 6},
    {"name": "Pancit Bihon", "category": "snack", "ingredients": ["bihon noodles", "chicken", "carrots", "cabbage"],
     "calories": 420, "protein": 18, "carbs": 62, "fats": 8, "fiber": 4},
    {"name": "Arroz Caldo", "category": "breakfast", "ingredients": ["rice", "chicken", "ginger", "egg"],
     "calories": 390, "protein": 20, "carbs": 54, "fats": 8, "fiber": 2},
    {"name": "Kare-Kare", "category": "dinner", "ingredients": ["oxtail", "peanut sauce", "vegetables"],
     "calories": 540, "protein": 28, "carbs": 52, "fats": 22, "fiber": 5},
    {"name": "Lumpiang Sariwa", "category": "snack", "ingredients": ["spring roll wrapper", "mixed vegetables", "peanut sauce"],
     "calories": 260, "protein": 8, "carbs": 38, "fats": 8, "fiber": 4},
    {"name": "Daing na Bangus", "category": "breakfast", "ingredients": ["bangus", "vinegar", "garlic"],
     "calories": 410, "protein": 32, "carbs": 44, "fats": 10, "fiber": 2},
    {"name": "Chicken Inasal", "category": "lunch", "ingredients": ["chicken leg", "annatto oil", "vinegar"],
     "calories": 420, "protein": 34, "carbs": 44, "fats": 10, "fiber": 2},
    {"name": "Ginisang Monggo", "category": "lunch", "ingredients": ["mung beans", "garlic", "pork bits", "spinach"],
     "calories": 340, "protein": 18, "carbs": 44, "fats": 8, "fiber": 6},
    {"name": "La Paz Batchoy", "category": "snack", "ingredients": ["egg noodles", "pork", "liver", "egg"],
     "calories": 480, "protein": 22, "carbs": 60, "fats": 14, "fiber": 2},
    {"name": "Bicol Express", "category": "dinner", "ingredients": ["pork", "coconut milk", "chili", "shrimp paste"],
     "calories": 520, "protein": 24, "carbs": 52, "fats": 22, "fiber": 3},
    {"name": "Paksiw na Bangus", "category": "lunch", "ingredients": ["bangus", "vinegar", "eggplant"],
     "calories": 380, "protein": 28, "carbs": 40, "fats": 10, "fiber": 4},
    {"name": "Bulalo", "category": "dinner", "ingredients": ["beef shank", "corn", "greens"],
     "calories": 520, "protein": 32, "carbs": 50, "fats": 18, "fiber": 3},
    {"name": "Tinolang Isda", "category": "lunch", "ingredients": ["fish", "ginger", "papaya", "greens"],
     "calories": 350, "protein": 28, "carbs": 38, "fats": 8, "fiber": 3},
    {"name": "Pochero", "category": "dinner", "ingredients": ["pork/beef", "plantains", "vegetables"],
     "calories": 500, "protein": 28, "carbs": 54, "fats": 16, "fiber": 5},
]


def catalog_names() -> set:
    """Lowercased names of the built-in dishes."""
    return {d["name"].lower() for d in TRUSTED_DISHES}
