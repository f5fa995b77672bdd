"""
Database bootstrap script.

Applies schema.sql (idempotent), seeds the Filipino dish catalog and,
when ADMIN_EMAIL / ADMIN_PASSWORD are set, an admin account.

Usage:
    python -m activecore.database.init_db
"""

import json
import os
import sys

from argon2 import PasswordHasher

from activecore.database.db_connection import get_db
from activecore.meal_planner_service.catalog import TRUSTED_DISHES

SCHEMA_PATH = os.path.join(os.path.dirname(os.path.abspath(__file__)), "schema.sql")


def apply_schema(cur) -> None:
    with open(SCHEMA_PATH, "r", encoding="utf-8") as fh:
        cur.execute(fh.read())


def seed_dishes(cur) -> int:
    """Insert catalog dishes that are not in the table yet. Returns rows inserted."""
    inserted = 0
    for dish in TRUSTED_DISHES:
        cur.execute(
            """
            INSERT INTO filipino_dishes
                (name, category, ingredients, calories, protein, carbs, fats, fiber)
            VALUES (%s, %s, %s, %s, %s, %s, %s, %s)
            ON CONFLICT (name) DO NOTHING;
            """,
            (
                dish["name"],
                dish.get("category"),
                json.dumps(dish["ingredients"]),
                dish["calories"],
                dish["protein"],
                dish["carbs"],
                dish["fats"],
                dish["fiber"],
            ),
        )
        inserted += cur.rowcount
    return inserted


def seed_admin(cur, email: str, password: str) -> bool:
    """Create the admin account if the email is free. Returns True when created."""
    cur.execute(
        """
        INSERT INTO users (email, password, first_name, last_name, role, status)
        VALUES (%s, %s, 'Gym', 'Admin', 'admin', 'active')
        ON CONFLICT (email) DO NOTHING;
        """,
        (email.strip().lower(), PasswordHasher().hash(password)),
    )
    return cur.rowcount > 0


def main() -> int:
    print("--- Initializing ActiveCore database ---")

    conn = None
    try:
        conn = get_db()
        with conn.cursor() as cur:
            apply_schema(cur)
            print("Schema applied.")

            count = seed_dishes(cur)
            print(f"Seeded {count} dish(es) into filipino_dishes.")

            admin_email = os.getenv("ADMIN_EMAIL")
            admin_password = os.getenv("ADMIN_PASSWORD")
            if admin_email and admin_password:
                created = seed_admin(cur, admin_email, admin_password)
                print(f"Admin account {'created' if created else 'already exists'}: {admin_email}")

        conn.commit()
        print("Database initialization PASSED.")
        return 0
    except Exception as e:
        print("Database initialization FAILED:")
        print(f" Error: {e}")
        if conn:
            conn.rollback()
        return 1
    finally:
        if conn:
            conn.close()


if __name__ == "__main__":
    sys.exit(main())
