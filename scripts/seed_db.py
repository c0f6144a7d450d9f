"""
Seed script for local CivicLens development data.

Usage:
  - Dry run (default): python scripts/seed_db.py
  - Apply to Firestore: python scripts/seed_db.py --apply
  - Custom file: python scripts/seed_db.py --seed path/to/seed.json --apply

Behavior:
  - Loads a JSON object of {collection: {doc_id: data}} (default `db_seed.json`).
  - Only the collections the notification pipeline reads are accepted:
    `users` (email lookup), `notification_preferences`, `push_permissions`.
  - Writes each document with merge semantics through `app.config.firebase.get_db()`.
"""

import argparse
import json
import logging
import os
from typing import Any

from app.config.firebase import get_db
from app.models.notification import NotificationPreferences, PushPermission

logging.basicConfig(level=logging.INFO, format="%(levelname)s %(message)s")
logger = logging.getLogger("seed_db")

SEEDABLE_COLLECTIONS = {"users", "notification_preferences", "push_permissions"}


def load_seed(path: str) -> dict:
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)


def validate_document(collection: str, data: dict) -> dict:
    """Reject documents the services would not be able to read back."""
    if collection == "notification_preferences":
        NotificationPreferences(**data)
    elif collection == "push_permissions":
        PushPermission(data.get("permission", PushPermission.DEFAULT.value))
    elif collection == "users" and "email" not in data:
        raise ValueError("users documents need an 'email' field")
    return data


def write_to_db(db: Any, seed: dict, apply: bool = False) -> int:
    written = 0
    for collection, docs in seed.items():
        if collection not in SEEDABLE_COLLECTIONS:
            logger.warning(f"Skipping unknown collection: {collection}")
            continue
        for doc_id, data in docs.items():
            try:
                validate_document(collection, data)
            except ValueError as e:
                logger.error(f"Invalid {collection}/{doc_id}: {e}")
                continue

            logger.info(f"Preparing: {collection}/{doc_id}")
            if not apply:
                continue
            db.collection(collection).document(doc_id).set(data, merge=True)
            written += 1
            logger.info(f"Wrote: {collection}/{doc_id}")
    return written


def main():
    parser = argparse.ArgumentParser()
    parser.add_argument("--apply", action="store_true", help="Write seed to Firestore instead of dry-run")
    parser.add_argument("--seed", default="db_seed.json", help="Seed file path")
    args = parser.parse_args()

    seed_path = os.path.abspath(args.seed)
    if not os.path.exists(seed_path):
        logger.error(f"Seed file not found: {seed_path}")
        return

    seed = load_seed(seed_path)
    db = get_db() if args.apply else None
    written = write_to_db(db, seed, apply=args.apply)

    if args.apply:
        logger.info(f"Seeding completed: {written} documents written.")
    else:
        logger.info("Dry run complete. Re-run with --apply to write to Firestore.")


if __name__ == "__main__":
    main()
