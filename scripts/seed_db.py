"""
Seed script for the GoSafe mock DB or Firestore.

Usage:
  - Dry run (default): python scripts/seed_db.py
  - Apply to configured DB: python scripts/seed_db.py --apply
  - Custom seed file: python scripts/seed_db.py --seed path/to/seed.json --apply
  - Also write demo geofences and risk areas: python scripts/seed_db.py --apply --demo-geo
  - Force mock DB even if FIREBASE configured: python scripts/seed_db.py --apply --force-mock

Behavior:
  - Loads a {collection: {doc_id: data}} JSON file (default scripts/demo_seed.json).
  - Gets DB via `app.config.firebase.get_db()` which returns the mock DB or real Firestore depending on settings.
  - Writes each top-level collection/document to the DB.
  - Password fields named "password" are hashed into "password_hash" before writing users.

NOTE: When applying to real Firestore, ensure `FIREBASE_CREDENTIALS_PATH` and `USE_MOCK_DB=false` are set in `.env`.
"""

import argparse
import json
import os
from typing import Any

from app.core.settings import settings
from app.utils.security import hash_password

DEFAULT_SEED_PATH = os.path.join(os.path.dirname(os.path.abspath(__file__)), "demo_seed.json")


def load_seed(path: str = DEFAULT_SEED_PATH) -> dict:
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)


def prepare_document(collection: str, data: dict) -> dict:
    if collection == "users" and "password" in data:
        data = dict(data)
        data["password_hash"] = hash_password(data.pop("password"))
    return data


def write_to_db(db: Any, seed: dict, apply: bool = False) -> int:
    written = 0
    for collection, docs in seed.items():
        for doc_id, data in docs.items():
            print(f"Preparing: {collection}/{doc_id}")
            if not apply:
                continue
            try:
                # Firestore client and MockFirestore share .collection(name).document(id).set(data)
                db.collection(collection).document(doc_id).set(prepare_document(collection, data))
                written += 1
                print(f"Wrote: {collection}/{doc_id}")
            except Exception as e:
                print(f"Failed to write {collection}/{doc_id}: {e}")
    return written


def main():
    parser = argparse.ArgumentParser(description="Seed the GoSafe database")
    parser.add_argument("--seed", default=DEFAULT_SEED_PATH, help="Path to the seed JSON file")
    parser.add_argument("--apply", action="store_true", help="Write seed to the DB instead of dry-run")
    parser.add_argument("--demo-geo", action="store_true", help="Also seed demo geofences and risk areas")
    parser.add_argument("--force-mock", action="store_true", help="Force use of mock DB even if FIREBASE configured")
    args = parser.parse_args()

    if not os.path.exists(args.seed):
        print(f"Seed file not found: {args.seed}")
        return

    seed = load_seed(args.seed)

    if args.force_mock:
        print("Forcing mock DB usage for this run.")
        # Settings are read once at import; patch before the DB is created
        settings.USE_MOCK_DB = True

    from app.config.firebase import get_db

    db = get_db()
    written = write_to_db(db, seed, apply=args.apply)

    if args.apply and args.demo_geo:
        from app.services.geo_service import get_geo_service

        print(f"Demo geo data: {get_geo_service().seed_demo_data()}")

    if args.apply:
        print(f"Seeding completed ({written} documents).")
    else:
        print("Dry run complete. Re-run with --apply to write to DB.")


if __name__ == "__main__":
    main()
