#!/usr/bin/env python
"""
scripts/setup_firestore.py
────────────────────────────────────────────────────────────
One-shot bootstrap script for ItemRadar Match:

• Writes the default AI rate limit settings  → settings/appSettings
• Seeds sample lost / found reports (optional)
• Generates security rules                   → firestore.rules

Run:
    source .venv/bin/activate
    python scripts/setup_firestore.py --project YOUR_GCP_PROJECT \
                                      --sa      path/to/service-account.json \
                                      --seed
"""

import argparse
import datetime as dt
import os
import sys
from pathlib import Path

from google.cloud import firestore

from itemradar_match.common.schemas import ItemRecord, ItemType, RateLimitPolicy
from itemradar_match.store.firestore import (FirestoreItemStore, ITEM_COLLECTIONS, LEDGER_COLLECTION,
                                             SETTINGS_COLLECTION, SETTINGS_DOCUMENT, USAGE_COLLECTION)

# ──────────────────────────────────────────────────────────
#  Utils
# ──────────────────────────────────────────────────────────


def banner(msg: str) -> None:
    print(f"\n\033[96m⚙️  {msg}\033[0m")


def green(msg: str) -> None:
    print(f"\033[92m✅ {msg}\033[0m")


def red(msg: str) -> None:
    print(f"\033[91m❌ {msg}\033[0m", file=sys.stderr)


def sample_items(today: dt.date):
    return [
        ItemRecord(id="lost_sample_001", item_type=ItemType.LOST, item_name="wallet",
                   description="black leather wallet with student card", category="wallet",
                   color="black", location="library", event_date=today, reporter_id="uid_test"),
        ItemRecord(id="found_sample_001", item_type=ItemType.FOUND, item_name="wallet",
                   description="black wallet, leather, has a student card inside", category="wallet",
                   color="black", location="reading room", event_date=today + dt.timedelta(days=1),
                   reporter_id="uid_finder"),
        ItemRecord(id="found_sample_002", item_type=ItemType.FOUND,
                   description="blue backpack with a water bottle", category="bag",
                   color="blue", location="gym", event_date=today - dt.timedelta(days=20),
                   reporter_id="uid_finder"),
    ]


# ──────────────────────────────────────────────────────────
#  Firestore Setup Class
# ──────────────────────────────────────────────────────────


class FirestoreSetup:
    """One-shot bootstrapper for ItemRadar Match Firestore"""

    # ── constructor ───────────────────────────────────────
    def __init__(self, project_id: str, credentials: str | None):
        self.project_id = project_id
        if credentials:
            os.environ["GOOGLE_APPLICATION_CREDENTIALS"] = credentials

        self.db = firestore.Client(project=project_id)

    # ── main entrypoint ───────────────────────────────────
    def run_full_setup(self, seed: bool = False) -> None:
        banner("Starting ItemRadar Match Firestore bootstrap")
        print(f"📋 Project ID: {self.project_id}")

        self.write_default_settings()
        if seed:
            self.seed_items()
        self.generate_security_rules()

        banner("🎉 All done! Next steps")
        print(
            """\
1. Deploy security rules:
      firebase deploy --only firestore:rules

2. Adjust AI rate limits in settings/appSettings if needed.

3. Start the API:
      python run_api.py --port 8000"""
        )

    # ──────────────────────────────────────────────────
    # 1. Rate limit settings
    # ──────────────────────────────────────────────────
    def write_default_settings(self) -> None:
        banner("Writing default AI rate limit settings")
        ref = self.db.collection(SETTINGS_COLLECTION).document(SETTINGS_DOCUMENT)
        if ref.get().exists:
            green(f"{SETTINGS_COLLECTION}/{SETTINGS_DOCUMENT} already exists, leaving it untouched")
            return

        policy = RateLimitPolicy()
        ref.set({
            "aiRateLimitEnabled": policy.enabled,
            "aiRateLimitPerMinute": policy.per_user_per_minute,
            "aiRateLimitPerHour": policy.per_user_per_hour,
            "aiRateLimitMessage": policy.message,
            "systemAiRateLimitEnabled": policy.system_enabled,
            "systemAiRateLimitPerMinute": policy.system_per_minute,
            "systemAiRateLimitPerHour": policy.system_per_hour,
            "updatedAt": firestore.SERVER_TIMESTAMP,
        })
        green(f"{SETTINGS_COLLECTION}/{SETTINGS_DOCUMENT} → defaults written")

    # ──────────────────────────────────────────────────
    # 2. Sample documents
    # ──────────────────────────────────────────────────
    def seed_items(self) -> None:
        banner("Seeding sample lost / found reports")
        store = FirestoreItemStore(self.db)
        for item in sample_items(dt.date.today()):
            store.save_item(item)
            green(f"{ITEM_COLLECTIONS[item.item_type]} → {item.id}")

    # ──────────────────────────────────────────────────
    # 3. Security rules
    # ──────────────────────────────────────────────────
    def generate_security_rules(self) -> None:
        banner("Writing firestore.rules")
        lost, found = ITEM_COLLECTIONS[ItemType.LOST], ITEM_COLLECTIONS[ItemType.FOUND]
        rules = f"""rules_version = '2';
service cloud.firestore {{
  match /databases/{{database}}/documents {{

    // Item reports
    match /{lost}/{{itemId}} {{
      allow read: if true;
      allow create: if request.auth != null
        && request.auth.uid == request.resource.data.reporter_id;
      allow update, delete: if request.auth != null
        && request.auth.uid == resource.data.reporter_id;
    }}
    match /{found}/{{itemId}} {{
      allow read: if true;
      allow create: if request.auth != null
        && request.auth.uid == request.resource.data.reporter_id;
      allow update, delete: if request.auth != null
        && request.auth.uid == resource.data.reporter_id;
    }}

    // Admin settings – readable by authed users, written from the admin SDK
    match /{SETTINGS_COLLECTION}/{{doc}} {{
      allow read: if request.auth != null;
      allow write: if false;
    }}

    // AI usage ledger – server only
    match /{USAGE_COLLECTION}/{{doc=**}} {{
      allow read, write: if false;
    }}
    match /{LEDGER_COLLECTION}/{{doc=**}} {{
      allow read, write: if false;
    }}
  }}
}}"""
        Path("firestore.rules").write_text(rules, encoding="utf-8")
        green("firestore.rules written")


# ──────────────────────────────────────────────────────────
#  Main CLI
# ──────────────────────────────────────────────────────────


def main() -> None:
    parser = argparse.ArgumentParser(description="ItemRadar Match Firestore bootstrap")
    parser.add_argument("--project", required=True, help="GCP project id")
    parser.add_argument(
        "--sa",
        dest="service_account",
        help="Path to service-account JSON (optional if ADC already configured)",
    )
    parser.add_argument(
        "--seed",
        action="store_true",
        help="Also write sample lost / found reports",
    )
    args = parser.parse_args()

    try:
        setup = FirestoreSetup(args.project, args.service_account)
        setup.run_full_setup(args.seed)
    except Exception as e:
        red(f"Bootstrap failed: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
