# Path: scripts/show_history.py
# Purpose: Simple CLI to list stored solutions for this device.
# Layer: scripts.
# Details: Reads the solution store newest first, optionally only bookmarked entries.

from __future__ import annotations

import argparse
import sys
from pathlib import Path

# Ensure project root is on sys.path when running as a script.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from config import AppSettings
from core.identity import DeviceIdentity
from core.storage.sqlite_store import SqliteSolutionStore


def main() -> None:
    """Print the solution history of the current device."""

    parser = argparse.ArgumentParser(description="List stored homework solutions")
    parser.add_argument("--bookmarked", action="store_true", help="Only show bookmarked solutions")
    parser.add_argument("--limit", type=int, default=20, help="Maximum number of entries")
    parser.add_argument("--device-id", type=str, default=None, help="Device id to list (defaults to this install)")
    args = parser.parse_args()

    settings = AppSettings.from_env()
    device_id = args.device_id or DeviceIdentity.load_or_create(settings.storage.device_id_path).device_id
    store = SqliteSolutionStore(settings.storage.database_path)

    for record in store.list_history(device_id, bookmarked_only=args.bookmarked, limit=args.limit):
        marker = "*" if record.bookmarked else " "
        first_line = record.solution.strip().splitlines()[0] if record.solution.strip() else "(empty)"
        print(f"{marker} {record.created_at:%Y-%m-%d %H:%M} {record.image_hash[:12]} {first_line[:80]}")


if __name__ == "__main__":
    main()
