"""
Import question-bank JSON files into the subjects collection.

What it does
- Loads every ``*.json`` file in the given directory (each a list of questions)
- Infers ``questionType`` when missing (no options -> numerical, list answer -> multiple)
- Groups questions by subject and exam (quiz1 / quiz2 / ET; anything else is skipped)
- Merges into existing subjects, skipping questions already present (question + term + exam)

How to run:
1) Ensure MongoDB is reachable per your `.env` (MONGO_URI / MONGO_DB_NAME)
2) python data_scripts/seed_questionbank.py ./questionbank
"""

import argparse
import json
import logging
import os
import sys
from pathlib import Path
from typing import Any, Dict, List

sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from companion.services.question_service import import_question_bank  # type: ignore

logger = logging.getLogger("seed_questionbank")


def load_entries(directory: Path) -> List[Dict[str, Any]]:
    entries: List[Dict[str, Any]] = []
    for path in sorted(directory.glob("*.json")):
        with path.open(encoding="utf-8") as fh:
            data = json.load(fh)
        if not isinstance(data, list):
            logger.warning("Skipping %s: expected a list of questions", path.name)
            continue
        entries.extend(data)
        logger.info("Loaded %d questions from %s", len(data), path.name)
    return entries


def main() -> int:
    parser = argparse.ArgumentParser(description="Import question-bank JSON files")
    parser.add_argument("directory", nargs="?", default="questionbank", help="Folder holding *.json files")
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(levelname)s - %(message)s")
    directory = Path(args.directory)
    if not directory.is_dir():
        logger.error("Directory not found: %s", directory)
        return 1

    entries = load_entries(directory)
    if not entries:
        logger.warning("No JSON files found in %s", directory)
        return 0

    report = import_question_bank(entries)
    for subject, counts in report.items():
        print(f"{subject}: +{counts['added']} new, {counts['skipped']} skipped")
    print("Seeding completed")
    return 0


if __name__ == "__main__":
    sys.exit(main())
