#!/usr/bin/env python3
"""Load test content (questionnaires, questions, blueprints, level descriptions) from YAML.

Usage:
    python scripts/seed_content.py [CONTENT_FILE]

Defaults to scripts/sample_content.yaml. Reads DATABASE_PATH / DATABASE_URL
from the .env file, runs migrations, then inserts every document whose id is
not already present. Blueprints reference questions and questionnaires by id,
so ids should be set explicitly in the file.
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

import yaml
from dotenv import load_dotenv

load_dotenv(Path(__file__).resolve().parent.parent / ".env")

from levelcheck.db import content_store as store
from levelcheck.db.database import get_db, init_db
from levelcheck.models.assessment import (
    LevelDescription,
    QuestionBankItem,
    Questionnaire,
    TestBlueprint,
)
from levelcheck.services import levels

logger = logging.getLogger("seed_content")

DEFAULT_CONTENT = Path(__file__).resolve().parent / "sample_content.yaml"

# (YAML key, model, lookup, insert) in dependency order
SECTIONS = [
    ("questionnaires", Questionnaire, store.get_questionnaire, store.create_questionnaire),
    ("questions", QuestionBankItem, store.get_question, store.create_question),
    ("blueprints", TestBlueprint, store.get_blueprint, store.create_blueprint),
]


def _check_labels(question: QuestionBankItem) -> None:
    if question.difficulty_cefr and levels.label_to_level(question.difficulty_cefr, "cefr") is None:
        logger.warning("Question %s: unknown CEFR label %s", question.id, question.difficulty_cefr)
    if question.difficulty_actfl and levels.label_to_level(question.difficulty_actfl, "actfl") is None:
        logger.warning("Question %s: unknown ACTFL label %s", question.id, question.difficulty_actfl)


async def seed(content: dict) -> dict:
    await init_db()
    counts = {}
    async for db in get_db():
        for key, model, lookup, insert in SECTIONS:
            inserted = 0
            for raw in content.get(key) or []:
                doc = model.model_validate(raw)
                if isinstance(doc, QuestionBankItem):
                    _check_labels(doc)
                if await lookup(db, doc.id):
                    continue
                await insert(db, doc)
                inserted += 1
            counts[key] = inserted

        inserted = 0
        for raw in content.get("levelDescriptions") or []:
            desc = LevelDescription.model_validate(raw)
            if await store.find_level_description(db, desc.standard, desc.level_code):
                continue
            await store.create_level_description(db, desc)
            inserted += 1
        counts["levelDescriptions"] = inserted
    return counts


def main():
    logging.basicConfig(level=logging.INFO, format="%(levelname)-5s [%(name)s] %(message)s")
    parser = argparse.ArgumentParser(description="Seed test content from a YAML file")
    parser.add_argument("content_file", nargs="?", default=str(DEFAULT_CONTENT))
    args = parser.parse_args()

    path = Path(args.content_file)
    if not path.exists():
        print(f"ERROR: content file not found: {path}", file=sys.stderr)
        sys.exit(1)

    with open(path, encoding="utf-8") as f:
        content = yaml.safe_load(f) or {}

    counts = asyncio.run(seed(content))
    for key, inserted in counts.items():
        print(f"  {key}: {inserted} inserted")


if __name__ == "__main__":
    main()
