"""Seeding the sample YAML content into a fresh database."""

import asyncio
import importlib.util
from pathlib import Path

import pytest
import yaml

from levelcheck.config import settings
from levelcheck.db import content_store as store
from levelcheck.db.database import get_db

SCRIPTS_DIR = Path(__file__).resolve().parent.parent / "scripts"


def _load_seed_module():
    module_spec = importlib.util.spec_from_file_location("seed_content", SCRIPTS_DIR / "seed_content.py")
    module = importlib.util.module_from_spec(module_spec)
    module_spec.loader.exec_module(module)
    return module


@pytest.fixture
def fresh_db(tmp_path, monkeypatch):
    monkeypatch.setattr(settings, "database_path", str(tmp_path / "seed.db"))


@pytest.fixture
def sample_content():
    with open(SCRIPTS_DIR / "sample_content.yaml", encoding="utf-8") as f:
        return yaml.safe_load(f)


class TestSeedContent:
    def test_sample_content_is_loaded(self, fresh_db, sample_content):
        seed_module = _load_seed_module()
        counts = asyncio.run(seed_module.seed(sample_content))
        assert counts == {
            "questionnaires": 2,
            "questions": 6,
            "blueprints": 3,
            "levelDescriptions": 2,
        }

    def test_second_run_inserts_nothing(self, fresh_db, sample_content):
        seed_module = _load_seed_module()
        asyncio.run(seed_module.seed(sample_content))
        counts = asyncio.run(seed_module.seed(sample_content))
        assert set(counts.values()) == {0}

    def test_seeded_documents_round_trip(self, fresh_db, sample_content):
        seed_module = _load_seed_module()
        asyncio.run(seed_module.seed(sample_content))

        async def read_back():
            async for db in get_db():
                blueprint = await store.get_blueprint(db, "placement-pool")
                matching = await store.get_question(db, "q-b1-match")
                vantage = await store.find_level_description(db, "cefr", "B2")
                return blueprint, matching, vantage

        blueprint, matching, vantage = asyncio.run(read_back())
        assert blueprint.strategy == "randomized_pool"
        assert blueprint.pool_config.pool_size == 3
        assert blueprint.pool_config.tags == ["vocab"]
        assert len(matching.matching_pairs) == 3
        assert matching.difficulty_cefr == "B1"
        assert vantage.title == "Vantage"
