"""initial_assessment_schema

Blueprints, question bank, questionnaires, level descriptions, test sessions
and the submission replay log. Executes levelcheck/db/schema.sql, which uses
CREATE ... IF NOT EXISTS throughout.

Revision ID: 3b9d2c41e7a0
Revises:
Create Date: 2026-10-19

"""
from typing import Sequence, Union
from pathlib import Path

from alembic import op
import sqlalchemy as sa


revision: str = "3b9d2c41e7a0"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    schema_path = Path(__file__).resolve().parents[2] / "levelcheck" / "db" / "schema.sql"
    schema_sql = schema_path.read_text()
    # op.execute runs one statement at a time
    for statement in schema_sql.split(";"):
        lines = [
            line for line in statement.splitlines()
            if line.strip() and not line.strip().startswith("--")
        ]
        cleaned = "\n".join(lines).strip()
        if cleaned:
            op.execute(sa.text(cleaned))


def downgrade() -> None:
    """Drop all tables in reverse dependency order."""
    for table in [
        "session_submissions",
        "test_sessions",
        "level_descriptions",
        "test_blueprints",
        "question_bank",
        "questionnaires",
    ]:
        op.execute(sa.text(f"DROP TABLE IF EXISTS {table}"))
