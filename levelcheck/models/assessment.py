import uuid
from datetime import datetime, timezone
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


QuestionType = Literal[
    "multiple_choice",
    "fill_blank",
    "matching",
    "listening_comprehension",
    "reading_comprehension",
    "speaking",
]
OPTION_QUESTION_TYPES = ("multiple_choice", "listening_comprehension", "reading_comprehension")

DifficultyStandard = Literal["cefr", "actfl"]
SessionStatus = Literal["started", "completed"]


def new_id() -> str:
    return uuid.uuid4().hex


def utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


class CamelModel(BaseModel):
    """Snake_case attributes, camelCase on the wire."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_json(self) -> dict:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


# ── Question bank ────────────────────────────────────────────────────

class AnswerOption(CamelModel):
    text: str
    is_correct: bool = False


class Blank(CamelModel):
    # Pipe-delimited, e.g. "color|colour"
    accepted_answers: str = ""


class MatchingPair(CamelModel):
    left_type: Literal["text", "image"] = "text"
    left_text: Optional[str] = None
    left_image: Optional[str] = None
    right_type: Literal["text", "image"] = "text"
    right_text: Optional[str] = None
    right_image: Optional[str] = None


class QuestionBankItem(CamelModel):
    id: str = Field(default_factory=new_id)
    type: QuestionType
    stem: Any = ""
    media: Optional[str] = None
    difficulty_cefr: Optional[str] = Field(default=None, alias="difficulty_cefr")
    difficulty_actfl: Optional[str] = Field(default=None, alias="difficulty_actfl")
    tags: list[str] = []
    options: list[AnswerOption] = []
    blanks: list[Blank] = []
    matching_pairs: list[MatchingPair] = []
    speaking_reference: Optional[str] = None

    def public_view(self) -> dict:
        """Question payload for test takers.

        Option correctness and accepted blank answers are removed. Matching
        pairs keep their stored alignment; the client shuffles the right
        column before display.
        """
        data = self.to_json()
        data["options"] = [{"text": o.text} for o in self.options]
        data.pop("blanks", None)
        data["blankCount"] = len(self.blanks)
        return data


# ── Questionnaires and level descriptions ────────────────────────────

class QuestionnaireOption(CamelModel):
    label: str
    value: str


class QuestionnaireQuestion(CamelModel):
    prompt: str
    type: Literal["text", "choice", "multiple_choice", "scale"] = "choice"
    options: list[QuestionnaireOption] = []


class Questionnaire(CamelModel):
    id: str = Field(default_factory=new_id)
    title: str
    description: Optional[str] = None
    questions: list[QuestionnaireQuestion] = []


class LevelDescription(CamelModel):
    id: str = Field(default_factory=new_id)
    standard: DifficultyStandard
    level_code: str
    title: str
    description: Any = None


# ── Blueprints ───────────────────────────────────────────────────────

class PoolConfig(CamelModel):
    pool_size: int = 10
    tags: list[str] = []


class AdaptiveConfig(CamelModel):
    difficulty_standard: DifficultyStandard = "cefr"
    # 1-6 for CEFR, 1-11 for ACTFL
    initial_difficulty: int = 3
    max_questions: int = 20


class TestBlueprint(CamelModel):
    __test__ = False

    id: str = Field(default_factory=new_id)
    title: str = ""
    description: Optional[str] = None
    # Kept as free text so unknown strategies load and fail at dispatch
    strategy: str
    pre_test_questionnaire: Optional[str] = None
    post_test_questionnaire: Optional[str] = None
    linear_questions: list[str] = []
    pool_config: PoolConfig = Field(default_factory=PoolConfig)
    adaptive_config: AdaptiveConfig = Field(default_factory=AdaptiveConfig)


# ── Sessions ─────────────────────────────────────────────────────────

class HistoryItem(CamelModel):
    question_id: str
    tags: list[str] = []
    user_answer: dict
    readable_answer: str = ""
    is_correct: bool
    awarded_score: int = 0
    time_taken: float = 0
    timestamp: str = Field(default_factory=utc_now)


class CurrentEstimate(CamelModel):
    level: int
    questions_count: int = 0


class QuestionnaireAnswer(CamelModel):
    questionnaire_id: str
    answers: Any


class SkillStat(CamelModel):
    correct: int = 0
    total: int = 0


class FinalResult(CamelModel):
    score: int
    max_score: int
    passed: bool
    skill_breakdown: dict[str, SkillStat] = {}
    level: Optional[str] = None
    level_title: Optional[str] = None
    level_description: Any = None


class TestSession(CamelModel):
    __test__ = False

    id: str = Field(default_factory=new_id)
    user_id: Optional[str] = None
    blueprint_id: str
    status: SessionStatus = "started"
    start_time: str = Field(default_factory=utc_now)
    end_time: Optional[str] = None
    history: list[HistoryItem] = []
    questionnaire_answers: list[QuestionnaireAnswer] = []
    generated_questions: Optional[list[str]] = None
    current_estimate: Optional[CurrentEstimate] = None
    final_result: Optional[FinalResult] = None
    # Store-managed; bumped on every successful write
    version: int = 0

    def answered_question_ids(self) -> list[str]:
        return [item.question_id for item in self.history]


# ── Request bodies ───────────────────────────────────────────────────

class StartRequest(CamelModel):
    blueprint_id: Optional[str] = None


class SubmitRequest(CamelModel):
    session_id: Optional[str] = None
    question_id: Optional[str] = None
    questionnaire_id: Optional[str] = None
    answer: Any = None
    answers: Any = None
    time_taken: Optional[float] = None
    idempotency_key: Optional[str] = None

    @property
    def has_answer(self) -> bool:
        # An explicit null is still an answer; only an absent key is missing
        return "answer" in self.model_fields_set
