"""
Quiz configuration and question models.

Wire-facing models use camelCase JSON keys so that records written by the
question bank (``correctAnswer``, ``needsGrading``, ``gradeLevels`` ...) load
unchanged, while Python code uses snake_case attribute names.

Question Types:
- MULTIPLE_CHOICE: Single correct option
- MULTIPLE_SELECT: Several correct options, stored as a JSON array
- TRUE_FALSE: Binary choice
- SHORT_ANSWER: Free text, optionally flagged for manual grading
- FILL_IN_THE_BLANK: One or more blanks, stored as a JSON array or ;&&;-joined
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, List, Literal, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel


class WireModel(BaseModel):
    """Base model with camelCase aliases for JSON round-trips."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_wire(self) -> dict[str, Any]:
        """Dump to the JSON-compatible camelCase form."""
        return self.model_dump(mode="json", by_alias=True)


class QuestionType(str, Enum):
    """Supported question types."""

    MULTIPLE_CHOICE = "MULTIPLE_CHOICE"
    MULTIPLE_SELECT = "MULTIPLE_SELECT"
    TRUE_FALSE = "TRUE_FALSE"
    SHORT_ANSWER = "SHORT_ANSWER"
    FILL_IN_THE_BLANK = "FILL_IN_THE_BLANK"


class Difficulty(str, Enum):
    EASY = "EASY"
    MEDIUM = "MEDIUM"
    HARD = "HARD"


class GradeLevel(str, Enum):
    PRIMARY = "PRIMARY"
    JUNIOR = "JUNIOR"
    SENIOR = "SENIOR"


class QuestionCategory(str, Enum):
    """Question categories, stored by their display value."""

    BASIC = "基础知识"
    MISTAKE = "易错题"
    EXPLANATION = "写解析"
    STANDARD = "标准理解"


# ========================================
# Filters and Configuration
# ========================================


class QuestionFilters(WireModel):
    """Candidate filter for one part. An empty list means no restriction."""

    subjects: List[str] = Field(default_factory=list)
    difficulties: List[Difficulty] = Field(default_factory=list)
    grade_levels: List[GradeLevel] = Field(default_factory=list)
    question_types: List[QuestionType] = Field(default_factory=list)
    categories: List[QuestionCategory] = Field(default_factory=list)

    @field_validator("*", mode="before")
    @classmethod
    def _none_is_unrestricted(cls, value: Any) -> Any:
        return [] if value is None else value


class QuizPart(WireModel):
    """A named slice of a quiz: filters, how many questions, points per question."""

    id: str
    name: str = ""
    subjects: List[str] = Field(default_factory=list)
    difficulties: List[Difficulty] = Field(default_factory=list)
    grade_levels: List[GradeLevel] = Field(default_factory=list)
    # Older configs stored this list under "types"
    question_types: List[QuestionType] = Field(
        default_factory=list,
        validation_alias=AliasChoices("questionTypes", "types", "question_types"),
        serialization_alias="questionTypes",
    )
    categories: List[QuestionCategory] = Field(default_factory=list)
    count: int = Field(default=0, ge=0)
    score: float = Field(default=0.0, ge=0.0)

    @field_validator(
        "subjects", "difficulties", "grade_levels", "question_types", "categories",
        mode="before",
    )
    @classmethod
    def _none_is_unrestricted(cls, value: Any) -> Any:
        return [] if value is None else value

    @property
    def filters(self) -> QuestionFilters:
        return QuestionFilters(
            subjects=self.subjects,
            difficulties=self.difficulties,
            grade_levels=self.grade_levels,
            question_types=self.question_types,
            categories=self.categories,
        )


class QuizConfig(WireModel):
    """
    Declarative quiz definition.

    Parts are evaluated in declared order; earlier parts get first claim on
    questions that match several parts' filters.
    """

    id: str
    name: str
    description: Optional[str] = None
    parts: List[QuizPart] = Field(default_factory=list)
    passing_score: float = Field(default=0.0, ge=0.0)
    total_questions: Optional[int] = Field(default=None, ge=0)
    quiz_mode: Literal["practice", "exam"] = "practice"
    is_published: bool = False
    is_deleted: bool = False
    created_at: Optional[int] = None

    @field_validator("parts", mode="before")
    @classmethod
    def _none_is_empty(cls, value: Any) -> Any:
        return [] if value is None else value

    @field_validator("quiz_mode", mode="before")
    @classmethod
    def _default_mode(cls, value: Any) -> Any:
        return value or "practice"

    @model_validator(mode="after")
    def _derive_total(self) -> QuizConfig:
        if self.total_questions is None:
            self.total_questions = sum(part.count for part in self.parts)
        return self

    @property
    def max_score(self) -> float:
        return sum(part.count * part.score for part in self.parts)


# ========================================
# Questions
# ========================================


class Question(WireModel):
    """A question as stored, including its authoritative answer."""

    id: str
    type: QuestionType
    text: str = ""
    image_urls: List[str] = Field(default_factory=list)
    options: Optional[List[str]] = None
    # JSON array for MULTIPLE_SELECT; JSON array, ;&&;-joined or bare for FILL_IN_THE_BLANK
    correct_answer: str = ""
    subject: str = ""
    grade_level: Optional[GradeLevel] = None
    difficulty: Optional[Difficulty] = None
    category: QuestionCategory = QuestionCategory.BASIC
    explanation: Optional[str] = None
    is_disabled: bool = False
    is_deleted: bool = False
    needs_grading: bool = False
    score: Optional[float] = None
    created_at: Optional[int] = None

    @field_validator("image_urls", mode="before")
    @classmethod
    def _none_is_empty(cls, value: Any) -> Any:
        return [] if value is None else value

    @field_validator("correct_answer", "text", "subject", mode="before")
    @classmethod
    def _none_is_blank(cls, value: Any) -> Any:
        return "" if value is None else value

    @field_validator("category", mode="before")
    @classmethod
    def _default_category(cls, value: Any) -> Any:
        return value or QuestionCategory.BASIC

    @property
    def is_manually_graded(self) -> bool:
        """Only short answers can be deferred to a human."""
        return self.type == QuestionType.SHORT_ANSWER and self.needs_grading


class ClientQuestion(WireModel):
    """
    A question as handed to a quiz taker.

    ``correct_answer`` is typed ``None``: no code path can hand the
    authoritative answer to a quiz-taking context through this model.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        validate_assignment=True,
    )

    id: str
    type: QuestionType
    text: str = ""
    image_urls: List[str] = Field(default_factory=list)
    options: Optional[List[str]] = None
    subject: str = ""
    grade_level: Optional[GradeLevel] = None
    difficulty: Optional[Difficulty] = None
    category: QuestionCategory = QuestionCategory.BASIC
    needs_grading: bool = False
    score: float = 0.0
    blank_count: Optional[int] = None
    quiz_part_name: str = ""
    correct_answer: None = None


@dataclass
class SelectedQuestion:
    """A question ID chosen for a quiz, tagged with the part that claimed it."""

    question_id: str
    part: QuizPart
    position: int
