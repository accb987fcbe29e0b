"""
Quiz module for selecting and assembling quizzes from a question bank.

This module provides:
- models: Quiz configs, parts, questions and the client-safe question view
- answers: Canonical answer decoding and text normalization
- PartSelector: Ordered, duplicate-free sampling across parts
- QuizAssembler: Chunked detail fetch and answer stripping
- QuizService: The exposed generate/grade/persist/correct operations

Question Types:
- MULTIPLE_CHOICE: Single correct option
- MULTIPLE_SELECT: Several correct options (order-independent)
- TRUE_FALSE: Binary choice
- SHORT_ANSWER: Free text, optionally graded by a human
- FILL_IN_THE_BLANK: One or more positional blanks
"""

from .models import (
    ClientQuestion,
    Difficulty,
    GradeLevel,
    Question,
    QuestionCategory,
    QuestionFilters,
    QuestionType,
    QuizConfig,
    QuizPart,
    SelectedQuestion,
)

__all__ = [
    "ClientQuestion",
    "Difficulty",
    "GradeLevel",
    "Question",
    "QuestionCategory",
    "QuestionFilters",
    "QuestionType",
    "QuizConfig",
    "QuizPart",
    "SelectedQuestion",
]
