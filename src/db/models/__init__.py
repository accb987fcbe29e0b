# SQLAlchemy models
from .base import Base
from .quiz import (
    QuestionRecord,
    QuizConfigRecord,
    QuizResultRecord,
    SystemLogRecord,
)

__all__ = [
    "Base",
    "QuestionRecord",
    "QuizConfigRecord",
    "QuizResultRecord",
    "SystemLogRecord",
]
