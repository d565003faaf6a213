# This file makes the 'models' directory a Python package.

from learnpath.core.database import Base # Base must be imported before models that use it

from .enums import ContentKind, CompletionStatus, ItemKind, ViewKind

from .user_model import User
from .course_model import Course, Section, Chapter, Quiz
from .enrollment_model import Enrollment
from .user_progress_model import (
    VideoProgress,
    TextProgress,
    SectionAccess,
    QuizAttempt,
    CourseProgress,
)

__all__ = [
    "Base",
    # Models
    "User",
    "Course",
    "Section",
    "Chapter",
    "Quiz",
    "Enrollment",
    "VideoProgress",
    "TextProgress",
    "SectionAccess",
    "QuizAttempt",
    "CourseProgress",
    # Enums
    "ContentKind",
    "CompletionStatus",
    "ItemKind",
    "ViewKind",
]
