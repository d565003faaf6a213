# This file makes the 'crud' directory a Python package.

from .user_crud import (
    get_user_by_firebase_uid,
)

from .course_crud import (
    get_course, get_sections, get_section, get_chapter,
    get_quiz, get_course_id_for_chapter, get_course_id_for_quiz
)

from .enrollment_crud import (
    get_enrollment, is_enrolled, get_enrollments_for_learner
)

from .user_progress_crud import (
    progress_model_for,
    get_chapter_completion, get_completed_chapter_ids, upsert_chapter_completion,
    get_quiz_attempt_count, get_attempted_quiz_ids, record_quiz_attempt,
    touch_section_access, get_section_access,
    upsert_course_progress, get_course_progress
)


__all__ = [
    # User CRUD
    "get_user_by_firebase_uid",

    # Content store
    "get_course", "get_sections", "get_section", "get_chapter",
    "get_quiz", "get_course_id_for_chapter", "get_course_id_for_quiz",

    # Enrollment CRUD
    "get_enrollment", "is_enrolled", "get_enrollments_for_learner",

    # Progress store
    "progress_model_for",
    "get_chapter_completion", "get_completed_chapter_ids", "upsert_chapter_completion",
    "get_quiz_attempt_count", "get_attempted_quiz_ids", "record_quiz_attempt",
    "touch_section_access", "get_section_access",
    "upsert_course_progress", "get_course_progress",
]
