# This file makes the 'schemas' directory a Python package.

from .learner_schema import TokenData

from .course_schema import ChapterView, SectionView, QuizPayload

from .user_progress_schema import (
    CourseProgressBase, CourseProgressDisplay, SectionProgressDetail, CourseProgressReport,
    MyCourseProgress, EnrollmentStatus,
    ChapterCompletionResult, CourseCompletionResult, QuizAttemptCreate, QuizAttemptDisplay
)

from .navigation_schema import (
    NavigationDescriptorDisplay, NavStateDisplay, NavItemDisplay, NextActionDisplay,
    NavigationTargetDisplay, RenderStateDisplay, FinishCourseRequest
)


__all__ = [
    # Learner Schemas
    "TokenData",

    # Course Schemas
    "ChapterView", "SectionView", "QuizPayload",

    # Progress Schemas
    "CourseProgressBase", "CourseProgressDisplay", "SectionProgressDetail", "CourseProgressReport",
    "MyCourseProgress", "EnrollmentStatus",
    "ChapterCompletionResult", "CourseCompletionResult", "QuizAttemptCreate", "QuizAttemptDisplay",

    # Navigation Schemas
    "NavigationDescriptorDisplay", "NavStateDisplay", "NavItemDisplay", "NextActionDisplay",
    "NavigationTargetDisplay", "RenderStateDisplay", "FinishCourseRequest",
]
