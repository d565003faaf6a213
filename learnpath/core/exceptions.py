"""Domain errors raised by the progress and navigation engine.

Only NotEnrolledError fails a request. The others are recovered close to
where they happen and logged.
"""


class LearnPathError(Exception):
    """Base class for engine errors."""


class NotEnrolledError(LearnPathError):
    def __init__(self, learner_id: int, course_id: int):
        self.learner_id = learner_id
        self.course_id = course_id
        super().__init__(f"Learner {learner_id} is not enrolled in course {course_id}.")


class ContentNotFoundError(LearnPathError):
    def __init__(self, kind: str, content_id):
        self.kind = kind
        self.content_id = content_id
        super().__init__(f"{kind.capitalize()} with ID {content_id} not found.")


class ProgressWriteError(LearnPathError):
    """A progress upsert could not be applied (store unavailable or constraint violation)."""


class QuizFetchError(LearnPathError):
    def __init__(self, section_id: int, reason: str):
        self.section_id = section_id
        self.reason = reason
        super().__init__(f"Could not fetch quiz for section {section_id}: {reason}")
