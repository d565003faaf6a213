import enum

class ContentKind(str, enum.Enum):
    VIDEO = "video"
    TEXT = "text"
    OTHER = "other"

class CompletionStatus(str, enum.Enum):
    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"

class ItemKind(str, enum.Enum):
    CHAPTER = "chapter"
    QUIZ = "quiz"

class ViewKind(str, enum.Enum):
    WELCOME = "welcome"
    SECTION_OVERVIEW = "section_overview"
    CHAPTER = "chapter"
    QUIZ = "quiz"

# Enums are stored as VARCHAR via values_callable, so no native DB enum types are created.
