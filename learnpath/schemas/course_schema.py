from pydantic import BaseModel, Field
from typing import List, Optional

from learnpath.models.enums import ContentKind

# --- Content tree read models, annotated with the learner's progress ---

class ChapterView(BaseModel):
    id: int
    section_id: int
    title: str
    content_type: ContentKind
    order_index: int
    is_completed: bool = Field(False, description="Learner has completed this chapter")

class SectionView(BaseModel):
    id: int
    title: str
    order_index: int
    chapters: List[ChapterView] = []
    quiz_id: Optional[int] = Field(None, description="ID of the section quiz, if the section has one")
    has_quiz: bool = False
    quiz_completed: bool = Field(False, description="Learner has at least one attempt on the section quiz")
    completed_chapters: int = 0
    total_chapters: int = 0
    is_complete: bool = False

class QuizPayload(BaseModel):
    """Quiz content as returned by the quiz collaborator. Only the section link is interpreted here."""
    section_id: int
    quiz_id: Optional[int] = None
    title: Optional[str] = None
    questions: List[dict] = []

    class Config:
        extra = "allow"
