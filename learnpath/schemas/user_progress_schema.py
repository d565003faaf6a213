from pydantic import BaseModel, Field
from typing import List, Optional
from datetime import datetime

from learnpath.models.enums import CompletionStatus

class CourseProgressBase(BaseModel):
    completed_items: int = Field(0, description="Completed chapters plus attempted section quizzes")
    total_items: int = Field(0, description="All chapters plus one per quiz-bearing section")
    percentage: int = Field(0, ge=0, le=100, description="round(100 * completed_items / total_items)")
    status: CompletionStatus = CompletionStatus.NOT_STARTED

class CourseProgressDisplay(CourseProgressBase):
    course_id: int
    completed_at: Optional[datetime] = None
    last_accessed_at: Optional[datetime] = None

class SectionProgressDetail(BaseModel):
    section_id: int
    section_title: str
    order_index: int
    completed_chapters: int
    total_chapters: int
    has_quiz: bool
    quiz_completed: bool
    completed_items: int
    total_items: int
    completion_percentage: float = Field(..., description="Section items completed, as a percentage")
    is_complete: bool

class CourseProgressReport(CourseProgressDisplay):
    title: str
    completed_sections: int
    total_sections: int
    enrolled_at: Optional[datetime] = None
    sections: List[SectionProgressDetail] = []

class MyCourseProgress(BaseModel):
    course_id: int
    title: str
    percentage: int = 0
    status: CompletionStatus = CompletionStatus.NOT_STARTED
    completed_at: Optional[datetime] = None
    last_accessed_at: Optional[datetime] = None
    enrolled_at: Optional[datetime] = None

class EnrollmentStatus(BaseModel):
    course_id: int
    enrolled: bool
    enrolled_at: Optional[datetime] = None

# --- Write-path results ---

class ChapterCompletionResult(BaseModel):
    chapter_id: int
    success: bool
    already_completed: bool = False
    course_progress: Optional[CourseProgressBase] = None

class CourseCompletionResult(BaseModel):
    course_id: int
    success: bool
    status: CompletionStatus
    completed_at: Optional[datetime] = None

class QuizAttemptCreate(BaseModel):
    score_percentage: Optional[float] = Field(None, ge=0, le=100, description="Score from the scoring collaborator, stored as-is")

class QuizAttemptDisplay(BaseModel):
    id: int
    quiz_id: int
    learner_id: int
    attempt_number: int
    score_percentage: Optional[float] = None
    attempted_at: Optional[datetime] = None

    class Config:
        from_attributes = True
