from pydantic import BaseModel, Field
from typing import List, Optional

from learnpath.models.enums import ItemKind, ViewKind
from learnpath.schemas.course_schema import SectionView
from learnpath.schemas.user_progress_schema import CourseProgressDisplay

class NavigationDescriptorDisplay(BaseModel):
    """Deep-link query parameters that fully determine the navigation state."""
    section: Optional[int] = None
    chapter: Optional[int] = None
    quiz: Optional[int] = Field(None, description="Literal 1 when the quiz view is active")

class NavStateDisplay(BaseModel):
    view: ViewKind
    active_section_id: Optional[int] = None
    active_chapter_id: Optional[int] = None
    is_quiz: bool = False
    descriptor: NavigationDescriptorDisplay

class NavItemDisplay(BaseModel):
    kind: ItemKind
    section_id: int
    chapter_id: Optional[int] = None
    quiz_id: Optional[int] = None
    title: str
    section_title: str

class NextActionDisplay(BaseModel):
    action: str = Field(..., description="'go_to' or 'finish_course'")
    label: str
    enabled: bool = True
    target: Optional[NavItemDisplay] = None
    descriptor: Optional[NavigationDescriptorDisplay] = None

class NavigationTargetDisplay(BaseModel):
    kind: str = Field(..., description="'item', 'finish' (confirm before finishing), 'stay' or 'exit'")
    descriptor: Optional[NavigationDescriptorDisplay] = None
    path: Optional[str] = None
    progress_saved: bool = True
    warning: Optional[str] = Field(None, description="Soft, non-blocking message for the learner")

class RenderStateDisplay(BaseModel):
    course_id: int
    nav_state: NavStateDisplay
    sections: List[SectionView] = []
    current_item: Optional[NavItemDisplay] = None
    next_action: Optional[NextActionDisplay] = None
    course_progress: CourseProgressDisplay
    has_content: bool = True
    warning: Optional[str] = None

class FinishCourseRequest(BaseModel):
    confirmed: bool = Field(..., description="Answer of the confirmation dialog shown before finishing")
