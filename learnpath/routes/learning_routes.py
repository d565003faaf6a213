from fastapi import APIRouter, Depends, Query, status
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session
from typing import List, Optional
import logging

from learnpath.core.database import get_db
from learnpath.core.dependencies import get_current_learner, get_completion_recorder
from learnpath.core.exceptions import ContentNotFoundError, QuizFetchError
from learnpath.models.user_model import User # For type hinting current_learner
from learnpath.schemas import (
    user_progress_schema as up_schemas,
    navigation_schema as nav_schemas,
    course_schema as course_schemas
)
from learnpath.crud import course_crud
from learnpath.services import course_view, quiz_client
from learnpath.services.completion_recorder import CompletionRecorder, ensure_enrolled
from learnpath.services.navigation_state import NavigationDescriptor

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/learn", tags=["Learning & Progress"])


# --- Course page ---

@router.get("/courses/{course_id}/view", response_model=nav_schemas.RenderStateDisplay)
def get_course_view(
    course_id: int,
    section: Optional[str] = Query(None, description="Section ID from the deep link"),
    chapter: Optional[str] = Query(None, description="Chapter ID from the deep link"),
    quiz: Optional[str] = Query(None, description="Literal 1 selects the section quiz"),
    db: Session = Depends(get_db),
    current_learner: User = Depends(get_current_learner)
):
    """
    Returns everything the course page needs for the given deep link: section views with
    progress, the current item, the next action and the course progress.
    Descriptor values that do not resolve fall back to a default state instead of failing.
    """
    logger.info(f"Learner {current_learner.id} viewing course {course_id} (section={section}, chapter={chapter}, quiz={quiz})")
    descriptor = NavigationDescriptor.from_query({"section": section, "chapter": chapter, "quiz": quiz})
    return course_view.render_state(db, current_learner.id, course_id, descriptor)


# --- Completion events ---

@router.post("/chapters/{chapter_id}/complete", response_model=up_schemas.ChapterCompletionResult)
def complete_chapter(
    chapter_id: int,
    recorder: CompletionRecorder = Depends(get_completion_recorder),
    current_learner: User = Depends(get_current_learner)
):
    """
    Marks a chapter as completed. Completing an already completed chapter is a no-op success.
    A failed progress write is reported with success=false rather than an error.
    """
    logger.info(f"Learner {current_learner.id} completing chapter {chapter_id}")
    outcome = recorder.record_chapter_complete(current_learner.id, chapter_id)
    course_progress = None
    if outcome.course_status is not None:
        course_progress = up_schemas.CourseProgressBase(
            completed_items=outcome.course_status.completed_items,
            total_items=outcome.course_status.total_items,
            percentage=outcome.course_status.percentage,
            status=outcome.course_status.status,
        )
    return up_schemas.ChapterCompletionResult(
        chapter_id=outcome.chapter_id,
        success=outcome.success,
        already_completed=outcome.already_completed,
        course_progress=course_progress,
    )


@router.post("/chapters/{chapter_id}/next", response_model=nav_schemas.NavigationTargetDisplay)
async def go_to_next_after_chapter(
    chapter_id: int,
    db: Session = Depends(get_db),
    recorder: CompletionRecorder = Depends(get_completion_recorder),
    current_learner: User = Depends(get_current_learner)
):
    """
    Records the chapter as completed (best-effort, time-bounded) and returns where to go next.
    Navigation always proceeds; a failed write only adds a warning.
    """
    logger.info(f"Learner {current_learner.id} going next from chapter {chapter_id}")
    target = await course_view.on_chapter_next(db, recorder, current_learner.id, chapter_id)
    return course_view.navigation_target_display(target)


@router.post("/courses/{course_id}/finish", response_model=nav_schemas.NavigationTargetDisplay)
def finish_course(
    course_id: int,
    request_in: nav_schemas.FinishCourseRequest,
    recorder: CompletionRecorder = Depends(get_completion_recorder),
    current_learner: User = Depends(get_current_learner)
):
    """
    Finishes the course after the learner confirmed. Without confirmation the learner stays.
    """
    logger.info(f"Learner {current_learner.id} finishing course {course_id} (confirmed={request_in.confirmed})")
    target = course_view.on_finish_course(recorder, current_learner.id, course_id, request_in.confirmed)
    return course_view.navigation_target_display(target)


@router.post("/quizzes/{quiz_id}/attempts", response_model=up_schemas.QuizAttemptDisplay, status_code=status.HTTP_201_CREATED)
def record_quiz_attempt(
    quiz_id: int,
    attempt_in: up_schemas.QuizAttemptCreate,
    recorder: CompletionRecorder = Depends(get_completion_recorder),
    current_learner: User = Depends(get_current_learner)
):
    """
    Records an attempt on a section quiz. Any attempt completes the quiz for navigation,
    whatever its score.
    """
    logger.info(f"Learner {current_learner.id} recording attempt on quiz {quiz_id}")
    return recorder.record_quiz_attempt(current_learner.id, quiz_id, attempt_in.score_percentage)


# --- Quiz content ---

@router.get("/sections/{section_id}/quiz", response_model=course_schemas.QuizPayload)
async def get_section_quiz(
    section_id: int,
    db: Session = Depends(get_db),
    current_learner: User = Depends(get_current_learner)
):
    """
    Quiz content for a section, fetched from the quiz service.
    A failed fetch is an error state of the quiz view only.
    """
    section = course_crud.get_section(db, section_id)
    if not section or not course_crud.get_quiz(db, section_id):
        raise ContentNotFoundError("quiz for section", section_id)
    ensure_enrolled(db, current_learner.id, section.course_id)

    try:
        return await quiz_client.fetch_quiz(section_id)
    except QuizFetchError as e:
        logger.warning(f"Quiz fetch for section {section_id} failed: {e.reason}")
        return JSONResponse(
            status_code=status.HTTP_502_BAD_GATEWAY,
            content={"error": True, "section_id": section_id, "detail": e.reason},
        )


# --- Progress overview ---

@router.get("/courses/{course_id}/progress", response_model=up_schemas.CourseProgressReport)
def get_course_progress_report(
    course_id: int,
    db: Session = Depends(get_db),
    current_learner: User = Depends(get_current_learner)
):
    """
    Per-section progress breakdown for a course, recomputed from the completion facts.
    """
    logger.info(f"Learner {current_learner.id} fetching progress report for course {course_id}")
    return course_view.course_progress_report(db, current_learner.id, course_id)


@router.get("/courses/{course_id}/enrollment", response_model=up_schemas.EnrollmentStatus)
def get_enrollment_status(
    course_id: int,
    db: Session = Depends(get_db),
    current_learner: User = Depends(get_current_learner)
):
    return course_view.enrollment_status(db, current_learner.id, course_id)


@router.get("/my-courses", response_model=List[up_schemas.MyCourseProgress])
def get_my_courses(
    db: Session = Depends(get_db),
    current_learner: User = Depends(get_current_learner)
):
    """
    Courses the learner is enrolled in, with their stored progress, most recently accessed first.
    """
    logger.info(f"Fetching 'my-courses' for learner {current_learner.email} (ID: {current_learner.id})")
    return course_view.my_courses(db, current_learner.id)
