"""Composed read model for the course page plus the two navigation actions.

render_state       everything a page needs for one descriptor
on_chapter_next    best-effort chapter completion, then where to go
on_finish_course   course completion, then the terminal destination
"""

import asyncio
from dataclasses import replace
from typing import List, Optional, Tuple
import logging

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from learnpath.core.config import settings
from learnpath.core.exceptions import ContentNotFoundError, LearnPathError, NotEnrolledError, ProgressWriteError
from learnpath.crud import course_crud, enrollment_crud, user_progress_crud
from learnpath.schemas.course_schema import ChapterView, SectionView
from learnpath.schemas.navigation_schema import (
    NavigationDescriptorDisplay, NavStateDisplay, NavItemDisplay, NextActionDisplay,
    NavigationTargetDisplay, RenderStateDisplay
)
from learnpath.schemas.user_progress_schema import (
    CourseProgressDisplay, CourseProgressReport, SectionProgressDetail, MyCourseProgress, EnrollmentStatus
)
from learnpath.services.completion_recorder import CompletionRecorder, ensure_enrolled
from learnpath.services.content_tree import ContentTree, ProgressFacts, load_content_tree, load_progress_facts
from learnpath.services.navigation import NavigationResolver, NavItem, NextAction, NextActionKind
from learnpath.services.navigation_state import (
    NavigationDescriptor, NavigationTarget, NavState, derive_state, encode_state,
    reconcile_with_tree, state_for_item
)
from learnpath.services.progress_aggregator import CourseStatus, ProgressAggregator, persist_course_status

logger = logging.getLogger(__name__)

PROGRESS_NOT_SAVED_WARNING = "Your progress could not be saved right now. It will be updated on your next visit."
PROGRESS_NOT_LOADED_WARNING = "Your progress could not be loaded right now."


# --- Display conversion ---

def descriptor_display(descriptor: NavigationDescriptor) -> NavigationDescriptorDisplay:
    return NavigationDescriptorDisplay(
        section=descriptor.section,
        chapter=descriptor.chapter,
        quiz=1 if descriptor.quiz else None,
    )


def nav_state_display(state: NavState) -> NavStateDisplay:
    return NavStateDisplay(
        view=state.view,
        active_section_id=state.active_section_id,
        active_chapter_id=state.active_chapter_id,
        is_quiz=state.is_quiz,
        descriptor=descriptor_display(encode_state(state)),
    )


def nav_item_display(item: Optional[NavItem]) -> Optional[NavItemDisplay]:
    if item is None:
        return None
    return NavItemDisplay(
        kind=item.kind,
        section_id=item.section_id,
        chapter_id=item.chapter_id,
        quiz_id=item.quiz_id,
        title=item.title,
        section_title=item.section_title,
    )


def next_action_display(action: Optional[NextAction]) -> Optional[NextActionDisplay]:
    if action is None:
        return None
    descriptor = None
    if action.target is not None:
        descriptor = descriptor_display(encode_state(state_for_item(action.target)))
    return NextActionDisplay(
        action=action.action.value,
        label=action.label,
        enabled=action.enabled,
        target=nav_item_display(action.target),
        descriptor=descriptor,
    )


def navigation_target_display(target: NavigationTarget) -> NavigationTargetDisplay:
    return NavigationTargetDisplay(
        kind=target.kind,
        descriptor=descriptor_display(target.descriptor) if target.descriptor is not None else None,
        path=target.path,
        progress_saved=target.progress_saved,
        warning=target.warning,
    )


def section_views(tree: ContentTree, aggregator: ProgressAggregator) -> List[SectionView]:
    views = []
    for section in tree.sections:
        status = aggregator.section_status(section.id)
        views.append(SectionView(
            id=section.id,
            title=section.title,
            order_index=section.order_index,
            chapters=[
                ChapterView(
                    id=chapter.id,
                    section_id=section.id,
                    title=chapter.title,
                    content_type=chapter.content_kind,
                    order_index=chapter.order_index,
                    is_completed=aggregator.chapter_completed(chapter.id),
                )
                for chapter in section.chapters
            ],
            quiz_id=section.quiz_id,
            has_quiz=status.has_quiz,
            quiz_completed=status.quiz_completed,
            completed_chapters=status.completed_chapters,
            total_chapters=status.total_chapters,
            is_complete=status.is_complete,
        ))
    return views


# --- Reads ---

def _load_facts_soft(db: Session, learner_id: int, tree: ContentTree) -> Tuple[ProgressFacts, bool]:
    """Facts for the tree, or empty facts when the progress store cannot be read."""
    try:
        return load_progress_facts(db, learner_id, tree), True
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Could not load progress facts for learner {learner_id}, course {tree.course_id}: {e}", exc_info=True)
        return ProgressFacts(), False


def _load_stored_progress_soft(db: Session, learner_id: int, course_id: int):
    try:
        return user_progress_crud.get_course_progress(db, learner_id, course_id)
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Could not read stored progress for learner {learner_id}, course {course_id}: {e}")
        return None


def render_state(db: Session, learner_id: int, course_id: int, descriptor: NavigationDescriptor) -> RenderStateDisplay:
    """
    Builds the page read model for a descriptor. Unknown descriptor ids fall back to a
    default state. Progress writes made here (course aggregate, section access) are
    best-effort and never prevent the view from being returned.
    """
    tree = load_content_tree(db, course_id)
    ensure_enrolled(db, learner_id, course_id)

    facts, facts_loaded = _load_facts_soft(db, learner_id, tree)
    warning = None if facts_loaded else PROGRESS_NOT_LOADED_WARNING

    state = reconcile_with_tree(derive_state(descriptor), tree)
    if state.active_section_id is not None:
        try:
            user_progress_crud.touch_section_access(db, learner_id, state.active_section_id)
        except ProgressWriteError as e:
            logger.warning(f"Section access for learner {learner_id}, section {state.active_section_id} not saved: {e}")

    aggregator = ProgressAggregator(tree, facts)
    course_status = aggregator.course_status()
    if facts_loaded:
        stored = persist_course_status(db, learner_id, course_status, touch_access=True)
        if stored is None:
            warning = PROGRESS_NOT_SAVED_WARNING
    else:
        # Last known aggregate stands in for the unreadable facts
        stored = _load_stored_progress_soft(db, learner_id, course_id)
        if stored is not None:
            course_status = CourseStatus(
                course_id=course_id,
                completed_items=stored.completed_items,
                total_items=stored.total_items,
                percentage=stored.completion_percentage,
                status=stored.completion_status,
            )

    resolver = NavigationResolver(tree, aggregator, gate_quizzes=facts_loaded)
    index = resolver.locate(state.item_kind, state.active_section_id, state.active_chapter_id)

    course_progress = CourseProgressDisplay(
        course_id=course_id,
        completed_items=course_status.completed_items,
        total_items=course_status.total_items,
        percentage=course_status.percentage,
        # The stored status is monotonic; a manually finished course stays completed
        status=stored.completion_status if stored is not None else course_status.status,
        completed_at=stored.completed_at if stored is not None else None,
        last_accessed_at=stored.last_accessed_at if stored is not None else None,
    )
    logger.info(
        f"Rendered course {course_id} for learner {learner_id}: view={state.view.value}, "
        f"{course_status.percentage}% complete"
    )
    return RenderStateDisplay(
        course_id=course_id,
        nav_state=nav_state_display(state),
        sections=section_views(tree, aggregator),
        current_item=nav_item_display(resolver.item_at(index)),
        next_action=next_action_display(resolver.resolve_next(index, state.active_section_id)),
        course_progress=course_progress,
        has_content=resolver.has_content,
        warning=warning,
    )


def course_progress_report(db: Session, learner_id: int, course_id: int) -> CourseProgressReport:
    tree = load_content_tree(db, course_id)
    enrollment = enrollment_crud.get_enrollment(db, learner_id, course_id)
    if enrollment is None:
        raise NotEnrolledError(learner_id, course_id)

    aggregator = ProgressAggregator(tree, load_progress_facts(db, learner_id, tree))
    course_status = aggregator.course_status()
    stored = user_progress_crud.get_course_progress(db, learner_id, course_id)

    details = []
    for section in tree.sections:
        status = aggregator.section_status(section.id)
        details.append(SectionProgressDetail(
            section_id=section.id,
            section_title=section.title,
            order_index=section.order_index,
            completed_chapters=status.completed_chapters,
            total_chapters=status.total_chapters,
            has_quiz=status.has_quiz,
            quiz_completed=status.quiz_completed,
            completed_items=status.completed_items,
            total_items=status.total_items,
            completion_percentage=status.percentage,
            is_complete=status.is_complete,
        ))

    return CourseProgressReport(
        course_id=course_id,
        title=tree.title,
        completed_items=course_status.completed_items,
        total_items=course_status.total_items,
        percentage=course_status.percentage,
        status=stored.completion_status if stored else course_status.status,
        completed_at=stored.completed_at if stored else None,
        last_accessed_at=stored.last_accessed_at if stored else None,
        completed_sections=sum(1 for d in details if d.is_complete),
        total_sections=len(details),
        enrolled_at=enrollment.enrolled_at,
        sections=details,
    )


def my_courses(db: Session, learner_id: int) -> List[MyCourseProgress]:
    """Enrolled courses with their stored progress, most recently accessed first."""
    accessed, never_accessed = [], []
    for enrollment in enrollment_crud.get_enrollments_for_learner(db, learner_id):
        course = enrollment.course
        progress = user_progress_crud.get_course_progress(db, learner_id, enrollment.course_id)
        entry = MyCourseProgress(
            course_id=enrollment.course_id,
            title=course.title if course else "",
            percentage=progress.completion_percentage if progress else 0,
            status=progress.completion_status if progress else MyCourseProgress.model_fields["status"].default,
            completed_at=progress.completed_at if progress else None,
            last_accessed_at=progress.last_accessed_at if progress else None,
            enrolled_at=enrollment.enrolled_at,
        )
        (accessed if entry.last_accessed_at else never_accessed).append(entry)

    accessed.sort(key=lambda entry: entry.last_accessed_at, reverse=True)
    return accessed + never_accessed


def enrollment_status(db: Session, learner_id: int, course_id: int) -> EnrollmentStatus:
    if not course_crud.get_course(db, course_id):
        raise ContentNotFoundError("course", course_id)
    enrollment = enrollment_crud.get_enrollment(db, learner_id, course_id)
    return EnrollmentStatus(
        course_id=course_id,
        enrolled=enrollment is not None,
        enrolled_at=enrollment.enrolled_at if enrollment else None,
    )


# --- Navigation actions ---

def next_target_after_chapter(tree: ContentTree, facts: ProgressFacts, chapter_id: int) -> NavigationTarget:
    """Pure navigation from a chapter. Never depends on whether the chapter write succeeds."""
    chapter = tree.get_chapter(chapter_id)
    if chapter is None:
        raise ContentNotFoundError("chapter", chapter_id)
    current_state = derive_state(NavigationDescriptor(section=chapter.section_id, chapter=chapter.id))

    resolver = NavigationResolver(tree, ProgressAggregator(tree, facts.with_chapter(chapter_id)))
    index = resolver.locate(current_state.item_kind, chapter.section_id, chapter.id)
    action = resolver.resolve_next(index, chapter.section_id)

    if action is None:
        return NavigationTarget(kind="stay", descriptor=encode_state(current_state))
    if action.action == NextActionKind.FINISH_COURSE:
        # The caller asks for confirmation, then posts the finish action
        return NavigationTarget(kind="finish", descriptor=encode_state(current_state))
    return NavigationTarget(kind="item", descriptor=encode_state(state_for_item(action.target)))


async def on_chapter_next(
    db: Session,
    recorder: CompletionRecorder,
    learner_id: int,
    chapter_id: int,
    timeout: Optional[float] = None,
) -> NavigationTarget:
    """
    Records the chapter as completed (bounded, best-effort) and returns where to go next.
    The target is computed before the write, so a slow or failing write only adds a warning.
    """
    course_id = course_crud.get_course_id_for_chapter(db, chapter_id)
    if course_id is None:
        raise ContentNotFoundError("chapter", chapter_id)
    tree = load_content_tree(db, course_id)
    ensure_enrolled(db, learner_id, course_id)

    facts, _ = _load_facts_soft(db, learner_id, tree)
    target = next_target_after_chapter(tree, facts, chapter_id)

    timeout = settings.PROGRESS_WRITE_TIMEOUT_SECONDS if timeout is None else timeout
    try:
        outcome = await asyncio.wait_for(
            asyncio.to_thread(recorder.record_chapter_complete, learner_id, chapter_id),
            timeout=timeout,
        )
        saved = outcome.success
    except asyncio.TimeoutError:
        logger.warning(f"Completion write for chapter {chapter_id}, learner {learner_id} timed out after {timeout}s.")
        saved = False
    except (SQLAlchemyError, LearnPathError) as e:
        logger.error(f"Completion write for chapter {chapter_id}, learner {learner_id} failed: {e}", exc_info=True)
        saved = False

    if not saved:
        return replace(target, progress_saved=False, warning=PROGRESS_NOT_SAVED_WARNING)
    return target


def on_finish_course(recorder: CompletionRecorder, learner_id: int, course_id: int, confirmed: bool) -> NavigationTarget:
    """Terminal action. Nothing is written unless the learner confirmed."""
    if not confirmed:
        logger.info(f"Learner {learner_id} cancelled finishing course {course_id}.")
        return NavigationTarget(kind="stay")

    outcome = recorder.record_course_complete(learner_id, course_id)
    target = NavigationTarget(kind="exit", path=settings.COURSE_COMPLETE_PATH.format(course_id=course_id))
    if not outcome.success:
        return replace(target, progress_saved=False, warning=PROGRESS_NOT_SAVED_WARNING)
    return target
