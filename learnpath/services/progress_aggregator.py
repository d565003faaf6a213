"""Progress aggregation.

Single source of truth for chapter, section and course completion. Everything is derived
from a ContentTree plus the learner's raw facts; the stored CourseProgress row is a cache
that gets overwritten with these values, never incremented.
"""

from dataclasses import dataclass
from typing import Dict, Optional
import logging

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from learnpath.core.exceptions import ContentNotFoundError, ProgressWriteError
from learnpath.crud import user_progress_crud
from learnpath.models.enums import CompletionStatus
from learnpath.services.content_tree import ContentTree, ProgressFacts, load_progress_facts

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SectionStatus:
    section_id: int
    completed_chapters: int
    total_chapters: int
    has_quiz: bool
    quiz_completed: bool
    is_complete: bool

    @property
    def completed_items(self) -> int:
        return self.completed_chapters + (1 if self.quiz_completed else 0)

    @property
    def total_items(self) -> int:
        return self.total_chapters + (1 if self.has_quiz else 0)

    @property
    def percentage(self) -> float:
        if self.total_items == 0:
            return 0.0
        return round(self.completed_items / self.total_items * 100, 1)


@dataclass(frozen=True)
class CourseStatus:
    course_id: int
    completed_items: int
    total_items: int
    percentage: int
    status: CompletionStatus


def completion_percentage(completed: int, total: int) -> int:
    """Integer percentage of completed items; 0 for a course without items."""
    if total <= 0:
        return 0
    # Half-up rounding in integer arithmetic (round() would round 2.5 down to 2)
    return (200 * completed + total) // (2 * total)


def status_for_percentage(percentage: int) -> CompletionStatus:
    if percentage >= 100:
        return CompletionStatus.COMPLETED
    if percentage > 0:
        return CompletionStatus.IN_PROGRESS
    return CompletionStatus.NOT_STARTED


class ProgressAggregator:
    """Computes completion for one learner over one ContentTree."""

    def __init__(self, tree: ContentTree, facts: ProgressFacts):
        self.tree = tree
        self.facts = facts
        self._section_cache: Dict[int, SectionStatus] = {}

    def chapter_completed(self, chapter_id: int) -> bool:
        return chapter_id in self.facts.completed_chapter_ids

    def quiz_completed(self, quiz_id: Optional[int]) -> bool:
        """Quiz completion is any recorded attempt, regardless of score."""
        return quiz_id is not None and quiz_id in self.facts.attempted_quiz_ids

    def section_status(self, section_id: int) -> SectionStatus:
        if section_id in self._section_cache:
            return self._section_cache[section_id]

        section = self.tree.get_section(section_id)
        if section is None:
            raise ContentNotFoundError("section", section_id)

        total_chapters = len(section.chapters)
        completed_chapters = sum(1 for c in section.chapters if self.chapter_completed(c.id))
        quiz_completed = self.quiz_completed(section.quiz_id)
        # A section without chapters is never complete, even with an attempted quiz
        is_complete = (
            total_chapters > 0
            and completed_chapters == total_chapters
            and (not section.has_quiz or quiz_completed)
        )
        status = SectionStatus(
            section_id=section.id,
            completed_chapters=completed_chapters,
            total_chapters=total_chapters,
            has_quiz=section.has_quiz,
            quiz_completed=quiz_completed,
            is_complete=is_complete,
        )
        self._section_cache[section_id] = status
        return status

    def course_status(self) -> CourseStatus:
        completed_items = 0
        total_items = 0
        for section in self.tree.sections:
            section_status = self.section_status(section.id)
            completed_items += section_status.completed_items
            total_items += section_status.total_items

        percentage = completion_percentage(completed_items, total_items)
        return CourseStatus(
            course_id=self.tree.course_id,
            completed_items=completed_items,
            total_items=total_items,
            percentage=percentage,
            status=status_for_percentage(percentage),
        )


def persist_course_status(db: Session, learner_id: int, course_status: CourseStatus, touch_access: bool = False):
    """
    Overwrites the CourseProgress cache with freshly computed values.
    Returns the stored row, or None when the write failed (logged, never raised).
    """
    try:
        return user_progress_crud.upsert_course_progress(
            db,
            learner_id=learner_id,
            course_id=course_status.course_id,
            completed_items=course_status.completed_items,
            total_items=course_status.total_items,
            percentage=course_status.percentage,
            status=course_status.status,
            touch_access=touch_access,
        )
    except ProgressWriteError as e:
        logger.warning(
            f"Course progress for learner {learner_id}, course {course_status.course_id} not saved; "
            f"it will be recomputed on the next interaction: {e}"
        )
        return None


def refresh_course_progress(
    db: Session, learner_id: int, tree: ContentTree, touch_access: bool = False
) -> Optional[CourseStatus]:
    """
    Re-reads the facts, recomputes the course aggregate and upserts it (best-effort).
    Returns None when the facts could not be read; the cached row is left untouched.
    """
    try:
        facts = load_progress_facts(db, learner_id, tree)
    except SQLAlchemyError as e:
        db.rollback()
        logger.warning(f"Progress facts for learner {learner_id}, course {tree.course_id} could not be read: {e}")
        return None
    aggregator = ProgressAggregator(tree, facts)
    course_status = aggregator.course_status()
    persist_course_status(db, learner_id, course_status, touch_access=touch_access)
    return course_status
