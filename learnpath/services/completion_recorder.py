"""Write path for completion events.

Each call opens its own session from the factory, so a write can run in a worker thread
(or outlive a timed-out request) without sharing the request's session.
"""

from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional
import logging

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from learnpath.core.exceptions import ContentNotFoundError, NotEnrolledError, ProgressWriteError
from learnpath.crud import course_crud, enrollment_crud, user_progress_crud
from learnpath.models.enums import CompletionStatus
from learnpath.models.user_progress_model import QuizAttempt
from learnpath.services.content_tree import load_content_tree, load_progress_facts
from learnpath.services.progress_aggregator import (
    CourseStatus, ProgressAggregator, persist_course_status, refresh_course_progress
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ChapterCompletionOutcome:
    chapter_id: int
    success: bool
    already_completed: bool = False
    course_status: Optional[CourseStatus] = None


@dataclass(frozen=True)
class CourseCompletionOutcome:
    course_id: int
    success: bool
    status: CompletionStatus
    completed_at: Optional[datetime] = None


def ensure_enrolled(db: Session, learner_id: int, course_id: int) -> None:
    if not enrollment_crud.is_enrolled(db, learner_id, course_id):
        logger.warning(f"Learner {learner_id} is not enrolled in course {course_id}.")
        raise NotEnrolledError(learner_id, course_id)


class CompletionRecorder:
    def __init__(self, session_factory: Callable[[], Session]):
        self.session_factory = session_factory

    @contextmanager
    def _session(self):
        db = self.session_factory()
        try:
            yield db
        finally:
            db.close()

    def record_chapter_complete(self, learner_id: int, chapter_id: int) -> ChapterCompletionOutcome:
        """
        Marks a chapter completed and re-aggregates its course.
        Re-recording an already completed chapter is a successful no-op.
        A failed read or write is reported with success=False; it never raises. When only the
        re-aggregation fails after the fact was stored, course_status is None.
        """
        with self._session() as db:
            chapter = course_crud.get_chapter(db, chapter_id)
            if not chapter:
                raise ContentNotFoundError("chapter", chapter_id)
            section = chapter.section
            course_id = section.course_id
            ensure_enrolled(db, learner_id, course_id)

            try:
                already_completed = user_progress_crud.get_chapter_completion(
                    db, learner_id, chapter_id, chapter.content_type
                )
            except SQLAlchemyError as e:
                db.rollback()
                logger.warning(f"Completion of chapter {chapter_id} for learner {learner_id} could not be read: {e}")
                return ChapterCompletionOutcome(chapter_id=chapter_id, success=False)
            if not already_completed:
                try:
                    user_progress_crud.upsert_chapter_completion(
                        db,
                        learner_id=learner_id,
                        chapter_id=chapter_id,
                        section_id=section.id,
                        course_id=course_id,
                        kind=chapter.content_type,
                    )
                except ProgressWriteError as e:
                    logger.warning(f"Chapter {chapter_id} completion for learner {learner_id} not saved: {e}")
                    return ChapterCompletionOutcome(chapter_id=chapter_id, success=False)
            else:
                logger.info(f"Chapter {chapter_id} already completed by learner {learner_id}.")

            try:
                course_status = refresh_course_progress(db, learner_id, load_content_tree(db, course_id))
            except SQLAlchemyError as e:
                db.rollback()
                logger.warning(f"Course {course_id} not re-aggregated after chapter {chapter_id}: {e}")
                course_status = None
            return ChapterCompletionOutcome(
                chapter_id=chapter_id,
                success=True,
                already_completed=already_completed,
                course_status=course_status,
            )

    def record_quiz_attempt(self, learner_id: int, quiz_id: int, score_percentage: Optional[float] = None) -> QuizAttempt:
        """
        Appends a quiz attempt and re-aggregates the course.
        Raises ProgressWriteError if the attempt itself could not be stored.
        """
        with self._session() as db:
            course_id = course_crud.get_course_id_for_quiz(db, quiz_id)
            if course_id is None:
                raise ContentNotFoundError("quiz", quiz_id)
            ensure_enrolled(db, learner_id, course_id)

            attempt = user_progress_crud.record_quiz_attempt(db, learner_id, quiz_id, score_percentage)
            refresh_course_progress(db, learner_id, load_content_tree(db, course_id))
            # Loaded before detaching; the caller uses it after the session is closed
            db.refresh(attempt)
            db.expunge(attempt)
            return attempt

    def record_course_complete(self, learner_id: int, course_id: int) -> CourseCompletionOutcome:
        """
        Manual finish, reached only through the confirmed finish action.

        Every chapter not yet completed is marked completed, then the course row is pinned to
        'completed' even when quizzes remain unattempted (no attempts are invented). The
        percentage stays derived from the facts.
        """
        with self._session() as db:
            tree = load_content_tree(db, course_id)
            ensure_enrolled(db, learner_id, course_id)

            facts = load_progress_facts(db, learner_id, tree)
            success = True
            for chapter in tree.chapters:
                if chapter.id in facts.completed_chapter_ids:
                    continue
                try:
                    user_progress_crud.upsert_chapter_completion(
                        db,
                        learner_id=learner_id,
                        chapter_id=chapter.id,
                        section_id=chapter.section_id,
                        course_id=course_id,
                        kind=chapter.content_kind,
                    )
                    facts = facts.with_chapter(chapter.id)
                except ProgressWriteError as e:
                    success = False
                    logger.warning(f"Chapter {chapter.id} not marked during manual finish of course {course_id}: {e}")

            derived = ProgressAggregator(tree, facts).course_status()
            if derived.status != CompletionStatus.COMPLETED:
                logger.info(
                    f"Learner {learner_id} manually finished course {course_id} at {derived.percentage}% "
                    f"({derived.completed_items}/{derived.total_items} items)."
                )
            pinned = CourseStatus(
                course_id=course_id,
                completed_items=derived.completed_items,
                total_items=derived.total_items,
                percentage=derived.percentage,
                status=CompletionStatus.COMPLETED,
            )
            progress = persist_course_status(db, learner_id, pinned)
            if progress is None:
                return CourseCompletionOutcome(course_id=course_id, success=False, status=derived.status)

            logger.info(f"Course {course_id} completed by learner {learner_id} at {progress.completed_at}.")
            return CourseCompletionOutcome(
                course_id=course_id,
                success=success,
                status=CompletionStatus(progress.completion_status),
                completed_at=progress.completed_at,
            )
