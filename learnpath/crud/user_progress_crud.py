from sqlalchemy.orm import Session
from sqlalchemy import func, case
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import SQLAlchemyError, IntegrityError
from typing import Iterable, Optional, Set
import logging
from datetime import datetime, timezone

from learnpath.core.exceptions import ProgressWriteError
from learnpath.models.enums import ContentKind, CompletionStatus
from learnpath.models.user_progress_model import (
    VideoProgress, TextProgress, SectionAccess, QuizAttempt, CourseProgress
)

logger = logging.getLogger(__name__)

# Progress store. Every write is a single upsert keyed by the natural (learner, item) key,
# so concurrent writers converge without application-level locking.

MAX_ATTEMPT_NUMBER_RETRIES = 3

def _utcnow() -> datetime:
    return datetime.now(timezone.utc)

def _insert(db: Session, model):
    """Dialect-specific INSERT supporting ON CONFLICT DO UPDATE."""
    dialect = db.get_bind().dialect.name
    if dialect == "postgresql":
        return pg_insert(model)
    if dialect == "sqlite":
        return sqlite_insert(model)
    raise ProgressWriteError(f"Upserts are not supported on the '{dialect}' dialect.")

def _execute_write(db: Session, stmt, description: str):
    try:
        result = db.execute(stmt)
        db.commit()
        return result
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Progress write failed ({description}): {e}", exc_info=True)
        raise ProgressWriteError(f"Could not save {description}.") from e

def progress_model_for(kind: ContentKind):
    """Video chapters are tracked in video_progress; text and other chapters in text_progress."""
    return VideoProgress if ContentKind(kind) == ContentKind.VIDEO else TextProgress

# --- Chapter progress ---

def get_chapter_completion(db: Session, learner_id: int, chapter_id: int, kind: ContentKind) -> bool:
    model = progress_model_for(kind)
    logger.debug(f"Fetching {model.__tablename__} for learner_id {learner_id}, chapter_id {chapter_id}")
    completed = db.query(model.completed).filter(
        model.learner_id == learner_id,
        model.chapter_id == chapter_id
    ).scalar()
    return bool(completed)

def get_completed_chapter_ids(db: Session, learner_id: int, course_id: int, kind: ContentKind) -> Set[int]:
    """Chapter IDs marked completed in the progress table of the given content kind."""
    model = progress_model_for(kind)
    rows = db.query(model.chapter_id).filter(
        model.learner_id == learner_id,
        model.course_id == course_id,
        model.completed.is_(True)
    ).all()
    return {row[0] for row in rows}

def upsert_chapter_completion(
    db: Session,
    learner_id: int,
    chapter_id: int,
    section_id: int,
    course_id: int,
    kind: ContentKind,
) -> None:
    """
    Marks a chapter completed for a learner. Idempotent: re-applying keeps completed=true
    and the first completed_at. There is no path that writes completed=false.
    """
    model = progress_model_for(kind)
    table = model.__table__
    now = _utcnow()
    stmt = _insert(db, model).values(
        learner_id=learner_id,
        chapter_id=chapter_id,
        section_id=section_id,
        course_id=course_id,
        completed=True,
        completed_at=now,
        updated_at=now,
    )
    stmt = stmt.on_conflict_do_update(
        index_elements=["learner_id", "chapter_id"],
        set_={
            "completed": True,
            "completed_at": func.coalesce(table.c.completed_at, stmt.excluded.completed_at),
            "updated_at": now,
        },
    )
    _execute_write(db, stmt, f"{table.name} for learner {learner_id}, chapter {chapter_id}")
    logger.info(f"Chapter {chapter_id} marked completed for learner {learner_id} ({table.name}).")

# --- Quiz attempts ---

def get_quiz_attempt_count(db: Session, learner_id: int, quiz_id: int) -> int:
    logger.debug(f"Counting quiz attempts for learner_id {learner_id}, quiz_id {quiz_id}")
    return db.query(func.count(QuizAttempt.id)).filter(
        QuizAttempt.learner_id == learner_id,
        QuizAttempt.quiz_id == quiz_id
    ).scalar() or 0

def get_attempted_quiz_ids(db: Session, learner_id: int, quiz_ids: Iterable[int]) -> Set[int]:
    quiz_ids = list(quiz_ids)
    if not quiz_ids:
        return set()
    rows = db.query(QuizAttempt.quiz_id).filter(
        QuizAttempt.learner_id == learner_id,
        QuizAttempt.quiz_id.in_(quiz_ids)
    ).distinct().all()
    return {row[0] for row in rows}

def record_quiz_attempt(db: Session, learner_id: int, quiz_id: int, score_percentage: Optional[float] = None) -> QuizAttempt:
    """
    Appends the learner's next attempt. Two concurrent submissions may race for the same
    attempt number; the loser retries with a fresh number so both attempts are kept.
    """
    for _ in range(MAX_ATTEMPT_NUMBER_RETRIES):
        next_number = (db.query(func.max(QuizAttempt.attempt_number)).filter(
            QuizAttempt.learner_id == learner_id,
            QuizAttempt.quiz_id == quiz_id
        ).scalar() or 0) + 1
        attempt = QuizAttempt(
            learner_id=learner_id,
            quiz_id=quiz_id,
            attempt_number=next_number,
            score_percentage=score_percentage,
            attempted_at=_utcnow(),
        )
        try:
            db.add(attempt)
            db.commit()
            db.refresh(attempt)
            logger.info(f"Quiz attempt #{next_number} recorded for learner {learner_id}, quiz {quiz_id}.")
            return attempt
        except IntegrityError:
            db.rollback()
            logger.warning(f"Attempt number {next_number} for learner {learner_id}, quiz {quiz_id} already taken. Retrying.")
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"Error recording quiz attempt for learner {learner_id}, quiz {quiz_id}: {e}", exc_info=True)
            raise ProgressWriteError(f"Could not record quiz attempt for quiz {quiz_id}.") from e
    raise ProgressWriteError(f"Could not allocate an attempt number for quiz {quiz_id}.")

# --- Section access ---

def touch_section_access(db: Session, learner_id: int, section_id: int) -> None:
    now = _utcnow()
    stmt = _insert(db, SectionAccess).values(
        learner_id=learner_id,
        section_id=section_id,
        last_accessed_at=now,
    )
    stmt = stmt.on_conflict_do_update(
        index_elements=["learner_id", "section_id"],
        set_={"last_accessed_at": now},
    )
    _execute_write(db, stmt, f"section access for learner {learner_id}, section {section_id}")

def get_section_access(db: Session, learner_id: int, section_id: int) -> Optional[SectionAccess]:
    return db.query(SectionAccess).filter(
        SectionAccess.learner_id == learner_id,
        SectionAccess.section_id == section_id
    ).first()

# --- Course progress ---

def upsert_course_progress(
    db: Session,
    learner_id: int,
    course_id: int,
    completed_items: int,
    total_items: int,
    percentage: int,
    status: CompletionStatus,
    touch_access: bool = False,
) -> CourseProgress:
    """
    Overwrites the cached aggregate with freshly computed values.

    - completion_status never leaves 'completed' once stored.
    - completed_at is written only while it is NULL and the row is (or becomes) completed.
    - last_accessed_at is refreshed only for page accesses (touch_access=True).
    """
    table = CourseProgress.__table__
    now = _utcnow()
    status = CompletionStatus(status)
    stmt = _insert(db, CourseProgress).values(
        learner_id=learner_id,
        course_id=course_id,
        completed_items=completed_items,
        total_items=total_items,
        completion_percentage=percentage,
        completion_status=status,
        completed_at=now if status == CompletionStatus.COMPLETED else None,
        last_accessed_at=now if touch_access else None,
        updated_at=now,
    )
    already_completed = table.c.completion_status == CompletionStatus.COMPLETED
    becomes_completed = already_completed | (stmt.excluded.completion_status == CompletionStatus.COMPLETED)
    stmt = stmt.on_conflict_do_update(
        index_elements=["learner_id", "course_id"],
        set_={
            "completed_items": stmt.excluded.completed_items,
            "total_items": stmt.excluded.total_items,
            "completion_percentage": stmt.excluded.completion_percentage,
            "completion_status": case(
                (already_completed, table.c.completion_status),
                else_=stmt.excluded.completion_status,
            ),
            "completed_at": case(
                (table.c.completed_at.is_(None) & becomes_completed, now),
                else_=table.c.completed_at,
            ),
            "last_accessed_at": func.coalesce(stmt.excluded.last_accessed_at, table.c.last_accessed_at),
            "updated_at": now,
        },
    )
    _execute_write(db, stmt, f"course progress for learner {learner_id}, course {course_id}")
    logger.debug(f"Course progress upserted for learner {learner_id}, course {course_id}: {percentage}% ({status.value})")
    return get_course_progress(db, learner_id, course_id)

def get_course_progress(db: Session, learner_id: int, course_id: int) -> Optional[CourseProgress]:
    logger.debug(f"Fetching course progress for learner_id {learner_id}, course_id {course_id}")
    return db.query(CourseProgress).filter(
        CourseProgress.learner_id == learner_id,
        CourseProgress.course_id == course_id
    ).first()
