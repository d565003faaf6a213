from sqlalchemy.orm import Session, selectinload
from typing import List, Optional
import logging

from learnpath.models.course_model import Course, Section, Chapter, Quiz

logger = logging.getLogger(__name__)

# Read-only content store. Ordering is always the effective order (order_index, id).

def get_course(db: Session, course_id: int) -> Optional[Course]:
    logger.debug(f"Fetching course with ID: {course_id}")
    return db.query(Course).filter(Course.id == course_id).first()

def get_sections(db: Session, course_id: int) -> List[Section]:
    """Sections of a course in effective order, with chapters and quiz eagerly loaded."""
    logger.debug(f"Fetching sections for course_id {course_id}")
    return (
        db.query(Section)
        .options(selectinload(Section.chapters), selectinload(Section.quiz))
        .filter(Section.course_id == course_id)
        .order_by(Section.order_index.asc(), Section.id.asc())
        .all()
    )

def get_quiz(db: Session, section_id: int) -> Optional[Quiz]:
    logger.debug(f"Fetching quiz for section_id {section_id}")
    return db.query(Quiz).filter(Quiz.section_id == section_id).first()

def get_section(db: Session, section_id: int) -> Optional[Section]:
    logger.debug(f"Fetching section with ID: {section_id}")
    return db.query(Section).filter(Section.id == section_id).first()

def get_chapter(db: Session, chapter_id: int) -> Optional[Chapter]:
    logger.debug(f"Fetching chapter with ID: {chapter_id}")
    return db.query(Chapter).filter(Chapter.id == chapter_id).first()

def get_course_id_for_chapter(db: Session, chapter_id: int) -> Optional[int]:
    """Resolves the owning course of a chapter through its section."""
    row = (
        db.query(Section.course_id)
        .join(Chapter, Chapter.section_id == Section.id)
        .filter(Chapter.id == chapter_id)
        .first()
    )
    return row[0] if row else None

def get_course_id_for_quiz(db: Session, quiz_id: int) -> Optional[int]:
    row = (
        db.query(Section.course_id)
        .join(Quiz, Quiz.section_id == Section.id)
        .filter(Quiz.id == quiz_id)
        .first()
    )
    return row[0] if row else None
