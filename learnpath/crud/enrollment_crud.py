from sqlalchemy.orm import Session
from typing import List, Optional
import logging

from learnpath.models.enrollment_model import Enrollment

logger = logging.getLogger(__name__)

def get_enrollment(db: Session, learner_id: int, course_id: int) -> Optional[Enrollment]:
    logger.debug(f"Fetching enrollment for learner_id {learner_id}, course_id {course_id}")
    return db.query(Enrollment).filter(
        Enrollment.learner_id == learner_id,
        Enrollment.course_id == course_id
    ).first()

def is_enrolled(db: Session, learner_id: int, course_id: int) -> bool:
    return get_enrollment(db, learner_id, course_id) is not None

def get_enrollments_for_learner(db: Session, learner_id: int) -> List[Enrollment]:
    logger.debug(f"Fetching enrollments for learner_id {learner_id}")
    return db.query(Enrollment).filter(
        Enrollment.learner_id == learner_id
    ).order_by(Enrollment.enrolled_at.desc(), Enrollment.id.desc()).all()
