from sqlalchemy.orm import Session
import logging

from learnpath.models.user_model import User

logger = logging.getLogger(__name__)

def get_user_by_firebase_uid(db: Session, firebase_uid: str) -> User | None:
    """Fetches a learner by their Firebase UID."""
    logger.debug(f"Fetching user by Firebase UID: {firebase_uid}")
    return db.query(User).filter(User.firebase_uid == firebase_uid).first()
