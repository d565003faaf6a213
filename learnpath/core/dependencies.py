from fastapi import Depends, HTTPException, status, Request
from fastapi.security.utils import get_authorization_scheme_param
from sqlalchemy.orm import Session, sessionmaker
import logging

from learnpath.core.database import get_db, get_session_factory
from learnpath.core.security import verify_firebase_id_token
from learnpath.crud.user_crud import get_user_by_firebase_uid
from learnpath.models.user_model import User
from learnpath.schemas.learner_schema import TokenData
from learnpath.services.completion_recorder import CompletionRecorder

logger = logging.getLogger(__name__)

# Dependency to get the current learner from a Firebase ID token
async def get_current_learner(
    request: Request, db: Session = Depends(get_db)
) -> User:
    """
    Dependency to get the current authenticated learner.
    Verifies the Firebase ID token from the Authorization header,
    then fetches the learner from the database.
    """
    authorization: str = request.headers.get("Authorization")
    scheme, param = get_authorization_scheme_param(authorization)

    if not authorization or scheme.lower() != "bearer":
        logger.warning("Missing or invalid Bearer token in Authorization header.")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated. Bearer token required.",
            headers={"WWW-Authenticate": "Bearer"},
        )

    try:
        token_data: TokenData = verify_firebase_id_token(param)
    except HTTPException as e:
        logger.warning(f"Token verification failed: {e.detail}")
        raise e

    learner = get_user_by_firebase_uid(db, firebase_uid=token_data.firebase_uid)
    if learner is None:
        logger.warning(f"Learner not found in DB for Firebase UID: {token_data.firebase_uid} from token.")
        # Valid token, but the account was never provisioned here
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Learner account not found or not fully registered in the system.",
        )

    logger.debug(f"Authenticated learner retrieved: {learner.email} (ID: {learner.id})")
    return learner


def get_completion_recorder(
    session_factory: sessionmaker = Depends(get_session_factory)
) -> CompletionRecorder:
    """The write path opens its own sessions so background writes never share the request session."""
    return CompletionRecorder(session_factory)
