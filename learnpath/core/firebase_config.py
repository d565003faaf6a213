import firebase_admin
from firebase_admin import credentials
import os
import logging

from learnpath.core.config import settings

logger = logging.getLogger(__name__)

_firebase_app_initialized = False

def initialize_firebase_app():
    """
    Initializes the Firebase Admin SDK used to verify learner ID tokens.
    The service account JSON path comes from GOOGLE_APPLICATION_CREDENTIALS.
    """
    global _firebase_app_initialized
    if _firebase_app_initialized:
        logger.info("Firebase app already initialized.")
        return firebase_admin.get_app()

    cred_path = settings.GOOGLE_APPLICATION_CREDENTIALS
    if not cred_path:
        logger.error("GOOGLE_APPLICATION_CREDENTIALS environment variable is not set.")
        raise ValueError("GOOGLE_APPLICATION_CREDENTIALS environment variable is not set.")

    if not os.path.exists(cred_path):
        logger.error(f"Firebase service account key file not found at path: {cred_path}")
        raise FileNotFoundError(f"Firebase service account key file not found at path: {cred_path}")

    cred = credentials.Certificate(cred_path)
    firebase_admin.initialize_app(cred)
    _firebase_app_initialized = True
    logger.info("Firebase Admin SDK initialized successfully.")
    return firebase_admin.get_app()

def get_firebase_app():
    """Returns the initialized Firebase app, initializing it on first use."""
    if not _firebase_app_initialized:
        return initialize_firebase_app()
    return firebase_admin.get_app()
