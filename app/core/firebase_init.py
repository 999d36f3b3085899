import firebase_admin
from firebase_admin import credentials
import logging
import os

from .config import settings

logger = logging.getLogger(__name__)


def is_firebase_available() -> bool:
    return bool(firebase_admin._apps)


def initialize_firebase() -> bool:
    """
    Initialize the Firebase Admin SDK once per process.

    Returns False when the service account file is missing or the SDK
    refuses the credentials; the API still starts, and Firestore calls
    fail with a PersistenceError until credentials are provided.
    """
    if is_firebase_available():
        return True

    service_account_path = settings.FIREBASE_SERVICE_ACCOUNT_PATH
    if not os.path.exists(service_account_path):
        logger.warning(f"Firebase service account file not found at {service_account_path}")
        return False

    try:
        firebase_admin.initialize_app(
            credentials.Certificate(service_account_path),
            {'projectId': settings.FIREBASE_PROJECT_ID},
        )
    except Exception as e:
        logger.error(f"Firebase initialization failed: {e}")
        return False

    logger.info(f"Firebase initialized for project {settings.FIREBASE_PROJECT_ID}")
    return True
