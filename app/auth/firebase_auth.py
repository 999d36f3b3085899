from firebase_admin import auth
from typing import Optional
import logging

from ..core.firebase_init import initialize_firebase, is_firebase_available

logger = logging.getLogger(__name__)


class FirebaseAuth:
    def _ensure_initialized(self) -> bool:
        return is_firebase_available() or initialize_firebase()

    async def verify_token(self, token: str) -> Optional[dict]:
        """Decode a Firebase ID token; the landlord/tenant role travels as the ``role`` custom claim"""
        if not self._ensure_initialized():
            logger.error("Firebase initialization failed - Auth not available")
            return None
        try:
            return auth.verify_id_token(token)
        except Exception as e:
            logger.warning(f"Token verification failed: {e}")
            return None


firebase_auth = FirebaseAuth()
