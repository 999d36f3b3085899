from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from .firebase_auth import firebase_auth
from ..models.user import UserRole
import logging

security = HTTPBearer()
logger = logging.getLogger(__name__)

async def get_current_user(credentials: HTTPAuthorizationCredentials = Depends(security)):
    """
    Verify the Firebase ID token and return its claims.

    The acting user is ``uid``; ``role`` is either landlord or tenant.
    Raises 401 if the token is missing or invalid.
    """
    try:
        user_data = await firebase_auth.verify_token(credentials.credentials)

        if not user_data or not user_data.get('uid'):
            logger.warning("[Auth] Token verification failed - invalid token")
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Invalid authentication credentials",
                headers={"WWW-Authenticate": "Bearer"},
            )

        logger.info(f"[Auth] Authenticated user: {user_data.get('uid')} with role: {user_data.get('role')}")
        return user_data
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"[Auth] Authentication error: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"Authentication failed: {str(e)}",
            headers={"WWW-Authenticate": "Bearer"},
        )

def require_role(role: UserRole):
    label = role.value.capitalize()

    async def role_checker(current_user: dict = Depends(get_current_user)):
        user_role = current_user.get("role")

        if user_role != role.value:
            logger.warning(f"[Auth] {label} access denied: user role '{user_role}' is not {role.value}")
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"{label} access required. Current role: {user_role}"
            )
        return current_user
    return role_checker

# Role-specific dependencies
require_landlord = require_role(UserRole.LANDLORD)
require_tenant = require_role(UserRole.TENANT)
