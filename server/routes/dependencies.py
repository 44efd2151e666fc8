"""
Shared dependency functions for FastAPI routers.
Eliminates code duplication across multiple router files.
"""
from typing import Optional
from fastapi import Depends, HTTPException
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from config.config import SECRET_KEY, TOKEN_EXPIRE_MINUTES
from database.DB import get_db
from helpers.TokenStrategy import TokenStrategy
from models.models import User

security = HTTPBearer(auto_error=False)

token_strategy = TokenStrategy(SECRET_KEY, TOKEN_EXPIRE_MINUTES)


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db = Depends(get_db)
) -> User:
    """
    Dependency to get the currently authenticated user from the bearer token.
    Raises HTTPException if the token is missing, invalid or names an unknown user.
    """
    if credentials is None:
        raise HTTPException(status_code=401, detail="Please authenticate.")

    user_id = token_strategy.verify_access_token(credentials.credentials)
    if not user_id:
        raise HTTPException(status_code=401, detail="Please authenticate.")

    user = await db.find_user(user_id)
    if not user:
        raise HTTPException(status_code=401, detail="Please authenticate.")
    return user


async def require_admin(user: User = Depends(get_current_user)) -> User:
    """
    Dependency to require admin role.
    Raises HTTPException if user is not an admin.
    """
    if user.role != "admin":
        raise HTTPException(status_code=403, detail="Admin access required")
    return user
