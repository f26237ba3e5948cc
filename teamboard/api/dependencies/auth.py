from fastapi import Depends, HTTPException, Request, status
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.ext.asyncio import AsyncSession

from teamboard.core.context import RequestContext
from teamboard.db.database import get_async_session
from teamboard.models.user import User
from teamboard.services.security_service import SecurityService

# OAuth2 configuration
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/login")


# Dependency to get current user
async def get_current_user(
    token: str = Depends(oauth2_scheme),
    db: AsyncSession = Depends(get_async_session)
) -> User:
    """
    Get the current authenticated user from the JWT token

    Returns:
        User: The authenticated user

    Raises:
        HTTPException: If the token is invalid or user not found
    """
    user = await SecurityService.get_current_user(db, token)
    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return user


async def get_request_context(
    request: Request,
    current_user: User = Depends(get_current_user),
) -> RequestContext:
    """Caller identity handed to the services explicitly"""
    return RequestContext(
        user_id=current_user.id,
        ip_address=request.client.host if request.client else None,
    )
