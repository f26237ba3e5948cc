from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from teamboard.db.database import get_async_session
from teamboard.schemas.auth import UserCreate, UserLogin, UserResponse, TokenResponse
from teamboard.services.security_service import SecurityService
from teamboard.api.dependencies.auth import get_current_user
from teamboard.models.user import User
from teamboard.logs import debug_logger

# Create router
router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/register", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def register(
    user_data: UserCreate,
    db: AsyncSession = Depends(get_async_session)
):
    """
    Register a new user
    """
    # Check if email already exists
    existing_user = await SecurityService.get_user_by_email(db, user_data.email)
    if existing_user:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Email already registered"
        )

    user = User(
        email=user_data.email,
        name=user_data.name,
        hashed_password=SecurityService.create_password_hash(user_data.password)
    )

    db.add(user)
    await db.commit()
    await db.refresh(user)

    debug_logger.debug(f"Registered user {user.id}")
    return user


@router.post("/login", response_model=TokenResponse)
async def login(
    credentials: UserLogin,
    db: AsyncSession = Depends(get_async_session)
):
    """
    Login for access token
    """
    user = await SecurityService.authenticate_user(
        db, credentials.email, credentials.password
    )

    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect email or password",
            headers={"WWW-Authenticate": "Bearer"},
        )

    return SecurityService.create_token_for_user(user.id)


@router.get("/me", response_model=UserResponse)
async def get_current_user_info(
    current_user: User = Depends(get_current_user)
):
    """
    Get current user information
    """
    return current_user
