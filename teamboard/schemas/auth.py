from pydantic import EmailStr, Field
from typing import Optional

from teamboard.schemas.base import APIModel


class UserCreate(APIModel):
    email: EmailStr
    name: Optional[str] = Field(None, max_length=100)
    password: str = Field(..., min_length=8)


class UserLogin(APIModel):
    email: EmailStr
    password: str


class TokenResponse(APIModel):
    access_token: str
    token_type: str = "bearer"


class UserResponse(APIModel):
    id: int
    email: EmailStr
    name: Optional[str] = None
    is_active: bool


class UserBrief(APIModel):
    """Assignee / member identity embedded in other responses"""
    id: int
    name: Optional[str] = None
    email: str
