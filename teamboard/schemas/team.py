from datetime import datetime
from typing import Optional
from pydantic import EmailStr, Field

from teamboard.models.permission import RoleName
from teamboard.schemas.auth import UserBrief
from teamboard.schemas.base import APIModel


class TeamCreate(APIModel):
    name: str = Field(..., min_length=1, max_length=100)


class TeamResponse(APIModel):
    id: int
    name: str
    created_at: datetime


class AddMemberRequest(APIModel):
    """Schema for adding an existing user to a team by email"""
    email: EmailStr
    role: RoleName = RoleName.MEMBER


class ChangeRoleRequest(APIModel):
    role: RoleName


class MemberResponse(APIModel):
    user: UserBrief
    role: RoleName
    joined_at: datetime


class ActivityResponse(APIModel):
    id: int
    action: str
    timestamp: datetime
    ip_address: Optional[str] = None
    user_id: Optional[int] = None
