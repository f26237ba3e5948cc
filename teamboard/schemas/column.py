from datetime import datetime
from typing import List, Optional
from pydantic import Field

from teamboard.schemas.base import APIModel


class ColumnCreate(APIModel):
    """Schema for column creation"""
    name: str = Field(..., min_length=1, max_length=100)
    team_id: int


class ColumnUpdate(APIModel):
    """Schema for column update"""
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    order: Optional[int] = None


class ColumnResponse(APIModel):
    """Schema for column response"""
    id: int
    team_id: int
    name: str
    order: int
    created_at: datetime
    updated_at: datetime


class ColumnOrder(APIModel):
    id: int
    order: int


class ColumnReorder(APIModel):
    """Schema for bulk column reordering"""
    team_id: int
    columns: List[ColumnOrder] = Field(..., min_length=1)


class BoardNormalize(APIModel):
    team_id: int
