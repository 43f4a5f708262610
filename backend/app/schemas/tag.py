"""
DLE Backend - Tag Schemas
===========================
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class TagWrite(BaseModel):
    """Body of POST /api/tags and PUT /api/tags/{id}. Missing color → #3b82f6."""
    name: Optional[str] = Field(default=None, description="Unique tag name (required)")
    color: Optional[str] = Field(default=None, description="CSS color, e.g. #3b82f6")


class TagResponse(BaseModel):
    id: int
    name: str
    color: str
    created_at: datetime

    model_config = {"from_attributes": True}
