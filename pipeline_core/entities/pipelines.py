"""
Pipeline and tag schemas.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from .base import PatchModel


class PipelineCreate(BaseModel):
    """Schema for creating a new pipeline."""
    name: str = Field(..., min_length=1, description="Pipeline display name")
    description: Optional[str] = Field(None, description="Pipeline description")


class PipelineUpdate(PatchModel):
    """Schema for updating an existing pipeline."""
    name: Optional[str] = Field(None, min_length=1)
    description: Optional[str] = None


class Pipeline(BaseModel):
    """Pipeline entity model."""
    pipeline_id: int = Field(..., description="Pipeline unique identifier")
    name: str = Field(..., description="Pipeline display name")
    description: Optional[str] = Field(None, description="Pipeline description")
    created_at: datetime = Field(..., description="Creation timestamp")
    updated_at: Optional[datetime] = Field(None, description="Last update timestamp")

    class Config:
        from_attributes = True


class TagCreate(BaseModel):
    """Schema for attaching a tag to a pipeline."""
    name: str = Field(..., min_length=1, description="Tag label")


class Tag(BaseModel):
    """Free-form label shared between pipelines."""
    tag_id: int = Field(..., description="Tag unique identifier")
    name: str = Field(..., description="Tag label")
    created_at: datetime = Field(..., description="Creation timestamp")
    updated_at: Optional[datetime] = Field(None, description="Last update timestamp")

    class Config:
        from_attributes = True
