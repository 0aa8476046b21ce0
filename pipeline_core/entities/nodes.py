"""
Node schemas: inputs (sources), outputs (sinks) and transformations.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field

from .base import PatchModel


class NodeType(str, Enum):
    """Role of a node in the pipeline graph."""
    INPUT = "input"
    OUTPUT = "output"
    TRANSFORMATION = "transformation"


class InputCreate(BaseModel):
    """Schema for creating an input node."""
    name: str = Field(..., min_length=1)
    description: str
    topic: str = Field(..., min_length=1)
    schemas: Optional[Dict[str, Any]] = None
    broker_address: str = Field(..., min_length=1)


class InputUpdate(PatchModel):
    """Schema for updating an input node."""
    name: Optional[str] = Field(None, min_length=1)
    description: Optional[str] = None
    topic: Optional[str] = Field(None, min_length=1)
    schemas: Optional[Dict[str, Any]] = None
    broker_address: Optional[str] = Field(None, min_length=1)


class Input(BaseModel):
    """Source node reading an external topic."""
    input_id: int = Field(..., description="Input unique identifier")
    name: str
    description: str
    topic: str
    schemas: Optional[Dict[str, Any]] = Field(None, description="Message shape on the topic")
    broker_address: str
    created_at: datetime
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class OutputCreate(BaseModel):
    """Schema for creating an output node."""
    name: str = Field(..., min_length=1)
    description: Optional[str] = None
    topic: str = Field(..., min_length=1)
    schemas: Optional[Dict[str, Any]] = None
    broker_address: str = Field(..., min_length=1)


class OutputUpdate(InputUpdate):
    """Schema for updating an output node."""


class Output(BaseModel):
    """Sink node writing to a topic the orchestrator does not own."""
    output_id: int = Field(..., description="Output unique identifier")
    name: str
    description: Optional[str] = None
    topic: str
    schemas: Optional[Dict[str, Any]] = Field(None, description="Expected message shape")
    broker_address: str
    created_at: datetime
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class TransformationCreate(BaseModel):
    """Schema for creating a transformation node."""
    name: str = Field(..., min_length=1)
    description: Optional[str] = None
    schema_in: Optional[Dict[str, Any]] = None
    schema_out: Optional[Dict[str, Any]] = None
    python_script: str = Field(..., min_length=1)


class TransformationUpdate(PatchModel):
    """Schema for updating a transformation node."""
    name: Optional[str] = Field(None, min_length=1)
    description: Optional[str] = None
    schema_in: Optional[Dict[str, Any]] = None
    schema_out: Optional[Dict[str, Any]] = None
    python_script: Optional[str] = Field(None, min_length=1)


class Transformation(BaseModel):
    """Processing node running a user script on every message."""
    transformation_id: int = Field(..., description="Transformation unique identifier")
    name: str
    description: Optional[str] = None
    schema_in: Optional[Dict[str, Any]] = Field(None, description="Expected input shape")
    schema_out: Optional[Dict[str, Any]] = Field(None, description="Produced output shape")
    python_script: str
    created_at: datetime
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True
