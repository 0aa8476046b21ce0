"""
Flow (directed edge) schemas.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from .base import PatchModel
from .nodes import NodeType


class FlowCreate(BaseModel):
    """Schema for connecting two nodes of a pipeline."""
    start_node_type: NodeType
    end_node_type: NodeType
    start_node: int = Field(..., description="Id of the source node within its type")
    end_node: int = Field(..., description="Id of the target node within its type")


class FlowUpdate(PatchModel):
    """Schema for re-pointing an existing flow."""
    start_node_type: Optional[NodeType] = None
    end_node_type: Optional[NodeType] = None
    start_node: Optional[int] = None
    end_node: Optional[int] = None


class Flow(BaseModel):
    """Directed edge between two nodes of the same pipeline."""
    flow_id: int = Field(..., description="Flow unique identifier")
    start_node_type: NodeType
    end_node_type: NodeType
    start_node: int
    end_node: int
    created_at: datetime
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True
