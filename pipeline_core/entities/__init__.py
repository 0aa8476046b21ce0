"""
Pydantic models for pipeline graph entities and execution projections.
"""

from .pipelines import Pipeline, PipelineCreate, PipelineUpdate, Tag, TagCreate
from .nodes import (
    NodeType,
    Input,
    InputCreate,
    InputUpdate,
    Output,
    OutputCreate,
    OutputUpdate,
    Transformation,
    TransformationCreate,
    TransformationUpdate,
)
from .flows import Flow, FlowCreate, FlowUpdate
from .execution import (
    LifecycleState,
    NodeHealth,
    ValidationResult,
    ExecutionResponse,
    StatusResponse,
    MessageResponse,
)
from .graph import PipelineGraph

__all__ = [
    "Pipeline",
    "PipelineCreate",
    "PipelineUpdate",
    "Tag",
    "TagCreate",
    "NodeType",
    "Input",
    "InputCreate",
    "InputUpdate",
    "Output",
    "OutputCreate",
    "OutputUpdate",
    "Transformation",
    "TransformationCreate",
    "TransformationUpdate",
    "Flow",
    "FlowCreate",
    "FlowUpdate",
    "LifecycleState",
    "NodeHealth",
    "ValidationResult",
    "ExecutionResponse",
    "StatusResponse",
    "MessageResponse",
    "PipelineGraph",
]
