"""
Validation and execution projections returned by the lifecycle actions.
"""

from enum import Enum
from typing import Any, List, Optional

from pydantic import BaseModel, Field


class LifecycleState(str, Enum):
    """Pipeline-level run status."""
    IDLE = "idle"
    VALIDATING = "validating"
    STARTING = "starting"
    RUNNING = "running"
    STOPPING = "stopping"
    ERRORED = "errored"


class NodeHealth(str, Enum):
    """Per-processor health reported in status details."""
    IDLE = "idle"
    RUNNING = "running"
    CRASHED = "crashed"


class ValidationResult(BaseModel):
    """Outcome of validating a pipeline graph. Errors block execution, warnings do not."""
    valid: bool
    errors: List[str] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)
    pipeline_name: Optional[str] = None


class ExecutionResponse(BaseModel):
    """Answer to the validate/start/stop actions."""
    message: str
    pipeline_id: int
    status: Optional[str] = None


class StatusResponse(BaseModel):
    """Live view of a pipeline's lifecycle state and processors."""
    pipeline_id: int
    status: str
    uptime: str
    details: Optional[Any] = None


class MessageResponse(BaseModel):
    """Plain acknowledgement, returned by deletes."""
    message: str
