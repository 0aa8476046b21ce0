"""
Pipeline core services.
"""

from .base_service import (
    BaseService,
    ConflictError,
    ExecutionError,
    InvalidInputError,
    NotFoundError,
    OperationTimeoutError,
    ServiceError,
    ValidationFailedError,
)
from .graph_store import GraphStore
from .graph_validator import GraphValidator
from .lifecycle import LifecycleStateMachine
from .orchestrator import PipelineOrchestrator
from .pipeline_io import export_pipeline, import_pipeline

__all__ = [
    "BaseService",
    "ConflictError",
    "ExecutionError",
    "InvalidInputError",
    "NotFoundError",
    "OperationTimeoutError",
    "ServiceError",
    "ValidationFailedError",
    "GraphStore",
    "GraphValidator",
    "LifecycleStateMachine",
    "PipelineOrchestrator",
    "export_pipeline",
    "import_pipeline",
]
