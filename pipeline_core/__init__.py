"""
Pipeline core: graph store, validator and execution orchestrator for
data-flow pipelines.
"""

__version__ = "0.1.0"

from .config import Settings, settings, setup_logging
from .services import (
    GraphStore,
    GraphValidator,
    LifecycleStateMachine,
    PipelineOrchestrator,
    ServiceError,
)

__all__ = [
    "__version__",
    "Settings",
    "settings",
    "setup_logging",
    "GraphStore",
    "GraphValidator",
    "LifecycleStateMachine",
    "PipelineOrchestrator",
    "ServiceError",
]
