"""
Base processor interface and configuration.
"""

import asyncio
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, Optional

from ..entities import NodeHealth


@dataclass
class ProcessorConfig:
    """Runtime knobs shared by every processor of a pipeline."""
    max_attempts: int = 3
    backoff_base: float = 0.5
    backoff_max: float = 30.0
    startup_timeout: float = 10.0
    script_timeout: float = 5.0
    stop_grace: float = 10.0
    buffer_size: int = 1000
    internal_address: str = "internal://pipeline-core"

    def __post_init__(self):
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.buffer_size < 1:
            raise ValueError("buffer_size must be at least 1")

    @classmethod
    def from_settings(cls, settings) -> "ProcessorConfig":
        return cls(
            max_attempts=settings.PROCESSOR_MAX_ATTEMPTS,
            backoff_base=settings.PROCESSOR_BACKOFF_BASE,
            backoff_max=settings.PROCESSOR_BACKOFF_MAX,
            startup_timeout=settings.PROCESSOR_STARTUP_TIMEOUT,
            script_timeout=settings.SCRIPT_TIMEOUT_SECONDS,
            stop_grace=settings.STOP_GRACE_SECONDS,
            buffer_size=settings.TOPIC_BUFFER_SIZE,
            internal_address=settings.INTERNAL_BROKER_ADDRESS,
        )

    def backoff(self, attempt: int) -> float:
        """Delay before retry number ``attempt`` (1-based)."""
        return min(self.backoff_base * (2 ** (attempt - 1)), self.backoff_max)


@dataclass(frozen=True)
class Route:
    """A (broker address, topic) pair a processor reads from or writes to."""
    address: str
    topic: str


def internal_topic(pipeline_id: int, transformation_id: int) -> str:
    """Orchestrator-owned topic carrying one transformation's output."""
    return f"pipeline.{pipeline_id}.transformation.{transformation_id}"


class ProcessorProvider(ABC):
    """Base interface for a long-running node processor."""

    def __init__(self, config: ProcessorConfig):
        self.config = config
        self.health = NodeHealth.IDLE
        self.error: Optional[str] = None
        self.attempts = 0
        self.processed = 0
        self.forced = False
        self._task: Optional[asyncio.Task] = None

    @abstractmethod
    async def start(self) -> None:
        """Launch the processor task. Returns once the task is scheduled."""
        pass

    @abstractmethod
    async def wait_ready(self) -> None:
        """Wait until every subscription is in place; raise the startup failure if any."""
        pass

    @abstractmethod
    async def stop(self, grace: Optional[float] = None) -> bool:
        """Stop the processor. Returns True when termination had to be forced."""
        pass

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def get_status(self) -> Dict[str, Any]:
        status: Dict[str, Any] = {
            "status": self.health.value,
            "error": self.error,
            "attempts": self.attempts,
            "processed": self.processed,
        }
        if self.forced:
            status["forced_termination"] = True
        return status
