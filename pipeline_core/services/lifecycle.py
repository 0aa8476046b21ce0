"""
Pipeline lifecycle state machine.

States: idle -> validating -> starting -> running -> stopping -> idle, with
errored reachable from validating, starting and running, and left only
through an explicit stop (or a new start). Control actions on one pipeline
are serialized: a second start/stop/validate while one is in flight is
rejected with ConflictError instead of queued.
"""

import logging
import time
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Dict, Optional

from ..entities import LifecycleState
from .base_service import ConflictError

logger = logging.getLogger(__name__)

TRANSITIONS = {
    LifecycleState.IDLE: {LifecycleState.VALIDATING},
    LifecycleState.VALIDATING: {
        LifecycleState.IDLE,
        LifecycleState.STARTING,
        LifecycleState.RUNNING,
        LifecycleState.ERRORED,
    },
    LifecycleState.STARTING: {LifecycleState.RUNNING, LifecycleState.ERRORED},
    LifecycleState.RUNNING: {LifecycleState.VALIDATING, LifecycleState.STOPPING, LifecycleState.ERRORED},
    LifecycleState.STOPPING: {LifecycleState.IDLE},
    LifecycleState.ERRORED: {LifecycleState.VALIDATING, LifecycleState.STOPPING},
}


@dataclass
class PipelineRun:
    """Lifecycle bookkeeping for one pipeline."""
    state: LifecycleState = LifecycleState.IDLE
    resume_state: Optional[LifecycleState] = None
    action: Optional[str] = None
    started_at: Optional[float] = None
    error: Optional[str] = None

    @property
    def effective_state(self) -> LifecycleState:
        """The state a pending validation will return to, otherwise the current state."""
        if self.state == LifecycleState.VALIDATING and self.resume_state is not None:
            return self.resume_state
        return self.state

    @property
    def uptime_seconds(self) -> float:
        if self.started_at is None:
            return 0.0
        return time.monotonic() - self.started_at


class LifecycleStateMachine:
    """Holds the lifecycle state of every pipeline known to the orchestrator."""

    def __init__(self):
        self._runs: Dict[int, PipelineRun] = {}
        self.logger = logging.getLogger(self.__class__.__name__)

    def run(self, pipeline_id: int) -> PipelineRun:
        return self._runs.setdefault(pipeline_id, PipelineRun())

    def state(self, pipeline_id: int) -> LifecycleState:
        return self.run(pipeline_id).state

    def is_active(self, pipeline_id: int) -> bool:
        """True unless the pipeline is (or is about to return to) idle."""
        run = self._runs.get(pipeline_id)
        if run is None:
            return False
        return run.effective_state != LifecycleState.IDLE

    def is_busy(self, pipeline_id: int) -> bool:
        run = self._runs.get(pipeline_id)
        return run is not None and run.action is not None

    def transition(self, pipeline_id: int, target: LifecycleState, error: Optional[str] = None) -> None:
        """
        Move a pipeline to ``target``.

        Raises:
            ConflictError: If the transition is not allowed from the current state
        """
        run = self.run(pipeline_id)
        current = run.state
        if target not in TRANSITIONS[current]:
            raise ConflictError(
                f"Pipeline {pipeline_id} cannot go from {current.value} to {target.value}",
                {"pipeline_id": pipeline_id, "status": current.value},
            )
        if target == LifecycleState.VALIDATING:
            run.resume_state = current
        elif current == LifecycleState.VALIDATING:
            run.resume_state = None

        if target == LifecycleState.RUNNING and current == LifecycleState.STARTING:
            run.started_at = time.monotonic()
            run.error = None
        elif target == LifecycleState.IDLE:
            run.started_at = None
            run.error = None
        if target == LifecycleState.ERRORED:
            run.error = error
        run.state = target
        self.logger.info(f"Pipeline {pipeline_id}: {current.value} -> {target.value}")

    def restore(self, pipeline_id: int) -> Optional[LifecycleState]:
        """
        Leave validating for the state it was entered from.

        Does nothing when the pipeline is no longer validating, e.g. because
        it was deleted while the validation was in flight.
        """
        run = self._runs.get(pipeline_id)
        if run is None or run.state != LifecycleState.VALIDATING:
            return None
        target = run.resume_state or LifecycleState.IDLE
        self.transition(pipeline_id, target, run.error)
        return target

    def mark_errored(self, pipeline_id: int, error: str) -> bool:
        """
        Record a runtime failure.

        A running pipeline moves to errored. One that is being validated out
        of running (or errored) will land in errored when validation ends.
        """
        run = self.run(pipeline_id)
        if run.state == LifecycleState.RUNNING:
            self.transition(pipeline_id, LifecycleState.ERRORED, error)
            return True
        if run.state == LifecycleState.VALIDATING and run.resume_state == LifecycleState.RUNNING:
            run.resume_state = LifecycleState.ERRORED
            run.error = error
            return True
        if run.effective_state == LifecycleState.ERRORED:
            run.error = error
        return False

    @asynccontextmanager
    async def exclusive(self, pipeline_id: int, action: str):
        """
        Claim the right to drive ``pipeline_id`` through ``action``.

        The check and the claim happen without yielding to the event loop, so
        two concurrent callers can never both get in.
        """
        run = self.run(pipeline_id)
        if run.action is not None:
            raise ConflictError(
                f"Pipeline {pipeline_id} is busy with '{run.action}'",
                {"pipeline_id": pipeline_id, "action": run.action, "status": run.state.value},
            )
        run.action = action
        try:
            yield run
        finally:
            run.action = None

    def forget(self, pipeline_id: int) -> None:
        self._runs.pop(pipeline_id, None)
