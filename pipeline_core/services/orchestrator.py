"""
Execution orchestrator.

Compiles a validated pipeline graph into one processor per connected
transformation, drives the pipeline through its lifecycle and reports
aggregate status.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from ..broker import MessageBroker
from ..entities import (
    ExecutionResponse,
    LifecycleState,
    NodeHealth,
    NodeType,
    PipelineGraph,
    StatusResponse,
    Transformation,
    ValidationResult,
)
from ..utils import format_uptime
from ..worker import ProcessorConfig, Route, TransformationProcessor, internal_topic
from .base_service import (
    ConflictError,
    ExecutionError,
    OperationTimeoutError,
    ServiceError,
    ValidationFailedError,
)
from .graph_store import GraphStore
from .graph_validator import GraphValidator, topological_order
from .lifecycle import LifecycleStateMachine

logger = logging.getLogger(__name__)


@dataclass
class ProcessorPlan:
    """Wiring of one transformation processor."""
    transformation: Transformation
    sources: List[Route] = field(default_factory=list)
    targets: List[Route] = field(default_factory=list)


def build_plan(graph: PipelineGraph, config: ProcessorConfig) -> List[ProcessorPlan]:
    """
    Derive processor wiring from the graph.

    Disconnected transformations and direct input-to-output flows get no
    processor. Plans come out in topological order.
    """
    nodes = graph.nodes()
    ids = [t.transformation_id for t in graph.transformations]
    order = topological_order(graph.flows, ids) or ids

    def own_topic(tid: int) -> Route:
        return Route(config.internal_address, internal_topic(graph.pipeline_id, tid))

    plans = []
    for tid in order:
        transformation = nodes.get((NodeType.TRANSFORMATION, tid))
        if transformation is None:
            continue
        plan = ProcessorPlan(transformation=transformation)
        for flow in graph.flows:
            if flow.end_node_type == NodeType.TRANSFORMATION and flow.end_node == tid:
                source = nodes.get((flow.start_node_type, flow.start_node))
                if flow.start_node_type == NodeType.INPUT and source is not None:
                    plan.sources.append(Route(source.broker_address, source.topic))
                elif flow.start_node_type == NodeType.TRANSFORMATION:
                    plan.sources.append(own_topic(flow.start_node))
            if flow.start_node_type == NodeType.TRANSFORMATION and flow.start_node == tid:
                target = nodes.get((flow.end_node_type, flow.end_node))
                if flow.end_node_type == NodeType.OUTPUT and target is not None:
                    plan.targets.append(Route(target.broker_address, target.topic))
                elif flow.end_node_type == NodeType.TRANSFORMATION:
                    plan.targets.append(own_topic(tid))
        if plan.sources or plan.targets:
            plans.append(plan)
    return plans


class PipelineOrchestrator:
    """
    Owns the lifecycle of every pipeline and the processors of running ones.

    Control actions (validate, start, stop) on one pipeline are exclusive;
    different pipelines are driven independently.
    """

    def __init__(
        self,
        store: GraphStore,
        broker: MessageBroker,
        config: Optional[ProcessorConfig] = None,
        validator: Optional[GraphValidator] = None,
        lifecycle: Optional[LifecycleStateMachine] = None,
    ):
        self.store = store
        self.broker = broker
        self.config = config or ProcessorConfig()
        self.validator = validator or GraphValidator()
        self.lifecycle = lifecycle or LifecycleStateMachine()
        self.logger = logging.getLogger(self.__class__.__name__)
        self._processors: Dict[int, Dict[int, TransformationProcessor]] = {}
        self._stop_reports: Dict[int, Dict[str, Any]] = {}
        self.store.set_lifecycle_guard(self.lifecycle.is_active)

    # ------------------------------------------------------------------
    # Actions
    # ------------------------------------------------------------------

    async def validate(self, pipeline_id: int) -> ValidationResult:
        """Validate the current graph. The lifecycle state is left as it was."""
        await self.store.get_pipeline(pipeline_id)
        async with self.lifecycle.exclusive(pipeline_id, "validate"):
            self.lifecycle.transition(pipeline_id, LifecycleState.VALIDATING)
            try:
                graph = await self.store.load_graph(pipeline_id)
                return self.validator.validate(graph)
            finally:
                self.lifecycle.restore(pipeline_id)

    async def start(self, pipeline_id: int) -> ExecutionResponse:
        """
        Validate and launch a pipeline.

        Raises:
            ConflictError: If the pipeline is busy or not idle/errored
            ValidationFailedError: If the graph is invalid; state is unchanged
            ExecutionError: If a processor fails to start; state becomes errored
        """
        await self.store.get_pipeline(pipeline_id)
        async with self.lifecycle.exclusive(pipeline_id, "start") as run:
            if run.state not in (LifecycleState.IDLE, LifecycleState.ERRORED):
                raise ConflictError(
                    f"Pipeline {pipeline_id} is already {run.state.value}",
                    {"pipeline_id": pipeline_id, "status": run.state.value},
                )
            if run.state == LifecycleState.ERRORED:
                await self._shutdown_processors(pipeline_id)
                self._processors.pop(pipeline_id, None)
            self._stop_reports.pop(pipeline_id, None)

            self.lifecycle.transition(pipeline_id, LifecycleState.VALIDATING)
            try:
                graph = await self.store.load_graph(pipeline_id)
                result = self.validator.validate(graph)
            except ServiceError:
                self.lifecycle.restore(pipeline_id)
                raise
            except Exception as e:
                self.logger.error(f"Validation of pipeline {pipeline_id} failed unexpectedly: {e}", exc_info=True)
                self.lifecycle.transition(pipeline_id, LifecycleState.ERRORED, str(e))
                raise ExecutionError(f"Validation of pipeline {pipeline_id} failed: {e}") from e

            if not result.valid:
                self.lifecycle.restore(pipeline_id)
                raise ValidationFailedError(f"Pipeline {pipeline_id} failed validation", result)

            self.lifecycle.transition(pipeline_id, LifecycleState.STARTING)
            try:
                count = await self._launch(graph)
            except ExecutionError as e:
                self.lifecycle.transition(pipeline_id, LifecycleState.ERRORED, e.message)
                raise
            except Exception as e:
                self.logger.error(f"Starting pipeline {pipeline_id} failed: {e}", exc_info=True)
                await self._shutdown_processors(pipeline_id)
                self.lifecycle.transition(pipeline_id, LifecycleState.ERRORED, str(e))
                raise ExecutionError(f"Pipeline {pipeline_id} failed to start: {e}") from e

            self.lifecycle.transition(pipeline_id, LifecycleState.RUNNING)
            for processor in self._processors.get(pipeline_id, {}).values():
                if processor.health == NodeHealth.CRASHED:
                    self._on_crash(processor)

        return ExecutionResponse(
            message=f"Pipeline started with {count} processor(s)",
            pipeline_id=pipeline_id,
            status=self.lifecycle.state(pipeline_id).value,
        )

    async def stop(self, pipeline_id: int) -> ExecutionResponse:
        """
        Stop every processor of a running or errored pipeline.

        Always ends in idle; processors that did not drain in time are
        cancelled and reported in the status details.
        """
        await self.store.get_pipeline(pipeline_id)
        async with self.lifecycle.exclusive(pipeline_id, "stop") as run:
            if run.state not in (LifecycleState.RUNNING, LifecycleState.ERRORED):
                raise ConflictError(
                    f"Pipeline {pipeline_id} is not running (status: {run.state.value})",
                    {"pipeline_id": pipeline_id, "status": run.state.value},
                )
            self.lifecycle.transition(pipeline_id, LifecycleState.STOPPING)
            try:
                forced = await self._shutdown_processors(pipeline_id)
            finally:
                self._processors.pop(pipeline_id, None)
                self.lifecycle.transition(pipeline_id, LifecycleState.IDLE)

        message = "Pipeline stopped"
        if forced:
            timeout = OperationTimeoutError(
                f"{len(forced)} processor(s) did not drain within {self.config.stop_grace}s and were terminated",
                {"forced_terminations": forced},
            )
            self._stop_reports[pipeline_id] = timeout.to_dict()
            message = f"{message}; {timeout.message}"
        return ExecutionResponse(message=message, pipeline_id=pipeline_id, status=LifecycleState.IDLE.value)

    async def status(self, pipeline_id: int) -> StatusResponse:
        await self.store.get_pipeline(pipeline_id)
        run = self.lifecycle.run(pipeline_id)
        details: Dict[str, Any] = {}
        processors = self._processors.get(pipeline_id)
        if processors:
            details["transformations"] = {
                str(tid): {"name": processor.transformation.name, **processor.get_status()}
                for tid, processor in processors.items()
            }
        if run.error:
            details["error"] = run.error
        if pipeline_id in self._stop_reports:
            details["last_stop"] = self._stop_reports[pipeline_id]
        return StatusResponse(
            pipeline_id=pipeline_id,
            status=run.state.value,
            uptime=format_uptime(run.uptime_seconds),
            details=details or None,
        )

    async def shutdown(self) -> None:
        """Stop every pipeline that still has processors."""
        for pipeline_id in list(self._processors):
            try:
                await self.stop(pipeline_id)
            except ServiceError as e:
                self.logger.warning(f"Could not stop pipeline {pipeline_id} during shutdown: {e.message}")

    def forget(self, pipeline_id: int) -> None:
        """Drop lifecycle bookkeeping of a deleted pipeline."""
        self._processors.pop(pipeline_id, None)
        self._stop_reports.pop(pipeline_id, None)
        self.lifecycle.forget(pipeline_id)

    def processors(self, pipeline_id: int) -> Dict[int, TransformationProcessor]:
        return dict(self._processors.get(pipeline_id, {}))

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _launch(self, graph: PipelineGraph) -> int:
        """Spawn processors and wait until every one of them is subscribed."""
        pipeline_id = graph.pipeline_id
        processors: Dict[int, TransformationProcessor] = {}
        self._processors[pipeline_id] = processors

        for plan in build_plan(graph, self.config):
            processor = TransformationProcessor(
                pipeline_id,
                plan.transformation,
                self.broker,
                plan.sources,
                plan.targets,
                self.config,
                on_crash=self._on_crash,
            )
            processors[processor.transformation_id] = processor
            await processor.start()

        if not processors:
            self.logger.info(f"Pipeline {pipeline_id} has no connected transformations")
            return 0

        waits = {tid: asyncio.ensure_future(p.wait_ready()) for tid, p in processors.items()}
        done, _ = await asyncio.wait(set(waits.values()), timeout=self.config.startup_timeout)

        failures = []
        for tid, waiter in waits.items():
            if waiter not in done:
                waiter.cancel()
                processors[tid].health = NodeHealth.CRASHED
                processors[tid].error = f"not ready within {self.config.startup_timeout}s"
            elif waiter.exception() is None:
                continue
            failures.append({
                "transformation_id": tid,
                "name": processors[tid].transformation.name,
                "error": processors[tid].error or str(waiter.exception()),
            })

        if failures:
            await self._shutdown_processors(pipeline_id)
            first = failures[0]
            raise ExecutionError(
                f"Transformation {first['transformation_id']} ({first['name']}) failed to start: {first['error']}",
                {"pipeline_id": pipeline_id, "failed_nodes": failures},
            )

        self.logger.info(f"Pipeline {pipeline_id} launched {len(processors)} processor(s)")
        return len(processors)

    async def _shutdown_processors(self, pipeline_id: int) -> List[int]:
        """Stop all processors of a pipeline concurrently. Returns the ids that were forced."""
        processors = self._processors.get(pipeline_id, {})
        if not processors:
            return []
        ids = list(processors)
        results = await asyncio.gather(*(processors[tid].stop(self.config.stop_grace) for tid in ids))
        forced = [tid for tid, was_forced in zip(ids, results) if was_forced]
        if forced:
            self.logger.warning(f"Pipeline {pipeline_id}: forced termination of transformations {forced}")
        return forced

    def _on_crash(self, processor: TransformationProcessor) -> None:
        reason = (
            f"Transformation {processor.transformation_id} ({processor.transformation.name}) "
            f"crashed: {processor.error}"
        )
        if self.lifecycle.mark_errored(processor.pipeline_id, reason):
            self.logger.error(f"Pipeline {processor.pipeline_id} errored: {reason}")
