"""
Transformation processor: the task running one transformation while its
pipeline is active.
"""

import asyncio
import logging
from contextlib import suppress
from typing import Any, Awaitable, Callable, List, Optional, Tuple

from ..broker import BrokerError, Envelope, MessageBroker, Subscription
from ..entities import NodeHealth, Transformation
from ..functions import ScriptError, ScriptRuntime
from .base import ProcessorConfig, ProcessorProvider, Route

logger = logging.getLogger(__name__)

RETRYABLE_ERRORS = (ScriptError, BrokerError)


class TransformationProcessor(ProcessorProvider):
    """
    Subscribes to every upstream route, runs the transformation script on each
    message and publishes the results to every downstream route.

    Script and broker failures are retried on the same message with bounded
    exponential backoff. After ``max_attempts`` consecutive failures the
    processor is marked crashed and ``on_crash`` is called; siblings are not
    affected.
    """

    def __init__(
        self,
        pipeline_id: int,
        transformation: Transformation,
        broker: MessageBroker,
        sources: List[Route],
        targets: List[Route],
        config: ProcessorConfig,
        on_crash: Optional[Callable[["TransformationProcessor"], None]] = None,
    ):
        super().__init__(config)
        self.pipeline_id = pipeline_id
        self.transformation = transformation
        self.transformation_id = transformation.transformation_id
        self.broker = broker
        self.sources = list(dict.fromkeys(sources))
        self.targets = list(dict.fromkeys(targets))
        self.on_crash = on_crash
        self.runtime = ScriptRuntime(
            transformation.python_script,
            name=transformation.name,
            timeout=config.script_timeout,
        )
        self.inbox: asyncio.Queue = asyncio.Queue(maxsize=config.buffer_size)
        self._subscriptions: List[Subscription] = []
        self._ready = asyncio.Event()
        self._startup_error: Optional[BaseException] = None
        self._stop_event = asyncio.Event()
        self._label = f"pipeline {pipeline_id} transformation {self.transformation_id} ({transformation.name})"

    async def start(self) -> None:
        if self._task is not None:
            logger.warning(f"Processor for {self._label} is already started")
            return
        self._task = asyncio.create_task(self._run(), name=f"processor-{self.pipeline_id}-{self.transformation_id}")

    async def wait_ready(self) -> None:
        await self._ready.wait()
        if self._startup_error is not None:
            raise self._startup_error

    async def stop(self, grace: Optional[float] = None) -> bool:
        """
        Ask the processor to stop and wait for it.

        The in-flight message is allowed to finish within ``grace`` seconds;
        after that the task is cancelled and the stop counts as forced.
        """
        self._stop_event.set()
        if self._task is None:
            return False
        grace = self.config.stop_grace if grace is None else grace
        done, _ = await asyncio.wait({self._task}, timeout=grace)
        if self._task in done:
            return False
        logger.warning(f"Processor for {self._label} did not drain within {grace}s, cancelling")
        self._task.cancel()
        with suppress(asyncio.CancelledError):
            await self._task
        self.forced = True
        return True

    # ------------------------------------------------------------------

    async def _run(self) -> None:
        try:
            await self._subscribe()
        except Exception as e:
            self._startup_error = e
            self.health = NodeHealth.CRASHED
            self.error = str(e)
            logger.error(f"Processor for {self._label} failed to start: {e}")
            await self._unsubscribe()
            self._ready.set()
            return

        self.health = NodeHealth.RUNNING
        self._ready.set()
        logger.info(f"Processor for {self._label} ready on {len(self.sources)} upstream route(s)")
        try:
            await self._serve()
        finally:
            await self._unsubscribe()
            if self.health == NodeHealth.RUNNING:
                self.health = NodeHealth.IDLE
            logger.info(f"Processor for {self._label} stopped after {self.processed} message(s)")

    async def _subscribe(self) -> None:
        self.runtime.compile()
        for route in self.sources:
            subscription = await self.broker.subscribe(route.address, route.topic, self.inbox)
            self._subscriptions.append(subscription)

    async def _unsubscribe(self) -> None:
        while self._subscriptions:
            subscription = self._subscriptions.pop()
            try:
                await self.broker.unsubscribe(subscription)
            except Exception as e:
                logger.warning(f"Failed to unsubscribe {self._label} from {subscription.topic}: {e}")

    async def _serve(self) -> None:
        pending: Optional[Envelope] = None
        while not self._stop_event.is_set():
            if pending is None:
                received, pending = await self._until_stopped(self.inbox.get())
                if not received:
                    return
            try:
                if not await self._process(pending):
                    return
            except RETRYABLE_ERRORS as e:
                self.attempts += 1
                self.error = str(e)
                if self.attempts >= self.config.max_attempts:
                    self._crash(e)
                    return
                delay = self.config.backoff(self.attempts)
                logger.warning(
                    f"Processor for {self._label} failed (attempt {self.attempts}/"
                    f"{self.config.max_attempts}), retrying in {delay:.2f}s: {e}"
                )
                slept, _ = await self._until_stopped(asyncio.sleep(delay))
                if not slept:
                    return
                continue
            pending = None
            self.attempts = 0
            self.processed += 1

    async def _process(self, envelope: Envelope) -> bool:
        """Run the script on one message and publish every result. False means stop was requested."""
        results = await self.runtime.execute(envelope.payload)
        headers = {
            "pipeline_id": self.pipeline_id,
            "transformation_id": self.transformation_id,
            "source_topic": envelope.topic,
        }
        for result in results:
            for route in self.targets:
                published, _ = await self._until_stopped(
                    self.broker.publish(route.address, route.topic, result, headers)
                )
                if not published:
                    return False
        return True

    async def _until_stopped(self, awaitable: Awaitable[Any]) -> Tuple[bool, Any]:
        """
        Await ``awaitable`` unless stop is requested first.

        Returns (True, result) when it completed, (False, None) when stop won.
        """
        work = asyncio.ensure_future(awaitable)
        stopper = asyncio.ensure_future(self._stop_event.wait())
        try:
            await asyncio.wait({work, stopper}, return_when=asyncio.FIRST_COMPLETED)
        except asyncio.CancelledError:
            work.cancel()
            stopper.cancel()
            raise
        if work.done():
            stopper.cancel()
            return True, work.result()
        work.cancel()
        with suppress(asyncio.CancelledError):
            await work
        return False, None

    def _crash(self, error: BaseException) -> None:
        self.health = NodeHealth.CRASHED
        logger.error(
            f"Processor for {self._label} crashed after {self.attempts} attempt(s): {error}",
            exc_info=error,
        )
        if self.on_crash is not None:
            self.on_crash(self)
