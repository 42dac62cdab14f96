# Background score updates: delay, score, fetch ETag, conditional PATCH
import asyncio
import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Optional, Set

from opentelemetry import trace

from crm_score_service.app.observability import (
    score_update_latency_histogram,
    score_updates_counter,
    tracer,
)
from crm_score_service.app.service.exceptions import CrmApiError
from crm_score_service.app.service.interfaces.record_client import AbstractRecordClient
from crm_score_service.app.service.payload import CrmEvent
from crm_score_service.app.service.scoring import calculate_score

logger = logging.getLogger(__name__)

SleepFunc = Callable[[float], Awaitable[Any]]


class UpdateState(str, Enum):
    RECEIVED = "Received"
    SCHEDULED = "Scheduled"
    DELAYED = "Delayed"
    SCORING = "Scoring"
    TOKEN_FETCH = "TokenFetch"
    UPDATING = "Updating"
    SUCCEEDED = "Succeeded"
    FAILED = "Failed"


@dataclass
class UpdateOutcome:
    record_id: str
    classification: Optional[Any]
    state: UpdateState = UpdateState.RECEIVED
    score: Optional[int] = None
    failed_at: Optional[UpdateState] = None
    error: Optional[str] = None

    def advance(self, state: UpdateState) -> None:
        logger.debug(f"Score update for account {self.record_id}: {self.state.value} -> {state.value}")
        self.state = state


class ScoreUpdateOrchestrator:
    """
    Runs one detached unit of work per accepted webhook event.

    Units share no state and are not queued behind each other. A failed unit
    is logged and dropped: there is no retry and no durable record, so
    pending units are lost if the process stops.
    """

    def __init__(
        self,
        record_client: AbstractRecordClient,
        delay_seconds: float,
        score_field: str = "CustomScore",
        sleep: SleepFunc = asyncio.sleep,
    ):
        self.record_client = record_client
        self.delay_seconds = delay_seconds
        self.score_field = score_field
        self._sleep = sleep
        # Strong references so pending tasks are not garbage collected mid-flight.
        self._tasks: Set[asyncio.Task] = set()

    @property
    def in_flight(self) -> int:
        return len(self._tasks)

    def schedule(self, event: CrmEvent) -> asyncio.Task:
        """Spawns the background unit for `event` and returns immediately."""
        scheduled_at = time.monotonic()
        task = asyncio.create_task(self.run(event, scheduled_at=scheduled_at), name=f"score-update-{event.record_id}")
        self._tasks.add(task)
        task.add_done_callback(self._on_task_done)
        logger.info(f"Starting async processing for account {event.record_id}...")
        return task

    def _on_task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            logger.warning(f"Background task {task.get_name()} was cancelled before completing.")
            return
        exc = task.exception()
        if exc is not None:
            # run() handles its own failures; this only fires on a bug in it.
            logger.error(f"Background task {task.get_name()} crashed: {exc}", exc_info=exc)

    async def run(self, event: CrmEvent, scheduled_at: Optional[float] = None) -> UpdateOutcome:
        """Executes one unit; latency is measured from `scheduled_at` when given."""
        outcome = UpdateOutcome(record_id=event.record_id, classification=event.classification)
        outcome.advance(UpdateState.SCHEDULED)
        started = scheduled_at if scheduled_at is not None else time.monotonic()

        with tracer.start_as_current_span("crm_score.async_update") as span:
            span.set_attribute("crm.account.id", event.record_id)
            span.set_attribute("crm.envelope", event.envelope.value)
            try:
                outcome.advance(UpdateState.DELAYED)
                logger.info(f"Simulating {self.delay_seconds}-second processing delay for account {event.record_id}...")
                await self._sleep(self.delay_seconds)

                outcome.advance(UpdateState.SCORING)
                outcome.score = calculate_score(event.classification)
                span.set_attribute("crm.score", outcome.score)
                logger.info(f"Async calculated score: {outcome.score} (ABC: {event.classification})")

                outcome.advance(UpdateState.TOKEN_FETCH)
                logger.info(f"Fetching current account data for {event.record_id}...")
                _, etag = await self.record_client.fetch_for_token(event.record_id)
                logger.info(f"Received ETag: {etag}")

                outcome.advance(UpdateState.UPDATING)
                logger.info(f"Updating account {event.record_id} with score {outcome.score}...")
                await self.record_client.conditional_update(
                    event.record_id, etag, {self.score_field: outcome.score}
                )
            except Exception as e:
                outcome.failed_at = outcome.state
                outcome.error = e.detail if isinstance(e, CrmApiError) else f"{type(e).__name__}: {e}"
                outcome.advance(UpdateState.FAILED)
                span.set_status(trace.Status(trace.StatusCode.ERROR, outcome.error))
                logger.error(
                    f"Async webhook processing failed. Account ID: {event.record_id}, "
                    f"ABC Classification: {event.classification}, "
                    f"Step: {outcome.failed_at.value}, Error: {outcome.error}"
                )
            else:
                outcome.advance(UpdateState.SUCCEEDED)
                logger.info(f"Successfully updated account {event.record_id} with {self.score_field}: {outcome.score}")

        score_updates_counter.add(1, {"state": outcome.state.value})
        score_update_latency_histogram.record(time.monotonic() - started, {"state": outcome.state.value})
        return outcome

    async def wait_for_pending(self, timeout: Optional[float] = None) -> int:
        """
        Waits up to `timeout` seconds for in-flight units to finish.
        Returns the number still pending afterwards; they are not cancelled.
        """
        if not self._tasks:
            return 0
        _, pending = await asyncio.wait(set(self._tasks), timeout=timeout)
        return len(pending)
