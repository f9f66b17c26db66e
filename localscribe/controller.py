"""
localscribe.controller - Task state machine for background transcription.

One task at a time moves through

    idle → initializing → downloading → inferring → complete
                                                   → error
                                                   → cancelled

Worker messages are queued into an inbox and applied on the caller's thread,
one at a time, in arrival order. Messages tagged with another task's id are
ignored, so nothing a cancelled job posts late can leak into the next task.
"""

from __future__ import annotations

import queue
import time
import uuid
from collections.abc import Callable
from enum import Enum

from localscribe.diarize import DEFAULT_PAUSE_THRESHOLD, annotate
from localscribe.engine.cache import EngineCache
from localscribe.exceptions import (
    CancellationError,
    InputError,
    TaskStateError,
    TaskTimeoutError,
    TranscriptionError,
)
from localscribe.logging import get_logger
from localscribe.models import ProgressSnapshot, TranscriptionRequest, TranscriptionResult
from localscribe.progress import ProgressAggregator
from localscribe.registry import ModelRegistry
from localscribe.worker import (
    DOWNLOAD_STATUSES,
    ExecutionContext,
    MessageSink,
    MessageStatus,
    ThreadExecutionContext,
    WorkerMessage,
    run_transcription,
)

logger = get_logger("controller")

CANCELLED_MESSAGE = "Processing cancelled by user."
POLL_INTERVAL = 0.1


class TaskState(str, Enum):
    IDLE = "idle"
    INITIALIZING = "initializing"
    DOWNLOADING = "downloading"
    INFERRING = "inferring"
    COMPLETE = "complete"
    ERROR = "error"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATES


TERMINAL_STATES = frozenset({TaskState.COMPLETE, TaskState.ERROR, TaskState.CANCELLED})


class TaskController:
    """Owns the single in-flight transcription task.

    Args:
        engine_cache: Shared engine cache; survives across tasks
        aggregator: Download progress aggregator, reset on every start
        registry: Optional downloaded-model hint store
        pause_threshold: Silence (seconds) that flips the diarization speaker
        context_factory: Builds the background context from a message sink
        on_progress: Called with a fresh snapshot after each download event
        on_state_change: Called with the new state after every transition
    """

    def __init__(
        self,
        engine_cache: EngineCache,
        *,
        aggregator: ProgressAggregator | None = None,
        registry: ModelRegistry | None = None,
        pause_threshold: float = DEFAULT_PAUSE_THRESHOLD,
        context_factory: Callable[[MessageSink], ExecutionContext] = ThreadExecutionContext,
        on_progress: Callable[[ProgressSnapshot], None] | None = None,
        on_state_change: Callable[[TaskState], None] | None = None,
    ) -> None:
        self._engine_cache = engine_cache
        self._aggregator = aggregator if aggregator is not None else ProgressAggregator()
        self._registry = registry
        self._pause_threshold = pause_threshold
        self._context_factory = context_factory
        self._on_progress = on_progress
        self._on_state_change = on_state_change

        self._state = TaskState.IDLE
        self._task_id: str | None = None
        self._request: TranscriptionRequest | None = None
        self._result: TranscriptionResult | None = None
        self._error: str | None = None
        self._inbox: queue.Queue[WorkerMessage] = queue.Queue()
        self._context: ExecutionContext | None = None

    @property
    def state(self) -> TaskState:
        return self._state

    @property
    def engine_cache(self) -> EngineCache:
        return self._engine_cache

    @property
    def task_id(self) -> str | None:
        return self._task_id

    @property
    def request(self) -> TranscriptionRequest | None:
        return self._request

    @property
    def result(self) -> TranscriptionResult | None:
        return self._result

    @property
    def error(self) -> str | None:
        return self._error

    @property
    def is_active(self) -> bool:
        return self._state != TaskState.IDLE and not self._state.is_terminal

    @property
    def snapshot(self) -> ProgressSnapshot:
        return self._aggregator.snapshot()

    def start(self, request: TranscriptionRequest) -> str:
        """Begin a new task in a fresh background context.

        Returns:
            The new task id

        Raises:
            TaskStateError: If a task is already active (it is left untouched)
            InputError: If the request holds no audio
        """
        if self.is_active:
            raise TaskStateError(
                f"Task {self._task_id} is still {self._state.value}; cancel it first"
            )
        if request.samples.size == 0:
            raise InputError("Audio contains no samples")

        task_id = uuid.uuid4().hex
        self._task_id = task_id
        self._request = request
        self._result = None
        self._error = None
        self._aggregator.reset()
        self._inbox = queue.Queue()
        self._context = self._context_factory(self._inbox.put)

        logger.info("Starting task %s with %s", task_id, request.descriptor)
        self._set_state(TaskState.INITIALIZING)
        self._context.submit(run_transcription, task_id, request, self._engine_cache)
        return task_id

    def cancel(self) -> None:
        """Abandon the active task. No-op when nothing is running."""
        if not self.is_active:
            return

        logger.info("Cancelling task %s", self._task_id)
        if self._context is not None:
            self._context.discard()
            self._context = None
        self._engine_cache.discard_pending()
        self._inbox = queue.Queue()
        self._set_state(TaskState.CANCELLED)

    def handle(self, message: WorkerMessage) -> bool:
        """Apply one worker message. Returns False if it was ignored."""
        if message.task_id != self._task_id:
            logger.debug("Ignoring %s from stale task %s", message.status.value, message.task_id)
            return False
        if not self.is_active:
            logger.debug(
                "Ignoring %s after task reached %s", message.status.value, self._state.value
            )
            return False

        status = message.status
        payload = message.payload

        if status == MessageStatus.INIT:
            logger.debug("Initializing %s", payload.get("name"))
        elif status in DOWNLOAD_STATUSES:
            self._apply_download_event(status, payload)
        elif status == MessageStatus.READY:
            self._set_state(TaskState.INFERRING)
            self._mark_model_cached()
        elif status == MessageStatus.COMPLETE:
            self._complete(payload.get("output"))
        elif status == MessageStatus.ERROR:
            self._error = str(payload.get("error") or "Unknown error")
            logger.info("Task %s failed: %s", self._task_id, self._error)
            self._finish(TaskState.ERROR)
        return True

    def _apply_download_event(self, status: MessageStatus, payload: dict) -> None:
        file_name = str(payload.get("file", ""))
        if status == MessageStatus.INITIATE:
            self._aggregator.on_file_initiated(file_name)
        elif status == MessageStatus.PROGRESS:
            self._aggregator.on_file_progress(
                file_name, payload.get("loaded", 0), payload.get("total", 0)
            )
        else:
            self._aggregator.on_file_done(file_name)

        self._set_state(TaskState.DOWNLOADING)
        if self._on_progress is not None:
            self._on_progress(self._aggregator.snapshot())

    def _mark_model_cached(self) -> None:
        if self._registry is None or self._request is None:
            return
        try:
            self._registry.mark_model_cached(self._request.descriptor)
        except OSError as e:
            logger.warning("Could not record cached model: %s", e)

    def _complete(self, output: dict | None) -> None:
        raw = TranscriptionResult.from_output(output)
        chunks = annotate(raw.chunks, self._pause_threshold)
        self._result = TranscriptionResult(text=raw.text, chunks=tuple(chunks))
        logger.info("Task %s complete: %d chunks", self._task_id, len(chunks))
        self._finish(TaskState.COMPLETE)

    def _finish(self, state: TaskState) -> None:
        self._context = None
        self._set_state(state)

    def _set_state(self, state: TaskState) -> None:
        if state == self._state:
            return
        logger.debug("Task %s: %s -> %s", self._task_id, self._state.value, state.value)
        self._state = state
        if self._on_state_change is not None:
            self._on_state_change(state)

    def process_pending(self) -> int:
        """Apply every message already in the inbox without blocking."""
        handled = 0
        while True:
            try:
                message = self._inbox.get_nowait()
            except queue.Empty:
                return handled
            self.handle(message)
            handled += 1

    def wait(self, timeout: float | None = None) -> TaskState:
        """Apply messages until the task reaches a terminal state.

        Raises:
            TaskTimeoutError: If timeout elapses while the task is still active
        """
        deadline = None if timeout is None else time.monotonic() + timeout
        while self.is_active:
            wait_for = POLL_INTERVAL
            if deadline is not None:
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    raise TaskTimeoutError(
                        f"Task {self._task_id} still {self._state.value} after {timeout}s"
                    )
                wait_for = min(wait_for, remaining)
            try:
                message = self._inbox.get(timeout=wait_for)
            except queue.Empty:
                continue
            self.handle(message)
        return self._state

    def run(
        self, request: TranscriptionRequest, timeout: float | None = None
    ) -> TranscriptionResult:
        """Start a task and block until it finishes.

        Interrupts (including KeyboardInterrupt) and timeouts cancel the task
        before propagating.

        Raises:
            CancellationError: If the task was cancelled
            TranscriptionError: If the task ended in error
        """
        self.start(request)
        try:
            state = self.wait(timeout)
        except BaseException:
            self.cancel()
            raise

        if state == TaskState.COMPLETE and self._result is not None:
            return self._result
        if state == TaskState.CANCELLED:
            raise CancellationError(CANCELLED_MESSAGE)
        raise TranscriptionError(self._error or "Transcription failed")
