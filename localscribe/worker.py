"""
localscribe.worker - Background execution of one transcription job.

The job builds (or reuses) the engine and runs inference off the caller's
thread. It talks to the controller only by posting WorkerMessages; every
message carries the task id it belongs to, and a discarded context drops
whatever the abandoned job posts afterwards.
"""

from __future__ import annotations

import threading
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Protocol

from localscribe.engine.cache import EngineCache
from localscribe.exceptions import CancellationError
from localscribe.logging import get_logger
from localscribe.models import TranscriptionRequest

logger = get_logger("worker")


class MessageStatus(str, Enum):
    INIT = "init"
    INITIATE = "initiate"
    PROGRESS = "progress"
    DONE = "done"
    READY = "ready"
    COMPLETE = "complete"
    ERROR = "error"


DOWNLOAD_STATUSES = frozenset({MessageStatus.INITIATE, MessageStatus.PROGRESS, MessageStatus.DONE})


@dataclass(frozen=True)
class WorkerMessage:
    task_id: str
    status: MessageStatus
    payload: dict[str, Any] = field(default_factory=dict)


MessageSink = Callable[[WorkerMessage], None]


def run_transcription(
    task_id: str,
    request: TranscriptionRequest,
    engine_cache: EngineCache,
    post: MessageSink,
) -> None:
    """Acquire the engine, run inference and report the outcome through post."""
    post(WorkerMessage(task_id, MessageStatus.INIT, {"name": request.model_id}))

    def forward(event: dict[str, Any]) -> None:
        try:
            status = MessageStatus(event.get("status"))
        except ValueError:
            return
        if status in DOWNLOAD_STATUSES:
            payload = {k: v for k, v in event.items() if k != "status"}
            post(WorkerMessage(task_id, status, payload))

    try:
        engine = engine_cache.acquire(request.descriptor, forward)
        resolved = engine_cache.descriptor or request.descriptor
        post(WorkerMessage(task_id, MessageStatus.READY, {"device": resolved.device.value}))
        output = engine_cache.infer(engine, request.samples, request.inference_options())
    except CancellationError:
        logger.debug("Task %s abandoned during engine construction", task_id)
        return
    except Exception as e:
        logger.debug("Task %s failed", task_id, exc_info=True)
        post(WorkerMessage(task_id, MessageStatus.ERROR, {"error": str(e) or type(e).__name__}))
        return

    post(WorkerMessage(task_id, MessageStatus.COMPLETE, {"output": output}))


class ExecutionContext(Protocol):
    """Where a job runs. Created fresh for every task."""

    def submit(self, job: Callable[..., None], *args: Any) -> None:
        """Run job(*args, post) in the background."""
        ...

    def discard(self) -> None:
        """Abandon the job; nothing it posts afterwards is delivered."""
        ...


class ThreadExecutionContext:
    """Runs the job on a daemon thread.

    Threads cannot be killed, so discard() detaches the job instead: it keeps
    running until its current call returns, but its messages go nowhere.
    """

    def __init__(self, sink: MessageSink) -> None:
        self._sink = sink
        self._discarded = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def discarded(self) -> bool:
        return self._discarded.is_set()

    def post(self, message: WorkerMessage) -> None:
        if self._discarded.is_set():
            logger.debug("Dropping %s from discarded context", message.status.value)
            return
        self._sink(message)

    def submit(self, job: Callable[..., None], *args: Any) -> None:
        self._thread = threading.Thread(
            target=job,
            args=(*args, self.post),
            name="localscribe-worker",
            daemon=True,
        )
        self._thread.start()

    def discard(self) -> None:
        self._discarded.set()

    def join(self, timeout: float | None = None) -> None:
        if self._thread is not None:
            self._thread.join(timeout)
