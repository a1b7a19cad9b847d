"""Sequential queue for long-running image generation jobs.

Only one render call is ever in flight. Jobs are served strictly in
submission order by a single worker that starts when the first job
arrives and exits once the queue is empty. Each job settles its
``JobFuture`` exactly once, and a failing job never stops the worker.
"""

from __future__ import annotations

from collections import deque
from collections.abc import Awaitable, Callable
from pathlib import Path

import anyio
from anyio.abc import TaskGroup

from .errors import (
    ChatloomError,
    DeliveryFailure,
    GenerationEmptyResult,
    GenerationFailure,
    JobAlreadySettled,
)
from .logging import bind_run_context, clear_context, get_logger
from .model import Artifact, Job
from .render import RenderBackend

logger = get_logger(__name__)

DEFAULT_SETTLE_DELAY_S = 5.0

NO_ARTIFACT_MESSAGE = "No image file was found after generation."
GENERATION_ERROR_MESSAGE = "Error generating image"


def success_message(prompt: str) -> str:
    return f'Here is your image for: "{prompt}"'


def delivery_failed_message(exc: BaseException) -> str:
    return f"Image generated but failed to send: {exc}"


class JobFuture:
    """Single-assignment result cell for one job.

    Settling twice raises ``JobAlreadySettled``; waiters see either the
    artifact or the error, never both.
    """

    def __init__(self) -> None:
        self._event = anyio.Event()
        self._artifact: Artifact | None = None
        self._error: BaseException | None = None
        self._settled = False

    @property
    def done(self) -> bool:
        return self._settled

    @property
    def error(self) -> BaseException | None:
        return self._error

    def set_result(self, artifact: Artifact) -> None:
        self._claim()
        self._artifact = artifact
        self._event.set()

    def set_error(self, error: BaseException) -> None:
        self._claim()
        self._error = error
        self._event.set()

    async def wait(self) -> Artifact:
        """Wait for the job and return its artifact, or raise its error."""
        await self._event.wait()
        if self._error is not None:
            raise self._error
        assert self._artifact is not None
        return self._artifact

    def _claim(self) -> None:
        if self._settled:
            raise JobAlreadySettled("job future already settled")
        self._settled = True


class GenerationQueue:
    """FIFO queue drained by a single worker task.

    Usage:
        async with anyio.create_task_group() as tg:
            queue = GenerationQueue(task_group=tg, backend=backend)
            future = queue.enqueue(job)
            artifact = await future.wait()
    """

    def __init__(
        self,
        *,
        task_group: TaskGroup,
        backend: RenderBackend,
        settle_delay_s: float = DEFAULT_SETTLE_DELAY_S,
        sleep: Callable[[float], Awaitable[None]] = anyio.sleep,
    ) -> None:
        self._task_group = task_group
        self._backend = backend
        self.settle_delay_s = settle_delay_s
        self._sleep = sleep
        self._pending: deque[tuple[Job, JobFuture]] = deque()
        self._current: tuple[Job, JobFuture] | None = None
        self._active = False

    @property
    def active(self) -> bool:
        """True while the worker is draining."""
        return self._active

    @property
    def pending(self) -> int:
        return len(self._pending)

    @property
    def current(self) -> Job | None:
        return self._current[0] if self._current is not None else None

    def enqueue(self, job: Job) -> JobFuture:
        """Queue a job and start the worker if it is idle."""
        future = JobFuture()
        self._pending.append((job, future))
        logger.info(
            "queue.job_enqueued",
            requester=job.requester_name,
            position=len(self._pending),
        )
        if not self._active:
            self._active = True
            self._task_group.start_soon(self._drain)
        return future

    async def _drain(self) -> None:
        try:
            while self._pending:
                self._current = self._pending.popleft()
                job, future = self._current
                try:
                    await self._run_job(job, future)
                finally:
                    clear_context()
                self._current = None
        finally:
            self._abandon_unsettled()
            self._active = False
            logger.info("queue.idle")

    async def _run_job(self, job: Job, future: JobFuture) -> None:
        bind_run_context(job_prompt=job.prompt[:100])
        logger.info("queue.job_started", requester=job.requester_name)
        try:
            path = await self._backend.render(job.prompt, job.timeout_s)
            if not path:
                logger.warning("queue.job_empty")
                await self._notify(job, NO_ARTIFACT_MESSAGE)
                future.set_error(GenerationEmptyResult(NO_ARTIFACT_MESSAGE))
                return

            # Let the backend finish flushing the file before it is read.
            await self._sleep(self.settle_delay_s)

            artifact = Artifact(path=Path(path))
            try:
                await job.sink.edit(success_message(job.prompt), files=[artifact.path])
            except Exception as exc:
                logger.error("queue.delivery_failed", error=str(exc), path=str(path))
                await self._notify(job, delivery_failed_message(exc))
                future.set_error(DeliveryFailure(str(exc)))
                return

            future.set_result(artifact)
            logger.info("queue.job_done", path=str(artifact.path))
        except Exception as exc:
            logger.exception("queue.job_failed", error=str(exc))
            if not future.done:
                await self._notify(job, GENERATION_ERROR_MESSAGE)
                if not isinstance(exc, ChatloomError):
                    exc = GenerationFailure(str(exc))
                future.set_error(exc)

    async def _notify(self, job: Job, content: str) -> None:
        try:
            await job.sink.edit(content)
        except Exception as exc:
            logger.error("queue.notify_failed", error=str(exc))

    def _abandon_unsettled(self) -> None:
        # Only reached with unsettled jobs when the worker is cancelled.
        abandoned = list(self._pending)
        self._pending.clear()
        if self._current is not None:
            abandoned.insert(0, self._current)
            self._current = None
        for _, future in abandoned:
            if not future.done:
                future.set_error(GenerationFailure("generation queue shut down"))
