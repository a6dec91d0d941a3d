"""Single-flight image-to-text recognition engine."""

from __future__ import annotations

import logging
import threading
from typing import Any, Callable, Optional

from dispatch import ImmediateDispatcher
from errors import INVALID_IMAGE, RECOGNITION_FAILED, DetectionError, InvalidImageError
from imaging import decode_image
from interfaces import Dispatcher, TextDetector
from models import (
    ImageBuffer,
    RecognitionJob,
    RecognitionOptions,
    RecognitionSnapshot,
    RecognitionState,
    TextCandidate,
)

logger = logging.getLogger(__name__)

ChangeCallback = Callable[[RecognitionSnapshot], None]
ErrorCallback = Callable[[str, str], None]
JobRunner = Callable[[Callable[[], None]], None]


class RecognitionEngine:
    def __init__(
        self,
        detector: TextDetector,
        options: Optional[RecognitionOptions] = None,
        dispatcher: Optional[Dispatcher] = None,
        job_runner: Optional[JobRunner] = None,
        on_change: Optional[ChangeCallback] = None,
        on_error: Optional[ErrorCallback] = None,
    ) -> None:
        self._detector = detector
        self._options = options or RecognitionOptions()
        self._dispatcher = dispatcher or ImmediateDispatcher()
        self._job_runner = job_runner or self._spawn_worker
        self._observers: list[ChangeCallback] = []
        self._error_observers: list[ErrorCallback] = []
        if on_change:
            self._observers.append(on_change)
        if on_error:
            self._error_observers.append(on_error)

        self._lock = threading.Lock()
        self._generation = 0
        self._job: Optional[RecognitionJob] = None
        self._recognized_text = ""
        self._is_processing = False
        self._workers: list[threading.Thread] = []

    @property
    def recognized_text(self) -> str:
        with self._lock:
            return self._recognized_text

    @property
    def is_processing(self) -> bool:
        with self._lock:
            return self._is_processing

    @property
    def state(self) -> RecognitionState:
        return self.snapshot().state

    @property
    def current_job(self) -> Optional[RecognitionJob]:
        with self._lock:
            return self._job

    def snapshot(self) -> RecognitionSnapshot:
        with self._lock:
            return self._snapshot_locked()

    def subscribe(self, on_change: ChangeCallback) -> Callable[[], None]:
        with self._lock:
            self._observers.append(on_change)
        return lambda: self._unsubscribe(self._observers, on_change)

    def subscribe_errors(self, on_error: ErrorCallback) -> Callable[[], None]:
        with self._lock:
            self._error_observers.append(on_error)
        return lambda: self._unsubscribe(self._error_observers, on_error)

    def recognize(self, image: ImageBuffer) -> None:
        try:
            raster = decode_image(image)
        except InvalidImageError as exc:
            logger.error("%s: %s", INVALID_IMAGE, exc)
            raise

        with self._lock:
            self._generation += 1
            job = RecognitionJob(job_id=self._generation)
            self._job = job
            self._is_processing = True
            snapshot = self._snapshot_locked()
        logger.info("recognition job %d started", job.job_id)
        self._publish(snapshot)
        self._job_runner(lambda: self._run_job(job.job_id, raster))

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Join outstanding workers; True when none is left running."""
        with self._lock:
            workers = list(self._workers)
        for worker in workers:
            worker.join(timeout=timeout)
        with self._lock:
            self._workers = [w for w in self._workers if w.is_alive()]
            return not self._workers

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _spawn_worker(self, job: Callable[[], None]) -> None:
        worker = threading.Thread(target=job, name="recognition-job", daemon=True)
        with self._lock:
            self._workers = [w for w in self._workers if w.is_alive()]
            self._workers.append(worker)
        worker.start()

    def _run_job(self, job_id: int, raster: Any) -> None:
        try:
            candidates = self._detector.detect(raster, self._options)
        except DetectionError as exc:
            self._finish_failure(job_id, exc.code, str(exc))
            return
        except Exception as exc:
            logger.exception("text detector crashed")
            self._finish_failure(job_id, RECOGNITION_FAILED, str(exc))
            return

        text = join_candidates(candidates)
        if not text:
            self._finish_failure(job_id, RECOGNITION_FAILED, "no text detected")
            return
        self._finish_success(job_id, text)

    def _finish_success(self, job_id: int, text: str) -> None:
        with self._lock:
            job = self._current_locked(job_id)
            if job is None:
                return
            job.state = RecognitionState.COMPLETED
            job.result_text = text
            self._recognized_text = text
            self._is_processing = False
            snapshot = self._snapshot_locked()
        logger.info("recognition job %d completed with %d line(s)", job_id, text.count("\n") + 1)
        self._publish(snapshot)

    def _finish_failure(self, job_id: int, code: str, message: str) -> None:
        with self._lock:
            job = self._current_locked(job_id)
            if job is None:
                return
            job.state = RecognitionState.FAILED
            job.error = code
            self._is_processing = False
            snapshot = self._snapshot_locked()
        logger.error("recognition job %d failed: %s: %s", job_id, code, message)
        self._publish(snapshot)
        self._emit_error(code, message)

    def _current_locked(self, job_id: int) -> Optional[RecognitionJob]:
        if job_id != self._generation or self._job is None:
            logger.debug("ignoring stale completion of job %d (current %d)", job_id, self._generation)
            return None
        return self._job

    def _snapshot_locked(self) -> RecognitionSnapshot:
        return RecognitionSnapshot(
            recognized_text=self._recognized_text,
            is_processing=self._is_processing,
            state=RecognitionState.PROCESSING if self._is_processing else RecognitionState.IDLE,
            job_id=self._generation,
        )

    def _unsubscribe(self, observers: list, callback: Callable) -> None:
        with self._lock:
            if callback in observers:
                observers.remove(callback)

    def _publish(self, snapshot: RecognitionSnapshot) -> None:
        with self._lock:
            observers = list(self._observers)
        for observer in observers:
            self._dispatcher.post(lambda cb=observer: cb(snapshot))

    def _emit_error(self, code: str, message: str) -> None:
        with self._lock:
            observers = list(self._error_observers)
        for observer in observers:
            self._dispatcher.post(lambda cb=observer: cb(code, message))


def join_candidates(candidates: list[TextCandidate]) -> str:
    """Top alternative of every candidate, in detection order, one per line."""
    lines = []
    for candidate in candidates:
        top = candidate.top()
        if top:
            lines.append(top)
    return "\n".join(lines)
