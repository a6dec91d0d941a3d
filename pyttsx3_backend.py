"""Speech backend powered by ``pyttsx3``.

pyttsx3 drivers are not thread-safe, so one worker thread creates the engine
and runs every utterance on it.  The engine has no native pause: a pause
request is honoured from the ``started-word`` callback by stopping the engine
just before the next word and remembering its character offset.  Resuming
says the rest of the text from that offset.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from queue import Queue
from typing import Any, Callable, Optional

from errors import SPEECH_BACKEND_ERROR, VOICE_UNAVAILABLE, SpeechBackendError
from models import SpeechEvent, SpeechEventKind, SpeechRequest

logger = logging.getLogger(__name__)

EventCallback = Callable[[SpeechEvent], None]


@dataclass(eq=False)
class _Utterance:
    utterance_id: int
    request: SpeechRequest
    on_event: EventCallback
    offset: int = 0
    segment_start: int = 0
    pause_requested: bool = False
    paused: bool = False
    halted_for_pause: bool = False
    cancelled: bool = False
    speaking: bool = False
    wake: threading.Event = field(default_factory=threading.Event)

    def emit(self, kind: SpeechEventKind, code: str = "", message: str = "") -> None:
        self.on_event(SpeechEvent(kind=kind.value, utterance_id=self.utterance_id, code=code, message=message))


class Pyttsx3SpeechBackend:
    def __init__(
        self,
        engine_factory: Optional[Callable[[], Any]] = None,
        min_wpm: int = 80,
        max_wpm: int = 300,
    ) -> None:
        self._engine_factory = engine_factory
        self._min_wpm = min_wpm
        self._max_wpm = max_wpm
        self._lock = threading.Lock()
        self._commands: Queue[_Utterance | None] = Queue()
        self._thread: Optional[threading.Thread] = None
        self._engine: Any = None
        self._default_voice: Any = None
        self._current: Optional[_Utterance] = None
        self._pending: list[_Utterance] = []

    def rate_to_wpm(self, rate: float) -> int:
        return int(round(self._min_wpm + rate * (self._max_wpm - self._min_wpm)))

    def speak(self, utterance_id: int, request: SpeechRequest, on_event: EventCallback) -> None:
        utterance = _Utterance(utterance_id=utterance_id, request=request, on_event=on_event)
        with self._lock:
            self._pending.append(utterance)
        self._commands.put(utterance)
        self._ensure_worker()

    def pause(self) -> None:
        with self._lock:
            for utterance in self._live_locked():
                utterance.pause_requested = True

    def resume(self) -> None:
        with self._lock:
            for utterance in self._live_locked():
                utterance.pause_requested = False
                if utterance.paused:
                    utterance.paused = False
                    utterance.wake.set()

    def stop(self) -> None:
        with self._lock:
            targets = self._live_locked()
            for utterance in targets:
                utterance.cancelled = True
                utterance.wake.set()
            current = self._current
            interrupt = current is not None and current.speaking
            engine = self._engine
        if interrupt and engine is not None:
            try:
                engine.stop()
            except Exception:
                logger.exception("pyttsx3 engine.stop() failed")

    def close(self) -> None:
        self.stop()
        self._commands.put(None)
        thread = self._thread
        if thread and thread.is_alive():
            thread.join(timeout=1.0)

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _live_locked(self) -> list[_Utterance]:
        live = [u for u in self._pending if not u.cancelled]
        if self._current is not None and not self._current.cancelled:
            live.insert(0, self._current)
        return live

    def _ensure_worker(self) -> None:
        with self._lock:
            if self._thread and self._thread.is_alive():
                return
            self._thread = threading.Thread(target=self._worker, name="speech-backend", daemon=True)
            self._thread.start()

    def _create_engine(self) -> Any:
        if self._engine_factory is None:
            try:
                import pyttsx3
            except ImportError as exc:  # pragma: no cover - import guard
                raise SpeechBackendError("pyttsx3 is not installed") from exc
            factory: Callable[[], Any] = pyttsx3.init
        else:
            factory = self._engine_factory
        try:
            engine = factory()
            engine.connect("started-word", self._on_started_word)
            self._default_voice = engine.getProperty("voice")
        except Exception as exc:
            raise SpeechBackendError(f"speech engine unavailable: {exc}") from exc
        return engine

    def _worker(self) -> None:
        try:
            engine = self._create_engine()
        except SpeechBackendError as exc:
            logger.exception("speech engine unavailable")
            self._fail_queued(str(exc))
            return
        with self._lock:
            self._engine = engine

        while True:
            utterance = self._commands.get()
            if utterance is None:
                break
            with self._lock:
                if utterance in self._pending:
                    self._pending.remove(utterance)
                self._current = utterance
            try:
                self._play(engine, utterance)
            finally:
                with self._lock:
                    self._current = None

        with self._lock:
            self._engine = None

    def _fail_queued(self, message: str) -> None:
        while not self._commands.empty():
            utterance = self._commands.get_nowait()
            if utterance is None:
                continue
            with self._lock:
                if utterance in self._pending:
                    self._pending.remove(utterance)
            utterance.emit(SpeechEventKind.ERROR, SPEECH_BACKEND_ERROR, message)

    def _configure(self, engine: Any, request: SpeechRequest) -> None:
        engine.setProperty("rate", self.rate_to_wpm(request.rate))
        engine.setProperty("volume", request.volume)
        voice_id = request.voice.identifier if request.voice else self._default_voice
        if voice_id is None:
            return
        try:
            engine.setProperty("voice", voice_id)
        except Exception as exc:
            logger.warning("%s: %s (%s)", VOICE_UNAVAILABLE, voice_id, exc)
            if self._default_voice is not None:
                engine.setProperty("voice", self._default_voice)

    def _play(self, engine: Any, utterance: _Utterance) -> None:
        if utterance.cancelled:
            utterance.emit(SpeechEventKind.CANCELLED)
            return
        self._configure(engine, utterance.request)
        text = utterance.request.text
        utterance.emit(SpeechEventKind.STARTED)

        while True:
            with self._lock:
                if utterance.pause_requested and not utterance.paused:
                    utterance.pause_requested = False
                    utterance.paused = True
                paused = utterance.paused
            if paused:
                utterance.wake.wait()
                utterance.wake.clear()
            with self._lock:
                if utterance.cancelled:
                    break
                if utterance.paused:
                    continue
                utterance.segment_start = utterance.offset
                utterance.halted_for_pause = False
                utterance.speaking = True
            try:
                engine.say(text[utterance.offset:], str(utterance.utterance_id))
                engine.runAndWait()
            except Exception as exc:
                logger.exception("pyttsx3 playback failed")
                utterance.emit(SpeechEventKind.ERROR, SPEECH_BACKEND_ERROR, str(exc))
                return
            finally:
                with self._lock:
                    utterance.speaking = False
            with self._lock:
                if utterance.cancelled:
                    break
                if utterance.halted_for_pause:
                    continue
            utterance.emit(SpeechEventKind.FINISHED)
            return

        utterance.emit(SpeechEventKind.CANCELLED)

    def _on_started_word(self, name: str, location: int, length: int) -> None:
        with self._lock:
            utterance = self._current
            if utterance is None:
                return
            halt = utterance.cancelled
            if not halt and utterance.pause_requested and not utterance.paused:
                utterance.pause_requested = False
                utterance.paused = True
                utterance.offset = utterance.segment_start + location
                utterance.halted_for_pause = True
                halt = True
            engine = self._engine
        if halt and engine is not None:
            engine.stop()
