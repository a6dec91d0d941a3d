"""State-machine based text-to-speech playback."""

from __future__ import annotations

import logging
import threading
from typing import Callable, Optional

from audio_session import LoggingAudioSession
from dispatch import ImmediateDispatcher
from errors import EMPTY_INPUT, SPEECH_BACKEND_ERROR
from interfaces import AudioSession, Dispatcher, SpeechBackend, VoiceCatalog
from models import (
    DEFAULT_RATE,
    PlaybackSnapshot,
    PlaybackState,
    SpeechEvent,
    SpeechEventKind,
    SpeechRequest,
    VoiceProfile,
    validate_rate,
)
from voices import DEFAULT_LANGUAGE, resolve_voice

logger = logging.getLogger(__name__)

StateCallback = Callable[[PlaybackState, PlaybackState], None]
ErrorCallback = Callable[[str, str], None]
Transition = tuple[PlaybackState, PlaybackState]


class PlaybackEngine:
    def __init__(
        self,
        backend: SpeechBackend,
        voice_catalog: Optional[VoiceCatalog] = None,
        audio_session: Optional[AudioSession] = None,
        duck_others: bool = True,
        default_language: str = DEFAULT_LANGUAGE,
        dispatcher: Optional[Dispatcher] = None,
        on_state_change: Optional[StateCallback] = None,
        on_error: Optional[ErrorCallback] = None,
    ) -> None:
        self._backend = backend
        self._voice_catalog = voice_catalog
        self._audio_session = audio_session or LoggingAudioSession()
        self._duck_others = duck_others
        self._default_language = default_language
        self._dispatcher = dispatcher or ImmediateDispatcher()
        self._observers: list[StateCallback] = []
        self._error_observers: list[ErrorCallback] = []
        if on_state_change:
            self._observers.append(on_state_change)
        if on_error:
            self._error_observers.append(on_error)

        self._lock = threading.Lock()
        # held from a state change until the backend has seen it
        self._control_lock = threading.RLock()
        self._state = PlaybackState.STOPPED
        self._utterance_id = 0
        self._live_id: Optional[int] = None
        self._session_active = False

    @property
    def state(self) -> PlaybackState:
        with self._lock:
            return self._state

    @property
    def is_speaking(self) -> bool:
        with self._lock:
            return self._state == PlaybackState.SPEAKING

    @property
    def duck_others(self) -> bool:
        return self._duck_others

    def snapshot(self) -> PlaybackSnapshot:
        with self._lock:
            return PlaybackSnapshot(state=self._state, utterance_id=self._utterance_id)

    def subscribe(self, on_state_change: StateCallback) -> Callable[[], None]:
        with self._lock:
            self._observers.append(on_state_change)
        return lambda: self._unsubscribe(self._observers, on_state_change)

    def subscribe_errors(self, on_error: ErrorCallback) -> Callable[[], None]:
        with self._lock:
            self._error_observers.append(on_error)
        return lambda: self._unsubscribe(self._error_observers, on_error)

    def speak(self, text: str, voice: Optional[VoiceProfile] = None, rate: float = DEFAULT_RATE) -> None:
        if not text:
            logger.debug("%s: speak() called without text", EMPTY_INPUT)
            return
        rate = validate_rate(rate)
        request = SpeechRequest(
            text=text,
            voice=resolve_voice(voice, self._voice_catalog, self._default_language),
            rate=rate,
        )

        with self._control_lock:
            self._start(request)

    def _start(self, request: SpeechRequest) -> None:
        transitions: list[Transition] = []
        with self._lock:
            if self._state != PlaybackState.STOPPED:
                logger.info("cancelling utterance %s for a new one", self._live_id)
                self._live_id = None
                self._backend.stop()
                self._transition_locked(PlaybackState.STOPPED, transitions)
            self._activate_session_locked()
            self._utterance_id += 1
            self._live_id = self._utterance_id
            utterance_id = self._utterance_id
            self._transition_locked(PlaybackState.SPEAKING, transitions)
        self._publish(transitions)
        with self._lock:
            handover = self._live_id == utterance_id
            paused = self._state == PlaybackState.PAUSED
        if not handover:
            logger.debug("utterance %d stopped before reaching the backend", utterance_id)
            return

        try:
            self._backend.speak(utterance_id, request, self._handle_event)
            if paused:
                self._backend.pause()
        except Exception as exc:
            logger.exception("speech backend rejected utterance %d", utterance_id)
            self._handle_event(
                SpeechEvent(
                    kind=SpeechEventKind.ERROR.value,
                    utterance_id=utterance_id,
                    code=SPEECH_BACKEND_ERROR,
                    message=str(exc),
                )
            )

    def pause(self) -> None:
        with self._control_lock:
            transitions: list[Transition] = []
            with self._lock:
                if self._state != PlaybackState.SPEAKING:
                    return
                self._backend.pause()
                self._transition_locked(PlaybackState.PAUSED, transitions)
            self._publish(transitions)

    def resume(self) -> None:
        with self._control_lock:
            transitions: list[Transition] = []
            with self._lock:
                if self._state != PlaybackState.PAUSED:
                    return
                self._backend.resume()
                self._transition_locked(PlaybackState.SPEAKING, transitions)
            self._publish(transitions)

    def stop(self) -> None:
        with self._control_lock:
            transitions: list[Transition] = []
            with self._lock:
                if self._state == PlaybackState.STOPPED:
                    return
                self._live_id = None
                self._backend.stop()
                self._transition_locked(PlaybackState.STOPPED, transitions)
            self._publish(transitions)

    def close(self) -> None:
        self.stop()
        with self._lock:
            if self._session_active:
                self._session_active = False
                self._audio_session.deactivate()
        self._backend.close()

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _handle_event(self, event: SpeechEvent) -> None:
        transitions: list[Transition] = []
        with self._lock:
            if event.utterance_id != self._live_id:
                logger.debug("ignoring %s from utterance %d", event.kind, event.utterance_id)
                return
            kind = event.kind
            if kind == SpeechEventKind.STARTED.value:
                if self._state == PlaybackState.STOPPED:
                    self._transition_locked(PlaybackState.SPEAKING, transitions)
            elif kind in (SpeechEventKind.FINISHED.value, SpeechEventKind.CANCELLED.value):
                self._live_id = None
                self._transition_locked(PlaybackState.STOPPED, transitions)
            elif kind == SpeechEventKind.ERROR.value:
                self._live_id = None
                self._transition_locked(PlaybackState.STOPPED, transitions)
        self._publish(transitions)
        if event.kind == SpeechEventKind.ERROR.value:
            code = event.code or SPEECH_BACKEND_ERROR
            logger.error("utterance %d failed: %s: %s", event.utterance_id, code, event.message)
            self._emit_error(code, event.message)

    def _activate_session_locked(self) -> None:
        if self._session_active:
            return
        try:
            self._audio_session.activate(self._duck_others)
            self._session_active = True
        except Exception:
            logger.exception("failed to set up audio session")

    def _transition_locked(self, to_state: PlaybackState, transitions: list[Transition]) -> None:
        from_state = self._state
        if from_state == to_state:
            return
        self._state = to_state
        transitions.append((from_state, to_state))

    def _unsubscribe(self, observers: list, callback: Callable) -> None:
        with self._lock:
            if callback in observers:
                observers.remove(callback)

    def _publish(self, transitions: list[Transition]) -> None:
        with self._lock:
            observers = list(self._observers)
        for from_state, to_state in transitions:
            for observer in observers:
                self._dispatcher.post(lambda cb=observer, f=from_state, t=to_state: cb(f, t))

    def _emit_error(self, code: str, message: str) -> None:
        with self._lock:
            observers = list(self._error_observers)
        for observer in observers:
            self._dispatcher.post(lambda cb=observer: cb(code, message))
