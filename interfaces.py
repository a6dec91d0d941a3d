"""Protocol interfaces used by the recognition and playback engines."""

from __future__ import annotations

from typing import Any, Callable, Protocol

from models import RecognitionOptions, SpeechEvent, SpeechRequest, TextCandidate, VoiceProfile


class TextDetector(Protocol):
    def detect(self, image: Any, options: RecognitionOptions) -> list[TextCandidate]: ...


class SpeechBackend(Protocol):
    def speak(
        self,
        utterance_id: int,
        request: SpeechRequest,
        on_event: Callable[[SpeechEvent], None],
    ) -> None: ...

    def pause(self) -> None: ...

    def resume(self) -> None: ...

    def stop(self) -> None: ...

    def close(self) -> None: ...


class VoiceCatalog(Protocol):
    def list_voices(self) -> list[VoiceProfile]: ...


class AudioSession(Protocol):
    def activate(self, duck_others: bool) -> None: ...

    def deactivate(self) -> None: ...


class Dispatcher(Protocol):
    def post(self, callback: Callable[[], None]) -> None: ...


class ConfigStore(Protocol):
    def get_api_key(self) -> str: ...

    def set_api_key(self, key: str) -> None: ...

    def get_ocr_backend(self) -> str: ...

    def set_ocr_backend(self, backend: str) -> None: ...

    def get_ocr_lang(self) -> str: ...

    def set_ocr_lang(self, lang: str) -> None: ...

    def get_voice_id(self) -> str: ...

    def set_voice_id(self, voice_id: str) -> None: ...

    def get_speech_rate(self) -> float: ...

    def set_speech_rate(self, rate: float) -> None: ...

    def get_duck_others(self) -> bool: ...

    def set_duck_others(self, duck: bool) -> None: ...
