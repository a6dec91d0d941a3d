"""Shared error codes, user-facing messages and engine exceptions."""

from __future__ import annotations

INVALID_IMAGE = "INVALID_IMAGE"
RECOGNITION_FAILED = "RECOGNITION_FAILED"
VOICE_UNAVAILABLE = "VOICE_UNAVAILABLE"
EMPTY_INPUT = "EMPTY_INPUT"
INVALID_RATE = "INVALID_RATE"
AUTH_FAILED = "AUTH_FAILED"
NETWORK_ERROR = "NETWORK_ERROR"
SPEECH_BACKEND_ERROR = "SPEECH_BACKEND_ERROR"

ERROR_MESSAGES = {
    INVALID_IMAGE: "The image could not be decoded.",
    RECOGNITION_FAILED: "No text could be recognized in the image.",
    VOICE_UNAVAILABLE: "The selected voice is not installed, using the default voice.",
    EMPTY_INPUT: "There is no text to read.",
    INVALID_RATE: "Speech rate must be between 0.0 and 1.0.",
    AUTH_FAILED: "API key is invalid.",
    NETWORK_ERROR: "Network failed, please retry.",
    SPEECH_BACKEND_ERROR: "Speech output failed.",
}


class EngineError(Exception):
    """Base error carrying one of the codes above."""

    code = RECOGNITION_FAILED

    def __init__(self, message: str = "", code: str | None = None) -> None:
        if code is not None:
            self.code = code
        super().__init__(message or ERROR_MESSAGES.get(self.code, self.code))


class InvalidImageError(EngineError, ValueError):
    code = INVALID_IMAGE


class InvalidRateError(EngineError, ValueError):
    code = INVALID_RATE


class DetectionError(EngineError):
    def __init__(self, message: str = "", code: str | None = None, retryable: bool = False) -> None:
        super().__init__(message, code)
        self.retryable = retryable


class SpeechBackendError(EngineError):
    code = SPEECH_BACKEND_ERROR
