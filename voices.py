"""Voice catalog access and voice selection rules."""

from __future__ import annotations

import logging
from typing import Any, Callable, Optional

from errors import VOICE_UNAVAILABLE
from interfaces import VoiceCatalog
from models import VoiceProfile

logger = logging.getLogger(__name__)

DEFAULT_LANGUAGE = "en-US"


def normalize_language(tag: str) -> str:
    """``en_us`` / ``EN-us`` -> ``en-US``."""
    parts = [p for p in tag.replace("_", "-").split("-") if p]
    if not parts:
        return ""
    head = parts[0].lower()
    tail = [p.upper() if len(p) == 2 else p for p in parts[1:]]
    return "-".join([head, *tail])


def filter_by_language(voices: list[VoiceProfile], prefix: str) -> list[VoiceProfile]:
    prefix = prefix.lower()
    return [v for v in voices if v.language.lower().startswith(prefix)]


def resolve_voice(
    requested: Optional[VoiceProfile],
    catalog: Optional[VoiceCatalog],
    default_language: str = DEFAULT_LANGUAGE,
) -> Optional[VoiceProfile]:
    """
    Pick the voice a request should use.  ``None`` means the platform default.

    - nothing requested: the first voice for ``default_language``, then any
      voice sharing its base language, else the platform default;
    - requested id not installed: platform default, logged as VOICE_UNAVAILABLE.
    """
    if catalog is None:
        return requested
    try:
        voices = catalog.list_voices()
    except Exception:
        logger.exception("voice catalog unavailable, using platform default voice")
        return None

    if requested is not None:
        for voice in voices:
            if voice.identifier == requested.identifier:
                return voice
        logger.warning("%s: %s (%s)", VOICE_UNAVAILABLE, requested.identifier, requested.name)
        return None

    wanted = normalize_language(default_language)
    for voice in voices:
        if normalize_language(voice.language) == wanted:
            return voice
    base = wanted.split("-")[0]
    fallback = filter_by_language(voices, base)
    return fallback[0] if fallback else None


class Pyttsx3VoiceCatalog:
    """Lists the voices of a pyttsx3 driver as ``VoiceProfile`` objects."""

    def __init__(self, engine_factory: Optional[Callable[[], Any]] = None) -> None:
        self._engine_factory = engine_factory
        self._cache: Optional[list[VoiceProfile]] = None

    def list_voices(self) -> list[VoiceProfile]:
        if self._cache is None:
            engine = self._make_engine()
            self._cache = [self._to_profile(v) for v in engine.getProperty("voices") or []]
        return list(self._cache)

    def find(self, identifier: str) -> Optional[VoiceProfile]:
        for voice in self.list_voices():
            if voice.identifier == identifier:
                return voice
        return None

    def _make_engine(self) -> Any:
        if self._engine_factory is not None:
            return self._engine_factory()
        try:
            import pyttsx3
        except ImportError as exc:  # pragma: no cover - import guard
            raise RuntimeError("pyttsx3 is not installed") from exc
        return pyttsx3.init()

    @staticmethod
    def _to_profile(voice: Any) -> VoiceProfile:
        return VoiceProfile(
            identifier=str(voice.id),
            name=str(getattr(voice, "name", "") or voice.id),
            language=_language_of(voice),
        )


def _language_of(voice: Any) -> str:
    # espeak reports languages as bytes prefixed with a priority byte, e.g. b"\x05en-us"
    for lang in getattr(voice, "languages", None) or []:
        if isinstance(lang, bytes):
            lang = lang.lstrip(bytes(range(32))).decode("ascii", errors="ignore")
        tag = normalize_language(str(lang))
        if tag:
            return tag
    return ""
