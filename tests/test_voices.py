from __future__ import annotations

from types import SimpleNamespace

from models import VoiceProfile
from voices import Pyttsx3VoiceCatalog, filter_by_language, normalize_language, resolve_voice

EN_US = VoiceProfile(identifier="en-us-1", name="Samantha", language="en-US")
EN_AU = VoiceProfile(identifier="en-au-1", name="Karen", language="en-AU")
DE = VoiceProfile(identifier="de-1", name="Anna", language="de-DE")


class FakeCatalog:
    def __init__(self, voices: list[VoiceProfile], fail: bool = False) -> None:
        self.voices = voices
        self.fail = fail

    def list_voices(self) -> list[VoiceProfile]:
        if self.fail:
            raise RuntimeError("driver gone")
        return list(self.voices)


class FakeEngine:
    def __init__(self, voices: list) -> None:
        self._voices = voices

    def getProperty(self, name: str):  # noqa: N802
        assert name == "voices"
        return self._voices


def test_normalize_language() -> None:
    assert normalize_language("en_us") == "en-US"
    assert normalize_language("EN-gb") == "en-GB"
    assert normalize_language("zh-Hans-CN") == "zh-Hans-CN"
    assert normalize_language("") == ""


def test_filter_by_language() -> None:
    assert filter_by_language([EN_US, DE, EN_AU], "en") == [EN_US, EN_AU]


def test_no_request_picks_default_english_voice() -> None:
    assert resolve_voice(None, FakeCatalog([DE, EN_AU, EN_US])) == EN_US


def test_no_request_falls_back_to_any_english_voice() -> None:
    assert resolve_voice(None, FakeCatalog([DE, EN_AU])) == EN_AU


def test_no_english_voice_means_platform_default() -> None:
    assert resolve_voice(None, FakeCatalog([DE])) is None


def test_requested_voice_is_returned_from_catalog() -> None:
    requested = VoiceProfile(identifier="de-1", name="", language="")

    assert resolve_voice(requested, FakeCatalog([EN_US, DE])) == DE


def test_unknown_requested_voice_means_platform_default(caplog) -> None:  # noqa: ANN001
    requested = VoiceProfile(identifier="missing", name="Missing", language="en-US")

    assert resolve_voice(requested, FakeCatalog([EN_US])) is None
    assert "VOICE_UNAVAILABLE" in caplog.text


def test_without_catalog_request_is_trusted() -> None:
    assert resolve_voice(EN_AU, None) == EN_AU


def test_broken_catalog_means_platform_default() -> None:
    assert resolve_voice(EN_US, FakeCatalog([], fail=True)) is None


def test_pyttsx3_catalog_builds_profiles() -> None:
    raw = [
        SimpleNamespace(id="com.apple.voice.Samantha", name="Samantha", languages=["en_US"]),
        SimpleNamespace(id="english", name="english", languages=[b"\x05en-gb"]),
        SimpleNamespace(id="mystery", name=None, languages=[]),
    ]
    catalog = Pyttsx3VoiceCatalog(engine_factory=lambda: FakeEngine(raw))

    voices = catalog.list_voices()

    assert voices == [
        VoiceProfile("com.apple.voice.Samantha", "Samantha", "en-US"),
        VoiceProfile("english", "english", "en-GB"),
        VoiceProfile("mystery", "mystery", ""),
    ]
    assert catalog.find("english") == voices[1]
    assert catalog.find("nope") is None
