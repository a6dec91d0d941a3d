"""Command-line entrypoint: capture text from an image and read it aloud."""

from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import Optional

import typer

from config import OCR_BACKENDS, JsonConfigStore
from dashscope_detector import DashscopeTextDetector
from errors import ERROR_MESSAGES, INVALID_RATE, InvalidImageError, InvalidRateError
from interfaces import ConfigStore, TextDetector
from models import ImageBuffer, PlaybackState, VoiceProfile
from playback_engine import PlaybackEngine
from pyttsx3_backend import Pyttsx3SpeechBackend
from recognition_engine import RecognitionEngine
from tesseract_detector import TesseractTextDetector
from voices import Pyttsx3VoiceCatalog, filter_by_language

app = typer.Typer(help="Read the text in an image out loud.")

RECOGNITION_TIMEOUT_S = 120.0


def load_config() -> ConfigStore:
    return JsonConfigStore()


def build_detector(config: ConfigStore, backend: Optional[str] = None, lang: Optional[str] = None) -> TextDetector:
    backend = backend or config.get_ocr_backend()
    if backend == "dashscope":
        return DashscopeTextDetector(api_key=config.get_api_key())
    return TesseractTextDetector(lang=lang or config.get_ocr_lang())


def build_voice_catalog() -> Pyttsx3VoiceCatalog:
    return Pyttsx3VoiceCatalog()


def build_playback_engine(config: ConfigStore, catalog: Pyttsx3VoiceCatalog) -> PlaybackEngine:
    return PlaybackEngine(
        backend=Pyttsx3SpeechBackend(),
        voice_catalog=catalog,
        duck_others=config.get_duck_others(),
    )


@app.callback()
def _setup(verbose: bool = typer.Option(False, "--verbose", "-v", help="Log debug output.")) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )


@app.command()
def read(
    image: Path = typer.Argument(..., exists=True, dir_okay=False, readable=True),
    speak: bool = typer.Option(True, "--speak/--no-speak", help="Read the text aloud."),
    voice: Optional[str] = typer.Option(None, help="Voice identifier."),
    rate: Optional[float] = typer.Option(None, help="Speech rate from 0.0 to 1.0."),
    backend: Optional[str] = typer.Option(None, help="OCR backend: tesseract or dashscope."),
    lang: Optional[str] = typer.Option(None, help="Tesseract language(s), e.g. eng+deu."),
) -> None:
    """Recognize the text in IMAGE, print it and optionally speak it."""
    config = load_config()
    if backend is not None and backend not in OCR_BACKENDS:
        raise typer.BadParameter(f"backend must be one of {', '.join(OCR_BACKENDS)}")

    errors: list[tuple[str, str]] = []
    engine = RecognitionEngine(
        detector=build_detector(config, backend, lang),
        on_error=lambda code, message: errors.append((code, message)),
    )
    try:
        engine.recognize(ImageBuffer(data=image.read_bytes(), source=str(image)))
    except InvalidImageError as exc:
        typer.echo(f"{exc.code}: {ERROR_MESSAGES[exc.code]}", err=True)
        raise typer.Exit(code=2)

    if not engine.wait(timeout=RECOGNITION_TIMEOUT_S):
        typer.echo("Recognition timed out.", err=True)
        raise typer.Exit(code=1)
    if errors:
        code, message = errors[-1]
        typer.echo(f"{code}: {ERROR_MESSAGES.get(code, message)}", err=True)
        raise typer.Exit(code=1)

    text = engine.recognized_text
    typer.echo(text)
    if speak:
        _speak_and_wait(config, text, voice, rate)


@app.command()
def say(
    text: str = typer.Argument(...),
    voice: Optional[str] = typer.Option(None, help="Voice identifier."),
    rate: Optional[float] = typer.Option(None, help="Speech rate from 0.0 to 1.0."),
) -> None:
    """Speak TEXT with the configured voice and rate."""
    _speak_and_wait(load_config(), text, voice, rate)


@app.command()
def voices(language: str = typer.Option("en", help="Language prefix; empty for all voices.")) -> None:
    """List the installed voices."""
    catalog = build_voice_catalog()
    found = catalog.list_voices()
    if language:
        found = filter_by_language(found, language)
    for profile in found:
        typer.echo(f"{profile.identifier}\t{profile.name}\t{profile.language}")


@app.command()
def configure(
    api_key: Optional[str] = typer.Option(None, help="DashScope API key."),
    backend: Optional[str] = typer.Option(None, help="OCR backend: tesseract or dashscope."),
    lang: Optional[str] = typer.Option(None, help="Tesseract language(s)."),
    voice: Optional[str] = typer.Option(None, help="Default voice identifier."),
    rate: Optional[float] = typer.Option(None, help="Default speech rate (0.0-1.0)."),
    duck: Optional[bool] = typer.Option(None, "--duck/--no-duck", help="Lower other audio while speaking."),
) -> None:
    """Store defaults in the config file."""
    config = load_config()
    try:
        if api_key is not None:
            config.set_api_key(api_key)
        if backend is not None:
            config.set_ocr_backend(backend)
        if lang is not None:
            config.set_ocr_lang(lang)
        if voice is not None:
            config.set_voice_id(voice)
        if rate is not None:
            if not 0.0 <= rate <= 1.0:
                raise ValueError(ERROR_MESSAGES[INVALID_RATE])
            config.set_speech_rate(rate)
        if duck is not None:
            config.set_duck_others(duck)
    except ValueError as exc:
        raise typer.BadParameter(str(exc))
    typer.echo("Saved.")


def _speak_and_wait(config: ConfigStore, text: str, voice_id: Optional[str], rate: Optional[float]) -> None:
    catalog = build_voice_catalog()
    engine = build_playback_engine(config, catalog)
    done = threading.Event()

    def _on_state_change(from_state: PlaybackState, to_state: PlaybackState) -> None:
        if to_state == PlaybackState.STOPPED:
            done.set()

    engine.subscribe(_on_state_change)
    voice_id = voice_id or config.get_voice_id()
    voice = _lookup_voice(catalog, voice_id) if voice_id else None
    try:
        engine.speak(text, voice=voice, rate=config.get_speech_rate() if rate is None else rate)
    except InvalidRateError as exc:
        engine.close()
        typer.echo(f"{exc.code}: {exc}", err=True)
        raise typer.Exit(code=2)

    try:
        if engine.state != PlaybackState.STOPPED:
            done.wait()
    except KeyboardInterrupt:
        engine.stop()
    finally:
        engine.close()


def _lookup_voice(catalog: Pyttsx3VoiceCatalog, voice_id: str) -> VoiceProfile:
    found = catalog.find(voice_id)
    if found is not None:
        return found
    return VoiceProfile(identifier=voice_id, name=voice_id, language="")


def main() -> None:
    app()


if __name__ == "__main__":
    main()
