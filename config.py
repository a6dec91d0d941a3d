"""Simple JSON-based config store."""

from __future__ import annotations

import json
import os
from pathlib import Path

from models import DEFAULT_RATE

OCR_BACKENDS = ("tesseract", "dashscope")


class JsonConfigStore:
    def __init__(self, path: Path | None = None) -> None:
        self._path = path or Path.home() / ".config" / "snapspeak" / "config.json"
        self._path.parent.mkdir(parents=True, exist_ok=True)

    def get_api_key(self) -> str:
        data = self._read_all()
        return str(data.get("api_key", "") or os.getenv("DASHSCOPE_API_KEY", ""))

    def set_api_key(self, key: str) -> None:
        self._set("api_key", key)

    def get_ocr_backend(self) -> str:
        value = str(self._read_all().get("ocr_backend", "tesseract"))
        return value if value in OCR_BACKENDS else "tesseract"

    def set_ocr_backend(self, backend: str) -> None:
        if backend not in OCR_BACKENDS:
            raise ValueError(f"unknown OCR backend: {backend}")
        self._set("ocr_backend", backend)

    def get_ocr_lang(self) -> str:
        return str(self._read_all().get("ocr_lang", "eng"))

    def set_ocr_lang(self, lang: str) -> None:
        self._set("ocr_lang", lang)

    def get_voice_id(self) -> str:
        return str(self._read_all().get("voice_id", ""))

    def set_voice_id(self, voice_id: str) -> None:
        self._set("voice_id", voice_id)

    def get_speech_rate(self) -> float:
        try:
            value = float(self._read_all().get("speech_rate", DEFAULT_RATE))
        except (TypeError, ValueError):
            return DEFAULT_RATE
        return value if 0.0 <= value <= 1.0 else DEFAULT_RATE

    def set_speech_rate(self, rate: float) -> None:
        self._set("speech_rate", float(rate))

    def get_duck_others(self) -> bool:
        return bool(self._read_all().get("duck_others", True))

    def set_duck_others(self, duck: bool) -> None:
        self._set("duck_others", bool(duck))

    def _set(self, key: str, value: object) -> None:
        data = self._read_all()
        data[key] = value
        self._write_all(data)

    def _read_all(self) -> dict:
        if not self._path.exists():
            return {}
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, OSError):
            return {}
        return data if isinstance(data, dict) else {}

    def _write_all(self, data: dict) -> None:
        self._path.write_text(json.dumps(data, ensure_ascii=False, indent=2), encoding="utf-8")
