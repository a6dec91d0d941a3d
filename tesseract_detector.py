"""Local text detector backed by Tesseract."""

from __future__ import annotations

import logging
from collections import defaultdict
from typing import Any

from errors import RECOGNITION_FAILED, DetectionError
from models import RecognitionOptions, TextCandidate

try:
    import pytesseract
    from pytesseract import Output
except Exception:  # pragma: no cover
    pytesseract = None  # type: ignore
    Output = None  # type: ignore

logger = logging.getLogger(__name__)

LineKey = tuple[int, int, int]


class TesseractTextDetector:
    """
    Runs ``image_to_data`` and groups words into lines keyed by
    (block, paragraph, line).  Each line becomes one candidate whose single
    alternative carries the mean word confidence (0..1).
    """

    def __init__(self, lang: str = "eng", page_segmentation_mode: int = 3) -> None:
        self.lang = lang
        self.page_segmentation_mode = page_segmentation_mode

    def build_config(self, options: RecognitionOptions) -> str:
        # oem 1 = LSTM only; oem 3 lets tesseract pick whatever is installed
        parts = [f"--oem {1 if options.accurate else 3}", f"--psm {self.page_segmentation_mode}"]
        dawg = 1 if options.language_correction else 0
        parts.append(f"-c load_system_dawg={dawg}")
        parts.append(f"-c load_freq_dawg={dawg}")
        return " ".join(parts)

    def detect(self, image: Any, options: RecognitionOptions) -> list[TextCandidate]:
        if pytesseract is None:
            raise DetectionError("pytesseract is not installed", code=RECOGNITION_FAILED)
        config = self.build_config(options)
        try:
            data = pytesseract.image_to_data(
                image, output_type=Output.DICT, lang=self.lang, config=config
            )
        except Exception as exc:
            raise DetectionError(f"tesseract failed: {exc}", code=RECOGNITION_FAILED) from exc
        return self._group_lines(data)

    def _group_lines(self, data: dict) -> list[TextCandidate]:
        words: dict[LineKey, list[str]] = defaultdict(list)
        confidences: dict[LineKey, list[float]] = defaultdict(list)

        for i in range(len(data.get("text", []))):
            txt = str(data["text"][i]).strip()
            if not txt:
                continue
            key = (int(data["block_num"][i]), int(data["par_num"][i]), int(data["line_num"][i]))
            words[key].append(txt)
            try:
                conf = float(data["conf"][i])
            except (KeyError, TypeError, ValueError):
                conf = -1.0
            if conf >= 0:
                confidences[key].append(conf)

        candidates = []
        for key in sorted(words):
            confs = confidences[key]
            mean = sum(confs) / len(confs) / 100.0 if confs else 0.0
            candidates.append(TextCandidate.single(" ".join(words[key]), mean))
        logger.debug("tesseract produced %d line(s)", len(candidates))
        return candidates
