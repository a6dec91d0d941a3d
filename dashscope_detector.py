"""Cloud text detector using DashScope qwen-vl-ocr.

The model takes one image (here a PNG data URL) plus an instruction and
answers with the transcribed text.  Every non-blank line of the answer is
returned as one candidate, in the order the model wrote them.
"""

from __future__ import annotations

import logging
import os
from http import HTTPStatus
from typing import Any

from errors import AUTH_FAILED, NETWORK_ERROR, RECOGNITION_FAILED, DetectionError
from imaging import raster_to_png_base64
from models import RecognitionOptions, TextCandidate

try:
    import dashscope
except Exception:  # pragma: no cover
    dashscope = None  # type: ignore

logger = logging.getLogger(__name__)

_BASE_PROMPT = "Read all text in the image line by line in reading order. Output only the text."
_CORRECTION_PROMPT = " Fix obvious character recognition mistakes using the surrounding words."


class DashscopeTextDetector:
    def __init__(
        self,
        api_key: str,
        model: str = "qwen-vl-ocr",
        request_timeout_s: float = 30.0,
    ) -> None:
        self._api_key = api_key
        self._model = model
        self._request_timeout_s = request_timeout_s

    def build_prompt(self, options: RecognitionOptions) -> str:
        prompt = _BASE_PROMPT
        if options.language_correction:
            prompt += _CORRECTION_PROMPT
        return prompt

    def detect(self, image: Any, options: RecognitionOptions) -> list[TextCandidate]:
        if dashscope is None:
            raise DetectionError("dashscope is not installed", code=RECOGNITION_FAILED)

        api_key = self._api_key or os.getenv("DASHSCOPE_API_KEY", "")
        if not api_key:
            raise DetectionError("No API key configured", code=AUTH_FAILED)

        data_url = "data:image/png;base64," + raster_to_png_base64(image)
        try:
            response = dashscope.MultiModalConversation.call(
                api_key=api_key,
                model=self._model,
                messages=[
                    {
                        "role": "user",
                        "content": [{"image": data_url}, {"text": self.build_prompt(options)}],
                    }
                ],
                result_format="message",
                timeout=self._request_timeout_s,
            )
        except Exception as exc:
            raise self._to_error(exc) from exc

        status = self._status_code(response)
        if status != HTTPStatus.OK:
            message = f"{status} {self._field(response, 'code')}: {self._field(response, 'message')}"
            raise self._to_error(RuntimeError(message))

        text = self._extract_text(response)
        lines = [line.strip() for line in text.splitlines() if line.strip()]
        logger.debug("dashscope returned %d line(s)", len(lines))
        return [TextCandidate.single(line) for line in lines]

    def _status_code(self, response: object) -> int:
        value = self._field(response, "status_code")
        try:
            return int(value) if value not in (None, "") else HTTPStatus.OK
        except (TypeError, ValueError):
            return HTTPStatus.OK

    def _field(self, response: object, name: str) -> Any:
        if isinstance(response, dict):
            return response.get(name)
        return getattr(response, name, None)

    def _extract_text(self, response: object) -> str:
        """Pull the answer text out of a dashscope message-format response."""
        output = self._field(response, "output") or {}
        choices = output.get("choices", []) if isinstance(output, dict) else []
        if not choices:
            return ""
        message = choices[0].get("message", {})
        content = message.get("content", [])
        if isinstance(content, str):
            return content
        return "\n".join(
            str(part.get("text", "")) for part in content if isinstance(part, dict) and "text" in part
        )

    def _to_error(self, exc: Exception) -> DetectionError:
        """Map an SDK/network exception to a detection error."""
        message = str(exc)
        low = message.lower()
        if "401" in low or "403" in low or "auth" in low or "api key" in low:
            code = AUTH_FAILED
            retryable = False
        elif "timeout" in low or "network" in low or "connection" in low:
            code = NETWORK_ERROR
            retryable = True
        else:
            code = RECOGNITION_FAILED
            retryable = True
        return DetectionError(message, code=code, retryable=retryable)
