"""Tests for the Tesseract and DashScope text detectors."""

from __future__ import annotations

from unittest.mock import MagicMock, patch

import numpy as np
import pytest

from dashscope_detector import DashscopeTextDetector
from errors import AUTH_FAILED, NETWORK_ERROR, RECOGNITION_FAILED, DetectionError
from models import RecognitionOptions
from tesseract_detector import TesseractTextDetector

RASTER = np.full((4, 8, 3), 255, dtype=np.uint8)
OPTIONS = RecognitionOptions()


# ---------------------------------------------------------------
# Tesseract
# ---------------------------------------------------------------

def _tesseract_data() -> dict:
    # two words on line (1,1,2), one on (1,1,1), one on block 2, plus noise
    return {
        "text": ["", "world", "Hello", "again", "  ", "there"],
        "block_num": [1, 1, 1, 2, 1, 1],
        "par_num": [1, 1, 1, 1, 1, 1],
        "line_num": [0, 2, 1, 1, 1, 2],
        "conf": [-1, 80, 90, 70, -1, 60],
    }


@patch("tesseract_detector.pytesseract")
def test_tesseract_groups_words_into_ordered_lines(mock_tess: MagicMock) -> None:
    mock_tess.image_to_data.return_value = _tesseract_data()

    candidates = TesseractTextDetector(lang="eng").detect(RASTER, OPTIONS)

    assert [c.top() for c in candidates] == ["Hello", "world there", "again"]
    assert candidates[1].alternatives[0][1] == pytest.approx(0.7)


@patch("tesseract_detector.pytesseract")
def test_tesseract_passes_accuracy_and_correction_config(mock_tess: MagicMock) -> None:
    mock_tess.image_to_data.return_value = {"text": []}

    TesseractTextDetector(lang="eng+deu").detect(RASTER, OPTIONS)

    kwargs = mock_tess.image_to_data.call_args.kwargs
    assert kwargs["lang"] == "eng+deu"
    assert "--oem 1" in kwargs["config"]
    assert "load_system_dawg=1" in kwargs["config"]


def test_tesseract_config_without_correction() -> None:
    config = TesseractTextDetector().build_config(RecognitionOptions(accurate=False, language_correction=False))

    assert "--oem 3" in config
    assert "load_freq_dawg=0" in config


@patch("tesseract_detector.pytesseract")
def test_tesseract_failure_raises_detection_error(mock_tess: MagicMock) -> None:
    mock_tess.image_to_data.side_effect = RuntimeError("tesseract is not installed")

    with pytest.raises(DetectionError) as info:
        TesseractTextDetector().detect(RASTER, OPTIONS)

    assert info.value.code == RECOGNITION_FAILED


@patch("tesseract_detector.pytesseract", None)
def test_tesseract_missing_package() -> None:
    with pytest.raises(DetectionError, match="not installed"):
        TesseractTextDetector().detect(RASTER, OPTIONS)


# ---------------------------------------------------------------
# DashScope
# ---------------------------------------------------------------

def _reply(text: str) -> dict:
    return {
        "status_code": 200,
        "output": {"choices": [{"message": {"content": [{"text": text}]}}]},
    }


@patch("dashscope_detector.dashscope")
def test_dashscope_splits_reply_into_candidates(mock_ds: MagicMock) -> None:
    mock_ds.MultiModalConversation.call.return_value = _reply("First line\n\n  Second line  \n")

    candidates = DashscopeTextDetector(api_key="test-key").detect(RASTER, OPTIONS)

    assert [c.top() for c in candidates] == ["First line", "Second line"]
    kwargs = mock_ds.MultiModalConversation.call.call_args.kwargs
    assert kwargs["model"] == "qwen-vl-ocr"
    content = kwargs["messages"][0]["content"]
    assert content[0]["image"].startswith("data:image/png;base64,")
    assert "Fix obvious" in content[1]["text"]


@patch("dashscope_detector.dashscope")
@patch.dict("os.environ", {"DASHSCOPE_API_KEY": ""}, clear=False)
def test_dashscope_missing_api_key(mock_ds: MagicMock) -> None:
    with pytest.raises(DetectionError) as info:
        DashscopeTextDetector(api_key="").detect(RASTER, OPTIONS)

    assert info.value.code == AUTH_FAILED
    mock_ds.MultiModalConversation.call.assert_not_called()


@patch("dashscope_detector.dashscope")
def test_dashscope_network_error_is_retryable(mock_ds: MagicMock) -> None:
    mock_ds.MultiModalConversation.call.side_effect = ConnectionError("network timeout")

    with pytest.raises(DetectionError) as info:
        DashscopeTextDetector(api_key="test-key").detect(RASTER, OPTIONS)

    assert info.value.code == NETWORK_ERROR
    assert info.value.retryable is True


@patch("dashscope_detector.dashscope")
def test_dashscope_http_error_status_maps_to_auth(mock_ds: MagicMock) -> None:
    mock_ds.MultiModalConversation.call.return_value = {
        "status_code": 401,
        "code": "InvalidApiKey",
        "message": "Invalid API-key provided.",
    }

    with pytest.raises(DetectionError) as info:
        DashscopeTextDetector(api_key="bad-key").detect(RASTER, OPTIONS)

    assert info.value.code == AUTH_FAILED
    assert info.value.retryable is False


@patch("dashscope_detector.dashscope")
def test_dashscope_empty_reply_gives_no_candidates(mock_ds: MagicMock) -> None:
    mock_ds.MultiModalConversation.call.return_value = {"status_code": 200, "output": {"choices": []}}

    assert DashscopeTextDetector(api_key="test-key").detect(RASTER, OPTIONS) == []


@patch("dashscope_detector.dashscope", None)
def test_dashscope_not_installed() -> None:
    with pytest.raises(DetectionError, match="not installed"):
        DashscopeTextDetector(api_key="test-key").detect(RASTER, OPTIONS)
