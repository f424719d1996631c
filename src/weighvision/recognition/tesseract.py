"""Tesseract backend via pytesseract."""

from __future__ import annotations

import asyncio
import io
import logging
from typing import Any

import numpy as np
import pytesseract
from PIL import Image

from weighvision.recognition.engine import (
    EngineOutput,
    ProgressCallback,
    RecognitionConfig,
    RecognitionEngine,
    report,
)

logger = logging.getLogger(__name__)


def build_options(config: RecognitionConfig) -> str:
    """Translate a RecognitionConfig into a Tesseract command-line config string."""
    options = [f"--oem {config.engine_mode}", f"--psm {int(config.segmentation)}"]
    if config.whitelist:
        options.append(f"-c tessedit_char_whitelist={config.whitelist}")
    return " ".join(options)


def to_pil(image: np.ndarray | bytes) -> Image.Image:
    """Wrap an array or encoded bytes as a PIL image Tesseract can read."""
    if isinstance(image, (bytes, bytearray)):
        return Image.open(io.BytesIO(image))

    array = np.asarray(image, dtype=np.uint8)
    if array.ndim == 3 and array.shape[2] == 4:
        return Image.fromarray(array).convert("RGB")
    return Image.fromarray(array)


def assemble_text(data: dict[str, list[Any]]) -> tuple[str, float | None]:
    """Rebuild line-structured text and mean confidence from ``image_to_data`` output.

    Words are grouped by (block, paragraph, line) in the order Tesseract
    emitted them; lines are joined with newlines.
    """
    lines: dict[tuple[int, int, int], list[str]] = {}
    confidences: list[float] = []

    for i, word in enumerate(data.get("text", [])):
        word = (word or "").strip()
        if not word:
            continue

        key = (int(data["block_num"][i]), int(data["par_num"][i]), int(data["line_num"][i]))
        lines.setdefault(key, []).append(word)

        try:
            conf = float(data["conf"][i])
        except (KeyError, TypeError, ValueError):
            continue
        if conf >= 0:
            confidences.append(conf)

    text = "\n".join(" ".join(words) for words in lines.values())
    confidence = sum(confidences) / len(confidences) if confidences else None
    return text, confidence


class TesseractEngine(RecognitionEngine):
    """Runs Tesseract in a worker thread, one call per pass.

    Tesseract gives no incremental progress, so a pass reports 0 when it
    starts and 100 when it returns.

    Args:
        tesseract_cmd: Path to the tesseract binary. Empty means look it up on PATH.
        timeout_s: Per-call timeout passed to pytesseract. 0 disables it.
    """

    def __init__(self, tesseract_cmd: str = "", timeout_s: float = 0) -> None:
        if tesseract_cmd:
            pytesseract.pytesseract.tesseract_cmd = tesseract_cmd
        self.timeout_s = timeout_s
        logger.info("Tesseract engine using %s", tesseract_cmd or "binary on PATH")

    def _run(self, image: np.ndarray | bytes, config: RecognitionConfig) -> EngineOutput:
        data = pytesseract.image_to_data(
            to_pil(image),
            lang=config.language,
            config=build_options(config),
            output_type=pytesseract.Output.DICT,
            timeout=self.timeout_s,
        )
        text, confidence = assemble_text(data)
        return EngineOutput(text=text, confidence=confidence)

    async def recognize(
        self,
        image: np.ndarray | bytes,
        config: RecognitionConfig,
        progress: ProgressCallback | None = None,
    ) -> EngineOutput:
        report(progress, 0)
        try:
            output = await asyncio.to_thread(self._run, image, config)
        except (RuntimeError, OSError, ValueError) as exc:
            # TesseractError and timeouts are RuntimeErrors, a missing binary
            # or unreadable image is an OSError
            message = str(exc) or type(exc).__name__
            logger.warning("Tesseract failed (%s): %s", config.describe(), message)
            return EngineOutput(error=message)

        report(progress, 100)
        return output
