"""Diagnostics runner: recognise one photo and print the result as JSON.

Usage:
    python -m weighvision {plate|weight|weights|product} IMAGE [CONFIG]
"""

import asyncio
import json
import logging
import sys
from pathlib import Path

from weighvision.config import load_config
from weighvision.recognition.engine import RecognitionEngine
from weighvision.recognizer import OfflineRecognizer
from weighvision.results import ExtractionResult

logger = logging.getLogger("weighvision")

MODES = ("plate", "weight", "weights", "product")


def _log_progress(percent: float) -> None:
    logger.info("Progress: %.0f%%", percent)


async def run(
    mode: str,
    image_path: str | Path,
    config_path: str | Path = "config.toml",
    engine: RecognitionEngine | None = None,
) -> ExtractionResult:
    if mode not in MODES:
        raise ValueError(f"Unknown mode: {mode!r}. Must be one of {', '.join(MODES)}.")

    config = load_config(config_path)
    recognizer = OfflineRecognizer.from_config(config, engine=engine)
    data = Path(image_path).read_bytes()

    if mode == "plate":
        return await recognizer.recognize_plate(data, progress=_log_progress)
    if mode == "weight":
        return await recognizer.recognize_weight(data)
    if mode == "weights":
        return await recognizer.recognize_both_weights(data)
    return await recognizer.recognize_product(data)


def main() -> None:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
    )

    if len(sys.argv) < 3 or sys.argv[1] not in MODES:
        print(f"usage: python -m weighvision {{{'|'.join(MODES)}}} IMAGE [CONFIG]", file=sys.stderr)
        sys.exit(2)

    mode, image_path = sys.argv[1], sys.argv[2]
    config_path = sys.argv[3] if len(sys.argv) > 3 else "config.toml"
    result = asyncio.run(run(mode, image_path, config_path))
    print(json.dumps(result.to_dict(), ensure_ascii=False, indent=2))
    sys.exit(0 if result.success else 1)


if __name__ == "__main__":
    main()
