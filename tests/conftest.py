"""Shared fixtures: a scripted stand-in for the recognition engine."""

import asyncio

import numpy as np
import pytest

from weighvision.recognition.engine import EngineOutput, RecognitionEngine, report


class ScriptedEngine(RecognitionEngine):
    """Replays canned outputs in call order.

    Items may be strings, EngineOutput objects or exceptions (raised).
    Calls past the end of the script return ``default``.
    """

    def __init__(self, outputs=(), default: str = "") -> None:
        self.outputs = list(outputs)
        self.default = default
        self.calls: list[tuple[object, object]] = []
        self.progress_callbacks: list[object] = []

    async def recognize(self, image, config, progress=None):
        index = len(self.calls)
        self.calls.append((image, config))
        self.progress_callbacks.append(progress)
        report(progress, 0)
        await asyncio.sleep(0)

        item = self.outputs[index] if index < len(self.outputs) else self.default
        if isinstance(item, BaseException):
            raise item
        if isinstance(item, EngineOutput):
            return item
        report(progress, 100)
        return EngineOutput(text=item)


@pytest.fixture
def scripted_engine():
    """Factory for ScriptedEngine instances."""
    return ScriptedEngine


@pytest.fixture
def plate_photo() -> np.ndarray:
    """Synthetic RGB photo: seven dark glyph blocks on a light plate."""
    img = np.full((40, 140, 3), 225, dtype=np.uint8)
    for i in range(7):
        x = 8 + i * 18
        img[8:32, x : x + 10] = (25, 25, 30)
    return img
