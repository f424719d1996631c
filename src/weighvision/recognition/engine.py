"""Contract between the pipeline and a black-box text-recognition engine."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import IntEnum
from typing import Callable

import numpy as np

ProgressCallback = Callable[[float], None]


class PageSegmentation(IntEnum):
    """Expected text layout. Values follow Tesseract's ``--psm`` numbering."""

    AUTO = 3
    SINGLE_BLOCK = 6
    SINGLE_LINE = 7
    SPARSE_TEXT = 11


@dataclass(frozen=True)
class RecognitionConfig:
    """Engine settings for one pass."""

    language: str = "por"
    segmentation: PageSegmentation = PageSegmentation.SINGLE_BLOCK
    whitelist: str | None = None
    engine_mode: int = 1  # LSTM only

    def describe(self) -> str:
        return f"{self.language}/psm{int(self.segmentation)}"


@dataclass(frozen=True)
class EngineOutput:
    """What one engine call produced.

    ``error`` is set when the engine could not run; an empty ``text`` with
    no error means it ran and found nothing.
    """

    text: str = ""
    confidence: float | None = None  # mean word confidence, 0..100
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


class RecognitionEngine(ABC):
    """Interface for text-recognition backends.

    Implementations must report failures through ``EngineOutput.error``
    instead of raising, and must not correct or filter the text they read.
    """

    @abstractmethod
    async def recognize(
        self,
        image: np.ndarray | bytes,
        config: RecognitionConfig,
        progress: ProgressCallback | None = None,
    ) -> EngineOutput:
        """Read text from a document image (or an encoded photo).

        Args:
            image: uint8 array (gray, RGB or RGBA) or encoded image bytes.
            config: Language, segmentation and whitelist for this pass.
            progress: Receives this pass's own progress on a 0..100 scale.
        """
        raise NotImplementedError


def report(progress: ProgressCallback | None, percent: float) -> None:
    """Send a clamped 0..100 value to an optional progress callback."""
    if progress is not None:
        progress(max(0.0, min(100.0, float(percent))))
