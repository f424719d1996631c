"""Typed results returned by every recognition call."""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from typing import Any

import numpy as np


@dataclass
class ExtractionResult:
    """Fields shared by every result.

    ``raw`` holds the engine text of every pass the engine answered,
    joined with ``|``. ``error`` is set when the engine could not run, the input was
    rejected or the call was cancelled; a plain miss leaves it None.
    ``source`` is a provenance tag for the caller to fill in (for example
    when racing a network service); this pipeline never sets it.
    """

    raw: str = ""
    success: bool = False
    error: str | None = None
    cancelled: bool = False
    source: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Plain JSON-friendly representation (debug images excluded)."""
        return {f.name: getattr(self, f.name) for f in fields(self) if f.metadata.get("serialize", True)}


@dataclass
class PlateResult(ExtractionResult):
    plate: str | None = None
    debug_images: dict[str, np.ndarray] = field(
        default_factory=dict, repr=False, compare=False, metadata={"serialize": False}
    )


@dataclass
class WeightResult(ExtractionResult):
    weight: int | None = None


@dataclass
class DualWeightResult(ExtractionResult):
    tare: int | None = None
    gross: int | None = None


@dataclass
class ProductResult(ExtractionResult):
    product: str | None = None
