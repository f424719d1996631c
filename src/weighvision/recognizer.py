"""Offline recognition service: photo in, typed extraction result out."""

from __future__ import annotations

import asyncio
import logging
import string
from typing import Any

import numpy as np

from weighvision.errors import EngineError, InvalidInputError
from weighvision.imaging import variants as variant_gen
from weighvision.imaging.raster import RasterImage, load_source
from weighvision.imaging.variants import DEFAULT_MODE_PARAMS, Mode, ModeParams, PreprocessedVariant
from weighvision.parsing.plate import resolve_plate
from weighvision.parsing.product import DEFAULT_VOCABULARY, detect_product
from weighvision.parsing.weight import DEFAULT_LIMITS, WeightLimits, extract_both_weights, extract_weight
from weighvision.recognition.engine import (
    PageSegmentation,
    ProgressCallback,
    RecognitionConfig,
    RecognitionEngine,
    report,
)
from weighvision.recognition.orchestrator import MultiPassOrchestrator, RecognitionPass
from weighvision.recognition.tesseract import TesseractEngine
from weighvision.results import DualWeightResult, PlateResult, ProductResult, WeightResult

logger = logging.getLogger(__name__)

ImageInput = RasterImage | np.ndarray | bytes | bytearray | None

PLATE_SEGMENTATIONS = (
    PageSegmentation.SINGLE_LINE,
    PageSegmentation.SINGLE_BLOCK,
    PageSegmentation.SPARSE_TEXT,
)
PLATE_WHITELIST = string.ascii_uppercase + string.digits

# Share of the plate progress bar spent on preprocessing, then on passes
PREPROCESSING_PROGRESS = 15.0
PASSES_PROGRESS = 75.0

CANCELLED = "cancelled"


class OfflineRecognizer:
    """Stateless recognition pipeline over a black-box text engine.

    Holds only configuration; every call builds its own variants and passes
    and returns a result object, never raising for bad input, engine
    failures or cancellation.

    Args:
        engine: Text-recognition backend.
        language: Engine language for plate and weight passes.
        product_language: Engine language for the product pass.
        engine_mode: Engine mode passed through to every config.
        plate_params: Adaptive-variant tuning for plates.
        weight_params: Adaptive-variant tuning for weight displays.
        plate_whitelist: Characters the plate passes may emit.
        limits: Weight plausibility ranges.
        vocabulary: Known cargo names.
        concurrency: Maximum plate passes in flight.
        keep_debug_images: Attach the plate variants to plate results.
    """

    def __init__(
        self,
        engine: RecognitionEngine,
        language: str = "por",
        product_language: str = "por",
        engine_mode: int = 1,
        plate_params: ModeParams = DEFAULT_MODE_PARAMS[Mode.PLATE],
        weight_params: ModeParams = DEFAULT_MODE_PARAMS[Mode.WEIGHT],
        plate_whitelist: str = PLATE_WHITELIST,
        limits: WeightLimits = DEFAULT_LIMITS,
        vocabulary: tuple[str, ...] = DEFAULT_VOCABULARY,
        concurrency: int = 1,
        keep_debug_images: bool = False,
    ) -> None:
        self.engine = engine
        self.language = language
        self.product_language = product_language
        self.engine_mode = engine_mode
        self.plate_params = plate_params
        self.weight_params = weight_params
        self.plate_whitelist = plate_whitelist
        self.limits = limits
        self.vocabulary = vocabulary
        self.keep_debug_images = keep_debug_images
        self._orchestrator = MultiPassOrchestrator(engine, concurrency=concurrency)
        self._single = MultiPassOrchestrator(engine, concurrency=1)

    @classmethod
    def from_config(cls, config: dict[str, Any], engine: RecognitionEngine | None = None) -> OfflineRecognizer:
        """Build from a loaded config dict (see ``weighvision.config.DEFAULTS``)."""
        engine_cfg = config["engine"]
        if engine is None:
            engine = TesseractEngine(
                tesseract_cmd=engine_cfg["tesseract_cmd"],
                timeout_s=engine_cfg["timeout_s"],
            )

        plate = config["plate"]
        weight = config["weight"]
        return cls(
            engine,
            language=engine_cfg["language"],
            product_language=engine_cfg["product_language"],
            engine_mode=engine_cfg["engine_mode"],
            plate_params=ModeParams(plate["scale"], plate["block_size"], plate["offset"], plate["pad_margin"]),
            weight_params=ModeParams(weight["scale"], weight["block_size"], weight["offset"], weight["pad_margin"]),
            plate_whitelist=plate["whitelist"],
            limits=WeightLimits(
                min_kg=weight["min_kg"],
                max_kg=weight["max_kg"],
                tare_max_kg=weight["tare_max_kg"],
                tonnes_min=weight["tonnes_min"],
                tonnes_max=weight["tonnes_max"],
            ),
            vocabulary=tuple(config["product"]["vocabulary"]),
            concurrency=plate["concurrency"],
            keep_debug_images=config["debug"]["keep_images"],
        )

    def plate_configs(self) -> list[RecognitionConfig]:
        return [
            RecognitionConfig(
                language=self.language,
                segmentation=segmentation,
                whitelist=self.plate_whitelist,
                engine_mode=self.engine_mode,
            )
            for segmentation in PLATE_SEGMENTATIONS
        ]

    def weight_config(self) -> RecognitionConfig:
        return RecognitionConfig(
            language=self.language,
            segmentation=PageSegmentation.SINGLE_BLOCK,
            engine_mode=self.engine_mode,
        )

    def product_config(self) -> RecognitionConfig:
        return RecognitionConfig(
            language=self.product_language,
            segmentation=PageSegmentation.AUTO,
            engine_mode=self.engine_mode,
        )

    # --- Plate ---

    async def recognize_plate(
        self,
        image: ImageInput,
        progress: ProgressCallback | None = None,
        cancel_event: asyncio.Event | None = None,
    ) -> PlateResult:
        """Read a Brazilian plate with 4 variants x 3 segmentation modes.

        Args:
            image: Decoded photo, RGB(A)/gray array, or encoded bytes.
            progress: Receives overall progress 0..100.
            cancel_event: Set it to abandon outstanding passes.
        """
        try:
            source = load_source(image)
        except InvalidInputError as exc:
            logger.warning("Plate recognition rejected input: %s", exc)
            return PlateResult(error=str(exc))

        variants = variant_gen.generate_variants(source, Mode.PLATE, self.plate_params)
        report(progress, PREPROCESSING_PROGRESS)
        debug_images = self._debug_images(variants)

        passes = await self._orchestrator.run(
            variants,
            self.plate_configs(),
            progress=progress,
            cancel_event=cancel_event,
            progress_start=PREPROCESSING_PROGRESS,
            progress_span=PASSES_PROGRESS,
        )
        outputs = [p.text for p in passes if p.ok]
        raw = "|".join(outputs)

        if cancel_event is not None and cancel_event.is_set():
            logger.info("Plate recognition cancelled after %d passes", len(passes))
            return PlateResult(raw=raw, error=CANCELLED, cancelled=True, debug_images=debug_images)

        try:
            _require_any_success(passes)
        except EngineError as exc:
            logger.error("Plate recognition failed: %s", exc)
            return PlateResult(raw=raw, error=str(exc), debug_images=debug_images)

        winner = resolve_plate(outputs)
        report(progress, 100)

        if winner is not None and not winner.valid:
            logger.debug("Best reading %s fails plate grammar (score %d)", winner.value, winner.score)
            winner = None

        if winner is None:
            logger.info("No plate found in %d passes", len(outputs))
            return PlateResult(raw=raw, debug_images=debug_images)

        logger.info(
            "Plate %s (%d/%d passes, score %d)",
            winner.value,
            winner.occurrences,
            len(outputs),
            winner.score,
        )
        return PlateResult(plate=winner.value, raw=raw, success=True, debug_images=debug_images)

    def _debug_images(self, variants: list[PreprocessedVariant]) -> dict[str, np.ndarray]:
        if not self.keep_debug_images:
            return {}
        return {v.name: v.image for v in variants if isinstance(v.image, np.ndarray)}

    # --- Single-pass modes ---

    async def _read_single(
        self,
        image: ImageInput,
        mode: Mode,
        cancel_event: asyncio.Event | None,
    ) -> RecognitionPass | None:
        """Run the one pass a weight or product call needs.

        Returns None when ``cancel_event`` won.

        Raises:
            InvalidInputError: Input rejected before the engine ran.
            EngineError: The pass failed.
        """
        source = load_source(image)
        if mode is Mode.PRODUCT:
            variant = variant_gen.original(source)
            config = self.product_config()
        else:
            variant = variant_gen.generate_variants(source, Mode.WEIGHT, self.weight_params)[0]
            config = self.weight_config()

        passes = await self._single.run([variant], [config], cancel_event=cancel_event)
        if not passes:
            return None
        _require_any_success(passes)
        return passes[0]

    async def recognize_weight(self, image: ImageInput, cancel_event: asyncio.Event | None = None) -> WeightResult:
        """Read one weight (kg) from a scale display."""
        try:
            record = await self._read_single(image, Mode.WEIGHT, cancel_event)
        except (InvalidInputError, EngineError) as exc:
            logger.warning("Weight recognition failed: %s", exc)
            return WeightResult(error=str(exc))
        if record is None:
            return WeightResult(error=CANCELLED, cancelled=True)

        weight = extract_weight(record.text, self.limits)
        logger.info("Weight reading: %s", weight)
        return WeightResult(weight=weight, raw=record.text, success=weight is not None)

    async def recognize_both_weights(
        self,
        image: ImageInput,
        cancel_event: asyncio.Event | None = None,
    ) -> DualWeightResult:
        """Read tare and gross (kg) from a display showing both."""
        try:
            record = await self._read_single(image, Mode.WEIGHT, cancel_event)
        except (InvalidInputError, EngineError) as exc:
            logger.warning("Dual weight recognition failed: %s", exc)
            return DualWeightResult(error=str(exc))
        if record is None:
            return DualWeightResult(error=CANCELLED, cancelled=True)

        tare, gross = extract_both_weights(record.text, self.limits)
        logger.info("Weight readings: tare=%s gross=%s", tare, gross)
        return DualWeightResult(
            tare=tare,
            gross=gross,
            raw=record.text,
            success=tare is not None or gross is not None,
        )

    async def recognize_product(self, image: ImageInput, cancel_event: asyncio.Event | None = None) -> ProductResult:
        """Spot a known cargo name anywhere in the unprocessed photo."""
        try:
            record = await self._read_single(image, Mode.PRODUCT, cancel_event)
        except (InvalidInputError, EngineError) as exc:
            logger.warning("Product recognition failed: %s", exc)
            return ProductResult(error=str(exc))
        if record is None:
            return ProductResult(error=CANCELLED, cancelled=True)

        product = detect_product(record.text, self.vocabulary)
        logger.info("Product: %s", product)
        return ProductResult(product=product, raw=record.text, success=product is not None)


def _require_any_success(passes: list[RecognitionPass]) -> None:
    """Raise EngineError when no pass produced text."""
    if passes and not any(p.ok for p in passes):
        errors = sorted({p.error or "unknown error" for p in passes})
        raise EngineError(f"Recognition engine unavailable: {'; '.join(errors)}")
