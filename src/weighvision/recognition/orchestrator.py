"""Multi-pass recognition: variants x configs through a bounded worker pool."""

from __future__ import annotations

import asyncio
import itertools
import logging
from dataclasses import dataclass, field

from weighvision.imaging.variants import PreprocessedVariant
from weighvision.recognition.engine import (
    EngineOutput,
    ProgressCallback,
    RecognitionConfig,
    RecognitionEngine,
    report,
)

logger = logging.getLogger(__name__)


@dataclass
class RecognitionPass:
    """One (variant, config) engine call and what came back."""

    index: int
    variant: PreprocessedVariant = field(repr=False)
    config: RecognitionConfig
    text: str = ""
    confidence: float | None = None
    error: str | None = None
    progress: float = 0.0  # last value the engine reported for this pass

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def label(self) -> str:
        return f"{self.variant.name}/{self.config.describe()}"


class MultiPassOrchestrator:
    """Runs every (variant, config) pair against one engine.

    Passes are scheduled in variant-major order through a semaphore-bounded
    pool. Results are kept by pass index, so what the caller aggregates does
    not depend on completion order.

    Args:
        engine: Recognition backend shared by all passes.
        concurrency: Maximum passes in flight. 1 runs them strictly in sequence.
    """

    def __init__(self, engine: RecognitionEngine, concurrency: int = 1) -> None:
        if concurrency < 1:
            raise ValueError(f"concurrency must be at least 1, got {concurrency}")
        self.engine = engine
        self.concurrency = concurrency

    async def run(
        self,
        variants: list[PreprocessedVariant],
        configs: list[RecognitionConfig],
        progress: ProgressCallback | None = None,
        cancel_event: asyncio.Event | None = None,
        progress_start: float = 0.0,
        progress_span: float = 100.0,
    ) -> list[RecognitionPass]:
        """Run all passes and return the ones that completed, in pass order.

        A pass that fails is returned with ``error`` set; the remaining passes
        still run. Once ``cancel_event`` is set, passes not yet started are
        skipped and passes in flight are abandoned; neither is returned.

        Args:
            progress: Receives ``progress_start + done / total * progress_span``
                after each pass.
        """
        jobs = list(itertools.product(variants, configs))
        total = len(jobs)
        results: list[RecognitionPass | None] = [None] * total
        semaphore = asyncio.Semaphore(self.concurrency)
        completed = 0

        async def worker(index: int, variant: PreprocessedVariant, config: RecognitionConfig) -> None:
            nonlocal completed
            async with semaphore:
                if cancel_event is not None and cancel_event.is_set():
                    return
                record = await self._run_pass(index, variant, config, cancel_event)
            if record is None:
                return
            results[index] = record
            completed += 1
            report(progress, progress_start + completed / total * progress_span)

        await asyncio.gather(*(worker(i, v, c) for i, (v, c) in enumerate(jobs)))

        finished = [r for r in results if r is not None]
        failures = sum(1 for r in finished if not r.ok)
        logger.debug("%d/%d passes finished, %d failed", len(finished), total, failures)
        return finished

    async def _run_pass(
        self,
        index: int,
        variant: PreprocessedVariant,
        config: RecognitionConfig,
        cancel_event: asyncio.Event | None,
    ) -> RecognitionPass | None:
        record = RecognitionPass(index=index, variant=variant, config=config)

        try:
            output = await self._recognize(variant, config, cancel_event, _pass_progress(record))
        except Exception as exc:
            logger.exception("Pass %d (%s) raised", index, record.label)
            record.error = str(exc) or type(exc).__name__
            return record

        if output is None:
            logger.debug("Pass %d (%s) abandoned after cancellation", index, record.label)
            return None

        record.text = output.text
        record.confidence = output.confidence
        record.error = output.error
        if record.ok:
            logger.debug("Pass %d (%s): %r", index, record.label, output.text)
        else:
            logger.warning("Pass %d (%s) failed, skipping: %s", index, record.label, output.error)
        return record

    async def _recognize(
        self,
        variant: PreprocessedVariant,
        config: RecognitionConfig,
        cancel_event: asyncio.Event | None,
        progress: ProgressCallback,
    ) -> EngineOutput | None:
        """Await the engine, or return None if cancellation wins the race."""
        if cancel_event is None:
            return await self.engine.recognize(variant.image, config, progress)

        engine_task = asyncio.ensure_future(self.engine.recognize(variant.image, config, progress))
        cancel_task = asyncio.ensure_future(cancel_event.wait())
        try:
            done, _ = await asyncio.wait({engine_task, cancel_task}, return_when=asyncio.FIRST_COMPLETED)
        except asyncio.CancelledError:
            engine_task.cancel()
            raise
        finally:
            cancel_task.cancel()

        if engine_task in done:
            return engine_task.result()

        engine_task.cancel()
        # Let the engine unwind; its result is discarded
        await asyncio.gather(engine_task, return_exceptions=True)
        return None


def _pass_progress(record: RecognitionPass) -> ProgressCallback:
    """Engine-side progress for one pass: kept on the record and logged."""

    def on_progress(percent: float) -> None:
        record.progress = percent
        logger.debug("Pass %d (%s): %.0f%%", record.index, record.label, percent)

    return on_progress
