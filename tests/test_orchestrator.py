"""Tests for the multi-pass orchestrator."""

import asyncio

import numpy as np
import pytest

from weighvision.imaging.variants import PreprocessedVariant
from weighvision.recognition.engine import EngineOutput, PageSegmentation, RecognitionConfig, RecognitionEngine
from weighvision.recognition.orchestrator import MultiPassOrchestrator

CONFIGS = [
    RecognitionConfig(segmentation=PageSegmentation.SINGLE_LINE),
    RecognitionConfig(segmentation=PageSegmentation.SINGLE_BLOCK),
    RecognitionConfig(segmentation=PageSegmentation.SPARSE_TEXT),
]


def _variants(*names):
    return [PreprocessedVariant(name, np.zeros((2, 2), dtype=np.uint8)) for name in names]


class LabelEngine(RecognitionEngine):
    """Answers with the pass label after a per-label delay; tracks concurrency."""

    def __init__(self, delays=None):
        self.delays = delays or {}
        self.in_flight = 0
        self.max_in_flight = 0

    async def recognize(self, image, config, progress=None):
        label = f"{int(image[0, 0])}/{int(config.segmentation)}"
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(self.delays.get(label, 0.001))
        finally:
            self.in_flight -= 1
        return EngineOutput(text=label)


class TestMultiPassOrchestrator:
    @pytest.mark.asyncio
    async def test_runs_every_pair_in_variant_major_order(self, scripted_engine):
        engine = scripted_engine([f"t{i}" for i in range(12)])
        orchestrator = MultiPassOrchestrator(engine)

        passes = await orchestrator.run(_variants("a", "b", "c", "d"), CONFIGS)

        assert len(passes) == 12
        assert [p.index for p in passes] == list(range(12))
        assert [p.text for p in passes] == [f"t{i}" for i in range(12)]
        assert passes[0].label == "a/por/psm7"
        assert passes[4].label == "b/por/psm6"
        assert passes[11].label == "d/por/psm11"

    @pytest.mark.asyncio
    async def test_failed_pass_is_recorded_and_others_continue(self, scripted_engine):
        engine = scripted_engine(["one", EngineOutput(error="engine down"), RuntimeError("crash"), "four"])
        orchestrator = MultiPassOrchestrator(engine)

        passes = await orchestrator.run(_variants("a", "b"), CONFIGS[:2])

        assert len(engine.calls) == 4
        assert [p.ok for p in passes] == [True, False, False, True]
        assert passes[1].error == "engine down"
        assert passes[2].error == "crash"
        assert passes[3].text == "four"

    @pytest.mark.asyncio
    async def test_progress_after_each_pass(self, scripted_engine):
        orchestrator = MultiPassOrchestrator(scripted_engine())
        updates = []

        await orchestrator.run(
            _variants("a", "b"),
            CONFIGS[:2],
            progress=updates.append,
            progress_start=15.0,
            progress_span=75.0,
        )

        assert updates == pytest.approx([33.75, 52.5, 71.25, 90.0])

    @pytest.mark.asyncio
    async def test_engine_receives_per_pass_progress(self, scripted_engine):
        engine = scripted_engine(["ok", EngineOutput(error="engine down")])
        orchestrator = MultiPassOrchestrator(engine)

        passes = await orchestrator.run(_variants("a"), CONFIGS[:2])

        assert all(callback is not None for callback in engine.progress_callbacks)
        assert passes[0].progress == 100.0
        # The failed pass only reported its start
        assert passes[1].progress == 0.0

    @pytest.mark.asyncio
    async def test_per_pass_progress_with_cancel_event(self, scripted_engine):
        engine = scripted_engine(["ok"])
        passes = await MultiPassOrchestrator(engine).run(_variants("a"), CONFIGS[:1], cancel_event=asyncio.Event())

        assert engine.progress_callbacks[0] is not None
        assert passes[0].progress == 100.0

    @pytest.mark.asyncio
    async def test_sequential_by_default(self):
        engine = LabelEngine()
        await MultiPassOrchestrator(engine).run(_variants("a", "b"), CONFIGS)
        assert engine.max_in_flight == 1

    @pytest.mark.asyncio
    async def test_concurrency_is_bounded(self):
        engine = LabelEngine()
        variants = [PreprocessedVariant(str(i), np.full((2, 2), i, dtype=np.uint8)) for i in range(4)]

        await MultiPassOrchestrator(engine, concurrency=3).run(variants, CONFIGS)

        assert 1 < engine.max_in_flight <= 3

    @pytest.mark.asyncio
    async def test_result_order_independent_of_completion_order(self):
        variants = [PreprocessedVariant(str(i), np.full((2, 2), i, dtype=np.uint8)) for i in range(2)]
        # Earlier passes finish last
        delays = {"0/7": 0.04, "0/6": 0.03, "0/11": 0.02, "1/7": 0.01, "1/6": 0.0, "1/11": 0.0}
        engine = LabelEngine(delays)

        passes = await MultiPassOrchestrator(engine, concurrency=6).run(variants, CONFIGS)

        assert [p.text for p in passes] == ["0/7", "0/6", "0/11", "1/7", "1/6", "1/11"]

    @pytest.mark.asyncio
    async def test_preset_cancel_runs_nothing(self, scripted_engine):
        engine = scripted_engine(["x"] * 12)
        cancel = asyncio.Event()
        cancel.set()

        passes = await MultiPassOrchestrator(engine).run(_variants("a", "b"), CONFIGS, cancel_event=cancel)

        assert passes == []
        assert engine.calls == []

    @pytest.mark.asyncio
    async def test_cancel_abandons_in_flight_pass(self):
        cancel = asyncio.Event()

        class CancellingEngine(RecognitionEngine):
            def __init__(self):
                self.calls = 0
                self.interrupted = False

            async def recognize(self, image, config, progress=None):
                self.calls += 1
                if self.calls == 1:
                    return EngineOutput(text="first")
                cancel.set()
                try:
                    await asyncio.sleep(10)
                except asyncio.CancelledError:
                    self.interrupted = True
                    raise
                return EngineOutput(text="never")

        engine = CancellingEngine()
        updates = []
        passes = await MultiPassOrchestrator(engine).run(
            _variants("a", "b"), CONFIGS, progress=updates.append, cancel_event=cancel
        )

        assert [p.text for p in passes] == ["first"]
        assert engine.calls == 2
        assert engine.interrupted is True
        assert len(updates) == 1

    @pytest.mark.asyncio
    async def test_no_variants(self, scripted_engine):
        assert await MultiPassOrchestrator(scripted_engine()).run([], CONFIGS) == []

    def test_rejects_zero_concurrency(self, scripted_engine):
        with pytest.raises(ValueError):
            MultiPassOrchestrator(scripted_engine(), concurrency=0)
