import asyncio

import pytest

from core.engine import UnloadError
from core.events import subscribe
from core.lifecycle import ALL_CATEGORIES, Category, ModelOrchestrator
from core.registry.defaults import (
    LLM_MODEL_ID,
    STT_MODEL_ID,
    TTS_MODEL_ID,
    VLM_MODEL_ID,
)

from gateway_fakes import FakeGateway, default_registry

ALL_IDS = {LLM_MODEL_ID, STT_MODEL_ID, TTS_MODEL_ID, VLM_MODEL_ID}


def _loaded_orchestrator(gw: FakeGateway) -> ModelOrchestrator:
    orch = ModelOrchestrator(gw, default_registry())

    async def run():
        for category in ALL_CATEGORIES:
            await orch.download_and_load(category)

    asyncio.run(run())
    assert all(orch.state(c).loaded for c in ALL_CATEGORIES)
    return orch


def test_unload_all_attempts_every_category_in_order():
    gw = FakeGateway(present=ALL_IDS)
    orch = _loaded_orchestrator(gw)
    asyncio.run(orch.unload_all())
    assert gw.called("unload") == [("unload", c) for c in ALL_CATEGORIES]
    assert not any(orch.state(c).loaded for c in ALL_CATEGORIES)
    assert orch.error is None


def test_unload_all_swallows_multimodal_failure():
    gw = FakeGateway(present=ALL_IDS)
    orch = _loaded_orchestrator(gw)
    gw.unload_errors[Category.VLM] = UnloadError("projector busy")
    asyncio.run(orch.unload_all())
    assert len(gw.called("unload")) == 4
    assert orch.error is None
    # ground truth: the engine still holds the VLM runtime
    assert orch.state(Category.VLM).loaded is True
    assert orch.state(Category.LLM).loaded is False


def test_unload_all_aggregates_voice_failures_only():
    gw = FakeGateway(present=ALL_IDS)
    orch = _loaded_orchestrator(gw)
    gw.unload_errors[Category.LLM] = UnloadError("llm stuck")
    gw.unload_errors[Category.TTS] = UnloadError("tts stuck")
    gw.unload_errors[Category.VLM] = UnloadError("vlm stuck")
    seen = []
    unsub = subscribe(lambda n, p: seen.append((n, p)))
    try:
        asyncio.run(orch.unload_all())
    finally:
        unsub()
    assert len(gw.called("unload")) == 4
    assert orch.error == (
        "Failed to unload models: LLM: llm stuck; TTS: tts stuck"
    )
    assert "vlm" not in orch.error.lower()
    assert orch.state(Category.LLM).loaded is True
    assert orch.state(Category.STT).loaded is False
    failed = {p["category"]: p for n, p in seen if n == "ModelUnloadFailed"}
    assert set(failed) == {"llm", "tts", "vlm"}
    assert failed["vlm"]["suppressed"] is True
    assert failed["llm"]["suppressed"] is False
    unloaded = [p["category"] for n, p in seen if n == "ModelUnloaded"]
    assert unloaded == ["stt"]


def test_unload_all_clears_previous_error_first():
    gw = FakeGateway(present=ALL_IDS)
    orch = _loaded_orchestrator(gw)
    orch.status.raise_error("LLM download failed: old")
    asyncio.run(orch.unload_all())
    assert orch.error is None


def test_clear_error_touches_nothing_else():
    gw = FakeGateway(present={LLM_MODEL_ID})
    orch = ModelOrchestrator(gw, default_registry())
    asyncio.run(orch.download_and_load(Category.LLM))
    orch.status.raise_error("boom")
    before = orch.snapshot()["categories"]
    orch.clear_error()
    assert orch.error is None
    assert orch.snapshot()["categories"] == before
    assert gw.called("unload") == []


def test_readiness_follows_loaded_state():
    gw = FakeGateway(present=ALL_IDS)
    orch = ModelOrchestrator(gw, default_registry())

    async def run():
        assert await orch.is_ready("chat") is False
        await orch.download_and_load(Category.LLM)
        assert await orch.is_ready("chat") is True
        assert await orch.is_ready("voice_agent") is False
        await orch.download_and_load(Category.STT)
        await orch.download_and_load(Category.TTS)
        assert await orch.is_ready("voice_agent") is True
        gw.composite_ready = False
        assert await orch.is_ready("voice_agent") is False
        return await orch.readiness()

    ready = asyncio.run(run())
    assert ready == {
        "chat": True,
        "transcription": True,
        "speech": True,
        "vision": False,
        "voice_agent": False,
    }


def test_composite_check_only_for_composite_capabilities():
    gw = FakeGateway(present=ALL_IDS)
    orch = ModelOrchestrator(gw, default_registry())

    async def run():
        await orch.download_and_load(Category.LLM)
        await orch.is_ready("chat")

    asyncio.run(run())
    assert gw.called("is_composite_ready") == []


def test_unknown_capability_raises_key_error():
    orch = ModelOrchestrator(FakeGateway(), default_registry())
    with pytest.raises(KeyError):
        asyncio.run(orch.is_ready("teleport"))


def test_refresh_reconciles_drift():
    gw = FakeGateway(present={LLM_MODEL_ID})
    orch = ModelOrchestrator(gw, default_registry())
    asyncio.run(orch.download_and_load(Category.LLM))
    # engine dropped the runtime behind our back
    gw.loaded.clear()
    gw.loaded[Category.STT] = STT_MODEL_ID
    asyncio.run(orch.refresh())
    assert orch.state(Category.LLM).loaded is False
    assert orch.state(Category.STT).loaded is True


def test_is_downloaded_queries_gateway():
    gw = FakeGateway(present={VLM_MODEL_ID})
    orch = ModelOrchestrator(gw, default_registry())
    assert asyncio.run(orch.is_downloaded(Category.VLM)) is True
    assert asyncio.run(orch.is_downloaded("llm")) is False
