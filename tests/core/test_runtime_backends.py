import sys
import types
from pathlib import Path

import pytest

from core.engine import LoadError
from core.engine.backends import (
    LlamaCppBackend,
    OnnxRuntimeBackend,
    _resolve_n_gpu_layers,
)
from core.registry import (
    InferenceFramework,
    Modality,
    ModelDescriptor,
    ModelFile,
)


def _llm() -> ModelDescriptor:
    return ModelDescriptor.single(
        id="llm",
        name="llm",
        url="https://h/model.gguf",
        modality=Modality.LANGUAGE,
        framework=InferenceFramework.LLAMA_CPP,
    )


def _vlm() -> ModelDescriptor:
    return ModelDescriptor(
        id="vlm",
        name="vlm",
        modality=Modality.MULTIMODAL,
        framework=InferenceFramework.LLAMA_CPP,
        files=[
            ModelFile(
                url="https://h/mmproj-f16.gguf", filename="mmproj-f16.gguf"
            ),
            ModelFile(url="https://h/weights.gguf", filename="weights.gguf"),
        ],
    )


def _fake_llama(monkeypatch, fail_on_gpu: bool = False):
    created = []

    class Llama:
        def __init__(self, **kwargs):
            if fail_on_gpu and kwargs.get("n_gpu_layers", 0) != 0:
                raise RuntimeError("no gpu")
            created.append(kwargs)
            self.closed = False

        def close(self):
            self.closed = True

    class Llava15ChatHandler:
        def __init__(self, clip_model_path, verbose=False):
            self.clip_model_path = clip_model_path

    mod = types.ModuleType("llama_cpp")
    mod.Llama = Llama
    fmt = types.ModuleType("llama_cpp.llama_chat_format")
    fmt.Llava15ChatHandler = Llava15ChatHandler
    monkeypatch.setitem(sys.modules, "llama_cpp", mod)
    monkeypatch.setitem(sys.modules, "llama_cpp.llama_chat_format", fmt)
    return created


def test_split_files_finds_projector():
    assert LlamaCppBackend.split_files(_llm()) == ("model.gguf", None)
    assert LlamaCppBackend.split_files(_vlm()) == (
        "weights.gguf",
        "mmproj-f16.gguf",
    )


@pytest.mark.parametrize(
    "raw,expected",
    [("auto", -1), ("", None), (None, None), ("12", 12), (7, 7), ("x", None)],
)
def test_resolve_n_gpu_layers(raw, expected):
    assert _resolve_n_gpu_layers(raw) == expected


def test_missing_weights_is_file_not_found(tmp_path: Path):
    with pytest.raises(LoadError) as ei:
        LlamaCppBackend().load(_llm(), tmp_path)
    assert ei.value.error_type == "file-not-found"


def test_missing_runtime_library(tmp_path: Path, monkeypatch):
    (tmp_path / "model.gguf").write_bytes(b"w")
    monkeypatch.setitem(sys.modules, "llama_cpp", None)
    with pytest.raises(LoadError) as ei:
        LlamaCppBackend().load(_llm(), tmp_path)
    assert ei.value.error_type == "runtime-missing"


def test_llama_load_and_close(tmp_path: Path, monkeypatch):
    created = _fake_llama(monkeypatch)
    (tmp_path / "model.gguf").write_bytes(b"w")
    backend = LlamaCppBackend(n_ctx=512, n_gpu_layers=0, n_threads=2)
    handle = backend.load(_llm(), tmp_path)
    assert created[0]["model_path"] == str(tmp_path / "model.gguf")
    assert created[0]["n_ctx"] == 512
    assert created[0]["n_threads"] == 2
    runtime = handle.runtime
    backend.unload(handle)
    assert runtime.closed is True
    assert handle.runtime is None


def test_gpu_failure_falls_back_to_cpu(tmp_path: Path, monkeypatch):
    created = _fake_llama(monkeypatch, fail_on_gpu=True)
    (tmp_path / "model.gguf").write_bytes(b"w")
    handle = LlamaCppBackend(n_gpu_layers="auto").load(_llm(), tmp_path)
    assert created[-1]["n_gpu_layers"] == 0
    assert handle.metadata["n_gpu_layers"] == 0


def test_multimodal_uses_projector(tmp_path: Path, monkeypatch):
    created = _fake_llama(monkeypatch)
    (tmp_path / "weights.gguf").write_bytes(b"w")
    (tmp_path / "mmproj-f16.gguf").write_bytes(b"p")
    handle = LlamaCppBackend().load(_vlm(), tmp_path)
    handler = created[0]["chat_handler"]
    assert handler.clip_model_path == str(tmp_path / "mmproj-f16.gguf")
    assert created[0]["model_path"] == str(tmp_path / "weights.gguf")
    assert len(handle.paths) == 2


def _stt() -> ModelDescriptor:
    return ModelDescriptor.single(
        id="stt",
        name="stt",
        url="https://h/bundle.tar.gz",
        modality=Modality.SPEECH_RECOGNITION,
        framework=InferenceFramework.ONNX,
    )


def test_onnx_sessions_per_file(tmp_path: Path, monkeypatch):
    opened = []

    class InferenceSession:
        def __init__(self, path, providers=None):
            opened.append((Path(path).name, providers))

    mod = types.ModuleType("onnxruntime")
    mod.InferenceSession = InferenceSession
    monkeypatch.setitem(sys.modules, "onnxruntime", mod)
    bundle = tmp_path / "bundle"
    bundle.mkdir()
    (bundle / "encoder.onnx").write_bytes(b"e")
    (bundle / "decoder.onnx").write_bytes(b"d")
    (bundle / "tokens.txt").write_text("t")
    handle = OnnxRuntimeBackend().load(_stt(), tmp_path)
    assert sorted(handle.runtime) == ["decoder", "encoder"]
    assert handle.metadata["sessions"] == ["decoder", "encoder"]
    assert all(p == ["CPUExecutionProvider"] for _, p in opened)


def test_onnx_errors(tmp_path: Path, monkeypatch):
    backend = OnnxRuntimeBackend()
    with pytest.raises(LoadError) as ei:
        backend.load(_stt(), tmp_path / "absent")
    assert ei.value.error_type == "file-not-found"
    with pytest.raises(LoadError) as ei:
        backend.load(_stt(), tmp_path)
    assert ei.value.error_type == "file-not-found"
    (tmp_path / "model.onnx").write_bytes(b"m")
    monkeypatch.setitem(sys.modules, "onnxruntime", None)
    with pytest.raises(LoadError) as ei:
        backend.load(_stt(), tmp_path)
    assert ei.value.error_type == "runtime-missing"
