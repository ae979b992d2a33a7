import asyncio
import gzip
from pathlib import Path

import httpx
import pytest

from core.config.schemas.engine import DownloadConfig
from core.engine import DownloadError
from core.engine.downloader import HttpDownloader
from core.engine.storage import ArtifactStore
from core.registry import (
    InferenceFramework,
    Modality,
    ModelDescriptor,
    ModelFile,
)


def _single(url: str = "https://example.com/m.gguf") -> ModelDescriptor:
    return ModelDescriptor.single(
        id="m",
        name="m",
        url=url,
        modality=Modality.LANGUAGE,
        framework=InferenceFramework.LLAMA_CPP,
    )


def _collect(downloader: HttpDownloader, desc: ModelDescriptor):
    async def run():
        return [e async for e in downloader.download(desc)]

    return asyncio.run(run())


def _downloader(tmp_path: Path, handler, **kw) -> HttpDownloader:
    return HttpDownloader(
        ArtifactStore(tmp_path),
        chunk_size=kw.pop("chunk_size", 4),
        transport=httpx.MockTransport(handler),
        **kw,
    )


def test_progress_is_monotonic_and_file_lands(tmp_path: Path):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, content=b"x" * 10)

    events = _collect(_downloader(tmp_path, handler), _single())
    progress = [e.progress for e in events]
    assert progress == sorted(progress)
    assert progress[0] == 0.0
    assert progress[-1] == 1.0
    assert any(0.0 < p < 1.0 for p in progress)
    assert (tmp_path / "m" / "m.gguf").read_bytes() == b"x" * 10
    assert not (tmp_path / "m" / "m.gguf.part").exists()


def test_multi_file_progress_spans_files(tmp_path: Path):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, content=b"abcd")

    desc = ModelDescriptor(
        id="vlm",
        name="vlm",
        modality=Modality.MULTIMODAL,
        framework=InferenceFramework.LLAMA_CPP,
        files=[
            ModelFile(url="https://example.com/w.gguf", filename="w.gguf"),
            ModelFile(url="https://example.com/p.gguf", filename="p.gguf"),
        ],
    )
    events = _collect(_downloader(tmp_path, handler), desc)
    by_file = [(e.filename, e.progress) for e in events if e.filename]
    assert ("w.gguf", 0.5) in by_file
    assert by_file[-1] == ("p.gguf", 1.0)
    assert all(p <= 0.5 for f, p in by_file if f == "w.gguf")


def test_only_missing_files_are_fetched(tmp_path: Path):
    requested = []

    def handler(request: httpx.Request) -> httpx.Response:
        requested.append(request.url.path)
        return httpx.Response(200, content=b"abcd")

    desc = ModelDescriptor(
        id="vlm",
        name="vlm",
        modality=Modality.MULTIMODAL,
        framework=InferenceFramework.LLAMA_CPP,
        files=[
            ModelFile(url="https://example.com/w.gguf", filename="w.gguf"),
            ModelFile(url="https://example.com/p.gguf", filename="p.gguf"),
        ],
    )
    (tmp_path / "vlm").mkdir()
    (tmp_path / "vlm" / "w.gguf").write_bytes(b"have")
    events = _collect(_downloader(tmp_path, handler), desc)
    assert requested == ["/p.gguf"]
    assert events[0].progress == 0.5


def test_http_error_status(tmp_path: Path):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(404)

    with pytest.raises(DownloadError) as ei:
        _collect(_downloader(tmp_path, handler), _single())
    assert ei.value.error_type == "http-status"
    assert "404" in str(ei.value)
    assert not (tmp_path / "m" / "m.gguf.part").exists()


def test_short_read_is_incomplete(tmp_path: Path):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            200, headers={"Content-Length": "100"}, content=b"abc"
        )

    with pytest.raises(DownloadError) as ei:
        _collect(_downloader(tmp_path, handler), _single())
    assert ei.value.error_type == "incomplete"
    assert not (tmp_path / "m" / "m.gguf").exists()
    assert not (tmp_path / "m" / "m.gguf.part").exists()


def test_transport_error(tmp_path: Path):
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("refused", request=request)

    with pytest.raises(DownloadError) as ei:
        _collect(_downloader(tmp_path, handler), _single())
    assert ei.value.error_type == "transport"


def test_token_sent_only_to_hub_hosts(tmp_path: Path, monkeypatch):
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen[request.url.host] = request.headers.get("Authorization")
        return httpx.Response(200, content=b"ok")

    monkeypatch.setenv("TEST_HUB_TOKEN", "secret")
    dl = HttpDownloader.from_config(
        ArtifactStore(tmp_path),
        DownloadConfig(chunk_size=2, token_env="TEST_HUB_TOKEN"),
        transport=httpx.MockTransport(handler),
    )
    _collect(dl, _single("https://huggingface.co/org/repo/m.gguf"))
    assert seen["huggingface.co"] == "Bearer secret"
    other = ModelDescriptor.single(
        id="other",
        name="other",
        url="https://github.com/org/releases/o.tar.gz",
        modality=Modality.SPEECH_RECOGNITION,
        framework=InferenceFramework.ONNX,
    )
    # archive content is invalid: finalize fails after the request is made
    with pytest.raises(DownloadError) as ei:
        _collect(dl, other)
    assert ei.value.error_type == "storage"
    assert seen["github.com"] is None


def test_compressed_transfer_counts_wire_bytes(tmp_path: Path):
    body = b"weights" * 40
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request.headers.get("Accept-Encoding"))
        return httpx.Response(
            200,
            headers={"Content-Encoding": "gzip"},
            content=gzip.compress(body),
        )

    events = _collect(_downloader(tmp_path, handler), _single())
    assert seen == ["identity"]
    assert events[-1].progress == 1.0
    assert (tmp_path / "m" / "m.gguf").read_bytes() == body
