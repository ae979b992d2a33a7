"""Streaming HTTP downloader for model artifacts.

Downloads every missing file of a descriptor with httpx, writing into the
store's `.part` files, and yields overall progress:

    progress = (completed files + fraction of current file) / file count

Failures (HTTP status, transport, short read, disk) raise DownloadError
from inside the stream; the partial file is discarded.
"""
from __future__ import annotations

import asyncio
import logging
import os
import time
from typing import AsyncIterator, Dict, Tuple
from urllib.parse import urlparse

import httpx

from core.registry.descriptor import ModelDescriptor, ModelFile
from .exceptions import DownloadError
from .storage import ArtifactStore
from .types import ProgressEvent

_log = logging.getLogger("pocketai.download")

# hosts that accept the bearer token from `token_env`
_TOKEN_HOSTS = {"huggingface.co", "hf.co"}


class HttpDownloader:
    CHUNK_SIZE = 1024 * 1024

    def __init__(
        self,
        store: ArtifactStore,
        chunk_size: int | None = None,
        timeout_s: float = 30.0,
        user_agent: str = "pocketai/0.1 (model downloader)",
        token: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._store = store
        self._chunk_size = chunk_size or self.CHUNK_SIZE
        self._timeout = httpx.Timeout(timeout_s, read=None)
        self._user_agent = user_agent
        self._token = token
        self._transport = transport

    @classmethod
    def from_config(
        cls, store: ArtifactStore, download_cfg, **kwargs
    ) -> "HttpDownloader":
        token_env = getattr(download_cfg, "token_env", None)
        return cls(
            store,
            chunk_size=download_cfg.chunk_size,
            timeout_s=download_cfg.timeout_s,
            user_agent=download_cfg.user_agent,
            token=os.environ.get(token_env) if token_env else None,
            **kwargs,
        )

    def _headers(self, url: str) -> Dict[str, str]:
        # byte counts are checked against content-length: no transfer coding
        headers = {
            "User-Agent": self._user_agent,
            "Accept-Encoding": "identity",
        }
        host = (urlparse(url).hostname or "").lower()
        if self._token and host in _TOKEN_HOSTS:
            headers["Authorization"] = f"Bearer {self._token}"
        return headers

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=self._timeout,
            follow_redirects=True,
            transport=self._transport,
        )

    async def download(
        self, descriptor: ModelDescriptor
    ) -> AsyncIterator[ProgressEvent]:
        total_files = len(descriptor.files)
        missing = self._store.missing_files(descriptor)
        done = total_files - len(missing)
        yield ProgressEvent(
            model_id=descriptor.id, progress=done / total_files
        )
        if not missing:
            return
        self._store.prepare(descriptor.id)
        start = time.time()
        async with self._client() as client:
            for file in missing:
                async for fraction, got, size in self._fetch(
                    client, descriptor.id, file
                ):
                    yield ProgressEvent(
                        model_id=descriptor.id,
                        progress=min(1.0, (done + fraction) / total_files),
                        downloaded_bytes=got,
                        total_bytes=size,
                        filename=file.filename,
                    )
                try:
                    await asyncio.to_thread(
                        self._store.finalize, descriptor.id, file
                    )
                except Exception as e:  # noqa: BLE001
                    self._store.discard_partial(descriptor.id, file.filename)
                    raise DownloadError(
                        f"{file.filename}: cannot finalize: {e}",
                        error_type="storage",
                    ) from e
                done += 1
                yield ProgressEvent(
                    model_id=descriptor.id,
                    progress=done / total_files,
                    filename=file.filename,
                )
        _log.info(
            "downloaded %s (%d file(s)) in %.1fs",
            descriptor.id,
            len(missing),
            time.time() - start,
        )

    async def _fetch(
        self, client: httpx.AsyncClient, model_id: str, file: ModelFile
    ) -> AsyncIterator[Tuple[float, int, int]]:
        part = self._store.partial_path(model_id, file.filename)
        downloaded = 0
        total = 0
        try:
            async with client.stream(
                "GET", file.url, headers=self._headers(file.url)
            ) as response:
                if response.status_code != 200:
                    raise DownloadError(
                        f"{file.filename}: HTTP {response.status_code}",
                        error_type="http-status",
                    )
                total = int(response.headers.get("content-length") or 0)
                _log.info(
                    "downloading %s/%s (%s bytes)",
                    model_id,
                    file.filename,
                    total or "unknown",
                )
                yield 0.0, 0, total
                with part.open("wb") as f:
                    async for chunk in response.aiter_bytes(self._chunk_size):
                        f.write(chunk)
                        downloaded += len(chunk)
                        if total:
                            fraction = min(1.0, downloaded / total)
                            yield fraction, downloaded, total
                # content-length counts wire bytes, before any decoding
                received = response.num_bytes_downloaded
            if total and received != total:
                raise DownloadError(
                    f"{file.filename}: expected {total} bytes, "
                    f"got {received}",
                    error_type="incomplete",
                )
        except DownloadError:
            self._store.discard_partial(model_id, file.filename)
            raise
        except httpx.HTTPError as e:
            self._store.discard_partial(model_id, file.filename)
            raise DownloadError(
                f"{file.filename}: {e}", error_type="transport"
            ) from e
        except OSError as e:
            self._store.discard_partial(model_id, file.filename)
            raise DownloadError(
                f"{file.filename}: {e}", error_type="storage"
            ) from e
        if not total:
            yield 1.0, downloaded, downloaded


__all__ = ["HttpDownloader"]
