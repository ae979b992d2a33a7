"""On-disk artifact store.

Directory structure:
    <root>/
      smollm2-360m-instruct-q8_0/
        smollm2-360m-instruct-q8_0.gguf
      sherpa-onnx-whisper-tiny.en/
        .sherpa-onnx-whisper-tiny.en.tar.gz.extracted   # archive marker
        sherpa-onnx-whisper-tiny.en/...                 # extracted tree
      smolvlm-256m-instruct/
        SmolVLM-256M-Instruct-Q8_0.gguf
        mmproj-SmolVLM-256M-Instruct-f16.gguf

Downloads land in `<filename>.part` and are renamed on completion, so a
present file is always a complete one.
"""
from __future__ import annotations

import logging
import tarfile
from pathlib import Path
from typing import List

from core.registry.descriptor import ModelDescriptor, ModelFile

_log = logging.getLogger("pocketai.storage")


class ArtifactStore:
    def __init__(self, root: str | Path) -> None:
        self.root = Path(root)

    def model_dir(self, model_id: str) -> Path:
        return self.root / model_id

    def file_path(self, model_id: str, filename: str) -> Path:
        return self.model_dir(model_id) / filename

    def partial_path(self, model_id: str, filename: str) -> Path:
        return self.model_dir(model_id) / f"{filename}.part"

    def marker_path(self, model_id: str, filename: str) -> Path:
        return self.model_dir(model_id) / f".{filename}.extracted"

    # presence -------------------------------------------------------------
    def is_file_present(self, model_id: str, file: ModelFile) -> bool:
        if file.is_archive:
            return self.marker_path(model_id, file.filename).exists()
        return self.file_path(model_id, file.filename).is_file()

    def is_present(self, descriptor: ModelDescriptor) -> bool:
        """True only when every file of the descriptor is in place."""
        return all(
            self.is_file_present(descriptor.id, f) for f in descriptor.files
        )

    def missing_files(self, descriptor: ModelDescriptor) -> List[ModelFile]:
        return [
            f
            for f in descriptor.files
            if not self.is_file_present(descriptor.id, f)
        ]

    def local_path(self, descriptor: ModelDescriptor) -> Path | None:
        if not self.is_present(descriptor):
            return None
        if descriptor.is_multi_file or descriptor.primary_file.is_archive:
            return self.model_dir(descriptor.id)
        return self.file_path(descriptor.id, descriptor.primary_file.filename)

    # placement ------------------------------------------------------------
    def prepare(self, model_id: str) -> Path:
        d = self.model_dir(model_id)
        d.mkdir(parents=True, exist_ok=True)
        return d

    def finalize(self, model_id: str, file: ModelFile) -> Path:
        """Move a completed `.part` into place; extract archives."""
        part = self.partial_path(model_id, file.filename)
        final = self.file_path(model_id, file.filename)
        part.replace(final)
        if not file.is_archive:
            return final
        dest = self.model_dir(model_id)
        self._extract(final, dest)
        final.unlink(missing_ok=True)
        marker = self.marker_path(model_id, file.filename)
        marker.write_text(file.url, encoding="utf-8")
        return dest

    def discard_partial(self, model_id: str, filename: str) -> None:
        self.partial_path(model_id, filename).unlink(missing_ok=True)

    @staticmethod
    def _extract(archive: Path, dest: Path) -> None:
        _log.info("extracting %s", archive.name)
        with tarfile.open(archive, "r:*") as tar:
            if hasattr(tarfile, "data_filter"):
                tar.extractall(dest, filter="data")
            else:  # pragma: no cover - old interpreters
                for member in tar.getmembers():
                    target = (dest / member.name).resolve()
                    if not str(target).startswith(str(dest.resolve())):
                        raise tarfile.TarError(
                            f"unsafe path in archive: {member.name}"
                        )
                tar.extractall(dest)


__all__ = ["ArtifactStore"]
