"""Built-in model catalog (one descriptor per category).

Small, officially supported models so a fresh install can run the voice
pipeline and the vision demo without extra configuration.
"""
from __future__ import annotations

from .descriptor import (
    InferenceFramework,
    Modality,
    ModelDescriptor,
    ModelFile,
)

LLM_MODEL_ID = "smollm2-360m-instruct-q8_0"
STT_MODEL_ID = "sherpa-onnx-whisper-tiny.en"
TTS_MODEL_ID = "vits-piper-en_US-lessac-medium"
VLM_MODEL_ID = "smolvlm-256m-instruct"

_SHERPA_RELEASES = (
    "https://github.com/RunanywhereAI/sherpa-onnx/releases/download/"
    "runanywhere-models-v1"
)
_SMOLVLM_REPO = (
    "https://huggingface.co/ggml-org/SmolVLM-256M-Instruct-GGUF/resolve/main"
)

DEFAULT_DESCRIPTORS: tuple[ModelDescriptor, ...] = (
    ModelDescriptor.single(
        id=LLM_MODEL_ID,
        name="SmolLM2 360M Instruct Q8_0",
        url=(
            "https://huggingface.co/HuggingFaceTB/SmolLM2-360M-Instruct-GGUF"
            "/resolve/main/smollm2-360m-instruct-q8_0.gguf"
        ),
        modality=Modality.LANGUAGE,
        framework=InferenceFramework.LLAMA_CPP,
        memory_requirement=400_000_000,
    ),
    ModelDescriptor.single(
        id=STT_MODEL_ID,
        name="Sherpa Whisper Tiny (ONNX)",
        url=f"{_SHERPA_RELEASES}/sherpa-onnx-whisper-tiny.en.tar.gz",
        modality=Modality.SPEECH_RECOGNITION,
        framework=InferenceFramework.ONNX,
    ),
    ModelDescriptor.single(
        id=TTS_MODEL_ID,
        name="Piper TTS (US English - Medium)",
        url=f"{_SHERPA_RELEASES}/vits-piper-en_US-lessac-medium.tar.gz",
        modality=Modality.SPEECH_SYNTHESIS,
        framework=InferenceFramework.ONNX,
    ),
    # two-file artifact: main weights + vision projector
    ModelDescriptor(
        id=VLM_MODEL_ID,
        name="SmolVLM 256M Instruct (Q8)",
        modality=Modality.MULTIMODAL,
        framework=InferenceFramework.LLAMA_CPP,
        files=[
            ModelFile(
                url=f"{_SMOLVLM_REPO}/SmolVLM-256M-Instruct-Q8_0.gguf",
                filename="SmolVLM-256M-Instruct-Q8_0.gguf",
            ),
            ModelFile(
                url=f"{_SMOLVLM_REPO}/mmproj-SmolVLM-256M-Instruct-f16.gguf",
                filename="mmproj-SmolVLM-256M-Instruct-f16.gguf",
            ),
        ],
        memory_requirement=365_000_000,
    ),
)

__all__ = [
    "LLM_MODEL_ID",
    "STT_MODEL_ID",
    "TTS_MODEL_ID",
    "VLM_MODEL_ID",
    "DEFAULT_DESCRIPTORS",
]
