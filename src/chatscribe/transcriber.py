"""Speech-to-text engines that produce sidecar transcript files."""

from __future__ import annotations

import logging
import subprocess
from dataclasses import dataclass
from typing import List, Optional, Protocol

from .storage import output_dir_for
from .transcripts import TranscriptStore

logger = logging.getLogger("chatscribe")

QUALITY_MODEL_SIZES = {
    "low": "small",
    "medium": "medium",
    "high": "large",
}
DEFAULT_MODEL_SIZE = "medium"

ENGINE_WHISPER_CLI = "whisper"
ENGINE_FASTER_WHISPER = "faster-whisper"


def model_size_for_quality(quality: Optional[str]) -> str:
    return QUALITY_MODEL_SIZES.get(quality or "", DEFAULT_MODEL_SIZE)


@dataclass
class TranscriptionOutcome:
    ok: bool
    message: str = ""


class TranscriptionEngine(Protocol):
    def transcribe(
        self,
        media_path: str,
        quality: str,
        language: Optional[str] = None,
    ) -> TranscriptionOutcome:
        ...


class WhisperCliEngine:
    """Runs the `whisper` command line tool, which writes the transcript next to the media file."""

    def __init__(self, command: str = "whisper", timeout_seconds: Optional[float] = None) -> None:
        self.command = command
        self.timeout_seconds = timeout_seconds

    def build_args(self, media_path: str, quality: str, language: Optional[str] = None) -> List[str]:
        args = [
            self.command,
            media_path,
            "--model", model_size_for_quality(quality),
            "--output_dir", output_dir_for(media_path),
        ]
        if language:
            args.extend(["--language", language])
        return args

    def transcribe(
        self,
        media_path: str,
        quality: str,
        language: Optional[str] = None,
    ) -> TranscriptionOutcome:
        args = self.build_args(media_path, quality, language)
        logger.info("Transcribing %s", media_path)
        try:
            proc = subprocess.run(
                args,
                check=False,
                capture_output=True,
                text=True,
                timeout=self.timeout_seconds,
            )
        except FileNotFoundError:
            return TranscriptionOutcome(False, f"{self.command} not found on PATH.")
        except OSError as exc:
            return TranscriptionOutcome(False, f"Unable to run {self.command}: {exc}")
        except subprocess.TimeoutExpired:
            return TranscriptionOutcome(
                False, f"{self.command} timed out after {self.timeout_seconds}s"
            )

        stdout = (proc.stdout or "").strip()
        stderr = (proc.stderr or "").strip()
        if stdout:
            logger.info(stdout)
        if proc.returncode != 0:
            return TranscriptionOutcome(
                False, f"{self.command} exited with {proc.returncode}: {stderr}"
            )
        if stderr:
            logger.debug(stderr)
        return TranscriptionOutcome(True)


class FasterWhisperEngine:
    """Transcribes in-process with Faster-Whisper and writes the sidecar itself."""

    def __init__(
        self,
        store: TranscriptStore,
        device: Optional[str] = None,
        compute_type: Optional[str] = None,
    ) -> None:
        self.store = store
        self.device = device
        self.compute_type = compute_type
        self._models = {}

    def _load_model(self, model_name: str):
        if model_name in self._models:
            return self._models[model_name]
        try:
            from faster_whisper import WhisperModel
        except Exception as exc:  # pragma: no cover - optional dependency
            raise RuntimeError(
                "faster-whisper is required for in-process transcription."
            ) from exc

        kwargs = {}
        if self.device:
            kwargs["device"] = self.device
        if self.compute_type:
            kwargs["compute_type"] = self.compute_type
        model = WhisperModel(model_name, **kwargs)
        self._models[model_name] = model
        return model

    def transcribe(
        self,
        media_path: str,
        quality: str,
        language: Optional[str] = None,
    ) -> TranscriptionOutcome:
        model_name = model_size_for_quality(quality)
        logger.info("Transcribing %s with faster-whisper (%s)", media_path, model_name)
        try:
            model = self._load_model(model_name)
            segments, _info = model.transcribe(media_path, language=language or None)
            text = " ".join(seg.text.strip() for seg in segments if seg.text.strip())
            self.store.write(media_path, text)
        except Exception as exc:
            return TranscriptionOutcome(False, f"faster-whisper failed: {exc}")
        return TranscriptionOutcome(True)


def build_engine(
    name: str,
    store: TranscriptStore,
    whisper_command: str = "whisper",
    timeout_seconds: Optional[float] = None,
    device: Optional[str] = None,
    compute_type: Optional[str] = None,
) -> TranscriptionEngine:
    if name == ENGINE_FASTER_WHISPER:
        return FasterWhisperEngine(store, device=device, compute_type=compute_type)
    if name == ENGINE_WHISPER_CLI:
        return WhisperCliEngine(whisper_command, timeout_seconds=timeout_seconds)
    raise ValueError(f"Unknown transcription engine: {name}")
