"""File size and audio duration probing."""

from __future__ import annotations

import logging
import os
import subprocess
from dataclasses import dataclass
from typing import Optional

from .models import normalize_mime
from .storage import resolve_media_path

logger = logging.getLogger("chatscribe")


class ProbeError(RuntimeError):
    pass


@dataclass
class ProbeResult:
    size_bytes: int
    duration_seconds: Optional[float] = None
    error: Optional[str] = None


class FileProbe:
    """Stat media files under a working directory and read audio duration via ffprobe."""

    def __init__(
        self,
        work_dir: str,
        ffprobe_command: str = "ffprobe",
        timeout_seconds: float = 5.0,
    ) -> None:
        self.work_dir = work_dir
        self.ffprobe_command = ffprobe_command
        self.timeout_seconds = timeout_seconds

    def resolve(self, relative_path: str) -> str:
        return resolve_media_path(self.work_dir, relative_path)

    def probe(self, relative_path: str, mime_type: Optional[str] = None) -> Optional[ProbeResult]:
        """Return size (and duration for audio), or None when the file does not exist.

        Any other stat failure raises ProbeError.
        """
        path = self.resolve(relative_path)
        try:
            size = os.stat(path).st_size
        except FileNotFoundError:
            return None
        except OSError as exc:
            raise ProbeError(f"Unable to stat {path}: {exc}") from exc

        result = ProbeResult(size_bytes=size)
        mime = normalize_mime(mime_type)
        if mime and mime.startswith("audio/"):
            try:
                result.duration_seconds = self.read_duration(path)
            except RuntimeError as exc:
                result.error = str(exc)
        return result

    def read_duration(self, path: str) -> float:
        cmd = [
            self.ffprobe_command,
            "-v", "error",
            "-show_entries", "format=duration",
            "-of", "default=noprint_wrappers=1:nokey=1",
            path,
        ]
        try:
            proc = subprocess.run(
                cmd,
                check=False,
                capture_output=True,
                text=True,
                timeout=self.timeout_seconds,
            )
        except FileNotFoundError as exc:
            raise RuntimeError(f"{self.ffprobe_command} not found on PATH.") from exc
        except OSError as exc:
            raise RuntimeError(f"Unable to run {self.ffprobe_command}: {exc}") from exc
        except subprocess.TimeoutExpired as exc:
            raise RuntimeError(
                f"ffprobe timed out after {self.timeout_seconds}s for {path}"
            ) from exc

        if proc.returncode != 0:
            stderr = (proc.stderr or "").strip()
            raise RuntimeError(f"ffprobe failed for {path}: {stderr}")

        value = (proc.stdout or "").strip()
        try:
            return float(value)
        except ValueError as exc:
            raise RuntimeError(f"ffprobe returned no duration for {path}: {value!r}") from exc
