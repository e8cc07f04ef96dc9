"""Sidecar transcript files stored next to media assets."""

from __future__ import annotations

import logging
import os
from typing import Optional

from .storage import sidecar_path

logger = logging.getLogger("chatscribe")


class TranscriptStore:
    """Read and write `<media path><suffix>` transcript files.

    The presence of the sidecar is what marks a media file as already
    transcribed.
    """

    def __init__(self, suffix: str = ".txt") -> None:
        self.suffix = suffix

    def sidecar_path(self, media_path: str) -> str:
        return sidecar_path(media_path, self.suffix)

    def exists(self, media_path: str) -> bool:
        return os.path.isfile(self.sidecar_path(media_path))

    def read(self, media_path: str) -> Optional[str]:
        path = self.sidecar_path(media_path)
        try:
            with open(path, "r", encoding="utf-8") as handle:
                return handle.read().strip()
        except FileNotFoundError:
            return None
        except (OSError, UnicodeDecodeError) as exc:
            logger.warning("Error reading transcription %s: %s", path, exc)
            return None

    def write(self, media_path: str, text: str) -> str:
        path = self.sidecar_path(media_path)
        with open(path, "w", encoding="utf-8") as handle:
            handle.write(text.strip() + "\n")
        return path
