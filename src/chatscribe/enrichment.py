"""Media enrichment passes over a loaded chat.

Pass 1 stats every referenced media file and hydrates size, audio
duration and any existing transcript. Pass 2 runs speech-to-text on
Opus voice messages that do not have a sidecar transcript yet (or all
of them when forced). Problems with a single message are logged and
reported as an ``ItemResult``; they never stop a pass.
"""

from __future__ import annotations

import enum
import logging
import os
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Tuple

from .models import Chat, Message
from .probe import FileProbe, ProbeError
from .transcriber import TranscriptionEngine
from .transcripts import TranscriptStore

logger = logging.getLogger("chatscribe")

PASS_METADATA = "metadata"
PASS_TRANSCRIPTION = "transcription"

ProgressCallback = Callable[[str, int, int], None]


class ItemKind(str, enum.Enum):
    METADATA_APPLIED = "metadata-applied"
    PARTIAL = "partial"
    SKIPPED = "skipped"
    TRANSCRIBED = "transcribed"
    HYDRATED = "hydrated"
    FAILED = "failed"


@dataclass
class ItemResult:
    message_id: Optional[int]
    file_path: Optional[str]
    kind: ItemKind
    detail: str = ""


@dataclass
class PassReport:
    name: str
    eligible: int
    attempted: int = 0
    results: List[ItemResult] = field(default_factory=list)

    def count(self, kind: ItemKind) -> int:
        return sum(1 for result in self.results if result.kind == kind)


def count_eligible(chat: Chat) -> Tuple[int, int]:
    """Return (messages with a media path, of which Opus voice messages)."""
    media_count = 0
    opus_count = 0
    for message in chat.messages:
        if message.media_path is None:
            continue
        media_count += 1
        if message.media.is_opus:
            opus_count += 1
    return media_count, opus_count


class EnrichmentOrchestrator:
    def __init__(
        self,
        probe: FileProbe,
        store: TranscriptStore,
        engine: Optional[TranscriptionEngine] = None,
        progress: Optional[ProgressCallback] = None,
    ) -> None:
        self.probe = probe
        self.store = store
        self.engine = engine
        self.progress = progress

    def _report_progress(self, report: PassReport) -> None:
        if self.progress:
            self.progress(report.name, report.attempted, report.eligible)

    def _record(
        self,
        report: PassReport,
        message: Message,
        kind: ItemKind,
        detail: str = "",
    ) -> ItemResult:
        result = ItemResult(
            message_id=message.message_id,
            file_path=message.media_path,
            kind=kind,
            detail=detail,
        )
        report.results.append(result)
        return result

    def enrich_metadata(self, chat: Chat) -> PassReport:
        media_count, _opus_count = count_eligible(chat)
        report = PassReport(name=PASS_METADATA, eligible=media_count)
        self._report_progress(report)

        for message in chat.messages:
            if message.media_path is None:
                continue
            report.attempted += 1
            self._apply_metadata(report, message)
            self._report_progress(report)

        logger.info(
            "Metadata pass: %s/%s attempted, %s skipped, %s partial",
            report.attempted,
            report.eligible,
            report.count(ItemKind.SKIPPED),
            report.count(ItemKind.PARTIAL),
        )
        return report

    def _apply_metadata(self, report: PassReport, message: Message) -> ItemResult:
        media = message.media
        try:
            probed = self.probe.probe(media.file_path, media.mime_type)
        except ProbeError as exc:
            logger.error("Error probing %s: %s", media.file_path, exc)
            return self._record(report, message, ItemKind.FAILED, str(exc))
        if probed is None:
            path = self.probe.resolve(media.file_path)
            logger.warning("Media file %s not found, skipping", path)
            return self._record(report, message, ItemKind.SKIPPED, f"{path} not found")

        problems = []
        media.file_size_byte = probed.size_bytes
        if media.is_audio:
            if probed.duration_seconds is not None:
                media.audio_length_seconds = probed.duration_seconds
            else:
                problems.append(probed.error or "duration unavailable")

        if media.is_opus:
            path = self.probe.resolve(media.file_path)
            if self.store.exists(path):
                transcription = self.store.read(path)
                if transcription is None:
                    problems.append(f"unreadable transcript {self.store.sidecar_path(path)}")
                else:
                    media.transcription = transcription

        if problems:
            detail = "; ".join(problems)
            logger.warning("Partial metadata for %s: %s", media.file_path, detail)
            return self._record(report, message, ItemKind.PARTIAL, detail)
        return self._record(report, message, ItemKind.METADATA_APPLIED)

    def transcribe_audio(
        self,
        chat: Chat,
        quality: str = "medium",
        language: Optional[str] = None,
        force: bool = False,
    ) -> PassReport:
        if self.engine is None:
            raise RuntimeError("A transcription engine is required for the transcription pass.")

        _media_count, opus_count = count_eligible(chat)
        report = PassReport(name=PASS_TRANSCRIPTION, eligible=opus_count)
        self._report_progress(report)

        for message in chat.messages:
            if message.media_path is None or not message.media.is_opus:
                continue
            report.attempted += 1
            self._apply_transcription(report, message, quality, language, force)
            self._report_progress(report)

        logger.info(
            "Transcription pass: %s/%s attempted, %s transcribed, %s reused, %s failed",
            report.attempted,
            report.eligible,
            report.count(ItemKind.TRANSCRIBED),
            report.count(ItemKind.HYDRATED),
            report.count(ItemKind.FAILED),
        )
        return report

    def _apply_transcription(
        self,
        report: PassReport,
        message: Message,
        quality: str,
        language: Optional[str],
        force: bool,
    ) -> ItemResult:
        media = message.media
        path = self.probe.resolve(media.file_path)
        if not os.path.isfile(path):
            logger.error("Audio file %s doesn't seem to exist anymore", path)
            return self._record(report, message, ItemKind.SKIPPED, f"{path} not found")

        invoked = False
        if force or not self.store.exists(path):
            outcome = self.engine.transcribe(path, quality, language)
            invoked = True
            if not outcome.ok:
                logger.error("Error during transcription of %s: %s", path, outcome.message)
                return self._record(report, message, ItemKind.FAILED, outcome.message)

        transcription = self.store.read(path)
        if transcription is None:
            sidecar = self.store.sidecar_path(path)
            logger.error("Error reading transcription file %s", sidecar)
            return self._record(report, message, ItemKind.FAILED, f"{sidecar} unreadable")

        media.transcription = transcription
        kind = ItemKind.TRANSCRIBED if invoked else ItemKind.HYDRATED
        return self._record(report, message, kind)

    def run(
        self,
        chat: Chat,
        transcribe: bool = False,
        quality: str = "medium",
        language: Optional[str] = None,
        force: bool = False,
    ) -> List[PassReport]:
        reports = [self.enrich_metadata(chat)]
        if transcribe:
            reports.append(self.transcribe_audio(chat, quality, language, force))
        return reports
