import copy
import logging
import os

import pytest

from chatscribe.enrichment import (
    PASS_METADATA,
    PASS_TRANSCRIPTION,
    EnrichmentOrchestrator,
    ItemKind,
    count_eligible,
)
from chatscribe.models import Chat, GeoPosition, Media, Message, MIME_TYPE_OPUS, SenderContact
from chatscribe.probe import FileProbe
from chatscribe.transcriber import TranscriptionOutcome, WhisperCliEngine
from chatscribe.transcripts import TranscriptStore


class FakeProbe(FileProbe):
    """FileProbe with canned audio durations instead of ffprobe."""

    def __init__(self, work_dir, durations=None):
        super().__init__(work_dir)
        self.durations = durations or {}

    def read_duration(self, path):
        name = os.path.basename(path)
        if name not in self.durations:
            raise RuntimeError(f"no duration for {name}")
        return self.durations[name]


class FakeEngine:
    def __init__(self, store, text="transcribed text", ok=True, write=True):
        self.store = store
        self.text = text
        self.ok = ok
        self.write = write
        self.calls = []

    def transcribe(self, media_path, quality, language=None):
        self.calls.append((media_path, quality, language))
        if not self.ok:
            return TranscriptionOutcome(False, "exit status 1")
        if self.write:
            self.store.write(media_path, self.text)
        return TranscriptionOutcome(True)


def _opus(message_id, path="voice1.opus"):
    return Message(
        message_id=message_id,
        chat_id=1,
        from_me=False,
        media=Media(file_path=path, mime_type=MIME_TYPE_OPUS, message_id=message_id),
    )


def _orchestrator(tmp_path, durations=None, engine_kwargs=None, progress=None):
    store = TranscriptStore()
    engine = FakeEngine(store, **(engine_kwargs or {}))
    probe = FakeProbe(str(tmp_path), durations)
    return EnrichmentOrchestrator(probe, store, engine, progress=progress), engine


def test_count_eligible_counts_paths_and_opus():
    chat = Chat(
        messages=[
            Message(message_id=1, text_data="hi"),
            Message(message_id=2, media=Media(mime_type="image/jpeg")),
            Message(message_id=3, media=Media(file_path="a.jpg", mime_type="image/jpeg")),
            _opus(4),
            _opus(5, "missing.opus"),
        ]
    )
    assert count_eligible(chat) == (3, 2)


def test_messages_without_media_are_untouched(tmp_path):
    chat = Chat(
        messages=[
            Message(message_id=1, text_data="hello"),
            Message(
                message_id=2,
                geo_position=GeoPosition(latitude=1.0, longitude=2.0),
                sender_contact=SenderContact(name="Bob"),
            ),
            Message(message_id=3, media=Media(mime_type=MIME_TYPE_OPUS)),
        ]
    )
    before = copy.deepcopy(chat)
    orchestrator, engine = _orchestrator(tmp_path)

    reports = orchestrator.run(chat, transcribe=True)

    assert chat == before
    assert engine.calls == []
    assert [r.attempted for r in reports] == [0, 0]


def test_image_gets_size_only(tmp_path):
    (tmp_path / "img1.jpg").write_bytes(b"\0" * 2048)
    message = Message(message_id=1, media=Media(file_path="img1.jpg", mime_type="image/jpeg"))
    chat = Chat(messages=[message])
    orchestrator, _engine = _orchestrator(tmp_path)

    report = orchestrator.enrich_metadata(chat)

    assert message.media.file_size_byte == 2048
    assert message.media.audio_length_seconds is None
    assert message.media.transcription is None
    assert report.results[0].kind == ItemKind.METADATA_APPLIED


def test_voice_message_is_transcribed_once(tmp_path):
    (tmp_path / "voice1.opus").write_bytes(b"\0" * 512)
    message = _opus(1)
    chat = Chat(messages=[message])
    orchestrator, engine = _orchestrator(
        tmp_path, durations={"voice1.opus": 10.0}, engine_kwargs={"text": " hallo welt "}
    )

    orchestrator.enrich_metadata(chat)
    assert message.media.audio_length_seconds == 10.0
    assert message.media.file_size_byte == 512
    assert message.media.transcription is None

    report = orchestrator.transcribe_audio(chat, quality="low", language="de")

    assert engine.calls == [(str(tmp_path / "voice1.opus"), "low", "de")]
    assert (tmp_path / "voice1.opus.txt").is_file()
    assert message.media.transcription == "hallo welt"
    assert report.results[0].kind == ItemKind.TRANSCRIBED


def test_existing_sidecar_is_reused_without_invocation(tmp_path):
    (tmp_path / "voice1.opus").write_bytes(b"\0" * 512)
    (tmp_path / "voice1.opus.txt").write_text("hello\n", encoding="utf-8")
    message = _opus(1)
    chat = Chat(messages=[message])
    orchestrator, engine = _orchestrator(tmp_path, durations={"voice1.opus": 10.0})

    orchestrator.enrich_metadata(chat)
    assert message.media.transcription == "hello"
    message.media.transcription = None

    report = orchestrator.transcribe_audio(chat, force=False)

    assert engine.calls == []
    assert message.media.transcription == "hello"
    assert report.results[0].kind == ItemKind.HYDRATED


def test_force_always_invokes_engine(tmp_path):
    (tmp_path / "voice1.opus").write_bytes(b"\0" * 512)
    (tmp_path / "voice1.opus.txt").write_text("old", encoding="utf-8")
    (tmp_path / "voice2.opus").write_bytes(b"\0" * 512)
    chat = Chat(messages=[_opus(1), _opus(2, "voice2.opus")])
    orchestrator, engine = _orchestrator(tmp_path, engine_kwargs={"text": "new"})

    orchestrator.transcribe_audio(chat, force=True)

    assert len(engine.calls) == 2
    assert [m.media.transcription for m in chat.messages] == ["new", "new"]


def test_force_does_not_invoke_for_missing_source(tmp_path):
    chat = Chat(messages=[_opus(1, "gone.opus")])
    orchestrator, engine = _orchestrator(tmp_path)

    report = orchestrator.transcribe_audio(chat, force=True)

    assert engine.calls == []
    assert report.results[0].kind == ItemKind.SKIPPED


def test_missing_file_stays_unknown_and_is_skipped_each_pass(tmp_path, caplog):
    message = _opus(1, "missing.opus")
    chat = Chat(messages=[message])
    updates = []
    orchestrator, engine = _orchestrator(
        tmp_path, progress=lambda name, done, total: updates.append((name, done, total))
    )

    with caplog.at_level(logging.WARNING, logger="chatscribe"):
        reports = orchestrator.run(chat, transcribe=True)

    assert message.media.file_size_byte is None
    assert message.media.audio_length_seconds is None
    assert message.media.transcription is None
    assert engine.calls == []
    assert [r.count(ItemKind.SKIPPED) for r in reports] == [1, 1]
    assert len([r for r in caplog.records if "missing.opus" in r.getMessage()]) == 2
    # Missing files still advance the progress counter.
    assert updates == [
        (PASS_METADATA, 0, 1),
        (PASS_METADATA, 1, 1),
        (PASS_TRANSCRIPTION, 0, 1),
        (PASS_TRANSCRIPTION, 1, 1),
    ]


def test_duration_failure_is_partial_but_keeps_size(tmp_path):
    (tmp_path / "voice1.opus").write_bytes(b"\0" * 64)
    message = _opus(1)
    chat = Chat(messages=[message])
    orchestrator, _engine = _orchestrator(tmp_path, durations={})

    report = orchestrator.enrich_metadata(chat)

    assert message.media.file_size_byte == 64
    assert message.media.audio_length_seconds is None
    assert report.results[0].kind == ItemKind.PARTIAL


def test_engine_failure_is_isolated(tmp_path):
    (tmp_path / "voice1.opus").write_bytes(b"\0" * 64)
    (tmp_path / "voice2.opus").write_bytes(b"\0" * 64)
    (tmp_path / "voice2.opus.txt").write_text("kept", encoding="utf-8")
    chat = Chat(messages=[_opus(1), _opus(2, "voice2.opus")])
    orchestrator, engine = _orchestrator(tmp_path, engine_kwargs={"ok": False})

    report = orchestrator.transcribe_audio(chat)

    assert len(engine.calls) == 1
    assert chat.messages[0].media.transcription is None
    assert chat.messages[1].media.transcription == "kept"
    assert [r.kind for r in report.results] == [ItemKind.FAILED, ItemKind.HYDRATED]


def test_missing_sidecar_after_success_is_failure(tmp_path):
    (tmp_path / "voice1.opus").write_bytes(b"\0" * 64)
    chat = Chat(messages=[_opus(1)])
    orchestrator, engine = _orchestrator(tmp_path, engine_kwargs={"write": False})

    report = orchestrator.transcribe_audio(chat)

    assert len(engine.calls) == 1
    assert chat.messages[0].media.transcription is None
    assert report.results[0].kind == ItemKind.FAILED


def test_transcription_never_touches_other_mime_types(tmp_path):
    (tmp_path / "song.mp3").write_bytes(b"\0" * 64)
    (tmp_path / "song.mp3.txt").write_text("lyrics", encoding="utf-8")
    message = Message(message_id=1, media=Media(file_path="song.mp3", mime_type="audio/mpeg"))
    chat = Chat(messages=[message])
    orchestrator, engine = _orchestrator(tmp_path, durations={"song.mp3": 180.5})

    reports = orchestrator.run(chat, transcribe=True, force=True)

    assert message.media.audio_length_seconds == 180.5
    assert message.media.transcription is None
    assert engine.calls == []
    assert reports[1].eligible == 0


def test_metadata_pass_is_idempotent(tmp_path):
    (tmp_path / "img1.jpg").write_bytes(b"\0" * 2048)
    (tmp_path / "voice1.opus").write_bytes(b"\0" * 512)
    (tmp_path / "voice1.opus.txt").write_text("hello", encoding="utf-8")
    chat = Chat(
        messages=[
            Message(message_id=1, media=Media(file_path="img1.jpg", mime_type="image/jpeg")),
            _opus(2),
            _opus(3, "missing.opus"),
        ]
    )
    orchestrator, _engine = _orchestrator(tmp_path, durations={"voice1.opus": 10.0})

    orchestrator.enrich_metadata(chat)
    first = copy.deepcopy(chat)
    orchestrator.enrich_metadata(chat)

    assert chat == first


def test_transcription_pass_requires_engine(tmp_path):
    orchestrator = EnrichmentOrchestrator(FakeProbe(str(tmp_path)), TranscriptStore())
    with pytest.raises(RuntimeError):
        orchestrator.transcribe_audio(Chat(messages=[_opus(1)]))


def test_run_without_transcribe_flag_skips_second_pass(tmp_path):
    (tmp_path / "voice1.opus").write_bytes(b"\0" * 64)
    chat = Chat(messages=[_opus(1)])
    orchestrator, engine = _orchestrator(tmp_path, durations={"voice1.opus": 3.0})

    reports = orchestrator.run(chat, transcribe=False)

    assert [r.name for r in reports] == [PASS_METADATA]
    assert engine.calls == []


def test_unstattable_path_fails_only_that_item(tmp_path):
    (tmp_path / "img1.jpg").write_bytes(b"\0" * 8)
    (tmp_path / "ok.jpg").write_bytes(b"\0" * 16)
    broken = Message(message_id=1, media=Media(file_path="img1.jpg/x", mime_type="image/jpeg"))
    ok = Message(message_id=2, media=Media(file_path="ok.jpg", mime_type="image/jpeg"))
    chat = Chat(messages=[broken, ok])
    orchestrator, _engine = _orchestrator(tmp_path)

    report = orchestrator.enrich_metadata(chat)

    assert [r.kind for r in report.results] == [ItemKind.FAILED, ItemKind.METADATA_APPLIED]
    assert broken.media.file_size_byte is None
    assert ok.media.file_size_byte == 16
    assert report.attempted == 2


def test_unrunnable_whisper_fails_only_that_item(tmp_path):
    (tmp_path / "voice1.opus").write_bytes(b"\0" * 64)
    (tmp_path / "voice2.opus").write_bytes(b"\0" * 64)
    (tmp_path / "voice2.opus.txt").write_text("kept", encoding="utf-8")
    whisper = tmp_path / "whisper"
    whisper.write_text("#!/bin/sh\n", encoding="utf-8")
    whisper.chmod(0o644)
    store = TranscriptStore()
    orchestrator = EnrichmentOrchestrator(
        FakeProbe(str(tmp_path)), store, WhisperCliEngine(str(whisper))
    )
    chat = Chat(messages=[_opus(1), _opus(2, "voice2.opus")])

    report = orchestrator.transcribe_audio(chat)

    assert [r.kind for r in report.results] == [ItemKind.FAILED, ItemKind.HYDRATED]
    assert chat.messages[0].media.transcription is None
    assert chat.messages[1].media.transcription == "kept"
