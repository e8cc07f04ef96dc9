"""CLI entry point."""

from __future__ import annotations

import argparse
import logging
import os
from typing import Dict, List

from rich.console import Console
from rich.progress import BarColumn, MofNCompleteColumn, Progress, TextColumn, TimeElapsedColumn

from .chat_io import ChatLoadError, load_chat, save_chat
from .config import Config, load_config, save_config
from .database import SinkError, SQLiteSink
from .enrichment import (
    PASS_METADATA,
    PASS_TRANSCRIPTION,
    EnrichmentOrchestrator,
    ItemKind,
    PassReport,
    count_eligible,
)
from .logging_utils import setup_logging
from .probe import FileProbe
from .transcriber import (
    ENGINE_FASTER_WHISPER,
    ENGINE_WHISPER_CLI,
    QUALITY_MODEL_SIZES,
    build_engine,
)
from .transcripts import TranscriptStore

console = Console()

ENGINE_CHOICES = [ENGINE_WHISPER_CLI, ENGINE_FASTER_WHISPER]

PASS_DESCRIPTIONS = {
    PASS_METADATA: "retrieving media file metadata",
    PASS_TRANSCRIPTION: "transcribing audio files",
}


def _make_progress() -> Progress:
    return Progress(
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        MofNCompleteColumn(),
        TimeElapsedColumn(),
        console=console,
    )


def _resolve_config(args: argparse.Namespace) -> Config:
    if args.config and os.path.exists(args.config):
        cfg = load_config(args.config)
    else:
        cfg = Config()

    if getattr(args, "workdir", None):
        cfg.work_dir = args.workdir
    if getattr(args, "db", None):
        cfg.db_path = args.db
    if getattr(args, "log_dir", None):
        cfg.log_dir = args.log_dir
    if getattr(args, "transcribe", False):
        cfg.transcription.enabled = True
    if getattr(args, "quality", None):
        cfg.transcription.quality = args.quality
    if getattr(args, "language", None):
        cfg.transcription.language = args.language
    if getattr(args, "force", False):
        cfg.transcription.force = True
    if getattr(args, "engine", None):
        cfg.transcription.engine = args.engine
    return cfg


def _print_report(report: PassReport) -> None:
    counts = ", ".join(
        f"{kind.value}={report.count(kind)}"
        for kind in ItemKind
        if report.count(kind)
    )
    print(f"{report.name}: {report.attempted}/{report.eligible} items ({counts or 'none'})")


def _run_import(args: argparse.Namespace) -> int:
    cfg = _resolve_config(args)
    logger, log_path = setup_logging(
        cfg.log_dir,
        level=logging.DEBUG if args.verbose else logging.INFO,
        rich_console=console,
    )

    try:
        chat = load_chat(args.chat_file)
    except ChatLoadError as exc:
        logger.error("Unable to read chat file: %s", exc)
        print(f"Failed to load chat file: {exc}")
        return 1

    store = TranscriptStore(suffix=cfg.transcript_suffix)
    probe = FileProbe(
        cfg.work_dir,
        ffprobe_command=cfg.probe.ffprobe_command,
        timeout_seconds=cfg.probe.timeout_seconds,
    )
    tcfg = cfg.transcription
    engine = None
    if tcfg.enabled:
        engine = build_engine(
            tcfg.engine,
            store,
            whisper_command=tcfg.whisper_command,
            timeout_seconds=tcfg.timeout_seconds,
            device=tcfg.device,
            compute_type=tcfg.compute_type,
        )

    with _make_progress() as progress:
        tasks: Dict[str, int] = {}

        def _on_progress(pass_name: str, attempted: int, eligible: int) -> None:
            if pass_name not in tasks:
                tasks[pass_name] = progress.add_task(
                    PASS_DESCRIPTIONS.get(pass_name, pass_name), total=eligible
                )
            progress.update(tasks[pass_name], completed=attempted, total=eligible)

        orchestrator = EnrichmentOrchestrator(probe, store, engine, progress=_on_progress)
        reports: List[PassReport] = orchestrator.run(
            chat,
            transcribe=tcfg.enabled,
            quality=tcfg.quality,
            language=tcfg.language or None,
            force=tcfg.force,
        )

        sink = SQLiteSink(cfg.db_path)
        db_task = progress.add_task(
            "inserting messages into database", total=len(chat.messages)
        )
        try:
            sink.init_db()
            inserted = sink.write_chat(
                chat,
                progress=lambda done, total: progress.update(db_task, completed=done),
            )
        except SinkError as exc:
            logger.error("Database setup failed: %s", exc)
            print(f"Failed to write database: {exc}")
            return 1

    for report in reports:
        _print_report(report)
    print(f"Wrote {inserted}/{len(chat.messages)} messages to {cfg.db_path}")

    if args.json_out:
        save_chat(args.json_out, chat)
        print(f"Wrote {args.json_out}")
    print(f"Log: {log_path}")
    return 0


def _run_transcribe(args: argparse.Namespace) -> int:
    cfg = _resolve_config(args)
    setup_logging(cfg.log_dir, rich_console=console)
    tcfg = cfg.transcription
    store = TranscriptStore(suffix=cfg.transcript_suffix)

    if not os.path.isfile(args.audio_path):
        print(f"Audio file not found: {args.audio_path}")
        return 1
    if store.exists(args.audio_path) and not tcfg.force:
        print(f"Transcript exists: {store.sidecar_path(args.audio_path)}")
        return 0

    engine = build_engine(
        tcfg.engine,
        store,
        whisper_command=tcfg.whisper_command,
        timeout_seconds=tcfg.timeout_seconds,
        device=tcfg.device,
        compute_type=tcfg.compute_type,
    )
    outcome = engine.transcribe(args.audio_path, tcfg.quality, tcfg.language or None)
    if not outcome.ok:
        print(f"Transcription failed: {outcome.message}")
        return 1
    text = store.read(args.audio_path)
    if text is None:
        print(f"Transcript not found after transcription: {store.sidecar_path(args.audio_path)}")
        return 1
    print(text)
    return 0


def _run_show(args: argparse.Namespace) -> int:
    try:
        chat = load_chat(args.chat_file)
    except ChatLoadError as exc:
        print(f"Failed to load chat file: {exc}")
        return 1
    media_count, opus_count = count_eligible(chat)
    transcribed = sum(
        1 for m in chat.messages if m.media is not None and m.media.transcription is not None
    )
    print(f"Chat: {chat.title}")
    print(f"Messages: {len(chat.messages)}")
    print(f"Media files: {media_count}")
    print(f"Voice messages: {opus_count}")
    print(f"Transcribed: {transcribed}")
    return 0


def main(argv: List[str] | None = None) -> int:
    parser = argparse.ArgumentParser(prog="chatscribe")
    sub = parser.add_subparsers(dest="command")

    import_cmd = sub.add_parser("import", help="Enrich a chat export and write it to SQLite.")
    import_cmd.add_argument("chat_file", help="Chat JSON file to import.")
    import_cmd.add_argument("--config", default="chatscribe_config.yml", help="Config.")
    import_cmd.add_argument(
        "--workdir", help="Folder containing the media referenced by the chat."
    )
    import_cmd.add_argument("--db", help="Path to the output database.")
    import_cmd.add_argument(
        "--transcribe", action="store_true", help="Transcribe voice messages."
    )
    import_cmd.add_argument(
        "--quality",
        choices=sorted(QUALITY_MODEL_SIZES),
        help="Transcription quality (high takes a lot of time).",
    )
    import_cmd.add_argument(
        "--force", action="store_true", help="Replace existing transcriptions."
    )
    import_cmd.add_argument(
        "--language", help="Language code. Omit for auto-detection."
    )
    import_cmd.add_argument(
        "--engine", choices=ENGINE_CHOICES, help="Transcription engine."
    )
    import_cmd.add_argument("--json-out", help="Also write the enriched chat as JSON.")
    import_cmd.add_argument("--log-dir", help="Directory for log files.")
    import_cmd.add_argument("--verbose", action="store_true", help="Debug logging.")

    transcribe_cmd = sub.add_parser("transcribe", help="Transcribe a single audio file.")
    transcribe_cmd.add_argument("audio_path", help="Path to audio file.")
    transcribe_cmd.add_argument("--config", default="chatscribe_config.yml", help="Config.")
    transcribe_cmd.add_argument("--quality", choices=sorted(QUALITY_MODEL_SIZES))
    transcribe_cmd.add_argument("--language", help="Language code.")
    transcribe_cmd.add_argument("--force", action="store_true", help="Overwrite transcript.")
    transcribe_cmd.add_argument("--engine", choices=ENGINE_CHOICES)
    transcribe_cmd.add_argument("--log-dir", help="Directory for log files.")

    show_cmd = sub.add_parser("show", help="Summarize a chat JSON file.")
    show_cmd.add_argument("chat_file", help="Chat JSON file.")

    config_cmd = sub.add_parser("config", help="Write a default config file.")
    config_cmd.add_argument("--out", default="chatscribe_config.yml", help="Output path.")

    args = parser.parse_args(argv)
    if args.command == "import":
        return _run_import(args)

    if args.command == "transcribe":
        return _run_transcribe(args)

    if args.command == "show":
        return _run_show(args)

    if args.command == "config":
        if os.path.exists(args.out):
            print(f"Config already exists: {args.out}")
            return 1
        save_config(args.out, Config())
        print(f"Wrote {args.out}")
        return 0

    parser.print_help()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
