"""Configuration handling."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional
import yaml


@dataclass
class ProbeConfig:
    ffprobe_command: str = "ffprobe"
    timeout_seconds: float = 5.0


@dataclass
class TranscriptionConfig:
    enabled: bool = False
    quality: str = "medium"
    language: Optional[str] = None
    force: bool = False
    engine: str = "whisper"
    whisper_command: str = "whisper"
    timeout_seconds: Optional[float] = None
    device: Optional[str] = None
    compute_type: Optional[str] = None


@dataclass
class Config:
    work_dir: str = "."
    db_path: str = "chat.db"
    transcript_suffix: str = ".txt"
    log_dir: str = "logs"
    probe: ProbeConfig = field(default_factory=ProbeConfig)
    transcription: TranscriptionConfig = field(default_factory=TranscriptionConfig)


def load_config(path: str) -> Config:
    with open(path, "r", encoding="utf-8") as handle:
        data = yaml.safe_load(handle) or {}

    probe = ProbeConfig(**(data.get("probe") or {}))
    transcription = TranscriptionConfig(**(data.get("transcription") or {}))

    return Config(
        work_dir=data.get("work_dir", "."),
        db_path=data.get("db_path", "chat.db"),
        transcript_suffix=data.get("transcript_suffix", ".txt"),
        log_dir=data.get("log_dir", "logs"),
        probe=probe,
        transcription=transcription,
    )


def save_config(path: str, config: Config) -> None:
    data = {
        "work_dir": config.work_dir,
        "db_path": config.db_path,
        "transcript_suffix": config.transcript_suffix,
        "log_dir": config.log_dir,
        "probe": {
            "ffprobe_command": config.probe.ffprobe_command,
            "timeout_seconds": config.probe.timeout_seconds,
        },
        "transcription": {
            "enabled": config.transcription.enabled,
            "quality": config.transcription.quality,
            "language": config.transcription.language,
            "force": config.transcription.force,
            "engine": config.transcription.engine,
            "whisper_command": config.transcription.whisper_command,
            "timeout_seconds": config.transcription.timeout_seconds,
            "device": config.transcription.device,
            "compute_type": config.transcription.compute_type,
        },
    }
    with open(path, "w", encoding="utf-8") as handle:
        yaml.safe_dump(data, handle, sort_keys=False)
