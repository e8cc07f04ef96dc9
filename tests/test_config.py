import os
import tempfile

from chatscribe.config import Config, load_config, save_config


def test_save_and_load_config_roundtrip():
    cfg = Config(work_dir="/data/WhatsApp")
    cfg.transcription.quality = "high"
    cfg.transcription.language = "de"

    with tempfile.TemporaryDirectory() as tmp:
        path = os.path.join(tmp, "chatscribe_config.yml")
        save_config(path, cfg)
        loaded = load_config(path)

    assert loaded.work_dir == "/data/WhatsApp"
    assert loaded.transcription.quality == "high"
    assert loaded.transcription.language == "de"
    assert loaded.probe.timeout_seconds == 5.0


def test_load_config_defaults_for_missing_sections(tmp_path):
    path = tmp_path / "partial.yml"
    path.write_text("db_path: out.db\n", encoding="utf-8")

    loaded = load_config(str(path))

    assert loaded.db_path == "out.db"
    assert loaded.work_dir == "."
    assert loaded.transcription.enabled is False
    assert loaded.transcription.engine == "whisper"
    assert loaded.transcription.timeout_seconds is None
