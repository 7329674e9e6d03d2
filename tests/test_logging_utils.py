from __future__ import annotations

from loguru import logger

from ta_stream.config import LogConfig
from ta_stream.logging_utils import setup_logging


def test_setup_logging_writes_to_file(tmp_path, monkeypatch):
    monkeypatch.setattr(setup_logging, "_configured", False, raising=False)
    path = tmp_path / "run.log"
    setup_logging(LogConfig(level="debug", sink=str(path)))
    logger.info("hello from the test")
    logger.remove()

    text = path.read_text()
    assert "logging configured" in text
    assert "hello from the test" in text


def test_setup_logging_runs_once_unless_forced(tmp_path, monkeypatch):
    monkeypatch.setattr(setup_logging, "_configured", False, raising=False)
    first, second = tmp_path / "a.log", tmp_path / "b.log"

    setup_logging(LogConfig(sink=str(first)))
    setup_logging(LogConfig(sink=str(second)))
    assert not second.exists()

    setup_logging(LogConfig(level="DEBUG", sink=str(second)), force=True)
    logger.remove()
    assert second.exists()
