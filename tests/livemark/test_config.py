"""Tests for settings and logging setup."""

import json
import logging
import sys

import pytest
from loguru import logger
from pydantic import ValidationError

from livemark.config import EditorSettings, get_settings
from livemark.editor.session import LiveEditor
from livemark.logging_config import configure_logging


@pytest.fixture
def restore_logging():
    """Put loguru and the root logger back the way the other tests expect them."""
    handlers = logging.root.handlers[:]
    level = logging.root.level
    yield
    logger.remove()
    logger.add(sys.stderr)
    logging.root.handlers[:] = handlers
    logging.root.setLevel(level)


@pytest.fixture
def records():
    captured = []
    sink_id = logger.add(lambda message: captured.append(message.record), level="DEBUG")
    yield captured
    logger.remove(sink_id)


class TestSettings:
    def test_defaults(self, monkeypatch):
        for name in ("MAX_POST_COMMIT_ROUNDS", "INSTANT_RENDER", "SOURCE_VIEW", "LOG_LEVEL", "LOG_FILE"):
            monkeypatch.delenv(f"LIVEMARK_{name}", raising=False)
        settings = get_settings()
        assert settings.max_post_commit_rounds == 4
        assert settings.instant_render is True
        assert settings.source_view is False

    def test_environment_override(self, monkeypatch):
        monkeypatch.setenv("LIVEMARK_MAX_POST_COMMIT_ROUNDS", "2")
        monkeypatch.setenv("LIVEMARK_INSTANT_RENDER", "false")
        settings = get_settings()
        assert settings.max_post_commit_rounds == 2
        assert settings.instant_render is False

    def test_rounds_must_be_positive(self):
        with pytest.raises(ValidationError):
            EditorSettings(max_post_commit_rounds=0)

    def test_editor_uses_settings(self):
        editor = LiveEditor("**a**", settings=EditorSettings(instant_render=False, source_view=True))
        assert not editor.instant_render
        assert editor.source_view


class TestLogging:
    def test_file_sink_receives_standard_logging(self, tmp_path, restore_logging):
        log_file = tmp_path / "logs" / "livemark.log"
        configure_logging(EditorSettings(log_level="INFO", log_file=str(log_file)))
        logging.getLogger("some.library").warning("from stdlib")

        lines = [json.loads(line) for line in log_file.read_text().splitlines()]
        assert lines[-1]["record"]["message"] == "from stdlib"
        assert lines[-1]["record"]["level"]["name"] == "WARNING"

    def test_level_filters(self, tmp_path, restore_logging):
        log_file = tmp_path / "livemark.log"
        configure_logging(EditorSettings(log_level="WARNING", log_file=str(log_file)))
        logger.info("hidden")
        logger.warning("shown")
        messages = [json.loads(line)["record"]["message"] for line in log_file.read_text().splitlines()]
        assert messages == ["shown"]

    def test_settings_read_from_environment(self, tmp_path, monkeypatch, restore_logging):
        log_file = tmp_path / "env.log"
        monkeypatch.setenv("LIVEMARK_LOG_LEVEL", "ERROR")
        monkeypatch.setenv("LIVEMARK_LOG_FILE", str(log_file))
        configure_logging()
        logger.warning("dropped")
        logger.error("kept")
        messages = [json.loads(line)["record"]["message"] for line in log_file.read_text().splitlines()]
        assert messages == ["kept"]

    def test_no_file_sink_without_log_file(self, tmp_path, monkeypatch, restore_logging):
        monkeypatch.chdir(tmp_path)
        configure_logging(EditorSettings(log_file=None))
        logger.error("stderr only")
        assert list(tmp_path.iterdir()) == []

    def test_edit_logs_carry_editor_id(self, records):
        editor = LiveEditor("")
        editor.insert_text(0, "**a**")
        tagged = [r for r in records if r["extra"].get("editor") == editor.id]
        assert any("Detector" in r["message"] for r in tagged)

    def test_round_overrun_warns(self, records):
        editor = LiveEditor("", settings=EditorSettings(max_post_commit_rounds=1))
        editor.insert_text(0, "*a*")
        assert any(r["level"].name == "WARNING" and "rounds" in r["message"] for r in records)
