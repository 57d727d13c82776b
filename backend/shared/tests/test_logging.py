import json
import logging
from datetime import UTC, datetime
from enum import Enum
from pathlib import Path
from unittest.mock import patch

import pytest
import structlog

from shared.logging import _serialize_enums, event_processors, setup_logging


@pytest.fixture(autouse=True)
def _cleanup_root_logger():
    """Close and remove all handlers from the root logger after each test."""
    yield
    root = logging.getLogger()
    for handler in root.handlers[:]:
        handler.close()
        root.removeHandler(handler)


@pytest.fixture(autouse=True)
def _allow_file_logging():
    """Disable the _is_test guard so logging tests can create real file handlers."""
    with patch("shared.logging._is_test", return_value=False):
        yield


class TestSetupLogging:
    def test_configures_stdout_handler_only_without_log_dir(self, monkeypatch):
        monkeypatch.delenv("LOG_LEVEL", raising=False)
        assert setup_logging() is None
        root = logging.getLogger()

        assert root.level == logging.INFO
        assert len(root.handlers) == 1
        assert isinstance(root.handlers[0].formatter, structlog.stdlib.ProcessorFormatter)

    def test_adds_file_handler_in_nested_log_dir(self, tmp_path):
        log_dir = tmp_path / "logs" / "coordinator"
        log_path = setup_logging(log_dir=str(log_dir))
        root = logging.getLogger()

        assert log_dir.is_dir()
        assert log_path is not None
        assert log_path.parent == log_dir
        file_handlers = [h for h in root.handlers if isinstance(h, logging.FileHandler)]
        assert [Path(h.baseFilename) for h in file_handlers] == [log_path]

    def test_log_file_name_has_prefix_and_timestamp(self, tmp_path):
        fixed_time = datetime(2025, 3, 15, 10, 30, 45, tzinfo=UTC)
        with patch("shared.logging.datetime") as mock_dt:
            mock_dt.now.return_value = fixed_time
            plain = setup_logging(log_dir=tmp_path / "a")
            named = setup_logging(log_dir=tmp_path / "b", name="coordinator")

        assert plain is not None
        assert plain.name == "2025-03-15_10-30-45.log"
        assert named is not None
        assert named.name == "coordinator_2025-03-15_10-30-45.log"

    def test_skips_file_handler_under_pytest_guard(self, tmp_path):
        with patch("shared.logging._is_test", return_value=True):
            assert setup_logging(log_dir=tmp_path / "coordinator") is None
        assert not (tmp_path / "coordinator").exists()

    def test_repeated_calls_replace_handlers(self):
        setup_logging()
        setup_logging()

        assert len(logging.getLogger().handlers) == 1

    def test_quiets_noisy_loggers(self):
        setup_logging(level=logging.DEBUG)

        assert logging.getLogger().level == logging.DEBUG
        assert logging.getLogger("uvicorn.access").level == logging.WARNING
        assert logging.getLogger("httpx").level == logging.WARNING

    def test_log_level_from_env(self, monkeypatch):
        monkeypatch.setenv("LOG_LEVEL", "warning")
        setup_logging()

        assert logging.getLogger().level == logging.WARNING

    def test_invalid_log_level_raises(self, monkeypatch):
        monkeypatch.setenv("LOG_LEVEL", "loud")
        with pytest.raises(ValueError, match="Invalid LOG_LEVEL"):
            setup_logging()

    def test_invalid_log_format_raises(self, monkeypatch):
        monkeypatch.setenv("LOG_FORMAT", "xml")
        with pytest.raises(ValueError, match="Invalid LOG_FORMAT"):
            setup_logging()

    def test_json_mode_includes_context_vars(self, tmp_path, monkeypatch):
        monkeypatch.setenv("LOG_FORMAT", "json")
        log_path = setup_logging(log_dir=tmp_path / "coordinator")

        structlog.contextvars.bind_contextvars(room_code="ABC123", player_id="player_1")
        structlog.get_logger("test.json").info("player joined room", player_count=2)
        structlog.contextvars.clear_contextvars()

        assert log_path is not None
        parsed = json.loads(log_path.read_text().strip().splitlines()[0])
        assert parsed["event"] == "player joined room"
        assert parsed["room_code"] == "ABC123"
        assert parsed["player_id"] == "player_1"
        assert parsed["player_count"] == 2

    def test_console_mode_writes_readable_text(self, tmp_path, monkeypatch):
        monkeypatch.setenv("LOG_FORMAT", "console")
        log_path = setup_logging(log_dir=tmp_path / "coordinator")

        structlog.get_logger("test.console").info("room created")

        assert log_path is not None
        assert "room created" in log_path.read_text()


class TestSerializeEnums:
    class _State(Enum):
        BOUND = "bound"
        CLOSED = "closed"

    def test_replaces_enum_with_value(self):
        result = _serialize_enums(None, "", {"state": self._State.BOUND, "msg": "hello"})
        assert result == {"state": "bound", "msg": "hello"}

    def test_replaces_enum_inside_dict_value(self):
        result = _serialize_enums(None, "", {"data": {"state": self._State.CLOSED, "count": 3}})
        assert result["data"] == {"state": "closed", "count": 3}


class TestEventProcessors:
    def test_timestamps_are_optional(self):
        with_ts = event_processors()
        without_ts = event_processors(timestamps=False)

        assert any(isinstance(p, structlog.processors.TimeStamper) for p in with_ts)
        assert not any(isinstance(p, structlog.processors.TimeStamper) for p in without_ts)
        assert len(with_ts) == len(without_ts) + 1

    def test_context_merged_first_and_handed_to_formatter_last(self):
        processors = event_processors()

        assert processors[0] is structlog.contextvars.merge_contextvars
        assert processors[-1] is structlog.stdlib.ProcessorFormatter.wrap_for_formatter
        assert _serialize_enums in processors
