import logging

import pytest

from impact2d.logger import (
    BufferedLogHandler,
    ColoredFormatter,
    LogConfig,
    SimulationLogger,
    to_level,
)


@pytest.fixture
def log_config(tmp_path):
    return LogConfig.from_dict(
        {
            "level": "debug",
            "log_dir": str(tmp_path / "logs"),
            "console": {"enabled": False},
        }
    )


def test_from_dict_merges_defaults(tmp_path):
    config = LogConfig.from_dict({"file": {"filename": "run.log"}, "log_dir": str(tmp_path)})
    assert config.file_logging["filename"] == "run.log"
    assert config.file_logging["backup_count"] == 5
    assert config.console_logging["enabled"] is True
    assert config.get_file_path() == tmp_path / "run.log"
    assert LogConfig.from_dict(config.to_dict()) == config


@pytest.mark.parametrize(
    "config_dict",
    [
        {"level": "verbose"},
        {"console": {"level": "loud"}},
        {"console": {"enabled": False}, "file": {"enabled": False}},
    ],
)
def test_invalid_config(config_dict):
    with pytest.raises(ValueError):
        LogConfig.from_dict(config_dict).validate()


def test_writes_to_file(log_config):
    logger = SimulationLogger("impact2d_test.file", log_config)
    logger.debug("細かい情報")
    logger.warning("注意")
    logger.close()

    text = log_config.get_file_path().read_text(encoding="utf-8")
    assert "細かい情報" in text
    assert "WARNING" in text
    assert "ロギングシステムを初期化" in text
    # 呼び出し元の位置が記録される
    assert "[test_logger.py:" in text


def test_sections_share_handlers(log_config):
    root = SimulationLogger("impact2d_test.sections", log_config)
    section = root.start_section("runner")
    section.info("セクションから")

    assert section.logger.name == "impact2d_test.sections.runner"
    assert not section.logger.handlers

    section.close()
    assert root.logger.handlers
    root.close()
    assert not root.logger.handlers
    text = log_config.get_file_path().read_text(encoding="utf-8")
    assert "impact2d_test.sections.runner" in text
    assert "セクションから" in text


def test_context_manager_logs_errors(log_config):
    logger = SimulationLogger("impact2d_test.context", log_config)

    with pytest.raises(RuntimeError):
        with logger:
            raise RuntimeError("失敗")
    logger.close()

    text = log_config.get_file_path().read_text(encoding="utf-8")
    assert "RuntimeError" in text
    assert "Traceback" in text


def test_level_filters_messages(tmp_path):
    config = LogConfig.from_dict(
        {"level": "warning", "log_dir": str(tmp_path), "console": {"enabled": False}}
    )
    logger = SimulationLogger("impact2d_test.level", config)
    logger.info("表示されない")
    logger.error("表示される")
    logger.close()

    text = config.get_file_path().read_text(encoding="utf-8")
    assert "表示されない" not in text
    assert "表示される" in text
    assert not logger.isEnabledFor(logging.INFO)


def test_to_level():
    assert to_level("Debug") == logging.DEBUG
    assert to_level("critical") == logging.CRITICAL
    with pytest.raises(ValueError):
        to_level("loud")


@pytest.fixture
def buffered_logger():
    handler = BufferedLogHandler(capacity=2)
    logger = logging.getLogger("impact2d_test.buffer")
    logger.setLevel(logging.INFO)
    logger.addHandler(handler)
    yield logger, handler
    logger.removeHandler(handler)


def test_buffered_handler_keeps_latest_records(buffered_logger):
    logger, handler = buffered_logger
    for n in range(3):
        logger.info(f"message {n}")

    logs = handler.get_logs()
    assert len(logs) == 2
    assert logs[0].endswith("message 1")
    assert logs[-1].endswith("message 2")
    handler.clear()
    assert handler.get_logs() == []


def test_buffered_handler_dump(buffered_logger, tmp_path):
    logger, handler = buffered_logger
    logger.warning("発散しそう")
    try:
        raise ZeroDivisionError("division by zero")
    except ZeroDivisionError:
        logger.error("失敗", exc_info=True)

    path = handler.dump(tmp_path / "debug.log", header="i=3, t=0.001")

    lines = path.read_text(encoding="utf-8").splitlines()
    assert lines[0] == "i=3, t=0.001"
    assert "WARNING" in lines[1] and "発散しそう" in lines[1]
    assert any("ZeroDivisionError" in line for line in lines)


def test_buffered_handler_dump_to_missing_directory(buffered_logger, tmp_path):
    _, handler = buffered_logger
    with pytest.raises(OSError):
        handler.dump(tmp_path / "missing" / "debug.log")


def test_buffered_handler_rejects_zero_capacity():
    with pytest.raises(ValueError):
        BufferedLogHandler(capacity=0)


def test_colored_formatter_keeps_record():
    record = logging.LogRecord("x", logging.ERROR, __file__, 1, "赤", None, None)
    formatted = ColoredFormatter(use_color=True).format(record)
    assert "\033[31m" in formatted
    assert record.levelname == "ERROR"
