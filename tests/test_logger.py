import gzip
import json
import logging
import os
import time
from logging.handlers import RotatingFileHandler

import pytest

from reservation_backend.logger import (
    LOGGER_NAME,
    LoggerConfig,
    RotationConfig,
    bind_logger,
    current_logger,
    init_logger,
    parse_level,
)


@pytest.fixture(autouse=True)
def reset_package_logger():
    yield
    package_logger = logging.getLogger(LOGGER_NAME)
    for handler in list(package_logger.handlers):
        package_logger.removeHandler(handler)
        handler.close()


@pytest.mark.parametrize(
    ("name", "level"),
    [
        ("debug", logging.DEBUG),
        ("INFO", logging.INFO),
        ("warn", logging.WARNING),
        ("Warning", logging.WARNING),
        ("error", logging.ERROR),
        ("err", logging.ERROR),
        ("nonsense", logging.INFO),
        ("", logging.INFO),
    ],
)
def test_parse_level(name, level):
    assert parse_level(name) == level


def test_development_logs_text_with_source(capsys):
    logger = init_logger(LoggerConfig(environment="dev", level="debug"))
    logger.debug("hello")
    out = capsys.readouterr().out
    assert 'msg="Logger successfully initialized"' in out
    assert "environment=dev" in out
    assert "level=DEBUG" in out
    assert "msg=hello" in out
    assert "source=" in out
    assert logger.level == logging.DEBUG


def test_unknown_environment_ignores_level(capsys):
    logger = init_logger(LoggerConfig(environment="", level="debug"))
    logger.debug("hidden")
    out = capsys.readouterr().out
    assert "hidden" not in out
    assert "source=" not in out
    assert 'msg="Logger successfully initialized"' in out
    assert logger.level == logging.INFO


def test_production_writes_json_to_file_and_stdout(tmp_path, capsys):
    log_file = tmp_path / "logs" / "app.log"
    logger = init_logger(
        LoggerConfig(
            environment="production",
            level="warn",
            rotation=RotationConfig(filename=str(log_file), max_size=10, max_backups=3),
        )
    )
    logger.info("skipped")
    logger.warning("careful")
    lines = log_file.read_text(encoding="utf-8").splitlines()
    entries = [json.loads(line) for line in lines]
    assert [entry["msg"] for entry in entries] == ["careful"]
    assert entries[0]["level"] == "WARN"
    assert entries[0]["source"]["file"].endswith("test_logger.py")
    assert "careful" in capsys.readouterr().out


def test_production_init_message_carries_environment(tmp_path):
    log_file = tmp_path / "app.log"
    init_logger(
        LoggerConfig(
            environment="prod",
            level="info",
            rotation=RotationConfig(filename=str(log_file)),
        )
    )
    entry = json.loads(log_file.read_text(encoding="utf-8").splitlines()[0])
    assert entry["msg"] == "Logger successfully initialized"
    assert entry["environment"] == "prod"


def test_rotation_compresses_backups(tmp_path):
    log_file = tmp_path / "app.log"
    logger = init_logger(
        LoggerConfig(
            environment="production",
            level="info",
            rotation=RotationConfig(filename=str(log_file), max_backups=3, compress=True),
        )
    )
    assert logger.level == logging.INFO
    logger.info("before rotation")
    file_handler = next(h for h in logger.handlers if isinstance(h, RotatingFileHandler))
    assert file_handler.baseFilename == str(log_file)
    file_handler.doRollover()
    backup = tmp_path / "app.log.1.gz"
    assert backup.exists()
    with gzip.open(backup, "rt", encoding="utf-8") as stream:
        assert "before rotation" in stream.read()


def test_rotation_removes_expired_backups(tmp_path):
    log_file = tmp_path / "app.log"
    stale = tmp_path / "app.log.3"
    stale.write_text("old\n", encoding="utf-8")
    long_ago = time.time() - 10 * 24 * 60 * 60
    os.utime(stale, (long_ago, long_ago))
    logger = init_logger(
        LoggerConfig(
            environment="production",
            level="info",
            rotation=RotationConfig(filename=str(log_file), max_backups=5, max_age=1),
        )
    )
    assert logger.level == logging.INFO
    file_handler = next(h for h in logger.handlers if isinstance(h, RotatingFileHandler))
    assert file_handler.baseFilename == str(log_file)
    file_handler.doRollover()
    assert not stale.exists()
    assert (tmp_path / "app.log.1").exists()


def test_bind_logger_scopes_attributes(capsys):
    init_logger(LoggerConfig(environment="dev", level="info"))
    capsys.readouterr()
    with bind_logger(request_id="abc") as bound:
        assert current_logger() is bound
        current_logger().info("handled")
    out = capsys.readouterr().out
    assert "request_id=abc" in out
    assert "msg=handled" in out
    assert current_logger() is logging.getLogger(LOGGER_NAME)


def test_current_logger_defaults_to_package_logger():
    assert current_logger() is logging.getLogger(LOGGER_NAME)