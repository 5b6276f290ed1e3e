import json

import pytest

from multinic.logger import initialize_logger


@pytest.fixture
def log_path(tmp_path):
    path = tmp_path / "logs" / "multi-nic-cni.log"
    yield path
    log = initialize_logger(str(tmp_path / "teardown.log"))
    for handler in list(log.handlers):
        log.removeHandler(handler)
        handler.close()


def _entries(path):
    return [json.loads(line) for line in path.read_text().splitlines()]


def test_debug_messages_are_written_as_json(log_path):
    log = initialize_logger(str(log_path))
    log.debug("Received an ADD request")
    for handler in log.handlers:
        handler.flush()
    entries = _entries(log_path)
    assert len(entries) == 1
    assert entries[0]["msg"] == "Received an ADD request"
    assert entries[0]["level"] == "debug"
    assert "T" in entries[0]["ts"]
    assert entries[0]["caller"].startswith("test_logger.py:")


def test_error_messages_carry_stacktrace(log_path):
    log = initialize_logger(str(log_path))
    log.error("failed")
    for handler in log.handlers:
        handler.flush()
    entry = _entries(log_path)[0]
    assert entry["level"] == "error"
    assert "stacktrace" in entry and entry["stacktrace"]


def test_debug_has_no_stacktrace(log_path):
    log = initialize_logger(str(log_path))
    log.debug("quiet")
    for handler in log.handlers:
        handler.flush()
    assert "stacktrace" not in _entries(log_path)[0]


def test_reinitialising_does_not_duplicate_lines(log_path):
    initialize_logger(str(log_path))
    log = initialize_logger(str(log_path))
    log.debug("once")
    for handler in log.handlers:
        handler.flush()
    assert len(log.handlers) == 1
    assert [e["msg"] for e in _entries(log_path)] == ["once"]


def test_rotation_limits(log_path):
    log = initialize_logger(str(log_path))
    handler = log.handlers[0]
    assert handler.maxBytes == 500 * 1024 * 1024
    assert handler.backupCount == 3