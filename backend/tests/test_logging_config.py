import json
import logging
import sys

import pytest

from scenelab.logging_config import JsonFormatter, configure_logging
from tests.conftest import make_settings


def _record(msg="Build failed for scene scene_1", extra=None, exc_info=None):
    logger = logging.getLogger("scenelab.services.orchestrator")
    return logger.makeRecord(
        logger.name, logging.WARNING, __file__, 1, msg, None, exc_info, extra=extra
    )


def test_json_line_carries_service_fields():
    line = JsonFormatter("Scene Lab", "production").format(_record())

    data = json.loads(line)
    assert data["service"] == "Scene Lab"
    assert data["environment"] == "production"
    assert data["level"] == "WARNING"
    assert data["logger"] == "scenelab.services.orchestrator"
    assert data["message"] == "Build failed for scene scene_1"
    assert "timestamp" in data


def test_extra_fields_become_keys():
    record = _record(extra={"scene_id": "scene_1", "attempt": 2})

    data = json.loads(JsonFormatter("Scene Lab", "development").format(record))

    assert data["scene_id"] == "scene_1"
    assert data["attempt"] == 2
    assert "args" not in data and "levelno" not in data


def test_exception_is_included():
    try:
        raise RuntimeError("boom")
    except RuntimeError:
        record = _record(exc_info=sys.exc_info())

    data = json.loads(JsonFormatter("Scene Lab", "development").format(record))

    assert "RuntimeError: boom" in data["exception"]


@pytest.fixture
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield root
    root.handlers[:] = handlers
    root.setLevel(level)


@pytest.mark.parametrize("log_format,formatter", [("json", JsonFormatter), ("text", logging.Formatter)])
def test_configure_logging_installs_one_handler(tmp_path, restore_root_logger, log_format, formatter):
    configure_logging(make_settings(tmp_path, log_format=log_format, log_level="warning"))

    root = restore_root_logger
    assert len(root.handlers) == 1
    assert type(root.handlers[0].formatter) is formatter
    assert root.level == logging.WARNING
    assert logging.getLogger("httpx").level == logging.WARNING
