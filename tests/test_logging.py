import json
import logging
from pathlib import Path

import pytest

from nativebuild.foundation.logging_utils import setup_operational_logger, write_graph_log


@pytest.fixture(autouse=True)
def _reset_nativebuild_logger():
    yield
    logger = logging.getLogger("nativebuild")
    for handler in list(logger.handlers):
        handler.close()
    logger.handlers.clear()
    logger.propagate = True
    logger.setLevel(logging.NOTSET)


def test_writes_unicode_graph_with_utf8_encoding(tmp_path: Path):
    payload = {"stages": [], "outputs": {"main:module_file": {"path": "build/modules/main/Café.module"}}}
    log_path = tmp_path / "nested" / "graph.json"

    write_graph_log(str(log_path), payload)

    content = log_path.read_text(encoding="utf-8")
    assert "Café" in content
    assert json.loads(content) == payload


def test_operational_logger_writes_debug_records_to_file(tmp_path: Path):
    log_path = tmp_path / "logs" / "nativebuild.log"
    logger = setup_operational_logger("warning", log_path=str(log_path))

    logging.getLogger("nativebuild.framework.pipeline_builder").info("Synthesized 3 stages")
    for handler in logger.handlers:
        handler.flush()

    content = log_path.read_text(encoding="utf-8")
    assert "| INFO | Synthesized 3 stages" in content
    assert "Operational logging initialized" in content


def test_operational_logger_replaces_handlers_on_repeat_setup():
    setup_operational_logger("info")
    logger = setup_operational_logger("debug")
    assert len(logger.handlers) == 1
    assert logger.propagate is False


def test_operational_logger_rejects_unknown_level():
    with pytest.raises(ValueError, match=r"Invalid log level"):
        setup_operational_logger("chatty")
