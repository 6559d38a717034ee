from __future__ import annotations

import json
import logging
from pathlib import Path

from hjbridge.bridge_logging import configure_logging, get_logger


def test_configure_logging_writes_json_lines(tmp_path: Path) -> None:
    log_file = tmp_path / "bridge.log"
    root = configure_logging("debug", str(log_file))
    try:
        get_logger("HJB.Test").debug("HJB.Test.Event", extra={"fields": {"nodeid": "5"}})
        for handler in root.handlers:
            handler.flush()

        [line] = log_file.read_text(encoding="utf-8").splitlines()
        record = json.loads(line)
        assert record["msg"] == "HJB.Test.Event"
        assert record["logger"] == "HJB.Test"
        assert record["level"] == "DEBUG"
        assert record["nodeid"] == "5"
    finally:
        for handler in list(root.handlers):
            if isinstance(handler, logging.FileHandler):
                root.removeHandler(handler)
                handler.close()
        root.setLevel(logging.INFO)


def test_unknown_level_falls_back_to_info() -> None:
    root = configure_logging("chatty")
    assert root.level == logging.INFO
