"""Structured Logging — formatter output and handler setup.

Tests:
    - JSON base fields always present
    - Context extras surfaced (UUIDs as strings, booleans and ints kept)
    - Unknown extras ignored
    - Text format appends extras as key=value
    - setup_logging does not stack handlers
"""

import json
import logging
from uuid import uuid4

from slotswap.infrastructure.observability import (
    ContextTextFormatter, JSONFormatter, setup_logging,
)


def _record(**extra):
    record = logging.LogRecord(
        "slotswap.services.swap_state_machine", logging.INFO, __file__, 1,
        "Swap request accepted", None, None,
    )
    record.__dict__.update(extra)
    return record


def test_base_fields():
    out = json.loads(JSONFormatter().format(_record()))
    assert out["level"] == "INFO"
    assert out["logger"] == "slotswap.services.swap_state_machine"
    assert out["message"] == "Swap request accepted"
    assert "timestamp" in out


def test_extras_surface_with_json_types():
    request_id = uuid4()
    out = json.loads(JSONFormatter().format(
        _record(swap_request_id=request_id, atomic=False, applied_writes=2),
    ))
    assert out["swap_request_id"] == str(request_id)
    assert out["atomic"] is False
    assert out["applied_writes"] == 2


def test_unknown_extras_ignored():
    out = json.loads(JSONFormatter().format(_record(secret="hunter2")))
    assert "secret" not in out


def test_text_format_appends_context():
    line = ContextTextFormatter().format(_record(operation="accept_swap_request"))
    assert line.endswith("[operation=accept_swap_request]")
    assert "Swap request accepted" in line


def test_setup_logging_is_idempotent():
    root = logging.getLogger()
    before = list(root.handlers)
    level = root.level
    try:
        setup_logging("INFO", "json")
        setup_logging("DEBUG", "text")
        ours = [h for h in root.handlers if h.get_name() == "slotswap"]
        assert len(ours) == 1
        assert isinstance(ours[0].formatter, ContextTextFormatter)
    finally:
        for handler in list(root.handlers):
            if handler not in before:
                root.removeHandler(handler)
        root.setLevel(level)
