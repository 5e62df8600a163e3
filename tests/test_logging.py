import json
import logging

from intranet.core.logging import IntranetJsonFormatter, request_id_var


def _format(message, level=logging.INFO):
    formatter = IntranetJsonFormatter("%(timestamp) %(level) %(name) %(message)")
    record = logging.LogRecord("intranet.test", level, __file__, 1, message, None, None)
    return json.loads(formatter.format(record))


def test_json_line_carries_timestamp_and_context():
    line = _format("Leave request 7 approved")
    assert line["timestamp"]
    assert line["level"] == "INFO"
    assert line["name"] == "intranet.test"
    assert line["message"] == "Leave request 7 approved"
    assert line["service"]
    assert "request_id" not in line


def test_request_id_is_attached_when_set():
    token = request_id_var.set("req-123")
    try:
        line = _format("Reporting line updated", level=logging.WARNING)
    finally:
        request_id_var.reset(token)
    assert line["request_id"] == "req-123"
    assert line["level"] == "WARNING"
