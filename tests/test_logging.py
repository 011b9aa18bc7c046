import json
import logging

from dentist_ivr.logging_config import JsonFormatter, KeyValueFormatter


def _record(**extra):
    record = logging.LogRecord("dentist_ivr.test", logging.INFO, __file__, 1, "Recording downloaded", (), None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_json_formatter_includes_extra_fields():
    payload = json.loads(JsonFormatter().format(_record(attempt=2, provider="gladia")))
    assert payload["message"] == "Recording downloaded"
    assert payload["level"] == "INFO"
    assert payload["attempt"] == 2
    assert payload["provider"] == "gladia"


def test_key_value_formatter_appends_extras():
    line = KeyValueFormatter("%(levelname)s | %(message)s").format(_record(status=404))
    assert line == "INFO | Recording downloaded | status=404"
