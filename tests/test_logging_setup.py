import io
import json
import logging
import sys

import pandas as pd
import pytest

from plotpipe import Pipeline, configure_logging
from plotpipe.errors import MappingResolutionError
from plotpipe.utils.logging import JsonFormatter


@pytest.fixture
def package_logger():
    logger = logging.getLogger("plotpipe")
    saved = (list(logger.handlers), logger.level)
    yield logger
    logger.handlers[:] = saved[0]
    logger.setLevel(saved[1])


def test_json_formatter_merges_extra_fields():
    record = logging.LogRecord("plotpipe.test", logging.INFO, __file__, 1, "hello %s", ("world",), None)
    record.rows = 12
    payload = json.loads(JsonFormatter().format(record))
    assert payload["msg"] == "hello world"
    assert payload["level"] == "INFO"
    assert payload["rows"] == 12


def test_json_formatter_stringifies_unserializable_values():
    record = logging.LogRecord("plotpipe.test", logging.INFO, __file__, 1, "msg", None, None)
    record.groups = {"a"}
    payload = json.loads(JsonFormatter().format(record))
    assert payload["groups"] == "{'a'}"


def test_configure_logging_replaces_its_own_handler(package_logger):
    configure_logging(stream=io.StringIO())
    configure_logging(stream=io.StringIO())
    ours = [h for h in package_logger.handlers if getattr(h, "_plotpipe_handler", False)]
    assert len(ours) == 1


def test_pipeline_steps_log_structured_records(package_logger):
    stream = io.StringIO()
    configure_logging(level=logging.DEBUG, stream=stream)

    frame = pd.DataFrame({"g": ["a", "a", "b"], "t": [0, 1, 0], "v": [1.0, 2.0, 3.0]})
    Pipeline(frame, x="t", y="v").group_by("g").add_lines()

    records = [json.loads(line) for line in stream.getvalue().splitlines()]
    built = [r for r in records if r.get("mark") == "line" and "traces" in r]
    assert built
    assert built[0]["layer_rows"] == 4
    assert any(r.get("step") == "transform" for r in records)


def test_plain_format(package_logger):
    stream = io.StringIO()
    configure_logging(json_format=False, stream=stream)
    logging.getLogger("plotpipe.test").info("plain message")
    assert stream.getvalue().strip() == "INFO plotpipe.test: plain message"


def test_failed_step_is_logged_before_propagating(package_logger):
    stream = io.StringIO()
    configure_logging(level=logging.DEBUG, stream=stream)
    with pytest.raises(MappingResolutionError):
        Pipeline({"t": [0, 1], "v": [1.0, 2.0]}, x="t", y="cost").add_lines()

    records = [json.loads(line) for line in stream.getvalue().splitlines()]
    assert any(r.get("error") == "MappingResolutionError" and r.get("step") == "Layering" for r in records)


def test_json_formatter_timestamp_is_utc():
    record = logging.LogRecord("plotpipe.test", logging.INFO, __file__, 1, "msg", None, None)
    record.created = 0.0
    payload = json.loads(JsonFormatter().format(record))
    assert payload["ts"] == "1970-01-01T00:00:00.000+00:00"


def test_json_formatter_includes_exception_text():
    try:
        raise ValueError("bad bins")
    except ValueError:
        record = logging.LogRecord(
            "plotpipe.test", logging.ERROR, __file__, 1, "failed", None, sys.exc_info()
        )
    payload = json.loads(JsonFormatter().format(record))
    assert "ValueError: bad bins" in payload["exc"]
    assert "exc_info" not in payload
