"""Tests for the JSON log formatter."""
import json
import logging

import pytest

from hhs.lib.logging import JSONFormatter, get_correlation_id, set_correlation_id


def make_record(msg="Booking created", **extra):
    record = logging.LogRecord("hhs.test", logging.INFO, __file__, 1, msg, None, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


@pytest.mark.unit
def test_formats_core_fields():
    data = json.loads(JSONFormatter().format(make_record()))

    assert data["level"] == "INFO"
    assert data["logger"] == "hhs.test"
    assert data["message"] == "Booking created"


@pytest.mark.unit
def test_extra_fields_are_included():
    data = json.loads(JSONFormatter().format(make_record(booking_id="b-1", attempt=2)))

    assert data["booking_id"] == "b-1"
    assert data["attempt"] == 2


@pytest.mark.unit
def test_correlation_id_from_context():
    set_correlation_id("corr-123")
    try:
        data = json.loads(JSONFormatter().format(make_record()))
    finally:
        set_correlation_id(None)

    assert data["correlation_id"] == "corr-123"
    assert get_correlation_id() is None
