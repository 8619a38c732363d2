import logging

from loguru import logger

from backend.log_config import InterceptHandler


def test_forwarded_records_keep_caller_location():
    records = []
    sink_id = logger.add(lambda message: records.append(message.record), level="DEBUG")
    stdlib_logger = logging.getLogger("driftguard.tests.intercept")
    stdlib_logger.addHandler(InterceptHandler())
    stdlib_logger.propagate = False
    stdlib_logger.setLevel(logging.DEBUG)
    try:
        stdlib_logger.warning("Check failed for Flat/Living room")
    finally:
        logger.remove(sink_id)
        stdlib_logger.handlers.clear()

    [record] = [r for r in records if r["message"] == "Check failed for Flat/Living room"]
    assert record["level"].name == "WARNING"
    assert record["function"] == "test_forwarded_records_keep_caller_location"
    assert record["file"].name == "test_log_config.py"
    assert record["name"] == __name__
