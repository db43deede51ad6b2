import logging

from qpot.log import logger, log_to_file


def test_logger_is_silent_by_default():
    assert any(isinstance(h, logging.NullHandler) for h in logger.handlers)


def test_log_to_file(tmp_path):
    filename = tmp_path / "log.txt"
    handler = log_to_file(filename)
    try:
        logger.debug("accepted %d nodes", 12)
        logger.warning("front reached the domain edge")
        handler.flush()
    finally:
        logger.removeHandler(handler)
        handler.close()

    text = filename.read_text()
    assert "[DEBUG] - accepted 12 nodes" in text
    assert "[WARNING] - front reached the domain edge" in text
