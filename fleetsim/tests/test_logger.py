import logging

from fleetsim.sim.logger import SimLogHandler, configure_logging


def _logger(handler):
    logger = logging.getLogger("fleet-sim.test-logger")
    logger.setLevel(logging.INFO)
    logger.addHandler(handler)
    return logger


def test_handler_buffers_formatted_lines():
    handler = SimLogHandler()
    logger = _logger(handler)
    try:
        logger.info("truck=%s arrived", 1)
        logger.warning("over capacity")
    finally:
        logger.removeHandler(handler)

    lines = handler.lines
    assert len(lines) == 2
    assert lines[0].startswith("[")
    assert " UTC] [INFO] truck=1 arrived" in lines[0]
    assert lines[1].endswith("[WARNING] over capacity")
    assert handler.dump_to_string() == lines[0] + "\n" + lines[1] + "\n"

    handler.clear()
    assert handler.lines == []


def test_disabled_handler_drops_records():
    handler = SimLogHandler(enabled=False)
    logger = _logger(handler)
    try:
        logger.info("ignored")
    finally:
        logger.removeHandler(handler)

    assert handler.lines == []


def test_configure_logging_attaches_buffer_once():
    handler = SimLogHandler()
    configure_logging("INFO", handler)
    configure_logging("INFO", handler)
    sim_logger = logging.getLogger("fleet-sim")
    try:
        assert sim_logger.handlers.count(handler) == 1
        logging.getLogger("fleet-sim.engine").warning("child record")
        assert handler.lines[-1].endswith("[WARNING] child record")
    finally:
        sim_logger.removeHandler(handler)
