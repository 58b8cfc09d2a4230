import logging

import pytest


@pytest.fixture(autouse=True)
def restore_echogate_logger():
    """Undo handler and level changes made by ``setup_logger`` during a test."""
    logger = logging.getLogger("echogate")
    handlers = list(logger.handlers)
    level = logger.level
    propagate = logger.propagate
    yield logger
    for handler in logger.handlers[:]:
        if handler not in handlers:
            logger.removeHandler(handler)
            handler.close()
    logger.handlers[:] = handlers
    logger.setLevel(level)
    logger.propagate = propagate
