import logging
import sys

FORMAT = "%(asctime)s [%(levelname)s] %(message)s"


def setup_logger(name: str = "sse_pipe", verbosity: int = 0) -> logging.Logger:
    """Attach a stderr handler to the ``name`` logger.

    Verbosity 0 logs INFO and up, 1 adds DEBUG, 2 and up also turns on
    DEBUG output for urllib3 (connection level diagnostics).
    """
    level = logging.DEBUG if verbosity >= 1 else logging.INFO

    logger = logging.getLogger(name)
    logger.setLevel(level)

    if not logger.handlers:
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setLevel(logging.DEBUG)
        console_handler.setFormatter(logging.Formatter(FORMAT))
        logger.addHandler(console_handler)

        if verbosity >= 2:
            wire = logging.getLogger("urllib3")
            wire.setLevel(logging.DEBUG)
            wire.addHandler(console_handler)

    return logger
