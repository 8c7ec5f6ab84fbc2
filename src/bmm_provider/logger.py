import logging

from rich.logging import RichHandler


def setup_logger(
    name: str = "bmm_provider", level: int = logging.INFO
) -> logging.Logger:
    """Configures and returns a logger with RichHandler."""
    logger = logging.getLogger(name)
    logger.setLevel(level)

    # One handler per logger, however often this is called
    if not logger.handlers:
        handler = RichHandler(rich_tracebacks=True, markup=False)
        handler.setFormatter(logging.Formatter("%(message)s"))
        logger.addHandler(handler)

    return logger


# Shared by scopes and controllers
logger = setup_logger()
