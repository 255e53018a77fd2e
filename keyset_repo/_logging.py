import logging

# Library logger
logger = logging.getLogger("keyset_repo")

# Applications decide where records go; stay silent otherwise.
logger.addHandler(logging.NullHandler())

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(filename)s:%(lineno)d %(message)s"


def configure_logging(level: str | int = logging.INFO) -> None:
    """Attach a stream handler to the library logger.

    Meant for applications (e.g. the HTTP app) that run keyset_repo directly.
    Calling it twice does not duplicate handlers.
    """
    logger.setLevel(level)
    if any(getattr(h, "_keyset_repo", False) for h in logger.handlers):
        return
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    handler._keyset_repo = True  # type: ignore[attr-defined]
    logger.addHandler(handler)
