import logging


def setup_logging(level: str = "INFO") -> None:
    """Configure the root logger with a console handler, once."""
    root = logging.getLogger()
    if root.handlers:
        # uvicorn or pytest may already have installed handlers
        return

    root.setLevel(getattr(logging, level.upper(), logging.INFO))

    handler = logging.StreamHandler()
    handler.setFormatter(
        logging.Formatter(
            fmt="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
    )
    root.addHandler(handler)
