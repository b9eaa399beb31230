import logging

from rich.console import Console
from rich.logging import RichHandler

_NOISY = (
    "sqlalchemy.engine",
    "sqlalchemy.pool",
    "uvicorn.access",
    "httpx",
    "httpcore",
    "urllib3",
    "sentence_transformers",
)


def configure_logging(level: str = "INFO") -> None:
    console = Console(stderr=True)
    logging.basicConfig(
        level=level.upper(),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[
            RichHandler(
                console=console,
                rich_tracebacks=True,
                tracebacks_show_locals=False,
                show_path=True,
            )
        ],
        force=True,
    )

    for name in _NOISY:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)
