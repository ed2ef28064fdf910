"""
Logging setup for Discubot.

Configures the root logger with a console handler and a rotating file
handler per process context ("api", "cli", ...).
"""

import logging
import logging.handlers
import sys

from discubot.config import settings

LOG_FORMAT = "[%(asctime)s] [%(levelname)s] [%(name)s] %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Third-party loggers that are too chatty at INFO
NOISY_LOGGERS = ("httpx", "httpcore", "anthropic", "openai", "sqlalchemy.engine")


def setup_logging(context: str = "app") -> None:
    """
    Configure application logging.

    Args:
        context: Name of the running process, used for the log file name

    Raises:
        PermissionError: If the log directory cannot be created
    """
    root = logging.getLogger()
    root.setLevel(settings.log_level.upper())

    # Re-running setup (tests, reloads) must not stack handlers
    for handler in list(root.handlers):
        if getattr(handler, "_discubot", False):
            root.removeHandler(handler)

    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt=DATE_FORMAT)

    if settings.log_console_enabled:
        console = logging.StreamHandler(sys.stdout)
        console.setFormatter(formatter)
        console._discubot = True  # type: ignore[attr-defined]
        root.addHandler(console)

    if settings.log_file_enabled:
        log_dir = settings.log_directory
        log_dir.mkdir(parents=True, exist_ok=True)

        file_handler = logging.handlers.RotatingFileHandler(
            log_dir / f"{context}.log",
            maxBytes=settings.log_max_bytes,
            backupCount=settings.log_backup_count,
            encoding="utf-8",
        )
        file_handler.setFormatter(formatter)
        file_handler._discubot = True  # type: ignore[attr-defined]
        root.addHandler(file_handler)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    logging.getLogger(__name__).debug(
        f"Logging configured (context={context}, level={settings.log_level})"
    )
