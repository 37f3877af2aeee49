import logging
import os


LOG_FORMAT = '%(asctime)s %(name)-12s - %(levelname)6s - %(message)s'


def _level_from_name(level: int | str) -> int:
    if isinstance(level, int):
        return level
    resolved = logging.getLevelName(level.strip().upper())
    return resolved if isinstance(resolved, int) else logging.INFO


def configure_logging(level: int | str, log_file: str | None = None, force: bool = False):
    """Install the stream handler, plus a file handler when log_file is set."""
    level = _level_from_name(level)
    handlers: list[logging.Handler] = [logging.StreamHandler()]
    if log_file:
        handlers.append(logging.FileHandler(log_file))
    for h in handlers:
        h.setLevel(level)
    logging.basicConfig(level=level, format=LOG_FORMAT, handlers=handlers, force=force)


class ScalerLogger:
    def __init__(self, name: str, level: int | str | None = None):
        if level is None:
            level = os.getenv("LOG_LEVEL", "INFO")
        if not logging.getLogger().handlers:
            configure_logging(level, os.getenv("LOG_FILE") or None)
        self.logger = logging.getLogger(name)
