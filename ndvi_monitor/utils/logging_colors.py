from __future__ import annotations
import logging
import os

PACKAGE_LOGGER = "ndvi_monitor"
LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"

COLORS = {
    "RESET": "\033[0m",
    "GRAY": "\033[90m",
    "RED": "\033[91m",
    "YELLOW": "\033[93m",
    "CYAN": "\033[96m",
    "MAGENTA": "\033[95m",
}

LEVEL_COLOR = {
    logging.DEBUG: "GRAY",
    logging.INFO: "CYAN",
    logging.WARNING: "YELLOW",
    logging.ERROR: "RED",
    logging.CRITICAL: "MAGENTA",
}


def _color_enabled() -> bool:
    # NO_COLOR wins over LOG_COLOR
    return os.getenv("LOG_COLOR", "1") == "1" and os.getenv("NO_COLOR") is None


class ColorFormatter(logging.Formatter):
    def __init__(self, fmt: str = LOG_FORMAT, use_color: bool | None = None):
        super().__init__(fmt)
        self.use_color = _color_enabled() if use_color is None else use_color

    def format(self, record: logging.LogRecord) -> str:
        msg = super().format(record)
        if not self.use_color:
            return msg
        color = COLORS.get(LEVEL_COLOR.get(record.levelno, "RESET"), "")
        return f"{color}{msg}{COLORS['RESET']}"


def install_color_handler(logger: logging.Logger, level: int = logging.INFO) -> None:
    logger.setLevel(level)
    if any(isinstance(h, logging.StreamHandler) for h in logger.handlers):
        return
    handler = logging.StreamHandler()
    handler.setFormatter(ColorFormatter())
    logger.addHandler(handler)


def configure_logging(level: str | int = "INFO") -> logging.Logger:
    """Attach the colour handler to the package logger and return it."""
    if isinstance(level, str):
        resolved = logging.getLevelName(level.upper())
        if not isinstance(resolved, int):
            raise ValueError(f"Unknown log level: {level}")
        level = resolved
    logger = logging.getLogger(PACKAGE_LOGGER)
    install_color_handler(logger, level)
    return logger
