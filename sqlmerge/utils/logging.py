"""
Structured Logging
==================

Console (rich) or JSON-lines output for merge runs, with secret redaction.

Secrets come from two places: values registered explicitly (passwords read
from config or the environment) and the ``PWD=`` / ``Password=`` attributes
of any ODBC connection string that ends up in a message.
"""

import codecs
import json
import logging
import re
import sys
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, Optional, Set

from rich.console import Console
from rich.logging import RichHandler

REDACTED = "[REDACTED]"

# ODBC connection string attributes that carry a credential
ODBC_SECRET_PATTERN = re.compile(r"\b(PWD|Password)=([^;]*)", re.IGNORECASE)

# Prefixes for console output; INFO lines are unprefixed
LEVEL_PREFIXES = {
    "DEBUG": "[DEBUG] ",
    "INFO": "",
    "WARNING": "[WARN] ",
    "ERROR": "[ERROR] ",
}

# Database driver loggers are noisy below WARNING
DRIVER_LOGGERS = ["sqlalchemy.engine", "sqlalchemy.pool", "pyodbc"]


def _console_handler() -> RichHandler:
    console = None
    if sys.platform == "win32":
        console = Console(force_terminal=True, legacy_windows=False)
    return RichHandler(rich_tracebacks=True, markup=False, show_path=False, console=console)


def _ensure_utf8_stdout() -> None:
    # Windows consoles default to a legacy code page
    if sys.platform != "win32" or sys.stdout.encoding.lower() == "utf-8":
        return
    try:
        sys.stdout.reconfigure(encoding="utf-8")
    except AttributeError:
        sys.stdout = codecs.getwriter("utf-8")(sys.stdout.detach())


class StructuredLogger:
    """
    Logger for merge runs.

    Args:
        structured: Emit one JSON object per line on stdout instead of rich
            console output.
        level: Minimum level name (``DEBUG``, ``INFO``, ``WARNING``, ``ERROR``).
        secrets: Values to redact from the start, e.g. those registered on a
            logger this one replaces.
    """

    def __init__(
        self,
        structured: bool = False,
        level: str = "INFO",
        secrets: Optional[Iterable[str]] = None,
    ):
        self.structured = structured
        self.level = getattr(logging, level.upper(), logging.INFO)
        self._secrets: Set[str] = set()
        for secret in secrets or ():
            self.register_secret(secret)

        _ensure_utf8_stdout()
        if structured:
            logging.basicConfig(level=self.level, format="%(message)s", stream=sys.stdout)
        else:
            logging.basicConfig(
                level=self.level,
                format="%(message)s",
                datefmt="[%X]",
                handlers=[_console_handler()],
            )

        self.logger = logging.getLogger("sqlmerge")
        self.logger.setLevel(self.level)

        driver_level = max(self.level, logging.WARNING)
        for name in DRIVER_LOGGERS:
            logging.getLogger(name).setLevel(driver_level)

    @property
    def secrets(self) -> Set[str]:
        return set(self._secrets)

    def register_secret(self, secret: str):
        """Register a value to be replaced by ``[REDACTED]`` wherever it is logged."""
        if isinstance(secret, str) and secret.strip():
            self._secrets.add(secret)

    def _redact(self, text: str) -> str:
        if not text:
            return text

        text = ODBC_SECRET_PATTERN.sub(lambda m: f"{m.group(1)}={REDACTED}", text)
        # longest first so a secret containing another is replaced whole
        for secret in sorted(self._secrets, key=len, reverse=True):
            text = text.replace(secret, REDACTED)
        return text

    def info(self, message: str, **kwargs):
        self._log("INFO", message, **kwargs)

    def warning(self, message: str, **kwargs):
        self._log("WARNING", message, **kwargs)

    def error(self, message: str, **kwargs):
        self._log("ERROR", message, **kwargs)

    def debug(self, message: str, **kwargs):
        self._log("DEBUG", message, **kwargs)

    def _log(self, level: str, message: str, **kwargs):
        level_value = getattr(logging, level)
        if level_value < self.level:
            return

        message = self._redact(str(message))
        fields: Dict[str, Any] = {
            key: self._redact(value) if isinstance(value, str) else value
            for key, value in kwargs.items()
        }

        if self.structured:
            entry = {
                "timestamp": datetime.now(timezone.utc).isoformat(),
                "level": level,
                "message": message,
                **fields,
            }
            print(json.dumps(entry, default=str))
            return

        if fields:
            message += " (" + ", ".join(f"{k}={v}" for k, v in fields.items()) + ")"
        self.logger.log(level_value, LEVEL_PREFIXES[level] + message)


logger = StructuredLogger()


def configure_logging(structured: bool, level: str) -> StructuredLogger:
    """
    Replace the global logger.

    Secrets registered on the previous logger stay registered, so values
    read while loading configuration remain redacted afterwards.
    """
    global logger
    logger = StructuredLogger(structured=structured, level=level, secrets=logger.secrets)
    return logger
