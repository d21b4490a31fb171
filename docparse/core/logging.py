"""
Logging helpers.

Library modules only ever do ``logger = logging.getLogger(__name__)`` and
emit ``"Component | key=value"`` lines; nothing here runs on import.
Applications that want the same console format as the service call
configure_logging() once at startup. Without an explicit level it uses
ClientSettings.log_level (DOCPARSE_LOG_LEVEL).
"""

from __future__ import annotations

import logging

from docparse.core.config import ClientSettings

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"

# Third-party loggers that are too chatty at DEBUG for normal use
_NOISY_LOGGERS = ("httpx", "httpcore")


def configure_logging(
    level:      str | int | None = None,
    *,
    settings:   ClientSettings | None = None,
    quiet_http: bool = True,
) -> None:
    """Install a root handler with the standard format and set the package level."""
    if level is None:
        level = (settings or ClientSettings()).log_level
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            raise ValueError(f"Unknown log level: {level!r}")

    logging.basicConfig(level=level, format=LOG_FORMAT)
    logging.getLogger("docparse").setLevel(level)

    if quiet_http:
        for name in _NOISY_LOGGERS:
            logging.getLogger(name).setLevel(max(level, logging.WARNING))


def redact(secret: str, keep: int = 4) -> str:
    """Mask a credential for log output, e.g. 'sk-abcd1234' -> '****1234'."""
    if not secret:
        return ""
    if len(secret) <= keep:
        return "*" * len(secret)
    return "*" * (len(secret) - keep) + secret[-keep:]
