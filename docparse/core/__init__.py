from docparse.core.cancellation import CancellationToken
from docparse.core.config import ClientSettings, ConfigurationError
from docparse.core.logging import configure_logging, redact

__all__ = [
    "CancellationToken",
    "ClientSettings",
    "ConfigurationError",
    "configure_logging",
    "redact",
]
