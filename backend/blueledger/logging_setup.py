from __future__ import annotations

import logging
import re

_SENSITIVE_PATTERNS = [
    re.compile(r"(authorization\s*[:=]\s*bearer\s+)([^\s\"]+)", re.IGNORECASE),
    re.compile(r"(token\s*[:=]\s*)([^\s\",}]+)", re.IGNORECASE),
    re.compile(r"(password\s*[:=]\s*)([^\s\",}]+)", re.IGNORECASE),
    re.compile(r"(secret\s*[:=]\s*)([^\s\",}]+)", re.IGNORECASE),
]

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


class MaskingFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        return mask_secrets(super().format(record))


def mask_secrets(value: str) -> str:
    masked = value
    for pattern in _SENSITIVE_PATTERNS:
        masked = pattern.sub(r"\1***", masked)
    return masked


def configure_logging(level: str = "INFO") -> None:
    """Attach a single masking stream handler to the blueledger logger tree."""
    logger = logging.getLogger("blueledger")
    logger.setLevel(level)
    for handler in list(logger.handlers):
        if getattr(handler, "_blueledger", False):
            logger.removeHandler(handler)

    handler = logging.StreamHandler()
    handler.setFormatter(MaskingFormatter(LOG_FORMAT))
    handler._blueledger = True  # type: ignore[attr-defined]
    logger.addHandler(handler)
