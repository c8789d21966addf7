"""
Logging Utilities for cysubmit

Console logging setup for the CLI plus secret masking, so neither the
passphrase nor credential-looking tokens leak into the log stream.
"""

import logging
import re
from typing import List, Optional


# Patterns for secret masking (environment variables, tokens, keys)
SECRET_PATTERNS = [
    (re.compile(r"(API_KEY|TOKEN|SECRET|PASSWORD|PASSPHRASE|PASS|AUTH)[=:]\s*['\"]?([^'\"\ \n]+)", re.I), r"\1=***"),
    (re.compile(r"(Bearer|token)\s+([a-zA-Z0-9_\-\.]+)", re.I), r"\1 ***"),
    (re.compile(r"-----BEGIN [A-Z ]+-----.*?-----END [A-Z ]+-----", re.DOTALL), "*** SSH/PGP KEY ***"),
]

LOG_FORMAT = "%(levelname)s: %(message)s"


def mask_secrets(text: str, literals: Optional[List[str]] = None) -> str:
    """
    Mask secrets in text before logging.

    Args:
        text: Raw text that may contain secrets
        literals: Exact secret values to mask as well

    Returns:
        Text with secrets replaced by ***
    """
    masked = text
    for literal in literals or []:
        if literal:
            masked = masked.replace(literal, "***")
    for pattern, replacement in SECRET_PATTERNS:
        masked = pattern.sub(replacement, masked)
    return masked


class SecretMaskingFilter(logging.Filter):
    """Logging filter that rewrites records with secrets masked."""

    def __init__(self):
        super().__init__()
        self.literals: List[str] = []

    def register(self, secret: str):
        """Add a literal secret value to mask from now on."""
        if secret and secret not in self.literals:
            self.literals.append(secret)

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        masked = mask_secrets(message, self.literals)
        if masked != message:
            record.msg = masked
            record.args = None
        return True


_mask_filter = SecretMaskingFilter()


def get_mask_filter() -> SecretMaskingFilter:
    """Return the process-wide masking filter."""
    return _mask_filter


def register_secret(secret: str):
    """Mask this exact value in every subsequent log record."""
    _mask_filter.register(secret)


def setup_logging(level: str = "INFO", mask: bool = True) -> None:
    """
    Configure console logging for the CLI entry points.

    Args:
        level: Logging level name
        mask: Attach the secret masking filter to the root handlers
    """
    logging.basicConfig(level=getattr(logging, level.upper(), logging.INFO), format=LOG_FORMAT)
    root = logging.getLogger()
    root.setLevel(getattr(logging, level.upper(), logging.INFO))
    if mask:
        for handler in root.handlers:
            if _mask_filter not in handler.filters:
                handler.addFilter(_mask_filter)
