"""
Passphrase and Identifier Resolution

Both values come from an ordered chain of providers evaluated until one
yields a non-empty value:

    passphrase: secret file > environment variable > identifier > insecure default
    identifier: explicit value > environment aliases (in order) > configured default

The passphrase lives only in memory. It is never written to disk and never
exported into this process's environment.
"""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, List, Mapping, Optional, Tuple

from .config import IdentityConfig, SecretConfig
from .errors import SecretMissing
from .logging_utils import register_secret

logger = logging.getLogger(__name__)

# (source name, provider) pairs
Provider = Tuple[str, Callable[[], Optional[str]]]


@dataclass
class Passphrase:
    """A resolved passphrase and where it came from."""

    value: str = field(repr=False)
    source: str
    insecure: bool = False

    def __post_init__(self):
        if not self.value:
            raise SecretMissing("Encryption secret not provided.")


def strip_line_endings(value: str) -> str:
    """Remove every CR and LF character."""
    return value.replace("\r", "").replace("\n", "")


def first_non_empty(providers: List[Provider]) -> Optional[Tuple[str, str]]:
    """
    Evaluate providers in order and return the first non-empty value.

    Args:
        providers: Ordered (source, callable) pairs

    Returns:
        (source, value) or None if every provider came up empty
    """
    for source, provider in providers:
        value = provider()
        if value:
            return source, value
    return None


# =============================================================================
# Identifier
# =============================================================================

def identifier_providers(identity: IdentityConfig, environ: Mapping[str, str]) -> List[Provider]:
    """Build the identifier provider chain."""
    providers: List[Provider] = [("explicit", lambda: identity.part_id)]
    for alias in identity.env_aliases:
        providers.append((f"env:{alias}", lambda alias=alias: environ.get(alias)))
    providers.append(("default", lambda: identity.default_id))
    return providers


def resolve_identifier(
    identity: IdentityConfig,
    environ: Optional[Mapping[str, str]] = None,
) -> Optional[str]:
    """
    Resolve the part identifier.

    Args:
        identity: Identity configuration
        environ: Environment mapping (defaults to os.environ)

    Returns:
        The identifier, or None when no source provides one
    """
    env = os.environ if environ is None else environ
    found = first_non_empty(identifier_providers(identity, env))
    if found is None:
        logger.debug("No part identifier available")
        return None
    source, value = found
    logger.debug(f"Part identifier resolved from {source}")
    return value


# =============================================================================
# Passphrase
# =============================================================================

def _read_secret_file(path: Path) -> str:
    try:
        raw = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise SecretMissing(f"Cannot read secret file: {path}") from e
    value = strip_line_endings(raw)
    if not value:
        raise SecretMissing(f"Secret file is empty: {path}")
    return value


def passphrase_providers(
    secret: SecretConfig,
    identifier: Optional[str],
    environ: Mapping[str, str],
    base_dir: Optional[Path] = None,
) -> List[Provider]:
    """
    Build the passphrase provider chain.

    An explicit secret file is authoritative: when configured it is the only
    provider, and an unreadable or empty file is an error instead of a fall
    through to weaker sources.
    """
    if secret.secret_file:
        path = Path(secret.secret_file).expanduser()
        if not path.is_absolute() and base_dir is not None:
            path = base_dir / path
        return [("file", lambda: _read_secret_file(path))]

    return [
        (f"env:{secret.env_var}", lambda: strip_line_endings(environ.get(secret.env_var, ""))),
        ("identifier", lambda: strip_line_endings(identifier or "")),
        ("default", lambda: strip_line_endings(secret.default_secret or "")),
    ]


def resolve_passphrase(
    secret: SecretConfig,
    identifier: Optional[str] = None,
    environ: Optional[Mapping[str, str]] = None,
    base_dir: Optional[Path] = None,
) -> Passphrase:
    """
    Resolve the encryption passphrase.

    Args:
        secret: Secret configuration
        identifier: Resolved part identifier, used as the generated default
        environ: Environment mapping (defaults to os.environ)
        base_dir: Base directory for a relative secret file

    Returns:
        Passphrase instance

    Raises:
        SecretMissing: If no provider yields a non-empty value
    """
    env = os.environ if environ is None else environ
    found = first_non_empty(passphrase_providers(secret, identifier, env, base_dir))
    if found is None:
        raise SecretMissing(
            f"Encryption secret not provided. Set {secret.env_var} or use --secret-file."
        )

    source, value = found
    insecure = source == "default"
    if insecure:
        logger.warning("No secret provided. Using default insecure secret.")
    elif source == "identifier":
        logger.info("No secret provided. Using the part identifier as encryption secret.")
    else:
        logger.debug(f"Encryption secret read from {source}")

    register_secret(value)
    return Passphrase(value=value, source=source, insecure=insecure)


def cipher_environment(passphrase: Passphrase, var_name: str,
                       base: Optional[Mapping[str, str]] = None) -> Dict[str, str]:
    """
    Build a child-process environment carrying the passphrase.

    The parent environment is copied, never mutated.
    """
    env = dict(os.environ if base is None else base)
    env[var_name] = passphrase.value
    return env
