"""
cysubmit Unified Configuration System
=====================================

Loads and manages configuration from cysubmit.yaml with environment variable
overrides. The CLI applies its own flags on top of the loaded configuration.
"""

import os
import yaml
import logging
from pathlib import Path
from dataclasses import dataclass, field
from typing import Optional, Dict, Any, List

from .errors import ConfigNotFound

logger = logging.getLogger(__name__)

CONFIG_FILENAME = "cysubmit.yaml"

# Runner config files tried in this order
RUNNER_CONFIG_CANDIDATES = [
    "cypress.config.js",
    "cypress.config.ts",
    "cypress.config.mjs",
    "cypress.config.cjs",
    "cypress.json",
]


# =============================================================================
# Configuration Data Classes
# =============================================================================

@dataclass
class RunnerConfig:
    """External test runner configuration."""
    runner: str = "npx"
    binary: str = "cypress"
    subcommand: str = "run"
    reporter: str = "json"
    reporter_options: str = ""
    config_file: Optional[str] = None
    config_search_depth: int = 4
    spec_glob: Optional[str] = None
    browser: Optional[str] = None
    extra_args: List[str] = field(default_factory=list)
    skip_tests: bool = False
    marker_key: str = "stats"
    string_aware_scan: bool = False  # Lexically aware log recovery (opt-in)


@dataclass
class SecretConfig:
    """Passphrase sources."""
    env_var: str = "CYPRESS_RESULTS_SECRET"
    secret_file: Optional[str] = None
    default_secret: str = "your-long-passphrase"


@dataclass
class CipherConfig:
    """Cipher and integrity parameters."""
    backend: str = "openssl"  # openssl | native
    openssl_bin: str = "openssl"
    cipher: str = "aes-256-cbc"
    iterations: int = 100000
    hash_algorithm: str = "sha256"


@dataclass
class OutputConfig:
    """Artifact locations."""
    results_path: str = "cypress-results.json"
    encrypted_path: Optional[str] = None  # None = submission/submission.enc
    log_archive_path: str = "cypress-run.log"
    keep_plaintext: bool = False


@dataclass
class IdentityConfig:
    """Identifier (part ID) resolution."""
    part_id: Optional[str] = None
    env_aliases: List[str] = field(default_factory=lambda: [
        "partId", "COURSE_PART_ID", "LAB_PART_ID", "PART_ID"
    ])
    default_id: Optional[str] = None


@dataclass
class LoggingConfig:
    """Logging configuration."""
    level: str = "INFO"
    mask_secrets: bool = True


@dataclass
class SubmissionConfig:
    """Root configuration container."""
    runner: RunnerConfig = field(default_factory=RunnerConfig)
    secret: SecretConfig = field(default_factory=SecretConfig)
    cipher: CipherConfig = field(default_factory=CipherConfig)
    output: OutputConfig = field(default_factory=OutputConfig)
    identity: IdentityConfig = field(default_factory=IdentityConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    work_dir: str = "."
    project_root: Optional[str] = None  # Root for bounded runner-config search

    def resolve_path(self, target: str) -> Path:
        """Resolve target against work_dir unless already absolute."""
        path = Path(target).expanduser()
        if path.is_absolute():
            return path
        return Path(self.work_dir).resolve() / path

    @property
    def results_path(self) -> Path:
        return self.resolve_path(self.output.results_path)

    @property
    def encrypted_path(self) -> Path:
        if self.output.encrypted_path:
            return self.resolve_path(self.output.encrypted_path)
        return self.resolve_path("submission/submission.enc")

    @property
    def log_archive_path(self) -> Path:
        return self.resolve_path(self.output.log_archive_path)

    @property
    def search_root(self) -> Path:
        if self.project_root:
            return self.resolve_path(self.project_root)
        return Path(self.work_dir).resolve()


# =============================================================================
# Configuration Loader
# =============================================================================

def find_config_file(start_path: Optional[Path] = None) -> Optional[Path]:
    """
    Find cysubmit.yaml by searching upward from start_path.

    Search order:
    1. start_path / cysubmit.yaml
    2. start_path / .cysubmit / cysubmit.yaml
    3. Parent directories (recursive)
    4. ~/.config/cysubmit/cysubmit.yaml

    Args:
        start_path: Starting directory (defaults to cwd)

    Returns:
        Path to config file or None if not found
    """
    if start_path is None:
        start_path = Path.cwd()

    start_path = Path(start_path).resolve()

    current = start_path
    for _ in range(10):  # Max 10 levels up
        candidates = [
            current / CONFIG_FILENAME,
            current / ".cysubmit" / CONFIG_FILENAME,
        ]
        for candidate in candidates:
            if candidate.exists():
                return candidate

        parent = current.parent
        if parent == current:
            break
        current = parent

    user_config = Path.home() / ".config" / "cysubmit" / CONFIG_FILENAME
    if user_config.exists():
        return user_config

    return None


def load_config(
    config_path: Optional[Path] = None,
    environ: Optional[Dict[str, str]] = None,
    search: bool = True,
) -> SubmissionConfig:
    """
    Load configuration from YAML file with environment variable overrides.

    Environment variables override config file values:
    - CYPRESS_RUNNER -> runner.runner
    - CYPRESS_BIN -> runner.binary
    - CYPRESS_SUBCOMMAND -> runner.subcommand
    - CYSUBMIT_CIPHER_BACKEND -> cipher.backend
    - CYSUBMIT_KEEP_PLAINTEXT -> output.keep_plaintext
    - CYSUBMIT_LOG_LEVEL -> logging.level

    Args:
        config_path: Path to config file (auto-detected if None)
        environ: Environment mapping (defaults to os.environ)
        search: Look for a config file when config_path is None

    Returns:
        SubmissionConfig instance

    Raises:
        ConfigNotFound: If config_path is given but does not exist
    """
    config = SubmissionConfig()

    if config_path is not None and not Path(config_path).exists():
        raise ConfigNotFound(f"Configuration file not found: {config_path}")

    if config_path is None and search:
        config_path = find_config_file()

    if config_path:
        logger.info(f"Loading config from: {config_path}")
        try:
            with open(config_path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
            config = _parse_config_dict(data)
        except (yaml.YAMLError, OSError, AttributeError, TypeError) as e:
            logger.warning(f"Failed to load config: {e}, using defaults")
            config = SubmissionConfig()
    else:
        logger.debug("No config file found, using defaults")

    config = _apply_env_overrides(config, os.environ if environ is None else environ)

    _validate_config(config)

    return config


def _parse_config_dict(data: Dict[str, Any]) -> SubmissionConfig:
    """Parse configuration dictionary into SubmissionConfig."""
    config = SubmissionConfig()

    if "runner" in data:
        r = data["runner"]
        config.runner = RunnerConfig(
            runner=r.get("runner", config.runner.runner),
            binary=r.get("binary", config.runner.binary),
            subcommand=r.get("subcommand", config.runner.subcommand),
            reporter=r.get("reporter", config.runner.reporter),
            reporter_options=r.get("reporter_options", config.runner.reporter_options),
            config_file=r.get("config_file"),
            config_search_depth=r.get("config_search_depth", config.runner.config_search_depth),
            spec_glob=r.get("spec_glob"),
            browser=r.get("browser"),
            extra_args=list(r.get("extra_args", [])),
            skip_tests=r.get("skip_tests", config.runner.skip_tests),
            marker_key=r.get("marker_key", config.runner.marker_key),
            string_aware_scan=r.get("string_aware_scan", config.runner.string_aware_scan),
        )

    if "secret" in data:
        s = data["secret"]
        config.secret = SecretConfig(
            env_var=s.get("env_var", config.secret.env_var),
            secret_file=s.get("secret_file"),
            default_secret=s.get("default_secret", config.secret.default_secret),
        )

    if "cipher" in data:
        c = data["cipher"]
        config.cipher = CipherConfig(
            backend=c.get("backend", config.cipher.backend),
            openssl_bin=c.get("openssl_bin", config.cipher.openssl_bin),
            cipher=c.get("cipher", config.cipher.cipher),
            iterations=c.get("iterations", config.cipher.iterations),
            hash_algorithm=c.get("hash_algorithm", config.cipher.hash_algorithm),
        )

    if "output" in data:
        o = data["output"]
        config.output = OutputConfig(
            results_path=o.get("results_path", config.output.results_path),
            encrypted_path=o.get("encrypted_path"),
            log_archive_path=o.get("log_archive_path", config.output.log_archive_path),
            keep_plaintext=o.get("keep_plaintext", config.output.keep_plaintext),
        )

    if "identity" in data:
        i = data["identity"]
        config.identity = IdentityConfig(
            part_id=i.get("part_id"),
            env_aliases=list(i.get("env_aliases", config.identity.env_aliases)),
            default_id=i.get("default_id"),
        )

    if "logging" in data:
        log = data["logging"]
        config.logging = LoggingConfig(
            level=log.get("level", config.logging.level),
            mask_secrets=log.get("mask_secrets", config.logging.mask_secrets),
        )

    config.work_dir = data.get("work_dir", config.work_dir)
    config.project_root = data.get("project_root", config.project_root)

    return config


def _env_flag(value: str) -> bool:
    return value.lower() in ("true", "1", "yes")


def _apply_env_overrides(config: SubmissionConfig, environ: Dict[str, str]) -> SubmissionConfig:
    """Apply environment variable overrides to config."""

    if environ.get("CYPRESS_RUNNER"):
        config.runner.runner = environ["CYPRESS_RUNNER"]

    # An empty value drops the element from the command line
    if "CYPRESS_BIN" in environ:
        config.runner.binary = environ["CYPRESS_BIN"]

    if "CYPRESS_SUBCOMMAND" in environ:
        config.runner.subcommand = environ["CYPRESS_SUBCOMMAND"]

    if environ.get("CYSUBMIT_CIPHER_BACKEND"):
        config.cipher.backend = environ["CYSUBMIT_CIPHER_BACKEND"]

    if environ.get("CYSUBMIT_KEEP_PLAINTEXT"):
        config.output.keep_plaintext = _env_flag(environ["CYSUBMIT_KEEP_PLAINTEXT"])

    if environ.get("CYSUBMIT_LOG_LEVEL"):
        config.logging.level = environ["CYSUBMIT_LOG_LEVEL"].upper()

    return config


def _validate_config(config: SubmissionConfig) -> None:
    """Validate configuration and log warnings."""

    valid_backends = ("openssl", "native")
    if config.cipher.backend not in valid_backends:
        logger.warning(f"Unknown cipher backend '{config.cipher.backend}', defaulting to 'openssl'")
        config.cipher.backend = "openssl"

    if config.cipher.iterations < 1:
        logger.warning(f"Invalid iteration count {config.cipher.iterations}, defaulting to 100000")
        config.cipher.iterations = 100000

    if config.cipher.hash_algorithm not in ("sha256", "sha512"):
        logger.warning(f"Unsupported hash algorithm '{config.cipher.hash_algorithm}', defaulting to 'sha256'")
        config.cipher.hash_algorithm = "sha256"

    valid_levels = ("DEBUG", "INFO", "WARNING", "ERROR")
    if config.logging.level not in valid_levels:
        logger.warning(f"Unknown log level '{config.logging.level}', defaulting to 'INFO'")
        config.logging.level = "INFO"

    if config.runner.config_search_depth < 0:
        config.runner.config_search_depth = 0

    if not config.runner.marker_key:
        config.runner.marker_key = "stats"
