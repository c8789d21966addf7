"""
cysubmit Core - Run an end-to-end suite and package its report securely
"""

from .version import __version__
from .errors import (
    SubmissionError,
    MissingDependency,
    RunnerFailure,
    ReportUnavailable,
    SecretMissing,
    EncryptionFailed,
    ConfigNotFound,
    ReportNotFound,
)
from .config import (
    SubmissionConfig,
    RunnerConfig,
    SecretConfig,
    CipherConfig,
    OutputConfig,
    IdentityConfig,
    LoggingConfig,
    find_config_file,
    load_config,
)
from .log_scanner import extract_report_block, recover_report
from .tools_shell import CommandResult, CommandRunner, SubprocessRunner, require_command
from .passphrase import Passphrase, resolve_identifier, resolve_passphrase
from .cipher import NativeCipher, OpenSSLCipher, create_cipher
from .integrity import compute_file_hash, verify_checksum, write_checksum
from .report_producer import ReportOutcome, ReportProducer
from .packager import PackageResult, SecurePackager
from .orchestrator import SubmissionOrchestrator

__all__ = [
    "__version__",
    # Errors
    "SubmissionError",
    "MissingDependency",
    "RunnerFailure",
    "ReportUnavailable",
    "SecretMissing",
    "EncryptionFailed",
    "ConfigNotFound",
    "ReportNotFound",
    # Config
    "SubmissionConfig",
    "RunnerConfig",
    "SecretConfig",
    "CipherConfig",
    "OutputConfig",
    "IdentityConfig",
    "LoggingConfig",
    "find_config_file",
    "load_config",
    # Components
    "extract_report_block",
    "recover_report",
    "CommandResult",
    "CommandRunner",
    "SubprocessRunner",
    "require_command",
    "Passphrase",
    "resolve_identifier",
    "resolve_passphrase",
    "NativeCipher",
    "OpenSSLCipher",
    "create_cipher",
    "compute_file_hash",
    "verify_checksum",
    "write_checksum",
    "ReportOutcome",
    "ReportProducer",
    "PackageResult",
    "SecurePackager",
    "SubmissionOrchestrator",
]
