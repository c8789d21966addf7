"""
Submission Orchestrator for cysubmit

Sequences a secure submission:

    dependencies -> transient log -> identifier & passphrase -> report
    -> encryption & checksum -> operator summary

The transient log is removed on every path, success or failure.
"""

import logging
import os
import sys
import tempfile
from pathlib import Path
from typing import Mapping, Optional, TextIO

from .cipher import FileCipher, OpenSSLCipher, create_cipher
from .config import SubmissionConfig
from .packager import PackageResult, SecurePackager
from .passphrase import resolve_identifier
from .report_producer import ReportOutcome, ReportProducer
from .tools_shell import CommandRunner, SubprocessRunner

logger = logging.getLogger(__name__)

HASH_LABELS = {"sha256": "SHA-256", "sha512": "SHA-512"}


def create_transient_log(prefix: str = "cypress-run-") -> Path:
    """Create an owner-only temporary log file under $TMPDIR."""
    fd, name = tempfile.mkstemp(prefix=prefix, suffix=".log")
    os.close(fd)
    return Path(name)


def remove_quietly(path: Optional[Path]) -> None:
    """Best-effort removal used by cleanup handlers."""
    if path is None:
        return
    try:
        path.unlink()
    except FileNotFoundError:
        pass
    except OSError as e:
        logger.debug(f"Could not remove {path}: {e}")


class SubmissionOrchestrator:
    """
    Run the full secure-submission workflow.

    Args:
        config: Submission configuration
        runner: Command runner shared by the test runner and openssl backend
        cipher: Cipher backend override
        environ: Environment mapping (defaults to os.environ)
        out: Stream for operator-facing text (defaults to stdout)
    """

    def __init__(
        self,
        config: SubmissionConfig,
        runner: Optional[CommandRunner] = None,
        cipher: Optional[FileCipher] = None,
        environ: Optional[Mapping[str, str]] = None,
        out: Optional[TextIO] = None,
    ):
        self.config = config
        self.runner = runner or SubprocessRunner()
        self.cipher = cipher or create_cipher(config.cipher, self.runner)
        self.environ = os.environ if environ is None else environ
        self.out = out
        self.producer = ReportProducer(config, self.runner)
        self.packager = SecurePackager(config, self.cipher)
        self.log_path: Optional[Path] = None
        self.outcome: Optional[ReportOutcome] = None

    def _print(self, text: str = "") -> None:
        print(text, file=self.out or sys.stdout)

    def check_dependencies(self) -> None:
        """Raise MissingDependency for any absent external command."""
        self.producer.check_dependencies()
        if isinstance(self.cipher, OpenSSLCipher):
            self.cipher.check_available()

    def prepare_outputs(self) -> None:
        self.config.results_path.parent.mkdir(parents=True, exist_ok=True)
        self.config.encrypted_path.parent.mkdir(parents=True, exist_ok=True)
        remove_quietly(self.config.log_archive_path)

    def run(self) -> PackageResult:
        """
        Execute the workflow once.

        Returns:
            PackageResult describing the artifact and checksum

        Raises:
            SubmissionError: On any unrecoverable failure
        """
        self.check_dependencies()
        self.prepare_outputs()
        self.log_path = create_transient_log()
        try:
            identifier = resolve_identifier(self.config.identity, self.environ)
            passphrase = self.packager.resolve_passphrase(identifier, self.environ)

            self._print("Preparing secure submission...")
            self.outcome = self.producer.produce(self.log_path)
            if self.outcome.recovered:
                self._print(f"Recovered results JSON at {self.outcome.results_path}")

            result = self.packager.package(passphrase=passphrase)
            self.print_summary(result)
            return result
        finally:
            remove_quietly(self.log_path)

    def print_summary(self, result: PackageResult) -> None:
        label = HASH_LABELS.get(result.checksum.algorithm, result.checksum.algorithm.upper())
        self._print()
        self._print("Secure submission created.")
        self._print(f"  Artifact : {result.artifact}")
        self._print(f"  Checksum : {label} {result.digest} (stored at {result.checksum.checksum_path})")
        if result.plaintext_kept:
            self._print(f"  Plaintext: {self.config.results_path}")

        self._print()
        self._print("Next steps:")
        self._print("  1. Upload the secure submission file to Coursera.")
        self._print(f"  2. Provide the {label} checksum if the platform requests verification.")
        self._print("  3. Keep a local copy of the plaintext results for your records.")
