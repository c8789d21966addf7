"""
Secure Packager - Encrypt the report and emit its checksum

Resolves the passphrase, encrypts the plaintext report into the artifact,
removes the plaintext unless asked to keep it, and writes the sibling
checksum file.
"""

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional

from .cipher import FileCipher, create_cipher
from .config import SubmissionConfig
from .errors import EncryptionFailed, ReportUnavailable
from .integrity import ChecksumRecord, write_checksum
from .passphrase import Passphrase, resolve_passphrase

logger = logging.getLogger(__name__)


@dataclass
class PackageResult:
    """Final outputs of a packaging run."""
    artifact: Path
    checksum: ChecksumRecord
    plaintext_kept: bool
    passphrase_source: str
    insecure_passphrase: bool = False

    @property
    def digest(self) -> str:
        return self.checksum.digest


class SecurePackager:
    """
    Encrypt a report file into an artifact plus checksum.

    Args:
        config: Submission configuration
        cipher: Cipher backend (built from config.cipher if None)
    """

    def __init__(self, config: SubmissionConfig, cipher: Optional[FileCipher] = None):
        self.config = config
        self.cipher = cipher or create_cipher(config.cipher)

    def resolve_passphrase(self, identifier: Optional[str] = None,
                           environ: Optional[Mapping[str, str]] = None) -> Passphrase:
        return resolve_passphrase(
            self.config.secret,
            identifier=identifier,
            environ=environ,
            base_dir=Path(self.config.work_dir).resolve(),
        )

    def package(
        self,
        report_path: Optional[Path] = None,
        identifier: Optional[str] = None,
        environ: Optional[Mapping[str, str]] = None,
        passphrase: Optional[Passphrase] = None,
    ) -> PackageResult:
        """
        Encrypt the report and write the checksum.

        Args:
            report_path: Plaintext report (defaults to the configured results path)
            identifier: Part identifier used as the generated default passphrase
            environ: Environment mapping (defaults to os.environ)
            passphrase: Already resolved passphrase, skips resolution

        Returns:
            PackageResult

        Raises:
            ReportUnavailable: If the report file is missing
            SecretMissing: If no usable passphrase is available
            EncryptionFailed: If the cipher fails or the checksum cannot be written
        """
        report_path = Path(report_path) if report_path else self.config.results_path
        artifact = self.config.encrypted_path

        if passphrase is None:
            passphrase = self.resolve_passphrase(identifier, environ)

        if not report_path.is_file():
            raise ReportUnavailable(f"Report to encrypt does not exist: {report_path}")

        artifact.parent.mkdir(parents=True, exist_ok=True)
        logger.info(f"Encrypting {report_path.name} with {self.cipher.name} backend")
        try:
            self.cipher.encrypt_file(report_path, artifact, passphrase)
        except EncryptionFailed:
            if artifact.exists():
                artifact.unlink()
            raise

        try:
            checksum = write_checksum(artifact, self.config.cipher.hash_algorithm)
        except OSError as e:
            raise EncryptionFailed(f"Could not write checksum for {artifact}: {e}") from e

        # Plaintext goes only once the artifact and its checksum are both on disk
        keep = self.config.output.keep_plaintext
        if not keep:
            try:
                os.remove(report_path)
            except FileNotFoundError:
                pass
            logger.debug(f"Removed plaintext report {report_path}")

        return PackageResult(
            artifact=artifact,
            checksum=checksum,
            plaintext_kept=keep,
            passphrase_source=passphrase.source,
            insecure_passphrase=passphrase.insecure,
        )
