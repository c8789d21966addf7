"""
cysubmit Artifact Integrity
===========================

SHA-256 digests of the encrypted artifact, stored as a sibling checksum file
in the `sha256sum` text format so it can be checked with standard tools:

    <hex digest>  <artifact file name>
"""

import hashlib
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Tuple

logger = logging.getLogger(__name__)

SUPPORTED_ALGORITHMS = ("sha256", "sha512")


# =============================================================================
# Data Classes
# =============================================================================

@dataclass
class ChecksumRecord:
    """A digest and the file it was written for."""
    algorithm: str
    digest: str
    filename: str
    checksum_path: Path

    def as_line(self) -> str:
        return f"{self.digest}  {self.filename}\n"


@dataclass
class VerificationReport:
    """Result of a checksum verification."""
    valid: bool
    expected: str
    actual: str
    artifact: str
    error: Optional[str] = None


# =============================================================================
# Hash Functions
# =============================================================================

def compute_file_hash(file_path: Path, algorithm: str = "sha256") -> str:
    """
    Compute hash of entire file.

    Args:
        file_path: Path to file
        algorithm: Hash algorithm (sha256, sha512)

    Returns:
        Hexadecimal hash string
    """
    if algorithm == "sha256":
        hasher = hashlib.sha256()
    elif algorithm == "sha512":
        hasher = hashlib.sha512()
    else:
        raise ValueError(f"Unsupported algorithm: {algorithm}")

    with open(file_path, 'rb') as f:
        for chunk in iter(lambda: f.read(8192), b''):
            hasher.update(chunk)

    return hasher.hexdigest()


def checksum_path_for(artifact: Path, algorithm: str = "sha256") -> Path:
    """Sibling checksum file: artifact.enc -> artifact.enc.sha256"""
    artifact = Path(artifact)
    return artifact.with_name(f"{artifact.name}.{algorithm}")


def write_checksum(artifact: Path, algorithm: str = "sha256") -> ChecksumRecord:
    """
    Hash the artifact and write the sibling checksum file.

    Args:
        artifact: File to hash
        algorithm: Hash algorithm

    Returns:
        ChecksumRecord for the written file
    """
    artifact = Path(artifact)
    digest = compute_file_hash(artifact, algorithm)
    record = ChecksumRecord(
        algorithm=algorithm,
        digest=digest,
        filename=artifact.name,
        checksum_path=checksum_path_for(artifact, algorithm),
    )
    record.checksum_path.write_text(record.as_line(), encoding="utf-8")
    logger.debug(f"Wrote {algorithm} checksum to {record.checksum_path}")
    return record


def parse_checksum_line(line: str) -> Tuple[str, str]:
    """
    Split a `<digest>  <filename>` line.

    The binary-mode marker used by some tools (`<digest> *<filename>`) is
    accepted as well.
    """
    line = line.strip()
    if "  " in line:
        digest, filename = line.split("  ", 1)
    elif " *" in line:
        digest, filename = line.split(" *", 1)
    else:
        raise ValueError(f"Malformed checksum line: {line!r}")
    return digest.strip().lower(), filename.strip()


def verify_checksum(
    artifact: Path,
    checksum_file: Optional[Path] = None,
    algorithm: str = "sha256",
) -> VerificationReport:
    """
    Recompute the artifact digest and compare it with the stored one.

    Args:
        artifact: Encrypted artifact
        checksum_file: Checksum file (defaults to the sibling file)
        algorithm: Hash algorithm

    Returns:
        VerificationReport
    """
    artifact = Path(artifact)
    checksum_file = Path(checksum_file) if checksum_file else checksum_path_for(artifact, algorithm)

    try:
        expected, _ = parse_checksum_line(checksum_file.read_text(encoding="utf-8"))
        actual = compute_file_hash(artifact, algorithm)
    except (OSError, ValueError) as e:
        return VerificationReport(False, "", "", str(artifact), error=str(e))

    valid = expected == actual
    if not valid:
        logger.warning(f"Checksum mismatch for {artifact}: expected {expected}, got {actual}")
    return VerificationReport(valid, expected, actual, str(artifact))
