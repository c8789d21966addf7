#!/usr/bin/env python3
"""
cysubmit Verify CLI - Check and open an encrypted submission

Usage:
    cysubmit-verify <artifact> [--checksum PATH] [--decrypt-to PATH]
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

from cysubmit_core.cipher import NativeCipher
from cysubmit_core.config import CipherConfig, IdentityConfig, SecretConfig
from cysubmit_core.errors import SubmissionError
from cysubmit_core.integrity import verify_checksum
from cysubmit_core.logging_utils import setup_logging
from cysubmit_core.passphrase import resolve_identifier, resolve_passphrase
from cysubmit_core.version import get_short_banner

logger = logging.getLogger("cysubmit.verify")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="cysubmit-verify",
        description="Verify the checksum of an encrypted submission and optionally decrypt it",
    )
    parser.add_argument("artifact", type=Path, help="Encrypted artifact (.enc)")
    parser.add_argument("--checksum", type=Path, help="Checksum file (default: <artifact>.sha256)")
    parser.add_argument("--algorithm", choices=["sha256", "sha512"], default="sha256")
    parser.add_argument("--decrypt-to", type=Path, metavar="PATH",
                        help="Write the decrypted report here")
    parser.add_argument("--secret-env", default="CYPRESS_RESULTS_SECRET", metavar="NAME")
    parser.add_argument("--secret-file", metavar="PATH")
    parser.add_argument("--part-id", metavar="ID")
    parser.add_argument("--iterations", type=int, default=100000)
    parser.add_argument("--cipher", default="aes-256-cbc")
    parser.add_argument("--log-level", choices=["DEBUG", "INFO", "WARNING", "ERROR"], default="INFO")
    parser.add_argument("--version", action="version", version=get_short_banner())
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for cysubmit-verify."""
    args = build_parser().parse_args(argv)
    setup_logging(args.log_level)

    report = verify_checksum(args.artifact, args.checksum, args.algorithm)
    if report.error:
        logger.error(f"Cannot verify {args.artifact}: {report.error}")
        return 1
    if not report.valid:
        print(f"{args.artifact}: FAILED")
        return 1
    print(f"{args.artifact}: OK")

    if args.decrypt_to:
        try:
            identifier = resolve_identifier(IdentityConfig(part_id=args.part_id))
            passphrase = resolve_passphrase(
                SecretConfig(env_var=args.secret_env, secret_file=args.secret_file),
                identifier=identifier,
            )
            cipher = NativeCipher(CipherConfig(cipher=args.cipher, iterations=args.iterations))
            cipher.decrypt_file(args.artifact, args.decrypt_to, passphrase)
        except SubmissionError as e:
            logger.error(e.message)
            return e.exit_code
        print(f"Decrypted report written to {args.decrypt_to}")

    return 0


if __name__ == "__main__":
    sys.exit(main())
