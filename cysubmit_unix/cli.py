#!/usr/bin/env python3
"""
cysubmit CLI - Run Cypress and produce an encrypted, checksummed submission

Usage:
    cysubmit [options] [-- <extra cypress args>]

Runs Cypress (via npx), writes JSON results, encrypts them, and emits an
upload-ready encrypted artifact.
"""

import argparse
import logging
import os
import sys
from pathlib import Path
from typing import List, Mapping, Optional, Tuple

from cysubmit_core.config import SubmissionConfig, load_config
from cysubmit_core.errors import SubmissionError
from cysubmit_core.logging_utils import setup_logging
from cysubmit_core.orchestrator import SubmissionOrchestrator
from cysubmit_core.version import get_short_banner

logger = logging.getLogger("cysubmit")

FAILURE_MESSAGE = "Secure submission failed. Review the messages above for remediation steps."
OS_ERROR_REMEDIATION = "Check that the output paths point to writable locations and are not existing files."

EPILOG = """
You can also pass "--" followed by raw Cypress CLI arguments.
Unrecognised options are forwarded to Cypress as well.
"""


def build_parser() -> argparse.ArgumentParser:
    """Build argument parser for the cysubmit CLI."""
    parser = argparse.ArgumentParser(
        prog="cysubmit",
        description=(
            "Runs Cypress (via npx), writes JSON results, encrypts them, "
            "and emits an upload-ready encrypted artifact."
        ),
        epilog=EPILOG,
        formatter_class=argparse.RawDescriptionHelpFormatter,
        allow_abbrev=False,
    )

    parser.add_argument(
        "-r", "--results",
        metavar="PATH",
        help="Path for the plaintext Cypress JSON (default: ./cypress-results.json)",
    )
    parser.add_argument(
        "-e", "--encrypted",
        metavar="PATH",
        help="Path for the encrypted output (default: ./submission/submission.enc)",
    )
    parser.add_argument(
        "-b", "--browser",
        metavar="NAME",
        help="Shorthand for passing --browser to Cypress",
    )
    parser.add_argument(
        "-k", "--keep-plaintext",
        action="store_true",
        help="Preserve the plaintext JSON after encryption",
    )
    parser.add_argument(
        "--secret-env",
        metavar="NAME",
        help="Environment variable containing the passphrase (default: CYPRESS_RESULTS_SECRET)",
    )
    parser.add_argument(
        "--secret-file",
        metavar="PATH",
        help="Read passphrase from the given file (overrides --secret-env)",
    )
    parser.add_argument(
        "--reporter",
        metavar="NAME",
        help="Cypress reporter to use (default: json)",
    )
    parser.add_argument(
        "--reporter-options",
        metavar="OPTS",
        help="Reporter options string (output path is enforced)",
    )
    parser.add_argument(
        "--skip-tests",
        action="store_true",
        help="Skip running Cypress and only (re-)encrypt an existing JSON file",
    )
    parser.add_argument(
        "--part-id",
        metavar="ID",
        help="Override the part ID (optional)",
    )
    parser.add_argument(
        "--cypress-arg",
        metavar="ARG",
        action="append",
        default=[],
        help="Append an additional argument to the Cypress command (repeatable)",
    )
    parser.add_argument(
        "--cysubmit-config",
        type=Path,
        metavar="PATH",
        help="Path to cysubmit.yaml (default: searched upward from cwd)",
    )
    parser.add_argument(
        "--cipher-backend",
        choices=["openssl", "native"],
        help="Encrypt with the openssl binary or in-process (default: openssl)",
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: INFO)",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging (shortcut for --log-level DEBUG)",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=get_short_banner(),
    )

    return parser


def split_passthrough(argv: List[str]) -> Tuple[List[str], List[str]]:
    """Split argv at the first bare `--`."""
    if "--" in argv:
        idx = argv.index("--")
        return argv[:idx], argv[idx + 1:]
    return argv, []


def extract_cypress_args(argv: List[str]) -> Tuple[List[str], List[str]]:
    """
    Pull `--cypress-arg VALUE` and `--cypress-arg=VALUE` out of argv.

    The value is taken verbatim, so it may itself start with a dash
    (`--cypress-arg --headed`), which argparse would refuse.

    Returns:
        (remaining argv, collected values in order)
    """
    remaining: List[str] = []
    collected: List[str] = []
    i = 0
    while i < len(argv):
        token = argv[i]
        if token == "--cypress-arg" and i + 1 < len(argv):
            collected.append(argv[i + 1])
            i += 2
            continue
        if token.startswith("--cypress-arg="):
            collected.append(token[len("--cypress-arg="):])
        else:
            remaining.append(token)
        i += 1
    return remaining, collected


def parse_args(argv: Optional[List[str]] = None) -> Tuple[argparse.Namespace, List[str]]:
    """
    Parse CLI arguments.

    Returns:
        (namespace, arguments forwarded to Cypress)
    """
    argv = list(sys.argv[1:] if argv is None else argv)
    head, tail = split_passthrough(argv)
    head, extra = extract_cypress_args(head)
    args, unknown = build_parser().parse_known_args(head)
    args.cypress_arg = extra + list(args.cypress_arg)
    passthrough = list(args.cypress_arg) + unknown + tail
    return args, passthrough


def resolve_config(
    args: argparse.Namespace,
    passthrough: List[str],
    environ: Optional[Mapping[str, str]] = None,
) -> SubmissionConfig:
    """
    Resolve configuration with precedence: CLI > ENV > CONFIG > DEFAULTS
    """
    config = load_config(args.cysubmit_config, environ=environ)

    if args.results:
        config.output.results_path = args.results
        # An artifact path from the config file still wins over the derived one
        if not args.encrypted and not config.output.encrypted_path:
            config.output.encrypted_path = f"{args.results}.enc"
    if args.encrypted:
        config.output.encrypted_path = args.encrypted
    if args.keep_plaintext:
        config.output.keep_plaintext = True

    if args.secret_env:
        config.secret.env_var = args.secret_env
    if args.secret_file:
        config.secret.secret_file = args.secret_file

    if args.reporter:
        config.runner.reporter = args.reporter
    if args.reporter_options:
        config.runner.reporter_options = args.reporter_options
    if args.skip_tests:
        config.runner.skip_tests = True
    if args.browser:
        config.runner.browser = args.browser
    config.runner.extra_args = list(config.runner.extra_args) + passthrough

    if args.part_id:
        config.identity.part_id = args.part_id

    if args.cipher_backend:
        config.cipher.backend = args.cipher_backend

    if args.debug:
        config.logging.level = "DEBUG"
    elif args.log_level:
        config.logging.level = args.log_level

    return config


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for the cysubmit CLI."""
    args, passthrough = parse_args(argv)

    # Owner-only permissions for everything created from here on
    os.umask(0o077)

    setup_logging()
    try:
        config = resolve_config(args, passthrough)
        setup_logging(config.logging.level, mask=config.logging.mask_secrets)
        logger.debug(get_short_banner())
        SubmissionOrchestrator(config).run()
    except SubmissionError as e:
        logger.error(e.message)
        logger.error(e.remediation)
        print(FAILURE_MESSAGE, file=sys.stderr)
        return e.exit_code
    except OSError as e:
        logger.error(f"File system error: {e}")
        logger.error(OS_ERROR_REMEDIATION)
        print(FAILURE_MESSAGE, file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        print("\n[Interrupted by user]", file=sys.stderr)
        print(FAILURE_MESSAGE, file=sys.stderr)
        return 130

    return 0


if __name__ == "__main__":
    sys.exit(main())
