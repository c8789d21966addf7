"""
Log Scanner - Recover a JSON report from unstructured runner output

When the runner fails to write its report file, the reporter output is
usually still present in the captured log. This module finds the first
balanced-brace JSON object carrying the report marker key.
"""

import json
import logging
from pathlib import Path
from typing import Any, Dict, Iterator, Tuple

from .errors import ReportNotFound

logger = logging.getLogger(__name__)

DEFAULT_MARKER = "stats"


def iter_brace_spans(text: str, string_aware: bool = False) -> Iterator[Tuple[int, int]]:
    """
    Yield (start, end) of every top-level balanced {...} span, end inclusive.

    Without string_aware, braces inside quoted strings are counted like any
    other brace. With it, double-quoted strings (and backslash escapes
    inside them) suspend counting.

    Args:
        text: Text to scan
        string_aware: Skip braces that appear inside "..." literals

    Yields:
        Inclusive index pairs, left to right
    """
    depth = 0
    start = -1
    in_string = False
    escape_next = False

    for i, char in enumerate(text):
        if string_aware:
            if escape_next:
                escape_next = False
                continue
            if in_string:
                if char == "\\":
                    escape_next = True
                elif char == '"':
                    in_string = False
                continue
            if char == '"' and depth > 0:
                in_string = True
                continue

        if char == "{":
            if depth == 0:
                start = i
            depth += 1
        elif char == "}":
            if depth == 0:
                continue
            depth -= 1
            if depth == 0:
                yield start, i
                start = -1


def extract_report_block(
    text: str,
    marker: str = DEFAULT_MARKER,
    string_aware: bool = False,
) -> Dict[str, Any]:
    """
    Extract the first JSON object in text that contains the marker key.

    Candidates that do not parse, or parse to something other than a
    mapping holding the marker, are skipped. Scanning stops at the first
    accepted candidate.

    Args:
        text: Raw log text
        marker: Required top-level key
        string_aware: Use the lexically aware brace scan

    Returns:
        The parsed report mapping

    Raises:
        ReportNotFound: If no candidate qualifies
    """
    rejected = 0
    for start, end in iter_brace_spans(text, string_aware=string_aware):
        snippet = text[start:end + 1]
        try:
            parsed = json.loads(snippet)
        except json.JSONDecodeError:
            rejected += 1
            continue
        if isinstance(parsed, dict) and marker in parsed:
            logger.debug(f"Accepted JSON block at offset {start} after {rejected} rejected candidate(s)")
            return parsed
        rejected += 1

    raise ReportNotFound(
        f"No JSON object containing '{marker}' found ({rejected} candidate(s) rejected)"
    )


def recover_report(
    log_path: Path,
    results_path: Path,
    marker: str = DEFAULT_MARKER,
    string_aware: bool = False,
) -> Dict[str, Any]:
    """
    Rebuild the report file from a captured runner log.

    Args:
        log_path: Captured runner output
        results_path: Where the recovered report is written
        marker: Required top-level key
        string_aware: Use the lexically aware brace scan

    Returns:
        The recovered report mapping

    Raises:
        ReportNotFound: If the log holds no qualifying object
    """
    text = Path(log_path).read_text(encoding="utf-8", errors="ignore")
    report = extract_report_block(text, marker=marker, string_aware=string_aware)

    results_path = Path(results_path)
    results_path.parent.mkdir(parents=True, exist_ok=True)
    results_path.write_text(json.dumps(report, indent=2), encoding="utf-8")
    logger.info(f"Recovered results JSON at {results_path}")
    return report
