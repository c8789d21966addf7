"""
Error taxonomy for cysubmit

Every fatal condition is a SubmissionError carrying the exit status to
propagate and an operator-facing remediation hint. Library code raises;
only the CLI turns these into process exit codes.
"""

from typing import Optional


class SubmissionError(Exception):
    """Base class for fatal submission failures."""

    default_remediation = "Review the messages above for remediation steps."

    def __init__(self, message: str, exit_code: int = 1, remediation: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.exit_code = exit_code if exit_code else 1
        self.remediation = remediation or self.default_remediation


class MissingDependency(SubmissionError):
    """Raised when a required external command is not on PATH."""

    default_remediation = "Install the missing command or adjust PATH, then retry."


class RunnerFailure(SubmissionError):
    """
    The test runner exited non-zero.

    Non-fatal: the producer records it and falls back to log recovery.
    """

    default_remediation = "Inspect the archived runner log for failing specs."


class ReportUnavailable(SubmissionError):
    """Raised when no report exists and none could be recovered from the log."""

    default_remediation = (
        "Make sure the test runner can write its JSON report, "
        "or re-run without --skip-tests."
    )


class SecretMissing(SubmissionError):
    """Raised when the resolved passphrase is empty or unreadable."""

    default_remediation = "Set the secret environment variable or use --secret-file."


class EncryptionFailed(SubmissionError):
    """Raised when the cipher invocation fails."""

    default_remediation = (
        "Secure submission could not be created. "
        "Ensure you are using the correct partId/secret for this lab."
    )


class ConfigNotFound(SubmissionError):
    """Raised when an explicitly named configuration file does not exist."""

    default_remediation = "Check the path given to --cysubmit-config."


class ReportNotFound(Exception):
    """Raised by the log scanner when no marker-bearing JSON object exists."""
    pass
