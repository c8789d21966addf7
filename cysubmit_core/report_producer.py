"""
Report Producer - Run the end-to-end suite and secure its JSON report

Builds the runner command line (reporter, reporter options with the enforced
output path, discovered config file and spec glob, pass-through arguments),
captures combined output to the transient log, and falls back to recovering
the report from that log when the runner did not write it.
"""

import logging
import os
import shutil
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Tuple

from .config import RUNNER_CONFIG_CANDIDATES, SubmissionConfig
from .errors import ReportNotFound, ReportUnavailable, RunnerFailure
from .log_scanner import recover_report
from .tools_shell import CommandResult, CommandRunner, SubprocessRunner, require_command

logger = logging.getLogger(__name__)

SPEC_SUFFIXES = (".cy.js", ".cy.ts")
SKIP_DIRS = {"node_modules", ".git"}


@dataclass
class ReportOutcome:
    """What the producer did to obtain the report."""
    results_path: Path
    executed: bool = False
    runner_exit_code: Optional[int] = None
    recovered: bool = False
    log_archived: bool = False
    command: List[str] = field(default_factory=list)
    failure: Optional[RunnerFailure] = None


# =============================================================================
# Discovery helpers
# =============================================================================

def has_content(path: Path) -> bool:
    """True if path is a non-empty regular file."""
    try:
        return path.is_file() and path.stat().st_size > 0
    except OSError:
        return False


def normalize_reporter_options(options: str, results_path: Path) -> str:
    """
    Enforce the report output path in the reporter options string.

    Empty options get the full default set; options without an output entry
    get one appended.
    """
    if not options:
        return f"output={results_path},overwrite=true,includePending=true"
    if "output=" not in options:
        return f"{options},output={results_path}"
    return options


def find_runner_config(root: Path, max_depth: int) -> Optional[Path]:
    """
    Search root for a runner config file, at most max_depth levels deep.

    Files directly in root are depth 1. The walk is sorted so the result is
    deterministic; node_modules and .git are not descended into.

    Args:
        root: Directory to search
        max_depth: Maximum depth of the matched file

    Returns:
        First matching config file or None
    """
    root = Path(root)
    if not root.is_dir() or max_depth < 1:
        return None

    for dirpath, dirnames, filenames in os.walk(root):
        depth = len(Path(dirpath).relative_to(root).parts) + 1
        dirnames[:] = sorted(d for d in dirnames if d not in SKIP_DIRS) if depth < max_depth else []
        present = set(filenames)
        for name in RUNNER_CONFIG_CANDIDATES:
            if name in present:
                return Path(dirpath) / name
    return None


def discover_spec_glob(config_dir: Path) -> Optional[str]:
    """
    Pick a spec glob from the first spec file under cypress/e2e.

    Returns:
        `<dir>/cypress/e2e/**/*.cy.js` (or .cy.ts), None if there are no specs
    """
    e2e_dir = Path(config_dir) / "cypress" / "e2e"
    if not e2e_dir.is_dir():
        return None

    specs = sorted(p for p in e2e_dir.rglob("*") if p.is_file() and p.name.endswith(SPEC_SUFFIXES))
    if not specs:
        return None
    suffix = ".cy.js" if specs[0].name.endswith(".cy.js") else ".cy.ts"
    return f"{e2e_dir}/**/*{suffix}"


# =============================================================================
# Producer
# =============================================================================

class ReportProducer:
    """
    Produce the JSON report at the configured results path.

    Args:
        config: Submission configuration
        runner: Command execution backend
    """

    def __init__(self, config: SubmissionConfig, runner: Optional[CommandRunner] = None):
        self.config = config
        self.runner = runner or SubprocessRunner()

    @property
    def results_path(self) -> Path:
        return self.config.results_path

    def check_dependencies(self) -> None:
        """Raise MissingDependency if the runner launcher is not installed."""
        if not self.config.runner.skip_tests:
            require_command(self.config.runner.runner)

    def locate_runner_config(self) -> Optional[Path]:
        """Explicit config file, then the working directory, then a bounded search."""
        rc = self.config.runner
        if rc.config_file:
            return self.config.resolve_path(rc.config_file)

        work_dir = Path(self.config.work_dir).resolve()
        for name in RUNNER_CONFIG_CANDIDATES:
            candidate = work_dir / name
            if candidate.is_file():
                return candidate

        return find_runner_config(self.config.search_root, rc.config_search_depth)

    def build_command(self) -> Tuple[List[str], Path]:
        """
        Assemble the runner command line.

        Returns:
            (command, directory to run it in)
        """
        rc = self.config.runner
        run_dir = Path(self.config.work_dir).resolve()

        cmd = [rc.runner]
        if rc.binary:
            cmd.append(rc.binary)
        if rc.subcommand:
            cmd.append(rc.subcommand)
        cmd += [
            "--reporter", rc.reporter,
            "--reporter-options", normalize_reporter_options(rc.reporter_options, self.results_path),
        ]

        config_file = self.locate_runner_config()
        if config_file is not None:
            cmd += ["--config-file", str(config_file)]
            run_dir = config_file.parent

        spec_glob = rc.spec_glob
        if not spec_glob and config_file is not None:
            spec_glob = discover_spec_glob(config_file.parent)
        if spec_glob:
            cmd += ["--spec", spec_glob]

        cmd += list(rc.extra_args)
        if rc.browser:
            cmd += ["--browser", rc.browser]

        return cmd, run_dir

    def run_tests(self, log_path: Path) -> CommandResult:
        """Run the suite once, output captured to log_path."""
        cmd, run_dir = self.build_command()

        if self.results_path.exists():
            self.results_path.unlink()

        print("Executing Cypress suite...")
        return self.runner.run(cmd, cwd=run_dir, log_path=log_path)

    def _archive_log(self, log_path: Path) -> bool:
        archive = self.config.log_archive_path
        try:
            archive.parent.mkdir(parents=True, exist_ok=True)
            shutil.copyfile(log_path, archive)
        except OSError as e:
            logger.warning(f"Could not archive runner log to {archive}: {e}")
            return False
        logger.info(f"Runner log archived at {archive}")
        return True

    def produce(self, log_path: Path) -> ReportOutcome:
        """
        Obtain the report, running the suite unless skip_tests is set.

        Args:
            log_path: Transient log receiving the runner output

        Returns:
            ReportOutcome

        Raises:
            ReportUnavailable: If no report exists and none can be recovered
        """
        outcome = ReportOutcome(results_path=self.results_path)
        rc = self.config.runner

        if rc.skip_tests:
            print(f"Re-using existing Cypress results at {self.results_path}")
        else:
            result = self.run_tests(log_path)
            outcome.executed = True
            outcome.command = result.command
            outcome.runner_exit_code = result.returncode
            if not result.ok:
                outcome.failure = RunnerFailure(
                    f"Cypress execution completed with exit code {result.returncode}",
                    exit_code=result.returncode,
                )
                outcome.log_archived = self._archive_log(log_path)
                logger.warning(
                    f"{outcome.failure.message}. Attempting to extract results from log..."
                )

        if has_content(self.results_path):
            return outcome

        logger.error(f"Unable to locate Cypress results at {self.results_path}")
        exit_code = outcome.runner_exit_code or 1

        if not has_content(Path(log_path)):
            raise ReportUnavailable(
                f"No Cypress results at {self.results_path} and no captured output to recover from",
                exit_code=exit_code,
            )

        print("Attempting to recover JSON results from captured Cypress output...")
        try:
            recover_report(
                log_path,
                self.results_path,
                marker=rc.marker_key,
                string_aware=rc.string_aware_scan,
            )
        except ReportNotFound as e:
            logger.error(f"Failed to extract JSON block from Cypress output: {e}")
            raise ReportUnavailable(
                "Unable to reconstruct Cypress results; aborting.",
                exit_code=exit_code,
            ) from e

        outcome.recovered = True
        return outcome
