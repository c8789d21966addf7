"""
Pytest Configuration and Fixtures
"""

import json
import sys
import tempfile
from pathlib import Path
from typing import Any, Dict, Generator, List, Optional

import pytest

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from cysubmit_core.config import SubmissionConfig  # noqa: E402
from cysubmit_core.tools_shell import CommandResult  # noqa: E402


SAMPLE_REPORT = {
    "stats": {"suites": 1, "tests": 5, "passes": 5, "pending": 0, "failures": 0},
    "tests": [],
    "passes": [],
    "failures": [],
}


class FakeRunner:
    """
    Stand-in for SubprocessRunner.

    Records every call, writes `output` to the log file and, when `report`
    is set, writes it to `report_path` as the real reporter would.
    """

    def __init__(
        self,
        returncode: int = 0,
        output: str = "",
        report: Optional[Dict[str, Any]] = None,
        report_path: Optional[Path] = None,
    ):
        self.returncode = returncode
        self.output = output
        self.report = report
        self.report_path = report_path
        self.calls: List[Dict[str, Any]] = []

    def run(self, command, cwd=None, log_path=None, env=None) -> CommandResult:
        self.calls.append({
            "command": list(command),
            "cwd": cwd,
            "log_path": log_path,
            "env": env,
        })
        if log_path is not None:
            Path(log_path).write_text(self.output, encoding="utf-8")
        if self.report is not None and self.report_path is not None:
            self.report_path.parent.mkdir(parents=True, exist_ok=True)
            self.report_path.write_text(json.dumps(self.report), encoding="utf-8")
        return CommandResult(list(command), str(cwd or "."), self.returncode,
                             str(log_path) if log_path else None)


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for tests."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir).resolve()


@pytest.fixture
def config(temp_dir: Path) -> SubmissionConfig:
    """Configuration rooted in temp_dir using the in-process cipher."""
    cfg = SubmissionConfig()
    cfg.work_dir = str(temp_dir)
    cfg.project_root = str(temp_dir)
    cfg.cipher.backend = "native"
    cfg.cipher.iterations = 1000
    return cfg


@pytest.fixture
def sample_report() -> Dict[str, Any]:
    return json.loads(json.dumps(SAMPLE_REPORT))


@pytest.fixture
def write_report(config: SubmissionConfig, sample_report):
    """Write the sample report at the configured results path."""
    def _write(report: Optional[Dict[str, Any]] = None) -> Path:
        path = config.results_path
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(report if report is not None else sample_report), encoding="utf-8")
        return path
    return _write


@pytest.fixture
def clean_env(monkeypatch) -> Dict[str, str]:
    """Remove identifier and secret variables from the environment."""
    for name in ("partId", "COURSE_PART_ID", "LAB_PART_ID", "PART_ID",
                 "CYPRESS_RESULTS_SECRET", "CYPRESS_RUNNER", "CYPRESS_BIN",
                 "CYPRESS_SUBCOMMAND", "CYSUBMIT_CIPHER_BACKEND",
                 "CYSUBMIT_KEEP_PLAINTEXT", "CYSUBMIT_LOG_LEVEL"):
        monkeypatch.delenv(name, raising=False)
    return {}
