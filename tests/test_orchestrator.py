"""
Tests for the submission orchestrator (end-to-end with fake commands)
"""

import io
import json

import pytest

from cysubmit_core.cipher import NativeCipher
from cysubmit_core.errors import MissingDependency, ReportUnavailable, SecretMissing
from cysubmit_core.orchestrator import SubmissionOrchestrator, create_transient_log
from cysubmit_core.passphrase import Passphrase

from conftest import FakeRunner

ENV = {"CYPRESS_RESULTS_SECRET": "course-secret"}


@pytest.fixture
def on_path(monkeypatch):
    """Pretend every external command is installed."""
    monkeypatch.setattr("cysubmit_core.tools_shell.shutil.which", lambda name: f"/usr/bin/{name}")


def _orchestrator(config, runner, environ=ENV):
    return SubmissionOrchestrator(config, runner=runner, environ=environ, out=io.StringIO())


class TestTransientLog:

    def test_created_private(self):
        path = create_transient_log()
        try:
            assert path.exists()
            assert path.name.startswith("cypress-run-")
            assert path.suffix == ".log"
            assert path.stat().st_mode & 0o077 == 0
        finally:
            path.unlink()


class TestRun:

    def test_full_flow(self, config, sample_report, on_path, temp_dir):
        runner = FakeRunner(report=sample_report, report_path=config.results_path)
        orch = _orchestrator(config, runner)

        result = orch.run()

        assert result.artifact == temp_dir / "submission" / "submission.enc"
        assert not config.results_path.exists()
        assert not orch.log_path.exists()

        out = temp_dir / "check.json"
        NativeCipher(config.cipher).decrypt_file(
            result.artifact, out, Passphrase(value="course-secret", source="test")
        )
        assert json.loads(out.read_text(encoding="utf-8")) == sample_report

    def test_summary_printed(self, config, sample_report, on_path):
        runner = FakeRunner(report=sample_report, report_path=config.results_path)
        orch = _orchestrator(config, runner)

        result = orch.run()
        text = orch.out.getvalue()

        assert text.startswith("Preparing secure submission...")
        assert "Secure submission created." in text
        assert f"Artifact : {result.artifact}" in text
        assert f"Checksum : SHA-256 {result.digest}" in text
        assert "Plaintext:" not in text
        assert "Next steps:" in text

    def test_recovered_report_announced(self, config, on_path):
        runner = FakeRunner(returncode=1, output='junk {"stats": {"tests": 1}} junk')
        orch = _orchestrator(config, runner)

        orch.run()

        assert "Recovered results JSON at" in orch.out.getvalue()
        assert config.log_archive_path.exists()
        assert not orch.log_path.exists()

    def test_keep_plaintext_listed(self, config, sample_report, on_path):
        config.output.keep_plaintext = True
        runner = FakeRunner(report=sample_report, report_path=config.results_path)
        orch = _orchestrator(config, runner)

        orch.run()

        assert config.results_path.exists()
        assert f"Plaintext: {config.results_path}" in orch.out.getvalue()

    def test_stale_archive_removed(self, config, sample_report, on_path):
        config.log_archive_path.write_text("old run", encoding="utf-8")
        runner = FakeRunner(report=sample_report, report_path=config.results_path)

        _orchestrator(config, runner).run()

        assert not config.log_archive_path.exists()


class TestRunFailures:

    def test_unrecoverable_output(self, config, on_path):
        runner = FakeRunner(returncode=4, output="Error: no specs found")
        orch = _orchestrator(config, runner)

        with pytest.raises(ReportUnavailable) as exc:
            orch.run()

        assert exc.value.exit_code == 4
        assert not orch.log_path.exists()
        assert not config.encrypted_path.exists()

    def test_missing_runner(self, config, monkeypatch):
        monkeypatch.setattr("cysubmit_core.tools_shell.shutil.which", lambda name: None)
        runner = FakeRunner()
        with pytest.raises(MissingDependency):
            _orchestrator(config, runner).run()
        assert runner.calls == []

    def test_missing_openssl(self, config, monkeypatch):
        config.cipher.backend = "openssl"
        monkeypatch.setattr(
            "cysubmit_core.tools_shell.shutil.which",
            lambda name: None if name == "openssl" else f"/usr/bin/{name}",
        )
        with pytest.raises(MissingDependency):
            _orchestrator(config, FakeRunner()).run()

    def test_secret_file_problem_stops_before_tests(self, config, on_path, temp_dir):
        config.secret.secret_file = str(temp_dir / "missing-secret.txt")
        runner = FakeRunner()
        orch = _orchestrator(config, runner)

        with pytest.raises(SecretMissing):
            orch.run()

        assert runner.calls == []
        assert not orch.log_path.exists()
