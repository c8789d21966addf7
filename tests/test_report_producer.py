"""
Tests for the report producer (runner command and report recovery)
"""

import json

import pytest

from cysubmit_core import report_producer
from cysubmit_core.errors import ReportUnavailable, RunnerFailure
from cysubmit_core.report_producer import (
    ReportProducer,
    discover_spec_glob,
    find_runner_config,
    normalize_reporter_options,
)

from conftest import FakeRunner


@pytest.fixture
def log_path(temp_dir):
    return temp_dir / "transient.log"


def _fail_if_called(*args, **kwargs):
    raise AssertionError("log recovery should not run")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

class TestReporterOptions:

    def test_empty_gets_defaults(self, temp_dir):
        out = temp_dir / "r.json"
        assert normalize_reporter_options("", out) == f"output={out},overwrite=true,includePending=true"

    def test_output_appended(self, temp_dir):
        out = temp_dir / "r.json"
        assert normalize_reporter_options("toConsole=true", out) == f"toConsole=true,output={out}"

    def test_existing_output_kept(self, temp_dir):
        assert normalize_reporter_options("output=x.json", temp_dir / "r.json") == "output=x.json"


class TestFindRunnerConfig:

    def test_depth_bound(self, temp_dir):
        deep = temp_dir / "a" / "b" / "c"
        deep.mkdir(parents=True)
        (deep / "cypress.config.js").write_text("", encoding="utf-8")

        assert find_runner_config(temp_dir, 3) is None
        assert find_runner_config(temp_dir, 4) == deep / "cypress.config.js"

    def test_root_is_depth_one(self, temp_dir):
        (temp_dir / "cypress.json").write_text("{}", encoding="utf-8")
        assert find_runner_config(temp_dir, 1) == temp_dir / "cypress.json"
        assert find_runner_config(temp_dir, 0) is None

    def test_node_modules_skipped(self, temp_dir):
        vendored = temp_dir / "node_modules" / "pkg"
        vendored.mkdir(parents=True)
        (vendored / "cypress.config.js").write_text("", encoding="utf-8")
        assert find_runner_config(temp_dir, 4) is None

    def test_discover_spec_glob_ts(self, temp_dir):
        e2e = temp_dir / "cypress" / "e2e" / "lab"
        e2e.mkdir(parents=True)
        (e2e / "login.cy.ts").write_text("", encoding="utf-8")
        assert discover_spec_glob(temp_dir) == f"{temp_dir / 'cypress' / 'e2e'}/**/*.cy.ts"

    def test_discover_spec_glob_none(self, temp_dir):
        assert discover_spec_glob(temp_dir) is None


# ---------------------------------------------------------------------------
# Command construction
# ---------------------------------------------------------------------------

class TestBuildCommand:

    def test_default_command(self, config):
        cmd, run_dir = ReportProducer(config, FakeRunner()).build_command()
        assert cmd[:3] == ["npx", "cypress", "run"]
        assert cmd[cmd.index("--reporter") + 1] == "json"
        assert f"output={config.results_path}" in cmd[cmd.index("--reporter-options") + 1]
        assert "--config-file" not in cmd
        assert "--spec" not in cmd
        assert run_dir == config.search_root

    def test_discovered_config_and_specs(self, config, temp_dir):
        app = temp_dir / "frontend"
        (app / "cypress" / "e2e").mkdir(parents=True)
        (app / "cypress.config.js").write_text("", encoding="utf-8")
        (app / "cypress" / "e2e" / "home.cy.js").write_text("", encoding="utf-8")

        cmd, run_dir = ReportProducer(config, FakeRunner()).build_command()

        assert cmd[cmd.index("--config-file") + 1] == str(app / "cypress.config.js")
        assert cmd[cmd.index("--spec") + 1] == f"{app / 'cypress' / 'e2e'}/**/*.cy.js"
        assert run_dir == app

    def test_passthrough_and_browser_order(self, config):
        config.runner.extra_args = ["--headed", "--env", "a=b"]
        config.runner.browser = "firefox"
        cmd, _ = ReportProducer(config, FakeRunner()).build_command()
        assert cmd[-5:] == ["--headed", "--env", "a=b", "--browser", "firefox"]

    def test_empty_binary_omitted(self, config):
        config.runner.runner = "yarn"
        config.runner.binary = ""
        config.runner.subcommand = "cy:run"
        cmd, _ = ReportProducer(config, FakeRunner()).build_command()
        assert cmd[:3] == ["yarn", "cy:run", "--reporter"]


# ---------------------------------------------------------------------------
# Producing the report
# ---------------------------------------------------------------------------

class TestProduce:

    def test_runner_writes_report(self, config, log_path, sample_report, monkeypatch):
        monkeypatch.setattr(report_producer, "recover_report", _fail_if_called)
        runner = FakeRunner(report=sample_report, report_path=config.results_path)

        outcome = ReportProducer(config, runner).produce(log_path)

        assert outcome.executed
        assert not outcome.recovered
        assert outcome.runner_exit_code == 0
        assert json.loads(config.results_path.read_text(encoding="utf-8")) == sample_report
        assert runner.calls[0]["log_path"] == log_path

    def test_failing_runner_recovered_from_log(self, config, log_path, capsys):
        output = 'Running: spec.cy.js\n{"foo": "bar"}\n{"stats": {"tests": 2, "failures": 1}}\nDone\n'
        runner = FakeRunner(returncode=1, output=output)

        outcome = ReportProducer(config, runner).produce(log_path)

        assert outcome.recovered
        assert isinstance(outcome.failure, RunnerFailure)
        assert outcome.failure.exit_code == 1
        assert outcome.log_archived
        assert config.log_archive_path.read_text(encoding="utf-8") == output
        assert json.loads(config.results_path.read_text(encoding="utf-8")) == {
            "stats": {"tests": 2, "failures": 1}
        }
        assert "Attempting to recover JSON results" in capsys.readouterr().out

    def test_failing_runner_with_report_not_archived_twice(self, config, log_path, sample_report,
                                                          monkeypatch):
        monkeypatch.setattr(report_producer, "recover_report", _fail_if_called)
        runner = FakeRunner(returncode=2, output="boom", report=sample_report,
                            report_path=config.results_path)

        outcome = ReportProducer(config, runner).produce(log_path)

        assert not outcome.recovered
        assert outcome.log_archived
        assert outcome.runner_exit_code == 2

    def test_unrecoverable_log(self, config, log_path):
        runner = FakeRunner(returncode=3, output="Cypress failed to start.\n")
        with pytest.raises(ReportUnavailable) as exc:
            ReportProducer(config, runner).produce(log_path)
        assert exc.value.exit_code == 3
        assert "Unable to reconstruct" in exc.value.message
        assert not config.results_path.exists()

    def test_empty_log_without_report(self, config, log_path):
        with pytest.raises(ReportUnavailable) as exc:
            ReportProducer(config, FakeRunner(returncode=0, output="")).produce(log_path)
        assert exc.value.exit_code == 1

    def test_stale_results_removed_before_run(self, config, log_path, write_report):
        write_report({"stats": {"stale": True}})
        runner = FakeRunner(output='{"stats": {"fresh": true}}')

        ReportProducer(config, runner).produce(log_path)

        assert json.loads(config.results_path.read_text(encoding="utf-8")) == {"stats": {"fresh": True}}


class TestSkipTests:

    def test_reuses_existing_report(self, config, log_path, write_report, capsys):
        write_report()
        config.runner.skip_tests = True
        runner = FakeRunner()

        outcome = ReportProducer(config, runner).produce(log_path)

        assert not outcome.executed
        assert runner.calls == []
        assert "Re-using existing Cypress results" in capsys.readouterr().out

    def test_missing_report_fails(self, config, log_path):
        config.runner.skip_tests = True
        with pytest.raises(ReportUnavailable):
            ReportProducer(config, FakeRunner()).produce(log_path)

    def test_runner_not_required(self, config):
        config.runner.skip_tests = True
        config.runner.runner = "definitely-not-installed-runner"
        ReportProducer(config, FakeRunner()).check_dependencies()
