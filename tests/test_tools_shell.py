"""
Tests for command execution and secret masking
"""

import logging
import sys

import pytest

from cysubmit_core.errors import MissingDependency
from cysubmit_core.logging_utils import SecretMaskingFilter, mask_secrets
from cysubmit_core.tools_shell import CommandResult, SubprocessRunner, require_command


class TestSubprocessRunner:

    def test_combined_output_in_order(self, temp_dir):
        log = temp_dir / "out.log"
        script = "import sys; print('one', flush=True); print('two', file=sys.stderr, flush=True); print('three')"
        result = SubprocessRunner().run([sys.executable, "-c", script], cwd=temp_dir, log_path=log)

        assert result.ok
        assert log.read_text(encoding="utf-8").split() == ["one", "two", "three"]

    def test_exit_status(self, temp_dir):
        result = SubprocessRunner().run([sys.executable, "-c", "raise SystemExit(7)"],
                                        log_path=temp_dir / "out.log")
        assert result.returncode == 7
        assert not result.ok

    def test_missing_binary(self, temp_dir):
        with pytest.raises(MissingDependency):
            SubprocessRunner().run(["no-such-binary-cysubmit"], log_path=temp_dir / "out.log")

    def test_require_command(self):
        assert require_command(sys.executable)
        with pytest.raises(MissingDependency):
            require_command("no-such-binary-cysubmit")

    def test_text_block(self):
        block = CommandResult(["npx", "cypress", "run"], "/work", 1, "/tmp/x.log").as_text_block()
        assert "$ npx cypress run" in block
        assert "Return code: 1" in block


class TestSecretMasking:

    def test_patterns(self):
        assert mask_secrets("PASSWORD=hunter2") == "PASSWORD=***"
        assert "abc.def" not in mask_secrets("Authorization: Bearer abc.def")

    def test_literals(self):
        assert mask_secrets("using sPTbn now", ["sPTbn"]) == "using *** now"

    def test_filter_rewrites_record(self):
        flt = SecretMaskingFilter()
        flt.register("course-secret")
        record = logging.LogRecord("t", logging.INFO, __file__, 1, "value %s", ("course-secret",), None)
        assert flt.filter(record)
        assert record.getMessage() == "value ***"
