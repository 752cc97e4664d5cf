"""Tests for the command line interface."""

import json
import subprocess
from unittest.mock import patch

import pytest
from click.testing import CliRunner
from structlog.testing import capture_logs

from build_action.cli import cli
from build_action.engine import BuildResult


@pytest.fixture(autouse=True)
def quiet_logging():
    """Keep log output out of command output."""
    with patch("build_action.cli.configure_logging"), patch("build_action.cli.load_dotenv"):
        with capture_logs() as logs:
            yield logs


@pytest.fixture
def runner():
    return CliRunner()


class TestResolveCommand:
    """Tests for `build-action resolve`."""

    def test_text_output(self, runner, monkeypatch):
        monkeypatch.setenv("INPUT_IMAGES", "a\nb")
        monkeypatch.setenv("INPUT_BASE_TAG", "v1.0.0")

        result = runner.invoke(cli, ["resolve"])

        assert result.exit_code == 0
        assert result.output == "a:v1.0.0\nb:v1.0.0\n"

    def test_json_output(self, runner, monkeypatch):
        monkeypatch.setenv("INPUT_TAGS", "x:latest,x:latest")

        result = runner.invoke(cli, ["resolve", "--output", "json"])

        assert result.exit_code == 0
        payload = json.loads(result.output)
        assert payload == {
            "mode": "explicit_tags",
            "tags": ["x:latest"],
            "targets": [{"image": "x", "tag": "latest"}],
        }

    def test_writes_tags_list_output(self, runner, monkeypatch, tmp_path):
        output_file = tmp_path / "output"
        output_file.write_text("")
        monkeypatch.setenv("GITHUB_OUTPUT", str(output_file))
        monkeypatch.setenv("INPUT_TAGS", "a:1\nb:2")

        result = runner.invoke(cli, ["resolve"])

        assert result.exit_code == 0
        assert "tags_list<<" in output_file.read_text()
        assert "\na:1\nb:2\n" in output_file.read_text()

    def test_push_and_load_fails(self, runner, monkeypatch):
        monkeypatch.setenv("INPUT_TAGS", "a:1")
        monkeypatch.setenv("INPUT_PUSH", "true")
        monkeypatch.setenv("INPUT_LOAD", "true")

        result = runner.invoke(cli, ["resolve"])

        assert result.exit_code == 1
        assert "Configuration error" in result.output
        assert "'push' and 'load' cannot both be true" in result.output

    def test_malformed_targets_fail(self, runner, monkeypatch):
        monkeypatch.setenv("INPUT_TARGETS", json.dumps([{"image": "a"}, {"image": "b", "tag": "1"}]))

        result = runner.invoke(cli, ["resolve"])

        assert result.exit_code == 1
        assert "Malformed input" in result.output
        assert "index 0" in result.output

    def test_error_annotation_under_actions(self, runner, monkeypatch):
        monkeypatch.setenv("GITHUB_ACTIONS", "true")

        result = runner.invoke(cli, ["resolve"])

        assert result.exit_code == 1
        assert "::error title=Configuration error::No tag mode selected" in result.output


class TestLabelsCommand:
    """Tests for `build-action labels`."""

    def test_fallback_labels(self, runner, monkeypatch):
        monkeypatch.setenv("INPUT_TAGS", "a:2.0")
        monkeypatch.setenv("INPUT_METADATA_LABELS", "false")
        monkeypatch.setenv("INPUT_LABELS", "team=platform")
        monkeypatch.setenv("GITHUB_SHA", "abc1234")

        result = runner.invoke(cli, ["labels"])

        assert result.exit_code == 0
        lines = result.output.splitlines()
        assert "org.opencontainers.image.revision=abc1234" in lines
        assert "org.opencontainers.image.version=2.0" in lines
        assert lines[-1] == "team=platform"


class TestBuildCommand:
    """Tests for `build-action build`."""

    def test_build_invokes_engine(self, runner, monkeypatch):
        monkeypatch.setenv("INPUT_TAGS", "ghcr.io/acme/widget:1.0")
        monkeypatch.setenv("INPUT_METADATA_LABELS", "false")
        monkeypatch.setenv("INPUT_PUSH", "true")

        with patch("build_action.runner.BuildxEngine") as engine_class:
            engine_class.return_value.build.return_value = BuildResult(digest="sha256:abc")
            result = runner.invoke(cli, ["build"])

        assert result.exit_code == 0
        engine_class.assert_called_once_with(dry_run=False)
        options = engine_class.return_value.build.call_args.args[0]
        assert options.tags == ["ghcr.io/acme/widget:1.0"]
        assert options.push is True
        assert "ghcr.io/acme/widget:1.0" in result.output

    def test_dry_run(self, runner, monkeypatch):
        monkeypatch.setenv("INPUT_TAGS", "a:1")
        monkeypatch.setenv("INPUT_METADATA_LABELS", "false")

        with patch("build_action.engine.subprocess.run") as mock_run:
            result = runner.invoke(cli, ["build", "--dry-run"])

        assert result.exit_code == 0
        mock_run.assert_not_called()
        assert "a:1" in result.output

    def test_build_failure(self, runner, monkeypatch):
        monkeypatch.setenv("INPUT_TAGS", "a:1")
        monkeypatch.setenv("INPUT_METADATA_LABELS", "false")

        with patch("build_action.engine.subprocess.run", side_effect=FileNotFoundError("docker")):
            result = runner.invoke(cli, ["build"])

        assert result.exit_code == 1
        assert "Build failed" in result.output

    def test_build_failure_annotation_includes_stderr(self, runner, monkeypatch):
        """The ::error annotation carries the build engine's error text."""
        monkeypatch.setenv("GITHUB_ACTIONS", "true")
        monkeypatch.setenv("INPUT_TAGS", "a:1")
        monkeypatch.setenv("INPUT_METADATA_LABELS", "false")
        failed = subprocess.CompletedProcess([], 1, stderr="ERROR: failed to solve: dockerfile parse error\n")

        with patch("build_action.engine.subprocess.run", return_value=failed):
            result = runner.invoke(cli, ["build"])

        assert result.exit_code == 1
        annotation = next(line for line in result.output.splitlines() if line.startswith("::error"))
        assert annotation.startswith("::error title=Build failed::docker buildx build exited with status 1")
        assert "dockerfile parse error" in annotation


def test_version(runner):
    result = runner.invoke(cli, ["--version"])

    assert result.exit_code == 0
    assert "build-action" in result.output
