# Copyright (c) Syntropy Systems
"""Tests for knockout CLI commands."""

import json

import pytest
import yaml
from conftest import FakeBackend, FakeMeasurer, make_features, ok
from typer.testing import CliRunner

from knockout.cli.main import app

runner = CliRunner()

HOME = "https://shop.example/"
CART = "https://shop.example/cart/"


@pytest.fixture
def fake_server(monkeypatch):
    """Patch the run command to use in-memory fakes."""
    backend = FakeBackend(make_features("akismet", "woocommerce", "-hello-dolly"))
    measurer = FakeMeasurer(
        backend,
        baseline={HOME: ok(70), CART: ok(60)},
        without={"woocommerce": {HOME: ok(85), CART: ok(75)}},
    )
    monkeypatch.setattr("knockout.cli.run.build_backend", lambda config: backend)
    monkeypatch.setattr("knockout.cli.run.build_measurer", lambda config: measurer)
    return backend


class TestInitCommand:
    """Tests for knockout init command."""

    def test_init_creates_config(self, temp_dir):
        """Test that init writes .knockout/config.yaml."""
        result = runner.invoke(
            app,
            ["init", str(temp_dir), "--host", "wp.example", "--url", HOME, "--url", CART],
        )

        assert result.exit_code == 0
        config_path = temp_dir / ".knockout" / "config.yaml"
        assert config_path.exists()
        data = yaml.safe_load(config_path.read_text())
        assert data["host"] == "wp.example"
        assert data["urls"] == [HOME, CART]
        assert data["settle_delay"] == 5.0

    def test_init_already_initialized(self, knockout_project):
        """Test init when already initialized."""
        result = runner.invoke(app, ["init", str(knockout_project)])

        assert result.exit_code == 0
        assert "Already initialized" in result.stdout


class TestRunCommand:
    """Tests for knockout run command."""

    def test_run_full(self, knockout_project, fake_server):
        """A full run tests every active plugin and leaves them all active."""
        result = runner.invoke(app, ["run", "--no-listen"])

        assert result.exit_code == 0, result.stdout
        assert "Plugin impact" in result.stdout
        assert "woocommerce" in result.stdout
        assert fake_server.disabled_now() == []
        assert fake_server.closed
        assert (knockout_project / ".knockout" / "checkpoint.json").exists()

    def test_run_json(self, knockout_project, fake_server):
        """--json prints only the report."""
        result = runner.invoke(app, ["run", "--no-listen", "--json"])

        assert result.exit_code == 0
        data = json.loads(result.stdout)
        assert data["complete"] is True
        assert data["processed"] == 2
        assert data["eligible_features"] == 2
        assert [r["identifier"] for r in data["ranking"]] == ["woocommerce", "akismet"]
        assert data["ranking"][0]["total_score_delta"] == 30

    def test_run_url_override(self, knockout_project, fake_server):
        """--url replaces the configured pages."""
        result = runner.invoke(app, ["run", "--no-listen", "--json", "--url", HOME])

        assert result.exit_code == 0
        data = json.loads(result.stdout)
        assert data["target_urls"] == [HOME]
        assert data["ranking"][0]["total_score_delta"] == 15

    def test_run_no_urls(self, knockout_project, fake_server):
        """A fresh run without pages fails."""
        (knockout_project / ".knockout" / "config.yaml").write_text("urls: []\n")

        result = runner.invoke(app, ["run", "--no-listen"])

        assert result.exit_code == 1
        assert "No target URLs" in result.stdout

    def test_resume_without_checkpoint(self, knockout_project, fake_server):
        """--resume needs a checkpoint."""
        result = runner.invoke(app, ["run", "--no-listen", "--resume"])

        assert result.exit_code == 1
        assert "No checkpoint found" in result.stdout
        assert fake_server.calls == []

    def test_resume_after_run(self, knockout_project, fake_server):
        """Resuming a finished run toggles nothing."""
        first = runner.invoke(app, ["run", "--no-listen"])
        assert first.exit_code == 0
        calls = len(fake_server.calls)

        result = runner.invoke(app, ["run", "--no-listen", "--resume", "--json"])

        assert result.exit_code == 0
        assert len(fake_server.calls) == calls
        assert json.loads(result.stdout)["processed"] == 2

    def test_connection_error(self, knockout_project, monkeypatch):
        """An unreachable server exits with an error."""
        backend = FakeBackend(make_features("akismet"), fail_connect=True)
        monkeypatch.setattr("knockout.cli.run.build_backend", lambda config: backend)
        monkeypatch.setattr(
            "knockout.cli.run.build_measurer", lambda config: FakeMeasurer(backend, {})
        )

        result = runner.invoke(app, ["run", "--no-listen"])

        assert result.exit_code == 1
        assert "Connection error" in result.stdout

    def test_toggle_error(self, knockout_project, monkeypatch):
        """A failed deactivation exits and points at the checkpoint."""
        backend = FakeBackend(make_features("akismet"), fail_toggle=("akismet", False))
        measurer = FakeMeasurer(backend, baseline={HOME: ok(70), CART: ok(60)})
        monkeypatch.setattr("knockout.cli.run.build_backend", lambda config: backend)
        monkeypatch.setattr("knockout.cli.run.build_measurer", lambda config: measurer)

        result = runner.invoke(app, ["run", "--no-listen"])

        assert result.exit_code == 1
        assert "Failed to disable" in result.stdout
        assert "Last checkpoint" in result.stdout

    def test_run_no_project(self, temp_dir, monkeypatch):
        """Running outside a project fails."""
        monkeypatch.chdir(temp_dir)

        result = runner.invoke(app, ["run", "--no-listen"])

        assert result.exit_code == 1
        assert "knockout init" in result.stdout


class TestReportCommand:
    """Tests for knockout report command."""

    def test_report_without_checkpoint(self, knockout_project):
        """Test report before any run."""
        result = runner.invoke(app, ["report"])

        assert result.exit_code == 1
        assert "No checkpoint found" in result.stdout

    def test_report_after_run(self, knockout_project, fake_server):
        """The report ranks what the run saved."""
        assert runner.invoke(app, ["run", "--no-listen"]).exit_code == 0

        result = runner.invoke(app, ["report", "--json"])

        assert result.exit_code == 0
        data = json.loads(result.stdout)
        assert data["complete"] is True
        assert data["ranking"][0]["identifier"] == "woocommerce"

    def test_report_verbose(self, knockout_project, fake_server):
        """--verbose shows per-page comparisons."""
        assert runner.invoke(app, ["run", "--no-listen"]).exit_code == 0

        result = runner.invoke(app, ["report", "--verbose"])

        assert result.exit_code == 0
        assert "Overall impact" in result.stdout

    def test_report_corrupt_checkpoint(self, knockout_project):
        """A corrupt checkpoint is reported, not ranked."""
        (knockout_project / ".knockout" / "checkpoint.json").write_text("{not json")

        result = runner.invoke(app, ["report"])

        assert result.exit_code == 1
        assert "corrupt" in result.stdout

    def test_summarize_without_endpoint(self, knockout_project, fake_server):
        """--summarize with no endpoint only warns."""
        assert runner.invoke(app, ["run", "--no-listen"]).exit_code == 0

        result = runner.invoke(app, ["report", "--summarize"])

        assert result.exit_code == 0
        assert "No summarizer_url configured" in result.stdout


class TestPluginsCommand:
    """Tests for knockout plugins command."""

    def test_plugins(self, knockout_project, monkeypatch):
        """Lists plugins from the server."""
        backend = FakeBackend(make_features("akismet", "-hello-dolly"))
        monkeypatch.setattr("knockout.cli.plugins.build_backend", lambda config: backend)

        result = runner.invoke(app, ["plugins"])

        assert result.exit_code == 0
        assert "akismet" in result.stdout
        assert "hello-dolly" in result.stdout
        assert backend.closed


class TestDoctorCommand:
    """Tests for knockout doctor command."""

    def test_doctor_no_project(self, temp_dir, monkeypatch):
        """Doctor explains how to start."""
        monkeypatch.chdir(temp_dir)

        result = runner.invoke(app, ["doctor"])

        assert result.exit_code == 0
        assert "No .knockout directory found" in result.stdout

    def test_doctor_project(self, knockout_project):
        """Doctor reports the configured pages."""
        result = runner.invoke(app, ["doctor"])

        assert result.exit_code == 0
        assert "Target URLs: 2" in result.stdout

    def test_doctor_lighthouse_missing(self, knockout_project, monkeypatch):
        """A Lighthouse binary that is not on PATH is an issue."""
        monkeypatch.setenv("KNOCKOUT_LIGHTHOUSE_BINARY", "lighthouse-not-installed")

        result = runner.invoke(app, ["doctor"])

        assert result.exit_code == 0
        assert "lighthouse-not-installed not found on PATH" in result.stdout
        assert "Lighthouse missing" in result.stdout
