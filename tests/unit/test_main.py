"""Unit tests for the testplane CLI."""

import json
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest
from click.testing import CliRunner

from testplane.errors import EarlyExitError
from testplane.lightweight import ControlPlane
from testplane.main import cli


@pytest.fixture
def runner():
    return CliRunner()


def fake_member(component, url, directory, pid):
    member = MagicMock()
    member.component = component
    member.url = url
    member.dir = Path(directory)
    member.pid = pid
    return member


class TestWhichCommand:
    """Tests for testplane which."""

    def test_explicit_path(self, runner, executable):
        """Test the resolved binary is printed."""
        binary = executable()
        result = runner.invoke(cli, ["which", "etcd", "--path", str(binary)])
        assert result.exit_code == 0
        assert result.output.strip() == str(binary.resolve())

    def test_env_var(self, runner, executable, monkeypatch):
        """Test lookup through TEST_ASSET_<COMPONENT>."""
        binary = executable("kube-apiserver")
        monkeypatch.setenv("TEST_ASSET_KUBE_APISERVER", str(binary))
        result = runner.invoke(cli, ["which", "kube-apiserver"])
        assert result.exit_code == 0
        assert str(binary.resolve()) in result.output

    def test_not_found(self, runner, tmp_path):
        """Test a missing binary exits 1 with the error."""
        result = runner.invoke(cli, ["which", "etcd", "--path", str(tmp_path / "nope")])
        assert result.exit_code == 1
        assert "Error: etcd: No executable binary found" in result.output


class TestConfigShowCommand:
    """Tests for testplane config show."""

    @pytest.fixture
    def config_file(self, tmp_path):
        path = tmp_path / "testplane.yaml"
        path.write_text("etcd:\n  path: /opt/etcd\napi_server:\n  start_timeout: 40\n")
        return path

    def test_defaults(self, runner):
        """Test output without any config."""
        result = runner.invoke(cli, ["config", "show"])
        assert result.exit_code == 0
        assert "etcd:" in result.output
        assert "All values are defaults." in result.output

    def test_with_file(self, runner, config_file):
        """Test values and sources from a config file."""
        result = runner.invoke(cli, ["-c", str(config_file), "config", "show"])
        assert result.exit_code == 0
        assert "path: /opt/etcd" in result.output
        assert "etcd.path: config file" in result.output

    def test_section(self, runner, config_file):
        """Test showing a single section."""
        result = runner.invoke(cli, ["config", "show", "--section", "api_server"])
        assert result.exit_code == 0
        assert result.output.startswith("api_server:")
        assert "start_timeout: 40.0" in result.output
        assert "etcd.path" not in result.output

    def test_json(self, runner, config_file):
        """Test JSON output."""
        result = runner.invoke(cli, ["--json", "config", "show"])
        assert result.exit_code == 0
        data = json.loads(result.output)
        assert data["values"]["etcd"]["path"] == "/opt/etcd"
        assert data["sources"]["api_server.start_timeout"] == "config file"

    def test_invalid_config(self, runner, tmp_path):
        """Test a broken config file exits 1."""
        (tmp_path / "testplane.yaml").write_text("etcd: [\n")
        result = runner.invoke(cli, ["config", "show"])
        assert result.exit_code == 1
        assert "Invalid YAML" in result.output


class TestUpCommand:
    """Tests for testplane up."""

    def test_control_plane(self, runner):
        """Test endpoints are printed and everything is stopped on exit."""

        def fake_start(plane):
            plane.etcd = fake_member("etcd", "http://127.0.0.1:2379", "/tmp/etcd", 100)
            plane.api_server = fake_member(
                "kube-apiserver", "http://127.0.0.1:8080", "/tmp/certs", 101
            )

        with (
            patch.object(ControlPlane, "start", autospec=True, side_effect=fake_start),
            patch.object(ControlPlane, "stop", autospec=True) as stop,
            patch("testplane.main.wait_for_shutdown") as wait,
        ):
            result = runner.invoke(cli, ["--json", "up"])

        assert result.exit_code == 0
        endpoints = json.loads(result.output)
        assert endpoints["kube-apiserver"]["url"] == "http://127.0.0.1:8080"
        assert endpoints["etcd"]["pid"] == 100
        wait.assert_called_once()
        stop.assert_called_once()

    def test_etcd_only(self, runner):
        """Test --etcd-only runs just etcd."""
        with patch("testplane.main.Etcd") as etcd_cls, patch("testplane.main.wait_for_shutdown"):
            etcd_cls.return_value = fake_member("etcd", "http://127.0.0.1:2379", "/tmp/etcd", 100)
            result = runner.invoke(cli, ["up", "--etcd-only"])

        assert result.exit_code == 0
        assert "etcd:" in result.output
        assert "url: http://127.0.0.1:2379" in result.output
        assert "Press Ctrl+C to stop." in result.output
        etcd_cls.return_value.stop.assert_called_once()

    def test_start_failure(self, runner):
        """Test a start failure exits 1 with the error."""
        error = EarlyExitError(message="exited with status 3", component="etcd", exit_code=3)
        with (
            patch("testplane.main.Etcd") as etcd_cls,
            patch("testplane.main.wait_for_shutdown") as wait,
        ):
            etcd_cls.return_value.start.side_effect = error
            result = runner.invoke(cli, ["up", "--etcd-only"])

        assert result.exit_code == 1
        assert "Error: etcd: exited with status 3" in result.output
        wait.assert_not_called()
