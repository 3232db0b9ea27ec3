"""Tests for the typer CLI."""

from __future__ import annotations

import json

import pytest
from typer.testing import CliRunner

from consul_cm import __version__
from consul_cm.cli import app

runner = CliRunner()

PLATFORM_ARGS = ["--kernel", "Linux", "--arch", "x86_64"]


@pytest.fixture(autouse=True)
def _xdg(tmp_path, monkeypatch):
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "xdg"))


@pytest.fixture
def params_file(tmp_path):
    p = tmp_path / "consul.yaml"
    p.write_text(
        "consul:\n"
        "  config_hash: !sensitive\n"
        "    encrypt: 'pUqJrVyVRj5jsiYEkM/tFQ=='\n"
        "  services:\n"
        "    web:\n"
        "      port: 80\n",
        encoding="utf-8",
    )
    return p


class TestRoot:
    def test_version(self):
        result = runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert __version__ in result.output

    def test_help(self):
        result = runner.invoke(app, ["--help"])
        assert result.exit_code == 0
        for cmd in ("resolve", "plan", "render", "drift"):
            assert cmd in result.output


class TestResolveCommand:
    def test_prints_redacted_state(self, params_file):
        result = runner.invoke(app, ["resolve", "-p", str(params_file), *PLATFORM_ARGS])
        assert result.exit_code == 0
        data = json.loads(result.output)
        assert data["config"] == "Sensitive [value redacted]"
        assert data["config_path"] == "/etc/consul/config.json"
        assert "pUqJrVyVRj5jsiYEkM" not in result.output

    def test_missing_params(self, tmp_path):
        result = runner.invoke(
            app, ["resolve", "-p", str(tmp_path / "nope.yaml"), *PLATFORM_ARGS]
        )
        assert result.exit_code == 1

    def test_unsupported_platform(self, params_file):
        result = runner.invoke(
            app, ["resolve", "-p", str(params_file), "--kernel", "Plan9", "--arch", "x86_64"]
        )
        assert result.exit_code == 4

    def test_invalid_params(self, tmp_path):
        p = tmp_path / "bad.yaml"
        p.write_text("consul:\n  install_method: tarball\n", encoding="utf-8")
        result = runner.invoke(app, ["resolve", "-p", str(p), *PLATFORM_ARGS])
        assert result.exit_code == 1
        assert "install_method" in result.output


class TestPlanCommand:
    def test_prints_plan_json(self, params_file):
        result = runner.invoke(app, ["plan", "-p", str(params_file), *PLATFORM_ARGS])
        assert result.exit_code == 0
        data = json.loads(result.output)
        names = [g["name"] for g in data["groups"]]
        assert names == ["install", "configure", "run_service", "reload_service", "services"]
        assert "pUqJrVyVRj5jsiYEkM" not in result.output

    def test_nested_secrets_redacted(self, tmp_path):
        p = tmp_path / "nested.yaml"
        p.write_text(
            "consul:\n"
            "  config_hash:\n"
            "    encrypt: !sensitive 'pUqJrVyVRj5jsiYEkM/tFQ=='\n"
            "  tokens:\n"
            "    agent:\n"
            "      secret_id: s3cr3t-token\n",
            encoding="utf-8",
        )
        result = runner.invoke(app, ["plan", "-p", str(p), *PLATFORM_ARGS])
        assert result.exit_code == 0
        json.loads(result.output)
        assert "pUqJrVyVRj5jsiYEkM" not in result.output
        assert "s3cr3t-token" not in result.output

    def test_deterministic(self, params_file):
        args = ["plan", "-p", str(params_file), *PLATFORM_ARGS]
        assert runner.invoke(app, args).output == runner.invoke(app, args).output


class TestRenderCommand:
    def test_render(self, params_file, tmp_path):
        out = tmp_path / "out"
        snap = tmp_path / "snap.json"
        result = runner.invoke(
            app,
            ["render", "-p", str(params_file), "-o", str(out),
             "--snapshot-path", str(snap), *PLATFORM_ARGS],
        )
        assert result.exit_code == 0
        assert json.loads((out / "config.json").read_text()) == {
            "encrypt": "pUqJrVyVRj5jsiYEkM/tFQ==",
        }
        assert snap.is_file()
        assert "pUqJrVyVRj5jsiYEkM" not in result.output

    def test_no_snapshot(self, params_file, tmp_path):
        result = runner.invoke(
            app,
            ["render", "-p", str(params_file), "-o", str(tmp_path / "out"),
             "--no-snapshot", *PLATFORM_ARGS],
        )
        assert result.exit_code == 0
        assert not (tmp_path / "xdg" / "consul-cm").exists()


class TestDriftCommand:
    def _snapshot(self, params_file, tmp_path):
        snap = tmp_path / "snap.json"
        result = runner.invoke(
            app,
            ["render", "-p", str(params_file), "-o", str(tmp_path / "out"),
             "--snapshot-path", str(snap), *PLATFORM_ARGS],
        )
        assert result.exit_code == 0
        return snap

    def test_no_drift(self, params_file, tmp_path):
        snap = self._snapshot(params_file, tmp_path)
        result = runner.invoke(
            app, ["drift", "-p", str(params_file), "--snapshot", str(snap), *PLATFORM_ARGS]
        )
        assert result.exit_code == 0
        assert '"has_drift": false' in result.output

    def test_drift(self, params_file, tmp_path):
        snap = self._snapshot(params_file, tmp_path)
        params_file.write_text(
            params_file.read_text().replace("port: 80", "port: 81"), encoding="utf-8",
        )
        result = runner.invoke(
            app, ["drift", "-p", str(params_file), "--snapshot", str(snap), *PLATFORM_ARGS]
        )
        assert result.exit_code == 3
        assert '"has_drift": true' in result.output
        assert "group.services" in result.output

    def test_missing_snapshot(self, params_file, tmp_path):
        result = runner.invoke(
            app,
            ["drift", "-p", str(params_file), "--snapshot", str(tmp_path / "nope.json"),
             *PLATFORM_ARGS],
        )
        assert result.exit_code == 1
