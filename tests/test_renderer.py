"""Tests for consul_cm.render.renderer."""

from __future__ import annotations

import json

import pytest

from consul_cm.config.loader import parse_parameters
from consul_cm.config.models import InitStyle
from consul_cm.config.sensitive import Sensitive
from consul_cm.platform.facts import PlatformFacts
from consul_cm.render.renderer import (
    REQUIRED_KEYS,
    content_digest,
    render_config,
    render_template,
    render_unit_file,
    unit_file_path,
    write_config_file,
    write_unit_file,
)
from consul_cm.resolve.resolver import ConfigurationResolver


# ── fixtures ─────────────────────────────────────────────────────────

MINI_TEMPLATE = (
    "ExecStart=${CONSUL_BINARY} agent -config-dir=${CONSUL_CONFIG_DIR}\n"
    "User=${CONSUL_USER}\n"
)

MINIMAL_SUBS = {
    "CONSUL_BINARY": "/usr/local/bin/consul",
    "CONSUL_CONFIG_DIR": "/etc/consul",
    "CONSUL_USER": "consul",
}


def _state(platform=PlatformFacts("Linux", "x86_64"), **params):
    return ConfigurationResolver(platform).resolve_state(parse_parameters(params))


# ── TestRenderConfig ─────────────────────────────────────────────────


class TestRenderConfig:
    def test_compact_sorted(self):
        text = render_config({"server": True, "bind_addr": "0.0.0.0"})
        assert text == '{"bind_addr":"0.0.0.0","server":true}\n'

    def test_pretty_indent(self):
        text = render_config({"b": 1, "a": {"c": 2}}, pretty=True, indent=2)
        assert text == '{\n  "a": {\n    "c": 2\n  },\n  "b": 1\n}\n'

    def test_indent_ignored_when_compact(self):
        assert render_config({"a": 1}, indent=8) == '{"a":1}\n'

    def test_sensitive_revealed(self):
        text = render_config(Sensitive({"encrypt": "k3y"}))
        assert json.loads(text) == {"encrypt": "k3y"}

    def test_nested_sensitive_revealed(self):
        text = render_config({"acl": {"tokens": {"agent": Sensitive("t0k")}}, "a": 1})
        assert text == '{"a":1,"acl":{"tokens":{"agent":"t0k"}}}\n'

    def test_empty(self):
        assert render_config({}) == "{}\n"

    def test_deterministic(self):
        a = render_config({"x": 1, "y": [3, 2, 1]})
        b = render_config({"y": [3, 2, 1], "x": 1})
        assert a == b
        assert content_digest(a) == content_digest(b)


# ── TestWriteConfigFile ──────────────────────────────────────────────


class TestWriteConfigFile:
    def test_writes_to_dest_dir(self, tmp_path):
        state = _state(config_hash={"server": True}, config_name="agent.json")
        dest = write_config_file(state, tmp_path / "out")
        assert dest == tmp_path / "out" / "agent.json"
        assert json.loads(dest.read_text()) == {"server": True}

    def test_pretty_flags_applied(self, tmp_path):
        state = _state(config_hash={"a": 1}, pretty_config=True, pretty_config_indent=2)
        dest = write_config_file(state, tmp_path)
        assert dest.read_text() == '{\n  "a": 1\n}\n'

    def test_sensitive_content_written_not_logged(self, tmp_path, caplog):
        state = _state(config_hash=Sensitive({"encrypt": "s3cr3t"}))
        with caplog.at_level("DEBUG"):
            dest = write_config_file(state, tmp_path)
        assert json.loads(dest.read_text()) == {"encrypt": "s3cr3t"}
        assert "s3cr3t" not in caplog.text

    def test_nested_sensitive_value_written(self, tmp_path):
        state = _state(config_hash={"server": True, "encrypt": Sensitive("s3cr3t")})
        assert state.config_sensitive
        dest = write_config_file(state, tmp_path)
        assert json.loads(dest.read_text()) == {"encrypt": "s3cr3t", "server": True}


# ── TestRenderTemplate ───────────────────────────────────────────────


class TestRenderTemplate:
    def test_basic_substitution(self):
        result = render_template(MINI_TEMPLATE, MINIMAL_SUBS)
        assert result.startswith(
            "ExecStart=/usr/local/bin/consul agent -config-dir=/etc/consul\n"
        )
        assert "${" not in result

    def test_missing_required_key_raises(self):
        subs = dict(MINIMAL_SUBS)
        del subs["CONSUL_BINARY"]
        with pytest.raises(ValueError, match="CONSUL_BINARY"):
            render_template(MINI_TEMPLATE, subs)

    def test_empty_required_key_raises(self):
        subs = dict(MINIMAL_SUBS, CONSUL_CONFIG_DIR="")
        with pytest.raises(ValueError, match="CONSUL_CONFIG_DIR"):
            render_template(MINI_TEMPLATE, subs)

    def test_custom_required_keys(self):
        result = render_template("${A}", {"A": "x"}, required_keys=frozenset({"A"}))
        assert result == "x"

    def test_unknown_tokens_left_alone(self):
        result = render_template("${CONSUL_BINARY} $MAINPID ${OTHER}", MINIMAL_SUBS)
        assert result == "/usr/local/bin/consul $MAINPID ${OTHER}"

    def test_required_keys(self):
        assert REQUIRED_KEYS == {"CONSUL_BINARY", "CONSUL_CONFIG_DIR"}


# ── TestUnitFiles ────────────────────────────────────────────────────


class TestUnitFiles:
    def test_systemd(self):
        text = render_unit_file(_state())
        assert "User=consul" in text
        assert "ExecStart=/usr/local/bin/consul agent -config-dir=/etc/consul" in text
        assert "ExecReload=/bin/kill -HUP $MAINPID" in text

    def test_launchd(self):
        text = render_unit_file(_state(PlatformFacts("Darwin", "arm64")))
        assert "<string>io.consul.daemon</string>" in text
        assert "<string>/usr/local/etc/consul</string>" in text

    def test_unmanaged_has_no_unit(self):
        assert render_unit_file(_state(install_method="docker")) is None
        assert render_unit_file(_state(init_style="freebsd")) is None

    def test_unit_paths(self):
        assert unit_file_path(InitStyle.SYSTEMD) == "/etc/systemd/system/consul.service"
        assert unit_file_path(InitStyle.SYSV) is None

    def test_write_unit_file(self, tmp_path):
        dest = write_unit_file(_state(user="svc", group="svc"), tmp_path)
        assert dest == tmp_path / "consul.service"
        assert "Group=svc" in dest.read_text()

    def test_write_unit_file_none(self, tmp_path):
        assert write_unit_file(_state(init_style="sysv"), tmp_path) is None
        assert list(tmp_path.iterdir()) == []
