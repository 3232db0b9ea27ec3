"""Tests for consul_cm.resolve.resolver: the Configuration Resolver."""

from __future__ import annotations

import json

import pytest

from consul_cm.config.loader import load_parameters, parse_parameters
from consul_cm.config.models import InitStyle, InstallMethod
from consul_cm.config.sensitive import Sensitive
from consul_cm.platform.facts import PlatformFacts, UnsupportedPlatformError
from consul_cm.render.renderer import write_config_file
from consul_cm.resolve.derive import DerivedValues
from consul_cm.resolve.resolver import (
    ConfigurationResolver,
    build_reload_command,
    resolve_download_source,
    select_identity_context,
)

LINUX = PlatformFacts(kernel="Linux", architecture="x86_64")


def _resolve(**params):
    return ConfigurationResolver(LINUX).resolve(parse_parameters(params))


# ── resolve_download_source ─────────────────────────────────────────────


class TestDownloadSource:
    def test_release_url(self):
        url = resolve_download_source(
            None,
            "https://releases.hashicorp.com/consul/",
            "1.16.3",
            "consul",
            "linux",
            "amd64",
            "zip",
        )
        assert url == (
            "https://releases.hashicorp.com/consul/1.16.3/consul_1.16.3_linux_amd64.zip"
        )

    def test_explicit_url_verbatim(self):
        url = resolve_download_source(
            "http://mirror/consul.zip", "ignored/", "1", "consul", "linux", "amd64", "zip",
        )
        assert url == "http://mirror/consul.zip"

    def test_malformed_components_pass_through(self):
        url = resolve_download_source(None, "base", "v", "p", "o", "a", "e")
        assert url == "basev/p_v_o_a.e"


# ── select_identity_context ─────────────────────────────────────────────


class TestIdentityContext:
    def test_docker_suppresses_everything(self):
        ctx = select_identity_context(
            InstallMethod.DOCKER, "consul", "consul", "root", InitStyle.SYSTEMD,
        )
        assert ctx.user is None
        assert ctx.group is None
        assert ctx.owner is None
        assert ctx.init_style is InitStyle.UNMANAGED
        assert not ctx.managed

    def test_owner_defaults_to_user(self):
        ctx = select_identity_context(
            InstallMethod.URL, "consul", "consul", None, InitStyle.SYSTEMD,
        )
        assert ctx.owner == "consul"
        assert ctx.init_style is InitStyle.SYSTEMD

    def test_explicit_owner(self):
        ctx = select_identity_context(
            InstallMethod.PACKAGE, "consul", "wheel", "root", InitStyle.SYSV,
        )
        assert (ctx.user, ctx.group, ctx.owner) == ("consul", "wheel", "root")


# ── build_reload_command ────────────────────────────────────────────────


class TestReloadCommand:
    def test_http(self):
        cmd = build_reload_command("/usr/local/bin/consul", DerivedValues())
        assert cmd == [
            "/usr/local/bin/consul", "reload", "-http-addr=http://127.0.0.1:8500",
        ]

    def test_https_with_client_cert(self):
        derived = DerivedValues(
            https_port=8501, verify_incoming=True,
            cert_file="/tls/c.pem", key_file="/tls/k.pem",
        )
        cmd = build_reload_command("consul", derived)
        assert cmd == [
            "consul", "reload", "-http-addr=https://127.0.0.1:8501",
            "-client-cert=/tls/c.pem", "-client-key=/tls/k.pem",
        ]

    def test_https_without_verify(self):
        derived = DerivedValues(https_port=8501, cert_file="/c", key_file="/k")
        assert build_reload_command("consul", derived)[-1] == (
            "-http-addr=https://127.0.0.1:8501"
        )

    def test_docker(self):
        cmd = build_reload_command("/ignored", DerivedValues(), docker=True)
        assert cmd[:4] == ["docker", "exec", "consul", "consul"]


# ── ConfigurationResolver ───────────────────────────────────────────────


class TestResolver:
    def test_platform_defaults_applied(self):
        state = _resolve().state
        assert state.os == "linux"
        assert state.arch == "amd64"
        assert state.bin_dir == "/usr/local/bin"
        assert state.binary == "/usr/local/bin/consul"
        assert state.config_dir == "/etc/consul"
        assert state.config_path == "/etc/consul/config.json"
        assert state.identity.user == "consul"
        assert state.identity.owner == "consul"
        assert state.identity.init_style is InitStyle.SYSTEMD

    def test_download_url(self):
        state = _resolve(version="1.17.0").state
        assert state.download_url == (
            "https://releases.hashicorp.com/consul/1.17.0/consul_1.17.0_linux_amd64.zip"
        )

    def test_explicit_params_override_platform(self):
        state = _resolve(
            os="freebsd", arch="arm64", config_dir="/srv/consul", init_style="sysv",
        ).state
        assert state.download_url.endswith("consul_1.16.3_freebsd_arm64.zip")
        assert state.config_dir == "/srv/consul"
        assert state.identity.init_style is InitStyle.SYSV

    def test_config_merged_and_derived(self):
        state = _resolve(
            config_defaults={"data_dir": "/opt/consul", "ports": {"http": 8500, "https": 8501}},
            config_hash={"ports": {"https": 9501}, "server": True},
        ).state
        assert state.config == {
            "data_dir": "/opt/consul",
            "ports": {"http": 8500, "https": 9501},
            "server": True,
        }
        assert state.derived.data_dir == "/opt/consul"
        assert state.derived.https_port == 9501
        assert "-http-addr=https://127.0.0.1:9501" in state.reload_command

    def test_docker_forces_unmanaged_identity(self):
        state = _resolve(
            install_method="docker", user="me", group="us", config_owner="root",
        ).state
        assert state.identity.user is None
        assert state.identity.group is None
        assert state.identity.owner is None
        assert state.identity.init_style is InitStyle.UNMANAGED
        assert state.manage_user is False
        assert state.manage_group is False

    def test_windows_does_not_manage_user(self):
        resolver = ConfigurationResolver(PlatformFacts("Windows", "AMD64"))
        state = resolver.resolve(parse_parameters({})).state
        assert state.manage_user is False
        assert state.binary == "C:/ProgramData/consul/consul.exe"

    def test_manage_user_explicit_wins(self):
        resolver = ConfigurationResolver(PlatformFacts("Windows", "AMD64"))
        state = resolver.resolve(parse_parameters({"manage_user": True})).state
        assert state.manage_user is True

    def test_acl_defaults_merged(self):
        state = _resolve(
            acl_api_hostname="consul.service",
            acl_api_token="root-token",
            policies={"reader": {"description": "r", "port": 8501}},
            tokens={"agent": {"policies_by_name": ["reader"]}},
            acls={"legacy": {"type": "management"}},
        ).state
        assert state.policies["reader"]["hostname"] == "consul.service"
        assert state.policies["reader"]["port"] == 8501
        assert state.tokens["agent"]["port"] == 8500
        assert state.tokens["agent"]["acl_api_token"].reveal() == "root-token"
        assert state.acls["legacy"]["type"] == "management"

    def test_sequence_fields_are_tuples(self):
        state = _resolve(extra_groups=["docker"]).state
        assert state.extra_groups == ("docker",)
        assert isinstance(state.reload_command, tuple)
        assert state.reload_command[1] == "reload"

    def test_definitions_keep_only_given_keys(self):
        state = _resolve(
            services={"web": {"port": 80}},
            watches={"k": {"type": "key", "key": "foo", "handler": "/bin/h"}},
            checks={"ping": {"ttl": "30s", "notes": "n"}},
        ).state
        assert state.services == {"web": {"port": 80}}
        assert state.watches == {
            "k": {"type": "key", "key": "foo", "handler": "/bin/h"},
        }
        assert state.checks == {"ping": {"ttl": "30s", "notes": "n"}}

    def test_secrets_held_sensitive(self):
        state = _resolve(
            tokens={"agent": {"secret_id": "s3cr3t-token"}},
            services={"web": {"token": "svc-token"}},
        ).state
        assert isinstance(state.tokens["agent"]["secret_id"], Sensitive)
        assert state.tokens["agent"]["secret_id"].reveal() == "s3cr3t-token"
        assert state.services["web"]["token"].reveal() == "svc-token"

    def test_unsupported_platform(self):
        with pytest.raises(UnsupportedPlatformError, match="Unsupported kernel"):
            ConfigurationResolver(PlatformFacts("Plan9", "x86_64"))


class TestSensitiveConfig:
    def test_sensitive_config_stays_wrapped(self):
        state = _resolve(
            config_defaults={"data_dir": "/opt/consul"},
            config_hash=Sensitive({"encrypt": "s3cr3t", "ports": {"http": 8600}}),
        ).state
        assert state.config_sensitive
        assert isinstance(state.config, Sensitive)
        assert state.config.reveal()["encrypt"] == "s3cr3t"
        # derived values are still read from the revealed map
        assert state.derived.http_port == 8600
        assert state.derived.data_dir == "/opt/consul"

    def test_to_dict_redacts(self):
        state = _resolve(config_hash=Sensitive({"encrypt": "s3cr3t"})).state
        assert "s3cr3t" not in repr(state.to_dict())
        assert "s3cr3t" not in repr(state)

    def test_nested_sensitive_value(self):
        state = _resolve(
            config_defaults={"data_dir": "/opt/consul"},
            config_hash={
                "datacenter": "dc1",
                "encrypt": Sensitive("k3y"),
                "ports": Sensitive({"http": 8600}),
            },
        ).state
        assert state.config_sensitive
        assert state.config.reveal() == {
            "data_dir": "/opt/consul",
            "datacenter": "dc1",
            "encrypt": "k3y",
            "ports": {"http": 8600},
        }
        assert state.derived.http_port == 8600

    def test_nested_sensitive_from_yaml(self, tmp_path):
        p = tmp_path / "params.yaml"
        p.write_text(
            "consul:\n"
            "  config_hash:\n"
            "    datacenter: dc1\n"
            '    encrypt: !sensitive "pUqJrVyVRj5jsiYEkM/tFQ=="\n'
        )
        resolution = ConfigurationResolver(LINUX).resolve(load_parameters(p))
        assert resolution.state.config_sensitive
        assert "pUqJrVyVRj5jsiYEkM" not in resolution.plan.to_sorted_json()
        assert "pUqJrVyVRj5jsiYEkM" not in repr(resolution.state.to_dict())

        dest = write_config_file(resolution.state, tmp_path / "out")
        assert json.loads(dest.read_text()) == {
            "datacenter": "dc1",
            "encrypt": "pUqJrVyVRj5jsiYEkM/tFQ==",
        }


class TestIdempotence:
    PARAMS = {
        "config_defaults": {"data_dir": "/opt/consul", "ports": {"http": 8500}},
        "config_hash": {"server": True, "addresses": {"http": "10.0.0.1 10.0.0.2"}},
        "services": {"web": {"port": 80, "tags": ["a"]}},
        "policies": {"p": {"description": "d"}},
    }

    def test_same_input_same_state_and_plan(self):
        a = _resolve(**self.PARAMS)
        b = _resolve(**self.PARAMS)
        assert a.state == b.state
        assert a.plan == b.plan
        assert a.plan.to_sorted_json() == b.plan.to_sorted_json()
        assert a.plan.fingerprint() == b.plan.fingerprint()

    def test_sensitive_plan_is_deterministic(self):
        params = dict(self.PARAMS, config_hash=Sensitive({"encrypt": "k"}))
        a = _resolve(**params)
        b = _resolve(**params)
        assert a.plan.to_sorted_json() == b.plan.to_sorted_json()
