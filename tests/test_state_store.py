"""Tests for PlanSnapshot and the snapshot write/load helpers."""

from __future__ import annotations

import json

import pytest

from consul_cm.config.loader import parse_parameters
from consul_cm.platform.facts import PlatformFacts
from consul_cm.resolve.resolver import ConfigurationResolver
from consul_cm.state.models import PlanSnapshot
from consul_cm.state.store import (
    config_dir,
    latest_plan_snapshot,
    load_plan_snapshot,
    write_plan_snapshot,
)


def _plan(**params):
    resolver = ConfigurationResolver(PlatformFacts("Linux", "x86_64"))
    return resolver.resolve(parse_parameters(params)).plan


# ---------------------------------------------------------------------------
# PlanSnapshot model
# ---------------------------------------------------------------------------


class TestPlanSnapshotModel:
    """PlanSnapshot construction and serialisation."""

    def test_defaults(self):
        snap = PlanSnapshot()
        assert len(snap.run_id) == 14
        assert snap.run_id.isdigit()
        assert snap.fingerprint == ""
        assert snap.plan == {}

    def test_from_plan(self):
        plan = _plan()
        snap = PlanSnapshot.from_plan(
            plan,
            version="1.16.3",
            install_method="url",
            config_path="/etc/consul/config.json",
            run_id="20260101120000",
        )
        assert snap.run_id == "20260101120000"
        assert snap.fingerprint == plan.fingerprint()
        assert [g["name"] for g in snap.plan["groups"]] == plan.group_names

    def test_to_sorted_json_deterministic(self):
        """Same inputs → byte-identical JSON."""
        a = PlanSnapshot.from_plan(_plan(), run_id="20260101120000")
        b = PlanSnapshot.from_plan(_plan(), run_id="20260101120000")
        assert a.to_sorted_json() == b.to_sorted_json()

    def test_to_sorted_json_keys_sorted(self):
        data = json.loads(PlanSnapshot(run_id="1").to_sorted_json())
        assert list(data) == sorted(data)


# ---------------------------------------------------------------------------
# write / load
# ---------------------------------------------------------------------------


class TestWriteLoad:
    def test_round_trip(self, tmp_path):
        snap = PlanSnapshot.from_plan(_plan(), version="1.16.3", run_id="20260101120000")
        path = write_plan_snapshot(snap, tmp_path / "snap.json")
        loaded = load_plan_snapshot(path)
        assert loaded == snap

    def test_acl_secrets_not_stored(self, tmp_path):
        plan = _plan(
            acl_api_token="root-token",
            tokens={"agent": {"secret_id": "s3cr3t-token"}},
        )
        snap = PlanSnapshot.from_plan(plan, version="1.16.3")
        text = write_plan_snapshot(snap, tmp_path / "snap.json").read_text()
        assert "s3cr3t-token" not in text
        assert "root-token" not in text
        assert load_plan_snapshot(tmp_path / "snap.json").fingerprint == plan.fingerprint()

    def test_default_path(self, tmp_path, monkeypatch):
        monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path))
        snap = PlanSnapshot(run_id="20260101120000")
        path = write_plan_snapshot(snap)
        assert path == tmp_path / "consul-cm" / "plan_20260101120000.json"
        assert path.read_text().endswith("\n")

    def test_load_missing(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_plan_snapshot(tmp_path / "missing.json")

    def test_config_dir_fallback(self, tmp_path, monkeypatch):
        monkeypatch.delenv("XDG_CONFIG_HOME", raising=False)
        monkeypatch.setenv("HOME", str(tmp_path))
        assert config_dir() == tmp_path / ".config" / "consul-cm"
        assert config_dir().is_dir()


class TestLatestSnapshot:
    def test_none_when_empty(self, tmp_path, monkeypatch):
        monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path))
        assert latest_plan_snapshot() is None

    def test_newest_run_id_wins(self, tmp_path, monkeypatch):
        monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path))
        write_plan_snapshot(PlanSnapshot(run_id="20250101000000"))
        newest = write_plan_snapshot(PlanSnapshot(run_id="20260101000000"))
        assert latest_plan_snapshot() == newest
