# tests/ceph/test_ceph_client.py
import json
import subprocess

import pytest

from monkeeper.ceph.client import CephClient
from monkeeper.config.models import CephSpec
from monkeeper.errors import CephCommandError


class DummyCP:
    def __init__(self, rc=0, out="", err=""):
        self.returncode = rc
        self.stdout = out
        self.stderr = err


MON_STATUS = {
    "name": "a",
    "rank": 0,
    "state": "leader",
    "quorum": [0, 2],
    "monmap": {
        "epoch": 3,
        "mons": [
            {"rank": 0, "name": "a", "addr": "10.96.0.10:6789/0", "public_addr": "10.96.0.10:6789/0"},
            {"rank": 1, "name": "b", "addr": "10.96.0.11:6789/0"},
            {"rank": 2, "name": "c", "addr": "10.96.0.12:6789/0", "public_addr": "10.96.0.12:6789/0"},
        ],
    },
}


def test_get_mon_status_parses_monmap_and_quorum(monkeypatch):
    calls = []

    def fake_run(argv, check=False, text=False, capture_output=False, timeout=None):
        calls.append(argv)
        return DummyCP(0, json.dumps(MON_STATUS))

    monkeypatch.setattr(subprocess, "run", fake_run)

    status = CephClient(CephSpec(binary="ceph", config_path="/etc/ceph/ceph.conf", keyring="/k")).get_mon_status("rook")

    argv = calls[0]
    assert argv[:3] == ["ceph", "--cluster", "rook"]
    assert argv[-3:] == ["--format", "json", "mon_status"]
    assert "--keyring" in argv and "/k" in argv

    assert [m.name for m in status.mons] == ["a", "b", "c"]
    assert status.mons[1].public_addr == "10.96.0.11:6789/0"
    assert [m.name for m in status.mons if status.in_quorum(m)] == ["a", "c"]


def test_remove_mon_builds_expected_argv(monkeypatch):
    calls = []

    def fake_run(argv, **kw):
        calls.append(argv)
        return DummyCP(0, "")

    monkeypatch.setattr(subprocess, "run", fake_run)

    CephClient().remove_mon("ceph", "b")
    assert calls[0][-3:] == ["mon", "remove", "b"]


def test_nonzero_exit_raises(monkeypatch):
    monkeypatch.setattr(subprocess, "run", lambda argv, **kw: DummyCP(1, "", "timed out"))

    with pytest.raises(CephCommandError, match="rc=1"):
        CephClient().remove_mon("ceph", "b")


def test_unparsable_status_raises(monkeypatch):
    monkeypatch.setattr(subprocess, "run", lambda argv, **kw: DummyCP(0, "{not json"))

    with pytest.raises(CephCommandError, match="unexpected mon_status"):
        CephClient().get_mon_status("ceph")


def test_missing_binary_raises(monkeypatch):
    def fake_run(argv, **kw):
        raise FileNotFoundError(argv[0])

    monkeypatch.setattr(subprocess, "run", fake_run)

    with pytest.raises(CephCommandError, match="could not run"):
        CephClient().get_mon_status("ceph")
