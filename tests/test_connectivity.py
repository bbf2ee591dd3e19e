# tests/test_connectivity.py

from __future__ import annotations

from unittest.mock import MagicMock

import requests

from plansync.infrastructure.network import connectivity as connectivity_module
from plansync.infrastructure.network.connectivity import HttpConnectivityOracle


def _session(*statuses) -> MagicMock:
    session = MagicMock(spec=requests.Session)
    session.get.side_effect = [MagicMock(status_code=status) for status in statuses]
    return session


def test_204_means_online() -> None:
    oracle = HttpConnectivityOracle("http://probe.test", session=_session(204))

    assert oracle.is_online() is True


def test_server_error_means_offline() -> None:
    oracle = HttpConnectivityOracle("http://probe.test", session=_session(503))

    assert oracle.is_online() is False


def test_network_error_means_offline() -> None:
    session = MagicMock(spec=requests.Session)
    session.get.side_effect = requests.ConnectionError("unreachable")

    assert HttpConnectivityOracle(session=session).is_online() is False


def test_answer_is_cached_within_ttl(monkeypatch) -> None:
    now = [100.0]
    monkeypatch.setattr(connectivity_module.time, "monotonic", lambda: now[0])
    session = _session(204, 503)
    oracle = HttpConnectivityOracle("http://probe.test", ttl=15, session=session)

    assert oracle.is_online() is True
    now[0] = 105.0
    assert oracle.is_online() is True
    now[0] = 200.0
    assert oracle.is_online() is False
    assert session.get.call_count == 2


def test_invalidate_forces_a_new_probe() -> None:
    session = _session(204, 503)
    oracle = HttpConnectivityOracle("http://probe.test", ttl=3600, session=session)

    assert oracle.is_online() is True
    oracle.invalidate()
    assert oracle.is_online() is False


def test_probe_does_not_follow_redirects() -> None:
    session = _session(302)
    oracle = HttpConnectivityOracle("http://probe.test", timeout=2, session=session)

    assert oracle.is_online() is True
    session.get.assert_called_once_with("http://probe.test", timeout=2, allow_redirects=False)
