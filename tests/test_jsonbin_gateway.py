# tests/test_jsonbin_gateway.py

from __future__ import annotations

from unittest.mock import MagicMock

import pytest
import requests

from plansync.infrastructure.backup.jsonbin_gateway import JsonBinGateway


def _response(status: int = 200, body=None) -> MagicMock:
    response = MagicMock()
    response.status_code = status
    response.ok = 200 <= status < 400
    if isinstance(body, Exception):
        response.json.side_effect = body
    else:
        response.json.return_value = body if body is not None else {}
    return response


@pytest.fixture()
def session() -> MagicMock:
    session = MagicMock(spec=requests.Session)
    session.headers = {}
    return session


@pytest.fixture()
def gateway(session) -> JsonBinGateway:
    return JsonBinGateway("https://bins.example/v3", "secret", timeout=5, session=session)


def test_session_carries_master_key(gateway, session) -> None:
    assert session.headers["X-Master-Key"] == "secret"
    assert session.headers["Content-Type"] == "application/json"
    assert gateway.base_url == "https://bins.example/v3/"


def test_create_returns_bin_id(gateway, session) -> None:
    session.post.return_value = _response(200, {"record": {}, "metadata": {"id": "65f0c0ffee"}})

    assert gateway.create({"tasks": []}) == "65f0c0ffee"
    session.post.assert_called_once_with("https://bins.example/v3/b", json={"tasks": []}, timeout=5)


@pytest.mark.parametrize(
    "response",
    [
        _response(401, {"message": "Invalid X-Master-Key"}),
        _response(200, {"metadata": {}}),
        _response(200, ValueError("not json")),
    ],
)
def test_create_failures_return_none(gateway, session, response) -> None:
    session.post.return_value = response
    assert gateway.create({}) is None


def test_create_network_error(gateway, session) -> None:
    session.post.side_effect = requests.ConnectionError("dns")
    assert gateway.create({}) is None


def test_get_reads_latest_record(gateway, session) -> None:
    session.get.return_value = _response(200, {"record": {"tasks": [], "userId": "u1"}, "metadata": {}})

    assert gateway.get("abc") == {"tasks": [], "userId": "u1"}
    assert session.get.call_args.args[0] == "https://bins.example/v3/b/abc/latest"


def test_get_failures_return_none(gateway, session) -> None:
    session.get.return_value = _response(404)
    assert gateway.get("abc") is None

    session.get.side_effect = requests.Timeout()
    assert gateway.get("abc") is None


def test_replace_puts_whole_document(gateway, session) -> None:
    session.put.return_value = _response(200)

    assert gateway.replace("abc", {"tasks": []}) is True
    session.put.assert_called_once_with("https://bins.example/v3/b/abc", json={"tasks": []}, timeout=5)

    session.put.return_value = _response(500)
    assert gateway.replace("abc", {"tasks": []}) is False


def test_without_key_gateway_is_unavailable(session) -> None:
    gateway = JsonBinGateway(session=session)

    assert gateway.is_available() is False
    assert "X-Master-Key" not in session.headers
