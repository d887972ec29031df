"""Tests for HttpBalanceOracle

Uses httpx.MockTransport in place of the token ledger API.
"""

import json

import httpx
import pytest

from taskledger.core.exceptions import ExternalCallFailure
from taskledger.services import HttpBalanceOracle


def _oracle(handler, **kwargs) -> HttpBalanceOracle:
    return HttpBalanceOracle(
        "http://ledger.test/",
        transport=httpx.MockTransport(handler),
        **kwargs,
    )


class TestQueries:
    async def test_owner(self):
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.path == "/owner"
            return httpx.Response(200, json={"owner": "admin"})

        assert await _oracle(handler).owner() == "admin"

    async def test_balance_of(self):
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.path == "/balances/alice"
            return httpx.Response(200, json={"balance": str(10**30)})

        assert await _oracle(handler).balance_of("alice") == 10**30

    async def test_unknown_account_has_zero_balance(self):
        oracle = _oracle(lambda request: httpx.Response(404, json={"detail": "not found"}))
        assert await oracle.balance_of("nobody") == 0

    async def test_internal_token_header(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["token"] = request.headers.get("X-Internal-Token")
            return httpx.Response(200, json={"owner": "admin"})

        await _oracle(handler, internal_token="secret").owner()
        assert seen["token"] == "secret"

    async def test_server_error_raises(self):
        oracle = _oracle(lambda request: httpx.Response(500, text="boom"))
        with pytest.raises(ExternalCallFailure):
            await oracle.balance_of("alice")
        with pytest.raises(ExternalCallFailure):
            await oracle.owner()

    async def test_malformed_balance_raises(self):
        oracle = _oracle(lambda request: httpx.Response(200, json={"amount": 3}))
        with pytest.raises(ExternalCallFailure, match="Malformed"):
            await oracle.balance_of("alice")

    async def test_connection_error_raises(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        with pytest.raises(ExternalCallFailure, match="unavailable"):
            await _oracle(handler).balance_of("alice")


class TestTransfer:
    async def test_success(self):
        captured = {}

        def handler(request: httpx.Request) -> httpx.Response:
            captured["path"] = request.url.path
            captured["body"] = json.loads(request.content)
            return httpx.Response(201, json={"transfer_id": "tx-1"})

        result = await _oracle(handler).transfer(100, "dave", ["bob", "carol"])

        assert result.success
        assert result.transfer_id == "tx-1"
        assert captured["path"] == "/transfers"
        assert captured["body"] == {"amount": "100", "from": "dave", "to": ["bob", "carol"]}

    async def test_rejected_transfer_reports_failure(self):
        oracle = _oracle(lambda request: httpx.Response(400, json={"detail": "insufficient funds"}))

        result = await oracle.transfer(100, "dave", ["bob"])

        assert not result.success
        assert result.error == "insufficient funds"

    async def test_connection_error_reports_failure(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        result = await _oracle(handler).transfer(1, "dave", ["bob"])

        assert not result.success
        assert result.message == "Token ledger unavailable"

    async def test_connection_error_is_a_definite_failure(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        result = await _oracle(handler).transfer(1, "dave", ["bob"])
        assert not result.outcome_unknown

    async def test_timeout_reports_unknown_outcome(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("timed out", request=request)

        result = await _oracle(handler).transfer(1, "dave", ["bob"], idempotency_key="k")

        assert not result.success
        assert result.outcome_unknown

    @pytest.mark.parametrize(
        "response",
        [
            httpx.Response(201, text="OK"),
            httpx.Response(202, json={"status": "queued"}),
            httpx.Response(204),
            httpx.Response(200, json=["tx-1"]),
        ],
    )
    async def test_any_2xx_is_success(self, response):
        result = await _oracle(lambda request: response).transfer(5, "dave", ["bob"])

        assert result.success
        assert result.transfer_id is None

    async def test_idempotency_key_header(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["key"] = request.headers.get("Idempotency-Key")
            return httpx.Response(201, json={"transfer_id": "tx-1"})

        await _oracle(handler).transfer(5, "dave", ["bob"], idempotency_key="task-close:t1")
        assert seen["key"] == "task-close:t1"

    async def test_no_idempotency_header_without_key(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["headers"] = request.headers
            return httpx.Response(201)

        await _oracle(handler).transfer(5, "dave", ["bob"])
        assert "Idempotency-Key" not in seen["headers"]
