"""Tests for RPC and bundle transaction senders."""

import httpx
import pytest
import respx

from sniper.exec.senders import (
    BUNDLE_TX_PREFIX,
    BundleFirstSender,
    JitoBundleSender,
    RpcSender,
    SolanaRpcError,
    _is_retryable_error,
    backend_for,
)

RPC_URL = "https://rpc.test"
ENDPOINTS = [
    "https://mainnet.block-engine.test/api/v1/bundles",
    "https://amsterdam.block-engine.test/api/v1/bundles",
    "https://ny.block-engine.test/api/v1/bundles",
]


class TestSolanaRpcError:
    def test_error_creation(self):
        error = SolanaRpcError(code=-32603, message="Internal error", data={"a": 1})

        assert error.code == -32603
        assert error.data == {"a": 1}
        assert str(error) == "RPC Error -32603: Internal error"

    def test_is_retryable_error(self):
        assert _is_retryable_error(httpx.TimeoutException("timeout"))
        assert _is_retryable_error(httpx.ConnectError("connection failed"))
        assert _is_retryable_error(SolanaRpcError(-32005, "Node is unhealthy"))
        assert _is_retryable_error(SolanaRpcError(429, "Too many requests"))

        assert not _is_retryable_error(SolanaRpcError(-32602, "Invalid params"))
        assert not _is_retryable_error(ValueError("Invalid value"))


class TestRpcSender:
    @pytest.mark.asyncio
    @respx.mock
    async def test_send(self):
        route = respx.post(RPC_URL).mock(
            return_value=httpx.Response(
                200, json={"jsonrpc": "2.0", "id": 1, "result": "sig123"}
            )
        )

        signature = await RpcSender(RPC_URL).send("dHg=")

        assert signature == "sig123"
        body = route.calls[0].request.read()
        assert b'"sendTransaction"' in body
        assert b'"base64"' in body

    @pytest.mark.asyncio
    @respx.mock
    async def test_rpc_error_is_raised(self):
        respx.post(RPC_URL).mock(
            return_value=httpx.Response(
                200,
                json={
                    "jsonrpc": "2.0",
                    "id": 1,
                    "error": {"code": -32602, "message": "Invalid params"},
                },
            )
        )

        with pytest.raises(SolanaRpcError) as exc_info:
            await RpcSender(RPC_URL).send("dHg=")
        assert exc_info.value.code == -32602

    @pytest.mark.asyncio
    @respx.mock
    async def test_confirm_signature(self):
        respx.post(RPC_URL).mock(
            side_effect=[
                httpx.Response(200, json={"result": {"value": [None]}}),
                httpx.Response(
                    200,
                    json={
                        "result": {
                            "value": [
                                {"err": None, "confirmationStatus": "confirmed", "slot": 9}
                            ]
                        }
                    },
                ),
            ]
        )

        status = await RpcSender(RPC_URL).confirm_signature("sig", poll_interval=0)

        assert status["slot"] == 9

    @pytest.mark.asyncio
    @respx.mock
    async def test_confirm_signature_failed_transaction(self):
        respx.post(RPC_URL).mock(
            return_value=httpx.Response(
                200,
                json={"result": {"value": [{"err": {"InstructionError": [0, 1]}}]}},
            )
        )

        with pytest.raises(SolanaRpcError, match="Transaction failed"):
            await RpcSender(RPC_URL).confirm_signature("sig", poll_interval=0)

    @pytest.mark.asyncio
    @respx.mock
    async def test_get_token_balance(self):
        def account(amount: str):
            return {
                "account": {
                    "data": {"parsed": {"info": {"tokenAmount": {"amount": amount}}}}
                }
            }

        respx.post(RPC_URL).mock(
            return_value=httpx.Response(
                200, json={"result": {"value": [account("1500"), account("500")]}}
            )
        )

        balance = await RpcSender(RPC_URL).get_token_balance("Owner", "Mint")

        assert balance == 2000.0


class TestJitoBundleSender:
    def test_requires_endpoints(self):
        with pytest.raises(ValueError):
            JitoBundleSender([])

    @pytest.mark.asyncio
    @respx.mock
    async def test_first_endpoint_accepts(self):
        first = respx.post(ENDPOINTS[0]).mock(
            return_value=httpx.Response(200, json={"result": "bundle-1"})
        )
        second = respx.post(ENDPOINTS[1])

        tx_id = await JitoBundleSender(ENDPOINTS).send("dHg=")

        assert tx_id == f"{BUNDLE_TX_PREFIX}bundle-1"
        assert first.called
        assert not second.called

    @pytest.mark.asyncio
    @respx.mock
    async def test_endpoints_tried_in_order(self):
        respx.post(ENDPOINTS[0]).mock(return_value=httpx.Response(429))
        respx.post(ENDPOINTS[1]).mock(
            return_value=httpx.Response(200, json={"error": {"message": "bad tip"}})
        )
        respx.post(ENDPOINTS[2]).mock(
            return_value=httpx.Response(200, json={"result": "bundle-3"})
        )

        sender = JitoBundleSender(ENDPOINTS, rate_limit_backoff=0)
        tx_id = await sender.send("dHg=")

        assert tx_id == f"{BUNDLE_TX_PREFIX}bundle-3"
        assert [c.request.url.host for c in respx.calls] == [
            "mainnet.block-engine.test",
            "amsterdam.block-engine.test",
            "ny.block-engine.test",
        ]

    @pytest.mark.asyncio
    @respx.mock
    async def test_all_endpoints_fail(self):
        for url in ENDPOINTS:
            respx.post(url).mock(side_effect=httpx.ConnectError("refused"))

        with pytest.raises(SolanaRpcError, match="All bundle endpoints failed"):
            await JitoBundleSender(ENDPOINTS).send("dHg=")


class TestBundleFirstSender:
    @pytest.mark.asyncio
    @respx.mock
    async def test_falls_back_to_rpc(self):
        for url in ENDPOINTS:
            respx.post(url).mock(return_value=httpx.Response(503, text="down"))
        rpc_route = respx.post(RPC_URL).mock(
            return_value=httpx.Response(200, json={"result": "rpc-sig"})
        )

        sender = BundleFirstSender(
            JitoBundleSender(ENDPOINTS), RpcSender(RPC_URL), confirm_fallback=False
        )
        tx_id = await sender.send("dHg=")

        assert tx_id == "rpc-sig"
        assert rpc_route.call_count == 1
        assert backend_for(tx_id) == "standard"

    @pytest.mark.asyncio
    @respx.mock
    async def test_bundle_success_skips_rpc(self):
        respx.post(ENDPOINTS[0]).mock(
            return_value=httpx.Response(200, json={"result": "b"})
        )
        rpc_route = respx.post(RPC_URL)

        sender = BundleFirstSender(JitoBundleSender(ENDPOINTS), RpcSender(RPC_URL))
        tx_id = await sender.send("dHg=")

        assert backend_for(tx_id) == "jito"
        assert not rpc_route.called
