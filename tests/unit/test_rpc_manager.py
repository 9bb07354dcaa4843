"""
Unit tests for the JSON-RPC manager (clients/rpc_manager.py)
Tests eth_call framing, failover ordering and error mapping
"""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import aiohttp
import pytest

from curvequote.clients.rpc_manager import RPCManager
from curvequote.core.errors import DecodeFailure, RPCFailure
from curvequote.core.metrics import get_metrics


def rpc_response(outcome):
    """Async context manager standing in for session.post(...)"""
    context = MagicMock()
    if isinstance(outcome, BaseException):
        context.__aenter__.side_effect = outcome
    else:
        response = MagicMock()
        response.json = AsyncMock(return_value=outcome)
        context.__aenter__.return_value = response
    return context


def mock_session(*outcomes):
    session = MagicMock()
    session.post = MagicMock(side_effect=[rpc_response(outcome) for outcome in outcomes])
    session.close = AsyncMock()
    return session


@pytest.mark.asyncio
async def test_eth_call_success(rpc_config):
    session = mock_session({"jsonrpc": "2.0", "id": 1, "result": "0x" + "00" * 31 + "2a"})
    manager = RPCManager(rpc_config, session=session)

    raw = await manager.eth_call("0x787b7b0d07d7bd0c2fd5f9b3d5dd6ed1c1a69c3d", "0xabcdef01")

    assert raw == b"\x00" * 31 + b"\x2a"

    url = session.post.call_args.args[0]
    payload = session.post.call_args.kwargs["json"]
    timeout = session.post.call_args.kwargs["timeout"]
    assert url == "https://rpc-primary.example"
    assert payload["method"] == "eth_call"
    assert payload["params"] == [
        {"to": "0x787b7b0d07d7bd0c2fd5f9b3d5dd6ed1c1a69c3d", "data": "0xabcdef01"},
        "latest"
    ]
    assert timeout.total == 5.0
    assert get_metrics().get_counter("http_rpc_success", labels={"endpoint": "primary"}) == 1


@pytest.mark.asyncio
async def test_failover_to_backup(rpc_config):
    session = mock_session(
        aiohttp.ClientConnectionError("connection refused"),
        {"jsonrpc": "2.0", "id": 2, "result": "0x01"},
    )
    manager = RPCManager(rpc_config, session=session)

    raw = await manager.eth_call("0x787b7b0d07d7bd0c2fd5f9b3d5dd6ed1c1a69c3d", "0x")

    assert raw == b"\x01"
    assert [call.args[0] for call in session.post.call_args_list] == [
        "https://rpc-primary.example",
        "https://rpc-backup.example",
    ]

    health = manager.get_health_stats()
    assert health["primary"]["consecutive_failures"] == 1
    assert health["primary"]["total_errors"] == 1
    assert health["backup"]["consecutive_failures"] == 0
    assert get_metrics().get_counter("http_rpc_errors", labels={"endpoint": "primary"}) == 1


@pytest.mark.asyncio
async def test_all_endpoints_fail(rpc_config):
    session = mock_session(asyncio.TimeoutError(), asyncio.TimeoutError())
    manager = RPCManager(rpc_config, session=session)

    with pytest.raises(RPCFailure, match="All HTTP RPC endpoints failed") as exc_info:
        await manager.call_http_rpc("eth_blockNumber", [])

    assert exc_info.value.retryable
    assert "TimeoutError" in str(exc_info.value)


@pytest.mark.asyncio
async def test_json_rpc_error_object_is_failure(rpc_config):
    error = {"jsonrpc": "2.0", "id": 1, "error": {"code": 3, "message": "execution reverted"}}
    session = mock_session(error, error)
    manager = RPCManager(rpc_config, session=session)

    with pytest.raises(RPCFailure, match="execution reverted"):
        await manager.eth_call("0x787b7b0d07d7bd0c2fd5f9b3d5dd6ed1c1a69c3d", "0x")


def test_failing_endpoint_moves_to_back(rpc_config):
    manager = RPCManager(rpc_config, session=MagicMock())
    manager.endpoints["primary"].consecutive_failures = rpc_config.failover_threshold_errors

    ordered = [state.endpoint.label for state in manager._ordered_endpoints()]

    assert ordered == ["backup", "primary"]
    assert manager.get_health_stats()["primary"]["is_healthy"] is False


@pytest.mark.asyncio
async def test_success_resets_consecutive_failures(rpc_config):
    session = mock_session({"jsonrpc": "2.0", "id": 1, "result": "0x"})
    manager = RPCManager(rpc_config, session=session)
    manager.endpoints["primary"].consecutive_failures = 2

    await manager.eth_call("0x787b7b0d07d7bd0c2fd5f9b3d5dd6ed1c1a69c3d", "0x")

    assert manager.endpoints["primary"].consecutive_failures == 0


@pytest.mark.asyncio
@pytest.mark.parametrize("result", [None, 42, "0xzz"])
async def test_eth_call_bad_result_is_decode_failure(rpc_config, result):
    session = mock_session({"jsonrpc": "2.0", "id": 1, "result": result})
    manager = RPCManager(rpc_config, session=session)

    with pytest.raises(DecodeFailure):
        await manager.eth_call("0x787b7b0d07d7bd0c2fd5f9b3d5dd6ed1c1a69c3d", "0x")


@pytest.mark.asyncio
async def test_call_before_start(rpc_config):
    manager = RPCManager(rpc_config)

    with pytest.raises(RPCFailure, match="not initialized"):
        await manager.call_http_rpc("eth_chainId", [])


@pytest.mark.asyncio
async def test_shared_session_is_not_closed(rpc_config):
    session = mock_session()

    async with RPCManager(rpc_config, session=session):
        pass

    session.close.assert_not_awaited()


@pytest.mark.asyncio
async def test_owned_session_lifecycle(rpc_config):
    manager = RPCManager(rpc_config)

    await manager.start()
    session = manager._http_session
    assert isinstance(session, aiohttp.ClientSession)

    await manager.stop()
    assert session.closed
    assert manager._http_session is None
