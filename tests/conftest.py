"""Pytest configuration and fixtures."""

import json
import os
from typing import Any

import httpx
import pytest

# Set test environment
os.environ["ENVIRONMENT"] = "test"

from swaptx.config import Settings
from swaptx.rpc import RpcPool
from swaptx.transfer import clear_swap_locks

SIGNER = "0x1111111111111111111111111111111111111111"
OWNER = "0x2222222222222222222222222222222222222222"
DEPOSIT = "0x3333333333333333333333333333333333333333"
TX_HASH = "0x" + "ab" * 32


class RpcFault(Exception):
    """Raised by a handler to answer with a JSON-RPC error object."""

    def __init__(self, code: int, message: str, data: Any = None):
        super().__init__(message)
        self.code = code
        self.message = message
        self.data = data


class FakeNode:
    """In-process JSON-RPC node served through httpx.MockTransport.

    Handlers are registered per method and can be a static result, an
    RpcFault, or a callable receiving the request params.
    """

    Fault = RpcFault

    def __init__(self):
        self.handlers: dict[str, Any] = {}
        self.calls: list[tuple[str, list]] = []

    def on(self, method: str, result: Any) -> None:
        self.handlers[method] = result

    def on_sequence(self, method: str, results: list) -> None:
        """Answer with each result in turn, repeating the last one."""
        remaining = list(results)

        def handler(params):
            value = remaining.pop(0) if len(remaining) > 1 else remaining[0]
            if isinstance(value, RpcFault):
                raise value
            return value

        self.handlers[method] = handler

    def methods(self) -> list[str]:
        return [method for method, _ in self.calls]

    def handle(self, request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        method, params = body["method"], body["params"]
        self.calls.append((method, params))

        handler = self.handlers.get(method)
        try:
            if method not in self.handlers:
                raise RpcFault(-32601, f"the method {method} does not exist")
            if isinstance(handler, RpcFault):
                raise handler
            result = handler(params) if callable(handler) else handler
        except RpcFault as fault:
            error = {"code": fault.code, "message": fault.message}
            if fault.data is not None:
                error["data"] = fault.data
            return httpx.Response(200, json={"jsonrpc": "2.0", "id": body["id"], "error": error})

        return httpx.Response(200, json={"jsonrpc": "2.0", "id": body["id"], "result": result})


@pytest.fixture(autouse=True)
def reset_swap_locks():
    """Clear swap locks before each test."""
    clear_swap_locks()
    yield
    clear_swap_locks()


@pytest.fixture
def settings() -> Settings:
    """Settings with fast confirmation polling."""
    return Settings(
        _env_file=None,
        confirmation_timeout=0.2,
        confirmation_poll_interval=0.01,
        attempt_cache_path=None,
    )


@pytest.fixture
def node() -> FakeNode:
    """Fake JSON-RPC node."""
    return FakeNode()


@pytest.fixture
def rpc_pool(settings: Settings, node: FakeNode) -> RpcPool:
    """RPC pool whose clients talk to the fake node."""
    return RpcPool(settings=settings, transport=httpx.MockTransport(node.handle))


@pytest.fixture
def unreachable_pool(settings: Settings) -> RpcPool:
    """RPC pool whose every request fails to connect."""

    def refuse(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    return RpcPool(settings=settings, transport=httpx.MockTransport(refuse))


def hex_word(value: int) -> str:
    """ABI-encoded uint256 as JSON-RPC hex data."""
    return "0x" + value.to_bytes(32, "big").hex()


