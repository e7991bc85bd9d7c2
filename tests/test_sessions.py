import logging
from uuid import UUID

import anyio
import pytest
from mcp import types
from pydantic import BaseModel

from flights_ui.flight_tools import create_tool_registry
from flights_ui.mcp.server import create_mcp_server
from flights_ui.mcp.sessions import (
    InvalidHandshakeError,
    SessionManager,
    SessionNotFoundError,
    SessionState,
    is_initialize_request,
)
from flights_ui.tool_registry import ResponseEnvelope, TextItem, ToolDescriptor, ToolRegistry

pytestmark = pytest.mark.anyio


def initialize_request(request_id=1):
    return {
        "jsonrpc": "2.0",
        "id": request_id,
        "method": "initialize",
        "params": {
            "protocolVersion": "2025-03-26",
            "capabilities": {},
            "clientInfo": {"name": "test-client", "version": "1.0"},
        },
    }


@pytest.fixture
def manager(renderer, lwc_handler):
    return SessionManager(
        registry_factory=lambda: create_tool_registry(renderer, lwc_handler),
        server_factory=create_mcp_server,
    )


def test_is_initialize_request():
    assert is_initialize_request(initialize_request())
    assert not is_initialize_request({"jsonrpc": "2.0", "method": "initialize"})
    assert not is_initialize_request({"jsonrpc": "2.0", "id": 1, "method": "tools/list"})
    assert not is_initialize_request([initialize_request()])
    assert not is_initialize_request(None)


async def test_sessions_get_distinct_ids(manager):
    async with manager.run():
        session_ids = [await manager.create_session(initialize_request(i)) for i in range(5)]
        assert len(manager) == 5
    assert len(set(session_ids)) == 5


async def test_new_session_starts_initializing_with_own_registry(manager):
    async with manager.run():
        first = manager.resolve(await manager.create_session(initialize_request()))
        second = manager.resolve(await manager.create_session(initialize_request()))

        assert first.state is SessionState.INITIALIZING
        assert len(first.registry) == 9
        assert first.registry is not second.registry


async def test_session_becomes_active_once(manager):
    async with manager.run():
        session_id = await manager.create_session(initialize_request())
        manager.on_session_initialized(session_id)
        assert manager.resolve(session_id).is_active

        await manager.close(session_id)
        manager.on_session_initialized(session_id)
        with pytest.raises(SessionNotFoundError):
            manager.resolve(session_id)


@pytest.mark.parametrize("message", [
    {"jsonrpc": "2.0", "id": 1, "method": "tools/list"},
    {"jsonrpc": "2.0", "id": 1, "method": "initialize", "params": {}},
    {"jsonrpc": "2.0", "method": "initialize"},
    "initialize",
])
async def test_invalid_handshake(manager, message):
    async with manager.run():
        with pytest.raises(InvalidHandshakeError):
            await manager.create_session(message)
        assert len(manager) == 0


async def test_create_session_requires_run(manager):
    with pytest.raises(RuntimeError):
        await manager.create_session(initialize_request())


async def test_resolve_unknown_session(manager):
    async with manager.run():
        with pytest.raises(SessionNotFoundError):
            manager.resolve("not-a-session")
        with pytest.raises(SessionNotFoundError):
            manager.resolve(None)


async def test_close_releases_session(manager):
    async with manager.run():
        session_id = await manager.create_session(initialize_request())
        session = manager.resolve(session_id)

        assert await manager.close(session_id) is True
        assert session.state is SessionState.CLOSED
        assert session.registry is None and session.transport is None
        with pytest.raises(SessionNotFoundError):
            manager.resolve(session_id)
        assert await manager.close(session_id) is False
        assert len(manager) == 0


async def test_shutdown_closes_all_sessions(manager):
    async with manager.run():
        sessions = [manager.resolve(await manager.create_session(initialize_request(i))) for i in range(3)]

    assert len(manager) == 0
    assert all(session.is_closed for session in sessions)


async def test_run_is_not_reentrant(manager):
    async with manager.run():
        with pytest.raises(RuntimeError):
            async with manager.run():
                pass


async def test_closed_ids_are_never_reissued(manager, monkeypatch):
    generated = iter([UUID(int=1), UUID(int=1), UUID(int=2)])
    monkeypatch.setattr("flights_ui.mcp.sessions.uuid4", lambda: next(generated))

    async with manager.run():
        first = await manager.create_session(initialize_request())
        await manager.close(first)
        second = await manager.create_session(initialize_request())

    assert first == UUID(int=1).hex
    assert second == UUID(int=2).hex


class RecordInput(BaseModel):
    message: str


@pytest.fixture
def recorded():
    return []


@pytest.fixture
def recording_manager(recorded):
    def record(params):
        recorded.append(params.message)
        return ResponseEnvelope(content=[TextItem(params.message)])

    def registry_factory():
        registry = ToolRegistry()
        registry.register(ToolDescriptor(
            name="record",
            title="Record",
            description="Record the message",
            handler=record,
            input_model=RecordInput,
        ))
        return registry

    return SessionManager(registry_factory=registry_factory, server_factory=create_mcp_server)


def call_request(message):
    return types.CallToolRequest(
        method="tools/call",
        params=types.CallToolRequestParams(name="record", arguments={"message": message}),
    )


async def wait_for_waiters(lock, count):
    while lock.statistics().tasks_waiting < count:
        await anyio.sleep(0)


async def test_tool_calls_run_in_arrival_order(recording_manager, recorded):
    async with recording_manager.run():
        session = recording_manager.resolve(await recording_manager.create_session(initialize_request()))
        handler = create_mcp_server(session).request_handlers[types.CallToolRequest]

        async with anyio.create_task_group() as tg:
            await session.lock.acquire()
            for waiting, message in enumerate(["first", "second", "third"], start=1):
                tg.start_soon(handler, call_request(message))
                await wait_for_waiters(session.lock, waiting)
            session.lock.release()

    assert recorded == ["first", "second", "third"]


async def test_calls_waiting_on_a_closed_session_are_dropped(recording_manager, recorded, caplog):
    results = []
    async with recording_manager.run():
        session_id = await recording_manager.create_session(initialize_request())
        session = recording_manager.resolve(session_id)
        handler = create_mcp_server(session).request_handlers[types.CallToolRequest]

        async def call(message):
            results.append(await handler(call_request(message)))

        with caplog.at_level(logging.WARNING, logger="flights_ui.mcp.server"):
            async with anyio.create_task_group() as tg:
                await session.lock.acquire()
                tg.start_soon(call, "late")
                await wait_for_waiters(session.lock, 1)
                await recording_manager.close(session_id)
                session.lock.release()

    assert recorded == []
    assert f"Dropping record call for closed session {session_id}" in caplog.text
    [result] = results
    assert result.root.isError is True
