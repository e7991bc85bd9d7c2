"""Per-client MCP sessions.

Every session owns a streamable-HTTP transport, a low-level MCP server running
on it in the manager's task group, and its own tool registry. Sessions move
``INITIALIZING -> ACTIVE -> CLOSED`` and never leave ``CLOSED``; closed ids are
remembered so they are never issued again.
"""

from __future__ import annotations

import contextlib
import logging
from collections.abc import AsyncIterator
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, Optional, Set
from uuid import uuid4

import anyio
from anyio.abc import TaskGroup, TaskStatus
from mcp import types
from mcp.server.lowlevel import Server
from mcp.server.streamable_http import StreamableHTTPServerTransport
from mcp.server.transport_security import TransportSecuritySettings
from pydantic import ValidationError

from flights_ui.errors import ClientError, NotFoundError
from flights_ui.tool_registry import ToolRegistry

logger = logging.getLogger(__name__)


class SessionState(str, Enum):
    INITIALIZING = "initializing"
    ACTIVE = "active"
    CLOSED = "closed"


class InvalidHandshakeError(ClientError):
    pass


class SessionNotFoundError(NotFoundError):
    pass


@dataclass(eq=False)
class Session:
    id: str
    registry: Optional[ToolRegistry]
    transport: Optional[StreamableHTTPServerTransport]
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    state: SessionState = SessionState.INITIALIZING
    # Tool calls take this in arrival order, so a session's invocations never interleave.
    lock: anyio.Lock = field(default_factory=anyio.Lock)

    @property
    def is_active(self) -> bool:
        return self.state is SessionState.ACTIVE

    @property
    def is_closed(self) -> bool:
        return self.state is SessionState.CLOSED


def is_initialize_request(message: Any) -> bool:
    return isinstance(message, dict) and message.get("method") == "initialize" and "id" in message


class SessionManager:
    """Creates, resolves and closes sessions; the only writer of the session map.

    Use ``run()`` in the application lifespan; sessions can only be created
    while it is active and all of them are closed when it exits.
    """

    def __init__(
            self,
            registry_factory: Callable[[], ToolRegistry],
            server_factory: Callable[[Session], Server],
            json_response: bool = True,
            security_settings: Optional[TransportSecuritySettings] = None,
    ):
        self._registry_factory = registry_factory
        self._server_factory = server_factory
        self._json_response = json_response
        self._security_settings = security_settings
        self._sessions: Dict[str, Session] = {}
        # Every id handed out by this manager, closed ones included; one entry per session ever created.
        self._issued_ids: Set[str] = set()
        self._task_group: Optional[TaskGroup] = None

    def __len__(self) -> int:
        return len(self._sessions)

    @contextlib.asynccontextmanager
    async def run(self) -> AsyncIterator[None]:
        if self._task_group is not None:
            raise RuntimeError("SessionManager.run() is already active")

        async with anyio.create_task_group() as tg:
            self._task_group = tg
            logger.info("Session manager started")
            try:
                yield
            finally:
                with anyio.CancelScope(shield=True):
                    logger.info("Session manager shutting down, closing %d session(s)", len(self._sessions))
                    for session_id in list(self._sessions):
                        await self.close(session_id)
                tg.cancel_scope.cancel()
                self._task_group = None

    async def create_session(self, init_request: Any) -> str:
        self._validate_handshake(init_request)
        if self._task_group is None:
            raise RuntimeError("Task group is not initialized. Make sure to use run().")

        session_id = self._new_session_id()
        transport = StreamableHTTPServerTransport(
            mcp_session_id=session_id,
            is_json_response_enabled=self._json_response,
            event_store=None,
            security_settings=self._security_settings,
        )
        session = Session(id=session_id, registry=self._registry_factory(), transport=transport)
        self._sessions[session_id] = session

        server = self._server_factory(session)
        await self._task_group.start(self._run_session_server, session, server)
        logger.info("Created session %s", session_id)
        return session_id

    def resolve(self, session_id: Optional[str]) -> Session:
        session = self._sessions.get(session_id) if session_id else None
        if session is None or session.is_closed:
            raise SessionNotFoundError("Session not found")
        return session

    async def close(self, session_id: str) -> bool:
        """Close a session and release its registry and transport.

        Returns ``False`` without doing anything when the session is unknown or
        already closed.
        """
        session = self._sessions.pop(session_id, None)
        if session is None:
            logger.debug("Close requested for unknown session %s", session_id)
            return False

        session.state = SessionState.CLOSED
        transport = session.transport
        session.transport = None
        session.registry = None
        if transport is not None and not transport.is_terminated:
            await transport.terminate()
        logger.info("MCP Session closed: %s", session_id)
        return True

    def on_session_initialized(self, session_id: str) -> None:
        session = self._sessions.get(session_id)
        if session is None or session.state is not SessionState.INITIALIZING:
            return
        session.state = SessionState.ACTIVE
        logger.info("MCP Session initialized: %s", session_id)

    async def on_session_closed(self, session_id: str) -> None:
        await self.close(session_id)

    def _new_session_id(self) -> str:
        while True:
            session_id = uuid4().hex
            if session_id not in self._issued_ids:
                self._issued_ids.add(session_id)
                return session_id

    @staticmethod
    def _validate_handshake(init_request: Any) -> None:
        if not is_initialize_request(init_request):
            raise InvalidHandshakeError("Expected a JSON-RPC 'initialize' request")
        try:
            request = types.JSONRPCRequest.model_validate(init_request)
            types.InitializeRequestParams.model_validate(request.params or {})
        except ValidationError as e:
            raise InvalidHandshakeError(f"Invalid initialize request: {e}") from e

    async def _run_session_server(
            self,
            session: Session,
            server: Server,
            *,
            task_status: TaskStatus[None] = anyio.TASK_STATUS_IGNORED,
    ) -> None:
        transport = session.transport
        assert transport is not None
        try:
            async with transport.connect() as (read_stream, write_stream):
                task_status.started()
                try:
                    await server.run(
                        read_stream,
                        write_stream,
                        server.create_initialization_options(),
                        stateless=False,
                    )
                except Exception:
                    logger.exception("Session %s crashed", session.id)
        finally:
            with anyio.CancelScope(shield=True):
                await self.on_session_closed(session.id)
