"""Starlette application exposing the flight tools over MCP streamable HTTP."""

import contextlib
import functools
import json
import logging
from typing import Any, Awaitable, Callable, Optional

from mcp import types
from mcp.server.lowlevel import Server
from mcp.server.streamable_http import MCP_SESSION_ID_HEADER
from starlette.applications import Starlette
from starlette.middleware.cors import CORSMiddleware
from starlette.requests import Request
from starlette.responses import HTMLResponse, JSONResponse, PlainTextResponse, Response
from starlette.routing import Route
from starlette.types import Message, Receive, Scope, Send

from flights_ui.config import Settings
from flights_ui.errors import ClientError, NotFoundError
from flights_ui.flight_tools import create_tool_registry
from flights_ui.lwc_handler import (
    DEFAULT_COMPONENT,
    FLIGHT_DETAILS_COMPONENT,
    ComponentNameError,
    ComponentNotFoundError,
    LwcHandler,
)
from flights_ui.mcp.sessions import Session, SessionManager, SessionNotFoundError, is_initialize_request
from flights_ui.rendering import ResourceRenderer

logger = logging.getLogger(__name__)

SERVER_NAME = "flights-ui-demo"
SERVER_VERSION = "1.0.0"


class MissingSessionError(ClientError):
    pass


def create_mcp_server(session: Session) -> Server:
    """Low-level MCP server answering ``tools/list`` and ``tools/call`` from the session's registry."""
    server = Server(SERVER_NAME, version=SERVER_VERSION)

    def registry():
        if session.registry is None:
            raise SessionNotFoundError("Session not found")
        return session.registry

    @server.list_tools()
    async def list_tools() -> list[types.Tool]:
        return [descriptor.to_mcp_tool() for descriptor in registry().list_tools()]

    # Inputs are validated by the registry against the tool's pydantic model.
    @server.call_tool(validate_input=False)
    async def call_tool(name: str, arguments: dict[str, Any]):
        async with session.lock:
            # Calls queued behind a close never reach the registry.
            if session.is_closed:
                logger.warning("Dropping %s call for closed session %s", name, session.id)
                return types.CallToolResult(
                    content=[types.TextContent(type="text", text="Session closed")],
                    isError=True,
                )
            envelope = registry().invoke(name, arguments)
        if envelope.structured_content is not None:
            return envelope.content_blocks(), envelope.structured_content
        return envelope.content_blocks()

    return server


def _error_response(status_code: int, message: str) -> JSONResponse:
    return JSONResponse({"error": {"message": message}}, status_code=status_code)


def _without_header(scope: Scope, name: str) -> Scope:
    header = name.lower().encode("latin-1")
    return {**scope, "headers": [(key, value) for key, value in scope["headers"] if key.lower() != header]}


def _replay_body(body: bytes, receive: Receive) -> Receive:
    """Hand an already-read request body to the transport, then fall through to the real channel."""
    replayed = False

    async def receive_replayed() -> Message:
        nonlocal replayed
        if not replayed:
            replayed = True
            return {"type": "http.request", "body": body, "more_body": False}
        return await receive()

    return receive_replayed


def _parse_json(body: bytes) -> Any:
    try:
        return json.loads(body)
    except ValueError:
        return None


class RequestDispatcher:
    """ASGI endpoint for ``/mcp`` routing each request to its session's transport.

    POST with a known active session goes straight to that session. POST
    carrying an ``initialize`` request without a live session starts a new
    one. GET (server stream) and DELETE (termination) need a known session.
    Nothing else ever creates a session.
    """

    def __init__(self, sessions: SessionManager):
        self._sessions = sessions

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        request = Request(scope, receive)
        response_started = False

        async def tracked_send(message: Message) -> None:
            nonlocal response_started
            if message["type"] == "http.response.start":
                response_started = True
            await send(message)

        try:
            if request.method == "POST":
                await self._handle_post(request, tracked_send)
            else:
                await self._handle_session_request(request, tracked_send)
            return
        except ClientError as e:
            logger.info("Rejected %s %s: %s", request.method, request.url.path, e)
            response = _error_response(400, str(e))
        except NotFoundError as e:
            logger.info("Rejected %s %s: %s", request.method, request.url.path, e)
            response = _error_response(404, str(e))
        except Exception:
            logger.exception("Unexpected error handling %s %s", request.method, request.url.path)
            response = _error_response(500, "Internal server error")

        if response_started:
            logger.warning("Response for %s %s already started; dropping error response", request.method,
                           request.url.path)
            return
        await response(scope, receive, send)

    async def _handle_post(self, request: Request, send: Send) -> None:
        session_id = request.headers.get(MCP_SESSION_ID_HEADER)
        body = await request.body()

        if session_id:
            session = self._active_session(session_id)
            if session is not None:
                await self._forward(session, request.scope, _replay_body(body, request.receive), send)
                return

        message = _parse_json(body)
        if not is_initialize_request(message):
            raise MissingSessionError("Bad Request: No valid session ID provided")

        scope = request.scope
        if session_id:
            logger.info("Initialize request carried unknown session id %s; starting a new session", session_id)
            scope = _without_header(scope, MCP_SESSION_ID_HEADER)
        await self._initialize(message, scope, _replay_body(body, request.receive), send)

    async def _initialize(self, message: Any, scope: Scope, receive: Receive, send: Send) -> None:
        session_id = await self._sessions.create_session(message)
        session = self._sessions.resolve(session_id)

        async def send_and_activate(response_message: Message) -> None:
            # Activate before the body goes out so the client's next request finds the session ready.
            if response_message["type"] == "http.response.start" and response_message["status"] == 200:
                self._sessions.on_session_initialized(session_id)
            await send(response_message)

        try:
            await self._forward(session, scope, receive, send_and_activate)
        finally:
            if not session.is_active:
                logger.warning("Handshake for session %s did not complete; closing it", session_id)
                await self._sessions.close(session_id)

    async def _handle_session_request(self, request: Request, send: Send) -> None:
        session_id = request.headers.get(MCP_SESSION_ID_HEADER)
        logger.debug("%s /mcp for session %s", request.method, session_id)
        session = self._sessions.resolve(session_id)

        await self._forward(session, request.scope, request.receive, send)
        if request.method == "DELETE":
            await self._sessions.close(session.id)

    def _active_session(self, session_id: str) -> Optional[Session]:
        try:
            session = self._sessions.resolve(session_id)
        except SessionNotFoundError:
            return None
        return session if session.is_active else None

    @staticmethod
    async def _forward(session: Session, scope: Scope, receive: Receive, send: Send) -> None:
        transport = session.transport
        if transport is None:
            raise SessionNotFoundError("Session not found")
        await transport.handle_request(scope, receive, send)


def _parse_component_data(component_name: str, value: Optional[str]) -> Any:
    if not value:
        return None
    try:
        component_data = json.loads(value)
    except ValueError as e:
        logger.error("Error parsing component data for %s: %s", component_name, e)
        return None
    logger.debug("Component data for %s: %s", component_name, component_data)
    return component_data


def component_endpoint(
        lwc_handler: LwcHandler,
        default_component: str = DEFAULT_COMPONENT,
) -> Callable[[Request], Awaitable[Response]]:
    async def render_component(request: Request) -> Response:
        component_name = request.path_params.get("component_name", default_component)
        component_data = _parse_component_data(component_name, request.query_params.get("value"))
        try:
            html = lwc_handler.generate_component_html(component_name, component_data)
        except ComponentNameError as e:
            return PlainTextResponse(str(e), status_code=400)
        except ComponentNotFoundError as e:
            logger.warning("Component %s requested but missing: %s", component_name, e)
            return PlainTextResponse(str(e), status_code=404)
        except Exception:
            logger.exception("Error serving component %s", component_name)
            return PlainTextResponse("Error loading component", status_code=500)
        return HTMLResponse(html)

    return render_component


def create_app(settings: Optional[Settings] = None) -> Starlette:
    """Create the Starlette application.

    Args:
        settings: Server settings; read from the environment when omitted

    Returns:
        Configured Starlette application whose lifespan runs the session manager
    """
    settings = settings or Settings.from_env()

    renderer = ResourceRenderer(settings.template_dir, settings.base_url, settings.external_url)
    lwc_handler = LwcHandler(settings.lwc_bundle_dir)
    if not lwc_handler.is_bundle_available(DEFAULT_COMPONENT):
        logger.warning("No bundle for %s under %s; component routes will answer 404",
                       DEFAULT_COMPONENT, settings.lwc_bundle_dir)

    sessions = SessionManager(
        registry_factory=functools.partial(create_tool_registry, renderer, lwc_handler),
        server_factory=create_mcp_server,
        json_response=settings.json_response,
    )
    render_component = component_endpoint(lwc_handler)

    @contextlib.asynccontextmanager
    async def lifespan(app: Starlette):
        async with sessions.run():
            yield

    routes = [
        Route("/mcp", endpoint=RequestDispatcher(sessions), methods=["GET", "POST", "DELETE"]),
        Route("/lwc", endpoint=render_component, methods=["GET"]),
        Route("/lwc/{component_name}", endpoint=render_component, methods=["GET"]),
        # Older clients still link here for the flight details page.
        Route(
            "/flightDetails",
            endpoint=component_endpoint(lwc_handler, FLIGHT_DETAILS_COMPONENT),
            methods=["GET"],
        ),
    ]
    app = Starlette(routes=routes, lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(settings.cors_origins),
        allow_methods=["GET", "POST", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "mcp-session-id", "mcp-protocol-version"],
        expose_headers=["Mcp-Session-Id"],
    )
    app.state.sessions = sessions
    app.state.settings = settings
    return app
