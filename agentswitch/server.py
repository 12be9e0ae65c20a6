"""HTTP + websocket consumer surface.

Exposes:
- GET  /health
- GET  /conversations, POST /conversations, GET /conversations/{id}
- GET|PUT /conversations/{id}/runtime   (per-conversation override, null clears)
- GET|PUT /runtime/default              (global default, null clears)
- GET  /conversations/{id}/stream       (websocket)

The websocket accepts ``invoke``, ``resume``, ``interrupt``, ``cancel`` and
``approval`` messages and pushes stream events plus ``approval_request``.
Closing it cancels whatever the socket was watching.
"""

from __future__ import annotations

import json
import logging

from aiohttp import WSMsgType, web

from agentswitch.approvals import ApprovalBroker
from agentswitch.coordinator import StreamCoordinator
from agentswitch.db import Conversation, ConversationRepository, parse_metadata
from agentswitch.events import (
    HITLDecision,
    InterruptArgs,
    ResumeArgs,
    StreamEvent,
    TurnInput,
    parse_runtime_kind,
)
from agentswitch.ports import ApprovalRequest
from agentswitch.selector import RuntimeSelector

log = logging.getLogger("server")


class InvalidMessage(ValueError):
    pass


class WebSocketSink:
    """Run event sink writing JSON frames to one websocket."""

    def __init__(self, ws: web.WebSocketResponse):
        self._ws = ws

    async def emit(self, conversation_id: str, event: StreamEvent) -> None:
        if self._ws.closed:
            raise ConnectionResetError("websocket is closed")
        payload = event.to_payload()
        payload["conversationId"] = conversation_id
        await self._ws.send_json(payload)


def conversation_to_json(conversation: Conversation) -> dict:
    return {
        "id": conversation.id,
        "title": conversation.title,
        "metadata": parse_metadata(conversation.metadata),
        "workingDirectory": conversation.working_directory,
        "createdAt": conversation.created_at,
        "updatedAt": conversation.updated_at,
    }


def parse_client_message(conversation_id: str, raw: str) -> tuple[str, object]:
    """Decode one websocket frame into ``(type, request-or-args)``."""
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as e:
        raise InvalidMessage(f"Invalid JSON: {e}") from None
    if not isinstance(data, dict):
        raise InvalidMessage("Message must be a JSON object")

    kind = data.get("type")
    working_directory = str(data.get("workingDirectory") or "")

    if kind == "invoke":
        message = data.get("message")
        if not isinstance(message, str) or not message.strip():
            raise InvalidMessage("invoke requires a non-empty message")
        model_id = data.get("modelId")
        return kind, TurnInput(
            conversation_id=conversation_id,
            message=message,
            working_directory=working_directory,
            model_id=model_id if isinstance(model_id, str) and model_id else None,
        )

    if kind == "resume":
        return kind, ResumeArgs(
            conversation_id=conversation_id,
            working_directory=working_directory,
            command=data.get("command"),
        )

    if kind == "interrupt":
        try:
            decision = HITLDecision.from_payload(data.get("decision"))
        except ValueError as e:
            raise InvalidMessage(str(e)) from None
        return kind, InterruptArgs(
            conversation_id=conversation_id,
            working_directory=working_directory,
            decision=decision,
        )

    if kind == "cancel":
        return kind, None

    if kind == "approval":
        request_id = data.get("requestId")
        if not isinstance(request_id, str) or not request_id:
            raise InvalidMessage("approval requires requestId")
        return kind, (request_id, bool(data.get("allow")))

    raise InvalidMessage(f"Unknown message type: {kind!r}")


class AgentSwitchServer:
    def __init__(
        self,
        *,
        conversations: ConversationRepository,
        selector: RuntimeSelector,
        coordinator: StreamCoordinator,
        approvals: ApprovalBroker,
        default_working_dir: str | None = None,
    ):
        self.conversations = conversations
        self.selector = selector
        self.coordinator = coordinator
        self.approvals = approvals
        self.default_working_dir = default_working_dir

    def build_app(self) -> web.Application:
        app = web.Application()
        app.router.add_get("/health", self.handle_health)
        app.router.add_get("/conversations", self.handle_list_conversations)
        app.router.add_post("/conversations", self.handle_create_conversation)
        app.router.add_get("/conversations/{id}", self.handle_get_conversation)
        app.router.add_get("/conversations/{id}/runtime", self.handle_get_runtime)
        app.router.add_put("/conversations/{id}/runtime", self.handle_set_runtime)
        app.router.add_get("/conversations/{id}/stream", self.handle_stream)
        app.router.add_get("/runtime/default", self.handle_get_default)
        app.router.add_put("/runtime/default", self.handle_set_default)
        app.on_shutdown.append(self._on_shutdown)
        return app

    async def _on_shutdown(self, app: web.Application) -> None:
        await self.coordinator.shutdown()

    def _require_conversation(self, request: web.Request) -> Conversation:
        conversation = self.conversations.get(request.match_info["id"])
        if not conversation:
            raise web.HTTPNotFound(
                text=json.dumps({"error": "Conversation not found"}),
                content_type="application/json",
            )
        return conversation

    async def _read_json(self, request: web.Request) -> dict:
        if not request.can_read_body:
            return {}
        try:
            data = await request.json()
        except json.JSONDecodeError:
            raise web.HTTPBadRequest(
                text=json.dumps({"error": "Invalid JSON body"}),
                content_type="application/json",
            ) from None
        if not isinstance(data, dict):
            raise web.HTTPBadRequest(
                text=json.dumps({"error": "Body must be a JSON object"}),
                content_type="application/json",
            )
        return data

    def _parse_runtime_body(self, data: dict):
        if "runtime" not in data:
            raise web.HTTPBadRequest(
                text=json.dumps({"error": "Missing runtime"}),
                content_type="application/json",
            )
        value = data["runtime"]
        if value is None:
            return None
        kind = parse_runtime_kind(value)
        if kind is None:
            raise web.HTTPBadRequest(
                text=json.dumps({"error": f"Unknown runtime: {value}"}),
                content_type="application/json",
            )
        return kind

    # -----------------
    # REST
    # -----------------

    async def handle_health(self, request: web.Request) -> web.Response:
        return web.json_response({"status": "ok"})

    async def handle_list_conversations(self, request: web.Request) -> web.Response:
        return web.json_response(
            [conversation_to_json(c) for c in self.conversations.list_recent()]
        )

    async def handle_create_conversation(self, request: web.Request) -> web.Response:
        data = await self._read_json(request)
        title = data.get("title")
        working_directory = data.get("workingDirectory") or self.default_working_dir
        conversation = self.conversations.create(
            title=title if isinstance(title, str) else None,
            working_directory=working_directory if isinstance(working_directory, str) else None,
        )
        log.info(f"Created conversation {conversation.id}")
        return web.json_response(conversation_to_json(conversation), status=201)

    async def handle_get_conversation(self, request: web.Request) -> web.Response:
        conversation = self._require_conversation(request)
        body = conversation_to_json(conversation)
        body["running"] = self.coordinator.is_running(conversation.id)
        return web.json_response(body)

    async def handle_get_runtime(self, request: web.Request) -> web.Response:
        conversation = self._require_conversation(request)
        override = self.selector.get_override(conversation.id)
        return web.json_response(
            {
                "runtime": override.value if override else None,
                "effective": self.selector.resolve(conversation.id).value,
            }
        )

    async def handle_set_runtime(self, request: web.Request) -> web.Response:
        conversation = self._require_conversation(request)
        kind = self._parse_runtime_body(await self._read_json(request))
        self.selector.set_override(conversation.id, kind)
        log.info(
            f"Runtime override for {conversation.id}: {kind.value if kind else 'cleared'}"
        )
        return web.json_response(
            {
                "runtime": kind.value if kind else None,
                "effective": self.selector.resolve(conversation.id).value,
            }
        )

    async def handle_get_default(self, request: web.Request) -> web.Response:
        kind = self.selector.get_default()
        return web.json_response({"runtime": kind.value if kind else None})

    async def handle_set_default(self, request: web.Request) -> web.Response:
        kind = self._parse_runtime_body(await self._read_json(request))
        self.selector.set_default(kind)
        log.info(f"Default runtime: {kind.value if kind else 'cleared'}")
        return web.json_response({"runtime": kind.value if kind else None})

    # -----------------
    # Websocket
    # -----------------

    async def handle_stream(self, request: web.Request) -> web.WebSocketResponse:
        conversation = self._require_conversation(request)
        conversation_id = conversation.id

        ws = web.WebSocketResponse(heartbeat=30)
        await ws.prepare(request)
        sink = WebSocketSink(ws)

        async def notify(approval: ApprovalRequest) -> None:
            payload = approval.to_payload()
            payload["conversationId"] = conversation_id
            await ws.send_json(payload)

        self.approvals.attach(conversation_id, notify)
        log.info(f"Consumer attached to {conversation_id}")
        try:
            async for msg in ws:
                if msg.type == WSMsgType.TEXT:
                    await self._handle_client_message(conversation_id, msg.data, ws, sink)
                elif msg.type == WSMsgType.ERROR:
                    log.warning(f"Websocket error for {conversation_id}: {ws.exception()}")
        finally:
            self.coordinator.close_surface(sink)
            self.approvals.detach(conversation_id, notify)
            log.info(f"Consumer detached from {conversation_id}")
        return ws

    async def _handle_client_message(
        self,
        conversation_id: str,
        raw: str,
        ws: web.WebSocketResponse,
        sink: WebSocketSink,
    ) -> None:
        try:
            kind, value = parse_client_message(conversation_id, raw)
        except InvalidMessage as e:
            log.warning(f"Rejected message for {conversation_id}: {e}")
            await ws.send_json({"type": "invalid_message", "error": str(e)})
            return

        if kind == "cancel":
            self.coordinator.cancel(conversation_id)
            self.approvals.cancel_conversation(conversation_id)
            return

        if kind == "approval":
            request_id, allow = value
            if not self.approvals.answer(request_id, allow):
                log.info(f"Approval {request_id} is no longer pending")
            return

        # A new submission supersedes the current run, including any
        # approval it was waiting on.
        self.approvals.cancel_conversation(conversation_id)
        self.coordinator.submit(value, sink)


async def start_server(
    server: AgentSwitchServer,
    *,
    host: str = "127.0.0.1",
    port: int = 7788,
) -> tuple[web.AppRunner, str, int]:
    """Start the HTTP server. Returns the runner so callers can clean up."""
    runner = web.AppRunner(server.build_app())
    await runner.setup()
    site = web.TCPSite(runner, host=host, port=port)
    await site.start()
    return runner, host, port
