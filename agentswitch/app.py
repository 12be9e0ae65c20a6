"""AgentSwitch service entry point.

Wires the sqlite store, runtime selector, runtime factory, approval broker
and stream coordinator together and serves them over HTTP/websocket.
"""

from __future__ import annotations

import asyncio
import logging

from agentswitch.approvals import ApprovalBroker
from agentswitch.config import (
    AppConfig,
    ClaudeConfig,
    CodexConfig,
    GraphConfig,
    get_app_config,
    load_env,
)
from agentswitch.coordinator import StreamCoordinator
from agentswitch.db import ConversationRepository, SettingsRepository, init_db
from agentswitch.identity import SessionIdentityStore
from agentswitch.runtimes import RuntimeFactory
from agentswitch.selector import RuntimeSelector
from agentswitch.server import AgentSwitchServer, start_server

log = logging.getLogger("agentswitch")


def build_server(cfg: AppConfig) -> AgentSwitchServer:
    conn = init_db(cfg.db_path)
    conversations = ConversationRepository(conn)
    settings = SettingsRepository(conn)

    approvals = ApprovalBroker(timeout_s=cfg.approval_timeout_s)
    runtimes = RuntimeFactory(
        identities=SessionIdentityStore(conversations),
        approvals=approvals,
        graph_config=GraphConfig(),
        claude_config=ClaudeConfig(),
        codex_config=CodexConfig(),
    )
    selector = RuntimeSelector(conversations, settings)
    coordinator = StreamCoordinator(
        conversations=conversations,
        selector=selector,
        runtimes=runtimes,
    )
    return AgentSwitchServer(
        conversations=conversations,
        selector=selector,
        coordinator=coordinator,
        approvals=approvals,
        default_working_dir=cfg.default_working_dir,
    )


async def serve() -> None:
    cfg = get_app_config()
    server = build_server(cfg)
    runner, host, port = await start_server(server, host=cfg.host, port=cfg.port)
    log.info(f"AgentSwitch listening on http://{host}:{port} (db: {cfg.db_path})")
    try:
        while True:
            await asyncio.sleep(3600)
    finally:
        await runner.cleanup()


def main() -> None:
    load_env()
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )
    try:
        asyncio.run(serve())
    except KeyboardInterrupt:
        log.info("Shutting down...")


if __name__ == "__main__":
    main()
