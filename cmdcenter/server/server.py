"""HTTP + SSE bridge for an out-of-process host.

The host reports terminal creation/destruction over REST and receives
display-state updates over Server-Sent Events.

Usage:
    cmdcenter --server [--port PORT]

Routes:
    GET    /health                   liveness + counts
    GET    /terminals                registered terminals with state
    POST   /terminals                {"terminal_id", "cwd"}
    DELETE /terminals/{terminal_id}  idempotent
    GET    /events                   SSE: terminal_state, terminal_registered, ...
"""
from __future__ import annotations

import asyncio
import json
import logging
import os
import sys
import time
import uuid
from typing import Any

from aiohttp import web

from cmdcenter.adapters.bridge import SessionBridge
from cmdcenter.adapters.events import event_to_dict
from cmdcenter.engine.config import WatcherConfig

logger = logging.getLogger(__name__)

SSE_QUEUE_SIZE = 1000
SSE_KEEPALIVE_SECONDS = 30.0


class CommandCenterServer:
    """aiohttp application around a SessionBridge.

    Thin adapter: all correlation state lives in the bridge's watcher.
    This class only handles HTTP routing and SSE fan-out.
    """

    def __init__(
        self,
        config: WatcherConfig | None = None,
        host: str | None = None,
        port: int | None = None,
        bridge: SessionBridge | None = None,
    ) -> None:
        self.config = config or WatcherConfig()
        self._host = host or self.config.server_host
        self._port = self.config.server_port if port is None else port
        self.bridge = bridge or SessionBridge(self.config)
        self._sse_queues: list[asyncio.Queue[dict[str, Any]]] = []
        self._started_at = time.time()
        self._pump_task: asyncio.Task | None = None
        self._app = web.Application(middlewares=[self._request_logging_middleware])
        self._setup_routes()
        logger.info(
            "CommandCenterServer init host=%s port=%s state_file=%s pid=%s",
            self._host, self._port, self.config.state_file_path, os.getpid(),
        )

    @property
    def app(self) -> web.Application:
        return self._app

    # ── Middleware ──

    @web.middleware
    async def _request_logging_middleware(self, request: web.Request, handler) -> web.StreamResponse:
        req_id = request.headers.get("x-cmdcenter-request-id", str(uuid.uuid4())[:8])
        request["req_id"] = req_id
        start = time.monotonic()
        try:
            response = await handler(request)
        except Exception:
            elapsed_ms = (time.monotonic() - start) * 1000
            logger.exception(
                "HTTP %s %s req=%s failed duration_ms=%.1f",
                request.method, request.path_qs, req_id, elapsed_ms,
            )
            raise
        elapsed_ms = (time.monotonic() - start) * 1000
        logger.debug(
            "HTTP %s %s req=%s status=%s duration_ms=%.1f",
            request.method, request.path_qs, req_id,
            getattr(response, "status", "?"), elapsed_ms,
        )
        return response

    # ── Route setup ──

    def _setup_routes(self) -> None:
        r = self._app.router
        r.add_get("/health", self._handle_health)
        r.add_get("/terminals", self._handle_list_terminals)
        r.add_post("/terminals", self._handle_register_terminal)
        r.add_delete("/terminals/{terminal_id}", self._handle_unregister_terminal)
        r.add_get("/events", self._handle_sse)

    # ── Lifecycle ──

    async def _pump_events(self) -> None:
        """Fan bus events out to every connected SSE client."""
        async for event in self.bridge.bus.consume():
            data = event_to_dict(event)
            self._broadcast_sse(data.pop("event"), data)

    async def start(self) -> None:
        """Start the server, print the port to stdout, run until cancelled."""
        runner = web.AppRunner(self._app)
        await runner.setup()
        site = web.TCPSite(runner, self._host, self._port)
        await site.start()

        actual_port = self._resolve_port(site, runner)
        if actual_port is None:
            raise RuntimeError("Server started but no listening socket was reported.")
        self._port = actual_port
        sys.stdout.write(json.dumps({"port": actual_port}) + "\n")
        sys.stdout.flush()
        logger.info("Command center listening on %s:%d", self._host, actual_port)

        await self.bridge.start()
        self._pump_task = asyncio.create_task(self._pump_events())
        try:
            await asyncio.Event().wait()
        except (KeyboardInterrupt, asyncio.CancelledError):
            logger.info("Server shutting down")
        finally:
            await self.bridge.shutdown()
            if self._pump_task:
                self._pump_task.cancel()
            await runner.cleanup()

    @staticmethod
    def _resolve_port(site, runner) -> int | None:
        sockets = getattr(getattr(site, "_server", None), "sockets", None) or ()
        if sockets:
            return sockets[0].getsockname()[1]
        addresses = getattr(runner, "addresses", None) or ()
        if addresses:
            first = addresses[0]
            if isinstance(first, tuple) and len(first) >= 2:
                return int(first[1])
        return None

    # ── SSE fan-out ──

    def _broadcast_sse(self, event_type: str, data: dict[str, Any]) -> None:
        msg = {"event": event_type, "data": data}
        for queue in self._sse_queues:
            try:
                queue.put_nowait(msg)
            except asyncio.QueueFull:
                logger.warning("SSE queue full, dropping %s", event_type)

    # ── HTTP handlers ──

    async def _handle_health(self, request: web.Request) -> web.Response:
        registry = self.bridge.watcher.registry
        return web.json_response({
            "status": "ok",
            "pid": os.getpid(),
            "uptime_seconds": round(max(0.0, time.time() - self._started_at), 3),
            "state_file": str(self.config.state_file_path),
            "watcher": self.bridge.watcher_status,
            "terminals": len(self.bridge.terminal_ids),
            "pending": len(registry.pending_entries()),
            "bound": len(registry.bound_entries()),
            "sse_clients": len(self._sse_queues),
        })

    async def _handle_list_terminals(self, request: web.Request) -> web.Response:
        return web.json_response({
            "terminals": [view.to_dict() for view in self.bridge.snapshot()],
        })

    async def _handle_register_terminal(self, request: web.Request) -> web.Response:
        try:
            body = await request.json() if request.can_read_body else {}
        except json.JSONDecodeError:
            return web.json_response({"error": "body must be JSON"}, status=400)
        if not isinstance(body, dict):
            return web.json_response({"error": "body must be an object"}, status=400)
        terminal_id = body.get("terminal_id")
        cwd = body.get("cwd")
        if not isinstance(terminal_id, str) or not terminal_id:
            return web.json_response({"error": "terminal_id is required"}, status=400)
        if not isinstance(cwd, str) or not cwd:
            return web.json_response({"error": "cwd is required"}, status=400)
        self.bridge.register_terminal(terminal_id, cwd)
        return web.json_response(
            {"ok": True, "terminal_id": terminal_id}, status=201,
        )

    async def _handle_unregister_terminal(self, request: web.Request) -> web.Response:
        terminal_id = request.match_info["terminal_id"]
        known = self.bridge.unregister_terminal(terminal_id)
        return web.json_response({"ok": True, "known": known})

    async def _handle_sse(self, request: web.Request) -> web.StreamResponse:
        response = web.StreamResponse(
            status=200,
            headers={
                "Content-Type": "text/event-stream",
                "Cache-Control": "no-cache",
                "Connection": "keep-alive",
                "Access-Control-Allow-Origin": "*",
            },
        )
        await response.prepare(request)

        queue: asyncio.Queue[dict[str, Any]] = asyncio.Queue(maxsize=SSE_QUEUE_SIZE)
        self._sse_queues.append(queue)
        logger.info(
            "SSE client connected req=%s active_clients=%d",
            request.get("req_id", "unknown"), len(self._sse_queues),
        )
        try:
            snapshot = [view.to_dict() for view in self.bridge.snapshot()]
            await response.write(
                f"event: connected\ndata: {json.dumps({'terminals': snapshot})}\n\n".encode()
            )
            while True:
                try:
                    msg = await asyncio.wait_for(queue.get(), timeout=SSE_KEEPALIVE_SECONDS)
                    data = json.dumps(msg["data"])
                    await response.write(f"event: {msg['event']}\ndata: {data}\n\n".encode())
                except asyncio.TimeoutError:
                    await response.write(b": keepalive\n\n")
                except ConnectionResetError:
                    break
        except asyncio.CancelledError:
            pass
        finally:
            self._sse_queues.remove(queue)
            logger.info(
                "SSE client disconnected req=%s active_clients=%d",
                request.get("req_id", "unknown"), len(self._sse_queues),
            )
        return response
