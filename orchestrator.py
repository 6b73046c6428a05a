"""
fluidkeys - Orchestrator
Wires the control protocol, session manager, frame scheduler and idle
reaper onto one asyncio loop:

    control socket -> handle_message -> on_trigger / allocator.resize
    FrameScheduler.run  (every tick_ms)
    IdleReaper.run      (every check_interval_ms)
"""

import asyncio
import time
from typing import Callable, List, Optional

from config import Config
from control_protocol import KeyPress, Resize, parse_message
from errors import MalformedMessage
from frame_scheduler import FrameScheduler
from idle_reaper import IdleReaper
from logging_utils import log_event
from orchestrator_context import OrchestratorContext, create_context
from renderer_sink import RendererSink
from session_manager import Admission, on_trigger


_MAX_LINE_BYTES = 64 * 1024


class Orchestrator:
    def __init__(self, config: Config, sink: RendererSink, *,
                 context: Optional[OrchestratorContext] = None,
                 clock: Callable[[], float] = time.monotonic):
        self.config = config
        self.context = context or create_context(config, clock=clock)
        self.sink = sink
        self.scheduler = FrameScheduler(self.context, sink)
        self.reaper = IdleReaper(self.context, sink)
        self._server: Optional[asyncio.Server] = None
        self._stop_event: Optional[asyncio.Event] = None
        self._clients: set = set()

    # ------------------------------------------------------------------
    # Inbound
    # ------------------------------------------------------------------

    def handle_message(self, raw) -> Optional[Admission]:
        """Apply one inbound control message. Malformed messages are logged and ignored."""
        try:
            msg = parse_message(raw)
        except MalformedMessage as e:
            log_event("WARN", "Control", "Ignoring malformed message", reason=e.reason)
            return None

        if isinstance(msg, KeyPress):
            return on_trigger(self.context, msg.key, ghost=msg.ghost)
        if isinstance(msg, Resize):
            self.context.allocator.resize(msg.width, msg.height)
        return None

    async def _handle_client(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
        peer = writer.get_extra_info("peername")
        log_event("INFO", "Control", "Client connected", peer=peer)
        self._clients.add(writer)
        try:
            while True:
                try:
                    line = await reader.readline()
                except ValueError:
                    # Line longer than the stream limit; the reader drops it
                    log_event("WARN", "Control", "Ignoring oversized message", peer=peer)
                    continue
                if not line:
                    break
                if line.strip():
                    self.handle_message(line)
        except ConnectionError as e:
            log_event("WARN", "Control", "Client connection lost", peer=peer, error=e)
        finally:
            self._clients.discard(writer)
            writer.close()
            log_event("INFO", "Control", "Client disconnected", peer=peer)

    async def start_control_server(self) -> None:
        cfg = self.config.control
        self._server = await asyncio.start_server(
            self._handle_client, cfg.host, cfg.port, limit=_MAX_LINE_BYTES)
        log_event("INFO", "Control", "Listening", host=cfg.host, port=cfg.port)

    # ------------------------------------------------------------------
    # Run loop
    # ------------------------------------------------------------------

    async def run(self, stop_event: Optional[asyncio.Event] = None, *,
                  serve_control: bool = True) -> None:
        """Run until `stop_event` is set (or stop() is called)."""
        self._stop_event = stop_event or asyncio.Event()
        stop = self._stop_event

        if serve_control:
            await self.start_control_server()

        tasks: List[asyncio.Task] = [asyncio.create_task(self.scheduler.run(stop))]
        if self.config.idle.enabled:
            tasks.append(asyncio.create_task(self.reaper.run(stop)))

        try:
            await stop.wait()
        finally:
            stop.set()
            await asyncio.gather(*tasks, return_exceptions=True)
            if self._server is not None:
                self._server.close()
                for writer in list(self._clients):
                    writer.close()
                await self._server.wait_closed()
                self._server = None
            log_event("INFO", "Orchestrator", "Stopped",
                      sessions=len(self.context.sessions), ticks=self.scheduler.tick_count)

    def stop(self) -> None:
        if self._stop_event is not None:
            self._stop_event.set()
