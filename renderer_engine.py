"""
fluidkeys - Renderer Engine
TCP connection to the renderer bridge. Renderer commands are queued by
the frame scheduler and written as JSON lines by a writer task on the
same asyncio loop.

While the bridge is down, commands are dropped (RendererNotReady) and the
engine keeps retrying the connection every `reconnect_delay_ms`.
"""

import asyncio
from typing import Callable, Optional

from config import ConnectionConfig
from errors import RendererNotReady
from logging_utils import log_event
from renderer_sink import RendererCommand, RendererSink


_CONNECT_TIMEOUT_S = 5.0
_QUEUE_POLL_S = 0.1
_MAX_QUEUED = 4096


class RendererEngine(RendererSink):
    """
    Outbound half of fluidkeys.
    Manages the TCP connection to the renderer bridge and sends commands.
    """

    def __init__(self, config: ConnectionConfig,
                 status_callback: Optional[Callable[[str, bool], None]] = None):
        """
        Args:
            config: Renderer connection settings
            status_callback: Called with (status_message, is_connected)
        """
        super().__init__()
        self.config = config
        self.status_callback = status_callback

        # Connection state
        self.reader: Optional[asyncio.StreamReader] = None
        self.writer: Optional[asyncio.StreamWriter] = None
        self.connected = False
        self.running = False
        self._dry_run = bool(config.dry_run)  # When True, log but do not send

        self.cmd_queue: Optional[asyncio.Queue] = None
        self.sent = 0

        self._worker_task: Optional[asyncio.Task] = None

    @property
    def ready(self) -> bool:
        return self._dry_run or self.connected

    @property
    def dry_run(self) -> bool:
        return self._dry_run

    async def start(self) -> None:
        """Start the writer task (and connect when auto_connect is set)."""
        if self.running:
            return

        self.running = True
        self.cmd_queue = asyncio.Queue(maxsize=_MAX_QUEUED)
        self._worker_task = asyncio.create_task(self._worker_loop())
        log_event("INFO", "RendererEngine", "Started", dry_run=self._dry_run)

        if self.config.auto_connect and not self._dry_run:
            await self.connect()

    async def stop(self) -> None:
        """Stop the writer task and close the connection."""
        self.running = False
        if self._worker_task is not None:
            self._worker_task.cancel()
            try:
                await self._worker_task
            except asyncio.CancelledError:
                pass
            self._worker_task = None
        await self.disconnect()

        if self.cmd_queue is not None:
            while not self.cmd_queue.empty():
                self.cmd_queue.get_nowait()

        log_event("INFO", "RendererEngine", "Stopped", sent=self.sent, dropped=self.dropped)

    async def connect(self) -> bool:
        """Connect to the renderer bridge"""
        if self.connected:
            return True

        try:
            self.reader, self.writer = await asyncio.wait_for(
                asyncio.open_connection(self.config.host, self.config.port),
                timeout=_CONNECT_TIMEOUT_S,
            )
        except (OSError, asyncio.TimeoutError) as e:
            err_str = str(e) or e.__class__.__name__
            if len(err_str) > 40:
                err_str = err_str[:40] + "..."
            self._notify_status(f"Connection failed: {err_str}", False)
            log_event("WARN", "RendererEngine", "Connection failed",
                      host=self.config.host, port=self.config.port, error=err_str)
            self.reader = self.writer = None
            self.connected = False
            return False

        self.connected = True
        self._notify_status(f"Connected to renderer at {self.config.host}:{self.config.port}", True)
        log_event("INFO", "RendererEngine", "Connected", host=self.config.host, port=self.config.port)
        return True

    async def disconnect(self) -> None:
        """Close the renderer connection"""
        writer, self.writer, self.reader = self.writer, None, None
        was_connected = self.connected
        self.connected = False
        if writer is not None:
            writer.close()
            try:
                await writer.wait_closed()
            except (OSError, ConnectionError):
                pass
        if was_connected:
            self._notify_status("Disconnected", False)
            log_event("INFO", "RendererEngine", "Disconnected")

    def set_dry_run(self, enabled: bool) -> None:
        """Enable/disable dry-run mode (log only, no network send)."""
        self._dry_run = enabled
        state = "ON" if enabled else "OFF"
        log_event("INFO", "RendererEngine", f"Dry-run {state}")

    def submit(self, cmd: RendererCommand) -> None:
        """Queue a command for the writer task"""
        if not self.running or self.cmd_queue is None:
            raise RendererNotReady("renderer engine is not running")
        try:
            self.cmd_queue.put_nowait(cmd)
        except asyncio.QueueFull:
            self._note_drop(cmd, "Renderer queue full, dropping commands")

    def _dispatch(self, cmd: RendererCommand) -> bool:
        try:
            return super()._dispatch(cmd)
        except RendererNotReady:
            self._note_drop(cmd)
            return False

    async def _worker_loop(self) -> None:
        """Writer task: keeps the connection alive and drains the queue"""
        loop = asyncio.get_running_loop()
        next_attempt = loop.time() + self.config.reconnect_delay_ms / 1000.0

        while self.running:
            if (not self.connected and not self._dry_run
                    and self.config.auto_connect
                    and loop.time() >= next_attempt):
                await self.connect()
                next_attempt = loop.time() + self.config.reconnect_delay_ms / 1000.0

            try:
                cmd = await asyncio.wait_for(self.cmd_queue.get(), timeout=_QUEUE_POLL_S)
            except asyncio.TimeoutError:
                continue

            if self.ready:
                await self._send(cmd)
            else:
                self._note_drop(cmd)

    async def _send(self, cmd: RendererCommand) -> None:
        """Write one command line to the socket"""
        line = cmd.to_wire()
        if self._dry_run:
            log_event("DEBUG", "RendererEngine", "Dry-run", line=line.strip())
            self.sent += 1
            return

        if self.writer is None:
            self._note_drop(cmd)
            return

        try:
            self.writer.write(line.encode("utf-8"))
            await self.writer.drain()
            self.sent += 1
        except (ConnectionError, OSError) as e:
            log_event("ERROR", "RendererEngine", "Send error", error=e)
            await self.disconnect()

    def _notify_status(self, message: str, connected: bool) -> None:
        """Notify status callback"""
        if self.status_callback:
            self.status_callback(message, connected)
