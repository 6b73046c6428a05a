"""
fluidkeys - Idle Reaper
Low-frequency check that wipes the render surface once nothing has
moved for a while. Never touches session or path state.
"""

import asyncio
from typing import Optional

from config import IdleConfig
from logging_utils import log_event
from orchestrator_context import OrchestratorContext
from renderer_sink import RendererSink
from session_manager import live_path_count


class IdleReaper:
    def __init__(self, context: OrchestratorContext, sink: RendererSink,
                 config: Optional[IdleConfig] = None):
        self.context = context
        self.sink = sink
        self.config = config or context.config.idle
        self.clear_count = 0

    def is_idle(self, now: float) -> bool:
        if live_path_count(self.context) > 0:
            return False
        idle_for = now - self.context.activity_clock
        return idle_for * 1000.0 >= self.config.idle_threshold_ms

    def check(self, now: Optional[float] = None) -> bool:
        """Issue clear() when idle. Returns True if a clear was sent."""
        now = self.context.clock() if now is None else now
        if not self.is_idle(now):
            return False
        self.sink.clear()
        self.clear_count += 1
        log_event("DEBUG", "IdleReaper", "Surface cleared",
                  idle_s=f"{now - self.context.activity_clock:.1f}")
        return True

    async def run(self, stop_event: asyncio.Event) -> None:
        interval = self.config.check_interval_ms / 1000.0
        while not stop_event.is_set():
            try:
                await asyncio.wait_for(stop_event.wait(), timeout=interval)
            except asyncio.TimeoutError:
                pass
            if stop_event.is_set():
                break
            try:
                self.check()
            except Exception as e:
                log_event("ERROR", "IdleReaper", "Idle check failed", error=e)
