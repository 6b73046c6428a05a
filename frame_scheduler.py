"""
fluidkeys - Frame Scheduler
Fixed-rate driver. Once per tick every live path (session creation
order, then admission order) advances one frame and its position and
interpolated color go out to the renderer sink:

    first frame        -> begin(x, y, color)
    following frames   -> continue(x, y, color)
    frame == total     -> continue(...) then end(), path removed

Before a path's first motion its start color is sent a few times and
motion waits `prime_delay_ms`, so the renderer picks up the new color
before the pointer goes down.
"""

import asyncio
from typing import Optional

from config import SchedulerConfig
from logging_utils import log_event
from orchestrator_context import OrchestratorContext
from path_generator import MotionPath, color_at, position_at
from renderer_sink import RendererSink
from session_manager import iter_live_paths, reap


class FrameScheduler:
    """Advances all live paths; tick() is the deterministic entry point."""

    def __init__(self, context: OrchestratorContext, sink: RendererSink,
                 config: Optional[SchedulerConfig] = None):
        self.context = context
        self.sink = sink
        self.config = config or context.config.scheduler
        self.tick_count = 0

    @property
    def period(self) -> float:
        return self.config.tick_ms / 1000.0

    # ------------------------------------------------------------------
    # Per-path stepping
    # ------------------------------------------------------------------

    def _prime(self, path: MotionPath, now: float) -> None:
        start_color = color_at(path.palette, 0, path.total_frames)
        for _ in range(self.config.prime_color_repeats):
            self.sink.set_color(start_color)
        path.primed_at = now

    def _waiting_on_prime(self, path: MotionPath, now: float) -> bool:
        delay = self.config.prime_delay_ms / 1000.0
        # float tolerance on the tick boundary
        return (now - path.primed_at) + 1e-9 < delay

    def _step(self, path: MotionPath, now: float) -> bool:
        """Advance `path` one frame. Returns False while it is still priming."""
        if path.primed_at is None:
            self._prime(path, now)
        if self._waiting_on_prime(path, now):
            return False

        path.frame_index += 1
        frame = path.frame_index
        x, y = position_at(path, frame)
        color = color_at(path.palette, frame, path.total_frames)

        if frame == 1:
            self.sink.begin(path.id, x, y, color)
            path.begun = True
        else:
            self.sink.move(path.id, x, y, color)

        if path.finished:
            self.sink.end(path.id)
            log_event("DEBUG", "FrameScheduler", "Path complete",
                      path=path.id, session=path.session_id, frames=frame)
        return True

    def _release(self, path: MotionPath) -> None:
        """Lift the pointer of a path that is being dropped mid-stroke."""
        try:
            self.sink.end(path.id)
        except Exception as e:
            log_event("ERROR", "FrameScheduler", "Could not end dropped path",
                      path=path.id, error=e)

    # ------------------------------------------------------------------
    # Tick
    # ------------------------------------------------------------------

    def tick(self, now: Optional[float] = None) -> int:
        """Run one tick. Returns the number of paths that advanced."""
        now = self.context.clock() if now is None else now
        self.tick_count += 1
        advanced = 0
        for _session, path in iter_live_paths(self.context):
            try:
                if self._step(path, now):
                    advanced += 1
            except Exception as e:
                # Retire the broken path; the rest of the tick goes on
                log_event("ERROR", "FrameScheduler", "Path step failed, dropping path",
                          path=path.id, error=e)
                path.frame_index = path.total_frames
                if path.begun:
                    self._release(path)
        if advanced:
            self.context.touch(now)
        reap(self.context, now)
        return advanced

    async def run(self, stop_event: asyncio.Event) -> None:
        """Tick every `tick_ms` on the running loop until `stop_event` is set."""
        loop = asyncio.get_running_loop()
        next_tick = loop.time()
        log_event("INFO", "FrameScheduler", "Started", tick_ms=self.config.tick_ms)
        while not stop_event.is_set():
            try:
                self.tick()
            except Exception as e:
                log_event("ERROR", "FrameScheduler", "Tick failed", error=e)
            next_tick += self.period
            delay = next_tick - loop.time()
            if delay < 0:
                # Running behind: skip the missed ticks instead of bursting
                next_tick = loop.time()
                delay = 0.0
            await asyncio.sleep(delay)
        log_event("INFO", "FrameScheduler", "Stopped", ticks=self.tick_count)
