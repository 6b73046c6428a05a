"""
fluidkeys - Orchestrator context
All mutable orchestration state lives on one object that is handed to
every component call. Tests build a fresh context per case.
"""

import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Callable, List, Optional

import numpy as np

from config import Config
from palettes import PaletteTable
from position_allocator import PositionAllocator

if TYPE_CHECKING:
    from session_manager import Session


@dataclass
class OrchestratorContext:
    config: Config
    palettes: PaletteTable
    allocator: PositionAllocator
    rng: np.random.Generator
    clock: Callable[[], float] = time.monotonic
    current_session: Optional["Session"] = None
    sessions: List["Session"] = field(default_factory=list)  # creation order
    activity_clock: float = 0.0
    next_session_id: int = 1
    next_path_id: int = 1

    def new_session_id(self) -> int:
        sid = self.next_session_id
        self.next_session_id += 1
        return sid

    def new_path_id(self) -> int:
        pid = self.next_path_id
        self.next_path_id += 1
        return pid

    def touch(self, now: Optional[float] = None) -> None:
        """Record path activity on the Activity Clock."""
        self.activity_clock = self.clock() if now is None else now


def create_context(config: Optional[Config] = None, *,
                   palettes: Optional[PaletteTable] = None,
                   clock: Callable[[], float] = time.monotonic,
                   seed: Optional[int] = None) -> OrchestratorContext:
    """Build a context with its own random stream, allocator and palettes.

    `seed` falls back to config.random_seed; None gives a fresh entropy seed."""
    config = config or Config()
    if seed is None:
        seed = config.random_seed
    rng = np.random.default_rng(seed)
    if palettes is None:
        palettes = PaletteTable.from_file(config.palette.palette_file or None)
    # Start points draw from their own child stream
    allocator = PositionAllocator(config.position, rng=np.random.default_rng(rng.integers(0, 2**63 - 1)))
    context = OrchestratorContext(
        config=config,
        palettes=palettes,
        allocator=allocator,
        rng=rng,
        clock=clock,
    )
    context.activity_clock = clock()
    return context
