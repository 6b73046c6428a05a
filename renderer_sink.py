"""
fluidkeys - Renderer sink
Narrow outbound interface to the external fluid renderer. The frame
scheduler only ever talks to a RendererSink, so it stays renderer
agnostic and can be tested against RecordingSink.

Wire format: one compact JSON object per line, e.g.
    {"cmd":"begin","id":4,"x":412.5,"y":233.07,"color":[0.9812,0.2509,0.2509]}
"""

import json
from dataclasses import dataclass
from typing import List, Optional, Sequence

from logging_utils import log_event


CMD_SET_COLOR = "set_color"
CMD_BEGIN = "begin"
CMD_CONTINUE = "continue"
CMD_END = "end"
CMD_CLEAR = "clear"

COMMAND_KINDS = (CMD_SET_COLOR, CMD_BEGIN, CMD_CONTINUE, CMD_END, CMD_CLEAR)

# Log every Nth dropped command while the renderer is unavailable
_DROP_LOG_EVERY = 200


@dataclass
class RendererCommand:
    """One synthetic pointer-style command for the renderer"""
    kind: str
    pointer_id: Optional[int] = None
    x: Optional[float] = None
    y: Optional[float] = None
    color: Optional[tuple] = None   # 0-1 RGB

    def to_wire(self) -> str:
        """Encode as a newline-terminated JSON line."""
        payload: dict = {"cmd": self.kind}
        if self.pointer_id is not None:
            payload["id"] = self.pointer_id
        if self.x is not None and self.y is not None:
            payload["x"] = round(float(self.x), 2)
            payload["y"] = round(float(self.y), 2)
        if self.color is not None:
            payload["color"] = [round(float(c), 4) for c in self.color]
        return json.dumps(payload, separators=(",", ":")) + "\n"


def _color_tuple(color: Sequence[float]) -> tuple:
    return tuple(float(c) for c in color)


class RendererSink:
    """Base sink. Subclasses implement submit() and may override `ready`."""

    def __init__(self):
        self.dropped = 0

    @property
    def ready(self) -> bool:
        return True

    def submit(self, cmd: RendererCommand) -> None:
        raise NotImplementedError

    def _note_drop(self, cmd: RendererCommand, reason: str = "Renderer not ready, dropping commands") -> None:
        """Count a dropped command; logs the first drop and every Nth after it."""
        self.dropped += 1
        if self.dropped == 1 or self.dropped % _DROP_LOG_EVERY == 0:
            log_event("WARN", "Renderer", reason, dropped=self.dropped, cmd=cmd.kind)

    def _dispatch(self, cmd: RendererCommand) -> bool:
        if not self.ready:
            self._note_drop(cmd)
            return False
        self.submit(cmd)
        return True

    # Outbound protocol

    def set_color(self, color: Sequence[float]) -> bool:
        return self._dispatch(RendererCommand(CMD_SET_COLOR, color=_color_tuple(color)))

    def begin(self, pointer_id: int, x: float, y: float, color: Sequence[float]) -> bool:
        return self._dispatch(RendererCommand(CMD_BEGIN, pointer_id, x, y, _color_tuple(color)))

    def move(self, pointer_id: int, x: float, y: float, color: Sequence[float]) -> bool:
        """The protocol's 'continue' command."""
        return self._dispatch(RendererCommand(CMD_CONTINUE, pointer_id, x, y, _color_tuple(color)))

    def end(self, pointer_id: int) -> bool:
        return self._dispatch(RendererCommand(CMD_END, pointer_id))

    def clear(self) -> bool:
        return self._dispatch(RendererCommand(CMD_CLEAR))


class RecordingSink(RendererSink):
    """Keeps every accepted command in memory (tests, dry runs)."""

    def __init__(self, ready: bool = True):
        super().__init__()
        self.commands: List[RendererCommand] = []
        self.is_ready = ready

    @property
    def ready(self) -> bool:
        return self.is_ready

    def submit(self, cmd: RendererCommand) -> None:
        self.commands.append(cmd)

    def kinds(self) -> List[str]:
        return [cmd.kind for cmd in self.commands]

    def for_pointer(self, pointer_id: int) -> List[RendererCommand]:
        return [cmd for cmd in self.commands if cmd.pointer_id == pointer_id]

    def clear_log(self) -> None:
        self.commands.clear()
