"""
fluidkeys - Inbound control protocol
Messages arrive as JSON objects (one per line on the control socket):

    {"type": "pianoKeyPress", "key": "C4"}
    {"type": "ghostKeyPress", "key": "c4"}
    {"type": "parentResize", "width": 1280, "height": 720}
"""

import json
from dataclasses import dataclass
from typing import Union

from errors import MalformedMessage
from palettes import normalize_key


MSG_KEY_PRESS = "pianoKeyPress"
MSG_GHOST_KEY_PRESS = "ghostKeyPress"
MSG_RESIZE = "parentResize"


@dataclass(frozen=True)
class KeyPress:
    key: str
    ghost: bool = False


@dataclass(frozen=True)
class Resize:
    width: float
    height: float


ControlMessage = Union[KeyPress, Resize]


def _number(data: dict, name: str) -> float:
    value = data.get(name)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise MalformedMessage(f"'{name}' must be a number", data)
    if value <= 0:
        raise MalformedMessage(f"'{name}' must be positive", data)
    return float(value)


def parse_message(raw) -> ControlMessage:
    """Decode one inbound message (JSON text/bytes or dict).

    Raises MalformedMessage for bad JSON, unknown types or missing fields."""
    if isinstance(raw, (bytes, bytearray)):
        try:
            raw = raw.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise MalformedMessage("not utf-8", raw) from exc
    if isinstance(raw, str):
        try:
            data = json.loads(raw)
        except ValueError as exc:
            raise MalformedMessage("invalid JSON", raw) from exc
    else:
        data = raw

    if not isinstance(data, dict):
        raise MalformedMessage("message must be an object", raw)

    msg_type = data.get("type")
    if msg_type in (MSG_KEY_PRESS, MSG_GHOST_KEY_PRESS):
        key = data.get("key")
        if not isinstance(key, str) or not key.strip():
            raise MalformedMessage("'key' must be a non-empty string", data)
        return KeyPress(key=normalize_key(key), ghost=msg_type == MSG_GHOST_KEY_PRESS)
    if msg_type == MSG_RESIZE:
        return Resize(width=_number(data, "width"), height=_number(data, "height"))
    raise MalformedMessage(f"unknown message type {msg_type!r}", data)
