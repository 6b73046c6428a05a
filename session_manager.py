"""
fluidkeys - Session Manager
Groups key presses into sessions of at most `max_keys_per_session`
paths. The press after a full session ends it (its live paths keep
running) and opens a new current session seeded by that press.

All state lives on the OrchestratorContext passed in.
"""

from dataclasses import dataclass, field
from typing import Iterator, List, Optional, Tuple

from config import PATTERN_RANDOM, PatternKind
from errors import UnknownKey
from logging_utils import log_event
from orchestrator_context import OrchestratorContext
from path_generator import MotionPath, create_path


@dataclass
class Session:
    """A bounded group of concurrently animating paths."""
    id: int
    created_at: float
    max_paths: int = 7
    paths: List[MotionPath] = field(default_factory=list)  # live paths, admission order
    added_count: int = 0        # paths ever admitted
    is_active: bool = True
    should_end: bool = False

    @property
    def admissions_closed(self) -> bool:
        return self.should_end or self.added_count >= self.max_paths

    @property
    def can_admit(self) -> bool:
        return self.is_active and not self.admissions_closed


@dataclass(frozen=True)
class Admission:
    session: Session
    path: MotionPath
    opened_session: bool = False


def _open_session(context: OrchestratorContext) -> Session:
    session = Session(
        id=context.new_session_id(),
        created_at=context.clock(),
        max_paths=context.config.session.max_keys_per_session,
    )
    context.sessions.append(session)
    context.current_session = session
    log_event("INFO", "SessionManager", "Session opened", session=session.id)
    return session


def _pattern_kind(context: OrchestratorContext) -> Optional[PatternKind]:
    kind = context.config.session.pattern_kind
    if not kind or kind == PATTERN_RANDOM:
        return None
    return PatternKind(kind)


def on_trigger(context: OrchestratorContext, key_id: str, *, ghost: bool = False) -> Optional[Admission]:
    """Admit one key press. Returns None (rejected) for keys without a palette."""
    try:
        palette = context.palettes.get(key_id)
    except UnknownKey as exc:
        log_event("WARN", "SessionManager", "Unknown key, trigger skipped", key=exc.key_id)
        return None

    session = context.current_session
    opened = False
    if session is None or not session.is_active:
        session = _open_session(context)
        opened = True
    elif not session.can_admit:
        session.should_end = True
        log_event("INFO", "SessionManager", "Session closed, opening next",
                  session=session.id, live=len(session.paths))
        session = _open_session(context)
        opened = True

    start = context.allocator.allocate()
    path = create_path(
        key_id, palette, start, context.config.path, context.rng,
        path_id=context.new_path_id(),
        kind=_pattern_kind(context),
    )
    path.session_id = session.id
    session.paths.append(path)
    session.added_count += 1

    log_event("INFO", "SessionManager", "Ghost key admitted" if ghost else "Key admitted",
              key=key_id, session=session.id, path=path.id, pattern=path.kind.value,
              slot=f"{session.added_count}/{session.max_paths}")
    return Admission(session=session, path=path, opened_session=opened)


def end_current_session(context: OrchestratorContext) -> Optional[Session]:
    """Block further admissions to the current session. Live paths finish normally."""
    session = context.current_session
    if session is None:
        return None
    session.should_end = True
    log_event("INFO", "SessionManager", "Session ended early", session=session.id)
    return session


def reap(context: OrchestratorContext, now: Optional[float] = None) -> List[Session]:
    """Drop finished paths and retire sessions that are empty and closed."""
    retired: List[Session] = []
    for session in list(context.sessions):
        session.paths[:] = [p for p in session.paths if not p.finished]
        if session.paths or not session.admissions_closed:
            continue
        session.is_active = False
        context.sessions.remove(session)
        if context.current_session is session:
            context.current_session = None
        context.touch(now)
        retired.append(session)
        log_event("INFO", "SessionManager", "Session finished",
                  session=session.id, paths=session.added_count)
    return retired


def iter_live_paths(context: OrchestratorContext) -> Iterator[Tuple[Session, MotionPath]]:
    """Live paths in session creation order, then admission order."""
    for session in list(context.sessions):
        for path in list(session.paths):
            yield session, path


def live_path_count(context: OrchestratorContext) -> int:
    return sum(len(session.paths) for session in context.sessions)
