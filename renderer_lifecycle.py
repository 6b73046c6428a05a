from typing import Callable, Optional

from config import ConnectionConfig
from renderer_engine import RendererEngine


async def ensure_renderer_engine(
    existing_engine: Optional[RendererEngine],
    config: ConnectionConfig,
    status_callback,
    *,
    dry_run_enabled: Optional[bool] = None,
    force_new: bool = False,
    engine_factory: Callable[[ConnectionConfig, object], RendererEngine] = RendererEngine,
) -> RendererEngine:
    """Create/start a renderer engine if needed and apply dry-run if provided."""
    engine = None if force_new else existing_engine

    if engine is None:
        engine = engine_factory(config, status_callback)
        if dry_run_enabled is not None:
            engine.set_dry_run(dry_run_enabled)
        await engine.start()
        return engine

    if dry_run_enabled is not None:
        engine.set_dry_run(dry_run_enabled)
    return engine

