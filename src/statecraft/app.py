from __future__ import annotations

from typing import Any

import structlog

from statecraft.config import Settings, get_settings
from statecraft.scope import Scope
from statecraft.state.factory import create_backend

logger = structlog.get_logger()


def open_scope(name: str, settings: Settings | None = None, **overrides: Any) -> Scope:
    """Build a root scope from settings.

    Keyword ``overrides`` take precedence over the corresponding settings and
    are passed straight to :class:`Scope`.

    Example:
        >>> async with open_scope("shop", phase="up") as app:
        ...     app.declare(bucket_provider, "assets", {"region": "eu"})
    """
    cfg = settings or get_settings()
    options: dict[str, Any] = {
        "stage": cfg.stage,
        "phase": cfg.phase,
        "password": cfg.password,
        "adopt": cfg.adopt,
        "force": cfg.force,
        "max_concurrency": cfg.max_concurrency,
        "destroy_strategy": cfg.destroy_strategy,
    }
    options.update(overrides)
    if options.get("state_store") is None:
        options["state_store"] = create_backend(cfg.state_store, cfg)

    logger.debug(
        "scope_opened",
        app=name,
        stage=options["stage"],
        phase=str(options["phase"]),
        state_store=type(options["state_store"]).__name__,
    )
    return Scope(name, **options)
