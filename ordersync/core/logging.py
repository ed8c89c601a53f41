from __future__ import annotations

import logging

from ordersync.core.config import get_settings

_HANDLER_NAME = "ordersync"


def configure_logging(level: str | None = None) -> None:
    settings = get_settings()
    root = logging.getLogger()
    root.setLevel(level or settings.log_level)

    # Reloads (uvicorn --reload, repeated CLI calls in tests) must not stack handlers.
    if any(handler.get_name() == _HANDLER_NAME for handler in root.handlers):
        return

    handler = logging.StreamHandler()
    handler.set_name(_HANDLER_NAME)
    handler.setFormatter(logging.Formatter(settings.log_format))
    root.addHandler(handler)
