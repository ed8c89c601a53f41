from __future__ import annotations

import logging

from fastapi import FastAPI

from ordersync.api.routes_orders import router as orders_router
from ordersync.core.config import get_settings
from ordersync.core.logging import configure_logging
from ordersync.persistence.db import init_db

configure_logging()
logger = logging.getLogger(__name__)
settings = get_settings()

app = FastAPI(title=settings.app_name)


@app.on_event("startup")
def on_startup() -> None:
    init_db()
    logger.info("order sync engine ready: env=%s zero_quantity_policy=%s", settings.env, settings.zero_quantity_policy)


@app.get("/healthz")
def healthz() -> dict:
    return {"status": "ok"}


app.include_router(orders_router)
