"""Grub order API service entrypoint."""

import logging

from fastapi import FastAPI

from services.api.app.config import Settings, configure_logging
from services.api.app.db.database import Database
from services.api.app.db.init_db import init_db
from services.api.app.routers.order import router as order_router
from services.api.app.services.order_service import OrderService
from services.api.app.services.order_store import SqlCatalog, SqlOrderStore

logger = logging.getLogger(__name__)

app = FastAPI(title="Grub API")

app.include_router(order_router)


@app.on_event("startup")
def _startup() -> None:
    settings = Settings.from_env()
    configure_logging(settings.log_level)

    database = Database(settings.database_url)
    init_db(database, auto_create=settings.db_auto_create)

    app.state.settings = settings
    app.state.database = database
    app.state.order_service = OrderService.from_settings(
        settings, SqlOrderStore(database), SqlCatalog(database)
    )
    logger.info("grub api started database=%s", database.engine.url.render_as_string())


@app.on_event("shutdown")
def _shutdown() -> None:
    database = getattr(app.state, "database", None)
    if database is not None:
        database.dispose()


@app.get("/health")
def health() -> dict:
    return {"status": "ok"}
