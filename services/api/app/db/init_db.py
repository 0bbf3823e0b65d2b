from __future__ import annotations

import logging

from services.api.app.db.database import Database
from services.api.app.db.models import Base

logger = logging.getLogger(__name__)


def init_db(database: Database, *, auto_create: bool = True) -> None:
    if not auto_create:
        return

    Base.metadata.create_all(bind=database.engine)
    logger.info("database schema ensured")
