from __future__ import annotations

import argparse

from services.api.app.config import Settings, configure_logging
from services.api.app.db.database import Database
from services.api.app.db.init_db import init_db
from services.api.app.db.seed import seed_sample_data


def main() -> int:
    parser = argparse.ArgumentParser(description="Seed sample Grub restaurants and menus")
    parser.add_argument(
        "--database-url",
        default=None,
        help="Overrides DATABASE_URL for this run",
    )
    args = parser.parse_args()

    settings = Settings.from_env()
    configure_logging(settings.log_level)

    database = Database(args.database_url or settings.database_url)
    try:
        init_db(database, auto_create=True)

        db = database.session()
        try:
            created = seed_sample_data(db)
        finally:
            db.close()
    finally:
        database.dispose()

    print(
        f"Seeded users={created['users']} restaurants={created['restaurants']} "
        f"menu_items={created['menu_items']}"
    )
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
