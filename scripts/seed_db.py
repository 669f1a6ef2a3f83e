from __future__ import annotations

import importlib

from dotenv import load_dotenv

from pluvia_academy.config import get_settings_module
from pluvia_academy.database.bootstrap import apply_seed_sql, ensure_demo_users
from pluvia_academy.database.connection import DBConfig, describe


def main() -> None:
    load_dotenv(override=False)
    settings = importlib.import_module(get_settings_module())
    db_config = dict(settings.DB_CONFIG)

    apply_seed_sql(db_config)
    ensure_demo_users(db_config)
    print(f"OK: Seeded database -> {describe(DBConfig.from_dict(db_config))}")


if __name__ == "__main__":
    main()
