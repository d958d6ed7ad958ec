from __future__ import annotations

import logging
from pathlib import Path

from alembic import command
from alembic.config import Config
from sqlalchemy import inspect

from rafflebank.db.engine import make_engine
from rafflebank.settings import configure_logging, get_settings

logger = logging.getLogger("rafflebank.scripts.init_db")

PROJECT_ROOT = Path(__file__).resolve().parents[1]


def upgrade_db(target_revision: str = "head") -> None:
    """Apply Alembic migrations up to ``target_revision``."""
    alembic_cfg = Config(str(PROJECT_ROOT / "alembic.ini"))
    alembic_cfg.set_main_option("script_location", str(PROJECT_ROOT / "alembic"))
    command.upgrade(alembic_cfg, target_revision)


def main() -> None:
    """Migrate the configured database to head and list the ledger tables."""
    settings = get_settings()
    configure_logging(settings)

    upgrade_db()
    engine = make_engine(settings.db_url)
    tables = sorted(inspect(engine).get_table_names())
    engine.dispose()
    logger.info(f"Database at {settings.db_url} has tables: {', '.join(tables)}")


if __name__ == "__main__":
    main()
