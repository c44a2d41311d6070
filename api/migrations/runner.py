# migrations/runner.py
"""
Alembic upgrades driven from Python, for callers that already hold an Engine
(deploy hooks, tests). Same result as `alembic upgrade head` from the repo root:

    python migrations/runner.py
"""
import logging
import os
import sys
from typing import Optional

from alembic import command
from alembic.config import Config
from alembic.runtime.migration import MigrationContext
from alembic.script import ScriptDirectory
from sqlalchemy.engine import Engine

if __name__ == "__main__":
    API_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
    if API_ROOT not in sys.path:
        sys.path.insert(0, API_ROOT)

logger = logging.getLogger(__name__)

MIGRATIONS_DIR = os.path.dirname(os.path.abspath(__file__))


def alembic_config() -> Config:
    cfg = Config()
    cfg.set_main_option("script_location", MIGRATIONS_DIR)
    return cfg


def head_revision() -> Optional[str]:
    return ScriptDirectory.from_config(alembic_config()).get_current_head()


def current_revision(engine: Engine) -> Optional[str]:
    with engine.connect() as conn:
        return MigrationContext.configure(conn).get_current_revision()


def run_migrations(engine: Engine, revision: str = "head") -> Optional[str]:
    """Upgrades `engine` to `revision` in one transaction. Returns the revision reached."""
    cfg = alembic_config()
    with engine.begin() as conn:
        cfg.attributes["connection"] = conn
        command.upgrade(cfg, revision)

    reached = current_revision(engine)
    logger.info("Schema at revision %s", reached)
    return reached


def downgrade(engine: Engine, revision: str) -> Optional[str]:
    cfg = alembic_config()
    with engine.begin() as conn:
        cfg.attributes["connection"] = conn
        command.downgrade(cfg, revision)
    return current_revision(engine)


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    from db import engine

    run_migrations(engine)
