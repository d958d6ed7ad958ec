from typing import Optional

from sqlalchemy import Engine, create_engine, event
from sqlalchemy.orm import sessionmaker

from ..settings import get_settings


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record) -> None:
    # SQLite ships with FK enforcement off; tickets/winners rely on it
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def make_engine(database_url: Optional[str] = None, echo: Optional[bool] = None) -> Engine:
    """Create an engine for ``database_url`` (``DB_URL`` when omitted).

    ``echo`` defaults to the ``DB_ECHO`` setting.
    """
    settings = get_settings()
    url = database_url or settings.db_url
    engine = create_engine(
        url,
        echo=settings.db_echo if echo is None else echo,
        future=True,
    )
    if engine.dialect.name == "sqlite":
        event.listen(engine, "connect", _enable_sqlite_foreign_keys)
    return engine


def get_sessionmaker(engine: Engine) -> sessionmaker:
    """Return the session factory used by scripts and tests.

    Objects stay readable after commit; workflows only flush, so the
    ``Session.begin()`` block that wraps a call decides whether it persists.
    """
    return sessionmaker(bind=engine, expire_on_commit=False, future=True)
