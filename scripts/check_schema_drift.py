"""Compare the ORM models with the live database schema.

Exit status is 0 when they match, 1 when differences are found and 2 when
the database cannot be inspected. Intended for CI after ``init_db.py``.
"""

from __future__ import annotations

import argparse
import sys
from typing import Optional

from alembic.autogenerate import compare_metadata
from alembic.runtime.migration import MigrationContext

from rafflebank.db.engine import make_engine
from rafflebank.models import Base


def _describe(diff) -> str:
    # compare_metadata yields tuples, or lists of tuples for column changes
    if isinstance(diff, list):
        return "; ".join(_describe(d) for d in diff)
    kind, *rest = diff
    return f"{kind}: {', '.join(str(r) for r in rest)}"


def check(database_url: Optional[str] = None) -> int:
    engine = make_engine(database_url)
    url_display = engine.url.render_as_string(hide_password=True)
    try:
        with engine.connect() as connection:
            context = MigrationContext.configure(
                connection=connection,
                opts={
                    "compare_type": True,
                    "compare_server_default": True,
                    "render_as_batch": connection.dialect.name == "sqlite",
                },
            )
            diffs = compare_metadata(context, Base.metadata)
    except Exception as exc:
        print(f"Schema drift check: ERROR for {url_display}: {exc}", file=sys.stderr)
        return 2
    finally:
        engine.dispose()

    if not diffs:
        print(f"Schema drift check: OK for {url_display}.")
        return 0
    print(f"Schema drift check: {len(diffs)} difference(s) for {url_display}:")
    for diff in diffs:
        print(f"  - {_describe(diff)}")
    return 1


def main(argv: Optional[list[str]] = None) -> int:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument("--url", help="database URL (defaults to DB_URL)")
    args = parser.parse_args(argv)
    return check(args.url)


if __name__ == "__main__":
    raise SystemExit(main())
