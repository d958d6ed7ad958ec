"""Resolve one draw, or every draw whose time has arrived.

Meant to be run by cron or another scheduler. Each draw is resolved in its
own transaction, so one failure does not roll back the others.
"""

from __future__ import annotations

import argparse
import json
import logging
from typing import Optional

from rafflebank.db.engine import get_sessionmaker, make_engine
from rafflebank.exceptions import RaffleError
from rafflebank.models import Draw
from rafflebank.settings import configure_logging, get_settings
from rafflebank.workflows import list_due_draws, resolve_draw

logger = logging.getLogger("rafflebank.scripts.run_draw")


def main(argv: Optional[list[str]] = None) -> int:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    target = parser.add_mutually_exclusive_group(required=True)
    target.add_argument("--draw-id", type=int, help="resolve this draw")
    target.add_argument("--reference", help="resolve the draw with this public code, e.g. 7KQ2ZD")
    target.add_argument("--all-due", action="store_true", help="resolve every due draw")
    args = parser.parse_args(argv)

    settings = get_settings()
    configure_logging(settings)
    engine = make_engine(settings.db_url, echo=settings.db_echo)
    Session = get_sessionmaker(engine)

    if args.all_due:
        with Session() as session:
            draw_ids = [draw.id for draw in list_due_draws(session)]
        logger.info(f"{len(draw_ids)} draw(s) due")
    elif args.reference:
        with Session() as session:
            draw = Draw.get_by_reference(session, args.reference)
        if draw is None:
            logger.error(f"No draw with reference {args.reference}")
            engine.dispose()
            return 1
        draw_ids = [draw.id]
    else:
        draw_ids = [args.draw_id]

    failures = 0
    for draw_id in draw_ids:
        try:
            with Session.begin() as session:
                resolution = resolve_draw(session, draw_id)
                payload = resolution.to_json()
        except RaffleError as exc:
            failures += 1
            logger.error(f"Draw {draw_id} not resolved ({exc.code}): {exc}")
            continue
        print(json.dumps(payload))

    engine.dispose()
    return 1 if failures else 0


if __name__ == "__main__":
    raise SystemExit(main())
