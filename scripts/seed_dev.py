from datetime import datetime, timedelta, timezone
from decimal import Decimal

from rafflebank.db.engine import get_sessionmaker, make_engine
from rafflebank.models import Base, User
from rafflebank.workflows import create_draw, purchase_tickets


def main() -> None:
    """Seed the development database with sample accounts and draws."""
    engine = make_engine()

    # Drop and recreate all tables. draws and tickets reference each other,
    # so foreign key checks are switched off on SQLite while dropping.
    with engine.connect() as conn:
        if engine.dialect.name == "sqlite":
            conn.exec_driver_sql("PRAGMA foreign_keys=OFF")
        Base.metadata.drop_all(bind=conn)
        if engine.dialect.name == "sqlite":
            conn.exec_driver_sql("PRAGMA foreign_keys=ON")
        conn.commit()

    Base.metadata.create_all(engine)
    Session = get_sessionmaker(engine)

    now = datetime.now(timezone.utc)

    with Session.begin() as session:
        users = [
            User(email="abebe@example.com", name="Abebe", balance=Decimal("500.00")),
            User(email="hana@example.com", name="Hana", balance=Decimal("250.00")),
            User(email="dawit@example.com", name="Dawit", balance=Decimal("100.00")),
            User(email="sara@example.com", name="Sara", balance=Decimal("75.00")),
        ]
        session.add_all(users)
        session.flush()

        # Busy draw: will reach the five-ticket quorum.
        busy = create_draw(session, now + timedelta(hours=1), Decimal("10.00"), now=now)
        # Quiet draw: one buyer, will be cancelled and refunded.
        quiet = create_draw(session, now + timedelta(hours=2), Decimal("25.00"), now=now)
        create_draw(session, now + timedelta(days=1), Decimal("50.00"), now=now)

        purchase_tickets(session, users[0].id, busy.id, 3, now=now)
        purchase_tickets(session, users[1].id, busy.id, 2, now=now)
        purchase_tickets(session, users[2].id, busy.id, 1, now=now)
        purchase_tickets(session, users[3].id, quiet.id, 1, now=now)

    print("Development database seeded.")


if __name__ == "__main__":
    main()
