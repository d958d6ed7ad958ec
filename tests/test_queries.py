from __future__ import annotations

import unittest
from datetime import datetime, timedelta, timezone
from decimal import Decimal

from rafflebank.db.engine import get_sessionmaker, make_engine
from rafflebank.models import Base, User
from rafflebank.workflows import (
    create_draw,
    get_stats,
    list_available_draws,
    list_due_draws,
    list_recent_winners,
    list_upcoming_draws,
    list_user_tickets,
    purchase_tickets,
    resolve_draw,
)

NOW = datetime(2025, 9, 21, 12, 0, tzinfo=timezone.utc)


class FirstTicket:
    def index(self, n: int) -> int:
        return 0


class QueryTests(unittest.TestCase):
    def setUp(self) -> None:
        self.engine = make_engine("sqlite+pysqlite:///:memory:")
        Base.metadata.create_all(self.engine)
        self.Session = get_sessionmaker(self.engine)

        earlier = NOW - timedelta(days=2)
        with self.Session.begin() as session:
            alice = User(email="alice@example.com", balance=Decimal("200.00"))
            bob = User(email="bob@example.com", balance=Decimal("200.00"))
            session.add_all([alice, bob])
            session.flush()
            self.alice_id, self.bob_id = alice.id, bob.id

            # Two draws already due, four still open.
            self.due_big = create_draw(session, NOW - timedelta(hours=2), "10.00", now=earlier).id
            self.due_small = create_draw(session, NOW - timedelta(hours=1), "4.00", now=earlier).id
            self.open_ids = [
                create_draw(session, NOW + timedelta(hours=h), "1.00", now=earlier).id
                for h in (3, 1, 2, 24)
            ]

            purchase_tickets(session, alice.id, self.due_big, 5, now=earlier)
            purchase_tickets(session, bob.id, self.due_small, 2, now=earlier)
            purchase_tickets(session, alice.id, self.open_ids[1], 2, now=earlier)
            purchase_tickets(session, bob.id, self.open_ids[1], 1, now=earlier)
            purchase_tickets(
                session, alice.id, self.open_ids[0], 1, now=earlier + timedelta(minutes=5)
            )

    def tearDown(self) -> None:
        self.engine.dispose()

    def test_upcoming_draws_are_ordered_with_counts(self):
        with self.Session() as session:
            rows = list_upcoming_draws(session, now=NOW)
            ids_and_counts = [(draw.id, count) for draw, count in rows]
            self.assertEqual(
                ids_and_counts,
                [
                    (self.open_ids[1], 3),
                    (self.open_ids[2], 0),
                    (self.open_ids[0], 1),
                    (self.open_ids[3], 0),
                ],
            )
            self.assertEqual(rows[0][0].to_json(ticket_count=rows[0][1])["ticket_count"], 3)

            limited = list_upcoming_draws(session, now=NOW, limit=2)
            self.assertEqual(len(limited), 2)

    def test_available_and_due_draws(self):
        with self.Session() as session:
            available = [d.id for d in list_available_draws(session, now=NOW)]
            self.assertEqual(
                available,
                [self.open_ids[1], self.open_ids[2], self.open_ids[0], self.open_ids[3]],
            )
            due = [d.id for d in list_due_draws(session, now=NOW)]
            self.assertEqual(due, [self.due_big, self.due_small])

    def test_resolved_draws_leave_the_due_list(self):
        with self.Session.begin() as session:
            resolve_draw(session, self.due_big, now=NOW)
        with self.Session() as session:
            self.assertEqual([d.id for d in list_due_draws(session, now=NOW)], [self.due_small])

    def test_recent_winners_and_stats(self):
        with self.Session() as session:
            stats = get_stats(session)
            self.assertEqual(stats.total_users, 2)
            self.assertEqual(stats.active_draws, 6)
            self.assertEqual(stats.total_winners, 0)
            self.assertEqual(stats.total_prizes, Decimal("0.00"))

        with self.Session.begin() as session:
            resolve_draw(session, self.due_big, now=NOW, randomness=FirstTicket())
            resolve_draw(session, self.due_small, now=NOW)

        with self.Session() as session:
            winners = list_recent_winners(session)
            self.assertEqual(len(winners), 1)
            self.assertEqual(winners[0].user_id, self.alice_id)
            self.assertEqual(winners[0].draw.id, self.due_big)
            self.assertEqual(winners[0].prize_amount, Decimal("40.00"))

            stats = get_stats(session)
            self.assertEqual(stats.active_draws, 4)
            self.assertEqual(stats.total_winners, 1)
            self.assertEqual(stats.total_prizes, Decimal("40.00"))
            self.assertEqual(stats.to_json()["total_prizes"], "40.00")

    def test_user_tickets_newest_first(self):
        with self.Session.begin() as session:
            resolve_draw(session, self.due_big, now=NOW, randomness=FirstTicket())

        with self.Session() as session:
            tickets = list_user_tickets(session, self.alice_id)
            self.assertEqual(len(tickets), 8)
            self.assertEqual(tickets[0].draw.id, self.open_ids[0])
            ids = [t.ticket.id for t in tickets[1:]]
            self.assertEqual(ids, sorted(ids, reverse=True))

            winning = [t for t in tickets if t.is_winning]
            self.assertEqual(len(winning), 1)
            self.assertEqual(winning[0].draw.id, self.due_big)
            payload = winning[0].to_json()
            self.assertTrue(payload["is_winning"])
            self.assertEqual(payload["draw_status"], "completed")

            self.assertEqual(list_user_tickets(session, 404), [])


if __name__ == "__main__":
    unittest.main()
