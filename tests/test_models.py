import unittest
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from unittest.mock import patch

from sqlalchemy import insert, select, update
from sqlalchemy.exc import IntegrityError

from rafflebank.db.engine import get_sessionmaker, make_engine
from rafflebank.models import (
    Base,
    Draw,
    DRAW_CANCELLED,
    DRAW_COMPLETED,
    DRAW_PENDING,
    Notification,
    Ticket,
    User,
    Winner,
)
from rafflebank.models.utils import REFERENCE_ALPHABET, generate_draw_reference, to_money

DRAW_TIME = datetime(2025, 9, 21, 18, 0, tzinfo=timezone.utc)


class ToMoneyTests(unittest.TestCase):
    def test_quantizes_toward_zero(self):
        self.assertEqual(to_money("10"), Decimal("10.00"))
        self.assertEqual(to_money(Decimal("1.239")), Decimal("1.23"))
        self.assertEqual(to_money(7), Decimal("7.00"))

    def test_rejects_floats_and_garbage(self):
        with self.assertRaises(TypeError):
            to_money(1.5)  # type: ignore[arg-type]
        with self.assertRaises(TypeError):
            to_money(True)
        with self.assertRaises(ValueError):
            to_money("ten")
        with self.assertRaises(ValueError):
            to_money("NaN")


class DBTestCase(unittest.TestCase):
    def setUp(self):
        # In-memory SQLite for isolation
        self.engine = make_engine("sqlite+pysqlite:///:memory:")
        Base.metadata.create_all(self.engine)
        self.Session = get_sessionmaker(self.engine)

    def tearDown(self):
        self.engine.dispose()

    def test_user_email_normalized_and_looked_up(self):
        with self.Session.begin() as session:
            session.add(User(email="  Abebe@Example.COM ", balance="12.5"))

        with self.Session() as session:
            found = User.get_by_email(session, "ABEBE@example.com")
            self.assertIsNotNone(found)
            assert found is not None
            self.assertEqual(found.email, "abebe@example.com")
            self.assertEqual(found.balance, Decimal("12.50"))
            self.assertEqual(found.to_json()["balance"], "12.50")

    def test_user_email_required(self):
        with self.assertRaises(ValueError):
            User(email="   ")

    def test_balance_cannot_go_negative_in_database(self):
        with self.Session.begin() as session:
            user = User(email="u@example.com", balance="1.00")
            session.add(user)
            session.flush()
            user_id = user.id

        with self.assertRaises(IntegrityError):
            with self.Session.begin() as session:
                session.execute(
                    update(User).where(User.id == user_id).values(balance=Decimal("-1.00"))
                )

    def test_draw_created_pending_with_reference(self):
        draw = Draw(draw_time=DRAW_TIME, ticket_price="10")
        self.assertEqual(draw.status, DRAW_PENDING)
        self.assertEqual(draw.ticket_price, Decimal("10.00"))
        self.assertEqual(len(draw.reference), 6)
        self.assertTrue(set(draw.reference) <= set(REFERENCE_ALPHABET))

    def test_draw_rejects_non_positive_price(self):
        with self.assertRaises(ValueError):
            Draw(draw_time=DRAW_TIME, ticket_price="0")
        with self.assertRaises(ValueError):
            Draw(draw_time=DRAW_TIME, ticket_price="-5.00")

    def test_draw_status_is_not_directly_assignable(self):
        draw = Draw(draw_time=DRAW_TIME, ticket_price="10")
        with self.assertRaises(ValueError):
            draw.status = DRAW_COMPLETED
        self.assertEqual(draw.status, DRAW_PENDING)

    def test_draw_time_checks(self):
        draw = Draw(draw_time=DRAW_TIME, ticket_price="10")
        before = DRAW_TIME - timedelta(minutes=1)
        self.assertTrue(draw.is_purchasable(before))
        self.assertFalse(draw.is_due(before))
        self.assertFalse(draw.is_purchasable(DRAW_TIME))
        self.assertTrue(draw.is_due(DRAW_TIME))

    def test_transition_happens_once(self):
        with self.Session.begin() as session:
            draw = Draw(draw_time=DRAW_TIME, ticket_price="10")
            session.add(draw)
            session.flush()
            draw_id = draw.id

            self.assertTrue(Draw.transition(session, draw_id, DRAW_CANCELLED))
            self.assertEqual(draw.status, DRAW_CANCELLED)
            self.assertIsNotNone(draw.resolved_at)

            # Second attempt matches no pending row.
            self.assertFalse(Draw.transition(session, draw_id, DRAW_CANCELLED))

        with self.Session() as session:
            stored = session.get(Draw, draw_id)
            assert stored is not None
            self.assertEqual(stored.status, DRAW_CANCELLED)
            self.assertIsNone(stored.winning_ticket_id)

    def test_transition_argument_validation(self):
        with self.Session.begin() as session:
            draw = Draw(draw_time=DRAW_TIME, ticket_price="10")
            session.add(draw)
            session.flush()

            with self.assertRaises(ValueError):
                Draw.transition(session, draw.id, DRAW_PENDING)
            with self.assertRaises(ValueError):
                Draw.transition(session, draw.id, DRAW_COMPLETED)
            with self.assertRaises(ValueError):
                Draw.transition(session, draw.id, DRAW_CANCELLED, winning_ticket_id=1)

    def test_transition_of_missing_draw(self):
        with self.Session.begin() as session:
            self.assertFalse(Draw.transition(session, 999, DRAW_CANCELLED))

    def test_completed_draw_requires_winning_ticket(self):
        with self.assertRaises(IntegrityError):
            with self.Session.begin() as session:
                session.execute(
                    insert(Draw).values(
                        reference="ABC123",
                        draw_time=DRAW_TIME,
                        ticket_price=Decimal("5.00"),
                        status=DRAW_COMPLETED,
                        created_at=DRAW_TIME,
                    )
                )

    def test_unknown_status_rejected_by_database(self):
        with self.assertRaises(IntegrityError):
            with self.Session.begin() as session:
                session.execute(
                    insert(Draw).values(
                        reference="ABC124",
                        draw_time=DRAW_TIME,
                        ticket_price=Decimal("5.00"),
                        status="open",
                        created_at=DRAW_TIME,
                    )
                )

    def test_for_draw_returns_only_that_draws_tickets(self):
        with self.Session.begin() as session:
            user = User(email="t@example.com")
            first = Draw(draw_time=DRAW_TIME, ticket_price="2")
            second = Draw(draw_time=DRAW_TIME, ticket_price="2")
            session.add_all([user, first, second])
            session.flush()
            session.add_all(
                [
                    Ticket(user_id=user.id, draw_id=first.id),
                    Ticket(user_id=user.id, draw_id=second.id),
                    Ticket(user_id=user.id, draw_id=first.id),
                ]
            )
            session.flush()

            self.assertEqual(len(Ticket.for_draw(session, second)), 1)
            ids = [t.id for t in Ticket.for_draw(session, first)]
            self.assertEqual(ids, sorted(ids))
            self.assertEqual(len(ids), 2)
            self.assertEqual(Ticket.for_draw(session, first.id)[0].id, ids[0])

    def test_ticket_requires_existing_user(self):
        with self.assertRaises(IntegrityError):
            with self.Session.begin() as session:
                draw = Draw(draw_time=DRAW_TIME, ticket_price="2")
                session.add(draw)
                session.flush()
                session.add(Ticket(user_id=12345, draw_id=draw.id))

    def test_one_winner_per_draw(self):
        with self.Session.begin() as session:
            user = User(email="w@example.com")
            draw = Draw(draw_time=DRAW_TIME, ticket_price="2")
            session.add_all([user, draw])
            session.flush()
            ticket = Ticket(user_id=user.id, draw_id=draw.id)
            session.add(ticket)
            session.flush()
            session.add(
                Winner(user_id=user.id, draw_id=draw.id, ticket_id=ticket.id, prize_amount=Decimal("1.60"))
            )
            ids = (user.id, draw.id, ticket.id)

        with self.assertRaises(IntegrityError):
            with self.Session.begin() as session:
                session.add(
                    Winner(user_id=ids[0], draw_id=ids[1], ticket_id=ids[2], prize_amount=Decimal("1.60"))
                )

    def test_notification_enqueue_is_unread(self):
        with self.Session.begin() as session:
            user = User(email="n@example.com")
            session.add(user)
            session.flush()
            Notification.enqueue(session, user.id, "hello", "ticket_purchase")

        with self.Session() as session:
            stored = session.scalars(select(Notification)).one()
            self.assertFalse(stored.is_read)
            self.assertEqual(stored.type, "ticket_purchase")
            self.assertEqual(stored.to_json()["message"], "hello")

    def test_generate_draw_reference_retries_on_collision(self):
        with self.Session.begin() as session:
            existing = Draw(draw_time=DRAW_TIME, ticket_price="1", reference="AAAAAA")
            session.add(existing)
            session.flush()

            # First candidate collides, the second is free.
            with patch(
                "rafflebank.models.utils.secrets.choice",
                side_effect=["A"] * 6 + ["B"] * 6,
            ):
                self.assertEqual(generate_draw_reference(session), "BBBBBB")

    def test_generate_draw_reference_gives_up(self):
        with self.Session.begin() as session:
            session.add(Draw(draw_time=DRAW_TIME, ticket_price="1", reference="AAAAAA"))
            session.flush()
            with patch("rafflebank.models.utils.secrets.choice", return_value="A"):
                with self.assertRaises(RuntimeError):
                    generate_draw_reference(session, max_attempts=3)


if __name__ == "__main__":
    unittest.main()
