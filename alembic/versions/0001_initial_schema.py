"""initial schema: users, draws, tickets, winners, notifications

Revision ID: 0001_initial_schema
Revises:
Create Date: 2025-09-22 10:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "0001_initial_schema"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

ID = sa.BigInteger().with_variant(sa.Integer(), "sqlite")
MONEY = sa.Numeric(12, 2)


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", ID, autoincrement=True, nullable=False),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=True),
        sa.Column("balance", MONEY, nullable=False),
        sa.Column(
            "created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False
        ),
        sa.Column(
            "updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False
        ),
        sa.CheckConstraint("balance >= 0", name=op.f("ck_users_balance_non_negative")),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_users")),
        sa.UniqueConstraint("email", name=op.f("uq_users_email")),
    )

    op.create_table(
        "draws",
        sa.Column("id", ID, autoincrement=True, nullable=False),
        sa.Column("reference", sa.String(length=12), nullable=False),
        sa.Column("draw_time", sa.DateTime(timezone=True), nullable=False),
        sa.Column("ticket_price", MONEY, nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False),
        sa.Column("winning_ticket_id", ID, nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("resolved_at", sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint(
            "status IN ('pending','completed','cancelled')", name=op.f("ck_draws_status_enum")
        ),
        sa.CheckConstraint("ticket_price > 0", name=op.f("ck_draws_ticket_price_positive")),
        sa.CheckConstraint(
            "(status = 'completed' AND winning_ticket_id IS NOT NULL) OR "
            "(status <> 'completed' AND winning_ticket_id IS NULL)",
            name=op.f("ck_draws_winning_ticket_iff_completed"),
        ),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_draws")),
        sa.UniqueConstraint("reference", name=op.f("uq_draws_reference")),
    )
    op.create_index("ix_draws_status_draw_time", "draws", ["status", "draw_time"], unique=False)

    op.create_table(
        "tickets",
        sa.Column("id", ID, autoincrement=True, nullable=False),
        sa.Column("user_id", ID, nullable=False),
        sa.Column("draw_id", ID, nullable=False),
        sa.Column("purchased_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(
            ["draw_id"], ["draws.id"], name=op.f("fk_tickets_draw_id_draws"), ondelete="RESTRICT"
        ),
        sa.ForeignKeyConstraint(
            ["user_id"], ["users.id"], name=op.f("fk_tickets_user_id_users"), ondelete="RESTRICT"
        ),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_tickets")),
    )
    op.create_index("ix_tickets_draw_user", "tickets", ["draw_id", "user_id"], unique=False)
    op.create_index(
        "ix_tickets_user_purchased", "tickets", ["user_id", "purchased_at"], unique=False
    )

    # draws <-> tickets is a cycle; the draws side is added once both exist.
    with op.batch_alter_table("draws") as batch_op:
        batch_op.create_foreign_key(
            op.f("fk_draws_winning_ticket_id_tickets"),
            "tickets",
            ["winning_ticket_id"],
            ["id"],
            ondelete="RESTRICT",
        )

    op.create_table(
        "winners",
        sa.Column("id", ID, autoincrement=True, nullable=False),
        sa.Column("user_id", ID, nullable=False),
        sa.Column("draw_id", ID, nullable=False),
        sa.Column("ticket_id", ID, nullable=False),
        sa.Column("prize_amount", MONEY, nullable=False),
        sa.Column("announced_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint(
            "prize_amount >= 0", name=op.f("ck_winners_prize_amount_non_negative")
        ),
        sa.ForeignKeyConstraint(
            ["draw_id"], ["draws.id"], name=op.f("fk_winners_draw_id_draws"), ondelete="RESTRICT"
        ),
        sa.ForeignKeyConstraint(
            ["ticket_id"],
            ["tickets.id"],
            name=op.f("fk_winners_ticket_id_tickets"),
            ondelete="RESTRICT",
        ),
        sa.ForeignKeyConstraint(
            ["user_id"], ["users.id"], name=op.f("fk_winners_user_id_users"), ondelete="RESTRICT"
        ),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_winners")),
        sa.UniqueConstraint("draw_id", name="uq_winners_draw_id"),
    )
    op.create_index(op.f("ix_winners_user_id"), "winners", ["user_id"], unique=False)

    op.create_table(
        "notifications",
        sa.Column("id", ID, autoincrement=True, nullable=False),
        sa.Column("user_id", ID, nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("type", sa.String(length=50), nullable=False),
        sa.Column("is_read", sa.Boolean(), server_default=sa.false(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(
            ["user_id"],
            ["users.id"],
            name=op.f("fk_notifications_user_id_users"),
            ondelete="CASCADE",
        ),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_notifications")),
    )
    op.create_index(
        "ix_notifications_user_created", "notifications", ["user_id", "created_at"], unique=False
    )


def downgrade() -> None:
    op.drop_index("ix_notifications_user_created", table_name="notifications")
    op.drop_table("notifications")
    op.drop_index(op.f("ix_winners_user_id"), table_name="winners")
    op.drop_table("winners")
    with op.batch_alter_table("draws") as batch_op:
        batch_op.drop_constraint(op.f("fk_draws_winning_ticket_id_tickets"), type_="foreignkey")
    op.drop_index("ix_tickets_user_purchased", table_name="tickets")
    op.drop_index("ix_tickets_draw_user", table_name="tickets")
    op.drop_table("tickets")
    op.drop_index("ix_draws_status_draw_time", table_name="draws")
    op.drop_table("draws")
    op.drop_table("users")
