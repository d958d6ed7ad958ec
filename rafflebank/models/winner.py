from datetime import datetime, timezone
from decimal import Decimal
from typing import TYPE_CHECKING, Any, Optional
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy import CheckConstraint, DateTime, ForeignKey, UniqueConstraint

from ..db.utils import dt_iso
from .base import Base
from .types import ID_TYPE, MONEY_TYPE

if TYPE_CHECKING:
    from .draw import Draw
    from .ticket import Ticket
    from .user import User


class Winner(Base):
    """Announcement of the prize paid for a completed draw.

    Exactly one row exists per completed draw and none for any other draw.
    """

    def __init__(
        self,
        user_id: int,
        draw_id: int,
        ticket_id: int,
        prize_amount: Decimal,
        announced_at: Optional[datetime] = None,
    ):
        self.user_id = user_id
        self.draw_id = draw_id
        self.ticket_id = ticket_id
        self.prize_amount = prize_amount
        if announced_at is not None:
            self.announced_at = announced_at

    __tablename__ = "winners"

    id: Mapped[int] = mapped_column(ID_TYPE, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        ID_TYPE, ForeignKey("users.id", ondelete="RESTRICT"), nullable=False, index=True
    )
    draw_id: Mapped[int] = mapped_column(
        ID_TYPE, ForeignKey("draws.id", ondelete="RESTRICT"), nullable=False
    )
    ticket_id: Mapped[int] = mapped_column(
        ID_TYPE, ForeignKey("tickets.id", ondelete="RESTRICT"), nullable=False
    )
    prize_amount: Mapped[Decimal] = mapped_column(MONEY_TYPE, nullable=False)
    announced_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    user: Mapped["User"] = relationship(back_populates="wins")
    draw: Mapped["Draw"] = relationship(back_populates="winner")
    ticket: Mapped["Ticket"] = relationship("Ticket")

    __table_args__ = (
        UniqueConstraint("draw_id", name="uq_winners_draw_id"),
        CheckConstraint("prize_amount >= 0", name="prize_amount_non_negative"),
    )

    def __repr__(self) -> str:
        return (
            f"<Winner(id={self.id}, user_id={self.user_id}, draw_id={self.draw_id}, "
            f"prize_amount={self.prize_amount}, announced_at={self.announced_at})>"
        )

    def to_json(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "draw_id": self.draw_id,
            "ticket_id": self.ticket_id,
            "prize_amount": str(self.prize_amount),
            "announced_at": dt_iso(self.announced_at),
        }
