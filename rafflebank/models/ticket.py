from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, Optional
from sqlalchemy.orm import Mapped, mapped_column, relationship, Session
from sqlalchemy import DateTime, ForeignKey, Index, select

from ..db.utils import dt_iso
from .base import Base
from .types import ID_TYPE

if TYPE_CHECKING:
    from .draw import Draw
    from .user import User


class Ticket(Base):
    """One unit of participation bought by a user for a specific draw.

    Tickets are append-only: once issued they are never updated or deleted.
    """

    def __init__(
        self,
        user_id: int,
        draw_id: int,
        purchased_at: Optional[datetime] = None,
    ):
        """Create a new ticket.

        Parameters
        ----------
        user_id : int
            Buyer's ID.
        draw_id : int
            ID of the draw the ticket participates in.
        purchased_at : datetime, optional
            Purchase timestamp. Defaults to the current UTC time on insert.
        """

        self.user_id = user_id
        self.draw_id = draw_id
        if purchased_at is not None:
            self.purchased_at = purchased_at

    __tablename__ = "tickets"

    id: Mapped[int] = mapped_column(ID_TYPE, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        ID_TYPE, ForeignKey("users.id", ondelete="RESTRICT"), nullable=False
    )
    draw_id: Mapped[int] = mapped_column(
        ID_TYPE, ForeignKey("draws.id", ondelete="RESTRICT"), nullable=False
    )
    purchased_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    user: Mapped["User"] = relationship(back_populates="tickets")
    draw: Mapped["Draw"] = relationship(
        back_populates="tickets", foreign_keys=[draw_id]
    )

    __table_args__ = (
        Index("ix_tickets_draw_user", "draw_id", "user_id"),
        Index("ix_tickets_user_purchased", "user_id", "purchased_at"),
    )

    def __repr__(self) -> str:
        return (
            f"<Ticket(id={self.id}, user_id={self.user_id}, "
            f"draw_id={self.draw_id}, purchased_at={self.purchased_at})>"
        )

    @classmethod
    def for_draw(cls, session: Session, draw: "Draw | int") -> list["Ticket"]:
        """Return every ticket of ``draw`` ordered by ID.

        Parameters
        ----------
        session : Session
            Active SQLAlchemy session.
        draw : Draw | int
            The draw or its primary key.
        """

        draw_id = draw if isinstance(draw, int) else draw.id
        stmt = select(cls).where(cls.draw_id == draw_id).order_by(cls.id.asc())
        return list(session.scalars(stmt).all())

    def to_json(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "draw_id": self.draw_id,
            "purchased_at": dt_iso(self.purchased_at),
        }
