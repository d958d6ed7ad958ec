"""Notification records written by the purchase and resolution workflows."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, String, Text, false
from sqlalchemy.orm import Mapped, Session, mapped_column, relationship

from ..db.utils import dt_iso
from .base import Base
from .types import ID_TYPE

if TYPE_CHECKING:
    from .user import User

logger = logging.getLogger(__name__)

TICKET_PURCHASE = "ticket_purchase"
REFUND = "refund"
WINNER = "winner"
DRAW_COMPLETED = "draw_completed"


class Notification(Base):
    """A message queued for a user.

    This package only writes notifications; delivery and read state belong
    to the notification subsystem that consumes the table.
    """

    __tablename__ = "notifications"

    id: Mapped[int] = mapped_column(ID_TYPE, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        ID_TYPE, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    message: Mapped[str] = mapped_column(Text, nullable=False)
    type: Mapped[str] = mapped_column(String(50), nullable=False)
    is_read: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, server_default=false()
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    user: Mapped["User"] = relationship(back_populates="notifications")

    __table_args__ = (
        Index("ix_notifications_user_created", "user_id", "created_at"),
    )

    def __init__(self, *, user_id: int, message: str, type: str) -> None:
        self.user_id = user_id
        self.message = message
        self.type = type
        self.is_read = False

    def __repr__(self) -> str:  # pragma: no cover - repr is trivial
        return (
            f"<Notification(id={self.id}, user_id={self.user_id}, "
            f"type='{self.type}', is_read={self.is_read})>"
        )

    @classmethod
    def enqueue(
        cls, session: Session, user_id: int, message: str, type: str
    ) -> "Notification":
        """Add a notification to the caller's transaction.

        The row commits or rolls back together with the balance and draw
        changes that produced it. Nothing waits for delivery.
        """

        notification = cls(user_id=user_id, message=message, type=type)
        session.add(notification)
        logger.debug(f"Queued {type} notification for user {user_id}")
        return notification

    def to_json(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "message": self.message,
            "type": self.type,
            "is_read": self.is_read,
            "created_at": dt_iso(self.created_at),
        }


__all__ = [
    "Notification",
    "TICKET_PURCHASE",
    "REFUND",
    "WINNER",
    "DRAW_COMPLETED",
]
