from datetime import datetime, timezone
from decimal import Decimal
from typing import TYPE_CHECKING, Any, Optional
from sqlalchemy.orm import Session, Mapped, mapped_column, relationship, validates
from sqlalchemy import CheckConstraint, DateTime, String, func, select

from ..db.utils import dt_iso
from .base import Base
from .types import ID_TYPE, MONEY_TYPE
from .utils import MoneyLike, to_money

if TYPE_CHECKING:
    from .ticket import Ticket
    from .winner import Winner
    from .notification import Notification


class User(Base):
    """A raffle participant and the holder of one account balance."""

    def __init__(
        self,
        email: str,
        name: Optional[str] = None,
        balance: MoneyLike = Decimal("0.00"),
        created_at: Optional[datetime] = None,
        updated_at: Optional[datetime] = None,
    ):
        """Create a new :class:`User` record.

        Parameters
        ----------
        email : str
            Login email address. Normalised to lower case.
        name : str, optional
            Display name.
        balance : Decimal | int | str, optional
            Opening balance, quantized to cents. Defaults to zero. After the
            row is persisted the balance must only change through
            :mod:`rafflebank.ledger`.
        created_at : datetime, optional
            Explicit creation timestamp.
        updated_at : datetime, optional
            Explicit last update timestamp.
        """

        self.email = email
        self.name = name
        self.balance = to_money(balance)
        if created_at is not None:
            self.created_at = created_at
        if updated_at is not None:
            self.updated_at = updated_at

    __tablename__ = "users"

    id: Mapped[int] = mapped_column(ID_TYPE, primary_key=True, autoincrement=True)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    balance: Mapped[Decimal] = mapped_column(
        MONEY_TYPE, nullable=False, default=Decimal("0.00")
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False,
    )

    # relationships
    tickets: Mapped[list["Ticket"]] = relationship(back_populates="user")
    wins: Mapped[list["Winner"]] = relationship(back_populates="user")
    notifications: Mapped[list["Notification"]] = relationship(
        back_populates="user", cascade="all, delete-orphan"
    )

    __table_args__ = (
        CheckConstraint("balance >= 0", name="balance_non_negative"),
    )

    def __repr__(self) -> str:
        return (
            f"<User(id={self.id}, email='{self.email}', "
            f"name='{self.name}', balance={self.balance})>"
        )

    @validates("email")
    def _normalize_email(self, _key: str, value: str) -> str:
        normalized = (value or "").strip().lower()
        if not normalized:
            raise ValueError("email must not be empty")
        return normalized

    @classmethod
    def get_by_email(cls, session: Session, email: str) -> Optional["User"]:
        """Retrieve a user by their email address."""

        return session.scalar(select(cls).where(cls.email == email.strip().lower()))

    @classmethod
    def lock(cls, session: Session, user_id: int) -> Optional["User"]:
        """Load ``user_id`` with a row lock held until the transaction ends.

        Backends without ``SELECT ... FOR UPDATE`` (SQLite) ignore the lock;
        the conditional UPDATE in :func:`rafflebank.ledger.debit` still guards
        the balance there. ``populate_existing`` discards any stale copy held
        in the session's identity map.
        """

        stmt = (
            select(cls)
            .where(cls.id == user_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return session.scalar(stmt)

    def to_json(self) -> dict[str, Any]:
        """Return a JSON-serializable dict of the account."""

        return {
            "id": self.id,
            "email": self.email,
            "name": self.name,
            "balance": str(self.balance),
            "created_at": dt_iso(self.created_at),
            "updated_at": dt_iso(self.updated_at),
        }
