"""Account balance mutations.

``debit`` and ``credit`` are the only functions that change
``User.balance`` after an account is created. Both run inside the caller's
session and commit or roll back with the sibling writes of the calling
workflow; neither commits on its own.
"""

from __future__ import annotations

import logging
from decimal import Decimal

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from .exceptions import InsufficientBalance, UserNotFound
from .models.user import User
from .models.utils import MoneyLike, expire_cached, to_money

logger = logging.getLogger(__name__)


def _positive_amount(amount: MoneyLike) -> Decimal:
    value = to_money(amount)
    if value <= 0:
        raise ValueError(f"ledger amounts must be positive, got {value}")
    return value


def _account_exists(session: Session, user_id: int) -> bool:
    return session.scalar(select(User.id).where(User.id == user_id)) is not None


def debit(session: Session, user_id: int, amount: MoneyLike) -> Decimal:
    """Withdraw ``amount`` from ``user_id``'s balance.

    The sufficiency check and the subtraction are a single conditional
    UPDATE (``... WHERE balance >= :amount``), so a concurrent debit that
    already consumed the funds makes this one match no row instead of
    driving the balance negative.

    Parameters
    ----------
    session : Session
        Active SQLAlchemy session owning the transaction.
    user_id : int
        Account to debit.
    amount : Decimal | int | str
        Positive amount, quantized to cents.

    Returns
    -------
    Decimal
        The amount debited.

    Raises
    ------
    ValueError
        If ``amount`` is not positive.
    UserNotFound
        If the account does not exist.
    InsufficientBalance
        If the balance is lower than ``amount``. Nothing is changed.
    """

    value = _positive_amount(amount)
    stmt = (
        update(User)
        .where(User.id == user_id, User.balance >= value)
        .values(balance=User.balance - value)
        .execution_options(synchronize_session=False)
    )
    result = session.execute(stmt)
    if result.rowcount != 1:
        if not _account_exists(session, user_id):
            raise UserNotFound()
        logger.info(f"Debit of {value} refused for user {user_id}: insufficient balance")
        raise InsufficientBalance()

    expire_cached(session, User, user_id, "balance", "updated_at")
    logger.debug(f"Debited {value} from user {user_id}")
    return value


def credit(session: Session, user_id: int, amount: MoneyLike) -> Decimal:
    """Add ``amount`` to ``user_id``'s balance.

    Parameters
    ----------
    session : Session
        Active SQLAlchemy session owning the transaction.
    user_id : int
        Account to credit.
    amount : Decimal | int | str
        Positive amount, quantized to cents.

    Returns
    -------
    Decimal
        The amount credited.

    Raises
    ------
    ValueError
        If ``amount`` is not positive. A zero or negative credit is a
        programming error, not a user-facing condition.
    UserNotFound
        If the account does not exist.
    """

    value = _positive_amount(amount)
    stmt = (
        update(User)
        .where(User.id == user_id)
        .values(balance=User.balance + value)
        .execution_options(synchronize_session=False)
    )
    result = session.execute(stmt)
    if result.rowcount != 1:
        raise UserNotFound()

    expire_cached(session, User, user_id, "balance", "updated_at")
    logger.debug(f"Credited {value} to user {user_id}")
    return value


__all__ = ["debit", "credit"]
