"""Utility helpers for the models package."""

from __future__ import annotations

import secrets
import string
from decimal import Decimal, InvalidOperation, ROUND_DOWN
from typing import Optional, Union
from sqlalchemy.orm import Session

REFERENCE_ALPHABET = string.digits + string.ascii_uppercase

CENT = Decimal("0.01")

MoneyLike = Union[Decimal, int, str]


def to_money(value: MoneyLike) -> Decimal:
    """Return ``value`` as a ``Decimal`` quantized to cents.

    Rounds toward zero so that a computed amount never exceeds its exact
    value. Floats are rejected because they cannot represent most cent
    values exactly.

    Raises
    ------
    TypeError
        If ``value`` is a float or bool.
    ValueError
        If ``value`` is not a finite number.
    """

    if isinstance(value, (float, bool)):
        raise TypeError("money amounts must be Decimal, int or str, not float")
    try:
        amount = Decimal(value)
    except (InvalidOperation, TypeError) as exc:
        raise ValueError(f"invalid money amount: {value!r}") from exc
    if not amount.is_finite():
        raise ValueError(f"invalid money amount: {value!r}")
    return amount.quantize(CENT, rounding=ROUND_DOWN)


def generate_draw_reference(
    session: Optional[Session] = None,
    length: int = 6,
    max_attempts: int = 32,
) -> str:
    """Return a short public reference for a draw, e.g. ``"7KQ2ZD"``.

    When a session is provided, the helper retries if the generated value is
    already present (or pending) in ``Draw.reference``.
    """

    draw_cls = None
    if session is not None:
        from sqlalchemy import select
        from .draw import Draw

        draw_cls = Draw

    attempts = 0
    while attempts < max_attempts:
        candidate = "".join(secrets.choice(REFERENCE_ALPHABET) for _ in range(length))

        if session is not None and draw_cls is not None:
            collision = False
            for obj in session.new:
                if isinstance(obj, draw_cls) and getattr(obj, "reference", None) == candidate:
                    collision = True
                    break
            if collision:
                attempts += 1
                continue

            exists = session.scalar(
                select(draw_cls.id).where(draw_cls.reference == candidate)
            )
            if exists is not None:
                attempts += 1
                continue

        return candidate

    raise RuntimeError("Unable to generate a unique draw reference after multiple attempts")


def expire_cached(session: Session, cls: type, pk: int, *attrs: str) -> None:
    """Expire ``attrs`` on the identity-mapped instance of ``cls`` if loaded.

    Used after Core-style UPDATE statements issued with
    ``synchronize_session=False`` so the next attribute access reloads the
    committed value instead of a stale one. No SQL is emitted when the
    instance is not present in the session.
    """

    obj = session.identity_map.get(session.identity_key(cls, pk))
    if obj is not None:
        session.expire(obj, list(attrs) or None)
