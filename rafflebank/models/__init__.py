from .base import Base

# import models so Alembic/autoloaders can discover mappers
from .user import User  # noqa: F401
from .draw import (  # noqa: F401
    Draw,
    DRAW_PENDING,
    DRAW_COMPLETED,
    DRAW_CANCELLED,
)
from .ticket import Ticket  # noqa: F401
from .winner import Winner  # noqa: F401
from .notification import Notification  # noqa: F401

__all__ = [
    "Base",
    "User",
    "Draw",
    "DRAW_PENDING",
    "DRAW_COMPLETED",
    "DRAW_CANCELLED",
    "Ticket",
    "Winner",
    "Notification",
]
