"""Cryptographically secure winner selection."""

from __future__ import annotations

import secrets
from typing import Callable, Optional, Protocol, Sequence, TypeVar

T = TypeVar("T")


class RandomnessSource(Protocol):
    """Anything that can pick a uniform index in ``[0, n)``."""

    def index(self, n: int) -> int:  # pragma: no cover - protocol
        ...


class SecureRandomSource:
    """Uniform index generator backed by the operating system CSPRNG.

    Indices are drawn by rejection sampling: ``k`` random bits are taken,
    where ``k`` is the bit length of ``n - 1``, and values ``>= n`` are
    discarded. Every index in ``[0, n)`` is therefore equally likely,
    whatever ``n`` is, and fewer than two draws are needed on average.
    """

    def __init__(self, randbits: Optional[Callable[[int], int]] = None) -> None:
        """Create a source.

        Parameters
        ----------
        randbits : Callable[[int], int], optional
            Function returning a non-negative integer of the given bit
            length. Defaults to :func:`secrets.randbits`; tests may inject a
            scripted sequence.
        """

        self._randbits = randbits or secrets.randbits

    def index(self, n: int) -> int:
        """Return a uniformly distributed index in ``[0, n)``.

        Raises
        ------
        TypeError
            If ``n`` is not an ``int`` (booleans included).
        ValueError
            If ``n`` is smaller than 1.
        """

        if isinstance(n, bool) or not isinstance(n, int):
            raise TypeError("n must be an integer")
        if n < 1:
            raise ValueError("cannot pick from an empty sequence")
        if n == 1:
            return 0

        bits = (n - 1).bit_length()
        while True:
            candidate = self._randbits(bits)
            if candidate < n:
                return candidate


DEFAULT_RANDOMNESS = SecureRandomSource()


def secure_index(n: int, source: Optional[RandomnessSource] = None) -> int:
    """Return a uniform index in ``[0, n)`` from ``source`` (CSPRNG by default)."""

    return (source or DEFAULT_RANDOMNESS).index(n)


def secure_choice(items: Sequence[T], source: Optional[RandomnessSource] = None) -> T:
    """Return one element of ``items`` chosen uniformly at random."""

    return items[secure_index(len(items), source)]


__all__ = [
    "RandomnessSource",
    "SecureRandomSource",
    "DEFAULT_RANDOMNESS",
    "secure_index",
    "secure_choice",
]
