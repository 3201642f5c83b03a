"""Dice generation.

Requests coming off the socket are loosely typed, so every count is coerced
and clamped rather than rejected: a client asking for ``"lots"`` of dice gets
one die, a client asking for 40 gets six.
"""
from __future__ import annotations

import math
import random
import time
import uuid
from datetime import datetime, timezone
from typing import Any, List, Optional, Tuple

from .constants import DIE_FACES, MAX_DICE, MIN_DICE
from .schemas import Die, Roll

_rng = random.Random()


def _coerce(value: Any, default: float) -> float:
    if value is None:
        return default
    try:
        number = float(value)
    except (TypeError, ValueError, OverflowError):
        # OverflowError: integers too large for a float count as non-finite
        return default
    if not math.isfinite(number):
        return default
    return number


def sanitize_counts(num_dice: Any, num_gilded: Any) -> Tuple[int, int]:
    """Return ``(dice, gilded)`` clamped to ``1..6`` and ``0..dice``.

    Fractions round up once clamped, so 2.5 dice means three dice.
    """
    dice = max(MIN_DICE, min(MAX_DICE, _coerce(num_dice, 1)))
    gilded = max(0, min(dice, _coerce(num_gilded, 0)))
    return math.ceil(dice), math.ceil(gilded)


def roll_dice(num_dice: Any, num_gilded: Any, rng: Optional[random.Random] = None) -> List[Die]:
    """Roll sanitized counts of six-sided dice; the first *gilded* are marked."""
    source = rng or _rng
    dice, gilded = sanitize_counts(num_dice, num_gilded)
    return [Die(value=source.randint(1, DIE_FACES), gilded=i < gilded) for i in range(dice)]


def _base36(number: int) -> str:
    digits = "0123456789abcdefghijklmnopqrstuvwxyz"
    out = ""
    while True:
        number, rem = divmod(number, 36)
        out = digits[rem] + out
        if number == 0:
            return out


def new_roll_id() -> str:
    """Millisecond timestamp in base36 plus a random suffix, e.g. ``mgw1k2x0-3f9a0c1b2d4e``."""
    return f"{_base36(time.time_ns() // 1_000_000)}-{uuid.uuid4().hex[:12]}"


def make_roll(
    *,
    by: str,
    session_id: str,
    dice: List[Die],
    hidden: Any,
    client_id: str,
) -> Roll:
    return Roll(
        id=new_roll_id(),
        by=by,
        session_id=session_id,
        dice=tuple(dice),
        hidden=bool(hidden),
        timestamp=datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z"),
        client_id=client_id,
    )


__all__ = ["sanitize_counts", "roll_dice", "new_roll_id", "make_roll"]
