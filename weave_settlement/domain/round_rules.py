"""Round input rules.

Multiplier tiers and payouts are computed by the ledger; the core only
normalizes the raw streak samples it forwards.
"""

import math
from typing import Iterable, List, Optional, Union

MULTIPLIER_SCALE = 1000


def coerce_streaks_ms(values: Optional[Iterable[Union[int, float]]]) -> List[int]:
    """Floor each streak to whole milliseconds and clamp negatives to zero.

    Raises:
        ValueError: an entry is not a finite number
    """
    if values is None:
        return []
    streaks = []
    for value in values:
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise ValueError(f"streak must be a number: {value!r}")
        if isinstance(value, float) and not math.isfinite(value):
            raise ValueError("streak must be finite")
        streaks.append(max(0, math.floor(value)))
    return streaks


def multiplier_from_milli(multiplier_milli: int) -> float:
    """Display value only; settlement math stays in integer milli units."""
    return multiplier_milli / MULTIPLIER_SCALE
