"""
Per-channel statistics over a row range.
"""

from dataclasses import dataclass
from typing import Optional, Sequence
import numpy as np

from logdash.data.parser import Row, is_number


@dataclass(frozen=True)
class ChannelStatistics:
    """Min/max/avg of one channel and the rows holding the extremes."""
    min: float = 0.0
    max: float = 0.0
    avg: float = 0.0
    min_row: Optional[Row] = None
    max_row: Optional[Row] = None
    count: int = 0


def compute_stats(rows: Sequence[Row], key: str) -> ChannelStatistics:
    """
    Compute min, max and average of the numeric cells of one key.

    Non-numeric cells are ignored. On ties the earliest row is reported for
    both min and max. With no numeric cells everything is zero and both rows
    are None.

    Args:
        rows: Rows to scan (already zoomed, never downsampled)
        key: Column to summarise

    Returns:
        ChannelStatistics
    """
    positions = []
    values = []
    for i, row in enumerate(rows):
        value = row.get(key)
        if is_number(value):
            positions.append(i)
            values.append(value)

    if not values:
        return ChannelStatistics()

    data = np.asarray(values, dtype=np.float64)
    # argmin/argmax return the first occurrence of the extreme
    min_index = int(np.argmin(data))
    max_index = int(np.argmax(data))

    return ChannelStatistics(
        min=values[min_index],
        max=values[max_index],
        avg=float(data.sum() / len(data)),
        min_row=rows[positions[min_index]],
        max_row=rows[positions[max_index]],
        count=len(values),
    )
