"""
Deterministic channel colors.

Hues are spaced by the golden angle so neighbouring channels stay visually
distinct however many there are.
"""

from typing import Dict, List, Sequence

GOLDEN_ANGLE = 137.508
SATURATION = 70
LIGHTNESS = 50


def generate_colors(count: int) -> List[str]:
    """Return ``count`` CSS hsl() colors; color i depends only on i."""
    colors = []
    for i in range(count):
        hue = (i * GOLDEN_ANGLE) % 360
        colors.append(f"hsl({hue:g}, {SATURATION}%, {LIGHTNESS}%)")
    return colors


def assign_colors(keys: Sequence[str]) -> Dict[str, str]:
    """Map channel keys to colors by their position in the header order."""
    return dict(zip(keys, generate_colors(len(keys))))
