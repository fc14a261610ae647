"""
Channel selection, zoom and render preparation.

The ChannelTable re-keys a processed log by safe key. The ViewController
holds the user's view state (selection, zoom window, search text) and turns
a ChannelTable into the RenderFrame handed to the chart renderer.
"""

import math
import operator
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Sequence

from logdash.data.parser import Row, is_number
from logdash.data.processor import ConversionRecord, ProcessedLog
from logdash.data.stats import ChannelStatistics, compute_stats
from logdash.utils import debug_log
from logdash.utils.colors import assign_colors
from logdash.utils.keys import TIME_KEY, build_key_map
from logdash.utils.units import detect_unit

MAX_RENDER_POINTS = 2000
AUTO_SELECT_COUNT = 3
DEFAULT_AXIS_UNIT = 'val'

EQUALS_TOLERANCE = 0.001
SMART_ZOOM_PAD_FRACTION = 0.1
SMART_ZOOM_MIN_PAD = 0.5

_OPERATORS: Dict[str, Callable[[float, float], bool]] = {
    '>=': operator.ge,
    '≥': operator.ge,
    '<=': operator.le,
    '≤': operator.le,
    '==': lambda value, threshold: abs(value - threshold) <= EQUALS_TOLERANCE,
    '=': lambda value, threshold: abs(value - threshold) <= EQUALS_TOLERANCE,
}


@dataclass(frozen=True)
class ChannelTable:
    """A processed log keyed by safe key instead of header."""
    key_of: Dict[str, str]
    header_of: Dict[str, str]
    channel_keys: List[str]
    rows: List[Row]
    records: Dict[str, ConversionRecord] = field(default_factory=dict)

    @classmethod
    def from_processed(cls, processed: ProcessedLog) -> 'ChannelTable':
        """
        Build the keyed table for a processed log.

        Keys come from the source headers, so a column keeps its key when a
        unit preference renames it. Only columns whose first non-empty cell
        is a number are channels.
        """
        source_keys = build_key_map(processed.source.headers)
        key_of = {header: source_keys[processed.records[header].original_header]
                  for header in processed.headers}
        header_of = {key: header for header, key in key_of.items()}

        channel_keys = []
        for header in processed.headers:
            if header == TIME_KEY:
                continue
            first = next((row[header] for row in processed.rows if row.get(header) is not None), None)
            if is_number(first):
                channel_keys.append(key_of[header])

        rows = [{key_of[header]: row.get(header) for header in processed.headers}
                for row in processed.rows]
        records = {key_of[header]: record for header, record in processed.records.items()}

        return cls(key_of=key_of, header_of=header_of, channel_keys=channel_keys,
                   rows=rows, records=records)


@dataclass(frozen=True)
class ZoomWindow:
    """Time bounds of the view; None means unbounded."""
    left: Optional[float] = None
    right: Optional[float] = None

    @classmethod
    def between(cls, a: float, b: float) -> 'ZoomWindow':
        """Window spanning a and b in either order; empty if a == b."""
        if a == b:
            return cls()
        return cls(min(a, b), max(a, b))

    @property
    def is_set(self) -> bool:
        return self.left is not None or self.right is not None

    def contains(self, time) -> bool:
        if not is_number(time):
            return False
        if self.left is not None and time < self.left:
            return False
        if self.right is not None and time > self.right:
            return False
        return True


@dataclass(frozen=True)
class Segment:
    """A contiguous run of rows matching a condition."""
    start_time: float
    end_time: float
    start_index: int
    end_index: int

    @property
    def duration(self) -> float:
        return self.end_time - self.start_time


@dataclass(frozen=True)
class AxisLayout:
    """Y axis grouping of the selected channels."""
    axis_of: Dict[str, str]
    units: List[str]

    def side_of(self, unit: str) -> str:
        """Axes alternate left/right by sorted position."""
        return 'left' if self.units.index(unit) % 2 == 0 else 'right'


@dataclass(frozen=True)
class RenderFrame:
    """Everything the chart renderer needs for one redraw."""
    rows: List[Row]
    selected_keys: List[str]
    axis_group_of: Dict[str, str]
    axis_units: List[str]
    axis_side_of: Dict[str, str]
    color_of: Dict[str, str]
    label_of: Dict[str, str]
    stats_of: Dict[str, ChannelStatistics]
    zoom: ZoomWindow


def visible_rows(rows: Sequence[Row], window: ZoomWindow) -> List[Row]:
    """Rows whose Time lies inside the window (inclusive); all rows if unset."""
    if not window.is_set:
        return list(rows)
    return [row for row in rows if window.contains(row.get(TIME_KEY))]


def downsample(rows: Sequence[Row], max_points: int = MAX_RENDER_POINTS) -> List[Row]:
    """
    Positional decimation for rendering.

    Keeps every stride-th row so at most max_points rows remain. Display
    only: statistics must use the full visible rows.
    """
    if len(rows) < max_points:
        return list(rows)
    stride = math.ceil(len(rows) / max_points)
    return list(rows[::stride])


def get_operator(name: str) -> Callable[[float, float], bool]:
    """Resolve a smart zoom operator (>=, <=, == and their symbols)."""
    try:
        return _OPERATORS[name]
    except KeyError:
        raise ValueError(f"Unknown smart zoom operator: {name}") from None


def find_segments(rows: Sequence[Row], key: str, op: str, threshold: float) -> List[Segment]:
    """
    Find contiguous runs where ``row[key] op threshold`` holds.

    A run ends at the Time of its last matching row. A run still open at the
    end of the data is included. Rows without a numeric value or Time break
    a run.
    """
    compare = get_operator(op)
    segments = []
    start = None
    last = None

    for i, row in enumerate(rows):
        value = row.get(key)
        time = row.get(TIME_KEY)
        matches = is_number(value) and is_number(time) and compare(value, threshold)

        if matches:
            if start is None:
                start = (i, time)
            last = (i, time)
        elif start is not None:
            segments.append(Segment(start[1], last[1], start[0], last[0]))
            start = None

    if start is not None:
        segments.append(Segment(start[1], last[1], start[0], last[0]))

    return segments


def longest_segment(segments: Sequence[Segment]) -> Optional[Segment]:
    """Longest segment by duration; the first one found wins ties."""
    best = None
    for segment in segments:
        if best is None or segment.duration > best.duration:
            best = segment
    return best


def smart_zoom_window(segment: Segment) -> ZoomWindow:
    """Padded window around a segment, clamped at 0 on the left."""
    pad = max(SMART_ZOOM_PAD_FRACTION * segment.duration, SMART_ZOOM_MIN_PAD)
    return ZoomWindow(max(0.0, segment.start_time - pad), segment.end_time + pad)


def group_axes(selected_keys: Sequence[str], header_of: Dict[str, str]) -> AxisLayout:
    """Assign each selected channel to the axis of its unit."""
    axis_of = {}
    for key in selected_keys:
        unit = detect_unit(header_of.get(key, key)).raw_unit
        axis_of[key] = unit or DEFAULT_AXIS_UNIT
    return AxisLayout(axis_of=axis_of, units=sorted(set(axis_of.values())))


def auto_select(prev_keys: Sequence[str], current_keys: Sequence[str],
                selection: Sequence[str], count: int = AUTO_SELECT_COUNT) -> List[str]:
    """
    Selection after the channel key list changes.

    Appended channels (current is a strict superset of a non-empty prev)
    are added to the selection. On first population with nothing selected
    the first ``count`` channels are selected. Otherwise the selection is
    returned unchanged.
    """
    prev_set = set(prev_keys)
    current_set = set(current_keys)

    if prev_keys and prev_set < current_set:
        new_keys = [k for k in current_keys if k not in prev_set and k not in selection]
        return list(selection) + new_keys

    if not selection and not prev_keys and current_keys:
        return list(current_keys[:count])

    return list(selection)


class ViewController:
    """Selection, zoom window and search state for one loaded log."""

    def __init__(self, max_render_points: int = MAX_RENDER_POINTS,
                 auto_select_count: int = AUTO_SELECT_COUNT):
        self.max_render_points = max_render_points
        self.auto_select_count = auto_select_count
        self.selected: List[str] = []
        self.zoom = ZoomWindow()
        self.search_query = ''
        self._known_keys: List[str] = []

    def reset(self):
        """Forget all view state, as for a freshly loaded file."""
        self.selected = []
        self.zoom = ZoomWindow()
        self.search_query = ''
        self._known_keys = []

    # Selection

    def toggle(self, key: str):
        if key in self.selected:
            self.selected.remove(key)
        else:
            self.selected.append(key)

    def select(self, key: str):
        if key not in self.selected:
            self.selected.append(key)

    def deselect_all(self):
        self.selected = []

    def on_channels_changed(self, current_keys: Sequence[str]):
        """
        Apply the auto-select policy when the channel key list changes.

        Only reacts to a change of the key list, not to repeated calls with
        the same keys. Keys that disappeared are dropped from the selection.
        """
        current_keys = list(current_keys)
        if current_keys == self._known_keys:
            return
        selection = [k for k in self.selected if k in current_keys]
        self.selected = auto_select(self._known_keys, current_keys, selection, self.auto_select_count)
        self._known_keys = current_keys

    # Zoom

    def set_zoom(self, a: float, b: float):
        self.zoom = ZoomWindow.between(a, b)

    def reset_zoom(self):
        self.zoom = ZoomWindow()

    def smart_zoom(self, table: ChannelTable, key: str, op: str, threshold: float) -> Optional[Segment]:
        """
        Zoom to the longest run where the channel satisfies the condition.

        Scans all rows regardless of the current zoom. Does nothing when no
        row matches.

        Returns:
            The chosen Segment, or None if nothing matched
        """
        segment = longest_segment(find_segments(table.rows, key, op, threshold))
        if segment is None:
            debug_log.info(f"Smart zoom: no rows where {key} {op} {threshold}")
            return None

        self.zoom = smart_zoom_window(segment)
        self.select(key)
        debug_log.info(f"Smart zoom: {key} {op} {threshold} -> "
                       f"[{self.zoom.left:.3f}, {self.zoom.right:.3f}]")
        return segment

    # Search

    def set_search(self, query: str):
        self.search_query = query or ''

    def filtered_keys(self, table: ChannelTable) -> List[str]:
        """Channel keys whose label contains the search text (case-insensitive)."""
        if not self.search_query:
            return list(table.channel_keys)
        query = self.search_query.lower()
        return [k for k in table.channel_keys if query in table.header_of[k].lower()]

    # Rendering

    def render(self, table: ChannelTable) -> RenderFrame:
        """Build the render frame for the current state."""
        rows = visible_rows(table.rows, self.zoom)
        layout = group_axes(self.selected, table.header_of)
        return RenderFrame(
            rows=downsample(rows, self.max_render_points),
            selected_keys=list(self.selected),
            axis_group_of=layout.axis_of,
            axis_units=layout.units,
            axis_side_of={unit: layout.side_of(unit) for unit in layout.units},
            color_of=assign_colors(table.channel_keys),
            label_of={k: table.header_of[k] for k in table.channel_keys},
            stats_of={k: compute_stats(rows, k) for k in self.selected},
            zoom=self.zoom,
        )
