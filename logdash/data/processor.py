"""
Unit-aware processing of an ingested datalog.

process_log() is a pure function of (payload, preferences): it classifies
every header, renames converted headers to their target unit, converts the
numeric cells and reports one ConversionRecord per output header. The whole
table is rebuilt on every call.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional
import numpy as np

from logdash.data.parser import TabularPayload, Row, Value, is_number
from logdash.utils import debug_log
from logdash.utils.units import (
    DEFAULT_PREFERENCES, UNITS, canonical_unit, convert_array, convert_value, detect_unit,
    get_unit_definition,
)


@dataclass
class ConversionRecord:
    """How one output header relates to its source header."""
    original_header: str
    original_unit: str = ''
    target_unit: str = ''
    is_converted: bool = False
    has_error: bool = False


@dataclass(frozen=True)
class CellValue:
    """A processed cell together with the value it was computed from."""
    display_value: Value
    raw_value: Value
    converted: bool


class UnitPreferences:
    """
    Preferred unit per unit type.

    Immutable: set() returns a new instance so a processed snapshot never
    sees its preferences change underneath it.
    """

    def __init__(self, preferences: Optional[Mapping[str, str]] = None):
        merged = dict(DEFAULT_PREFERENCES)
        if preferences:
            for unit_type, unit in preferences.items():
                self._validate(unit_type, unit)
                merged[unit_type] = canonical_unit(unit_type, unit)
        self._preferences = merged

    @staticmethod
    def _validate(unit_type: str, unit: str):
        if unit_type not in UNITS:
            raise ValueError(f"Unknown unit type: {unit_type}")
        if get_unit_definition(unit_type, unit) is None:
            raise ValueError(f"Unknown {unit_type} unit: {unit}")

    @classmethod
    def from_headers(cls, headers: List[str],
                     defaults: Optional[Mapping[str, str]] = None) -> 'UnitPreferences':
        """
        Build the preference baseline for a newly loaded file.

        Starts from the defaults and adopts the native unit of every classified
        header; a later header of the same type wins.
        """
        preferences = dict(defaults or DEFAULT_PREFERENCES)
        for header in headers:
            descriptor = detect_unit(header)
            if descriptor.unit_type != 'unknown':
                preferences[descriptor.unit_type] = descriptor.raw_unit
        return cls(preferences)

    def get(self, unit_type: str) -> Optional[str]:
        return self._preferences.get(unit_type)

    def set(self, unit_type: str, unit: str) -> 'UnitPreferences':
        """Return a copy with one preference changed."""
        preferences = dict(self._preferences)
        preferences[unit_type] = unit
        return UnitPreferences(preferences)

    def as_dict(self) -> Dict[str, str]:
        return dict(self._preferences)

    def __eq__(self, other) -> bool:
        return isinstance(other, UnitPreferences) and self._preferences == other._preferences

    def __repr__(self) -> str:
        return f"UnitPreferences({self._preferences})"


@dataclass(frozen=True)
class ProcessedLog:
    """Output of one processing pass."""
    source: TabularPayload
    headers: List[str]
    rows: List[Row]
    records: Dict[str, ConversionRecord] = field(default_factory=dict)

    @property
    def source_name(self) -> str:
        return self.source.source_name

    def original_header(self, header: str) -> str:
        return self.records[header].original_header

    def cell(self, row_index: int, header: str) -> CellValue:
        """
        Get the processed cell with its untouched source value.

        Args:
            row_index: Row position
            header: Output header

        Returns:
            CellValue for the cell
        """
        record = self.records[header]
        raw_value = self.source.rows[row_index].get(record.original_header)
        display_value = self.rows[row_index].get(header)
        converted = False
        if record.is_converted and is_number(raw_value):
            # Cells whose conversion was not finite keep the raw value
            unit_type = detect_unit(record.original_header).unit_type
            value = convert_value(raw_value, unit_type, record.original_unit, record.target_unit)
            converted = is_number(value)
        return CellValue(display_value=display_value, raw_value=raw_value, converted=converted)

    def conversion_errors(self) -> List[str]:
        """Headers whose conversion produced non-finite values."""
        return [header for header, record in self.records.items() if record.has_error]


def _target_header(descriptor, target_unit: str, position: int, used: set) -> str:
    """Substitute the unit bracket, keeping output headers unique."""
    new_header = f"{descriptor.display_name} [{target_unit}]"
    if new_header in used:
        new_header = f"{descriptor.display_name} ({position}) [{target_unit}]"
    return new_header


def _plan_headers(headers: List[str], preferences: UnitPreferences):
    """Work out output headers and conversion records."""
    plan = []
    used = set()
    # Unconverted headers keep their names, so reserve them first
    converting = {}
    for position, header in enumerate(headers):
        descriptor = detect_unit(header)
        if descriptor.unit_type == 'unknown':
            used.add(header)
            continue
        target = preferences.get(descriptor.unit_type) or descriptor.raw_unit
        if canonical_unit(descriptor.unit_type, target) == canonical_unit(descriptor.unit_type, descriptor.raw_unit):
            used.add(header)
        else:
            converting[position] = (descriptor, target)

    for position, header in enumerate(headers):
        descriptor = detect_unit(header)
        if position in converting:
            descriptor, target = converting[position]
            new_header = _target_header(descriptor, target, position, used)
            record = ConversionRecord(
                original_header=header,
                original_unit=descriptor.raw_unit,
                target_unit=target,
                is_converted=True,
            )
        elif descriptor.unit_type != 'unknown':
            new_header = header
            record = ConversionRecord(
                original_header=header,
                original_unit=descriptor.raw_unit,
                target_unit=descriptor.raw_unit,
            )
        else:
            new_header = header
            record = ConversionRecord(original_header=header)
        used.add(new_header)
        plan.append((header, new_header, descriptor, record))
    return plan


def _convert_column(values: List[Value], unit_type: str, record: ConversionRecord) -> List[Value]:
    """Convert the numeric cells of one column; non-finite results keep the raw value."""
    mask = np.array([is_number(v) for v in values], dtype=bool)
    if not mask.any():
        return list(values)

    numeric = np.array([float(v) if m else np.nan for v, m in zip(values, mask)], dtype=np.float64)
    converted = convert_array(numeric, unit_type, record.original_unit, record.target_unit)
    finite = np.isfinite(converted)

    if (mask & ~finite).any():
        record.has_error = True
        debug_log.warning(
            f"Conversion of '{record.original_header}' from {record.original_unit} "
            f"to {record.target_unit} produced non-finite values"
        )

    out = []
    for value, is_num, ok, new_value in zip(values, mask, finite, converted):
        out.append(float(new_value) if is_num and ok else value)
    return out


def process_log(payload: TabularPayload, preferences: UnitPreferences) -> ProcessedLog:
    """
    Apply unit preferences to a payload.

    Args:
        payload: Ingested table
        preferences: Preferred unit per type

    Returns:
        ProcessedLog with renamed headers, converted rows and conversion records
    """
    with debug_log.benchmark("Process log") as metrics:
        plan = _plan_headers(payload.headers, preferences)

        columns = {}
        records = {}
        for header, new_header, descriptor, record in plan:
            values = payload.column(header)
            if record.is_converted:
                values = _convert_column(values, descriptor.unit_type, record)
            columns[new_header] = values
            records[new_header] = record

        new_headers = [new_header for _, new_header, _, _ in plan]
        rows = [
            {new_header: columns[new_header][i] for new_header in new_headers}
            for i in range(len(payload.rows))
        ]

        metrics['extra']['rows'] = len(rows)
        metrics['extra']['converted'] = sum(1 for r in records.values() if r.is_converted)

    return ProcessedLog(source=payload, headers=new_headers, rows=rows, records=records)
