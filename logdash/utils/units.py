"""
Unit registry, header classification and conversion for datalog channels.

Every unit type owns a base unit. Each member unit is a linear (or affine,
for temperature) map onto that base, so any pair of units in a type converts
through the base: ``to.from_base(from.to_base(value))``.
"""

import re
from dataclasses import dataclass
from typing import Dict, Optional, Tuple
import numpy as np


UNIT_TYPES = ('pressure', 'speed', 'temperature', 'afr', 'torque', 'power', 'rpm', 'unknown')

# Matches "Name [Unit]" with the bracket at the end of the header
_HEADER_PATTERN = re.compile(r'^(.*?)\s*\[([^\[\]]*)\]\s*$')


@dataclass(frozen=True)
class UnitDefinition:
    """
    A member unit: ``base = value * factor + offset``.

    Units with ``detectable=False`` are conversion targets only; a header
    carrying one of them is not classified.
    """
    label: str
    factor: float = 1.0
    offset: float = 0.0
    aliases: Tuple[str, ...] = ()
    detectable: bool = True

    def to_base(self, value):
        return value * self.factor + self.offset

    def from_base(self, value):
        # Exact inverse of to_base
        return (value - self.offset) / self.factor


@dataclass(frozen=True)
class ChannelDescriptor:
    """Result of classifying a header string."""
    display_name: str
    raw_unit: Optional[str]
    unit_type: str = 'unknown'

    @property
    def has_unit(self) -> bool:
        return self.raw_unit is not None


# The first definition of each type is its base unit
UNITS: Dict[str, Dict[str, UnitDefinition]] = {
    'pressure': {
        'psig': UnitDefinition('psig', aliases=('psi',)),
        'bar': UnitDefinition('bar', 14.5038, detectable=False),
        'kPa': UnitDefinition('kPa', 0.145038, detectable=False),
        'hPa': UnitDefinition('hPa', 0.0145038),
    },
    'speed': {
        'mph': UnitDefinition('mph'),
        'km/h': UnitDefinition('km/h', 0.621371),
    },
    'temperature': {
        '°F': UnitDefinition('°F', aliases=('F',)),
        '°C': UnitDefinition('°C', 9 / 5, 32.0, aliases=('C',)),
    },
    'afr': {
        'AFR': UnitDefinition('AFR'),
        'λ': UnitDefinition('λ', 14.7, aliases=('Lambda',)),  # gasoline stoich
    },
    'torque': {
        'Nm': UnitDefinition('Nm'),
        'kgfm': UnitDefinition('kgfm', 9.80665),
    },
    'power': {
        'kW': UnitDefinition('kW'),
        'hp': UnitDefinition('hp', 0.7457),
        'cv': UnitDefinition('cv', 0.7355),
        'whp': UnitDefinition('whp', 0.7457),
    },
    'rpm': {
        'rpm': UnitDefinition('rpm', aliases=('RPM',)),
    },
}

# Preference defaults, one entry per known type
DEFAULT_PREFERENCES: Dict[str, str] = {
    'pressure': 'psig',
    'speed': 'mph',
    'temperature': '°F',
    'afr': 'AFR',
    'torque': 'Nm',
    'power': 'hp',
    'rpm': 'rpm',
}


def _build_classification() -> Dict[str, str]:
    """Map every detectable unit token (labels and aliases) to its unit type."""
    lookup = {}
    for unit_type, members in UNITS.items():
        for definition in members.values():
            if not definition.detectable:
                continue
            lookup[definition.label] = unit_type
            for alias in definition.aliases:
                lookup[alias] = unit_type
    return lookup


_UNIT_TYPE_BY_TOKEN = _build_classification()


def classify_unit(unit: Optional[str]) -> str:
    """Return the unit type for a unit token, or 'unknown'."""
    if unit is None:
        return 'unknown'
    return _UNIT_TYPE_BY_TOKEN.get(unit, 'unknown')


def detect_unit(header: str) -> ChannelDescriptor:
    """
    Parse a header of the form ``"Name [Unit]"``.

    Headers without a trailing bracket yield no unit. Tokens that are not in
    the registry are still reported, with type 'unknown'.

    Args:
        header: Raw column header

    Returns:
        ChannelDescriptor for the header
    """
    match = _HEADER_PATTERN.match(header)
    if not match:
        return ChannelDescriptor(display_name=header.strip(), raw_unit=None)

    name = match.group(1).strip()
    unit = match.group(2).strip()
    return ChannelDescriptor(display_name=name, raw_unit=unit, unit_type=classify_unit(unit))


def get_unit_definition(unit_type: str, unit: str) -> Optional[UnitDefinition]:
    """Look up a unit by label or alias within a type."""
    members = UNITS.get(unit_type)
    if not members:
        return None
    definition = members.get(unit)
    if definition is not None:
        return definition
    for candidate in members.values():
        if unit in candidate.aliases:
            return candidate
    return None


def canonical_unit(unit_type: str, unit: str) -> str:
    """Return the registry label for a unit token, or the token unchanged."""
    definition = get_unit_definition(unit_type, unit)
    return definition.label if definition else unit


def get_base_unit(unit_type: str) -> Optional[str]:
    """Get the base unit label for a type."""
    members = UNITS.get(unit_type)
    if not members:
        return None
    return next(iter(members.values())).label


def get_available_units(unit_type: str) -> list:
    """Get the unit labels available for a type."""
    if unit_type in UNITS:
        return [definition.label for definition in UNITS[unit_type].values()]
    return []


def convert_value(value: float, unit_type: str, from_unit: str, to_unit: str) -> float:
    """
    Convert a value between two units of the same type.

    Unknown types, identical units and units missing from the registry all
    return the value untouched.

    Args:
        value: Value to convert
        unit_type: Unit type of both units
        from_unit: Source unit
        to_unit: Target unit

    Returns:
        Converted value
    """
    if unit_type == 'unknown' or from_unit == to_unit:
        return value

    from_def = get_unit_definition(unit_type, from_unit)
    to_def = get_unit_definition(unit_type, to_unit)
    if from_def is None or to_def is None or from_def is to_def:
        return value

    return to_def.from_base(from_def.to_base(value))


def convert_array(values: np.ndarray, unit_type: str, from_unit: str, to_unit: str) -> np.ndarray:
    """
    Convert an array of values between two units of the same type.

    Same no-op rules as convert_value. NaN stays NaN.
    """
    if unit_type == 'unknown' or from_unit == to_unit:
        return values

    from_def = get_unit_definition(unit_type, from_unit)
    to_def = get_unit_definition(unit_type, to_unit)
    if from_def is None or to_def is None or from_def is to_def:
        return values

    with np.errstate(all='ignore'):
        return to_def.from_base(from_def.to_base(np.asarray(values, dtype=np.float64)))
