"""
Virtual dyno - engine power derived from RPM and torque channels.

P[kW] = T[Nm] * n[rpm] / 9549
"""

from typing import Dict, List, Optional, Sequence, Tuple
import numpy as np

from logdash.data.parser import Row, TabularPayload, Value, is_number
from logdash.utils import debug_log
from logdash.utils.units import convert_array, detect_unit, get_base_unit, get_unit_definition

# Nm * rpm / kW
POWER_CONSTANT = 9549.0

# Unit types offered as the speed source, in preference order
RPM_SOURCE_TYPES = ('rpm', 'speed')


def power_header(power_unit: str) -> str:
    """Header of the derived power channel."""
    return f"Power [{power_unit}]"


def find_dyno_channels(headers: Sequence[str]) -> Dict[str, List[str]]:
    """
    List headers usable as virtual dyno sources.

    Args:
        headers: Current table headers

    Returns:
        Dict with 'rpm' and 'torque' candidate lists, in header order
    """
    candidates = {'rpm': [], 'torque': []}
    for header in headers:
        unit_type = detect_unit(header).unit_type
        if unit_type in RPM_SOURCE_TYPES:
            candidates['rpm'].append(header)
        elif unit_type == 'torque':
            candidates['torque'].append(header)
    return candidates


def suggest_dyno_channels(headers: Sequence[str]) -> Tuple[Optional[str], Optional[str]]:
    """First RPM-like and first torque header, if any."""
    candidates = find_dyno_channels(headers)
    rpm = candidates['rpm'][0] if candidates['rpm'] else None
    torque = candidates['torque'][0] if candidates['torque'] else None
    return rpm, torque


def compute_power(rows: Sequence[Row], rpm_header: str, torque_header: str,
                  power_unit: str = 'hp') -> List[Value]:
    """
    Compute engine power for every row.

    Torque is normalised to Nm using the unit in its header; a header
    without a recognised torque unit is taken as Nm already. Rows where
    either source is not numeric get None.

    Args:
        rows: Table rows keyed by header
        rpm_header: Engine speed column
        torque_header: Torque column
        power_unit: Output power unit (kW, hp, cv, whp)

    Returns:
        One power value (or None) per row
    """
    if get_unit_definition('power', power_unit) is None:
        raise ValueError(f"Unknown power unit: {power_unit}")

    rpm = np.array([float(r.get(rpm_header)) if is_number(r.get(rpm_header)) else np.nan
                    for r in rows], dtype=np.float64)
    torque = np.array([float(r.get(torque_header)) if is_number(r.get(torque_header)) else np.nan
                       for r in rows], dtype=np.float64)

    descriptor = detect_unit(torque_header)
    if descriptor.unit_type == 'torque':
        torque = convert_array(torque, 'torque', descriptor.raw_unit, get_base_unit('torque'))

    power_kw = torque * rpm / POWER_CONSTANT
    power = convert_array(power_kw, 'power', get_base_unit('power'), power_unit)

    valid = np.isfinite(power)
    return [float(p) if ok else None for p, ok in zip(power, valid)]


def add_power_channel(payload: TabularPayload, rows: Sequence[Row], rpm_header: str,
                      torque_header: str, power_unit: str = 'hp') -> TabularPayload:
    """
    Append (or replace) a "Power [unit]" column on a payload.

    Args:
        payload: Source table that receives the column
        rows: Rows the sources are read from, aligned with payload.rows
        rpm_header: Engine speed column in rows
        torque_header: Torque column in rows
        power_unit: Output power unit

    Returns:
        New payload including the power column
    """
    values = compute_power(rows, rpm_header, torque_header, power_unit)
    header = power_header(power_unit)
    filled = sum(1 for v in values if v is not None)
    debug_log.info(f"Virtual dyno: '{header}' from '{rpm_header}' x '{torque_header}', "
                   f"{filled}/{len(values)} rows")
    return payload.with_column(header, values)
