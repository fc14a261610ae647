"""
CSV datalog ingestion.

A datalog is a CSV file with a header row; each header is a channel name,
optionally carrying a unit as "Name [Unit]". Parsing produces a
TabularPayload: ordered headers plus one row mapping per data line, with
every cell typed as a number, a string or None.
"""

import io
import math
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Union
import numpy as np
import pandas as pd

from logdash.utils import debug_log

Value = Union[int, float, str, None]
Row = Dict[str, Value]

TIME_HEADER = 'Time'


class IngestionError(ValueError):
    """Raised when a source cannot produce a usable table."""


def is_number(value) -> bool:
    """True for finite int/float cells (bools excluded)."""
    if isinstance(value, bool) or not isinstance(value, (int, float, np.number)):
        return False
    return math.isfinite(value)


@dataclass(frozen=True)
class TabularPayload:
    """An ingested table. Treated as an immutable snapshot."""
    source_name: str
    headers: List[str]
    rows: List[Row] = field(default_factory=list)

    def column(self, header: str) -> List[Value]:
        """Get all cells of one column, in row order."""
        return [row.get(header) for row in self.rows]

    def with_column(self, header: str, values: List[Value]) -> 'TabularPayload':
        """
        Return a new payload with a column replaced or appended.

        Args:
            header: Column header
            values: One cell per row

        Returns:
            New TabularPayload; self is not modified
        """
        if len(values) != len(self.rows):
            raise ValueError(f"Column '{header}' has {len(values)} values for {len(self.rows)} rows")

        headers = list(self.headers)
        if header not in headers:
            headers.append(header)

        rows = []
        for row, value in zip(self.rows, values):
            new_row = dict(row)
            new_row[header] = value
            rows.append(new_row)
        return TabularPayload(source_name=self.source_name, headers=headers, rows=rows)

    def to_frame(self) -> pd.DataFrame:
        """Get the table as a DataFrame with columns in header order."""
        return pd.DataFrame(self.rows, columns=self.headers)

    def to_csv_text(self) -> str:
        """Serialize the table back to CSV text."""
        return self.to_frame().to_csv(index=False)

    def __repr__(self) -> str:
        return (f"TabularPayload(source={self.source_name}, "
                f"headers={len(self.headers)}, rows={len(self.rows)})")


def _native(value) -> Value:
    """Convert a pandas/numpy cell to a plain Python value."""
    if isinstance(value, np.generic):
        value = value.item()
    if isinstance(value, float) and math.isnan(value):
        return None
    if isinstance(value, float) and value.is_integer() and abs(value) < 2 ** 53:
        # Keep integral cells as ints, like the CSV text they came from
        return int(value)
    return value


def _type_column(series: pd.Series) -> pd.Series:
    """Numeric text becomes a number; everything else stays as read."""
    if pd.api.types.is_numeric_dtype(series):
        return series
    numeric = pd.to_numeric(series, errors='coerce')
    return numeric.astype(object).where(numeric.notna(), series)


def _frame_to_payload(df: pd.DataFrame, source_name: str, sort_by_time: bool) -> TabularPayload:
    """Build a TabularPayload from a parsed DataFrame."""
    headers = [str(c).strip() for c in df.columns]
    df.columns = headers

    if not headers or len(df) == 0:
        raise IngestionError("CSV file appears to be empty.")

    for header in headers:
        df[header] = _type_column(df[header])

    if TIME_HEADER in df.columns:
        df = _check_time_order(df, sort_by_time)

    rows = []
    for record in df.itertuples(index=False, name=None):
        rows.append({header: _native(value) for header, value in zip(headers, record)})

    debug_log.info(f"Ingested '{source_name}': {len(headers)} headers, {len(rows)} rows")
    return TabularPayload(source_name=source_name, headers=headers, rows=rows)


def _check_time_order(df: pd.DataFrame, sort_by_time: bool) -> pd.DataFrame:
    """Sort rows by Time once if they are out of order."""
    time_values = pd.to_numeric(df[TIME_HEADER], errors='coerce')
    if time_values.isna().all() or time_values.dropna().is_monotonic_increasing:
        return df

    if not sort_by_time:
        raise IngestionError("Time column is not in ascending order.")

    debug_log.warning("Time column is not in ascending order, sorting rows by Time")
    order = np.argsort(time_values.to_numpy(dtype=np.float64, na_value=np.inf), kind='stable')
    return df.iloc[order].reset_index(drop=True)


def parse_csv_text(text: str, source_name: str, sort_by_time: bool = True) -> TabularPayload:
    """
    Parse CSV text with a header row into a TabularPayload.

    Args:
        text: CSV content
        source_name: Name reported for the source (file name or URL)
        sort_by_time: Sort out-of-order Time rows instead of failing

    Returns:
        Parsed TabularPayload

    Raises:
        IngestionError: If the text is empty or malformed
    """
    if not text or not text.strip():
        raise IngestionError("CSV file appears to be empty.")

    with debug_log.benchmark("Parse CSV") as metrics:
        try:
            df = pd.read_csv(
                io.StringIO(text),
                skip_blank_lines=True,
                skipinitialspace=True,
                na_values=['', ' '],
                dtype=object,
                keep_default_na=True,
            )
        except (pd.errors.EmptyDataError, pd.errors.ParserError) as e:
            raise IngestionError(f"Failed to parse CSV: {e}") from e

        payload = _frame_to_payload(df, source_name, sort_by_time)
        metrics['extra']['rows'] = len(payload.rows)

    return payload


class LogParser:
    """Parser for CSV datalog files on disk."""

    def __init__(self, file_path: str, sort_by_time: bool = True, encoding: str = 'utf-8'):
        """
        Initialize parser with a log file path.

        Args:
            file_path: Path to the .csv log file
            sort_by_time: Sort out-of-order Time rows instead of failing
            encoding: Text encoding of the file
        """
        self.file_path = Path(file_path)
        self.sort_by_time = sort_by_time
        self.encoding = encoding

    def parse(self) -> TabularPayload:
        """
        Parse the log file.

        Returns:
            TabularPayload with the file contents

        Raises:
            FileNotFoundError: If the log file doesn't exist
            IngestionError: If the file is not a CSV or is empty/malformed
        """
        if not self.file_path.exists():
            raise FileNotFoundError(f"Log file not found: {self.file_path}")

        if self.file_path.suffix.lower() != '.csv':
            raise IngestionError("Please upload a valid CSV file.")

        try:
            text = self.file_path.read_text(encoding=self.encoding)
        except UnicodeDecodeError as e:
            raise IngestionError(f"Failed to read {self.file_path.name}: {e}") from e

        return parse_csv_text(text, self.file_path.name, sort_by_time=self.sort_by_time)
