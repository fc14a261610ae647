"""
Dashboard session - one loaded datalog and the pipeline derived from it.

The session owns the authoritative source table and the unit preferences.
Every change re-runs processing from the source, so conversion records and
displayed values always come from the same pass.
"""

from pathlib import Path
from typing import Dict, List, Optional

from logdash.data.parser import LogParser, TabularPayload, parse_csv_text
from logdash.data.processor import ProcessedLog, UnitPreferences, process_log
from logdash.data.remote import RemoteLogFetcher, export_csv
from logdash.data.view import ChannelTable, RenderFrame, Segment, ViewController
from logdash.data.virtual_dyno import add_power_channel, power_header
from logdash.utils import debug_log
from logdash.utils.config import DashboardSettings


class DashboardSession:
    """Control entry points and render output for one dashboard."""

    def __init__(self, settings: Optional[DashboardSettings] = None):
        self.settings = settings or DashboardSettings()
        self.view = ViewController(
            max_render_points=self.settings.max_render_points,
            auto_select_count=self.settings.auto_select_count,
        )
        self.fetcher = RemoteLogFetcher(
            allowed_hosts=self.settings.remote_allowed_hosts,
            timeout=self.settings.request_timeout,
        )
        self.source: Optional[TabularPayload] = None
        self.preferences = UnitPreferences(self.settings.default_units)
        self.processed: Optional[ProcessedLog] = None
        self.table: Optional[ChannelTable] = None

    @property
    def is_loaded(self) -> bool:
        return self.table is not None

    def _require_table(self) -> ChannelTable:
        if self.table is None:
            raise RuntimeError("No log loaded")
        return self.table

    def _recompute(self):
        """Rebuild processed log and channel table from the source."""
        self.processed = process_log(self.source, self.preferences)
        self.table = ChannelTable.from_processed(self.processed)
        self.view.on_channels_changed(self.table.channel_keys)

    # Loading

    def load_payload(self, payload: TabularPayload):
        """
        Make a payload the new source.

        Unit preferences are reset to the defaults overridden by the units
        found in the headers, and the view state starts over.
        """
        self.source = payload
        self.preferences = UnitPreferences.from_headers(payload.headers, self.settings.default_units)
        self.view.reset()
        self._recompute()
        debug_log.info(f"Loaded {payload!r}, preferences {self.preferences.as_dict()}")

    def load_file(self, file_path: str):
        self.load_payload(LogParser(file_path).parse())

    def load_text(self, text: str, source_name: str):
        self.load_payload(parse_csv_text(text, source_name))

    def load_url(self, url: str):
        """Fetch a remote log; a repeat of the last completed URL is not reloaded."""
        if self.fetcher.is_current(url) and self.source is not None:
            return
        self.load_payload(self.fetcher.fetch(url))

    def unload(self):
        self.source = None
        self.processed = None
        self.table = None
        self.preferences = UnitPreferences(self.settings.default_units)
        self.view.reset()

    # Control entry points

    def toggle_channel(self, key: str):
        if key not in self._require_table().channel_keys:
            raise KeyError(f"Unknown channel: {key}")
        self.view.toggle(key)

    def deselect_all(self):
        self.view.deselect_all()

    def set_unit_preference(self, unit_type: str, unit: str):
        self.preferences = self.preferences.set(unit_type, unit)
        if self.source is not None:
            self._recompute()

    def set_zoom_window(self, left: float, right: float):
        self.view.set_zoom(left, right)

    def reset_zoom(self):
        self.view.reset_zoom()

    def set_search(self, query: str):
        self.view.set_search(query)

    def request_derived_power(self, rpm_key: str, torque_key: str, output_unit: str = 'hp') -> str:
        """
        Add a virtual dyno power channel to the source and reprocess.

        Args:
            rpm_key: Safe key of the engine speed channel
            torque_key: Safe key of the torque channel
            output_unit: Power unit of the new channel

        Returns:
            Header of the power column added to the source
        """
        table = self._require_table()
        for key in (rpm_key, torque_key):
            if key not in table.header_of:
                raise KeyError(f"Unknown channel: {key}")

        self.source = add_power_channel(
            self.source, self.processed.rows,
            table.header_of[rpm_key], table.header_of[torque_key], output_unit,
        )
        self._recompute()
        return power_header(output_unit)

    def smart_zoom(self, key: str, op: str, value: float) -> Optional[Segment]:
        table = self._require_table()
        if key not in table.header_of:
            raise KeyError(f"Unknown channel: {key}")
        return self.view.smart_zoom(table, key, op, value)

    # Outputs

    def filtered_channels(self) -> List[str]:
        return self.view.filtered_keys(self._require_table())

    def conversion_warnings(self) -> Dict[str, str]:
        """Channel key -> header for channels whose conversion failed."""
        table = self._require_table()
        return {key: table.header_of[key] for key, record in table.records.items() if record.has_error}

    def render_frame(self) -> RenderFrame:
        return self.view.render(self._require_table())

    def export(self, directory: str) -> Path:
        """Write the current source table as CSV."""
        if self.source is None:
            raise RuntimeError("No log loaded")
        return export_csv(self.source, directory)
