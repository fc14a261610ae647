"""
Main entry point for LogDash.
"""

import sys
import argparse

from logdash.data.dashboard import DashboardSession
from logdash.data.parser import IngestionError
from logdash.utils import debug_log
from logdash.utils.config import DashboardSettings

# Version number
VERSION = "0.1.0"


def _unit_assignment(text: str):
    """Parse TYPE=UNIT."""
    if '=' not in text:
        raise argparse.ArgumentTypeError(f"expected TYPE=UNIT, got '{text}'")
    unit_type, unit = text.split('=', 1)
    return unit_type.strip(), unit.strip()


def parse_args(argv=None):
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description='LogDash - Vehicle Datalog Dashboard',
        formatter_class=argparse.RawDescriptionHelpFormatter
    )

    parser.add_argument('source', type=str, help='CSV log file path or URL')
    parser.add_argument('--unit', action='append', default=[], type=_unit_assignment,
                        metavar='TYPE=UNIT', help='Unit preference, e.g. pressure=bar')
    parser.add_argument('--dyno', nargs=2, metavar=('RPM_KEY', 'TORQUE_KEY'),
                        help='Add a virtual dyno power channel')
    parser.add_argument('--power-unit', default='hp', help='Power unit for --dyno (default: hp)')
    parser.add_argument('--select', action='append', default=[], metavar='KEY',
                        help='Toggle a channel into the selection')
    parser.add_argument('--zoom', nargs=2, type=float, metavar=('LEFT', 'RIGHT'),
                        help='Zoom to a time window')
    parser.add_argument('--smart-zoom', nargs=3, metavar=('KEY', 'OP', 'VALUE'),
                        help='Zoom to the longest run where KEY OP VALUE holds (OP: >=, <=, ==)')
    parser.add_argument('--search', default='', help='Only list channels matching this text')
    parser.add_argument('--export', metavar='DIR', help='Export the log as CSV into DIR')
    parser.add_argument('--settings', metavar='FILE', help='Settings file to use')
    parser.add_argument('--debug', action='store_true', help='Enable debug logging')
    parser.add_argument('--version', action='version', version=f'LogDash {VERSION}')

    return parser.parse_args(argv)


def _format_number(value) -> str:
    return f"{value:,.2f}" if isinstance(value, (int, float)) else str(value)


def print_summary(session: DashboardSession, out=None):
    """Print the channel list and the stats of the selected channels."""
    out = out or sys.stdout
    table = session.table
    frame = session.render_frame()
    warnings = session.conversion_warnings()

    print(f"{session.source.source_name}: {len(table.rows)} rows, "
          f"{len(table.channel_keys)} channels", file=out)
    zoom = frame.zoom
    if zoom.is_set:
        print(f"Zoom: {_format_number(zoom.left)} .. {_format_number(zoom.right)}", file=out)

    print("\nChannels:", file=out)
    for key in session.filtered_channels():
        record = table.records[key]
        marks = []
        if key in frame.selected_keys:
            marks.append('selected')
        if record.is_converted:
            marks.append(f"{record.original_unit} -> {record.target_unit}")
        if key in warnings:
            marks.append('conversion error')
        suffix = f"  ({', '.join(marks)})" if marks else ''
        print(f"  {key:<30} {table.header_of[key]}{suffix}", file=out)

    if frame.selected_keys:
        print("\nStatistics:", file=out)
        print(f"  {'Channel':<30} {'Min':>12} {'Max':>12} {'Avg':>12}  Axis", file=out)
        for key in frame.selected_keys:
            stats = frame.stats_of[key]
            axis = frame.axis_group_of[key]
            print(f"  {key:<30} {_format_number(stats.min):>12} {_format_number(stats.max):>12} "
                  f"{_format_number(stats.avg):>12}  {axis} ({frame.axis_side_of[axis]})", file=out)


def run(args) -> int:
    """Run the CLI with parsed arguments; returns the exit code."""
    settings = DashboardSettings.load(args.settings)
    if args.debug:
        settings.debug_enabled = True
    debug_log.init_from_settings(settings)

    session = DashboardSession(settings)
    try:
        if args.source.startswith(('http://', 'https://')):
            session.load_url(args.source)
        else:
            session.load_file(args.source)
    except (FileNotFoundError, IngestionError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    try:
        for unit_type, unit in args.unit:
            session.set_unit_preference(unit_type, unit)

        if args.dyno:
            header = session.request_derived_power(args.dyno[0], args.dyno[1], args.power_unit)
            print(f"Added {header}")

        for key in args.select:
            session.toggle_channel(key)

        if args.zoom:
            session.set_zoom_window(*args.zoom)

        if args.smart_zoom:
            key, op, value = args.smart_zoom
            if session.smart_zoom(key, op, float(value)) is None:
                print(f"Smart zoom: no data where {key} {op} {value}")
    except (KeyError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2

    session.set_search(args.search)
    print_summary(session)

    if args.export:
        path = session.export(args.export)
        print(f"\nExported to {path}")

    return 0


def main():
    """Main application entry point."""
    args = parse_args()
    try:
        code = run(args)
    finally:
        debug_log.shutdown()
    sys.exit(code)


if __name__ == '__main__':
    main()
