#!/usr/bin/env python3
"""
slotcal - A time-slot calendar with recurring events.

This is the command line entry point.
"""

import sys
import argparse
from datetime import date
from pathlib import Path

from slotcal.config import Config, scope_label
from slotcal.date_utils import TIME_SLOTS
from slotcal.event_model import Recurrence, Scope, Tag, available_scopes
from slotcal.event_storage import create_storage_backend
from slotcal.event_store import EventStore
from slotcal.exceptions import CalendarError
from slotcal.ics_export import export_ics
from slotcal.timezone_utils import set_timezone


def parse_args(argv=None):
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="slotcal - A time-slot calendar with recurring events"
    )
    parser.add_argument(
        "-c", "--config",
        type=Path,
        help="Path to configuration file (default: auto-detect)"
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug output"
    )
    sub = parser.add_subparsers(dest="command", required=True)

    list_cmd = sub.add_parser("list", help="List events in a date range")
    list_cmd.add_argument("start", type=date.fromisoformat)
    list_cmd.add_argument("end", type=date.fromisoformat)

    add_cmd = sub.add_parser("add", help="Create an event")
    add_cmd.add_argument("title")
    add_cmd.add_argument("date", type=date.fromisoformat)
    add_cmd.add_argument("--slot", default=TIME_SLOTS[0], choices=TIME_SLOTS)
    add_cmd.add_argument("--tag", default=Tag.PRIVATE.value, choices=[t.value for t in Tag])
    add_cmd.add_argument("--repeat", default=Recurrence.NONE.value, choices=[r.value for r in Recurrence])
    add_cmd.add_argument("--every", type=int, help="Interval in days for --repeat custom")
    add_cmd.add_argument("--description")

    edit_cmd = sub.add_parser("edit", help="Edit an event or occurrence")
    edit_cmd.add_argument("id")
    edit_cmd.add_argument("--scope", default=Scope.SINGLE.value, choices=[s.value for s in Scope])
    edit_cmd.add_argument("--title")
    edit_cmd.add_argument("--date", type=date.fromisoformat)
    edit_cmd.add_argument("--slot", choices=TIME_SLOTS)
    edit_cmd.add_argument("--description")

    delete_cmd = sub.add_parser("delete", help="Delete an event or occurrence")
    delete_cmd.add_argument("id")
    delete_cmd.add_argument("--scope", default=Scope.SINGLE.value, choices=[s.value for s in Scope])

    export_cmd = sub.add_parser("export", help="Write the calendar as iCalendar")
    export_cmd.add_argument("-o", "--output", type=Path, help="Output file (default: stdout)")

    return parser.parse_args(argv)


def run_command(args, store: EventStore, config: Config) -> int:
    if args.command == "list":
        for event in store.get_events_in_range(args.start, args.end):
            scopes = "/".join(scope_label(s, config.labels) for s in available_scopes(event))
            print(f"{event.date}  {event.time_slot}  {event.title}  [{event.id}]  ({scopes})")

    elif args.command == "add":
        event = store.create(
            title=args.title,
            date=args.date,
            time_slot=args.slot,
            tag=args.tag,
            recurrence=args.repeat,
            description=args.description,
            custom_interval_days=args.every,
        )
        print(event.id)

    elif args.command == "edit":
        patch = {}
        if args.title is not None:
            patch["title"] = args.title
        if args.date is not None:
            patch["date"] = args.date
        if args.slot is not None:
            patch["time_slot"] = args.slot
        if args.description is not None:
            patch["description"] = args.description
        event = store.update_scoped(args.id, args.scope, patch)
        print(event.id)

    elif args.command == "delete":
        store.delete_scoped(args.id, args.scope)

    elif args.command == "export":
        text = export_ics(store)
        if args.output:
            args.output.write_text(text, encoding="utf-8")
        else:
            sys.stdout.write(text)

    return 0


def main(argv=None):
    """Main entry point."""
    args = parse_args(argv)

    # Load configuration
    try:
        config = Config.load(args.config)
    except FileNotFoundError:
        if args.config is not None:
            print(f"Error: Configuration file not found: {args.config}")
            return 1
        config = Config()
    except Exception as e:
        print(f"Error loading configuration: {e}")
        return 1

    set_timezone(config.timezone)

    if args.debug:
        print(f"Loaded configuration from: {args.config or Config.get_default_config_path()}")
        print(f"  Storage: {config.storage_dir} ({config.storage_key})")
        print(f"  Timezone: {config.timezone}")

    store = EventStore(create_storage_backend(config.storage_dir, config.storage_key))

    try:
        return run_command(args, store, config)
    except (CalendarError, ValueError) as e:
        print(f"Error: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
