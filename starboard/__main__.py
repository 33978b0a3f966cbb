"""CLI entry point for StarBoard."""

import argparse
import asyncio
import json
import logging
import sys
import traceback
from datetime import datetime
from pathlib import Path

from .classroom import ClassroomError, ClassroomService
from .config import load_config
from .exporter import (
    ImportFormatError,
    default_export_filename,
    export_backup,
    export_classes_csv,
    export_json,
    export_students_csv,
    parse_import,
)
from .sync import IntegritySweep, SyncOrchestrator


class JSONFormatter(logging.Formatter):
    """JSON formatter for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        log_data = {
            "timestamp": datetime.fromtimestamp(record.created).isoformat(),
            "level": record.levelname,
            "component": record.name,
            "message": record.getMessage(),
        }

        if record.exc_info:
            log_data["exception"] = "".join(traceback.format_exception(*record.exc_info))

        try:
            return json.dumps(log_data)
        except (TypeError, ValueError):
            log_data["message"] = str(log_data["message"])
            if "exception" in log_data:
                log_data["exception"] = str(log_data["exception"])
            return json.dumps(log_data)


def setup_logging(verbose: bool = False, log_level: str | None = None, json_output: bool = False) -> None:
    """Configure logging.

    Args:
        verbose: Enable debug logging (ignored if log_level is set).
        log_level: Explicit log level (warning, info, debug).
        json_output: Output logs as JSON lines for machine parsing.
    """
    if log_level:
        level_map = {
            "warning": logging.WARNING,
            "info": logging.INFO,
            "debug": logging.DEBUG,
        }
        level = level_map.get(log_level, logging.INFO)
    else:
        level = logging.DEBUG if verbose else logging.WARNING

    handler = logging.StreamHandler()
    if json_output:
        handler.setFormatter(JSONFormatter())
    else:
        formatter = logging.Formatter(
            fmt="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
        handler.setFormatter(formatter)

    logging.basicConfig(
        level=level,
        handlers=[handler],
    )


async def cmd_status(args: argparse.Namespace) -> int:
    """Show which tiers are reachable and where the data comes from."""
    config = load_config(args.config)

    async with SyncOrchestrator.from_config(config) as sync:
        tiers = await sync.check_tiers()
        data = sync.get_data()
        status = sync.status

        status_data = {
            "timestamp": datetime.now().isoformat(),
            "source": status.source.value,
            "message": status.message,
            "tiers": tiers,
            "classes": len(data["classes"]),
            "metadata": data.get("metadata", {}),
        }

    if args.json:
        print(json.dumps(status_data, indent=2))
        return 0

    print(f"Data source: {status.message}")
    for name, reachable in tiers.items():
        print(f"  {name}: {'reachable' if reachable else 'unreachable'}")
    print(f"Classes: {status_data['classes']}")
    print(f"Backup count: {status_data['metadata'].get('backupCount', 0)}")
    return 0


async def cmd_show(args: argparse.Namespace) -> int:
    """Print a class or global leaderboard."""
    config = load_config(args.config)

    async with SyncOrchestrator.from_config(config) as sync:
        service = ClassroomService(sync)
        if args.class_name and args.class_name not in service.list_classes():
            print(f"Error: Class '{args.class_name}' does not exist", file=sys.stderr)
            return 1
        entries = service.leaderboard(args.class_name, args.search or "")

    if not entries:
        print("No students found")
        return 0

    for entry in entries:
        badges = f" [{', '.join(entry.badges)}]" if entry.badges else ""
        where = f" ({entry.class_name})" if args.class_name is None else ""
        print(f"#{entry.rank:<3} {entry.name}{where}: {entry.stars} stars{badges}")
    return 0


async def cmd_export(args: argparse.Namespace) -> int:
    """Write the current document to a JSON file."""
    config = load_config(args.config)

    async with SyncOrchestrator.from_config(config) as sync:
        data = sync.get_data()

    output = args.output or Path(default_export_filename(
        "starboard-backup" if args.backup else "starboard-data"
    ))
    content = export_backup(data, args.created_by) if args.backup else export_json(data)
    output.write_text(content, encoding="utf-8")
    print(f"Data exported to {output}")
    return 0


async def cmd_import(args: argparse.Namespace) -> int:
    """Replace the current document with an exported file."""
    config = load_config(args.config)

    try:
        imported = parse_import(args.file.read_text(encoding="utf-8"))
    except (OSError, ImportFormatError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    if not args.yes:
        print(f"This will replace all current data ({len(imported['classes'])} classes to import).")
        answer = input("Continue? [y/N] ")
        if answer.strip().lower() not in ("y", "yes"):
            print("Import cancelled")
            return 1

    async with SyncOrchestrator.from_config(config) as sync:
        if not await sync.save_data(imported):
            print("Error: Invalid data structure", file=sys.stderr)
            return 1

    print("Data imported successfully")
    return 0


async def cmd_export_csv(args: argparse.Namespace) -> int:
    """Export students or classes as CSV."""
    config = load_config(args.config)

    async with SyncOrchestrator.from_config(config) as sync:
        data = sync.get_data()

    if args.kind == "students":
        content = export_students_csv(data)
    else:
        content = export_classes_csv(data)

    output = args.output or Path(f"{args.kind}-export.csv")
    output.write_text(content, encoding="utf-8")
    print(f"{args.kind} exported to {output}")
    return 0


async def _run_mutation(args: argparse.Namespace, action) -> int:
    config = load_config(args.config)

    async with SyncOrchestrator.from_config(config) as sync:
        service = ClassroomService(sync)
        try:
            message = await action(service)
        except ClassroomError as e:
            print(f"Error: {e}", file=sys.stderr)
            return 1
        state = sync.status.message

    print(message)
    print(f"({state})")
    return 0


async def cmd_add_class(args: argparse.Namespace) -> int:
    """Create a class."""
    async def action(service: ClassroomService) -> str:
        await service.create_class(args.name, args.description or "")
        return f"Class '{args.name}' created"

    return await _run_mutation(args, action)


async def cmd_add_student(args: argparse.Namespace) -> int:
    """Add a student to a class."""
    async def action(service: ClassroomService) -> str:
        student_id = await service.add_student(args.class_name, args.name, args.stars)
        return f"Student '{args.name}' added with id {student_id}"

    return await _run_mutation(args, action)


async def cmd_stars(args: argparse.Namespace) -> int:
    """Add or remove stars for a student."""
    if args.amount == 0:
        print("Error: Amount must not be zero", file=sys.stderr)
        return 1

    async def action(service: ClassroomService) -> str:
        change = await service.modify_stars(args.class_name, args.student_id, args.amount)
        verb = "added" if args.amount > 0 else "removed"
        plural = "s" if abs(args.amount) != 1 else ""
        lines = [f"{abs(args.amount)} star{plural} {verb} for {change.name} (now {change.new_stars})"]
        for milestone in change.achievements:
            lines.append(f"{change.name} earned the {milestone} star achievement!")
        return "\n".join(lines)

    return await _run_mutation(args, action)


async def cmd_sweep(args: argparse.Namespace) -> int:
    """Run the data-integrity sweep once, or continuously with --watch."""
    config = load_config(args.config)

    if args.watch and not config.sync.integrity_sweep_enabled:
        print("Error: Integrity sweep is disabled in configuration", file=sys.stderr)
        return 1

    async with SyncOrchestrator.from_config(config) as sync:
        sweep = IntegritySweep(sync, config.sync.integrity_interval_seconds)
        if not args.watch:
            changed = await sweep.run_once()
            print("Data cleanup performed" if changed else "No problems found")
            return 0

        try:
            await sweep.start()
            await asyncio.Event().wait()
        except (KeyboardInterrupt, asyncio.CancelledError):
            print("\nShutting down...")
        finally:
            await sweep.stop()
    return 0


async def cmd_serve(args: argparse.Namespace) -> int:
    """Serve the remote tier endpoints."""
    config = load_config(args.config)

    try:
        import uvicorn

        from .server import LegacyBlobStore, PrimaryRowStore, create_app
    except ImportError as e:
        print(f"Server dependencies not installed: {e}", file=sys.stderr)
        return 1

    primary = PrimaryRowStore(config.server.primary_db_path)
    primary.connect()
    legacy = LegacyBlobStore(config.server.legacy_blob_dir)

    host = args.host or config.server.host
    port = args.port or config.server.port
    print("Starting StarBoard storage server")
    print(f"Primary tier: http://{host}:{port}/api/primary")
    print(f"Legacy tier:  http://{host}:{port}/api/legacy")

    app = create_app(config, primary=primary, legacy=legacy)

    try:
        verbose = getattr(args, "verbose", False)
        config_uvicorn = uvicorn.Config(
            app,
            host=host,
            port=port,
            log_level="info" if verbose else "warning",
        )
        server = uvicorn.Server(config_uvicorn)
        await server.serve()
    finally:
        primary.close()

    return 0


def main() -> int:
    """Main entry point."""
    parser = argparse.ArgumentParser(
        prog="starboard",
        description="Classroom star leaderboard with cloud and local sync",
    )
    parser.add_argument(
        "-c", "--config",
        type=Path,
        default=None,
        help="Path to config file (default: built-in defaults)",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose logging",
    )
    parser.add_argument(
        "--log-level",
        type=str,
        choices=["warning", "info", "debug"],
        default=None,
        help="Set log level explicitly (overrides -v/--verbose)",
    )
    parser.add_argument(
        "--json-logs",
        action="store_true",
        help="Output logs as JSON for machine parsing",
    )

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # Status command
    status_parser = subparsers.add_parser("status", help="Check storage tier status")
    status_parser.add_argument(
        "--json",
        action="store_true",
        help="Output status as JSON",
    )
    status_parser.set_defaults(func=cmd_status)

    # Show command
    show_parser = subparsers.add_parser("show", help="Show a leaderboard")
    show_parser.add_argument(
        "class_name",
        nargs="?",
        default=None,
        help="Class to show (default: global leaderboard)",
    )
    show_parser.add_argument("-s", "--search", help="Filter students by name")
    show_parser.set_defaults(func=cmd_show)

    # Export command
    export_parser = subparsers.add_parser("export", help="Export data as JSON")
    export_parser.add_argument("-o", "--output", type=Path, default=None)
    export_parser.add_argument(
        "--backup",
        action="store_true",
        help="Include backup information in the export",
    )
    export_parser.add_argument("--created-by", default=None)
    export_parser.set_defaults(func=cmd_export)

    # Import command
    import_parser = subparsers.add_parser("import", help="Replace data from a JSON export")
    import_parser.add_argument("file", type=Path)
    import_parser.add_argument(
        "-y", "--yes",
        action="store_true",
        help="Do not ask for confirmation",
    )
    import_parser.set_defaults(func=cmd_import)

    # CSV export command
    csv_parser = subparsers.add_parser("export-csv", help="Export students or classes as CSV")
    csv_parser.add_argument("kind", choices=["students", "classes"])
    csv_parser.add_argument("-o", "--output", type=Path, default=None)
    csv_parser.set_defaults(func=cmd_export_csv)

    # Class and student commands
    add_class_parser = subparsers.add_parser("add-class", help="Create a class")
    add_class_parser.add_argument("name")
    add_class_parser.add_argument("-d", "--description", default="")
    add_class_parser.set_defaults(func=cmd_add_class)

    add_student_parser = subparsers.add_parser("add-student", help="Add a student to a class")
    add_student_parser.add_argument("class_name")
    add_student_parser.add_argument("name")
    add_student_parser.add_argument("--stars", type=int, default=0)
    add_student_parser.set_defaults(func=cmd_add_student)

    stars_parser = subparsers.add_parser("stars", help="Add or remove stars")
    stars_parser.add_argument("class_name")
    stars_parser.add_argument("student_id")
    stars_parser.add_argument("amount", type=int, help="Stars to add (negative to remove)")
    stars_parser.set_defaults(func=cmd_stars)

    # Sweep command
    sweep_parser = subparsers.add_parser("sweep", help="Run the data-integrity sweep")
    sweep_parser.add_argument(
        "--watch",
        action="store_true",
        help="Keep running on the configured interval",
    )
    sweep_parser.set_defaults(func=cmd_sweep)

    # Serve command
    serve_parser = subparsers.add_parser("serve", help="Serve the remote storage tiers")
    serve_parser.add_argument(
        "-p", "--port",
        type=int,
        default=None,
        help="Port to listen on (default: from config, 8080)",
    )
    serve_parser.add_argument(
        "--host",
        type=str,
        default=None,
        help="Host to bind to (default: from config, 0.0.0.0)",
    )
    serve_parser.set_defaults(func=cmd_serve)

    args = parser.parse_args()

    setup_logging(args.verbose, args.log_level, args.json_logs)

    if not args.command:
        parser.print_help()
        return 1

    try:
        return asyncio.run(args.func(args))
    except KeyboardInterrupt:
        print("\nShutting down...")
        return 0


if __name__ == "__main__":
    sys.exit(main())
