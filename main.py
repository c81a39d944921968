"""
Guard Timesheet

Command-line entry point for the timesheet engine: spreadsheet import and
export, payroll sheet, import templates, employee list and target roster
files, shift options and JSON backup against the configured document store.

Usage:
    python main.py export [--month 2024-01] [--out DIR]
    python main.py payroll [--month 2024-01] [--out DIR]
    python main.py template [--month 2024-01] [--out DIR]
    python main.py import FILE [--month 2024-01]
    python main.py export-employees [--out DIR]
    python main.py import-employees FILE
    python main.py export-targets [--json] [--out DIR]
    python main.py import-targets FILE
    python main.py target-template [--out DIR]
    python main.py shifts [--add HH:MM HH:MM] [--remove SHIFT]
    python main.py backup [--out DIR]
"""

import argparse
import asyncio
import sys
from dataclasses import replace
from pathlib import Path

import httpx

# Add src directory to path for imports
sys.path.insert(0, str(Path(__file__).parent / "src"))

from application.timesheet_session import TimesheetSession
from config.config_manager import ConfigManager
from domain.exceptions import TimesheetError
from infrastructure.backup import write_backup
from infrastructure.document_store import create_store
from infrastructure.logger import configure_logging, get_logger
from infrastructure.repository import TimesheetRepository


def _parse_month(value: str):
    """'YYYY-MM' -> (year, 0-based month)."""
    try:
        year, month = value.split("-")
        year, month = int(year), int(month)
    except ValueError:
        raise argparse.ArgumentTypeError(f"Expected YYYY-MM, got '{value}'")
    if not 1 <= month <= 12:
        raise argparse.ArgumentTypeError(f"Month out of range: {month}")
    return year, month - 1


def _report(label: str, count: int, errors) -> int:
    print(f"{label}: {count}")
    for error in errors:
        print(f"  {error}")
    return 1 if errors and not count else 0


async def run(args) -> int:
    manager = ConfigManager()
    config = manager.load()
    configure_logging(config.paths.log_file)
    logger = get_logger("Main")

    async with httpx.AsyncClient() as http_client:
        repository = TimesheetRepository(create_store(config.store, http_client))
        session = TimesheetSession(repository, config=config)
        month = getattr(args, "month", None)
        year, month = month or (session.year, session.month)
        output = Path(args.out) if getattr(args, "out", None) else None

        if args.command == "backup":
            path = await write_backup(repository, output or Path(config.paths.export_dir or "."))
            print(f"Backup written: {path}")
            return 0

        await session.load(year, month)
        status = 0

        if args.command == "export":
            print(f"Timesheet written: {session.export_timesheet(output)}")
        elif args.command == "payroll":
            print(f"Payroll written: {session.export_payroll(output)}")
        elif args.command == "template":
            print(f"Template written: {session.write_template(output)}")
        elif args.command == "import":
            result = session.import_spreadsheet(Path(args.file))
            manager.update(paths=replace(config.paths, last_import_file=str(args.file)))
            status = _report("Imported rows", len(result.employees), result.errors)
            logger.info(f"Import of {args.file} finished with {len(result.errors)} errors")
        elif args.command == "export-employees":
            print(f"Employee list written: {session.export_employees(output)}")
        elif args.command == "import-employees":
            result = await session.import_employees(Path(args.file))
            status = _report("Employees added", len(result.employees), result.errors)
        elif args.command == "export-targets":
            path = session.export_targets_json(output) if args.json else session.export_targets(output)
            print(f"Targets written: {path}")
        elif args.command == "import-targets":
            file = Path(args.file)
            if file.suffix.lower() == ".json":
                result = await session.import_targets_json(file)
            else:
                result = await session.import_targets(file)
            status = _report("Targets imported", len(result.targets), result.errors)
        elif args.command == "target-template":
            print(f"Target template written: {session.write_target_template(output)}")
        elif args.command == "shifts":
            if args.add:
                await session.add_shift_option(*args.add)
            if args.remove:
                await session.remove_shift_option(args.remove)
            for shift in session.shift_options:
                marker = "*" if shift in session.custom_shifts else " "
                print(f"{marker} {shift}")

        await session.aclose()
    return status


def main():
    """Application entry point."""
    parser = argparse.ArgumentParser(description="Guard timesheet tools")
    sub = parser.add_subparsers(dest="command", required=True)

    for name, help_text in (
        ("export", "Export the month's timesheet workbook"),
        ("payroll", "Export the month's payroll workbook"),
        ("template", "Write an empty import template"),
    ):
        cmd = sub.add_parser(name, help=help_text)
        cmd.add_argument("--month", type=_parse_month, help="YYYY-MM, defaults to the current month")
        cmd.add_argument("--out", help="Output file or directory")

    cmd = sub.add_parser("import", help="Import attendance from a workbook")
    cmd.add_argument("file", help="Path to the .xlsx file")
    cmd.add_argument("--month", type=_parse_month, help="YYYY-MM, defaults to the current month")

    for name, help_text in (
        ("export-employees", "Export the employee list workbook"),
        ("target-template", "Write a target roster import template"),
        ("backup", "Write a JSON backup of employees and targets"),
    ):
        cmd = sub.add_parser(name, help=help_text)
        cmd.add_argument("--out", help="Output file or directory")

    cmd = sub.add_parser("export-targets", help="Export targets and rosters")
    cmd.add_argument("--json", action="store_true", help="Write JSON instead of a workbook")
    cmd.add_argument("--out", help="Output file or directory")

    cmd = sub.add_parser("import-employees", help="Add employees from an employee list workbook")
    cmd.add_argument("file", help="Path to the .xlsx file")

    cmd = sub.add_parser("import-targets", help="Import targets from a workbook or JSON file")
    cmd.add_argument("file", help="Path to the .xlsx or .json file")

    cmd = sub.add_parser("shifts", help="List, add or remove shift options")
    cmd.add_argument("--add", nargs=2, metavar=("START", "END"), help="Add a custom shift")
    cmd.add_argument("--remove", metavar="SHIFT", help="Remove a custom shift")

    args = parser.parse_args()
    try:
        sys.exit(asyncio.run(run(args)))
    except TimesheetError as e:
        get_logger("Main").error(f"{args.command} failed: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
