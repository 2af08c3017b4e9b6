"""Command line of the test engine: load a project, run units, upload history."""

from __future__ import annotations

import argparse
import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import Sequence, TextIO

from .language import FunctionTable, ScriptLanguage
from .outputs import OutputError, OutputManager
from .resultmgr import ResultManager
from .results import UPLOAD_RESULTS, ExitCode, format_datetime
from .runner import RunnerError, StopListener, TestRunner
from .units import UnitError, UnitManager

APP_NAME = "TestEngine"
APP_VERSION = "2.3.0"

_LEVEL_NAMES = {
    logging.DEBUG: "Debug",
    logging.INFO: "Info",
    logging.WARNING: "Warning",
    logging.ERROR: "Critical",
    logging.CRITICAL: "Fatal",
}


class _LogFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        moment = datetime.fromtimestamp(record.created)
        level = _LEVEL_NAMES.get(record.levelno, record.levelname.title())
        return (
            f"[{format_datetime(moment)}] {level}: "
            f"{record.pathname}  - {record.lineno}: {record.getMessage()}"
        )


def _log_handler(app_dir: Path) -> logging.Handler:
    log_dir = app_dir / "Log" / APP_NAME
    log_dir.mkdir(parents=True, exist_ok=True)
    file_name = log_dir / f"{datetime.now():%Y-%m-%d}.txt"
    handler = logging.FileHandler(file_name, mode="a", encoding="utf-8", delay=True)
    handler.terminator = "\r\n"
    handler.setFormatter(_LogFormatter())
    return handler


def build_parser() -> argparse.ArgumentParser:
    """The argument parser of the engine."""
    parser = argparse.ArgumentParser(
        prog=APP_NAME,
        description="TreeATE TestEngine. It's based-command-line test executer",
        formatter_class=argparse.RawTextHelpFormatter,
    )
    parser.add_argument(
        "-v", "--version", action="version", version=f"%(prog)s {APP_VERSION}"
    )
    parser.add_argument(
        "-t", "--start-test", dest="start_test", metavar="item",
        help="Start the test <item> to test.",
    )
    parser.add_argument(
        "-m", "--multi-items", dest="multi_items", metavar="file",
        help=(
            "Start multi-items in the <file> to test.\ncontent e.g.:\n"
            "/ProjectName/TestSuiteName/TestCase1\n"
            "/ProjectName/TestSuiteName/TestCase2\n..."
        ),
    )
    parser.add_argument(
        "-p", "--parameters", dest="parameters", metavar="file",
        help="Specify the public parameters <file> for current test project.",
    )
    parser.add_argument(
        "-l", "--list-item", dest="list_item", action="store_true",
        help="List the test items information.",
    )
    parser.add_argument(
        "-b", "--barcode", dest="barcode", default="", metavar="barcode",
        help="Enter the <barcode> of UUT for test.",
    )
    parser.add_argument(
        "-u", "--user", dest="user", default="", metavar="user",
        help="Enter the <user> for test.",
    )
    parser.add_argument(
        "-s", "--station", dest="station", default="", metavar="station",
        help="The <station> is unique in a manufactory.",
    )
    parser.add_argument(
        "-w", "--workline", dest="workline", default="", metavar="workline",
        help="The <workline> is unique in a manufactory.",
    )
    parser.add_argument(
        "-S", "--Stop", dest="stop", action="store_true",
        help="Stop the current testing when it's failed",
    )
    parser.add_argument(
        "project", nargs="?",
        help=(
            "Enter the project file name to test,\n"
            " or upload(use 'uploadrst') history results."
        ),
    )
    return parser


def _error(message: str) -> None:
    print(message, file=sys.stderr)


def _select(units: UnitManager, options: argparse.Namespace) -> list[str]:
    if options.start_test is not None:
        return units.select_for_path(options.start_test)
    return units.select_from_file(options.multi_items)


def run_engine(
    args: Sequence[str] | None = None,
    app_dir: str | Path | None = None,
    language: ScriptLanguage | None = None,
    stdin: TextIO | None = None,
) -> int:
    """Run the engine with command-line ``args`` and return its exit code."""
    argv = list(sys.argv[1:] if args is None else args)
    parser = build_parser()
    if not argv:
        parser.print_help(sys.stdout)
        return int(ExitCode.NEED_PARA)

    options = parser.parse_args(argv)
    if not options.project:
        _error("Please enter the project file name or --help.")
        return int(ExitCode.NO_PROJECT)

    base_dir = Path(app_dir) if app_dir is not None else Path.cwd()
    outputs = OutputManager(base_dir)
    results = ResultManager(outputs)
    try:
        return _run(options, results, language, stdin)
    finally:
        outputs.close()


def _run(
    options: argparse.Namespace,
    results: ResultManager,
    language: ScriptLanguage | None,
    stdin: TextIO | None,
) -> int:
    try:
        results.init_result(
            options.user, options.station, options.workline, options.barcode
        )
    except OutputError as exc:
        _error(str(exc))
        return int(ExitCode.INIT_RESULT)

    if options.project.lower() == UPLOAD_RESULTS:
        if results.upload_to_server():
            return int(ExitCode.UPLOAD_OK)
        return int(ExitCode.UPLOAD_HISTORY)

    units = UnitManager()
    try:
        units.load_config(options.project)
    except UnitError as exc:
        _error(str(exc))
        return int(ExitCode.LOAD_UNITS)

    if options.parameters is not None:
        try:
            units.load_public_parameters(options.parameters)
        except UnitError as exc:
            _error(str(exc))
            return int(ExitCode.LOAD_PARA)

    runner = TestRunner(units, language if language is not None else FunctionTable())
    try:
        runner.init_script()
    except RunnerError as exc:
        _error(str(exc))
        return int(ExitCode.INIT_RUNNER)

    selected: list[str] = []
    if options.start_test is not None or options.multi_items is not None:
        try:
            selected = _select(units, options)
        except UnitError as exc:
            _error(str(exc))
            return int(ExitCode.UNSELECTED)
    elif options.list_item:
        units.print_units(sys.stdout)
        return int(ExitCode.LIST_OK)

    if not selected:
        _error("")
        return int(ExitCode.UNSELECTED)

    StopListener(runner, stdin).start()

    try:
        runner.run(selected, results, options.stop)
    except RunnerError as exc:
        results.exit_result()
        _error(str(exc))
        return int(ExitCode.RUNNING)

    results.exit_result()
    return int(ExitCode.OK)


def main(argv: Sequence[str] | None = None) -> int:
    """Entry point: run the engine from the current directory, logging to ``Log/``."""
    app_dir = Path.cwd()
    handler = _log_handler(app_dir)
    root = logging.getLogger()
    old_level = root.level
    root.addHandler(handler)
    root.setLevel(logging.DEBUG)
    try:
        return run_engine(argv, app_dir)
    finally:
        root.removeHandler(handler)
        root.setLevel(old_level)
        handler.close()


if __name__ == "__main__":
    raise SystemExit(main())