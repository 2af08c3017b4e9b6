"""Result records, verdicts, exit codes and the time formats shared by the engine."""

from __future__ import annotations

import re
import sys
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import IntEnum

TIME_FORMAT = "HH:mm:ss.zzz"
DATETIME_FORMAT = "yyyy-MM-dd HH:mm:ss.zzz"

STOPPED_COMMAND = "stop"
RESULT_FILE_SUFFIX = ".rst"
UPLOAD_RESULTS = "uploadrst"
SQLITE_CONNECTION_NAME = "sql_treeate_localsqlite"
UPLOAD_FALSE = 1
UPLOAD_TRUE = 2

MAX_LEN_NAME = 32
MAX_LEN_VALUE = 256
MAX_LEN_STANDARD = 256

RESULT_MASK = 0x7FFFFFFF

if sys.platform.startswith("win"):
    TEST_COMPONENT_SUFFIX = "dll"
else:
    TEST_COMPONENT_SUFFIX = "so"

_TIME_RE = re.compile(r"(\d{1,2}):(\d{2}):(\d{2})(?:\.(\d{1,3}))?")


class UnitType(IntEnum):
    """Kind of a test unit in a project tree."""

    CASE = 0
    SUITE = 1
    PROJECT = 2


class ExitCode(IntEnum):
    """Process exit codes of the engine."""

    UPLOAD_OK = 10001
    LIST_OK = 10000
    OK = 0
    NEED_PARA = -1
    NO_PROJECT = -2
    LOAD_UNITS = -3
    LOAD_PARA = -4
    INIT_RUNNER = -5
    UNSELECTED = -6
    INIT_RESULT = -7
    RUNNING = -8
    UPLOAD_HISTORY = -9
    BY_STOPPED = -10


_VERDICT_TEXT = {0: "Info", 1: "Pass", 2: "Fail", 3: "Exce"}


class Verdict(IntEnum):
    """Outcome of a test step; larger values are worse."""

    INFO = 0
    PASS = 1
    FAIL = 2
    EXCE = 3

    def to_text(self) -> str:
        """Return the short textual name used in reports and the database."""
        return _VERDICT_TEXT[int(self)]

    @classmethod
    def from_text(cls, text: str) -> "Verdict":
        """Parse a textual verdict; anything unrecognised is INFO."""
        for value, name in _VERDICT_TEXT.items():
            if text == name:
                return cls(value)
        return cls.INFO


def format_datetime(moment: datetime | None) -> str:
    """Format a timestamp as ``yyyy-MM-dd HH:mm:ss.zzz``; None gives ''."""
    if moment is None:
        return ""
    return f"{moment:%Y-%m-%d %H:%M:%S}.{moment.microsecond // 1000:03d}"


def format_time(spent: timedelta | None) -> str:
    """Format a duration within one day as ``HH:mm:ss.zzz``; otherwise ''."""
    if spent is None or spent < timedelta(0) or spent >= timedelta(days=1):
        return ""
    total_ms = spent // timedelta(milliseconds=1)
    seconds, ms = divmod(total_ms, 1000)
    minutes, sec = divmod(seconds, 60)
    hours, minute = divmod(minutes, 60)
    return f"{hours:02d}:{minute:02d}:{sec:02d}.{ms:03d}"


def parse_datetime(text: str) -> datetime | None:
    """Parse ``yyyy-MM-dd HH:mm:ss.zzz``; return None when it does not fit."""
    try:
        date_part, _, millis = text.rpartition(".")
        if len(millis) != 3 or not millis.isdigit():
            return None
        moment = datetime.strptime(date_part, "%Y-%m-%d %H:%M:%S")
    except ValueError:
        return None
    return moment.replace(microsecond=int(millis) * 1000)


def parse_time(text: str) -> timedelta | None:
    """Parse ``HH:mm:ss`` with optional fractional seconds; None if invalid."""
    match = _TIME_RE.fullmatch(text.strip())
    if match is None:
        return None
    hours, minutes, seconds = (int(match.group(i)) for i in (1, 2, 3))
    if hours >= 24 or minutes >= 60 or seconds >= 60:
        return None
    fraction = match.group(4) or ""
    millis = int(fraction.ljust(3, "0")) if fraction else 0
    return timedelta(hours=hours, minutes=minutes, seconds=seconds, milliseconds=millis)


@dataclass
class TestResult:
    """A detail result and the common part of every unit result."""

    __test__ = False

    verdict: Verdict = Verdict.INFO
    start: datetime | None = None
    name: str = ""
    desc: str = ""
    path: str = ""
    standard: str = ""
    clock: float | None = field(default=None, repr=False, compare=False)


@dataclass
class TestCaseResult(TestResult):
    """Result of a test case, with the time it took."""

    __test__ = False

    spend: timedelta | None = None


@dataclass
class TestSuiteResult(TestCaseResult):
    """Result of a test suite."""

    __test__ = False

    count: int = 0


@dataclass
class TestProjectResult(TestSuiteResult):
    """Result of a whole test project, with the station details."""

    __test__ = False

    barcode: str = ""
    user: str = ""
    station: str = ""
    version: str = ""
    line_name: str = ""