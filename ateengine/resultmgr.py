"""Collects the results of a test run and passes them to the outputs."""

from __future__ import annotations

import sys
import time
from datetime import datetime, timedelta
from multiprocessing import shared_memory
from typing import Any, Mapping

from .outputs import OutputManager
from .results import (
    MAX_LEN_NAME,
    MAX_LEN_STANDARD,
    MAX_LEN_VALUE,
    UPLOAD_RESULTS,
    TestCaseResult,
    TestProjectResult,
    TestResult,
    TestSuiteResult,
    UnitType,
    Verdict,
    format_datetime,
)

_UPLOAD_LOCK_NAME = "SmartATE_TestEngine_UploadResult"


def _unit_type(unit: Mapping[str, Any]) -> UnitType | None:
    value = unit.get("Type", 0)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        value = 0
    try:
        return UnitType(int(value))
    except ValueError:
        return None


def _text(unit: Mapping[str, Any], key: str) -> str:
    value = unit.get(key)
    return value if isinstance(value, str) else ""


def _elapsed(clock: float | None) -> timedelta:
    if clock is None:
        return timedelta(0)
    return timedelta(milliseconds=int((time.monotonic() - clock) * 1000))


def _verdict_for(ret: int) -> Verdict:
    if ret < 0:
        return Verdict.EXCE
    if ret == 0:
        return Verdict.PASS
    return Verdict.FAIL


class ResultManager:
    """Keeps the project, suite and case results of the current run."""

    def __init__(self, outputs: OutputManager) -> None:
        self.outputs = outputs
        self._suites: dict[str, TestSuiteResult] = {}
        self._cases: dict[str, TestCaseResult] = {}
        self._project = TestProjectResult()
        self._current_path = ""

    def init_result(self, user: str, station: str, work_line: str, barcode: str) -> None:
        """Record the station details and open the outputs (may raise OutputError)."""
        self._current_path = ""
        self._project.user = user
        self._project.station = station
        self._project.line_name = work_line
        self._project.barcode = barcode
        self.outputs.open()

    def clear_result(self) -> None:
        self.outputs.close()
        self._suites.clear()
        self._cases.clear()

    def exit_result(self) -> None:
        """Save the results; when every output saved them, tag the local copy as sent."""
        if self.outputs.save(""):
            self.outputs.tag_local_result(UPLOAD_RESULTS)

    def upload_to_server(self) -> bool:
        """Upload unsent history, at most one process at a time."""
        try:
            lock = shared_memory.SharedMemory(name=_UPLOAD_LOCK_NAME, create=True, size=1)
        except OSError:
            return False
        try:
            return self.outputs.upload_result()
        finally:
            lock.close()
            lock.unlink()

    def create_result(self, path: str, unit: Mapping[str, Any]) -> bool:
        """Start the result of the unit at ``path``."""
        self._current_path = path
        kind = _unit_type(unit)
        if kind is UnitType.PROJECT:
            project = self._project
            project.name = _text(unit, "Name")
            project.start = datetime.now()
            project.clock = time.monotonic()
            project.path = path
            project.desc = _text(unit, "Desc")
            project.version = _text(unit, "Ver")
            self.outputs.output_project(project)
        elif kind is UnitType.SUITE:
            suite = TestSuiteResult(
                name=_text(unit, "Name"),
                path=path,
                desc=_text(unit, "Desc"),
                start=datetime.now(),
                clock=time.monotonic(),
            )
            self.outputs.output_suite(suite, path.replace("/" + suite.name, ""))
            self._suites[path] = suite
        elif kind is UnitType.CASE:
            case = TestCaseResult(
                name=_text(unit, "Name"),
                path=path,
                desc=_text(unit, "Desc"),
                start=datetime.now(),
                clock=time.monotonic(),
            )
            self.outputs.output_case(case, path.replace("/" + case.name, ""))
            self._cases[path] = case
        return True

    def _update_verdict(self, path: str, verdict: Verdict, ret: int) -> Verdict:
        current = _verdict_for(ret)
        parts = path.split("/")
        if len(parts) == 4:
            suite = self._suites.get(f"/{parts[1]}/{parts[2]}")
            if suite is not None and suite.verdict < current:
                suite.verdict = current
        if self._project.verdict < current:
            self._project.verdict = current
        return max(verdict, current)

    def update_result(
        self, path: str, unit: Mapping[str, Any], ret: int, desc: str = ""
    ) -> bool:
        """Finish the result of the unit at ``path`` with the script's return value."""
        self._current_path = path
        kind = _unit_type(unit)
        if kind is UnitType.PROJECT:
            record: TestCaseResult | None = self._project
        elif kind is UnitType.SUITE:
            record = self._suites.get(path)
        elif kind is UnitType.CASE:
            record = self._cases.get(path)
        else:
            record = None
        if record is None:
            return True

        record.spend = _elapsed(record.clock)
        record.verdict = self._update_verdict(path, record.verdict, ret)
        if desc:
            record.desc = desc
        if kind is UnitType.PROJECT:
            self.outputs.update_project(self._project)
        elif kind is UnitType.SUITE:
            self.outputs.update_suite(record)
        else:
            self.outputs.update_case(record)
        return True

    def output_rst_ex(self, name: str, value: str, standard: str, verdict: int) -> bool:
        """Record a detail result of the running test case."""
        if not self._current_path or len(self._current_path.split("/")) != 4:
            return False
        detail = TestResult(
            start=datetime.now(),
            verdict=Verdict(verdict),
            name=name[:MAX_LEN_NAME],
            path=self._current_path,
            desc=value[:MAX_LEN_VALUE],
            standard=standard[:MAX_LEN_STANDARD],
        )
        return self.outputs.output_detail(detail, self._current_path)

    def output_rst(self, name: str, value: str, standard: str) -> bool:
        return self.output_rst_ex(name, value, standard, Verdict.INFO)

    def output_error(self, text: str) -> None:
        print(f"[{format_datetime(datetime.now())}]: {text}", file=sys.stderr)

    @property
    def project_name(self) -> str:
        return self._project.name

    @property
    def project_version(self) -> str:
        return self._project.version

    @property
    def project_barcode(self) -> str:
        return self._project.barcode

    @property
    def project_desc(self) -> str:
        return self._project.desc

    @property
    def work_line(self) -> str:
        return self._project.line_name

    @property
    def work_station(self) -> str:
        return self._project.station

    @property
    def user_name(self) -> str:
        return self._project.user

    @property
    def total_verdict(self) -> Verdict:
        return self._project.verdict