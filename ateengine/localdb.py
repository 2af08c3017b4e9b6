"""Local SQLite store for test results, with upload of unsent history."""

from __future__ import annotations

import logging
import sqlite3
import sys
from pathlib import Path
from typing import Any, Sequence

from .output import Output
from .results import (
    UPLOAD_FALSE,
    UPLOAD_RESULTS,
    UPLOAD_TRUE,
    TestCaseResult,
    TestProjectResult,
    TestResult,
    TestSuiteResult,
    Verdict,
    format_datetime,
    format_time,
    parse_datetime,
    parse_time,
)

log = logging.getLogger(__name__)

_MODEL = "[LocalSqlite]: "
_TRY_TIMES = 15
_BUSY_TIMEOUT = 0.2

_CREATE_TABLES = (
    'CREATE TABLE "TestProject" ("name" TEXT, "longname" TEXT, "station" TEXT, '
    '"workingline" TEXT, "user" TEXT, "time" TIME, "barcode" TEXT, "count" INTEGER, '
    '"id" INTEGER PRIMARY KEY AUTOINCREMENT UNIQUE, "rst" TEXT, "spend" TEXT, '
    '"desc" TEXT, "version" TEXT, "uploaded" INTEGER)',
    'CREATE TABLE "TestCase" ("id" INTEGER PRIMARY KEY AUTOINCREMENT NOT NULL UNIQUE, '
    '"name" TEXT, "longname" TEXT, "rst" TEXT, "desc" TEXT, "spend" TIME, '
    '"time" TIME, "parentId" INTEGER)',
    'CREATE TABLE "DetailRst" ("name" TEXT, "longname" TEXT, "time" TIME, "rst" TEXT, '
    '"desc" TEXT, "standard" TEXT, '
    '"id" INTEGER PRIMARY KEY AUTOINCREMENT NOT NULL UNIQUE, "parentId" INTEGER)',
)


def _text(value: Any) -> str:
    return "" if value is None else str(value)


class LocalOutput(Output):
    """Keeps every result in a local SQLite database until it is uploaded."""

    def __init__(self, db_path: str | Path) -> None:
        self.db_path = Path(db_path)
        self._conn: sqlite3.Connection | None = None
        self._paths: dict[str, int] = {}
        self._root_id: int | None = None

    @property
    def is_open(self) -> bool:
        return self._conn is not None

    def _execute(
        self, sql: str, params: Sequence[Any] = (), tries: int = _TRY_TIMES
    ) -> sqlite3.Cursor | None:
        if self._conn is None:
            log.debug("%s%s Error: database is not open", _MODEL, sql)
            return None
        error: sqlite3.Error | None = None
        for _ in range(tries):
            try:
                return self._conn.execute(sql, params)
            except sqlite3.Error as exc:
                error = exc
        log.debug("%s%s Error: %s", _MODEL, sql, error)
        return None

    def open(self) -> bool:
        if self._conn is not None:
            return True
        try:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
            conn = sqlite3.connect(
                str(self.db_path), timeout=_BUSY_TIMEOUT, isolation_level=None
            )
        except (OSError, sqlite3.Error) as exc:
            log.debug("%s%s", _MODEL, exc)
            return False
        try:
            conn.execute("PRAGMA synchronous = OFF")
            conn.execute("PRAGMA journal_mode = MEMORY")
            tables = conn.execute(
                "SELECT name FROM sqlite_master WHERE type='table' "
                "AND name NOT LIKE 'sqlite_%'"
            ).fetchall()
            if not tables:
                for statement in _CREATE_TABLES:
                    conn.execute(statement)
        except sqlite3.Error as exc:
            log.debug("%s%s", _MODEL, exc)
            conn.close()
            return False
        self._conn = conn
        return True

    def close(self) -> None:
        if self._conn is not None:
            self._conn.close()
            self._conn = None

    def save(self, name: str) -> bool:
        if name != UPLOAD_RESULTS or self._root_id is None:
            return True
        return self.mark_uploaded(self._root_id)

    def mark_uploaded(self, row_id: int) -> bool:
        """Flag the project row as sent to the server."""
        cursor = self._execute(
            "UPDATE TestProject SET uploaded=? WHERE id=?",
            (UPLOAD_TRUE, row_id),
            tries=1,
        )
        return cursor is not None

    def output_project(self, result: TestProjectResult) -> bool:
        cursor = self._execute(
            "INSERT INTO TestProject(name, longname, station, user, time, version, "
            "workingline, barcode, count, uploaded) VALUES (?,?,?,?,?,?,?,?,?,?)",
            (
                result.name,
                result.path,
                result.station,
                result.user,
                format_datetime(result.start),
                result.version,
                result.line_name,
                result.barcode,
                result.count,
                UPLOAD_FALSE,
            ),
        )
        if cursor is None:
            return False
        self._paths.clear()
        row_id = cursor.lastrowid
        self._root_id = row_id
        self._paths[result.path] = row_id
        log.debug("**** inserted OK **** %s", row_id)
        return True

    def update_project(self, result: TestProjectResult) -> bool:
        row_id = self._paths.get(result.path)
        if row_id is None:
            log.debug("%sFailed to find %s", _MODEL, result.path)
            return False
        cursor = self._execute(
            'UPDATE TestProject SET rst=?, spend=?, "desc"=? WHERE id=?',
            (result.verdict.to_text(), format_time(result.spend), result.desc, row_id),
        )
        return cursor is not None

    def output_suite(self, result: TestSuiteResult, parent_path: str) -> bool:
        return True

    def update_suite(self, result: TestSuiteResult) -> bool:
        return True

    def output_case(self, result: TestCaseResult, parent_path: str) -> bool:
        parts = parent_path.split("/")
        if len(parts) < 3:
            return False
        project_path = "/" + parts[1]
        parent_id = self._paths.get(project_path)
        if parent_id is None:
            log.debug("%sFailed to find %s", _MODEL, project_path)
            return False
        cursor = self._execute(
            "INSERT INTO TestCase(name, longname, time, parentId) VALUES (?,?,?,?)",
            (result.name, result.path, format_datetime(result.start), parent_id),
        )
        if cursor is None:
            return False
        self._paths[result.path] = cursor.lastrowid
        return True

    def update_case(self, result: TestCaseResult) -> bool:
        row_id = self._paths.get(result.path)
        if row_id is None:
            log.debug("%sFailed to find %s", _MODEL, result.path)
            return False
        cursor = self._execute(
            'UPDATE TestCase SET rst=?, spend=?, "desc"=? WHERE id=?',
            (result.verdict.to_text(), format_time(result.spend), result.desc, row_id),
        )
        return cursor is not None

    def output_detail(self, result: TestResult, parent_path: str) -> bool:
        parent_id = self._paths.get(parent_path)
        if parent_id is None:
            log.debug("%sFailed to find %s", _MODEL, parent_path)
            return False
        cursor = self._execute(
            'INSERT INTO DetailRst(name, longname, rst, "desc", time, standard, parentId) '
            "VALUES (?,?,?,?,?,?,?)",
            (
                result.name,
                result.path,
                result.verdict.to_text(),
                result.desc,
                format_datetime(result.start),
                result.standard,
                parent_id,
            ),
        )
        return cursor is not None

    def upload_to(self, target: Output | None) -> bool:
        """Send every project not yet uploaded to ``target``, flagging those saved."""
        if target is None:
            print("No output to server model.", file=sys.stderr)
            return False

        cursor = self._execute(
            'SELECT id, name, longname, station, workingline, user, time, barcode, '
            'count, rst, spend, "desc", version FROM TestProject WHERE uploaded=?',
            (UPLOAD_FALSE,),
            tries=1,
        )
        if cursor is None:
            return False
        projects = cursor.fetchall()
        if not projects:
            log.debug("%s need rows: 0", _MODEL)
            return True

        out = sys.stdout
        out.write(f"Commit results ({len(projects)})")
        ok = True
        for (row_id, name, longname, station, workingline, user, time, barcode,
             count, rst, spend, desc, version) in projects:
            project = TestProjectResult(
                count=int(count or 0),
                path=_text(longname),
                name=_text(name),
                barcode=_text(barcode),
                station=_text(station),
                start=parse_datetime(_text(time)),
                user=_text(user),
                version=_text(version),
                line_name=_text(workingline),
            )
            if not target.output_project(project):
                continue

            cases = self._execute(
                'SELECT id, name, longname, rst, "desc", spend, time FROM TestCase '
                "WHERE parentId=?",
                (row_id,),
                tries=1,
            )
            if cases is not None:
                self._upload_cases(target, project, cases.fetchall())

            project.desc = _text(desc)
            project.verdict = Verdict.from_text(_text(rst))
            project.spend = parse_time(_text(spend))
            if not target.update_project(project):
                continue

            if target.save(""):
                self.mark_uploaded(row_id)
            else:
                ok = False
            out.write(".")
        out.write("\n")
        out.flush()
        return ok

    def _upload_cases(
        self, target: Output, project: TestProjectResult, cases: list[tuple]
    ) -> None:
        for case_id, name, longname, rst, desc, spend, time in cases:
            case = TestCaseResult(
                path=_text(longname),
                name=_text(name),
                start=parse_datetime(_text(time)),
            )
            if not target.output_case(case, project.path):
                continue

            details = self._execute(
                'SELECT name, longname, rst, "desc", time, standard FROM DetailRst '
                "WHERE parentId=?",
                (case_id,),
                tries=1,
            )
            if details is None:
                continue
            for d_name, d_path, d_rst, d_desc, d_time, d_standard in details.fetchall():
                detail = TestResult(
                    path=_text(d_path),
                    name=_text(d_name),
                    verdict=Verdict.from_text(_text(d_rst)),
                    start=parse_datetime(_text(d_time)),
                    desc=_text(d_desc),
                    standard=_text(d_standard),
                )
                target.output_detail(detail, detail.path)

            case.verdict = Verdict.from_text(_text(rst))
            case.spend = parse_time(_text(spend))
            case.desc = _text(desc)
            target.update_case(case)