"""Fan-out of test results to the console, an optional server and the local store."""

from __future__ import annotations

from pathlib import Path
from typing import TextIO

from .localdb import LocalOutput
from .output import Output, StdOutput
from .results import TestCaseResult, TestProjectResult, TestResult, TestSuiteResult


class OutputError(Exception):
    """Raised when the result outputs cannot be prepared."""


class OutputManager:
    """Sends every result to all configured outputs.

    The console output and the local SQLite store (``<app_dir>/db/treeate.sqlite``)
    are always present; ``server`` is an optional extra output that also
    receives uploads of unsent history.
    """

    def __init__(
        self,
        app_dir: str | Path,
        server: Output | None = None,
        stream: TextIO | None = None,
    ) -> None:
        self.app_dir = Path(app_dir)
        self._server_config = server
        self._stream = stream
        self._outputs: list[Output] = []
        self._server: Output | None = None
        self._local: LocalOutput | None = None

    @property
    def db_path(self) -> Path:
        return self.app_dir / "db" / "treeate.sqlite"

    def __enter__(self) -> "OutputManager":
        self.open()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def open(self) -> None:
        """Open every output; raise OutputError naming those that failed."""
        self.close()
        self._outputs.append(StdOutput(self._stream))
        if self._server_config is not None:
            self._server = self._server_config
            self._outputs.append(self._server)
        self._local = LocalOutput(self.db_path)
        self._outputs.append(self._local)

        failed = [type(output).__name__ for output in self._outputs if not output.open()]
        if failed:
            raise OutputError("Failed to open the output: " + ", ".join(failed))

    def close(self) -> None:
        """Close and forget every output."""
        for output in self._outputs:
            output.close()
        self._outputs.clear()
        self._server = None
        self._local = None

    def save(self, name: str) -> bool:
        return all([output.save(name) for output in self._outputs])

    def upload_result(self) -> bool:
        """Upload the local history that has not been sent to the server yet."""
        return self._local is not None and self._local.upload_to(self._server)

    def tag_local_result(self, name: str) -> None:
        """Let the local store flag the current project (e.g. as uploaded)."""
        if self._local is not None:
            self._local.save(name)

    def output_project(self, result: TestProjectResult) -> bool:
        return all([output.output_project(result) for output in self._outputs])

    def update_project(self, result: TestProjectResult) -> bool:
        return all([output.update_project(result) for output in self._outputs])

    def output_suite(self, result: TestSuiteResult, parent_path: str) -> bool:
        return all([output.output_suite(result, parent_path) for output in self._outputs])

    def update_suite(self, result: TestSuiteResult) -> bool:
        return all([output.update_suite(result) for output in self._outputs])

    def output_case(self, result: TestCaseResult, parent_path: str) -> bool:
        return all([output.output_case(result, parent_path) for output in self._outputs])

    def update_case(self, result: TestCaseResult) -> bool:
        return all([output.update_case(result) for output in self._outputs])

    def output_detail(self, result: TestResult, parent_path: str) -> bool:
        return all([output.output_detail(result, parent_path) for output in self._outputs])