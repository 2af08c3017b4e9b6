"""The output interface for test results and its console implementation."""

from __future__ import annotations

import sys
from abc import ABC, abstractmethod
from typing import TextIO

from .results import (
    TestCaseResult,
    TestProjectResult,
    TestResult,
    TestSuiteResult,
    Verdict,
    format_datetime,
    format_time,
)


class Output(ABC):
    """A destination for test results. Each call reports whether it succeeded."""

    @abstractmethod
    def open(self) -> bool:
        """Prepare the destination."""

    @abstractmethod
    def close(self) -> None:
        """Release the destination."""

    @abstractmethod
    def save(self, name: str) -> bool:
        """Finish writing the current results."""

    @abstractmethod
    def output_project(self, result: TestProjectResult) -> bool:
        """Record the start of a project."""

    @abstractmethod
    def update_project(self, result: TestProjectResult) -> bool:
        """Record the outcome of a project."""

    @abstractmethod
    def output_suite(self, result: TestSuiteResult, parent_path: str) -> bool:
        """Record the start of a suite."""

    @abstractmethod
    def update_suite(self, result: TestSuiteResult) -> bool:
        """Record the outcome of a suite."""

    @abstractmethod
    def output_case(self, result: TestCaseResult, parent_path: str) -> bool:
        """Record the start of a case."""

    @abstractmethod
    def update_case(self, result: TestCaseResult) -> bool:
        """Record the outcome of a case."""

    @abstractmethod
    def output_detail(self, result: TestResult, parent_path: str) -> bool:
        """Record one detail result."""


class StdOutput(Output):
    """Writes results as text lines to a stream (standard output by default)."""

    def __init__(self, stream: TextIO | None = None) -> None:
        self._given_stream = stream

    @property
    def _stream(self) -> TextIO:
        return self._given_stream if self._given_stream is not None else sys.stdout

    def _write(self, line: str) -> None:
        self._stream.write(line + "\n")
        self._stream.flush()

    def _start(self, time: str, path: str) -> None:
        self._write(f"[{time}] ..... {path}")

    def _end(self, spend: str, path: str, verdict: Verdict) -> None:
        self._write(f"\t... {spend} [{verdict.to_text()}]\t{path}")

    def open(self) -> bool:
        return True

    def close(self) -> None:
        pass

    def save(self, name: str) -> bool:
        self._write(f"Test Over [{name}]")
        return True

    def output_project(self, result: TestProjectResult) -> bool:
        self._start(format_datetime(result.start), result.path)
        return True

    def update_project(self, result: TestProjectResult) -> bool:
        self._end(format_time(result.spend), result.path, result.verdict)
        return True

    def output_suite(self, result: TestSuiteResult, parent_path: str) -> bool:
        self._start(format_datetime(result.start), result.path)
        return True

    def update_suite(self, result: TestSuiteResult) -> bool:
        self._end(format_time(result.spend), result.path, result.verdict)
        return True

    def output_case(self, result: TestCaseResult, parent_path: str) -> bool:
        self._start(format_datetime(result.start), result.path)
        return True

    def update_case(self, result: TestCaseResult) -> bool:
        self._end(format_time(result.spend), result.path, result.verdict)
        return True

    def output_detail(self, result: TestResult, parent_path: str) -> bool:
        self._write(
            f"[{format_datetime(result.start)}][{result.verdict.to_text()}]  ... "
            f"{result.name} = {result.desc} | {result.standard}"
        )
        return True