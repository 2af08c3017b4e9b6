"""Runs the selected units of a project through a script language."""

from __future__ import annotations

import logging
import sys
import threading
from typing import Any, Mapping, TextIO

from .language import ScriptError, ScriptLanguage
from .results import STOPPED_COMMAND, TEST_COMPONENT_SUFFIX, ExitCode, UnitType
from .units import UnitManager

log = logging.getLogger(__name__)

_SETUP_SEPARATOR = "=" * 50 + " "
_TEARDOWN_SEPARATOR = "-" * 50 + " "
_STOPPED_DESC = "Stopped by TreeATE."


class RunnerError(Exception):
    """Raised when the scripts cannot be prepared or a run ended in an exception."""


def running_list(selected: list[str]) -> list[str]:
    """Order the selected paths, adding ``>path`` entries for suite and project teardowns."""
    if not selected:
        return []
    order: list[str] = []
    last_suite = ""
    for path in selected:
        if len(path.split("/")) == 3:
            if last_suite and path != last_suite:
                order.append(">" + last_suite)
            last_suite = path
        order.append(path)
    order.append(">" + last_suite)
    order.append(">" + selected[0])
    return order


def _unit_kind(unit: Mapping[str, Any]) -> UnitType:
    try:
        return UnitType(int(unit.get("Type", 0)))
    except (TypeError, ValueError):
        return UnitType.CASE


def _unit_name(unit: Mapping[str, Any]) -> str:
    name = unit.get("Name")
    return name if isinstance(name, str) else ""


def _suffix(file_name: str) -> str:
    base = file_name.replace("\\", "/").rsplit("/", 1)[-1]
    return base.rpartition(".")[2] if "." in base else ""


class TestRunner:
    """Calls setup, test and teardown functions for the selected units."""

    __test__ = False

    def __init__(self, units: UnitManager, language: ScriptLanguage) -> None:
        self.units = units
        self.language = language
        self.last_error = ""
        self.stopped_count = 0
        self._lock = threading.Lock()

    @property
    def is_stopped(self) -> bool:
        return self.stopped_count > 0

    def stop(self) -> None:
        """Ask the run to stop; the fourth request ends the process."""
        with self._lock:
            self.stopped_count += 1
            count = self.stopped_count
        log.debug("---- stopped click counts: %d", count)
        if count > 3:
            sys.exit(int(ExitCode.BY_STOPPED))

    def init_script(self, models: Mapping[str, Any] | None = None) -> None:
        """Load the scripts, the device models and the public parameters.

        ``models`` maps each model's ``Obj`` name to its instance; every model
        of the project whose component is a native library must be present.
        """
        models = models or {}
        try:
            self.language.load_script(self.units.script_files)
        except ScriptError as exc:
            self.last_error = str(exc)
            raise RunnerError(self.last_error) from exc

        for entry in self.units.model_list():
            model = entry if isinstance(entry, Mapping) else {}
            obj_name = str(model.get("Obj") or "")
            component = str(model.get("Com") or "")
            if _suffix(component).lower() != TEST_COMPONENT_SUFFIX.lower():
                continue
            if obj_name not in models:
                self.last_error = (
                    f"Failed to load the {self.units.project_dir}/libs/{component}"
                )
                log.debug("%s", self.last_error)
                raise RunnerError(self.last_error)
            self.language.add_model(obj_name, models[obj_name])

        self.language.init_public_parameters(self.units.public_parameters())

    def _execute(self, func_name: str, unit: Mapping[str, Any]) -> int:
        try:
            ret = self.language.execute(func_name, self.units.local_parameters(unit))
        except ScriptError as exc:
            ret = exc.code
        finally:
            self.language.init_public_parameters(self.units.public_parameters())
        return ret

    def run(self, selected: list[str], results: Any, stop_when_failed: bool = False) -> None:
        """Run the selected paths, reporting to ``results``.

        Raises RunnerError after the remaining teardowns when a script function
        ended in an exception.
        """
        self.language.add_model("__ate", results)
        self.language.add_model("__aterun", self)

        teardowns: list[str] = []
        success = True
        last_exception_func = ""

        for entry in running_list(selected):
            path = entry
            func_name = "setup_"
            separator = _SETUP_SEPARATOR
            teardown = False
            if path.startswith(">"):
                path = path[1:]
                func_name = "teardown_"
                separator = _TEARDOWN_SEPARATOR
                teardown = True

            unit = self.units.unit(path)
            kind = _unit_kind(unit)
            name = _unit_name(unit)
            print(separator + name, file=sys.stderr)
            if kind is UnitType.CASE:
                func_name = "test_" + name
            else:
                func_name += name

            if not teardown:
                results.create_result(path, unit)

            ret = self._execute(func_name, unit)
            if ret < 0:
                self.last_error = self.language.last_error
                results.update_result(path, unit, ret, self.last_error)
                success = False
                last_exception_func = func_name
                break

            if kind is not UnitType.CASE:
                if teardown:
                    if teardowns:
                        teardowns.pop()
                else:
                    teardowns.append(path)

            if self.is_stopped or (ret > 0 and stop_when_failed):
                results.update_result(path, unit, 1, _STOPPED_DESC)
                break

            results.update_result(path, unit, ret)
            log.debug("%s : %d", path, ret)

        for path in reversed(teardowns):
            unit = self.units.unit(path)
            func_name = "teardown_" + _unit_name(unit)
            if func_name == last_exception_func:
                continue
            ret = self._execute(func_name, unit)
            self.last_error = self.language.last_error
            if ret < 0:
                results.update_result(path, unit, ret, self.last_error)
                success = False
            else:
                results.update_result(path, unit, ret)

        if not success:
            raise RunnerError(self.last_error)


class StopListener(threading.Thread):
    """Reads words from a stream and stops the runner on the word ``stop``."""

    def __init__(self, runner: TestRunner, stream: TextIO | None = None) -> None:
        super().__init__(daemon=True)
        self.runner = runner
        self._stream = stream

    def run(self) -> None:
        stream = self._stream if self._stream is not None else sys.stdin
        for line in stream:
            for word in line.split():
                if word.lower() == STOPPED_COMMAND:
                    self.runner.stop()
                    return