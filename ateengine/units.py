"""Loading of test project files and selection of the units to run."""

from __future__ import annotations

import json
import logging
import sys
from enum import Enum
from pathlib import Path
from typing import Any, Mapping, TextIO

from .results import UnitType

log = logging.getLogger(__name__)


class UnitError(Exception):
    """Raised when a project, parameter or selection file cannot be used."""


class Language(Enum):
    """Script language of a test project."""

    JAVASCRIPT = "js"
    PYTHON = "py"
    CPP = "cpp"


def _json_str(value: Any) -> str:
    """Text of a JSON value that is a string; anything else is empty."""
    return value if isinstance(value, str) else ""


def _variant_str(value: Any) -> str:
    """Text of a loosely typed value: strings, numbers and booleans convert."""
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        return str(int(value)) if value.is_integer() else repr(value)
    return ""


def _as_dict(value: Any) -> dict:
    return dict(value) if isinstance(value, Mapping) else {}


def _suffix(file_name: str) -> str:
    base = file_name.replace("\\", "/").rsplit("/", 1)[-1]
    return base.rpartition(".")[2] if "." in base else ""


def _read_json(file_name: str | Path) -> Any:
    try:
        data = Path(file_name).read_bytes()
    except OSError as exc:
        raise UnitError(f"{exc.strerror or exc}: {file_name}") from exc
    try:
        return json.loads(data)
    except (ValueError, UnicodeDecodeError) as exc:
        raise UnitError(f"{exc} : {file_name}") from exc


class UnitManager:
    """Holds the units (project, suites, cases) of one test project."""

    def __init__(self) -> None:
        self._script_files: list[str] = []
        self._units: dict[str, dict] = {}
        self._unit_paths: list[str] = []
        self._project_path = ""
        self.project_dir = ""
        self.language = Language.JAVASCRIPT

    @property
    def script_files(self) -> list[str]:
        """Script files to load, the project script first."""
        return list(self._script_files)

    @property
    def unit_paths(self) -> list[str]:
        """Every unit path in project order."""
        return list(self._unit_paths)

    @property
    def project_path(self) -> str:
        """Path of the project unit, e.g. ``/Demo``."""
        return self._project_path

    def load_config(self, file_name: str | Path) -> None:
        """Load a ``*.tp`` project file and find its script beside it."""
        self._script_files.clear()
        name = str(file_name)
        cfg_path = Path(file_name)
        if not cfg_path.is_file():
            raise UnitError(f"{name} is not file.")
        if _suffix(name) != "tp":
            raise UnitError(f"{name} is not test project *.tp).")

        self.project_dir = str(cfg_path.absolute().parent)
        config = _read_json(cfg_path)
        self._init_unit_paths(_as_dict(config))

        stem = cfg_path.stem
        js_file = f"{self.project_dir}/{stem}.js"
        py_file = f"{self.project_dir}/{stem}.py"
        dll_file = f"{self.project_dir}/{stem}.dll"

        if Path(js_file).is_file():
            self._script_files.append(js_file)
            self.language = Language.JAVASCRIPT
            self._load_script_components(self.model_list(), Language.JAVASCRIPT.value)
            return

        if Path(dll_file).is_file():
            self._script_files.append(dll_file)
            self.language = Language.CPP
            return

        if not Path(py_file).is_file():
            raise UnitError(f"{py_file} and (*.py) file was not exist.")
        self._script_files.append(py_file)
        self.language = Language.PYTHON
        self._load_script_components(self.model_list(), Language.PYTHON.value)

    def _load_script_components(self, models: list, suffix: str) -> None:
        libs_dir = f"{self.project_dir}/libs/"
        for model in models:
            script_file = libs_dir + _variant_str(_as_dict(model).get("Com"))
            log.debug("loadScriptCom: %s", script_file)
            if _suffix(script_file).lower() == suffix.lower():
                self._script_files.append(script_file)

    def _init_unit_paths(self, config: dict) -> None:
        self._units.clear()
        self._unit_paths.clear()

        project = dict(config)
        project_name = _json_str(project.get("Name"))
        project_path = "/" + project_name
        self._project_path = project_path
        self._unit_paths.append(project_path)

        suites = project.get("TestSuite")
        if not isinstance(suites, list):
            return

        for suite_value in suites:
            if not isinstance(suite_value, Mapping):
                continue
            suite = dict(suite_value)
            suite_name = _json_str(suite.get("Name"))
            suite_path = f"/{project_name}/{suite_name}"
            self._unit_paths.append(suite_path)

            cases = suite.get("TestCase")
            if not isinstance(cases, list):
                continue
            for case_value in cases:
                case = _as_dict(case_value)
                if not case:
                    continue
                case_path = f"{suite_path}/{_json_str(case.get('Name'))}"
                case["Type"] = int(UnitType.CASE)
                self._units[case_path] = case
                self._unit_paths.append(case_path)

            del suite["TestCase"]
            suite["Type"] = int(UnitType.SUITE)
            self._units[suite_path] = suite

        del project["TestSuite"]
        project["Type"] = int(UnitType.PROJECT)
        self._units[project_path] = project

    def load_public_parameters(self, para_file: str | Path) -> None:
        """Override public parameter values of the project from a JSON file."""
        document = _as_dict(_read_json(para_file))
        new_values = document.get("Parameter")
        if new_values is None:
            return
        if not isinstance(new_values, list) or not new_values:
            return

        project = dict(self._units.get(self._project_path, {}))
        public = project.get("Public")
        if isinstance(public, Mapping):
            public = dict(public)
            new_params: list[dict] = []
            params = public.get("Parameter")
            if isinstance(params, list):
                modified = False
                for param_value in params:
                    param = _as_dict(param_value)
                    param_name = _json_str(param.get("Name"))
                    old_value = _json_str(param.get("Value"))
                    for entry_value in new_values:
                        entry = _as_dict(entry_value)
                        value = _variant_str(entry.get("Value"))
                        if param_name == _variant_str(entry.get("Name")) and old_value != value:
                            param["Value"] = value
                            modified = True
                            break
                    new_params.append(param)
                if not modified:
                    return
            public["Parameter"] = new_params
            project["Public"] = public
        self._units[self._project_path] = project

    def model_list(self) -> list:
        """The ``Public.Models`` list of the project."""
        public = self._units.get(self._project_path, {}).get("Public")
        if isinstance(public, Mapping) and isinstance(public.get("Models"), list):
            return list(public["Models"])
        return []

    def public_parameters(self) -> dict[str, str]:
        """Public parameters of the project by name, sorted by name."""
        params: dict[str, str] = {}
        public = self._units.get(self._project_path, {}).get("Public")
        if isinstance(public, Mapping) and isinstance(public.get("Parameter"), list):
            for entry in public["Parameter"]:
                cfg = _as_dict(entry)
                params[_variant_str(cfg.get("Name"))] = _variant_str(cfg.get("Value"))
        return dict(sorted(params.items()))

    def local_parameters(self, unit: Mapping[str, Any] | str) -> dict[str, str]:
        """Parameters of a unit, given as its object or its path, sorted by name."""
        if isinstance(unit, str):
            unit = self._units.get(unit, {})
        params = unit.get("Parameter")
        if not isinstance(params, Mapping):
            return {}
        return {key: _json_str(params[key]) for key in sorted(params)}

    def unit_type(self, path: str) -> UnitType:
        """Type of the unit at ``path``."""
        unit = self._units.get(path)
        if unit is None:
            raise UnitError(f"{path} was not exist.")
        return UnitType(int(unit.get("Type", 0)))

    def unit(self, path: str) -> dict:
        """Copy of the unit at ``path`` (the project when empty); {} if unknown."""
        return dict(self._units.get(path or self._project_path, {}))

    def select_from_file(self, file_name: str | Path) -> list[str]:
        """Known unit paths listed one per line in a UTF-8 file."""
        try:
            text = Path(file_name).read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            raise UnitError(f"{exc}: {file_name}") from exc
        return [line for line in text.splitlines() if line in self._units]

    def select_for_path(self, path: str) -> list[str]:
        """Units to run for ``path``: its ancestors, then every path containing it."""
        if path.strip() == "/":
            return list(self._unit_paths)
        if path not in self._unit_paths:
            raise UnitError(f"{path} was not exist.")

        parts = path.split("/")
        selected: list[str] = []
        if len(parts) == 3:
            selected.append("/" + parts[1])
        elif len(parts) == 4:
            selected.append("/" + parts[1])
            selected.append(f"/{parts[1]}/{parts[2]}")
        selected.extend(p for p in self._unit_paths if path in p)
        return selected

    def print_units(self, stream: TextIO | None = None) -> None:
        """Write every unit path with its description."""
        out = stream if stream is not None else sys.stdout
        for path in self._unit_paths:
            unit = self._units.get(path)
            if unit is not None:
                out.write(f"{path} ::: {_json_str(unit.get('Desc'))}\n")
        out.flush()