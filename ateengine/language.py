"""Script languages that run the test functions of a project."""

from __future__ import annotations

import logging
import math
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Callable, Iterable, Mapping

log = logging.getLogger(__name__)

EXCEPTION_CODE = -1
NOT_FOUND_CODE = -2


class ScriptError(Exception):
    """Raised when a script cannot be loaded or a script function fails.

    ``code`` is negative: -1 for an exception inside the script and -2 for a
    function that does not exist.
    """

    def __init__(self, message: str, code: int = EXCEPTION_CODE) -> None:
        super().__init__(message)
        self.code = code


def _to_int32(value: Any) -> int:
    """Convert a script return value the way the script engine does."""
    if value is None:
        return 0
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, str):
        try:
            value = float(value.strip()) if value.strip() else 0.0
        except ValueError:
            return 0
    if isinstance(value, float):
        if not math.isfinite(value):
            return 0
        value = int(value)
    if not isinstance(value, int):
        return 0
    value %= 2**32
    return value - 2**32 if value >= 2**31 else value


class ScriptLanguage(ABC):
    """A language the test functions of a project are written in."""

    last_error: str = ""

    @abstractmethod
    def load_script(self, files: Iterable[str]) -> None:
        """Load the script files; raise ScriptError when one cannot be used."""

    @abstractmethod
    def add_model(self, name: str, obj: Any) -> None:
        """Make ``obj`` visible to the scripts under ``name``."""

    @abstractmethod
    def init_public_parameters(self, params: Mapping[str, str]) -> None:
        """Set the public parameters as script globals."""

    @abstractmethod
    def execute(self, func_name: str, local_params: Mapping[str, str]) -> int:
        """Call a script function after setting ``local_params``; return its result."""


class FunctionTable(ScriptLanguage):
    """Test functions given as Python callables, sharing one global namespace.

    Script files are read and kept; the functions themselves are added with
    :meth:`register` and are called without arguments. Parameters and models
    are placed in :attr:`namespace`.
    """

    def __init__(self) -> None:
        self.namespace: dict[str, Any] = {}
        self.scripts: list[tuple[str, str]] = []
        self.last_error = ""

    def register(self, name: str, func: Callable[[], Any]) -> Callable[[], Any]:
        """Add a test function under ``name`` and return it."""
        self.namespace[name] = func
        return func

    def load_script(self, files: Iterable[str]) -> None:
        files = list(files)
        log.debug("loadScript count: %d", len(files))
        loaded: list[tuple[str, str]] = []
        for file_name in reversed(files):
            try:
                text = Path(file_name).read_text(encoding="utf-8")
            except (OSError, UnicodeDecodeError) as exc:
                self.last_error = f"{file_name}{getattr(exc, 'strerror', None) or exc}"
                raise ScriptError(self.last_error) from exc
            loaded.append((file_name, text))
        self.scripts.extend(loaded)

    def add_model(self, name: str, obj: Any) -> None:
        self.namespace[name] = obj

    def init_public_parameters(self, params: Mapping[str, str]) -> None:
        self.namespace.update(params)

    def execute(self, func_name: str, local_params: Mapping[str, str]) -> int:
        self.namespace.update(local_params)
        func = self.namespace.get(func_name)
        if not callable(func):
            self.last_error = f"Not found this function name({func_name}) in script."
            raise ScriptError(self.last_error, NOT_FOUND_CODE)
        try:
            result = func()
        except Exception as exc:
            line = exc.__traceback__.tb_lineno if exc.__traceback__ else 0
            tb = exc.__traceback__
            while tb is not None:
                line = tb.tb_lineno
                tb = tb.tb_next
            self.last_error = f"Script exception at line({line}):{type(exc).__name__}: {exc}"
            log.debug("%s", self.last_error)
            raise ScriptError(self.last_error, EXCEPTION_CODE) from exc
        return _to_int32(result)