import io
import json

import pytest

from ateengine.language import FunctionTable
from ateengine.results import TEST_COMPONENT_SUFFIX, ExitCode
from ateengine.runner import RunnerError, StopListener, TestRunner, running_list
from ateengine.units import UnitManager


class Recorder:
    def __init__(self):
        self.created = []
        self.updated = []

    def create_result(self, path, unit):
        self.created.append(path)
        return True

    def update_result(self, path, unit, ret, desc=""):
        self.updated.append((path, ret, desc))
        return True


def _project(tmp_path, models=None):
    config = {
        "Name": "P",
        "Public": {
            "Parameter": [{"Name": "g", "Value": "G"}],
            "Models": models or [],
        },
        "TestSuite": [
            {
                "Name": "S",
                "TestCase": [
                    {"Name": "c1", "Parameter": {"x": "1"}},
                    {"Name": "c2"},
                ],
            }
        ],
    }
    (tmp_path / "P.tp").write_text(json.dumps(config), encoding="utf-8")
    (tmp_path / "P.py").write_text("", encoding="utf-8")
    units = UnitManager()
    units.load_config(tmp_path / "P.tp")
    return units


def _table(calls, overrides=None):
    table = FunctionTable()
    for name in ("setup_P", "setup_S", "test_c1", "test_c2", "teardown_S", "teardown_P"):
        def func(name=name):
            calls.append(name)
            return 0
        table.register(name, func)
    for name, func in (overrides or {}).items():
        table.register(name, func)
    return table


def test_running_list_single_suite():
    assert running_list(["/P", "/P/S", "/P/S/C"]) == [
        "/P", "/P/S", "/P/S/C", ">/P/S", ">/P",
    ]


def test_running_list_two_suites():
    selected = ["/P", "/P/A", "/P/A/c", "/P/B", "/P/B/d"]
    assert running_list(selected) == [
        "/P", "/P/A", "/P/A/c", ">/P/A", "/P/B", "/P/B/d", ">/P/B", ">/P",
    ]


def test_running_list_empty():
    assert running_list([]) == []


def test_run_calls_functions_in_order(tmp_path):
    units = _project(tmp_path)
    calls = []
    runner = TestRunner(units, _table(calls))
    runner.init_script()
    results = Recorder()
    runner.run(units.select_for_path("/"), results, False)
    assert calls == ["setup_P", "setup_S", "test_c1", "test_c2", "teardown_S", "teardown_P"]
    assert results.created == ["/P", "/P/S", "/P/S/c1", "/P/S/c2"]
    assert [u[0] for u in results.updated] == [
        "/P", "/P/S", "/P/S/c1", "/P/S/c2", "/P/S", "/P",
    ]
    assert all(ret == 0 for _, ret, _ in results.updated)


def test_local_and_public_parameters(tmp_path):
    units = _project(tmp_path)
    calls = []
    seen = {}
    table = FunctionTable()

    def case_one():
        seen["x"] = table.namespace.get("x")
        seen["g"] = table.namespace.get("g")
        table.namespace["g"] = "changed"
        return 0

    table = _table(calls)
    table.register("test_c1", case_one)
    runner = TestRunner(units, table)
    runner.init_script()
    runner.run(units.select_for_path("/"), Recorder(), False)
    assert seen == {"x": "1", "g": "G"}
    assert table.namespace["g"] == "G"
    assert table.namespace["__aterun"] is runner


def test_stop_when_failed(tmp_path):
    units = _project(tmp_path)
    calls = []
    table = _table(calls, {"test_c1": lambda: 1})
    runner = TestRunner(units, table)
    runner.init_script()
    results = Recorder()
    runner.run(units.select_for_path("/"), results, True)
    assert "test_c2" not in calls
    assert ("/P/S/c1", 1, "Stopped by TreeATE.") in results.updated
    assert calls[-2:] == ["teardown_S", "teardown_P"]


def test_failure_without_stop_continues(tmp_path):
    units = _project(tmp_path)
    calls = []
    table = _table(calls, {"test_c1": lambda: 1})
    runner = TestRunner(units, table)
    runner.init_script()
    results = Recorder()
    runner.run(units.select_for_path("/"), results, False)
    assert "test_c2" in calls
    assert ("/P/S/c1", 1, "") in results.updated


def test_exception_raises_after_teardowns(tmp_path):
    units = _project(tmp_path)
    calls = []

    def broken():
        raise RuntimeError("bad device")

    table = _table(calls, {"test_c1": broken})
    runner = TestRunner(units, table)
    runner.init_script()
    results = Recorder()
    with pytest.raises(RunnerError) as info:
        runner.run(units.select_for_path("/"), results, False)
    assert "bad device" in str(info.value)
    assert calls == ["setup_P", "setup_S", "teardown_S", "teardown_P"]
    path, ret, desc = results.updated[2]
    assert path == "/P/S/c1" and ret == -1 and "bad device" in desc


def test_stopped_before_run(tmp_path):
    units = _project(tmp_path)
    calls = []
    runner = TestRunner(units, _table(calls))
    runner.init_script()
    runner.stop()
    results = Recorder()
    runner.run(units.select_for_path("/"), results, False)
    assert calls == ["setup_P", "teardown_P"]
    assert results.updated[0] == ("/P", 1, "Stopped by TreeATE.")


def test_fourth_stop_exits():
    runner = TestRunner(UnitManager(), FunctionTable())
    for _ in range(3):
        runner.stop()
    with pytest.raises(SystemExit) as info:
        runner.stop()
    assert info.value.code == int(ExitCode.BY_STOPPED)


def test_init_script_requires_native_models(tmp_path):
    models = [{"Obj": "dev", "Com": f"dev.{TEST_COMPONENT_SUFFIX}"}]
    units = _project(tmp_path, models)
    runner = TestRunner(units, FunctionTable())
    with pytest.raises(RunnerError) as info:
        runner.init_script({})
    assert str(info.value).endswith(f"/libs/dev.{TEST_COMPONENT_SUFFIX}")


def test_init_script_adds_models_and_parameters(tmp_path):
    models = [{"Obj": "dev", "Com": f"dev.{TEST_COMPONENT_SUFFIX}"}]
    units = _project(tmp_path, models)
    table = FunctionTable()
    device = object()
    TestRunner(units, table).init_script({"dev": device})
    assert table.namespace["dev"] is device
    assert table.namespace["g"] == "G"
    assert table.scripts[0][0].endswith("P.py")


def test_init_script_missing_script_raises(tmp_path):
    units = _project(tmp_path)
    (tmp_path / "P.py").unlink()
    runner = TestRunner(units, FunctionTable())
    with pytest.raises(RunnerError):
        runner.init_script()


def test_stop_listener_stops_on_word():
    runner = TestRunner(UnitManager(), FunctionTable())
    StopListener(runner, io.StringIO("go on\nplease STOP now\n")).run()
    assert runner.is_stopped
    assert runner.stopped_count == 1


def test_stop_listener_without_word():
    runner = TestRunner(UnitManager(), FunctionTable())
    StopListener(runner, io.StringIO("stopped halt\n")).run()
    assert runner.stopped_count == 0