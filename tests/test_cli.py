import io
import json
import sqlite3

import pytest

from ateengine.cli import build_parser, main, run_engine
from ateengine.language import FunctionTable
from ateengine.results import UPLOAD_TRUE, ExitCode

ALL_FUNCS = (
    "setup_Demo",
    "setup_Suite1",
    "test_Case1",
    "test_Case2",
    "teardown_Suite1",
    "teardown_Demo",
)


def make_project(tmp_path):
    config = {
        "Name": "Demo",
        "Desc": "demo project",
        "Ver": "1.0",
        "Public": {"Parameter": [{"Name": "Volt", "Value": "5"}]},
        "TestSuite": [
            {
                "Name": "Suite1",
                "Desc": "first suite",
                "TestCase": [
                    {"Name": "Case1", "Desc": "case one"},
                    {"Name": "Case2", "Desc": "case two"},
                ],
            }
        ],
    }
    tp = tmp_path / "Demo.tp"
    tp.write_text(json.dumps(config), encoding="utf-8")
    (tmp_path / "Demo.py").write_text("# tests\n", encoding="utf-8")
    return tp


def make_language(calls, overrides=None):
    overrides = overrides or {}
    lang = FunctionTable()
    for name in ALL_FUNCS:
        def func(name=name):
            calls.append(name)
            action = overrides.get(name)
            return action() if action else 0
        lang.register(name, func)
    return lang


def run(args, tmp_path, lang=None):
    return run_engine(args, tmp_path / "app", lang, io.StringIO(""))


def test_parser_reads_options():
    ns = build_parser().parse_args(
        ["-t", "/Demo", "-b", "BC1", "-u", "tester", "-s", "st", "-w", "wl", "-S", "demo.tp"]
    )
    assert ns.start_test == "/Demo"
    assert ns.barcode == "BC1"
    assert ns.user == "tester"
    assert ns.station == "st"
    assert ns.workline == "wl"
    assert ns.stop is True
    assert ns.project == "demo.tp"
    assert ns.list_item is False


def test_version_option_exits(capsys):
    with pytest.raises(SystemExit) as info:
        build_parser().parse_args(["--version"])
    assert info.value.code == 0
    assert "2.3.0" in capsys.readouterr().out


def test_no_arguments_shows_help(tmp_path, capsys):
    assert run([], tmp_path) == ExitCode.NEED_PARA
    assert "project" in capsys.readouterr().out


def test_missing_project(tmp_path, capsys):
    assert run(["-b", "x"], tmp_path) == ExitCode.NO_PROJECT
    assert "Please enter the project file name or --help." in capsys.readouterr().err


def test_project_file_not_found(tmp_path, capsys):
    missing = str(tmp_path / "nothing.tp")
    assert run([missing], tmp_path) == ExitCode.LOAD_UNITS
    assert missing in capsys.readouterr().err


def test_list_items(tmp_path, capsys):
    tp = make_project(tmp_path)
    assert run(["-l", str(tp)], tmp_path, make_language([])) == ExitCode.LIST_OK
    out = capsys.readouterr().out
    assert "/Demo ::: demo project" in out
    assert "/Demo/Suite1/Case2 ::: case two" in out


def test_full_run_calls_every_function_in_order(tmp_path):
    tp = make_project(tmp_path)
    calls = []
    assert run(["-t", "/", str(tp)], tmp_path, make_language(calls)) == ExitCode.OK
    assert calls == [
        "setup_Demo",
        "setup_Suite1",
        "test_Case1",
        "test_Case2",
        "teardown_Suite1",
        "teardown_Demo",
    ]


def test_run_stores_uploaded_result(tmp_path):
    tp = make_project(tmp_path)
    assert run(["-t", "/", "-b", "BC7", str(tp)], tmp_path, make_language([])) == ExitCode.OK
    db = tmp_path / "app" / "db" / "treeate.sqlite"
    with sqlite3.connect(db) as conn:
        rows = conn.execute("SELECT name, barcode, rst, uploaded FROM TestProject").fetchall()
        cases = conn.execute("SELECT longname, rst FROM TestCase ORDER BY id").fetchall()
    assert rows == [("Demo", "BC7", "Pass", UPLOAD_TRUE)]
    assert cases == [("/Demo/Suite1/Case1", "Pass"), ("/Demo/Suite1/Case2", "Pass")]


def test_stop_when_failed_skips_remaining_cases(tmp_path):
    tp = make_project(tmp_path)
    calls = []
    lang = make_language(calls, {"test_Case1": lambda: 1})
    assert run(["-S", "-t", "/", str(tp)], tmp_path, lang) == ExitCode.OK
    assert "test_Case2" not in calls
    assert calls[-2:] == ["teardown_Suite1", "teardown_Demo"]


def test_script_exception_reports_running_error(tmp_path, capsys):
    tp = make_project(tmp_path)
    calls = []

    def boom():
        raise RuntimeError("broken")

    lang = make_language(calls, {"test_Case1": boom})
    assert run(["-t", "/", str(tp)], tmp_path, lang) == ExitCode.RUNNING
    assert "Script exception" in capsys.readouterr().err
    assert "test_Case2" not in calls
    assert calls[-2:] == ["teardown_Suite1", "teardown_Demo"]


def test_unknown_path_is_unselected(tmp_path, capsys):
    tp = make_project(tmp_path)
    assert run(["-t", "/Nope", str(tp)], tmp_path, make_language([])) == ExitCode.UNSELECTED
    assert "/Nope was not exist." in capsys.readouterr().err


def test_nothing_selected(tmp_path):
    tp = make_project(tmp_path)
    assert run([str(tp)], tmp_path, make_language([])) == ExitCode.UNSELECTED


def test_multi_items_file(tmp_path):
    tp = make_project(tmp_path)
    sel = tmp_path / "sel.txt"
    sel.write_text("/Demo\n/Demo/Suite1\n/Demo/Suite1/Case2\n/Other\n", encoding="utf-8")
    calls = []
    assert run(["-m", str(sel), str(tp)], tmp_path, make_language(calls)) == ExitCode.OK
    assert "test_Case1" not in calls
    assert "test_Case2" in calls


def test_public_parameters_file(tmp_path):
    tp = make_project(tmp_path)
    params = tmp_path / "para.json"
    params.write_text(json.dumps({"Parameter": [{"Name": "Volt", "Value": "12"}]}), encoding="utf-8")
    seen = []
    lang = None

    def capture():
        seen.append(lang.namespace["Volt"])
        return 0

    lang = make_language([], {"test_Case1": capture})
    assert run(["-p", str(params), "-t", "/Demo/Suite1/Case1", str(tp)], tmp_path, lang) == ExitCode.OK
    assert seen == ["12"]


def test_missing_parameters_file(tmp_path):
    tp = make_project(tmp_path)
    missing = str(tmp_path / "none.json")
    assert run(["-p", missing, "-l", str(tp)], tmp_path, make_language([])) == ExitCode.LOAD_PARA


def test_upload_without_server_fails(tmp_path):
    assert run(["uploadrst"], tmp_path) == ExitCode.UPLOAD_HISTORY


def test_main_uses_current_directory(tmp_path, monkeypatch, capsys):
    tp = make_project(tmp_path)
    monkeypatch.chdir(tmp_path)
    assert main(["-l", str(tp)]) == ExitCode.LIST_OK
    assert (tmp_path / "Log" / "TestEngine").is_dir()
    assert (tmp_path / "db" / "treeate.sqlite").is_file()
    assert "/Demo/Suite1 ::: first suite" in capsys.readouterr().out