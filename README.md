# ateengine

A command-line executor for automatic test projects organised as a tree:
a **project** holds **test suites**, and each suite holds **test cases**.
Every unit is addressed by a path such as `/Demo`, `/Demo/Power` or
`/Demo/Power/Voltage`.

For each selected unit the runner calls a test function by name:

| Unit          | Before             | After                 |
|---------------|--------------------|-----------------------|
| project/suite | `setup_<Name>`     | `teardown_<Name>`     |
| test case     | `test_<Name>`      | –                     |

A function returning `0` passes, a positive value fails, and a negative
value or a raised exception marks an exception. Suite and project verdicts
take the worst result of their children (Info < Pass < Fail < Exce).
Teardowns of suites and of the project that were already set up still run
when a run is stopped or breaks off early.

Results are written to standard output and to a local SQLite database
(`db/treeate.sqlite` under the application directory).

## Installation

```
pip install ateengine
```

## Project files

A project is a JSON file with the suffix `.tp`:

```json
{
  "Name": "Demo",
  "Desc": "Demo project",
  "Ver": "1.0",
  "Public": {
    "Parameter": [{"Name": "Voltage", "Value": "5"}],
    "Models": [{"Obj": "dmm", "Com": "dmm.py"}]
  },
  "TestSuite": [
    {
      "Name": "Power",
      "Desc": "Power checks",
      "TestCase": [
        {"Name": "Voltage", "Desc": "Output voltage", "Parameter": {"Limit": "0.1"}}
      ]
    }
  ]
}
```

`UnitManager.load_config` requires a script file next to the project file
with the same base name, looked for as `.js`, then `.dll`, then `.py`.
For `.js` and `.py` projects, model components under `libs/` with the same
suffix are added to the script file list.

## Use from Python

Test functions are plain Python callables registered in a
`ateengine.language.FunctionTable`. They are called without arguments;
public and local parameters, the result manager (`__ate`) and the runner
(`__aterun`) are placed in `FunctionTable.namespace`.

```python
from ateengine.cli import run_engine
from ateengine.language import FunctionTable

table = FunctionTable()
for name in ("setup_Demo", "setup_Power", "teardown_Power", "teardown_Demo"):
    table.register(name, lambda: 0)

def test_voltage():
    table.namespace["__ate"].output_rst("Voltage", "5.01", "4.9..5.1")
    return 0

table.register("test_Voltage", test_voltage)

status = run_engine(
    ["-t", "/Demo/Power", "-b", "SN-TEST-0001", "demo/Demo.tp"],
    app_dir=".",
    language=table,
)
```

`run_engine` returns one of the `ateengine.results.ExitCode` values.
`ateengine.units.UnitManager`, `ateengine.runner.TestRunner` and
`ateengine.resultmgr.ResultManager` (with an
`ateengine.outputs.OutputManager`) can also be driven directly.
`TestRunner.init_script(models)` takes a mapping from each model's `Obj`
name to its instance for models whose component is a native library.

## Command line

```
ateengine [options] <project.tp>
ateengine uploadrst
```

| Option | Meaning |
|--------|---------|
| `-t, --start-test <item>` | run the unit at this path (`/` for everything) |
| `-m, --multi-items <file>` | run the unit paths listed in the file, one per line |
| `-l, --list-item` | list all units with their descriptions |
| `-p, --parameters <file>` | override public parameter values from a JSON file |
| `-b, --barcode <barcode>` | barcode of the unit under test |
| `-u, --user <user>` | operator name |
| `-s, --station <station>` | station name |
| `-w, --workline <workline>` | working line name |
| `-S, --Stop` | stop the run at the first failing unit |
| `-v, --version` | show the version |

The command uses the current directory as the application directory:
the database goes to `db/` and a debug log to `Log/TestEngine/<date>.txt`.
With no arguments it prints the help.

While a test runs, typing `stop` on standard input asks the runner to stop
after the current unit.

`ateengine.cli.main` returns `0` on success, `10000` after listing,
`10001` after a successful upload and a negative `ExitCode` for each kind
of failure.

## What the package does not do

- It does not execute script files. `FunctionTable` only reads the script
  files and keeps their text; the functions to run must be registered as
  Python callables. Run from the command line, where no functions are
  registered, listing with `-l` works but a test run ends with an
  exception result.
- It does not load device models or test functions from native libraries.
- It has no server output of its own. `OutputManager` accepts one as its
  `server` argument, but the command line passes none, so `uploadrst` from
  the command line reports "No output to server model." and returns `-9`.

## Tests

```
pip install ateengine[test]
pytest
```