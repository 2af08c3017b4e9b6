[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "ateengine"
version = "2.3.0"
description = "Command-line test executor for tree-structured automatic test projects"
requires-python = ">=3.10"
dependencies = []
keywords = ["ate", "test executor", "test sequencer", "manufacturing test", "sqlite"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Environment :: Console",
    "Intended Audience :: Developers",
    "Intended Audience :: Manufacturing",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Software Development :: Testing",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
ateengine = "ateengine.cli:main"

[tool.hatch.build.targets.wheel]
packages = ["ateengine"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
