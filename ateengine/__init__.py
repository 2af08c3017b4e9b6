"""Executor for tree-structured test projects, with console and SQLite result outputs."""

__version__ = "2.3.0"