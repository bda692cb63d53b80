"""Reporting sinks and headless rendering."""

from .metrics import CsvSink, JsonlSink, read_jsonl
from .plots import HistoryPlot, render_network

__all__ = ["CsvSink", "HistoryPlot", "JsonlSink", "read_jsonl", "render_network"]
