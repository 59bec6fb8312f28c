"""Reporting utilities: metric sinks, plots, manifests and summaries."""

from .artifacts import git_revision, write_manifest
from .metrics import CsvSink, JsonlSink
from .plots import PlotAdapter
from .summary import build_summary, summarize_history, write_summary

__all__ = [
    "CsvSink",
    "JsonlSink",
    "PlotAdapter",
    "build_summary",
    "git_revision",
    "summarize_history",
    "write_manifest",
    "write_summary",
]
