"""Run artifacts: metric sinks, manifests and loss curves."""

from .artifacts import git_sha, write_manifest
from .metrics import CsvSink, JsonlSink, MetricsRecorder
from .plots import PlotAdapter

__all__ = ["CsvSink", "JsonlSink", "MetricsRecorder", "PlotAdapter", "git_sha", "write_manifest"]
