"""Epoch metric sinks."""

from __future__ import annotations

import csv
import json
from pathlib import Path
from typing import Mapping

from ..core.types import EpochMetrics


def _as_mapping(metrics: EpochMetrics | Mapping[str, float]) -> Mapping[str, float]:
    if isinstance(metrics, EpochMetrics):
        return metrics.as_dict()
    return metrics


class JsonlSink:
    """Append-only JSONL writer for per-epoch metrics.

    Usable as a trainer callback: ``on_epoch(epoch, metrics)``.
    """

    def __init__(self, path: str | Path, *, seed: int | None = None) -> None:
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text("")
        self.seed = seed

    def on_epoch(self, epoch: int, metrics: EpochMetrics | Mapping[str, float]) -> None:
        record = {"epoch": int(epoch), "seed": self.seed}
        record.update(
            {
                k: float(v)
                for k, v in _as_mapping(metrics).items()
                if k != "epoch" and isinstance(v, (int, float))
            }
        )
        with self.path.open("a", encoding="utf-8") as handle:
            handle.write(json.dumps(record) + "\n")

    __call__ = on_epoch


class CsvSink:
    """Write per-epoch metrics to CSV with a header on the first row."""

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text("")

    def on_epoch(self, epoch: int, metrics: EpochMetrics | Mapping[str, float]) -> None:
        row = {"epoch": int(epoch)}
        row.update(
            {
                k: float(v)
                for k, v in _as_mapping(metrics).items()
                if k != "epoch" and isinstance(v, (int, float))
            }
        )
        with self.path.open("a", encoding="utf-8", newline="") as handle:
            writer = csv.DictWriter(handle, fieldnames=sorted(row.keys()))
            if handle.tell() == 0:
                writer.writeheader()
            writer.writerow(row)

    __call__ = on_epoch


def read_jsonl(path: str | Path) -> list[dict]:
    with Path(path).open("r", encoding="utf-8") as handle:
        return [json.loads(line) for line in handle if line.strip()]


__all__ = ["CsvSink", "JsonlSink", "read_jsonl"]
