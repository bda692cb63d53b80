"""CSV ingestion: raw delimited text to feature and label matrices."""

from __future__ import annotations

import io
import logging
from pathlib import Path

import numpy as np
import pandas as pd
from pandas.api.types import is_numeric_dtype
from sklearn.preprocessing import LabelEncoder

from ..core.errors import EmptyOrMalformed, SizeLimitExceeded, UnsupportedFormat
from ..core.types import Dataset
from .utils import standardize

logger = logging.getLogger(__name__)

MAX_FILE_SIZE = 5 * 1024 * 1024
SUPPORTED_SUFFIXES = frozenset({".csv"})


def _check_name(name: str) -> None:
    suffix = Path(name).suffix.lower()
    if suffix not in SUPPORTED_SUFFIXES:
        raise UnsupportedFormat(f"Only CSV files are supported, got {name!r}")


def _check_size(size: int, max_bytes: int) -> None:
    if size > max_bytes:
        limit_mib = max_bytes / (1024 * 1024)
        raise SizeLimitExceeded(f"File size exceeds the {limit_mib:g} MiB limit ({size} bytes)")


def _encode_features(frame: pd.DataFrame):
    blocks: list[np.ndarray] = []
    names: list[str] = []
    means: list[float] = []
    stds: list[float] = []
    for column in frame.columns:
        series = frame[column]
        if is_numeric_dtype(series):
            if series.isna().any():
                raise EmptyOrMalformed(f"Column {column!r} has missing values")
            values = series.to_numpy(dtype=np.float64).reshape(-1, 1)
            scaled, mean, std = standardize(values)
            blocks.append(scaled)
            names.append(str(column))
            means.append(float(mean[0, 0]))
            stds.append(float(std[0, 0]))
        else:
            # Categorical columns are one-hot expanded and left unscaled.
            dummies = pd.get_dummies(series.astype(str), prefix=str(column), dtype=np.float32)
            blocks.append(dummies.to_numpy(dtype=np.float32))
            names.extend(str(name) for name in dummies.columns)
            means.extend([0.0] * dummies.shape[1])
            stds.extend([1.0] * dummies.shape[1])
    features = np.hstack(blocks).astype(np.float32)
    return features, names, np.asarray(means, np.float32), np.asarray(stds, np.float32)


def _encode_labels(series: pd.Series) -> tuple[np.ndarray, tuple[str, ...]]:
    if series.isna().any():
        raise EmptyOrMalformed("Label column has missing values")
    raw = series.to_numpy() if is_numeric_dtype(series) else series.astype(str).to_numpy()
    encoder = LabelEncoder()
    encoded = encoder.fit_transform(raw)
    num_classes = len(encoder.classes_)
    labels = np.eye(num_classes, dtype=np.float32)[encoded]
    return labels, tuple(str(c) for c in encoder.classes_)


def parse_tabular(
    text: str,
    name: str = "dataset.csv",
    *,
    max_bytes: int = MAX_FILE_SIZE,
) -> Dataset:
    """Parse CSV ``text`` into a :class:`Dataset`.

    The first row is the header and the last column holds the label.  Numeric
    feature columns are standardised, other feature columns are one-hot
    encoded and the labels are one-hot encoded over their distinct values.
    """

    _check_name(name)
    _check_size(len(text.encode("utf-8")), max_bytes)
    if not text.strip():
        raise EmptyOrMalformed("Invalid or empty data format")
    try:
        frame = pd.read_csv(io.StringIO(text.strip()), skipinitialspace=True)
    except (pd.errors.ParserError, pd.errors.EmptyDataError) as exc:
        raise EmptyOrMalformed(f"Could not parse {name}: {exc}") from exc
    if frame.shape[0] == 0 or frame.shape[1] < 2:
        raise EmptyOrMalformed(
            f"{name} needs a header, at least one row and at least two columns"
        )

    label_column = frame.columns[-1]
    label_series = frame.pop(label_column)
    features, feature_names, means, stds = _encode_features(frame)
    labels, label_names = _encode_labels(label_series)
    if features.shape[1] == 0 or labels.shape[1] == 0:
        raise EmptyOrMalformed("Encoded features or labels are empty")

    dataset = Dataset(
        name=name,
        features=features,
        labels=labels,
        feature_means=means,
        feature_stds=stds,
        feature_names=tuple(feature_names),
        label_names=label_names,
    )
    logger.info("Loaded %s: %s, %d classes", name, dataset.describe(), labels.shape[1])
    return dataset


def load_csv(path: str | Path, *, max_bytes: int = MAX_FILE_SIZE) -> Dataset:
    """Read and parse a CSV file, checking its size before reading it."""

    path = Path(path)
    _check_name(path.name)
    _check_size(path.stat().st_size, max_bytes)
    return parse_tabular(path.read_text(encoding="utf-8"), path.name, max_bytes=max_bytes)


__all__ = ["MAX_FILE_SIZE", "load_csv", "parse_tabular"]
